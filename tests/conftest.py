"""Shared fixtures: an in-memory database with the full schema."""

from __future__ import annotations

from typing import Iterator

import pytest
from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from consolidation.store.session import create_db_engine, create_session_factory, init_schema


@pytest.fixture()
def engine() -> Iterator[Engine]:
    engine = create_db_engine("sqlite://")
    init_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return create_session_factory(engine=engine)


@pytest.fixture()
def seed(session_factory: sessionmaker[Session]):
    """Insert ORM objects in order, committing after each batch."""

    def _seed(*objects) -> None:
        with session_factory.begin() as session:
            for item in objects:
                session.add(item)
                session.flush()

    return _seed
