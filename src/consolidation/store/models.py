"""ORM models for the back-office tables touched by consolidation runs."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base shared by every table."""


class Branch(Base):
    __tablename__ = "branch"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=True,
    )


class Employee(Base):
    __tablename__ = "employee"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    branch_id: Mapped[int | None] = mapped_column(ForeignKey("branch.id"), nullable=True)


class Job(Base):
    __tablename__ = "job"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    branch_id: Mapped[int | None] = mapped_column(ForeignKey("branch.id"), nullable=True)
    closing_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    performance_status: Mapped[str | None] = mapped_column(String(50), nullable=True)


class Shift(Base):
    """Hours worked by an employee on a job; one row per (job, employee)."""

    __tablename__ = "shift"

    job_id: Mapped[int] = mapped_column(ForeignKey("job.id"), primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employee.id"), primary_key=True)
    hours: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)


class SpecialShift(Base):
    __tablename__ = "special_shift"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)


class JobSpecialShift(Base):
    """QC and other special hours booked against a job."""

    __tablename__ = "job_special_shift"

    job_id: Mapped[int] = mapped_column(ForeignKey("job.id"), primary_key=True)
    special_shift_id: Mapped[int] = mapped_column(ForeignKey("special_shift.id"), primary_key=True)
    date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    hours: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)


class SalesPerson(Base):
    __tablename__ = "sales_person"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    telegram_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    warning_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    branch_id: Mapped[int | None] = mapped_column(ForeignKey("branch.id"), nullable=True)


class SalesPersonBranch(Base):
    __tablename__ = "sales_person_branch"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sales_person_id: Mapped[int] = mapped_column(ForeignKey("sales_person.id"), nullable=False)
    branch_id: Mapped[int] = mapped_column(ForeignKey("branch.id"), nullable=False)


class Estimate(Base):
    __tablename__ = "estimate"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    branch_id: Mapped[int | None] = mapped_column(ForeignKey("branch.id"), nullable=True)
    sales_person_id: Mapped[int | None] = mapped_column(ForeignKey("sales_person.id"), nullable=True)


__all__ = [
    "Base",
    "Branch",
    "Employee",
    "Job",
    "Shift",
    "SpecialShift",
    "JobSpecialShift",
    "SalesPerson",
    "SalesPersonBranch",
    "Estimate",
]
