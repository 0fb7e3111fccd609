"""End-to-end consolidation runs against an in-memory database."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from consolidation.config.policies import Policies
from consolidation.entities import ActionKind, EntityKind, RunMode, RunReport
from consolidation.errors import MergeExecutionError, UsageError
from consolidation.pipeline.deduplication import io
from consolidation.pipeline.deduplication.executor import MergeExecutor
from consolidation.pipeline.deduplication.processor import ConsolidationProcessor, resolve_mode, run_all
from consolidation.pipeline.deduplication.profiles import build_profile
from consolidation.store.models import (
    Branch,
    Employee,
    Estimate,
    Job,
    JobSpecialShift,
    SalesPerson,
    SalesPersonBranch,
    Shift,
    SpecialShift,
)


def processor_for(kind: EntityKind, session_factory, policies: Policies | None = None) -> ConsolidationProcessor:
    return ConsolidationProcessor(build_profile(kind, policies or Policies()), session_factory)


@pytest.fixture()
def job_data(seed):
    seed(
        Branch(id=1, name="San Diego"),
        Branch(id=2, name="Phoenix"),
        *[Employee(id=employee_id, name=f"Employee {employee_id}", branch_id=1) for employee_id in range(1, 8)],
        SpecialShift(id=1, name="QC"),
        Job(id=10, name="Smith Attic - REVISED", branch_id=1),
        Job(id=22, name="Smith Attic", branch_id=1),
        Job(id=23, name="Smith Attic", branch_id=2),
        *[Shift(job_id=10, employee_id=employee_id, hours=Decimal("4")) for employee_id in (1, 2, 7)],
        *[Shift(job_id=22, employee_id=employee_id, hours=Decimal("6")) for employee_id in (3, 4, 5, 6, 7)],
        JobSpecialShift(job_id=10, special_shift_id=1, hours=Decimal("2")),
    )


def total_hours(session_factory) -> Decimal:
    with session_factory() as session:
        shifts = session.execute(select(func.sum(Shift.hours))).scalar_one()
        specials = session.execute(select(func.sum(JobSpecialShift.hours))).scalar_one()
    return Decimal(str(shifts)) + Decimal(str(specials))


def test_resolve_mode_requires_exactly_one_flag() -> None:
    assert resolve_mode(dry_run=True, merge=False) is RunMode.DRY_RUN
    assert resolve_mode(dry_run=False, merge=True) is RunMode.APPLY
    with pytest.raises(UsageError):
        resolve_mode(dry_run=False, merge=False)
    with pytest.raises(UsageError):
        resolve_mode(dry_run=True, merge=True)


def test_dry_run_reports_plan_without_writing(session_factory, job_data) -> None:
    report = processor_for(EntityKind.JOB, session_factory).run(RunMode.DRY_RUN)

    assert report.passes == 1
    assert report.candidates == 3
    assert report.groups_found == 1
    assert report.merged_count == 0
    assert report.consolidation_map == {}
    cluster = report.clusters[0]
    assert cluster.canonical_id == 22
    assert cluster.loser_ids == [10]
    assert not cluster.applied
    assert [(action.kind, action.relation, action.key) for action in cluster.actions] == [
        (ActionKind.REPARENT, "job_special_shift", 1),
        (ActionKind.REPARENT, "shift", 1),
        (ActionKind.REPARENT, "shift", 2),
        (ActionKind.FOLD, "shift", 7),
        (ActionKind.DELETE, "job", None),
    ]
    assert cluster.group.evidence[0].score == 100.0

    with session_factory() as session:
        assert session.get(Job, 10) is not None
        assert session.execute(select(func.count()).select_from(Shift).where(Shift.job_id == 10)).scalar_one() == 3


def test_apply_merges_jobs_and_conserves_hours(session_factory, job_data) -> None:
    before = total_hours(session_factory)

    report = processor_for(EntityKind.JOB, session_factory).run(RunMode.APPLY)

    assert report.success
    assert report.merged_count == 1
    assert report.deleted_count == 1
    assert report.consolidation_map == {10: 22}
    assert any("Folded shift key=7 of 10 into 22" in line for line in report.clusters[0].audit)

    with session_factory() as session:
        assert session.get(Job, 10) is None
        assert session.get(Job, 23) is not None
        employees = session.execute(
            select(Shift.employee_id).where(Shift.job_id == 22).order_by(Shift.employee_id)
        ).scalars().all()
        assert employees == [1, 2, 3, 4, 5, 6, 7]
        folded = session.execute(
            select(Shift.hours).where(Shift.job_id == 22, Shift.employee_id == 7)
        ).scalar_one()
        assert Decimal(str(folded)) == Decimal("10")
        special = session.execute(select(JobSpecialShift.job_id)).scalars().all()
        assert special == [22]
        orphans = session.execute(
            select(func.count()).select_from(Shift).where(Shift.job_id.not_in(select(Job.id)))
        ).scalar_one()
        assert orphans == 0

    assert total_hours(session_factory) == before


def test_second_apply_finds_nothing(session_factory, job_data) -> None:
    processor_for(EntityKind.JOB, session_factory).run(RunMode.APPLY)

    report = processor_for(EntityKind.JOB, session_factory).run(RunMode.APPLY)

    assert report.groups_found == 0
    assert report.merged_count == 0
    assert report.passes == 1


def test_failing_cluster_is_rolled_back_and_others_continue(session_factory, job_data, seed, monkeypatch) -> None:
    seed(
        Job(id=30, name="Miller Crawlspace", branch_id=2),
        Job(id=31, name="Miller Crawlspace - CLI", branch_id=2),
        Shift(job_id=30, employee_id=1, hours=Decimal("3")),
        Shift(job_id=31, employee_id=2, hours=Decimal("1")),
    )
    original_apply = MergeExecutor.apply

    def flaky_apply(self, session, plan):
        if plan.canonical_id == 22:
            # a partial write that must not survive the rollback
            session.execute(Shift.__table__.delete().where(Shift.job_id == 10))
            raise MergeExecutionError("simulated failure", canonical_id=22)
        return original_apply(self, session, plan)

    monkeypatch.setattr(MergeExecutor, "apply", flaky_apply)

    report = processor_for(EntityKind.JOB, session_factory).run(RunMode.APPLY)

    assert len(report.errors) == 1
    assert report.errors[0].canonical_id == 22
    assert report.errors[0].member_ids == [10, 22]
    assert "simulated failure" in report.errors[0].error
    assert report.consolidation_map == {31: 30}
    assert not report.success
    assert report.passes == 2

    with session_factory() as session:
        assert session.get(Job, 10) is not None
        assert session.get(Job, 31) is None
        assert session.execute(select(func.count()).select_from(Shift).where(Shift.job_id == 10)).scalar_one() == 3
        moved = session.execute(select(Shift.employee_id).where(Shift.job_id == 30).order_by(Shift.employee_id))
        assert moved.scalars().all() == [1, 2]


def test_stale_plan_is_rejected(session_factory, job_data) -> None:
    processor = processor_for(EntityKind.JOB, session_factory)
    planned = processor.plan_pass().clusters[0]
    with session_factory.begin() as session:
        session.add(Shift(job_id=22, employee_id=1, hours=Decimal("1")))

    report = RunReport(kind=EntityKind.JOB, mode=RunMode.APPLY)

    applied = processor._apply_cluster(planned, report)

    assert not applied
    assert "already exists" in report.errors[0].error
    with session_factory() as session:
        assert session.get(Job, 10) is not None
        assert session.execute(select(JobSpecialShift.job_id)).scalars().all() == [10]


@pytest.fixture()
def special_shift_data(seed):
    seed(
        Branch(id=1, name="San Diego"),
        *[Employee(id=employee_id, name=f"Employee {employee_id}", branch_id=1) for employee_id in (1, 2, 3)],
        SpecialShift(id=1, name="QC"),
        SpecialShift(id=2, name="Cleanup"),
        Job(id=10, name="Kent Attic - REVISED", branch_id=1),
        Job(id=22, name="Kent Attic", branch_id=1),
        Shift(job_id=10, employee_id=1, hours=Decimal("4")),
        *[Shift(job_id=22, employee_id=employee_id, hours=Decimal("6")) for employee_id in (2, 3)],
        JobSpecialShift(job_id=10, special_shift_id=1, hours=Decimal("2")),
        JobSpecialShift(job_id=22, special_shift_id=1, hours=None),
        JobSpecialShift(job_id=10, special_shift_id=2, hours=Decimal("1.5")),
        JobSpecialShift(job_id=22, special_shift_id=2, hours=Decimal("3")),
    )


def test_colliding_special_shifts_are_folded(session_factory, special_shift_data) -> None:
    before = total_hours(session_factory)

    report = processor_for(EntityKind.JOB, session_factory).run(RunMode.APPLY)

    assert report.success
    assert report.consolidation_map == {10: 22}
    folds = [
        (action.relation, action.key)
        for action in report.clusters[0].actions
        if action.kind is ActionKind.FOLD
    ]
    assert folds == [("job_special_shift", 1), ("job_special_shift", 2)]
    assert any("Folded job_special_shift key=1 of 10 into 22" in line for line in report.clusters[0].audit)

    with session_factory() as session:
        rows = session.execute(
            select(JobSpecialShift.job_id, JobSpecialShift.special_shift_id, JobSpecialShift.hours).order_by(
                JobSpecialShift.special_shift_id
            )
        ).all()
    assert [(job_id, special_id) for job_id, special_id, _ in rows] == [(22, 1), (22, 2)]
    assert [Decimal(str(hours)) for _, _, hours in rows] == [Decimal("2"), Decimal("4.5")]
    assert total_hours(session_factory) == before


def test_names_differing_only_in_case_are_grouped(session_factory, seed) -> None:
    seed(
        Branch(id=1, name="San Diego"),
        Job(id=40, name="SMITH ATTIC", branch_id=1),
        Job(id=41, name="Smith Attic - REVISED", branch_id=1),
        Job(id=42, name="smith attic.", branch_id=1),
    )

    report = processor_for(EntityKind.JOB, session_factory).run(RunMode.DRY_RUN)

    assert report.groups_found == 1
    assert report.clusters[0].group.member_ids == [40, 41, 42]
    assert all(link.score == 100.0 for link in report.clusters[0].group.evidence)
    assert report.stats["clustering"][0]["edges"] == 2


@pytest.fixture()
def branch_data(seed):
    seed(
        Branch(id=1, name="San Diego", created_at=datetime(2023, 3, 1, tzinfo=timezone.utc)),
        Branch(id=2, name="san  diego", created_at=datetime(2022, 3, 1, tzinfo=timezone.utc)),
        Branch(id=3, name="San Diego East", created_at=datetime(2021, 3, 1, tzinfo=timezone.utc)),
        Employee(id=1, name="Ana", branch_id=1),
        Job(id=5, name="Garcia Attic", branch_id=1),
        SalesPerson(id=40, name="Eben Woodbell", branch_id=1),
        SalesPerson(id=41, name="Maria Lopez", branch_id=2),
        Estimate(id=1, name="Garcia Attic", status="Released", branch_id=1, sales_person_id=40),
        SalesPersonBranch(sales_person_id=40, branch_id=1),
        SalesPersonBranch(sales_person_id=40, branch_id=2),
        SalesPersonBranch(sales_person_id=41, branch_id=1),
    )


def test_branch_merge_moves_dependents_to_oldest_branch(session_factory, branch_data) -> None:
    report = processor_for(EntityKind.BRANCH, session_factory).run(RunMode.APPLY)

    assert report.consolidation_map == {1: 2}
    payload = io.branch_cleanup_payload(report)
    assert payload == {
        "success": True,
        "duplicatesFound": 1,
        "duplicatesDeleted": 1,
        "consolidationMap": {"1": 2},
    }

    with session_factory() as session:
        assert session.get(Branch, 1) is None
        assert session.get(Branch, 3) is not None
        assert session.get(Employee, 1).branch_id == 2
        assert session.get(Job, 5).branch_id == 2
        assert session.get(Estimate, 1).branch_id == 2
        assert session.get(SalesPerson, 40).branch_id == 2
        links = session.execute(
            select(SalesPersonBranch.sales_person_id, SalesPersonBranch.branch_id).order_by(
                SalesPersonBranch.sales_person_id
            )
        ).all()
        assert [tuple(link) for link in links] == [(40, 2), (41, 2)]


def test_branch_dry_run_payload_uses_planned_map(session_factory, branch_data) -> None:
    report = processor_for(EntityKind.BRANCH, session_factory).run(RunMode.DRY_RUN)

    payload = io.branch_cleanup_payload(report)

    assert payload["duplicatesFound"] == 1
    assert payload["duplicatesDeleted"] == 0
    assert payload["consolidationMap"] == {"1": 2}
    with session_factory() as session:
        assert session.get(Branch, 1) is not None


@pytest.fixture()
def salesperson_data(seed):
    seed(
        Branch(id=1, name="San Diego"),
        SalesPerson(id=1, name="Eben W", is_active=True, warning_count=1),
        SalesPerson(id=2, name="Eben Woodbell", is_active=True, telegram_id="55501"),
        SalesPerson(id=3, name="Eben W", is_active=False),
        SalesPerson(id=4, name="Maria Lopez", is_active=True),
        Estimate(id=1, name="Kent Attic", status="In Progress", sales_person_id=1),
        Estimate(id=2, name="Kent Roof", status="Closed", sales_person_id=1),
        SalesPersonBranch(sales_person_id=1, branch_id=1),
    )


def test_salesperson_merge_keeps_telegram_record(session_factory, salesperson_data) -> None:
    report = processor_for(EntityKind.SALESPERSON, session_factory).run(RunMode.APPLY)

    assert report.candidates == 3
    assert report.consolidation_map == {1: 2}
    assert report.clusters[0].group.evidence[0].driver == "containment"

    with session_factory() as session:
        assert session.get(SalesPerson, 1) is None
        inactive = session.get(SalesPerson, 3)
        assert inactive is not None and inactive.is_active is False
        estimates = session.execute(select(Estimate.sales_person_id).order_by(Estimate.id)).scalars().all()
        assert estimates == [2, 2]
        links = session.execute(select(SalesPersonBranch.sales_person_id)).scalars().all()
        assert links == [2]


def test_run_all_follows_dependency_order(session_factory, branch_data) -> None:
    reports = run_all(session_factory, Policies(), RunMode.DRY_RUN)

    assert [report.kind for report in reports] == [EntityKind.BRANCH, EntityKind.JOB, EntityKind.SALESPERSON]


def test_run_all_skips_disabled_types_unless_requested(session_factory, branch_data) -> None:
    policies = Policies.model_validate({"jobs": {"enabled": False}})

    implicit = run_all(session_factory, policies, RunMode.DRY_RUN)
    explicit = run_all(session_factory, policies, RunMode.DRY_RUN, kinds=["job"])

    assert EntityKind.JOB not in [report.kind for report in implicit]
    assert [report.kind for report in explicit] == [EntityKind.JOB]
