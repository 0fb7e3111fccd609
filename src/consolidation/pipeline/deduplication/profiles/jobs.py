"""Job deduplication: fuzzy names within a branch, shifts folded by employee."""

from __future__ import annotations

from typing import Hashable, List, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from consolidation.config.policies import JobDedupPolicy
from consolidation.entities import EntityKind, JobCandidate
from consolidation.pipeline.deduplication.canonical import job_rank
from consolidation.pipeline.deduplication.relations import KeyedRelation
from consolidation.pipeline.deduplication.similarity import FuzzyNameScorer, NameScorer
from consolidation.store.models import Job, JobSpecialShift, Shift
from consolidation.utils.normalization import normalize_job_name

from .base import EntityProfile


class JobProfile(EntityProfile[JobCandidate, JobDedupPolicy]):
    kind = EntityKind.JOB
    parent_model = Job
    keyed_relations = (
        KeyedRelation("shift", Shift, "job_id", "employee_id", "hours"),
        KeyedRelation("job_special_shift", JobSpecialShift, "job_id", "special_shift_id", "hours"),
    )

    def load_candidates(self, session: Session) -> List[JobCandidate]:
        shift_counts = (
            select(Shift.job_id.label("job_id"), func.count().label("total"))
            .group_by(Shift.job_id)
            .subquery()
        )
        special_counts = (
            select(JobSpecialShift.job_id.label("job_id"), func.count().label("total"))
            .group_by(JobSpecialShift.job_id)
            .subquery()
        )
        stmt = (
            select(
                Job,
                func.coalesce(shift_counts.c.total, 0),
                func.coalesce(special_counts.c.total, 0),
            )
            .outerjoin(shift_counts, shift_counts.c.job_id == Job.id)
            .outerjoin(special_counts, special_counts.c.job_id == Job.id)
            .order_by(Job.id)
        )
        return [
            JobCandidate(
                id=job.id,
                name=job.name,
                branch_id=job.branch_id,
                closing_date=job.closing_date,
                performance_status=job.performance_status,
                shift_count=shifts,
                special_shift_count=specials,
            )
            for job, shifts, specials in session.execute(stmt).all()
        ]

    def normalize(self, name: str) -> str:
        return normalize_job_name(name, self.policy.suffix_tokens)

    def scorer(self) -> NameScorer:
        return FuzzyNameScorer()

    def scope_key_of(self, candidate: JobCandidate) -> Hashable:
        return candidate.branch_id

    def rank(self, candidate: JobCandidate) -> Tuple:
        return job_rank(candidate)


__all__ = ["JobProfile"]
