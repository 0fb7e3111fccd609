"""Run controller: read, cluster, select survivors, plan and (optionally) merge."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from time import perf_counter
from typing import Dict, FrozenSet, Iterable, List, Sequence, Set

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from consolidation.config.policies import Policies
from consolidation.entities import (
    ClusterError,
    ClusterReport,
    DuplicateGroup,
    EntityKind,
    GroupMember,
    LinkEvidence,
    MergePlan,
    NearMiss,
    RunMode,
    RunReport,
)
from consolidation.errors import CandidateLoadError, ConsolidationError, UsageError
from consolidation.pipeline.deduplication.executor import describe_relations
from consolidation.pipeline.deduplication.planner import plan_merge
from consolidation.pipeline.deduplication.profiles import EntityProfile, build_profile
from consolidation.store.session import read_session, transaction
from consolidation.utils.logging import get_logger, log_timing, logging_context


_LOGGER = get_logger(module=__name__)

RUN_ORDER: tuple[EntityKind, ...] = (EntityKind.BRANCH, EntityKind.JOB, EntityKind.SALESPERSON)

# Errors that roll back a single cluster without aborting the run.
_CLUSTER_ERRORS = (ConsolidationError, SQLAlchemyError, ValueError, ArithmeticError)


def resolve_mode(*, dry_run: bool, merge: bool) -> RunMode:
    """Translate the operator flags into a run mode.

    Destructive runs must be asked for explicitly: supplying neither flag, or
    both, is a usage error and nothing is read.
    """

    if dry_run and merge:
        raise UsageError("--dry-run and --merge are mutually exclusive")
    if not dry_run and not merge:
        raise UsageError("choose a mode explicitly: --dry-run to preview or --merge to apply")
    return RunMode.DRY_RUN if dry_run else RunMode.APPLY


@dataclass
class PlannedCluster:
    group: DuplicateGroup
    plan: MergePlan


@dataclass
class PassResult:
    """Everything the read phase of one pass produced."""

    candidates: int
    clusters: List[PlannedCluster] = field(default_factory=list)
    near_misses: List[NearMiss] = field(default_factory=list)
    stats: Dict[str, int] = field(default_factory=dict)


class ConsolidationProcessor:
    """Consolidate duplicates of one entity type.

    Dry runs make a single pass and never open a write transaction. Apply runs
    merge every planned cluster in its own transaction and then re-cluster,
    repeating until a pass finds nothing left to merge, nothing could be
    merged, or ``max_passes`` is reached. A failing cluster is rolled back,
    recorded in :attr:`RunReport.errors`, and the run moves on.
    """

    def __init__(
        self,
        profile: EntityProfile,
        session_factory: sessionmaker[Session],
        *,
        run_id: str | None = None,
    ) -> None:
        self.profile = profile
        self.session_factory = session_factory
        self.run_id = run_id
        self.executor = profile.executor()

    def _build_group(self, scope_key, members, result) -> DuplicateGroup:
        ids = {member.id for member in members}
        evidence = [
            LinkEvidence(source_id=a, target_id=b, score=round(meta.score, 4), driver=meta.driver)
            for a, b, meta in result.graph.edges_within(ids)
        ]
        return DuplicateGroup(
            kind=self.profile.kind,
            scope_key=scope_key,
            members=[
                GroupMember(
                    id=member.id,
                    name=member.name,
                    normalized_name=result.normalized[member.id],
                    details=self.profile.member_details(member),
                )
                for member in members
            ],
            evidence=evidence,
        )

    def plan_pass(self) -> PassResult:
        """Read candidates and children, then cluster and plan every group."""

        profile = self.profile
        try:
            with (
                log_timing(f"plan:{profile.kind.value}", logger_=_LOGGER),
                read_session(self.session_factory) as session,
            ):
                candidates = profile.load_candidates(session)
                result = profile.cluster_builder().cluster(candidates, profile.scope_key_of, profile.threshold)
                grouped_ids = [member.id for _, members in result.groups for member in members]
                children = profile.load_children(session, grouped_ids)
        except SQLAlchemyError as exc:
            raise CandidateLoadError(f"failed to load {profile.kind.value} candidates: {exc}") from exc

        planned: List[PlannedCluster] = []
        for scope_key, members in result.groups:
            canonical = profile.select_canonical(members)
            losers = [member.id for member in members if member.id != canonical.id]
            plan = plan_merge(
                profile.kind,
                canonical.id,
                losers,
                children,
                wholesale=profile.wholesale_names,
            )
            planned.append(PlannedCluster(group=self._build_group(scope_key, members, result), plan=plan))

        near_misses = [
            NearMiss(
                source_id=a.id,
                source_name=a.name,
                target_id=b.id,
                target_name=b.name,
                score=round(score, 4),
            )
            for a, b, score in result.near_misses
        ]
        return PassResult(
            candidates=len(candidates),
            clusters=planned,
            near_misses=near_misses,
            stats=dict(result.stats),
        )

    def _log_samples(self, clusters: Sequence[PlannedCluster]) -> None:
        for cluster in clusters[: self.profile.policy.sample_group_count]:
            _LOGGER.info(
                "Duplicate group",
                kind=self.profile.kind.value,
                canonical_id=cluster.plan.canonical_id,
                loser_ids=cluster.plan.loser_ids,
                names=[member.name for member in cluster.group.members],
                actions=[action.describe() for action in cluster.plan.actions],
            )

    def _apply_cluster(self, cluster: PlannedCluster, report: RunReport) -> bool:
        plan = cluster.plan
        name = f"merge-{plan.kind.value}-{plan.canonical_id}"
        try:
            with transaction(self.session_factory, name) as session:
                outcome = self.executor.apply(session, plan)
        except _CLUSTER_ERRORS as exc:
            message = f"{type(exc).__name__}: {exc}"
            _LOGGER.error(
                "Cluster merge rolled back",
                kind=plan.kind.value,
                canonical_id=plan.canonical_id,
                member_ids=cluster.group.member_ids,
                error=message,
            )
            report.errors.append(
                ClusterError(
                    kind=plan.kind,
                    canonical_id=plan.canonical_id,
                    member_ids=cluster.group.member_ids,
                    error=message,
                )
            )
            report.clusters.append(
                ClusterReport(
                    group=cluster.group,
                    canonical_id=plan.canonical_id,
                    loser_ids=plan.loser_ids,
                    actions=plan.actions,
                    applied=False,
                    error=message,
                )
            )
            return False

        report.merged_count += 1
        report.deleted_count += len(outcome.deleted_ids)
        for loser_id in outcome.deleted_ids:
            # a survivor merged in a later pass takes its earlier losers along
            for eliminated, survivor in list(report.consolidation_map.items()):
                if survivor == loser_id:
                    report.consolidation_map[eliminated] = plan.canonical_id
            report.consolidation_map[loser_id] = plan.canonical_id
        report.clusters.append(
            ClusterReport(
                group=cluster.group,
                canonical_id=plan.canonical_id,
                loser_ids=plan.loser_ids,
                actions=plan.actions,
                applied=True,
                audit=outcome.audit,
            )
        )
        return True

    def run(self, mode: RunMode | str) -> RunReport:
        mode = RunMode(mode)
        kind = self.profile.kind
        report = RunReport(kind=kind, mode=mode)
        if self.run_id:
            report.run_id = self.run_id
        start = perf_counter()
        max_passes = self.profile.policy.max_passes if mode is RunMode.APPLY else 1

        with logging_context(run_id=report.run_id, step=f"dedup:{kind.value}"):
            _LOGGER.info(
                "Consolidation run started",
                kind=kind.value,
                mode=mode.value,
                strategy=self.profile.strategy.value,
                threshold=self.profile.threshold,
            )
            pass_stats: List[Dict[str, int]] = []
            failed: Set[FrozenSet[int]] = set()
            while report.passes < max_passes:
                result = self.plan_pass()
                report.passes += 1
                pass_stats.append(result.stats)
                if report.passes == 1:
                    report.candidates = result.candidates
                    report.near_misses = result.near_misses
                # clusters that already failed are not retried in later passes
                pending = [
                    cluster for cluster in result.clusters if frozenset(cluster.group.member_ids) not in failed
                ]
                report.groups_found += len(pending)
                self._log_samples(pending)

                if mode is RunMode.DRY_RUN:
                    report.clusters.extend(
                        ClusterReport(
                            group=cluster.group,
                            canonical_id=cluster.plan.canonical_id,
                            loser_ids=cluster.plan.loser_ids,
                            actions=cluster.plan.actions,
                        )
                        for cluster in pending
                    )
                    break
                if not pending:
                    break
                merged = False
                for cluster in pending:
                    if self._apply_cluster(cluster, report):
                        merged = True
                    else:
                        failed.add(frozenset(cluster.group.member_ids))
                if not merged:
                    break

            report.finished_at = datetime.now(timezone.utc)
            report.stats = {
                "clustering": pass_stats,
                "relations": dict(describe_relations(self.profile.keyed_relations, self.profile.wholesale_relations)),
                "planned_deletions": report.planned_deletions,
                "seconds": round(perf_counter() - start, 3),
            }
            _LOGGER.info(
                "Consolidation run finished",
                kind=kind.value,
                mode=mode.value,
                passes=report.passes,
                groups_found=report.groups_found,
                merged_count=report.merged_count,
                deleted_count=report.deleted_count,
                errors=len(report.errors),
            )
        return report


def run_all(
    session_factory: sessionmaker[Session],
    policies: Policies,
    mode: RunMode | str,
    *,
    kinds: Iterable[EntityKind | str] | None = None,
    run_id: str | None = None,
) -> List[RunReport]:
    """Consolidate several entity types in dependency order.

    Branches run first so that jobs from merged branches share a scope by the
    time jobs are clustered. Entity types whose policy is disabled are skipped
    unless named explicitly in ``kinds``.
    """

    requested = None if kinds is None else {EntityKind(kind) for kind in kinds}
    reports: List[RunReport] = []
    for kind in RUN_ORDER:
        if requested is not None and kind not in requested:
            continue
        profile = build_profile(kind, policies)
        if requested is None and not profile.policy.enabled:
            _LOGGER.info("Skipping disabled entity type", kind=kind.value)
            continue
        reports.append(ConsolidationProcessor(profile, session_factory, run_id=run_id).run(mode))
    return reports


__all__ = [
    "ConsolidationProcessor",
    "PassResult",
    "PlannedCluster",
    "RUN_ORDER",
    "resolve_mode",
    "run_all",
]
