"""Reconciles GitHub team membership with directory group membership.

For every enabled rule the syncer resolves the directory groups it selects,
gets or creates the matching team, computes the membership delta and applies
it, unless the delta would remove more of the team than the safety threshold
allows. Failures are isolated per rule, per team and per member, and are
reported as strings on the returned reports.
"""

from __future__ import annotations

import dataclasses
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Iterable, Optional, TypeVar

from config import get_logger
from errors import AllRulesFailed, EmptyTeamName
from rule_resolver import resolve_rule
from sync_state import SyncReport, SyncResult, TeamSyncResult, compute_membership_delta
from utils import slugify

if TYPE_CHECKING:
    from capabilities import Directory, TeamMembership
    from entities.directory import GroupInfo
    from sync_rules import SyncRule

logger = get_logger(service="team_syncer")

T = TypeVar("T")
R = TypeVar("R")

SYNC_CANCELLED = "sync cancelled"


@dataclass
class _RuleOutcome:
    rule: SyncRule
    pairs: list[tuple[GroupInfo, str]] = field(default_factory=list)
    error: Optional[str] = None
    cancelled: bool = False


def _is_set(stop_event: Optional[threading.Event]) -> bool:
    return stop_event is not None and stop_event.is_set()


def _check_safety_threshold(safety_threshold: float) -> float:
    if not 0.0 <= safety_threshold <= 1.0:
        raise ValueError(f"safety_threshold must be between 0 and 1, got {safety_threshold}")
    return safety_threshold


class TeamSyncer:
    """Runs sync rules against a directory and a team-membership capability.

    With ``max_workers`` greater than one, rules are expanded and teams are
    reconciled on a thread pool. Pairs that resolve to the same team slug run
    one after the other in rule order, so the later rule wins. A lock per
    team slug also keeps concurrent ``sync`` calls on one syncer apart.
    """

    def __init__(  # noqa: ANN101
        self,
        directory: Directory,
        teams: TeamMembership,
        safety_threshold: float = 0.5,
        max_workers: int = 1,
    ) -> None:
        _check_safety_threshold(safety_threshold)
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        self._directory = directory
        self._teams = teams
        self._safety_threshold = safety_threshold
        self._max_workers = max_workers
        self._team_locks: dict[str, threading.Lock] = {}
        self._team_locks_guard = threading.Lock()

    def sync(  # noqa: ANN101
        self,
        rules: Iterable[SyncRule],
        safety_threshold: Optional[float] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> SyncResult:
        """Sync every enabled rule and return one report per (group, team) pair.

        A rule that cannot be resolved yields a single report carrying only
        the error. The call succeeds as long as at least one rule got past
        resolution and team lookup.

        Args:
            rules: Rules to run. Disabled rules are skipped without a report.
            safety_threshold: Overrides the syncer's threshold for this run.
            stop_event: When set, no further rule, team or member call is issued.
                Changes already applied are kept.

        Returns:
            SyncResult with reports in rule order, then group order.

        Raises:
            AllRulesFailed: If every rule that had work to do failed at
                resolution or team lookup.
        """
        threshold = self._resolve_threshold(safety_threshold)
        enabled_rules = [rule for rule in rules if rule.enabled]
        if not enabled_rules:
            logger.info("No enabled sync rules")
            return SyncResult()

        outcomes = self._map(lambda rule: self._expand_rule(rule, stop_event), enabled_rules)
        jobs = [(outcome.rule, group, team_name) for outcome in outcomes for group, team_name in outcome.pairs]
        pair_reports = self._sync_pairs(jobs, threshold, stop_event)

        reports: list[SyncReport] = []
        failed_rules = 0
        rules_attempted = 0
        next_pair = 0
        for outcome in outcomes:
            if outcome.cancelled:
                reports.append(self._rule_error_report(outcome.rule, SYNC_CANCELLED))
                continue
            if outcome.error is not None:
                rules_attempted += 1
                failed_rules += 1
                reports.append(self._rule_error_report(outcome.rule, outcome.error))
                continue

            rule_reports = pair_reports[next_pair : next_pair + len(outcome.pairs)]
            next_pair += len(outcome.pairs)
            reports.extend(rule_reports)
            attempted = [report for report in rule_reports if SYNC_CANCELLED not in report.errors]
            if attempted:
                rules_attempted += 1
                if not any(report.team_slug for report in attempted):
                    failed_rules += 1

        result = SyncResult(reports=tuple(reports), failed_rules=failed_rules)
        logger.info(
            "Team sync finished",
            extra={
                "rules": len(enabled_rules),
                "reports": len(reports),
                "failed_rules": failed_rules,
                "members_added": result.members_added(),
                "members_removed": result.members_removed(),
            },
        )

        if rules_attempted > 0 and failed_rules == rules_attempted:
            raise AllRulesFailed(failed_rules, result.reports)
        return result

    def sync_group_to_team(  # noqa: ANN101
        self,
        rule: SyncRule,
        group: GroupInfo,
        team_name: str,
        safety_threshold: Optional[float] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> SyncReport:
        """Make one team mirror one directory group.

        The report's ``team_slug`` stays empty when the team could not be
        fetched or created; no roster change is attempted in that case.
        """
        threshold = self._resolve_threshold(safety_threshold)
        report = SyncReport(
            rule=rule.get_name(),
            group=group.name,
            team=team_name,
            skipped_no_identity=group.skipped_no_identity,
        )

        if group.skipped_no_identity:
            logger.warning(
                f"{len(group.skipped_no_identity)} users in group '{group.name}' have no GitHub login",
                extra={"group": group.name, "count": len(group.skipped_no_identity)},
            )

        if _is_set(stop_event):
            return report.with_error(SYNC_CANCELLED)

        if not slugify(team_name):
            error = EmptyTeamName(team_name, group.name)
            logger.warning(f"Skipping group '{group.name}': {error}", extra={"rule": rule.get_name(), "group": group.name})
            return report.with_error(str(error))

        try:
            team = self._teams.get_or_create_team(team_name, rule.team_privacy, create_if_missing=rule.create_if_missing)
        except Exception as e:
            logger.exception(f"Failed to get/create team '{team_name}': {e}")
            return report.with_error(f"failed to get/create team '{team_name}': {e}")

        report = dataclasses.replace(report, team_slug=team.slug)
        if not rule.sync_members:
            logger.info(f"Member sync disabled for rule '{rule.get_name()}', team '{team.slug}' left as is")
            return report

        return report.with_team_result(self.sync_team_members(team.slug, list(group.members), threshold, stop_event))

    def sync_team_members(  # noqa: ANN101
        self,
        team_slug: str,
        desired_members: list[str],
        safety_threshold: Optional[float] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> TeamSyncResult:
        """Add and remove members so the team matches ``desired_members``.

        Outside collaborators are never removed. A failed add or remove is
        recorded and the rest of the plan still runs. When the removals exceed
        the safety threshold nothing is added or removed.
        """
        threshold = self._resolve_threshold(safety_threshold)
        try:
            current_members = self._teams.get_team_members(team_slug)
        except Exception as e:
            logger.exception(f"Failed to fetch members of team '{team_slug}': {e}")
            return TeamSyncResult(team=team_slug, errors=(f"failed to fetch current members for team '{team_slug}': {e}",))

        delta = compute_membership_delta(current_members, desired_members)
        logger.info(
            f"Team '{team_slug}': current_members={len(delta.current)}, desired_members={len(delta.desired)}, "
            f"to_add={len(delta.to_add)}, to_remove={len(delta.to_remove)}"
        )

        if delta.exceeds_safety_threshold(threshold):
            error = delta.safety_threshold_error(team_slug, threshold)
            logger.warning(error, extra={"team": team_slug, "removal_ratio": delta.removal_ratio, "safety_threshold": threshold})
            return TeamSyncResult(team=team_slug, errors=(error,))

        added: list[str] = []
        removed: list[str] = []
        skipped_outside_collaborator: list[str] = []
        errors: list[str] = []

        for login in delta.to_add:
            if _is_set(stop_event):
                errors.append(SYNC_CANCELLED)
                return TeamSyncResult(team=team_slug, added=tuple(added), errors=tuple(errors))
            try:
                self._teams.add_team_member(team_slug, login)
            except Exception as e:
                logger.exception(f"Failed to add '{login}' to team '{team_slug}': {e}")
                errors.append(f"failed to add '{login}' to team '{team_slug}': {e}")
                continue
            logger.info(f"Added '{login}' to team '{team_slug}'", extra={"operation": "add_member", "team": team_slug, "login": login})
            added.append(login)

        for login in delta.to_remove:
            if _is_set(stop_event):
                errors.append(SYNC_CANCELLED)
                break
            try:
                is_outside_collaborator = self._teams.is_outside_collaborator(login)
            except Exception as e:
                logger.exception(f"Failed to check if '{login}' is an outside collaborator: {e}")
                errors.append(f"failed to check if '{login}' is an outside collaborator: {e}")
                continue

            if is_outside_collaborator:
                logger.info(f"Not removing outside collaborator '{login}' from team '{team_slug}'")
                skipped_outside_collaborator.append(login)
                continue

            try:
                self._teams.remove_team_member(team_slug, login)
            except Exception as e:
                logger.exception(f"Failed to remove '{login}' from team '{team_slug}': {e}")
                errors.append(f"failed to remove '{login}' from team '{team_slug}': {e}")
                continue
            logger.info(
                f"Removed '{login}' from team '{team_slug}'", extra={"operation": "remove_member", "team": team_slug, "login": login}
            )
            removed.append(login)

        return TeamSyncResult(
            team=team_slug,
            added=tuple(added),
            removed=tuple(removed),
            skipped_outside_collaborator=tuple(skipped_outside_collaborator),
            errors=tuple(errors),
        )

    def _resolve_threshold(self, safety_threshold: Optional[float]) -> float:  # noqa: ANN101
        if safety_threshold is None:
            return self._safety_threshold
        return _check_safety_threshold(safety_threshold)

    def _map(self, fn: Callable[[T], R], items: list[T]) -> list[R]:  # noqa: ANN101
        """Apply ``fn`` to every item, in order, on the worker pool when one is configured."""
        if self._max_workers == 1 or len(items) <= 1:
            return [fn(item) for item in items]
        with ThreadPoolExecutor(max_workers=min(self._max_workers, len(items)), thread_name_prefix="team-sync") as executor:
            return list(executor.map(fn, items))

    def _expand_rule(self, rule: SyncRule, stop_event: Optional[threading.Event]) -> _RuleOutcome:  # noqa: ANN101
        if _is_set(stop_event):
            return _RuleOutcome(rule=rule, cancelled=True)
        try:
            return _RuleOutcome(rule=rule, pairs=resolve_rule(rule, self._directory))
        except Exception as e:
            logger.exception(f"Sync rule '{rule.get_name()}' failed: {e}", extra={"rule": rule.get_name()})
            return _RuleOutcome(rule=rule, error=str(e))

    def _sync_pairs(  # noqa: ANN101
        self,
        jobs: list[tuple[SyncRule, GroupInfo, str]],
        safety_threshold: float,
        stop_event: Optional[threading.Event],
    ) -> list[SyncReport]:
        """Reconcile every pair, returning reports in job order.

        Jobs are batched by team slug; each batch runs sequentially on one worker.
        """
        batches: dict[str, list[int]] = {}
        for index, (_, _, team_name) in enumerate(jobs):
            batches.setdefault(slugify(team_name), []).append(index)

        def run_batch(indexes: list[int]) -> list[tuple[int, SyncReport]]:
            return [(index, self._sync_pair(*jobs[index], safety_threshold, stop_event)) for index in indexes]

        reports: dict[int, SyncReport] = {}
        for batch in self._map(run_batch, list(batches.values())):
            reports.update(batch)
        return [reports[index] for index in range(len(jobs))]

    def _sync_pair(  # noqa: ANN101
        self,
        rule: SyncRule,
        group: GroupInfo,
        team_name: str,
        safety_threshold: float,
        stop_event: Optional[threading.Event],
    ) -> SyncReport:
        with self._team_lock(team_name):
            return self.sync_group_to_team(rule, group, team_name, safety_threshold, stop_event)

    def _team_lock(self, team_name: str) -> threading.Lock:  # noqa: ANN101
        with self._team_locks_guard:
            return self._team_locks.setdefault(slugify(team_name), threading.Lock())

    @staticmethod
    def _rule_error_report(rule: SyncRule, error: str) -> SyncReport:
        return SyncReport(
            rule=rule.get_name(),
            group=rule.group_name,
            team=rule.team_name,
            errors=(error,),
        )
