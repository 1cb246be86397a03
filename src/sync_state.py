"""Membership state and sync result records.

This module computes the delta between a team's current roster and the
desired roster taken from a directory group, and holds the immutable records
the team syncer hands back to its caller.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass

from utils import login_key, unique


@dataclass(frozen=True)
class MembershipDelta:
    """Difference between current and desired team membership.

    Attributes:
        current: Logins currently in the team, de-duplicated.
        desired: Logins that should be in the team, de-duplicated.
        to_add: ``desired - current``, in desired order.
        to_remove: ``current - desired``, in current order.
    """

    current: tuple[str, ...]
    desired: tuple[str, ...]
    to_add: tuple[str, ...]
    to_remove: tuple[str, ...]

    @property
    def removal_ratio(self) -> float:  # noqa: ANN101
        if not self.current:
            return 0.0
        return len(self.to_remove) / len(self.current)

    def exceeds_safety_threshold(self, safety_threshold: float) -> bool:  # noqa: ANN101
        """True when the removals would take away more than ``safety_threshold`` of a non-empty team."""
        return bool(self.current) and self.removal_ratio > safety_threshold

    def safety_threshold_error(self, team: str, safety_threshold: float) -> str:  # noqa: ANN101
        return (
            f"refusing to remove {len(self.to_remove)} of {len(self.current)} members "
            f"({self.removal_ratio * 100:.0f}%) from team '{team}' "
            f"as it exceeds safety threshold of {safety_threshold * 100:.0f}%"
        )


def compute_membership_delta(current: list[str] | tuple[str, ...], desired: list[str] | tuple[str, ...]) -> MembershipDelta:
    """Diff two rosters, comparing logins case-insensitively.

    Each side keeps the first spelling of a login; ``to_add`` uses the desired
    spelling and ``to_remove`` the current one.
    """
    current_members = unique(list(current), key=login_key)
    desired_members = unique(list(desired), key=login_key)
    current_keys = {login_key(member) for member in current_members}
    desired_keys = {login_key(member) for member in desired_members}
    return MembershipDelta(
        current=tuple(current_members),
        desired=tuple(desired_members),
        to_add=tuple(member for member in desired_members if login_key(member) not in current_keys),
        to_remove=tuple(member for member in current_members if login_key(member) not in desired_keys),
    )


@dataclass(frozen=True)
class TeamSyncResult:
    """Outcome of applying a membership delta to one team."""

    team: str
    added: tuple[str, ...] = ()
    removed: tuple[str, ...] = ()
    skipped_outside_collaborator: tuple[str, ...] = ()
    errors: tuple[str, ...] = ()


@dataclass(frozen=True)
class SyncReport:
    """Result of syncing one directory group to one team.

    Attributes:
        rule: Name of the rule that produced this pair.
        group: Directory group display name (the rule's group name when the rule failed to resolve).
        team: Derived team name.
        team_slug: Slug of the resolved team, empty when the team could not be fetched or created.
        added: Logins added to the team.
        removed: Logins removed from the team.
        skipped_outside_collaborator: Removal candidates left in place because they are outside collaborators.
        skipped_no_identity: Directory users without a GitHub login, by email.
        errors: Human-readable errors, including rule-level failures and the safety threshold abort.
    """

    rule: str
    group: str
    team: str
    team_slug: str = ""
    added: tuple[str, ...] = ()
    removed: tuple[str, ...] = ()
    skipped_outside_collaborator: tuple[str, ...] = ()
    skipped_no_identity: tuple[str, ...] = ()
    errors: tuple[str, ...] = ()

    def has_changes(self) -> bool:  # noqa: ANN101
        return bool(self.added or self.removed)

    def has_errors(self) -> bool:  # noqa: ANN101
        return bool(self.errors)

    def with_error(self, error: str) -> SyncReport:  # noqa: ANN101
        return dataclasses.replace(self, errors=(*self.errors, error))

    def with_team_result(self, result: TeamSyncResult) -> SyncReport:  # noqa: ANN101
        return dataclasses.replace(
            self,
            added=result.added,
            removed=result.removed,
            skipped_outside_collaborator=result.skipped_outside_collaborator,
            errors=(*self.errors, *result.errors),
        )


@dataclass(frozen=True)
class SyncResult:
    reports: tuple[SyncReport, ...] = ()
    failed_rules: int = 0

    def errors(self) -> list[str]:  # noqa: ANN101
        return [f"{report.rule}: {error}" for report in self.reports for error in report.errors]

    def synced_teams(self) -> list[str]:  # noqa: ANN101
        """Slugs of every team that was fetched or created, in report order."""
        return unique([report.team_slug for report in self.reports if report.team_slug])

    def members_added(self) -> int:  # noqa: ANN101
        return sum(len(report.added) for report in self.reports)

    def members_removed(self) -> int:  # noqa: ANN101
        return sum(len(report.removed) for report in self.reports)

    def has_changes(self) -> bool:  # noqa: ANN101
        return any(report.has_changes() for report in self.reports)

    def has_errors(self) -> bool:  # noqa: ANN101
        return any(report.has_errors() for report in self.reports)


@dataclass(frozen=True)
class OrphanedUsersReport:
    """Organization members found in none of the teams that were just synced."""

    orphaned_users: tuple[str, ...] = ()

    def has_orphans(self) -> bool:  # noqa: ANN101
        return bool(self.orphaned_users)
