"""Detects organization members who are in none of the synced teams."""

from __future__ import annotations

from typing import TYPE_CHECKING

from config import get_logger
from errors import SyncError
from sync_state import OrphanedUsersReport
from utils import login_key

if TYPE_CHECKING:
    from capabilities import TeamMembership

logger = get_logger(service="orphans")


def detect_orphaned_users(teams: TeamMembership, synced_teams: list[str]) -> OrphanedUsersReport:
    """Find organization members missing from every team in ``synced_teams``.

    Outside collaborators are never reported. A team whose roster cannot be
    fetched is left out of the covered set, so its members may show up as
    orphaned for this run. A member whose collaborator status cannot be
    checked is not reported.

    Args:
        teams: Team-membership capability.
        synced_teams: Slugs of the teams the last sync touched.

    Returns:
        OrphanedUsersReport with logins in organization order.

    Raises:
        SyncError: If the organization member list cannot be fetched.
    """
    try:
        org_members = teams.list_organization_members()
    except Exception as e:
        logger.exception(f"Failed to list organization members: {e}")
        raise SyncError(f"failed to list organization members: {e}") from e

    covered: set[str] = set()
    for team_slug in synced_teams:
        try:
            covered.update(login_key(login) for login in teams.get_team_members(team_slug))
        except Exception as e:
            logger.warning(
                f"Failed to get members of team '{team_slug}' for orphaned user check: {e}",
                extra={"team": team_slug, "error": str(e)},
            )

    orphaned: list[str] = []
    for login in org_members:
        if login_key(login) in covered:
            continue
        try:
            if teams.is_outside_collaborator(login):
                continue
        except Exception as e:
            logger.warning(
                f"Failed to check if '{login}' is an outside collaborator for orphaned user check: {e}",
                extra={"login": login, "error": str(e)},
            )
            continue
        orphaned.append(login)

    logger.info(
        f"Found {len(orphaned)} orphaned users among {len(org_members)} organization members",
        extra={"synced_teams": len(synced_teams), "orphaned_users": len(orphaned)},
    )
    return OrphanedUsersReport(orphaned_users=tuple(orphaned))
