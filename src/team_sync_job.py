"""Scheduled team sync job.

Builds the Identity Store and GitHub clients from configuration, runs every
sync rule, optionally looks for orphaned organization members, and logs a
summary of the run. The clients are created here and handed to the syncer;
nothing below this module keeps global client state.
"""

from __future__ import annotations

import sys
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

import boto3

from config import Config, get_config, get_logger
from errors import AllRulesFailed, SyncError
from github_teams import GitHubTeamsClient
from identity_store import IdentityStoreDirectory
from orphans import detect_orphaned_users
from sync_state import OrphanedUsersReport, SyncResult
from team_syncer import TeamSyncer

if TYPE_CHECKING:
    from mypy_boto3_identitystore import IdentityStoreClient

    from capabilities import Directory, TeamMembership
    from sync_rules import SyncRule

logger = get_logger(service="team_sync_job")


@dataclass
class SyncOperationResult:
    """Result of one run of the sync job."""

    start_time: datetime
    end_time: datetime | None = None
    success: bool = False

    sync_result: SyncResult | None = None
    orphaned_users: OrphanedUsersReport | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def reports_count(self) -> int:  # noqa: ANN101
        return len(self.sync_result.reports) if self.sync_result else 0

    @property
    def members_added(self) -> int:  # noqa: ANN101
        return self.sync_result.members_added() if self.sync_result else 0

    @property
    def members_removed(self) -> int:  # noqa: ANN101
        return self.sync_result.members_removed() if self.sync_result else 0

    def log_start(self) -> None:  # noqa: ANN101
        logger.info(
            "Team sync operation started",
            extra={
                "operation": "sync_start",
                "start_time": self.start_time.isoformat(),
            },
        )

    def log_completion(self) -> None:  # noqa: ANN101
        duration_ms = None
        if self.end_time:
            duration_ms = int((self.end_time - self.start_time).total_seconds() * 1000)

        logger.info(
            "Team sync operation completed",
            extra={
                "operation": "sync_complete",
                "start_time": self.start_time.isoformat(),
                "end_time": self.end_time.isoformat() if self.end_time else None,
                "duration_ms": duration_ms,
                "success": self.success,
                "reports": self.reports_count,
                "failed_rules": self.sync_result.failed_rules if self.sync_result else 0,
                "members_added": self.members_added,
                "members_removed": self.members_removed,
                "orphaned_users": len(self.orphaned_users.orphaned_users) if self.orphaned_users else None,
                "error_count": len(self.errors),
            },
        )


@dataclass
class SyncContext:
    """Everything a sync run needs: both capabilities plus the rule set."""

    directory: Directory
    teams: TeamMembership
    rules: tuple[SyncRule, ...]
    safety_threshold: float = 0.5
    max_workers: int = 1
    detect_orphans: bool = False


def build_context(
    cfg: Config,
    identity_store_client: Optional[IdentityStoreClient] = None,
    github_client: Optional[GitHubTeamsClient] = None,
) -> SyncContext:
    identity_store_client = identity_store_client or boto3.client("identitystore")
    github_client = github_client or GitHubTeamsClient(
        org=cfg.github_org,
        token=cfg.github_token,
        base_url=cfg.github_base_url,
        timeout=cfg.github_request_timeout,
    )
    return SyncContext(
        directory=IdentityStoreDirectory(identity_store_client, cfg.identity_store_id, cfg.identity_attribute),
        teams=github_client,
        rules=cfg.sync_rules,
        safety_threshold=cfg.safety_threshold,
        max_workers=cfg.max_workers,
        detect_orphans=cfg.orphaned_user_detection,
    )


def _finalize_result(result: SyncOperationResult) -> SyncOperationResult:
    result.success = len(result.errors) == 0
    result.end_time = datetime.now(timezone.utc)
    result.log_completion()
    return result


def perform_sync(ctx: SyncContext, stop_event: Optional[threading.Event] = None) -> SyncOperationResult:
    """Run all sync rules and, if enabled, orphaned user detection.

    Never raises for sync failures; they end up in ``errors`` of the result.
    """
    result = SyncOperationResult(start_time=datetime.now(timezone.utc))
    result.log_start()

    syncer = TeamSyncer(ctx.directory, ctx.teams, safety_threshold=ctx.safety_threshold, max_workers=ctx.max_workers)
    try:
        sync_result = syncer.sync(ctx.rules, stop_event=stop_event)
    except AllRulesFailed as e:
        logger.error(f"Team sync failed: {e}")
        result.sync_result = SyncResult(reports=e.reports, failed_rules=e.failed_count)
        result.errors.append(str(e))
        result.errors.extend(result.sync_result.errors())
        return _finalize_result(result)

    result.sync_result = sync_result
    result.errors.extend(sync_result.errors())

    for report in sync_result.reports:
        if report.has_changes():
            logger.info(
                f"Rule '{report.rule}': group '{report.group}' -> team '{report.team}' "
                f"(+{len(report.added)}, -{len(report.removed)})",
                extra={"report": report},
            )

    if ctx.detect_orphans and not (stop_event is not None and stop_event.is_set()):
        try:
            result.orphaned_users = detect_orphaned_users(ctx.teams, sync_result.synced_teams())
        except SyncError as e:
            result.errors.append(str(e))
        else:
            if result.orphaned_users.has_orphans():
                logger.warning(
                    f"{len(result.orphaned_users.orphaned_users)} organization members are not in any synced team",
                    extra={"orphaned_users": result.orphaned_users.orphaned_users},
                )

    return _finalize_result(result)


def main() -> int:
    cfg = get_config()
    github_client = GitHubTeamsClient(
        org=cfg.github_org,
        token=cfg.github_token,
        base_url=cfg.github_base_url,
        timeout=cfg.github_request_timeout,
    )
    try:
        result = perform_sync(build_context(cfg, github_client=github_client))
    finally:
        github_client.close()
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
