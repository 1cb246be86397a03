"""Expands sync rules into (directory group, team name) pairs."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from config import get_logger
from entities.directory import GroupInfo
from errors import AmbiguousTeamName, EmptyPattern, InvalidPattern

if TYPE_CHECKING:
    from capabilities import Directory
    from sync_rules import SyncRule

logger = get_logger(service="rule_resolver")

_TEAM_NAME_INVALID_CHARS = re.compile(r"[^a-z0-9-]")


def compute_team_name(group_name: str, rule: SyncRule) -> str:
    """Derive the GitHub team name for a directory group.

    An explicit ``team_name`` is used verbatim. Otherwise ``strip_prefix`` is
    removed from the start of the group name, ``team_prefix`` is prepended,
    and the result is lower-cased with every character outside ``[a-z0-9-]``
    replaced by ``-``.
    """
    if rule.team_name:
        return rule.team_name

    team_name = group_name
    if rule.strip_prefix and team_name.startswith(rule.strip_prefix):
        team_name = team_name[len(rule.strip_prefix) :]
    if rule.team_prefix:
        team_name = rule.team_prefix + team_name

    return _TEAM_NAME_INVALID_CHARS.sub("-", team_name.lower())


def compile_group_pattern(pattern: str) -> re.Pattern:
    if pattern == "":
        raise EmptyPattern()
    try:
        return re.compile(pattern)
    except re.error as e:
        raise InvalidPattern(pattern, str(e)) from e


def resolve_rule(rule: SyncRule, directory: Directory) -> list[tuple[GroupInfo, str]]:
    """Resolve one rule to the groups it selects and their team names.

    A ``group_pattern`` is matched with ``re.search`` against every group's
    display name; anchor it to match a prefix or the full name. A
    ``group_name`` must match exactly one group. A rule without a selector
    resolves to nothing.

    Raises:
        EmptyPattern: If ``group_pattern`` is set to an empty string.
        InvalidPattern: If ``group_pattern`` does not compile.
        GroupNotFound: If ``group_name`` matches no group.
        AmbiguousTeamName: If an explicit ``team_name`` would receive more than one group.
    """
    if rule.group_pattern:
        return _resolve_pattern(rule, directory)

    if rule.group_name:
        group = directory.get_group_by_name(rule.group_name)
        group_info = GroupInfo.from_group(group, directory.get_group_members(group.id))
        return [(group_info, compute_team_name(group_info.name, rule))]

    logger.debug(f"Rule '{rule.get_name()}' has no group selector, nothing to sync")
    return []


def _resolve_pattern(rule: SyncRule, directory: Directory) -> list[tuple[GroupInfo, str]]:
    regex = compile_group_pattern(rule.group_pattern)
    matched = [group for group in directory.list_groups() if regex.search(group.name)]

    if rule.team_name and len(matched) > 1:
        raise AmbiguousTeamName(rule.team_name, [group.name for group in matched])

    logger.info(
        f"Pattern '{rule.group_pattern}' of rule '{rule.get_name()}' matched {len(matched)} groups",
        extra={"rule": rule.get_name(), "groups": [group.name for group in matched]},
    )

    pairs: list[tuple[GroupInfo, str]] = []
    for group in matched:
        try:
            members = directory.get_group_members(group.id)
        except Exception as e:
            logger.exception(f"Failed to fetch members for group '{group.name}', skipping it: {e}")
            continue
        group_info = GroupInfo.from_group(group, members)
        pairs.append((group_info, compute_team_name(group_info.name, rule)))
    return pairs
