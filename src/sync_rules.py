"""Sync rule model and parsing.

A sync rule maps one directory group (by exact name) or many directory groups
(by regular expression) to GitHub teams.
"""

from __future__ import annotations

from pydantic import AliasChoices, Field, ValidationError

from entities import BaseModel
from entities.github import TeamPrivacy
from errors import SyncConfigurationError


class SyncRule(BaseModel):
    name: str = ""
    enabled: bool = True
    group_pattern: str = Field(default="", validation_alias=AliasChoices("group_pattern", "okta_group_pattern"))
    group_name: str = Field(default="", validation_alias=AliasChoices("group_name", "okta_group_name"))
    team_prefix: str = Field(default="", validation_alias=AliasChoices("team_prefix", "github_team_prefix"))
    team_name: str = Field(default="", validation_alias=AliasChoices("team_name", "github_team_name"))
    strip_prefix: str = ""
    sync_members: bool = True
    create_if_missing: bool = Field(default=True, validation_alias=AliasChoices("create_if_missing", "create_team_if_missing"))
    team_privacy: TeamPrivacy = Field(
        default=TeamPrivacy.Closed,
        validation_alias=AliasChoices("team_privacy", "team_visibility"),
    )

    def get_name(self) -> str:  # noqa: ANN101
        """Rule name, falling back to the team name and then the group selector."""
        return self.name or self.team_name or self.group_name or self.group_pattern

    def has_selector(self) -> bool:  # noqa: ANN101
        return bool(self.group_pattern or self.group_name)


def parse_sync_rule(_dict: dict) -> SyncRule:
    # null means "not set", same as a missing key
    return SyncRule.model_validate({k: v for k, v in _dict.items() if v is not None})


def parse_sync_rules(raw_rules: object) -> tuple[SyncRule, ...]:
    """Parse a list of raw rule dictionaries.

    Raises:
        SyncConfigurationError: If the input is not a list or any rule is invalid.
            All invalid rules are reported in one message.
    """
    if not isinstance(raw_rules, (list, tuple)):
        raise SyncConfigurationError(f"sync rules must be a JSON array, got {type(raw_rules).__name__}")

    rules: list[SyncRule] = []
    errors: list[str] = []
    for i, raw_rule in enumerate(raw_rules):
        if isinstance(raw_rule, SyncRule):
            rules.append(raw_rule)
            continue
        if not isinstance(raw_rule, dict):
            errors.append(f"Rule {i}: must be a dictionary")
            continue
        try:
            rules.append(parse_sync_rule(raw_rule))
        except ValidationError as e:
            details = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())
            errors.append(f"Rule {i}: {details}")

    if errors:
        raise SyncConfigurationError("Sync rule validation failed:\n" + "\n".join(f"  - {e}" for e in errors))
    return tuple(rules)
