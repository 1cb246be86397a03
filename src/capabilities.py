"""Capabilities the team syncer consumes.

The syncer never talks to Identity Store or GitHub directly; it is handed one
object per capability by whoever wires the job together. ``identity_store``
and ``github_teams`` provide the production implementations, the tests use
in-memory fakes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from entities.directory import Group, GroupMembers
    from entities.github import Team, TeamPrivacy


class Directory(Protocol):
    def list_groups(self) -> list[Group]:  # noqa: ANN101
        ...

    def get_group_by_name(self, name: str) -> Group:  # noqa: ANN101
        """Exact display-name lookup. Raises ``errors.GroupNotFound``."""
        ...

    def get_group_members(self, group_id: str) -> GroupMembers:  # noqa: ANN101
        """Active members only."""
        ...


class TeamMembership(Protocol):
    def get_or_create_team(self, name: str, privacy: TeamPrivacy, create_if_missing: bool = True) -> Team:  # noqa: ANN101
        """Raises ``errors.TeamNotFound`` when the team is absent and ``create_if_missing`` is false."""
        ...

    def get_team_members(self, team_slug: str) -> list[str]:  # noqa: ANN101
        ...

    def add_team_member(self, team_slug: str, login: str) -> None:  # noqa: ANN101
        ...

    def remove_team_member(self, team_slug: str, login: str) -> None:  # noqa: ANN101
        ...

    def is_outside_collaborator(self, login: str) -> bool:  # noqa: ANN101
        ...

    def list_organization_members(self) -> list[str]:  # noqa: ANN101
        ...
