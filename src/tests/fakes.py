"""In-memory directory and team-membership capabilities for tests."""

import threading
import time
from typing import Optional

from entities.directory import Group, GroupMembers
from entities.github import Team, TeamPrivacy
from errors import GroupNotFound, TeamNotFound
from utils import login_key, slugify


class FakeDirectory:
    def __init__(  # noqa: ANN101
        self,
        groups: dict[str, list[str]],
        skipped_no_identity: Optional[dict[str, list[str]]] = None,
        fail_members: tuple[str, ...] = (),
    ) -> None:
        self.groups = groups
        self.skipped_no_identity = skipped_no_identity or {}
        self.fail_members = fail_members
        self.list_groups_calls = 0

    @staticmethod
    def group_id(name: str) -> str:
        return f"id-{name}"

    def list_groups(self) -> list[Group]:  # noqa: ANN101
        self.list_groups_calls += 1
        return [Group(id=self.group_id(name), name=name) for name in self.groups]

    def get_group_by_name(self, name: str) -> Group:  # noqa: ANN101
        if name not in self.groups:
            raise GroupNotFound(name)
        return Group(id=self.group_id(name), name=name)

    def get_group_members(self, group_id: str) -> GroupMembers:  # noqa: ANN101
        name = group_id.removeprefix("id-")
        if name in self.fail_members:
            raise RuntimeError(f"directory unavailable for '{name}'")
        return GroupMembers(
            members=tuple(self.groups[name]),
            skipped_no_identity=tuple(self.skipped_no_identity.get(name, [])),
        )


class FakeTeams:
    """Team-membership capability that records every mutating call.

    Teams are keyed by slug and logins compare case-insensitively, as on GitHub.
    """

    def __init__(  # noqa: ANN101
        self,
        teams: Optional[dict[str, list[str]]] = None,
        org_members: Optional[list[str]] = None,
        outside_collaborators: tuple[str, ...] = (),
        fail_create: tuple[str, ...] = (),
        fail_roster: tuple[str, ...] = (),
        fail_add: tuple[str, ...] = (),
        fail_remove: tuple[str, ...] = (),
        fail_outside_check: tuple[str, ...] = (),
        fail_org_members: bool = False,
        roster_delay: float = 0.0,
    ) -> None:
        self.teams = {slug: list(members) for slug, members in (teams or {}).items()}
        self.org_members = org_members or []
        self.outside_collaborators = outside_collaborators
        self.fail_create = fail_create
        self.fail_roster = fail_roster
        self.fail_add = fail_add
        self.fail_remove = fail_remove
        self.fail_outside_check = fail_outside_check
        self.fail_org_members = fail_org_members
        self.roster_delay = roster_delay
        self.team_calls: list[tuple[str, int]] = []
        self.created: list[tuple[str, TeamPrivacy]] = []
        self.calls: list[tuple[str, str, str]] = []
        self._lock = threading.Lock()

    def get_or_create_team(self, name: str, privacy: TeamPrivacy, create_if_missing: bool = True) -> Team:  # noqa: ANN101
        if name in self.fail_create:
            raise RuntimeError("service unavailable")
        slug = slugify(name)
        with self._lock:
            self.team_calls.append((slug, threading.get_ident()))
            if slug not in self.teams:
                if not create_if_missing:
                    raise TeamNotFound(name, "acme")
                self.teams[slug] = []
                self.created.append((name, privacy))
        return Team(name=name, slug=slug)

    def get_team_members(self, team_slug: str) -> list[str]:  # noqa: ANN101
        if team_slug in self.fail_roster:
            raise RuntimeError("service unavailable")
        with self._lock:
            self.team_calls.append((team_slug, threading.get_ident()))
        if self.roster_delay:
            time.sleep(self.roster_delay)
        return list(self.teams.get(team_slug, []))

    def add_team_member(self, team_slug: str, login: str) -> None:  # noqa: ANN101
        with self._lock:
            self.calls.append(("add", team_slug, login))
            self.team_calls.append((team_slug, threading.get_ident()))
            if login in self.fail_add:
                raise RuntimeError("service unavailable")
            if login_key(login) not in {login_key(member) for member in self.teams[team_slug]}:
                self.teams[team_slug].append(login)

    def remove_team_member(self, team_slug: str, login: str) -> None:  # noqa: ANN101
        with self._lock:
            self.calls.append(("remove", team_slug, login))
            self.team_calls.append((team_slug, threading.get_ident()))
            if login in self.fail_remove:
                raise RuntimeError("service unavailable")
            self.teams[team_slug] = [member for member in self.teams[team_slug] if login_key(member) != login_key(login)]

    def is_outside_collaborator(self, login: str) -> bool:  # noqa: ANN101
        if login in self.fail_outside_check:
            raise RuntimeError("service unavailable")
        return login_key(login) in {login_key(member) for member in self.outside_collaborators}

    def list_organization_members(self) -> list[str]:  # noqa: ANN101
        if self.fail_org_members:
            raise RuntimeError("service unavailable")
        return list(self.org_members)

    def mutations(self) -> list[tuple[str, str, str]]:  # noqa: ANN101
        return list(self.calls)
