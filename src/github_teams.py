"""GitHub implementation of the team-membership capability.

Talks to the GitHub REST API for one organization. The token is supplied by
the caller; obtaining and refreshing it is not this module's concern.
"""

from __future__ import annotations

from typing import Any, Optional

import requests

from config import get_logger
from entities.github import Team, TeamPrivacy
from errors import EmptyTeamName, GitHubApiError, TeamNotFound
from utils import slugify

logger = get_logger(service="github_teams")

GITHUB_API_VERSION = "2022-11-28"
PAGE_SIZE = 100


def _error_message(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200] or resp.reason
    if isinstance(body, dict) and body.get("message"):
        return body["message"]
    return resp.reason


class GitHubTeamsClient:
    def __init__(  # noqa: ANN101
        self,
        org: str,
        token: str,
        base_url: str = "https://api.github.com",
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.org = org
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": GITHUB_API_VERSION,
            }
        )

    def close(self) -> None:  # noqa: ANN101
        self._session.close()

    def _url(self, path: str) -> str:  # noqa: ANN101
        return f"{self._base_url}{path}"

    def _request(  # noqa: ANN101
        self,
        method: str,
        url: str,
        params: Optional[dict[str, Any]] = None,
        json_body: Any = None,
    ) -> requests.Response:
        logger.debug(f"GitHub API {method} {url}", extra={"params": params})
        return self._session.request(
            method,
            url,
            params=params,
            json=json_body,
            timeout=self._timeout,
            allow_redirects=False,
        )

    @staticmethod
    def _raise_for_status(resp: requests.Response) -> None:
        if resp.status_code >= 400:
            raise GitHubApiError(resp.status_code, _error_message(resp), url=resp.url)

    def _paginate(self, path: str) -> list[dict]:  # noqa: ANN101
        """Follow the ``Link: rel="next"`` header until the last page."""
        items: list[dict] = []
        url: Optional[str] = self._url(path)
        params: Optional[dict[str, Any]] = {"per_page": PAGE_SIZE}
        while url:
            resp = self._request("GET", url, params=params)
            self._raise_for_status(resp)
            items.extend(resp.json())
            url = resp.links.get("next", {}).get("url")
            # the next link already carries the query string
            params = None
        return items

    def get_team(self, slug: str) -> Optional[Team]:  # noqa: ANN101
        resp = self._request("GET", self._url(f"/orgs/{self.org}/teams/{slug}"))
        if resp.status_code == 404:
            return None
        self._raise_for_status(resp)
        return _parse_team(resp.json())

    def get_or_create_team(self, name: str, privacy: TeamPrivacy, create_if_missing: bool = True) -> Team:  # noqa: ANN101
        slug = slugify(name)
        if not slug:
            raise EmptyTeamName(name)

        team = self.get_team(slug)
        if team is not None:
            return team

        if not create_if_missing:
            raise TeamNotFound(name, self.org)

        resp = self._request(
            "POST",
            self._url(f"/orgs/{self.org}/teams"),
            json_body={"name": name, "privacy": TeamPrivacy(privacy).value},
        )
        self._raise_for_status(resp)
        team = _parse_team(resp.json())
        logger.info(
            f"Created team '{team.name}' in org '{self.org}'",
            extra={"team": team.name, "team_slug": team.slug, "privacy": TeamPrivacy(privacy).value},
        )
        return team

    def get_team_members(self, team_slug: str) -> list[str]:  # noqa: ANN101
        members = self._paginate(f"/orgs/{self.org}/teams/{team_slug}/members")
        return [member["login"] for member in members if member.get("login")]

    def add_team_member(self, team_slug: str, login: str) -> None:  # noqa: ANN101
        resp = self._request(
            "PUT",
            self._url(f"/orgs/{self.org}/teams/{team_slug}/memberships/{login}"),
            json_body={"role": "member"},
        )
        self._raise_for_status(resp)

    def remove_team_member(self, team_slug: str, login: str) -> None:  # noqa: ANN101
        resp = self._request("DELETE", self._url(f"/orgs/{self.org}/teams/{team_slug}/memberships/{login}"))
        self._raise_for_status(resp)

    def is_outside_collaborator(self, login: str) -> bool:  # noqa: ANN101
        """True when the user has no organization membership (404)."""
        resp = self._request("GET", self._url(f"/orgs/{self.org}/memberships/{login}"))
        if resp.status_code == 404:
            return True
        self._raise_for_status(resp)
        return False

    def list_organization_members(self) -> list[str]:  # noqa: ANN101
        members = self._paginate(f"/orgs/{self.org}/members")
        return [member["login"] for member in members if member.get("login")]


def _parse_team(data: dict) -> Team:
    privacy = data.get("privacy")
    return Team(
        name=data["name"],
        slug=data["slug"],
        id=data.get("id"),
        privacy=TeamPrivacy(privacy) if privacy in {p.value for p in TeamPrivacy} else None,
    )
