class SyncError(Exception):
    ...


class ConfigurationError(SyncError):
    ...


class SyncConfigurationError(ConfigurationError):
    ...


class EmptyPattern(ConfigurationError):
    def __init__(self) -> None:  # noqa: ANN101
        super().__init__("pattern cannot be empty")


class InvalidPattern(ConfigurationError):
    def __init__(self, pattern: str, reason: str) -> None:  # noqa: ANN101
        self.pattern = pattern
        super().__init__(f"invalid regex pattern '{pattern}': {reason}")


class EmptyTeamName(ConfigurationError):
    def __init__(self, team_name: str, group_name: str = "") -> None:  # noqa: ANN101
        self.team_name = team_name
        self.group_name = group_name
        if group_name:
            super().__init__(f"derived team name for group '{group_name}' is empty")
        else:
            super().__init__(f"team name '{team_name}' has no characters usable in a team slug")


class AmbiguousTeamName(ConfigurationError):
    def __init__(self, team_name: str, group_names: list[str]) -> None:  # noqa: ANN101
        self.team_name = team_name
        self.group_names = group_names
        super().__init__(
            f"team name '{team_name}' is set explicitly but the pattern matched {len(group_names)} groups "
            f"({', '.join(group_names)}); use team_prefix/strip_prefix instead"
        )


class NotFound(SyncError):
    ...


class GroupNotFound(NotFound):
    def __init__(self, group_name: str) -> None:  # noqa: ANN101
        self.group_name = group_name
        super().__init__(f"group '{group_name}' not found")


class TeamNotFound(NotFound):
    def __init__(self, team_name: str, org: str) -> None:  # noqa: ANN101
        self.team_name = team_name
        self.org = org
        super().__init__(f"team '{team_name}' not found in org '{org}'")


class GitHubApiError(SyncError):
    def __init__(self, status_code: int, message: str, url: str = "") -> None:  # noqa: ANN101
        self.status_code = status_code
        self.message = message
        self.url = url
        super().__init__(f"GitHub API returned {status_code}: {message}")


class AllRulesFailed(SyncError):
    def __init__(self, failed_count: int, reports: tuple) -> None:  # noqa: ANN101
        self.failed_count = failed_count
        self.reports = reports
        super().__init__(f"all sync rules failed: {failed_count} errors")
