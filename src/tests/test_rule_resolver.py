import re

import pytest
from hypothesis import given
from hypothesis import strategies as st

from errors import AmbiguousTeamName, EmptyPattern, GroupNotFound, InvalidPattern
from rule_resolver import compile_group_pattern, compute_team_name, resolve_rule
from sync_rules import SyncRule

from . import strategies
from .fakes import FakeDirectory


@pytest.mark.parametrize(
    "group_name, rule, expected",
    [
        ("Engineering", SyncRule(team_name="engineering-team"), "engineering-team"),
        ("Platform Eng", SyncRule(team_name="Platform Eng"), "Platform Eng"),
        ("eng-Backend", SyncRule(strip_prefix="eng-", team_prefix="gh-"), "gh-backend"),
        ("Backend", SyncRule(strip_prefix="eng-", team_prefix="gh-"), "gh-backend"),
        ("Data & ML", SyncRule(), "data---ml"),
        ("Team_A", SyncRule(team_prefix="GH."), "gh-team-a"),
        ("Ünïcode", SyncRule(), "-n-code"),
        ("okta-eng-okta", SyncRule(strip_prefix="okta-"), "eng-okta"),
    ],
)
def test_compute_team_name(group_name: str, rule: SyncRule, expected: str):
    assert compute_team_name(group_name, rule) == expected


@given(
    group_name=strategies.group_name,
    strip_prefix=st.sampled_from(["", "eng-", "Okta "]),
    team_prefix=st.sampled_from(["", "gh-", "Team "]),
)
def test_computed_team_name_charset(group_name: str, strip_prefix: str, team_prefix: str):
    rule = SyncRule(strip_prefix=strip_prefix, team_prefix=team_prefix)

    team_name = compute_team_name(group_name, rule)

    assert re.fullmatch(r"[a-z0-9-]*", team_name)
    assert team_name == compute_team_name(group_name, rule)


def test_compile_group_pattern_errors():
    with pytest.raises(EmptyPattern):
        compile_group_pattern("")
    with pytest.raises(InvalidPattern) as exc_info:
        compile_group_pattern("[unclosed")
    assert exc_info.value.pattern == "[unclosed"


def test_pattern_is_unanchored_search():
    directory = FakeDirectory({"eng-backend": ["alice"], "platform-eng": ["bob"], "sales": ["carol"]})

    pairs = resolve_rule(SyncRule(group_pattern="eng"), directory)

    assert [(group.name, team_name) for group, team_name in pairs] == [
        ("eng-backend", "eng-backend"),
        ("platform-eng", "platform-eng"),
    ]
    assert pairs[0][0].members == ("alice",)


def test_anchored_pattern_with_prefixes():
    directory = FakeDirectory({"eng-backend": ["alice"], "platform-eng": ["bob"]})

    pairs = resolve_rule(SyncRule(group_pattern="^eng-", strip_prefix="eng-", team_prefix="gh-"), directory)

    assert [(group.name, team_name) for group, team_name in pairs] == [("eng-backend", "gh-backend")]


def test_pattern_matching_nothing_resolves_to_empty_list():
    assert resolve_rule(SyncRule(group_pattern="^nothing$"), FakeDirectory({"eng": []})) == []


def test_invalid_pattern_fails_rule():
    with pytest.raises(InvalidPattern):
        resolve_rule(SyncRule(group_pattern="(eng"), FakeDirectory({"eng": []}))


def test_exact_group_name():
    directory = FakeDirectory({"Engineering": ["alice", "bob"]}, skipped_no_identity={"Engineering": ["c***@example.com"]})

    pairs = resolve_rule(SyncRule(group_name="Engineering", team_name="engineering"), directory)

    assert len(pairs) == 1
    group, team_name = pairs[0]
    assert team_name == "engineering"
    assert group.members == ("alice", "bob")
    assert group.skipped_no_identity == ("c***@example.com",)
    assert directory.list_groups_calls == 0


def test_missing_group_name():
    with pytest.raises(GroupNotFound):
        resolve_rule(SyncRule(group_name="Missing"), FakeDirectory({"Engineering": []}))


def test_pattern_wins_over_group_name():
    directory = FakeDirectory({"eng-a": [], "eng-b": [], "Other": []})

    pairs = resolve_rule(SyncRule(group_pattern="^eng-", group_name="Other"), directory)

    assert [group.name for group, _ in pairs] == ["eng-a", "eng-b"]


def test_rule_without_selector_resolves_to_nothing():
    assert resolve_rule(SyncRule(name="noop"), FakeDirectory({"eng": []})) == []


def test_explicit_team_name_with_many_matches_is_ambiguous():
    directory = FakeDirectory({"eng-a": [], "eng-b": []})

    with pytest.raises(AmbiguousTeamName) as exc_info:
        resolve_rule(SyncRule(group_pattern="^eng-", team_name="engineering"), directory)

    assert exc_info.value.group_names == ["eng-a", "eng-b"]


def test_explicit_team_name_with_single_match():
    pairs = resolve_rule(SyncRule(group_pattern="^eng-", team_name="engineering"), FakeDirectory({"eng-a": [], "x": []}))

    assert [(group.name, team_name) for group, team_name in pairs] == [("eng-a", "engineering")]


def test_member_fetch_failure_skips_only_that_group():
    directory = FakeDirectory({"eng-a": ["alice"], "eng-b": ["bob"]}, fail_members=("eng-a",))

    pairs = resolve_rule(SyncRule(group_pattern="^eng-"), directory)

    assert [group.name for group, _ in pairs] == ["eng-b"]
