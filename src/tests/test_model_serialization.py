import json

from hypothesis import given

from entities import json_default, to_serializable
from entities.directory import GroupInfo
from entities.github import Team, TeamPrivacy
from sync_state import SyncReport
from utils import mask_email, unique

from . import strategies


def test_team_dict():
    team = Team(name="Platform", slug="platform", id=7, privacy=TeamPrivacy.Secret)

    assert team.dict() == {"name": "Platform", "slug": "platform", "id": 7, "privacy": "secret"}


def test_group_info_dict_turns_tuples_into_lists():
    group = GroupInfo(id="g1", name="Eng", members=("a", "b"))

    assert group.dict()["members"] == ["a", "b"]


def test_report_is_json_serializable_for_logging():
    report = SyncReport(rule="eng", group="Eng", team="eng", added=("a",), errors=("boom",))

    data = json.loads(json.dumps({"report": report, "privacy": TeamPrivacy.Closed, "set": {"b", "a"}}, default=json_default))

    assert data["report"]["added"] == ["a"]
    assert data["privacy"] == "closed"
    assert data["set"] == ["a", "b"]


def test_to_serializable_passes_scalars_through():
    assert to_serializable(3) == 3
    assert to_serializable("x") == "x"


@given(strategies.logins)
def test_unique_keeps_first_occurrence(logins: list[str]):
    result = unique(logins)

    assert set(result) == set(logins)
    assert len(result) == len(set(result))
    assert result == sorted(set(logins), key=logins.index)


def test_mask_email():
    assert mask_email("john.doe@example.com") == "john.*****e.com"
    assert mask_email("a@b.io") == "a@b.io"


def test_unique_with_key_keeps_first_spelling():
    assert unique(["Alice", "bob", "alice", "BOB"], key=str.lower) == ["Alice", "bob"]
