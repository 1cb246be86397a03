from typing import Optional

from .model import BaseModel


class Group(BaseModel):
    id: str
    name: str
    description: Optional[str] = None


class GroupMembers(BaseModel):
    """Active members of a directory group.

    ``members`` holds workspace logins in directory order. Users that are
    active but have no login are kept in ``skipped_no_identity`` by email
    (or user id when the email is missing).
    """

    members: tuple[str, ...] = ()
    skipped_no_identity: tuple[str, ...] = ()


class GroupInfo(BaseModel):
    id: str
    name: str
    members: tuple[str, ...] = ()
    skipped_no_identity: tuple[str, ...] = ()

    @staticmethod
    def from_group(group: Group, members: GroupMembers) -> "GroupInfo":
        return GroupInfo(
            id=group.id,
            name=group.name,
            members=members.members,
            skipped_no_identity=members.skipped_no_identity,
        )
