"""Identity Store implementation of the directory capability.

Groups and their members are read from AWS IAM Identity Store. Each active
member is mapped to a GitHub login through one configured attribute; users
without that attribute are reported by email instead of being dropped.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

from config import get_logger
from entities.directory import Group, GroupMembers
from errors import GroupNotFound
from utils import login_key, mask_email, unique

if TYPE_CHECKING:
    from mypy_boto3_identitystore import IdentityStoreClient

logger = get_logger(service="identity_store")

ENTERPRISE_EXTENSION = "aws:identitystore:enterprise"
_ENTERPRISE_SCHEMA_KEY = "urn:ietf:params:scim:schemas:extension:enterprise:2.0:User"
_ACTIVE_USER_STATUS = "ENABLED"


@dataclass(frozen=True)
class ResolvedIdentity:
    login: str


@dataclass(frozen=True)
class UnresolvedIdentity:
    """A directory user with no GitHub login, tracked by email or user id."""

    fallback: str


IdentityResult = Union[ResolvedIdentity, UnresolvedIdentity]


def extract_user_email(user: dict) -> str:
    """Extract primary email from user's Emails list."""
    emails = user.get("Emails", [])
    for email_entry in emails:
        if email_entry.get("Primary", False):
            return email_entry.get("Value", "")
    return emails[0].get("Value", "") if emails else ""


def _extract_fields(source: dict, field_mappings: list[tuple[str, str]], target: dict[str, str]) -> None:
    for field, attr_key in field_mappings:
        value = source.get(field)
        if value and isinstance(value, str):
            target[attr_key] = value


def extract_user_attributes(user: dict) -> dict[str, str]:
    """Flatten the string attributes of a describe_user response.

    Covers the user name, a few standard SCIM attributes, the enterprise
    extension, custom Identity Store extension attributes and external ids
    (as ``externalId_<issuer>``).
    """
    attributes: dict[str, str] = {}

    _extract_fields(
        user,
        [
            ("UserName", "userName"),
            ("DisplayName", "displayName"),
            ("NickName", "nickName"),
            ("Title", "title"),
            ("UserType", "userType"),
            ("ProfileUrl", "profileUrl"),
        ],
        attributes,
    )

    enterprise_ext = user.get(_ENTERPRISE_SCHEMA_KEY, {})
    _extract_fields(
        enterprise_ext,
        [
            ("department", "department"),
            ("costCenter", "costCenter"),
            ("organization", "organization"),
            ("division", "division"),
            ("employeeNumber", "employeeNumber"),
        ],
        attributes,
    )

    for ext_key, ext_value in user.get("Extensions", {}).items():
        if isinstance(ext_value, dict):
            for attr_name, attr_value in ext_value.items():
                if isinstance(attr_value, str):
                    attributes[attr_name] = attr_value
        elif isinstance(ext_value, str):
            attributes[ext_key.split(":")[-1]] = ext_value

    for ext_id in user.get("ExternalIds", []):
        issuer = ext_id.get("Issuer", "")
        ext_id_value = ext_id.get("Id", "")
        if issuer and ext_id_value:
            attributes[f"externalId_{issuer}"] = ext_id_value

    return attributes


def extract_identity(user: dict, attribute: str) -> IdentityResult:
    """Map a directory user to a GitHub login using a single attribute.

    The attribute name is matched case-insensitively against the flattened
    user attributes.
    """
    wanted = attribute.lower()
    for attr_name, attr_value in extract_user_attributes(user).items():
        if attr_name.lower() == wanted and attr_value.strip():
            return ResolvedIdentity(login=attr_value.strip())
    return UnresolvedIdentity(fallback=extract_user_email(user) or user.get("UserId", ""))


def is_active_user(user: dict) -> bool:
    status = user.get("UserStatus")
    return status is None or status == _ACTIVE_USER_STATUS


class IdentityStoreDirectory:
    def __init__(  # noqa: ANN101
        self,
        identity_store_client: IdentityStoreClient,
        identity_store_id: str,
        identity_attribute: str = "githubUsername",
    ) -> None:
        self._client = identity_store_client
        self._identity_store_id = identity_store_id
        self._identity_attribute = identity_attribute

    def list_groups(self) -> list[Group]:  # noqa: ANN101
        groups: list[Group] = []
        paginator = self._client.get_paginator("list_groups")
        for page in paginator.paginate(IdentityStoreId=self._identity_store_id):
            for group in page.get("Groups", []):
                display_name = group.get("DisplayName")
                group_id = group.get("GroupId")
                if display_name and group_id:
                    groups.append(Group(id=group_id, name=display_name, description=group.get("Description")))

        logger.info(f"Fetched {len(groups)} groups from Identity Store")
        return groups

    def get_group_by_name(self, name: str) -> Group:  # noqa: ANN101
        try:
            response = self._client.get_group_id(
                IdentityStoreId=self._identity_store_id,
                AlternateIdentifier={
                    "UniqueAttribute": {
                        "AttributePath": "displayName",
                        "AttributeValue": name,
                    }
                },
            )
        except self._client.exceptions.ResourceNotFoundException as e:
            raise GroupNotFound(name) from e

        group = self._client.describe_group(IdentityStoreId=self._identity_store_id, GroupId=response["GroupId"])
        if group.get("DisplayName") != name:
            raise GroupNotFound(name)
        return Group(id=group["GroupId"], name=group["DisplayName"], description=group.get("Description"))

    def get_group_members(self, group_id: str) -> GroupMembers:  # noqa: ANN101
        logins: list[str] = []
        skipped: list[str] = []

        paginator = self._client.get_paginator("list_group_memberships")
        for page in paginator.paginate(IdentityStoreId=self._identity_store_id, GroupId=group_id):
            for membership in page.get("GroupMemberships", []):
                user_id = membership.get("MemberId", {}).get("UserId")
                if not user_id:
                    continue

                user = self._client.describe_user(
                    IdentityStoreId=self._identity_store_id,
                    UserId=user_id,
                    Extensions=[ENTERPRISE_EXTENSION],
                )
                if not is_active_user(user):
                    logger.debug(f"Skipping inactive user {user_id} in group {group_id}")
                    continue

                identity = extract_identity(user, self._identity_attribute)
                if isinstance(identity, ResolvedIdentity):
                    logins.append(identity.login)
                else:
                    logger.debug(f"User '{mask_email(identity.fallback)}' has no '{self._identity_attribute}' attribute")
                    skipped.append(identity.fallback)

        logger.info(
            f"Group {group_id}: {len(logins)} members with a GitHub login, {len(skipped)} without",
            extra={"group_id": group_id, "members": len(logins), "skipped_no_identity": len(skipped)},
        )
        return GroupMembers(members=tuple(unique(logins, key=login_key)), skipped_no_identity=tuple(unique(skipped)))
