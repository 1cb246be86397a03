import re
from typing import Callable, Optional

_EMAIL_MASK_PREFIX_LEN = 5
_EMAIL_MASK_SUFFIX_LEN = 5
_EMAIL_MIN_LENGTH_FOR_MASKING = _EMAIL_MASK_PREFIX_LEN + _EMAIL_MASK_SUFFIX_LEN

_SLUG_INVALID_CHARS = re.compile(r"[^a-z0-9_-]+")


def mask_email(email: str) -> str:
    """Mask email for logging - show first 5 and last 5 characters only.

    Args:
        email: The email address to mask.

    Returns:
        Masked email like "john.*****.com" or original if too short.
    """
    if len(email) <= _EMAIL_MIN_LENGTH_FOR_MASKING:
        return email
    return f"{email[:_EMAIL_MASK_PREFIX_LEN]}*****{email[-_EMAIL_MASK_SUFFIX_LEN:]}"


def unique(items: list[str], key: Optional[Callable[[str], str]] = None) -> list[str]:
    """Drop duplicates, keeping the first occurrence of each item.

    With ``key``, two items are duplicates when their keys are equal.
    """
    if key is None:
        return list(dict.fromkeys(items))
    first_by_key: dict[str, str] = {}
    for item in items:
        first_by_key.setdefault(key(item), item)
    return list(first_by_key.values())


def login_key(login: str) -> str:
    """GitHub logins are case-insensitive."""
    return login.lower()


def slugify(team_name: str) -> str:
    """Best-effort GitHub slug for a team name ("Platform Team" -> "platform-team")."""
    return _SLUG_INVALID_CHARS.sub("-", team_name.lower()).strip("-")
