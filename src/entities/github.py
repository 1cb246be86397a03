from enum import Enum
from typing import Optional

from .model import BaseModel


class TeamPrivacy(str, Enum):
    Closed = "closed"
    Secret = "secret"


class Team(BaseModel):
    name: str
    slug: str
    id: Optional[int] = None
    privacy: Optional[TeamPrivacy] = None
