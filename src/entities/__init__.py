from . import directory, github
from .model import BaseModel, json_default, to_serializable

__all__ = ["BaseModel", "directory", "github", "json_default", "to_serializable"]
