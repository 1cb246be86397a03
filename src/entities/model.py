import dataclasses
import enum

from pydantic import BaseModel as PydanticBaseModel
from pydantic import ConfigDict


def _convert_to_serializable(obj):  # noqa: ANN001, ANN202, PLR0911
    """Recursively convert objects to JSON-serializable format."""
    if isinstance(obj, PydanticBaseModel):
        return {field_name: _convert_to_serializable(getattr(obj, field_name)) for field_name in obj.__class__.model_fields}
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: _convert_to_serializable(getattr(obj, f.name)) for f in dataclasses.fields(obj)}
    if isinstance(obj, (frozenset, set)):
        return sorted(_convert_to_serializable(item) for item in obj)
    if isinstance(obj, dict):
        return {key: _convert_to_serializable(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_convert_to_serializable(item) for item in obj]
    if isinstance(obj, enum.Enum):
        return obj.value
    return obj


class BaseModel(PydanticBaseModel):
    model_config = ConfigDict(frozen=True)

    def dict(self, *args, **kwargs) -> dict:  # noqa: ANN101, ANN003, ANN002, ARG002
        """Converts instance to a plain dict, tuples and frozensets become lists."""
        return _convert_to_serializable(self)


def to_serializable(obj: object) -> object:
    return _convert_to_serializable(obj)


def json_default(o: object) -> str | dict | list:
    if isinstance(o, PydanticBaseModel):
        return _convert_to_serializable(o)
    elif dataclasses.is_dataclass(o) and not isinstance(o, type):
        return _convert_to_serializable(o)
    elif isinstance(o, (frozenset, set)):
        return _convert_to_serializable(o)
    elif isinstance(o, enum.Enum):
        return o.value
    return str(o)
