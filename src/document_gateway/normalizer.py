"""Rewrite action results into the camelCase shape file-manager clients consume."""

from typing import Any

from fastapi.encoders import jsonable_encoder
from pydantic.alias_generators import to_camel


def _camelize(value: Any) -> Any:
    if isinstance(value, dict):
        return {to_camel(key) if isinstance(key, str) else key: _camelize(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_camelize(item) for item in value]
    return value


def normalize(result: Any, exclude_none: bool = True) -> Any:
    """
    Encode ``result`` to JSON-compatible data with camelCase keys at every depth.

    Accepts pydantic models, dataclasses, mappings, sequences, datetimes and
    enums. Keys that are already camelCase are left as they are.
    """
    return _camelize(jsonable_encoder(result, exclude_none=exclude_none))
