"""
Record serialization and JSON merge patch.

Pure functions with no I/O. Records are pydantic models (or plain JSON-able
values) stored as compact JSON; reads decode back into the declared model
type.

Invariants:
    - Stored records omit fields equal to their defaults
    - Patch documents built from models only carry explicitly set fields
    - Merge patch follows RFC 7396: null deletes, objects merge recursively,
      everything else (arrays included) replaces wholesale
"""

from __future__ import annotations

import json
from typing import Any, TypeVar

import pydantic_core
from pydantic import BaseModel, ValidationError

from .errors import DecodeError, EncodeError, PatchError

ModelT = TypeVar("ModelT", bound=BaseModel)


def encode_record(obj: Any) -> bytes:
    """Serialize a record for storage.

    Args:
        obj: Pydantic model instance or JSON-able value

    Returns:
        Compact UTF-8 JSON

    Raises:
        EncodeError: If the value cannot be serialized
    """
    try:
        if isinstance(obj, BaseModel):
            return obj.model_dump_json(by_alias=True, exclude_defaults=True).encode("utf-8")
        return pydantic_core.to_json(obj, by_alias=True)
    except pydantic_core.PydanticSerializationError as e:
        raise EncodeError(
            f"failed to json marshal: {e}", type_name=type(obj).__name__
        ) from e


def decode_record(data: bytes | str, model_type: type[ModelT], key: str | None = None) -> ModelT:
    """Decode stored JSON into a new instance of ``model_type``.

    Fields unknown to ``model_type`` are dropped.

    Raises:
        DecodeError: If the data is not JSON or does not fit the model
    """
    try:
        return model_type.model_validate_json(data)
    except ValidationError as e:
        raise DecodeError(
            f"failed to json unmarshal: {_first_error(e)}",
            key=key,
            type_name=model_type.__name__,
        ) from e


def encode_patch(obj: Any) -> dict[str, Any]:
    """Build a merge patch document from a caller-supplied value.

    Models contribute only the fields that were explicitly set, so
    ``Route(uri="/b")`` patches ``uri`` and leaves everything else alone.

    Raises:
        PatchError: If the value does not produce a JSON object
    """
    try:
        if isinstance(obj, BaseModel):
            doc = obj.model_dump(mode="json", by_alias=True, exclude_unset=True)
        else:
            doc = pydantic_core.to_jsonable_python(obj, by_alias=True)
    except pydantic_core.PydanticSerializationError as e:
        raise PatchError(f"invalid merge patch document: {e}") from e

    if not isinstance(doc, dict):
        raise PatchError(
            f"invalid merge patch document: expected a JSON object, got {type(doc).__name__}"
        )
    return doc


def merge_patch(original: bytes | str, patch: dict[str, Any]) -> bytes:
    """Apply an RFC 7396 merge patch to a stored JSON document.

    Args:
        original: Stored JSON document
        patch: Patch document (a JSON object)

    Returns:
        Merged compact JSON

    Raises:
        PatchError: If the original is not JSON or the patch is not an object
    """
    if not isinstance(patch, dict):
        raise PatchError("invalid merge patch document: expected a JSON object")
    try:
        target = json.loads(original)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise PatchError(f"invalid original document: {e}") from e

    merged = _merge(target, patch)
    return json.dumps(merged, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def _merge(target: Any, patch: Any) -> Any:
    if not isinstance(patch, dict):
        return patch
    if not isinstance(target, dict):
        target = {}
    result = dict(target)
    for name, value in patch.items():
        if value is None:
            result.pop(name, None)
        else:
            result[name] = _merge(result.get(name), value)
    return result


def _first_error(e: ValidationError) -> str:
    errors = e.errors(include_url=False)
    if not errors:
        return str(e)
    first = errors[0]
    loc = ".".join(str(part) for part in first.get("loc", ()))
    return f"{loc}: {first['msg']}" if loc else first["msg"]
