"""Partial updates as explicit per-field patches.

Update instructions carry optional fields where "absent" means "leave the
stored value unchanged". Rather than letting None leak into merge logic, each
field is lifted into a tagged value:

    Keep()        -> keep the stored value
    Assign(value) -> replace the stored value

merge(old, patch) is pure: it never mutates `old` and returns a fully
re-validated record.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")
R = TypeVar("R", bound=BaseModel)


@dataclass(frozen=True)
class Keep:
    """Field is not part of the update."""


@dataclass(frozen=True)
class Assign(Generic[T]):
    """Field is replaced with `value`."""

    value: T


FieldUpdate = Keep | Assign[Any]
RecordPatch = Mapping[str, FieldUpdate]

KEEP = Keep()


def from_optional(value: T | None) -> Keep | Assign[T]:
    """Lift a wire-level optional (None = unchanged) into a FieldUpdate."""
    if value is None:
        return KEEP
    return Assign(value)


def assigned(patch: RecordPatch) -> dict[str, Any]:
    """Values of the fields a patch actually replaces."""
    return {name: update.value for name, update in patch.items() if isinstance(update, Assign)}


def is_noop(patch: RecordPatch) -> bool:
    """True if the patch would leave every field unchanged."""
    return not assigned(patch)


def merge(old: R, patch: RecordPatch, **stamps: Any) -> R:
    """Apply a patch to a record.

    Args:
        old: Current record value.
        patch: Field name -> Keep | Assign.
        stamps: Bookkeeping fields (e.g. updated_at), applied only when the
            patch assigns at least one field.

    Returns:
        New record of the same type. Fields not assigned keep their exact
        prior values; an all-Keep patch returns `old` itself.

    Raises:
        KeyError: If the patch names a field the record does not have.
    """
    model_fields = type(old).model_fields
    unknown = [name for name in (*patch.keys(), *stamps.keys()) if name not in model_fields]
    if unknown:
        raise KeyError(f"{type(old).__name__} has no field(s): {', '.join(sorted(unknown))}")

    updates = assigned(patch)
    if not updates:
        return old
    updates.update(stamps)
    data = old.model_dump()
    data.update(updates)
    return type(old).model_validate(data)
