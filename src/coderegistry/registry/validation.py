"""Argument validation shared by registry handlers.

All helpers raise InvalidArgumentError naming the offending field.
"""

from __future__ import annotations

from coderegistry.contracts.base import MAX_REF_BYTES
from coderegistry.errors import InvalidArgumentError


def check_key(value: str, field: str, *, max_len: int = 128) -> None:
    """Entity keys must be non-empty and bounded."""
    if not value:
        raise InvalidArgumentError(f"{field} cannot be empty", field=field)
    if len(value) > max_len:
        raise InvalidArgumentError(
            f"{field} exceeds {max_len} chars", field=field, max_len=max_len
        )


def check_text(value: str, field: str, *, max_len: int, allow_empty: bool = False) -> None:
    """Bounded string, optionally required to be non-empty."""
    if not value and not allow_empty:
        raise InvalidArgumentError(f"{field} cannot be empty", field=field)
    if len(value) > max_len:
        raise InvalidArgumentError(
            f"{field} exceeds {max_len} chars", field=field, max_len=max_len
        )


def check_url(value: str, field: str, *, max_len: int) -> None:
    """Non-empty, bounded, and of the form scheme://rest."""
    check_text(value, field, max_len=max_len)
    scheme, sep, rest = value.partition("://")
    if not sep or not scheme or not rest:
        raise InvalidArgumentError(f"{field} must look like scheme://...", field=field)


def check_uri(
    value: str,
    field: str,
    *,
    max_len: int,
    schemes: tuple[str, ...],
    allow_empty: bool = False,
) -> None:
    """Bounded URI restricted to known schemes (http, https, ipfs, ar by default)."""
    check_text(value, field, max_len=max_len, allow_empty=allow_empty)
    if value and not value.startswith(schemes):
        raise InvalidArgumentError(
            f"{field} must start with one of {', '.join(schemes)}", field=field
        )


def check_ref(value: str, field: str) -> None:
    """Opaque refs are hex and at most MAX_REF_BYTES raw bytes."""
    if len(value) > MAX_REF_BYTES * 2:
        raise InvalidArgumentError(
            f"{field} exceeds {MAX_REF_BYTES} bytes", field=field, max_bytes=MAX_REF_BYTES
        )
