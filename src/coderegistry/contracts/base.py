"""Base configuration for registry contracts.

Stored records inherit from RecordBase which enforces:
- Immutability (frozen): a mutation produces a new value for the same address
- schema_version on every record
- Forward compatibility: unknown fields appended by newer layouts are ignored

Instruction arguments inherit from ArgsBase which forbids extra fields.
"""

from __future__ import annotations

from typing import Annotated, Any, ClassVar

import orjson
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, PlainSerializer

from coderegistry.contracts.types import RecordKind  # noqa: TC001 - used at runtime
from coderegistry.version import SemanticVersion, parse_semantic_version

# Layout version for all stored records
SCHEMA_VERSION = 1

U64_MAX = 2**64 - 1
U32_MAX = 2**32 - 1

# Opaque references (policy, lifecycle notes) are at most 32 raw bytes
MAX_REF_BYTES = 32


def parse_opaque_ref(v: Any) -> str:
    """Normalize an opaque reference to lowercase hex.

    Accepts raw bytes or a hex string. Length is checked by the registry,
    not here, so an oversized ref surfaces as InvalidArgumentError.
    """
    if v is None:
        return ""
    if isinstance(v, (bytes, bytearray)):
        return bytes(v).hex()
    if isinstance(v, str):
        try:
            bytes.fromhex(v)
        except ValueError as e:
            raise ValueError(f"Opaque ref must be hex, got {v!r}") from e
        return v.lower()
    raise ValueError(f"Cannot convert {type(v).__name__} to an opaque ref")


U64 = Annotated[int, Field(ge=0, le=U64_MAX)]
U32 = Annotated[int, Field(ge=0, le=U32_MAX)]

# Hex-encoded opaque bytes
OpaqueRef = Annotated[str, BeforeValidator(parse_opaque_ref)]

# Semantic version triple: accepts SemanticVersion, "X.Y.Z", [X, Y, Z] or a mapping;
# serialized as [X, Y, Z]
VersionField = Annotated[
    SemanticVersion,
    BeforeValidator(parse_semantic_version),
    PlainSerializer(lambda v: list(v.as_tuple()), return_type=list[int]),
]


class RecordBase(BaseModel):
    """Base class for all stored registry records."""

    KIND: ClassVar[RecordKind]

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        validate_default=True,
    )

    schema_version: int = Field(
        default=SCHEMA_VERSION,
        ge=1,
        description="Record layout version",
    )

    def to_json(self) -> bytes:
        """Serialize to JSON bytes using orjson."""
        return orjson.dumps(self.model_dump(mode="json"), option=orjson.OPT_SORT_KEYS)

    @classmethod
    def from_json(cls, data: bytes | str) -> RecordBase:
        """Deserialize from JSON."""
        if isinstance(data, str):
            data = data.encode()
        return cls.model_validate(orjson.loads(data))


class ArgsBase(BaseModel):
    """Base class for instruction arguments.

    Update instructions use None to mean "leave unchanged".
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        str_strip_whitespace=True,
    )
