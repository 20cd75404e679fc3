"""Semantic version triples for module snapshots.

Version string format:
    {major}.{minor}.{patch}

Example:
    0.1.0

Tuples are also accepted anywhere a version is expected: (0, 1, 0) or [0, 1, 0].
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Literal

# Each component is stored as an unsigned 32-bit integer
MAX_COMPONENT = 2**32 - 1

VERSION_PATTERN = re.compile(
    r"^v?(?P<major>\d+)\.(?P<minor>\d+)\.(?P<patch>\d+)$",
)


@dataclass(frozen=True, order=True)
class SemanticVersion:
    """A (major, minor, patch) triple.

    Ordering is lexicographic over the triple, so
    SemanticVersion(0, 2, 0) > SemanticVersion(0, 1, 9).

    Attributes:
        major: Major version number.
        minor: Minor version number.
        patch: Patch version number.
    """

    major: int
    minor: int
    patch: int

    def __post_init__(self) -> None:
        for name in ("major", "minor", "patch"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{name} must be an int, got {type(value).__name__}")
            if not 0 <= value <= MAX_COMPONENT:
                raise ValueError(f"{name} must be in [0, {MAX_COMPONENT}], got {value}")

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"

    def as_tuple(self) -> tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    @property
    def label(self) -> str:
        """Default human-readable label (e.g. "v0.1.0")."""
        return f"v{self}"

    def bump(self, component: Literal["major", "minor", "patch"] = "minor") -> SemanticVersion:
        """Return the next version, resetting lower components."""
        if component == "major":
            return SemanticVersion(self.major + 1, 0, 0)
        if component == "minor":
            return SemanticVersion(self.major, self.minor + 1, 0)
        if component == "patch":
            return SemanticVersion(self.major, self.minor, self.patch + 1)
        raise ValueError(f"Unknown version component: {component!r}")


def parse_semantic_version(value: Any) -> SemanticVersion:
    """Coerce a version-like value into a SemanticVersion.

    Args:
        value: SemanticVersion, "X.Y.Z" / "vX.Y.Z" string, 3-item tuple or list,
               or a mapping with major/minor/patch keys.

    Returns:
        Parsed SemanticVersion.

    Raises:
        ValueError: If the value cannot be interpreted as a version triple.
    """
    if isinstance(value, SemanticVersion):
        return value

    if isinstance(value, str):
        match = VERSION_PATTERN.match(value.strip())
        if not match:
            raise ValueError(f"Invalid version string: {value!r}. Expected format: X.Y.Z")
        return SemanticVersion(
            int(match.group("major")),
            int(match.group("minor")),
            int(match.group("patch")),
        )

    if isinstance(value, (tuple, list)):
        if len(value) != 3:
            raise ValueError(f"Version tuple must have 3 components, got {len(value)}")
        major, minor, patch = value
        return SemanticVersion(major, minor, patch)

    if isinstance(value, dict):
        try:
            return SemanticVersion(value["major"], value["minor"], value["patch"])
        except KeyError as e:
            raise ValueError(f"Version mapping missing component: {e}") from e

    raise ValueError(f"Cannot interpret {type(value).__name__} as a semantic version")
