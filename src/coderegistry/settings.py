"""Runtime registry settings.

RegistrySettings is frozen (immutable) and holds the limits and policy
switches that are not part of the on-ledger Config record. Values can be
overridden from CODEREGISTRY_* environment variables.
"""

from __future__ import annotations

import os
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

ENV_PREFIX = "CODEREGISTRY_"


def _env_bool(raw: str) -> bool:
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off", ""}:
        return False
    raise ValueError(f"Invalid boolean value: {raw!r}")


class RegistrySettings(BaseModel):
    """Registry limits (frozen)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    # String limits
    max_name_len: int = Field(default=64, gt=0, description="Repo/module name")
    max_url_len: int = Field(default=256, gt=0, description="Repo URL")
    max_uri_len: int = Field(default=256, gt=0, description="Metadata/changelog URIs")
    max_tags_len: int = Field(default=256, gt=0, description="Comma-separated tags")
    max_category_len: int = Field(default=32, gt=0)
    max_label_len: int = Field(default=64, gt=0, description="Fork and version labels")
    max_revision_len: int = Field(default=64, gt=0)
    max_note_len: int = Field(default=256, gt=0)

    # Observation bounds (per single observation)
    max_loc_per_observation: int = Field(default=50_000_000, gt=0)
    max_files_per_observation: int = Field(default=1_000_000, gt=0)

    # Observation log length per repo
    max_observations_per_repo: int = Field(default=1_000_000, gt=0)

    # Fork lineage
    max_fork_depth: int = Field(default=64, ge=0)

    # Module versioning policy: when True, new snapshots must be strictly
    # greater than the module's current_version. Tuple reuse is always rejected.
    enforce_version_ordering: bool = False

    # Accepted metadata URI schemes
    metadata_uri_schemes: tuple[str, ...] = ("http://", "https://", "ipfs://", "ar://")

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> RegistrySettings:
        """Build settings from CODEREGISTRY_* environment variables.

        Unset variables fall back to defaults.

        Args:
            environ: Mapping to read (default os.environ).
        """
        env = os.environ if environ is None else environ
        overrides: dict[str, Any] = {}
        for name, field in cls.model_fields.items():
            raw = env.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is None:
                continue
            if field.annotation is bool:
                overrides[name] = _env_bool(raw)
            elif name == "metadata_uri_schemes":
                overrides[name] = tuple(s.strip() for s in raw.split(",") if s.strip())
            else:
                overrides[name] = int(raw)
        return cls(**overrides)
