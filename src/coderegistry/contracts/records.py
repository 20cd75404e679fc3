"""Stored registry records.

Each record lives at exactly one derived address (see coderegistry.address).
ModuleVersion and Observation are append-only; all other records are replaced
wholesale on update.
"""

from __future__ import annotations

from typing import ClassVar

from pydantic import Field, model_validator

from coderegistry.contracts.base import U32, U64, OpaqueRef, RecordBase, VersionField
from coderegistry.contracts.types import LifecyclePhase, RecordKind


class Config(RecordBase):
    """Global administrative parameters (singleton)."""

    KIND: ClassVar[RecordKind] = RecordKind.CONFIG

    admin: str = Field(min_length=1, description="Identity allowed to run admin operations")
    fee_bps: int = Field(ge=0, le=10_000, description="Fee in basis points")
    max_modules_per_repo: int = Field(gt=0, le=2**32 - 1, description="Per-repo module cap")
    policy_ref: OpaqueRef = Field(default="", description="Opaque policy reference (hex)")
    lifecycle_note_ref: OpaqueRef = Field(default="", description="Opaque lifecycle note (hex)")
    is_active: bool = Field(default=True, description="Registry-wide kill switch")
    created_at: int = Field(ge=0)
    updated_at: int = Field(ge=0)


class Lifecycle(RecordBase):
    """Operational phase, global write freeze and migration flags (singleton)."""

    KIND: ClassVar[RecordKind] = RecordKind.LIFECYCLE

    phase: LifecyclePhase = Field(default=LifecyclePhase.BOOTSTRAPPING)
    global_freeze: bool = Field(default=False)
    note_ref: OpaqueRef = Field(default="")
    migration_required: bool = Field(
        default=False, description="Writes are blocked until a migration runs"
    )
    migration_in_progress: bool = Field(default=False)
    migration_state_changed_at: int = Field(default=0, ge=0)
    phase_changed_at: int = Field(ge=0)
    created_at: int = Field(ge=0)
    updated_at: int = Field(ge=0)

    @property
    def write_block_reason(self) -> str | None:
        """Why registry mutations are blocked, or None if they may run."""
        if self.global_freeze:
            return "Registry writes are globally frozen"
        if self.migration_required and not self.migration_in_progress:
            return "Registry migration is required"
        if self.phase.is_write_restricted:
            return f"Registry writes are not allowed in phase {self.phase.value}"
        return None

    @property
    def writes_allowed(self) -> bool:
        """Whether registry mutations may run."""
        return self.write_block_reason is None


class Metrics(RecordBase):
    """Global aggregate counters (singleton)."""

    KIND: ClassVar[RecordKind] = RecordKind.METRICS

    total_repos: U64 = 0
    total_modules: U64 = 0
    total_forks: U64 = 0
    total_observations: U64 = 0
    total_lines_of_code: U64 = 0
    total_files_processed: U64 = 0
    created_at: int = Field(default=0, ge=0)
    updated_at: int = Field(default=0, ge=0)
    last_reset_at: int | None = Field(default=None)


# Counter fields on Metrics, in declaration order
METRIC_COUNTERS: tuple[str, ...] = (
    "total_repos",
    "total_modules",
    "total_forks",
    "total_observations",
    "total_lines_of_code",
    "total_files_processed",
)


class Repo(RecordBase):
    """A tracked source repository."""

    KIND: ClassVar[RecordKind] = RecordKind.REPO

    repo_key: str = Field(min_length=1)
    authority: str = Field(min_length=1, description="Identity allowed to update this repo")
    name: str
    url: str
    tags: str = ""
    is_active: bool = True
    allow_observation: bool = True

    # Rolling summary
    module_count: U32 = 0
    observation_count: U64 = 0
    total_lines_of_code: U64 = 0
    total_files_processed: U64 = 0

    created_at: int = Field(ge=0)
    updated_at: int = Field(ge=0)


class Module(RecordBase):
    """A module extracted from a repository.

    current_version is the only mutable projection over the module's
    append-only ModuleVersion history.
    """

    KIND: ClassVar[RecordKind] = RecordKind.MODULE

    module_key: str = Field(min_length=1)
    repo_key: str = Field(min_length=1, description="Parent repo (reference, not ownership)")
    authority: str = Field(min_length=1)
    name: str
    metadata_uri: str
    category: str = ""
    tags: str = ""
    is_active: bool = True
    is_stable: bool = False
    current_version: VersionField
    created_at: int = Field(ge=0)
    updated_at: int = Field(ge=0)


class ModuleVersion(RecordBase):
    """Immutable snapshot of a module at one semantic version."""

    KIND: ClassVar[RecordKind] = RecordKind.MODULE_VERSION

    module_key: str = Field(min_length=1)
    version: VersionField
    version_label: str = ""
    changelog_uri: str = ""
    is_stable: bool = False
    created_at: int = Field(ge=0)


class Fork(RecordBase):
    """A node in the fork lineage tree.

    parent is a fork key (not an address or object reference); lineage is
    fixed at creation.
    """

    KIND: ClassVar[RecordKind] = RecordKind.FORK

    fork_key: str = Field(min_length=1)
    owner: str = Field(min_length=1)
    parent: str | None = None
    label: str
    metadata_uri: str
    tags: str = ""
    is_root: bool
    depth: U32
    is_active: bool = True
    created_at: int = Field(ge=0)
    updated_at: int = Field(ge=0)

    @model_validator(mode="after")
    def check_lineage_shape(self) -> Fork:
        """Root forks have no parent and depth 0; non-roots have both."""
        if self.is_root != (self.parent is None):
            raise ValueError("is_root must be True exactly when parent is None")
        if self.is_root and self.depth != 0:
            raise ValueError("root fork must have depth 0")
        if not self.is_root and self.depth == 0:
            raise ValueError("non-root fork must have depth > 0")
        return self


class Observation(RecordBase):
    """One activity report recorded against a repo (append-only)."""

    KIND: ClassVar[RecordKind] = RecordKind.OBSERVATION

    repo_key: str = Field(min_length=1)
    sequence: U64 = Field(description="0-based index within the repo's observation log")
    observer: str = Field(min_length=1)
    lines_of_code: U64
    files_processed: U32
    modules_touched: U32
    revision: str = ""
    note: str = ""
    recorded_at: int = Field(ge=0)
