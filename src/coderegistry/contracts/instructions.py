"""Instruction argument contracts.

One args model per registry operation. Models only enforce shape (types,
unsigned ranges); semantic rules such as string limits, URI schemes and
lineage consistency are enforced by the registry so they surface as typed
registry errors.

Update models follow the null-means-unchanged convention: a field left as
None is not touched. to_patch() lifts those fields into explicit
Keep / Assign updates.
"""

from __future__ import annotations

from typing import ClassVar

from pydantic import Field

from coderegistry.contracts.base import U32, U64, ArgsBase, OpaqueRef, VersionField
from coderegistry.contracts.types import LifecyclePhase  # noqa: TC001 - used at runtime in Pydantic
from coderegistry.patch import RecordPatch, from_optional
from coderegistry.version import SemanticVersion


class _UpdateArgs(ArgsBase):
    """Update args whose optional fields map 1:1 onto record fields."""

    PATCH_FIELDS: ClassVar[tuple[str, ...]] = ()

    def to_patch(self) -> RecordPatch:
        """Per-field Keep / Assign updates for the record."""
        return {name: from_optional(getattr(self, name)) for name in self.PATCH_FIELDS}


class InitializeArgs(ArgsBase):
    """Arguments for `initialize`."""

    admin: str
    fee_bps: int = Field(ge=0)
    max_modules_per_repo: int = Field(ge=0)
    policy_ref: OpaqueRef = ""
    lifecycle_note_ref: OpaqueRef = ""


class SetConfigArgs(_UpdateArgs):
    """Arguments for `set_config` (admin only)."""

    PATCH_FIELDS = ("admin", "fee_bps", "max_modules_per_repo", "policy_ref", "is_active")

    admin: str | None = None
    fee_bps: int | None = Field(default=None, ge=0)
    max_modules_per_repo: int | None = Field(default=None, ge=0)
    policy_ref: OpaqueRef | None = None
    is_active: bool | None = None


class SetLifecycleArgs(_UpdateArgs):
    """Arguments for `set_lifecycle` (admin only)."""

    PATCH_FIELDS = ("phase", "global_freeze", "note_ref")

    phase: LifecyclePhase | None = None
    global_freeze: bool | None = None
    note_ref: OpaqueRef | None = None


class RequireMigrationArgs(ArgsBase):
    """Arguments for `require_migration` (admin only)."""

    note_ref: OpaqueRef | None = Field(
        default=None, description="Replaces the lifecycle note when supplied"
    )


class StartMigrationArgs(ArgsBase):
    """Arguments for `start_migration` (admin only)."""

    note_ref: OpaqueRef | None = None


class CompleteMigrationArgs(ArgsBase):
    """Arguments for `complete_migration` (admin only)."""

    phase: LifecyclePhase = Field(
        default=LifecyclePhase.OPERATIONAL, description="Phase to enter once migrated"
    )


class ResetMetricsArgs(_UpdateArgs):
    """Arguments for `reset_metrics` (admin only).

    Counters left as None keep their current value.
    """

    PATCH_FIELDS = (
        "total_repos",
        "total_modules",
        "total_forks",
        "total_observations",
        "total_lines_of_code",
        "total_files_processed",
    )

    total_repos: U64 | None = None
    total_modules: U64 | None = None
    total_forks: U64 | None = None
    total_observations: U64 | None = None
    total_lines_of_code: U64 | None = None
    total_files_processed: U64 | None = None


class RegisterRepoArgs(ArgsBase):
    """Arguments for `register_repo`."""

    repo_key: str
    name: str
    url: str
    tags: str = ""
    allow_observation: bool = True


class UpdateRepoArgs(_UpdateArgs):
    """Arguments for `update_repo`."""

    PATCH_FIELDS = ("name", "url", "tags", "is_active", "allow_observation")

    repo_key: str
    name: str | None = None
    url: str | None = None
    tags: str | None = None
    is_active: bool | None = None
    allow_observation: bool | None = None


class RecordObservationArgs(ArgsBase):
    """Arguments for `record_observation`."""

    repo_key: str
    lines_of_code: U64 = 0
    files_processed: U32 = 0
    modules_touched: U32 = 0
    revision: str = ""
    note: str = ""


class RegisterModuleArgs(ArgsBase):
    """Arguments for `register_module`."""

    module_key: str
    repo_key: str
    name: str
    metadata_uri: str
    category: str = ""
    tags: str = ""
    version: VersionField = Field(default_factory=lambda: SemanticVersion(0, 1, 0))
    version_label: str = ""
    changelog_uri: str = ""
    is_stable: bool = False
    create_initial_version_snapshot: bool = True


class UpdateModuleArgs(_UpdateArgs):
    """Arguments for `update_module`.

    Metadata fields merge with null-means-unchanged semantics. A version
    snapshot is created only when create_version_snapshot is True and
    new_version is supplied.
    """

    PATCH_FIELDS = ("name", "metadata_uri", "category", "tags", "is_active", "is_stable")

    module_key: str
    name: str | None = None
    metadata_uri: str | None = None
    category: str | None = None
    tags: str | None = None
    is_active: bool | None = None

    create_version_snapshot: bool = False
    new_version: VersionField | None = None
    version_label: str | None = None
    changelog_uri: str | None = None
    is_stable: bool | None = None

    @property
    def wants_snapshot(self) -> bool:
        """Whether this update publishes a new ModuleVersion."""
        return self.create_version_snapshot and self.new_version is not None


class CreateForkArgs(ArgsBase):
    """Arguments for `create_fork`."""

    fork_key: str
    parent: str | None = None
    label: str
    metadata_uri: str
    tags: str = ""
    is_root: bool
    depth: U32


class UpdateForkStateArgs(_UpdateArgs):
    """Arguments for `update_fork_state`.

    Lineage (parent, depth, is_root) is fixed at creation and cannot be updated.
    """

    PATCH_FIELDS = ("label", "metadata_uri", "tags", "is_active")

    fork_key: str
    label: str | None = None
    metadata_uri: str | None = None
    tags: str | None = None
    is_active: bool | None = None
