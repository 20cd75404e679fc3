"""Registry data contracts.

Pydantic models for stored records and instruction arguments.

All stored records follow these invariants:
- Frozen: updates replace the record at its address, never mutate in place
- schema_version present on every record
- Unsigned counters bounded to 64 bits (32 for per-repo module counts)
"""

from coderegistry.contracts.base import (
    MAX_REF_BYTES,
    SCHEMA_VERSION,
    U64_MAX,
    ArgsBase,
    RecordBase,
)
from coderegistry.contracts.instructions import (
    CompleteMigrationArgs,
    CreateForkArgs,
    InitializeArgs,
    RecordObservationArgs,
    RegisterModuleArgs,
    RegisterRepoArgs,
    RequireMigrationArgs,
    ResetMetricsArgs,
    SetConfigArgs,
    SetLifecycleArgs,
    StartMigrationArgs,
    UpdateForkStateArgs,
    UpdateModuleArgs,
    UpdateRepoArgs,
)
from coderegistry.contracts.records import (
    METRIC_COUNTERS,
    Config,
    Fork,
    Lifecycle,
    Metrics,
    Module,
    ModuleVersion,
    Observation,
    Repo,
)
from coderegistry.contracts.types import LifecyclePhase, RecordKind

__all__ = [
    "MAX_REF_BYTES",
    "METRIC_COUNTERS",
    "SCHEMA_VERSION",
    "U64_MAX",
    "ArgsBase",
    "CompleteMigrationArgs",
    "Config",
    "CreateForkArgs",
    "Fork",
    "InitializeArgs",
    "Lifecycle",
    "LifecyclePhase",
    "Metrics",
    "Module",
    "ModuleVersion",
    "Observation",
    "RecordBase",
    "RecordKind",
    "RecordObservationArgs",
    "RegisterModuleArgs",
    "RegisterRepoArgs",
    "Repo",
    "RequireMigrationArgs",
    "ResetMetricsArgs",
    "SetConfigArgs",
    "SetLifecycleArgs",
    "StartMigrationArgs",
    "UpdateForkStateArgs",
    "UpdateModuleArgs",
    "UpdateRepoArgs",
]
