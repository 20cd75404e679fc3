"""Registry contract enums.

All enums are strict string enums so stored records stay readable as JSON.
"""

from enum import Enum


class RecordKind(str, Enum):
    """Kind tag stored alongside every record in the ledger."""

    CONFIG = "CONFIG"
    METRICS = "METRICS"
    LIFECYCLE = "LIFECYCLE"
    REPO = "REPO"
    MODULE = "MODULE"
    MODULE_VERSION = "MODULE_VERSION"
    FORK = "FORK"
    OBSERVATION = "OBSERVATION"


class LifecyclePhase(str, Enum):
    """Deployment lifecycle phases."""

    BOOTSTRAPPING = "BOOTSTRAPPING"
    OPERATIONAL = "OPERATIONAL"
    MAINTENANCE = "MAINTENANCE"
    FROZEN = "FROZEN"  # Read-only
    MIGRATION = "MIGRATION"
    SUNSET = "SUNSET"  # Read-only, no new activity

    @property
    def is_write_restricted(self) -> bool:
        """Whether registry writes are blocked in this phase."""
        return self in (LifecyclePhase.FROZEN, LifecyclePhase.MIGRATION, LifecyclePhase.SUNSET)
