"""Execution context shared by registry instruction handlers."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field

from coderegistry.ledger import Ledger
from coderegistry.settings import RegistrySettings


def unix_now() -> int:
    """Current unix time in whole seconds."""
    return int(time.time())


@dataclass(frozen=True)
class RegistryContext:
    """Ledger, settings and clock for one registry instance.

    Attributes:
        ledger: Record store all operations commit to.
        settings: Limits and policy switches.
        clock: Returns the current unix timestamp (seconds).
    """

    ledger: Ledger = field(default_factory=Ledger)
    settings: RegistrySettings = field(default_factory=RegistrySettings)
    clock: Callable[[], int] = unix_now

    def now(self) -> int:
        return self.clock()
