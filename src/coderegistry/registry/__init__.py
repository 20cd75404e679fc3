"""Registry state machine.

Instruction handlers grouped by entity, plus the Registry facade:
- admin: initialize, set_config, set_lifecycle, write gate
- metrics: checked counters, reset_metrics
- repos / observations / modules / forks: entity operations
"""

from coderegistry.registry.context import RegistryContext, unix_now
from coderegistry.registry.forks import fork_lineage
from coderegistry.registry.program import Registry

__all__ = [
    "Registry",
    "RegistryContext",
    "fork_lineage",
    "unix_now",
]
