"""
Prometheus counters for registry operation outcomes.

Exports low-cardinality metrics only: the operation name and the outcome or
error kind. Entity keys, callers and addresses are never used as labels.

These process-local counters are observability only; the authoritative
aggregate counters live in the on-ledger Metrics record.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from prometheus_client import Counter
from prometheus_client.registry import CollectorRegistry

if TYPE_CHECKING:
    from coderegistry.errors import ErrorKind

# Labels that would cause cardinality explosion
FORBIDDEN_LABELS = frozenset(
    {
        "repo_key",
        "module_key",
        "fork_key",
        "caller",
        "authority",
        "address",
        "tx_id",
    }
)

OUTCOME_SUCCESS = "success"
OUTCOME_FAILURE = "failure"


class RegistryTelemetry:
    """
    Prometheus exporter for registry operations.

    Metric names:
    - coderegistry_operations_total{operation,outcome}
    - coderegistry_operation_failures_total{operation,kind}

    Usage:
        registry = CollectorRegistry()
        telemetry = RegistryTelemetry(registry=registry)
        telemetry.record_success("register_repo")
        # generate_latest(registry) -> bytes for /metrics endpoint
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """
        Initialize telemetry.

        Args:
            registry: Prometheus CollectorRegistry. If None, a private one is created.
        """
        self._registry = registry or CollectorRegistry()

        self._operations = Counter(
            "coderegistry_operations",
            "Registry operations by outcome",
            labelnames=("operation", "outcome"),
            registry=self._registry,
        )
        self._failures = Counter(
            "coderegistry_operation_failures",
            "Failed registry operations by error kind",
            labelnames=("operation", "kind"),
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def record_success(self, operation: str) -> None:
        self._operations.labels(operation=operation, outcome=OUTCOME_SUCCESS).inc()

    def record_failure(self, operation: str, kind: ErrorKind) -> None:
        self._operations.labels(operation=operation, outcome=OUTCOME_FAILURE).inc()
        self._failures.labels(operation=operation, kind=kind.value).inc()
