"""Metrics aggregator.

The global Metrics record is replaced, never mutated, as the final write of
each creating transaction. Increments are checked: an unsigned counter that
would pass 2**64-1 aborts the whole transaction.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from coderegistry.address import config_address, metrics_address
from coderegistry.contracts.base import U64_MAX
from coderegistry.contracts.records import METRIC_COUNTERS, Config, Metrics
from coderegistry.errors import CounterOverflowError
from coderegistry.logging_config import get_logger
from coderegistry.patch import KEEP, merge
from coderegistry.registry.admin import require_admin

if TYPE_CHECKING:
    from coderegistry.contracts.instructions import ResetMetricsArgs
    from coderegistry.ledger import Transaction
    from coderegistry.registry.context import RegistryContext

logger = get_logger(__name__)


def checked_add(current: int, delta: int, field: str, *, limit: int = U64_MAX) -> int:
    """Add without wrapping.

    Raises:
        CounterOverflowError: If the result would exceed `limit`.
    """
    if delta < 0:
        raise CounterOverflowError(f"{field} delta must be non-negative", field=field)
    result = current + delta
    if result > limit:
        raise CounterOverflowError(
            f"{field} would overflow", field=field, current=current, delta=delta
        )
    return result


def increment(metrics: Metrics, now: int, **deltas: int) -> Metrics:
    """Return Metrics with the given counters increased.

    Args:
        metrics: Current Metrics record.
        now: Timestamp for updated_at.
        deltas: counter name -> non-negative amount.
    """
    unknown = set(deltas) - set(METRIC_COUNTERS)
    if unknown:
        raise KeyError(f"Unknown metrics counter(s): {', '.join(sorted(unknown))}")
    updates = {
        name: checked_add(getattr(metrics, name), delta, name) for name, delta in deltas.items()
    }
    return metrics.model_copy(update={**updates, "updated_at": now})


def bump_metrics(tx: Transaction, now: int, **deltas: int) -> Metrics:
    """Load, increment and stage the Metrics record inside a transaction."""
    address = metrics_address()
    current = tx.require(address, Metrics, what="Metrics")
    updated = increment(current, now, **deltas)
    tx.put(address, updated)
    return updated


def reset_metrics(ctx: RegistryContext, caller: str, args: ResetMetricsArgs) -> Transaction:
    """Administrative override of aggregate counters.

    The only sanctioned way to lower a counter. Counters not supplied keep
    their values.

    Raises:
        NotFoundError: If the registry is not initialized.
        UnauthorizedError: If caller is not the admin.
    """
    now = ctx.now()
    cfg_addr = config_address()
    metrics_addr = metrics_address()

    with ctx.ledger.transaction(reads=[cfg_addr], writes=[metrics_addr]) as tx:
        config = tx.require(cfg_addr, Config, what="Config")
        require_admin(config, caller)
        metrics = tx.require(metrics_addr, Metrics, what="Metrics")

        patch = args.to_patch()
        tx.put(metrics_addr, merge(metrics, patch, updated_at=now, last_reset_at=now))

    logger.debug(
        "Metrics counters overridden",
        extra={"counters": sorted(name for name, update in patch.items() if update != KEEP)},
    )
    return tx
