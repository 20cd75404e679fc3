"""Config store and lifecycle gate.

Config, Metrics and Lifecycle are singletons created together by
`initialize`. Every non-admin mutation first passes `check_write_gate`:
the registry must be initialized and active, and its Lifecycle must allow
writes. A required migration blocks writes until the admin starts it.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING

from coderegistry.address import config_address, lifecycle_address, metrics_address
from coderegistry.contracts.records import Config, Lifecycle, Metrics
from coderegistry.contracts.types import LifecyclePhase
from coderegistry.errors import (
    AlreadyExistsError,
    InvalidArgumentError,
    PermissionDeniedError,
    UnauthorizedError,
)
from coderegistry.logging_config import get_logger
from coderegistry.patch import Assign, assigned, merge
from coderegistry.registry.validation import check_key, check_ref

if TYPE_CHECKING:
    from collections.abc import Iterator

    from coderegistry.contracts.instructions import (
        CompleteMigrationArgs,
        InitializeArgs,
        RequireMigrationArgs,
        SetConfigArgs,
        SetLifecycleArgs,
        StartMigrationArgs,
    )
    from coderegistry.ledger import Transaction
    from coderegistry.registry.context import RegistryContext

logger = get_logger(__name__)

MAX_FEE_BPS = 10_000


def require_admin(config: Config, caller: str) -> None:
    """Raises UnauthorizedError unless caller is the configured admin."""
    if caller != config.admin:
        raise UnauthorizedError("Caller is not the registry admin")


def check_write_gate(tx: Transaction) -> Config:
    """Load Config and Lifecycle and ensure registry writes are allowed.

    Returns:
        The current Config.

    Raises:
        NotFoundError: If the registry is not initialized.
        PermissionDeniedError: If the registry is deactivated, frozen, or in a
            write-restricted phase, or a required migration has not started.
    """
    config = tx.require(config_address(), Config, what="Config")
    lifecycle = tx.require(lifecycle_address(), Lifecycle, what="Lifecycle")

    if not config.is_active:
        raise PermissionDeniedError("Registry is deactivated")
    if not lifecycle.writes_allowed:
        raise PermissionDeniedError(
            lifecycle.write_block_reason or "Registry writes are blocked",
            phase=lifecycle.phase.value,
        )
    return config


def _check_config_values(
    *,
    fee_bps: int | None = None,
    max_modules_per_repo: int | None = None,
) -> None:
    if fee_bps is not None and fee_bps > MAX_FEE_BPS:
        raise InvalidArgumentError(
            f"fee_bps must be <= {MAX_FEE_BPS}", field="fee_bps", value=fee_bps
        )
    if max_modules_per_repo is not None and max_modules_per_repo == 0:
        raise InvalidArgumentError(
            "max_modules_per_repo must be > 0", field="max_modules_per_repo"
        )


def initialize(ctx: RegistryContext, caller: str, args: InitializeArgs) -> Transaction:
    """Create Config, zeroed Metrics and a BOOTSTRAPPING Lifecycle.

    Raises:
        AlreadyExistsError: If the registry was already initialized.
        InvalidArgumentError: For an empty admin, out-of-range fee or cap, or
            oversized refs.
    """
    check_key(args.admin, "admin")
    _check_config_values(fee_bps=args.fee_bps, max_modules_per_repo=args.max_modules_per_repo)
    check_ref(args.policy_ref, "policy_ref")
    check_ref(args.lifecycle_note_ref, "lifecycle_note_ref")

    now = ctx.now()
    cfg_addr = config_address()
    metrics_addr = metrics_address()
    lifecycle_addr = lifecycle_address()

    with ctx.ledger.transaction(writes=[cfg_addr, metrics_addr, lifecycle_addr]) as tx:
        if tx.exists(cfg_addr):
            raise AlreadyExistsError("Registry is already initialized")

        tx.create(
            cfg_addr,
            Config(
                admin=args.admin,
                fee_bps=args.fee_bps,
                max_modules_per_repo=args.max_modules_per_repo,
                policy_ref=args.policy_ref,
                lifecycle_note_ref=args.lifecycle_note_ref,
                created_at=now,
                updated_at=now,
            ),
        )
        tx.create(metrics_addr, Metrics(created_at=now, updated_at=now))
        tx.create(
            lifecycle_addr,
            Lifecycle(
                phase=LifecyclePhase.BOOTSTRAPPING,
                note_ref=args.lifecycle_note_ref,
                phase_changed_at=now,
                created_at=now,
                updated_at=now,
            ),
        )

    logger.debug("Registry initialized", extra={"initializer": caller})
    return tx


def set_config(ctx: RegistryContext, caller: str, args: SetConfigArgs) -> Transaction:
    """Admin-only partial update of Config.

    Raises:
        NotFoundError: If the registry is not initialized.
        UnauthorizedError: If caller is not the admin.
        InvalidArgumentError: For out-of-range values.
    """
    patch = args.to_patch()
    values = assigned(patch)
    _check_config_values(
        fee_bps=values.get("fee_bps"),
        max_modules_per_repo=values.get("max_modules_per_repo"),
    )
    if "admin" in values:
        check_key(values["admin"], "admin")
    if "policy_ref" in values:
        check_ref(values["policy_ref"], "policy_ref")

    now = ctx.now()
    cfg_addr = config_address()
    with ctx.ledger.transaction(writes=[cfg_addr]) as tx:
        config = tx.require(cfg_addr, Config, what="Config")
        require_admin(config, caller)
        tx.put(cfg_addr, merge(config, patch, updated_at=now))
    return tx


def set_lifecycle(ctx: RegistryContext, caller: str, args: SetLifecycleArgs) -> Transaction:
    """Admin-only partial update of Lifecycle.

    Raises:
        NotFoundError: If the registry is not initialized.
        UnauthorizedError: If caller is not the admin.
    """
    patch = args.to_patch()
    values = assigned(patch)
    if "note_ref" in values:
        check_ref(values["note_ref"], "note_ref")

    now = ctx.now()
    cfg_addr = config_address()
    lifecycle_addr = lifecycle_address()
    with ctx.ledger.transaction(reads=[cfg_addr], writes=[lifecycle_addr]) as tx:
        config = tx.require(cfg_addr, Config, what="Config")
        require_admin(config, caller)
        lifecycle = tx.require(lifecycle_addr, Lifecycle, what="Lifecycle")

        stamps: dict[str, int] = {"updated_at": now}
        phase_update = patch.get("phase")
        if isinstance(phase_update, Assign) and phase_update.value != lifecycle.phase:
            stamps["phase_changed_at"] = now
        updated = merge(lifecycle, patch, **stamps)
        tx.put(lifecycle_addr, updated)

    if updated.phase != lifecycle.phase:
        logger.info(
            "Lifecycle phase changed",
            extra={"from_phase": lifecycle.phase.value, "to_phase": updated.phase.value},
        )
    return tx


@contextmanager
def _migration_tx(
    ctx: RegistryContext, caller: str
) -> Iterator[tuple[Transaction, Lifecycle]]:
    cfg_addr = config_address()
    lifecycle_addr = lifecycle_address()
    with ctx.ledger.transaction(reads=[cfg_addr], writes=[lifecycle_addr]) as tx:
        config = tx.require(cfg_addr, Config, what="Config")
        require_admin(config, caller)
        yield tx, tx.require(lifecycle_addr, Lifecycle, what="Lifecycle")


def _note_update(note_ref: str | None) -> dict[str, str]:
    if note_ref is None:
        return {}
    check_ref(note_ref, "note_ref")
    return {"note_ref": note_ref}


def require_migration(
    ctx: RegistryContext, caller: str, args: RequireMigrationArgs
) -> Transaction:
    """Flag that a migration must run before further writes.

    Until `start_migration` runs, the write gate rejects every non-admin
    mutation.

    Raises:
        NotFoundError: If the registry is not initialized.
        UnauthorizedError: If caller is not the admin.
        AlreadyExistsError: If a migration is already required.
    """
    update = _note_update(args.note_ref)
    now = ctx.now()
    with _migration_tx(ctx, caller) as (tx, lifecycle):
        if lifecycle.migration_required:
            raise AlreadyExistsError("Registry migration is already required")
        tx.put(
            lifecycle_address(),
            lifecycle.model_copy(
                update={
                    **update,
                    "migration_required": True,
                    "migration_state_changed_at": now,
                    "updated_at": now,
                }
            ),
        )

    logger.info("Registry migration required")
    return tx


def start_migration(ctx: RegistryContext, caller: str, args: StartMigrationArgs) -> Transaction:
    """Enter the MIGRATION phase for a required migration.

    Raises:
        NotFoundError: If the registry is not initialized.
        UnauthorizedError: If caller is not the admin.
        InvalidArgumentError: If no migration is required.
        AlreadyExistsError: If the migration is already in progress.
    """
    update = _note_update(args.note_ref)
    now = ctx.now()
    with _migration_tx(ctx, caller) as (tx, lifecycle):
        if not lifecycle.migration_required:
            raise InvalidArgumentError("No registry migration is required")
        if lifecycle.migration_in_progress:
            raise AlreadyExistsError("Registry migration is already in progress")
        tx.put(
            lifecycle_address(),
            lifecycle.model_copy(
                update={
                    **update,
                    "migration_in_progress": True,
                    "migration_state_changed_at": now,
                    "phase": LifecyclePhase.MIGRATION,
                    "phase_changed_at": now,
                    "updated_at": now,
                }
            ),
        )

    logger.info(
        "Registry migration started",
        extra={"from_phase": lifecycle.phase.value, "to_phase": LifecyclePhase.MIGRATION.value},
    )
    return tx


def complete_migration(
    ctx: RegistryContext, caller: str, args: CompleteMigrationArgs
) -> Transaction:
    """Clear the migration flags and move to the requested phase.

    Raises:
        NotFoundError: If the registry is not initialized.
        UnauthorizedError: If caller is not the admin.
        InvalidArgumentError: If no migration is in progress, or the target
            phase is MIGRATION.
    """
    if args.phase == LifecyclePhase.MIGRATION:
        raise InvalidArgumentError(
            "Cannot complete a migration into the MIGRATION phase", field="phase"
        )
    now = ctx.now()
    with _migration_tx(ctx, caller) as (tx, lifecycle):
        if not lifecycle.migration_in_progress:
            raise InvalidArgumentError("No registry migration is in progress")
        tx.put(
            lifecycle_address(),
            lifecycle.model_copy(
                update={
                    "migration_required": False,
                    "migration_in_progress": False,
                    "migration_state_changed_at": now,
                    "phase": args.phase,
                    "phase_changed_at": now,
                    "updated_at": now,
                }
            ),
        )

    logger.info(
        "Registry migration completed",
        extra={"from_phase": lifecycle.phase.value, "to_phase": args.phase.value},
    )
    return tx
