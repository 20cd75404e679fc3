"""Registry facade: one method per instruction plus read-only queries.

Each mutating method takes the caller identity and an args model, runs the
instruction as a single ledger transaction and returns the opaque
transaction id. Failures propagate as typed RegistryError subclasses after
being logged and counted.

Usage:
    registry = Registry()
    registry.initialize("admin", InitializeArgs(admin="admin", fee_bps=250,
                                                max_modules_per_repo=128))
    tx_id = registry.register_repo("alice", RegisterRepoArgs(
        repo_key="r1", name="Demo", url="https://x/demo"))
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from coderegistry.address import (
    config_address,
    fork_address,
    lifecycle_address,
    metrics_address,
    module_address,
    module_version_address,
    repo_address,
)
from coderegistry.contracts.records import (
    Config,
    Fork,
    Lifecycle,
    Metrics,
    Module,
    ModuleVersion,
    Observation,
    Repo,
)
from coderegistry.errors import RegistryError
from coderegistry.ledger import Ledger
from coderegistry.logging_config import get_logger
from coderegistry.registry import admin, forks, metrics, modules, observations, repos
from coderegistry.registry.context import RegistryContext, unix_now
from coderegistry.settings import RegistrySettings
from coderegistry.telemetry import RegistryTelemetry
from coderegistry.version import parse_semantic_version

if TYPE_CHECKING:
    from collections.abc import Callable

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
    from coderegistry.ledger import Transaction
    from coderegistry.version import SemanticVersion

logger = get_logger(__name__)


class Registry:
    """Artifact registry state machine over a transactional ledger."""

    def __init__(
        self,
        *,
        ledger: Ledger | None = None,
        settings: RegistrySettings | None = None,
        clock: Callable[[], int] | None = None,
        telemetry: RegistryTelemetry | None = None,
    ) -> None:
        """
        Initialize the registry.

        Args:
            ledger: Record store (default: a fresh in-memory Ledger).
            settings: Limits and policy switches (default: RegistrySettings()).
            clock: Unix-seconds clock (default: wall clock).
            telemetry: Prometheus counters for operation outcomes (optional).
        """
        self._ctx = RegistryContext(
            ledger=ledger if ledger is not None else Ledger(),
            settings=settings if settings is not None else RegistrySettings(),
            clock=clock if clock is not None else unix_now,
        )
        self._telemetry = telemetry

    @property
    def ledger(self) -> Ledger:
        return self._ctx.ledger

    @property
    def settings(self) -> RegistrySettings:
        return self._ctx.settings

    def _run(
        self,
        op: str,
        handler: Callable[[RegistryContext, str, Any], Transaction],
        caller: str,
        args: Any,
        **log_fields: Any,
    ) -> str:
        try:
            tx = handler(self._ctx, caller, args)
        except RegistryError as e:
            logger.warning(
                "Registry operation rejected",
                extra={"op": op, "error_kind": e.kind.value, "reason": e.message, **log_fields},
            )
            if self._telemetry is not None:
                self._telemetry.record_failure(op, e.kind)
            raise

        if tx.tx_id is None:
            raise RuntimeError(f"{op} returned an uncommitted transaction")
        logger.info(
            "Registry operation committed",
            extra={"op": op, "tx_id": tx.tx_id, "slot": tx.slot, **log_fields},
        )
        if self._telemetry is not None:
            self._telemetry.record_success(op)
        return tx.tx_id

    # ------------------------------------------------------------------
    # Administrative instructions
    # ------------------------------------------------------------------

    def initialize(self, caller: str, args: InitializeArgs) -> str:
        return self._run("initialize", admin.initialize, caller, args)

    def set_config(self, caller: str, args: SetConfigArgs) -> str:
        return self._run("set_config", admin.set_config, caller, args)

    def set_lifecycle(self, caller: str, args: SetLifecycleArgs) -> str:
        return self._run("set_lifecycle", admin.set_lifecycle, caller, args)

    def require_migration(self, caller: str, args: RequireMigrationArgs) -> str:
        return self._run("require_migration", admin.require_migration, caller, args)

    def start_migration(self, caller: str, args: StartMigrationArgs) -> str:
        return self._run("start_migration", admin.start_migration, caller, args)

    def complete_migration(self, caller: str, args: CompleteMigrationArgs) -> str:
        return self._run(
            "complete_migration", admin.complete_migration, caller, args, phase=args.phase.value
        )

    def reset_metrics(self, caller: str, args: ResetMetricsArgs) -> str:
        return self._run("reset_metrics", metrics.reset_metrics, caller, args)

    # ------------------------------------------------------------------
    # Repos and observations
    # ------------------------------------------------------------------

    def register_repo(self, caller: str, args: RegisterRepoArgs) -> str:
        return self._run(
            "register_repo", repos.register_repo, caller, args, repo_key=args.repo_key
        )

    def update_repo(self, caller: str, args: UpdateRepoArgs) -> str:
        return self._run("update_repo", repos.update_repo, caller, args, repo_key=args.repo_key)

    def record_observation(self, caller: str, args: RecordObservationArgs) -> str:
        return self._run(
            "record_observation",
            observations.record_observation,
            caller,
            args,
            repo_key=args.repo_key,
            lines_of_code=args.lines_of_code,
        )

    # ------------------------------------------------------------------
    # Modules
    # ------------------------------------------------------------------

    def register_module(self, caller: str, args: RegisterModuleArgs) -> str:
        return self._run(
            "register_module",
            modules.register_module,
            caller,
            args,
            module_key=args.module_key,
            repo_key=args.repo_key,
            version=str(args.version),
        )

    def update_module(self, caller: str, args: UpdateModuleArgs) -> str:
        return self._run(
            "update_module",
            modules.update_module,
            caller,
            args,
            module_key=args.module_key,
            snapshot=args.wants_snapshot,
        )

    # ------------------------------------------------------------------
    # Forks
    # ------------------------------------------------------------------

    def create_fork(self, caller: str, args: CreateForkArgs) -> str:
        return self._run(
            "create_fork", forks.create_fork, caller, args, fork_key=args.fork_key, depth=args.depth
        )

    def update_fork_state(self, caller: str, args: UpdateForkStateArgs) -> str:
        return self._run(
            "update_fork_state", forks.update_fork_state, caller, args, fork_key=args.fork_key
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_config(self) -> Config | None:
        return self.ledger.get(config_address(), Config)

    def get_lifecycle(self) -> Lifecycle | None:
        return self.ledger.get(lifecycle_address(), Lifecycle)

    def get_metrics(self) -> Metrics | None:
        return self.ledger.get(metrics_address(), Metrics)

    def get_repo(self, repo_key: str) -> Repo | None:
        return self.ledger.get(repo_address(repo_key), Repo)

    def list_repos(self) -> list[Repo]:
        return sorted(self.ledger.records(Repo), key=lambda r: (r.created_at, r.repo_key))

    def get_module(self, module_key: str) -> Module | None:
        return self.ledger.get(module_address(module_key), Module)

    def list_modules(self, repo_key: str | None = None) -> list[Module]:
        """All modules, optionally restricted to one repo."""
        found = self.ledger.records(Module)
        if repo_key is not None:
            found = [m for m in found if m.repo_key == repo_key]
        return sorted(found, key=lambda m: (m.created_at, m.module_key))

    def get_module_version(
        self, module_key: str, version: SemanticVersion | str | tuple[int, int, int]
    ) -> ModuleVersion | None:
        parsed = parse_semantic_version(version)
        return self.ledger.get(module_version_address(module_key, parsed), ModuleVersion)

    def list_module_versions(self, module_key: str) -> list[ModuleVersion]:
        """Snapshots of one module, oldest version first."""
        found = [v for v in self.ledger.records(ModuleVersion) if v.module_key == module_key]
        return sorted(found, key=lambda v: v.version)

    def get_fork(self, fork_key: str) -> Fork | None:
        return self.ledger.get(fork_address(fork_key), Fork)

    def list_forks(self) -> list[Fork]:
        return sorted(self.ledger.records(Fork), key=lambda f: (f.depth, f.fork_key))

    def fork_lineage(self, fork_key: str) -> list[Fork]:
        """The fork followed by its ancestors, ending at the root."""
        return forks.fork_lineage(self.ledger, fork_key)

    def list_observations(self, repo_key: str) -> list[Observation]:
        """Observation log of one repo in append order."""
        found = [o for o in self.ledger.records(Observation) if o.repo_key == repo_key]
        return sorted(found, key=lambda o: o.sequence)
