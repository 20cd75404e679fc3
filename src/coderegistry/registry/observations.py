"""Observation recorder.

Each observation is appended as its own record at
observation/<repo_key>/<sequence>, where sequence is the repo's
observation_count before the append. The repo keeps a rolling summary and
the global Metrics are bumped in the same transaction.

The log entry address depends on the repo's current count, so the repo is
read once before the transaction opens and the count is re-checked inside
it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from coderegistry.address import (
    config_address,
    lifecycle_address,
    metrics_address,
    observation_address,
    repo_address,
)
from coderegistry.contracts.records import Observation, Repo
from coderegistry.errors import (
    ConflictError,
    LimitExceededError,
    NotFoundError,
    PermissionDeniedError,
)
from coderegistry.registry.admin import check_write_gate
from coderegistry.registry.metrics import bump_metrics, checked_add
from coderegistry.registry.validation import check_key, check_text

if TYPE_CHECKING:
    from coderegistry.contracts.instructions import RecordObservationArgs
    from coderegistry.ledger import Transaction
    from coderegistry.registry.context import RegistryContext


def _check_bounds(ctx: RegistryContext, args: RecordObservationArgs) -> None:
    settings = ctx.settings
    if args.lines_of_code > settings.max_loc_per_observation:
        raise LimitExceededError(
            "lines_of_code exceeds per-observation maximum",
            field="lines_of_code",
            max_value=settings.max_loc_per_observation,
        )
    if args.files_processed > settings.max_files_per_observation:
        raise LimitExceededError(
            "files_processed exceeds per-observation maximum",
            field="files_processed",
            max_value=settings.max_files_per_observation,
        )
    check_text(args.revision, "revision", max_len=settings.max_revision_len, allow_empty=True)
    check_text(args.note, "note", max_len=settings.max_note_len, allow_empty=True)


def record_observation(
    ctx: RegistryContext, caller: str, args: RecordObservationArgs
) -> Transaction:
    """Append an observation and update repo summary and global Metrics.

    Raises:
        NotFoundError: If the repo does not exist.
        PermissionDeniedError: If the repo disallows observation or is inactive.
        LimitExceededError: If a single observation exceeds configured maxima,
            or the repo already holds max_observations_per_repo observations.
        ConflictError: If another observation for the same repo committed
            between sequencing and commit (retryable).
    """
    check_key(args.repo_key, "repo_key")
    check_key(caller, "caller")
    _check_bounds(ctx, args)

    addr = repo_address(args.repo_key)
    current = ctx.ledger.get(addr, Repo)
    if current is None:
        raise NotFoundError("Repo not found", repo_key=args.repo_key)
    sequence = current.observation_count
    entry_addr = observation_address(args.repo_key, sequence)

    now = ctx.now()
    reads = [config_address(), lifecycle_address()]
    writes = [addr, entry_addr, metrics_address()]

    with ctx.ledger.transaction(reads=reads, writes=writes) as tx:
        check_write_gate(tx)
        repo = tx.require(addr, Repo, what="Repo", repo_key=args.repo_key)
        if repo.observation_count != sequence:
            raise ConflictError(
                "Repo observation log advanced concurrently", repo_key=args.repo_key
            )
        if not repo.is_active:
            raise PermissionDeniedError("Repo is inactive", repo_key=args.repo_key)
        if not repo.allow_observation:
            raise PermissionDeniedError(
                "Repo does not allow observation", repo_key=args.repo_key
            )
        if repo.observation_count >= ctx.settings.max_observations_per_repo:
            raise LimitExceededError(
                "Repo observation limit reached",
                repo_key=args.repo_key,
                max_value=ctx.settings.max_observations_per_repo,
            )

        tx.create(
            entry_addr,
            Observation(
                repo_key=args.repo_key,
                sequence=sequence,
                observer=caller,
                lines_of_code=args.lines_of_code,
                files_processed=args.files_processed,
                modules_touched=args.modules_touched,
                revision=args.revision,
                note=args.note,
                recorded_at=now,
            ),
        )
        tx.put(
            addr,
            repo.model_copy(
                update={
                    "observation_count": checked_add(
                        repo.observation_count, 1, "observation_count"
                    ),
                    "total_lines_of_code": checked_add(
                        repo.total_lines_of_code, args.lines_of_code, "total_lines_of_code"
                    ),
                    "total_files_processed": checked_add(
                        repo.total_files_processed, args.files_processed, "total_files_processed"
                    ),
                    "updated_at": now,
                }
            ),
        )
        bump_metrics(
            tx,
            now,
            total_observations=1,
            total_lines_of_code=args.lines_of_code,
            total_files_processed=args.files_processed,
        )
    return tx
