"""Fork registry.

Forks form a tree addressed by key: each record stores its parent's fork
key, never an object reference. Depth is recomputed from the parent and
compared with the caller's value; lineage is immutable after creation.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from coderegistry.address import (
    config_address,
    fork_address,
    lifecycle_address,
    metrics_address,
)
from coderegistry.contracts.records import Fork
from coderegistry.errors import (
    AlreadyExistsError,
    InternalInconsistencyError,
    InvalidArgumentError,
    LimitExceededError,
    NotFoundError,
    UnauthorizedError,
)
from coderegistry.patch import assigned, merge
from coderegistry.registry.admin import check_write_gate
from coderegistry.registry.metrics import bump_metrics
from coderegistry.registry.validation import check_key, check_text, check_uri

if TYPE_CHECKING:
    from collections.abc import Mapping
    from typing import Any

    from coderegistry.contracts.instructions import CreateForkArgs, UpdateForkStateArgs
    from coderegistry.ledger import Ledger, Transaction
    from coderegistry.registry.context import RegistryContext
    from coderegistry.settings import RegistrySettings


def _validate_fields(settings: RegistrySettings, values: Mapping[str, Any]) -> None:
    if "label" in values:
        check_text(values["label"], "label", max_len=settings.max_label_len)
    if "metadata_uri" in values:
        check_uri(
            values["metadata_uri"],
            "metadata_uri",
            max_len=settings.max_uri_len,
            schemes=settings.metadata_uri_schemes,
        )
    if "tags" in values:
        check_text(values["tags"], "tags", max_len=settings.max_tags_len, allow_empty=True)


def create_fork(ctx: RegistryContext, caller: str, args: CreateForkArgs) -> Transaction:
    """Create a Fork under an existing parent, or as a new root.

    A taken fork_key is reported before any other field is checked.

    Raises:
        AlreadyExistsError: If fork_key is already registered.
        NotFoundError: If a parent is supplied but does not exist.
        InvalidArgumentError: If is_root disagrees with parent, depth does not
            equal parent.depth + 1 (0 for roots), or a string is malformed.
        LimitExceededError: If depth exceeds max_fork_depth.
    """
    check_key(args.fork_key, "fork_key")

    now = ctx.now()
    addr = fork_address(args.fork_key)
    reads = [config_address(), lifecycle_address()]
    if args.parent:
        reads.append(fork_address(args.parent))

    with ctx.ledger.transaction(reads=reads, writes=[addr, metrics_address()]) as tx:
        check_write_gate(tx)
        if tx.exists(addr):
            raise AlreadyExistsError("Fork already exists", fork_key=args.fork_key)
        check_key(caller, "caller")
        _validate_fields(
            ctx.settings, args.model_dump(include={"label", "metadata_uri", "tags"})
        )

        if args.is_root and args.parent is not None:
            raise InvalidArgumentError("Root fork cannot have a parent", field="parent")
        if not args.is_root and args.parent is None:
            raise InvalidArgumentError("Non-root fork requires a parent", field="parent")
        if args.parent is not None:
            check_key(args.parent, "parent")
            if args.parent == args.fork_key:
                raise InvalidArgumentError("Fork cannot be its own parent", field="parent")
        if args.depth > ctx.settings.max_fork_depth:
            raise LimitExceededError(
                "Fork depth exceeds maximum",
                depth=args.depth,
                max_fork_depth=ctx.settings.max_fork_depth,
            )

        expected_depth = 0
        if args.parent is not None:
            parent = tx.require(
                fork_address(args.parent), Fork, what="Parent fork", parent=args.parent
            )
            expected_depth = parent.depth + 1
        if args.depth != expected_depth:
            raise InvalidArgumentError(
                f"depth must be {expected_depth}, got {args.depth}",
                field="depth",
                expected=expected_depth,
            )

        tx.create(
            addr,
            Fork(
                fork_key=args.fork_key,
                owner=caller,
                parent=args.parent,
                label=args.label,
                metadata_uri=args.metadata_uri,
                tags=args.tags,
                is_root=args.is_root,
                depth=expected_depth,
                is_active=True,
                created_at=now,
                updated_at=now,
            ),
        )
        bump_metrics(tx, now, total_forks=1)
    return tx


def update_fork_state(
    ctx: RegistryContext, caller: str, args: UpdateForkStateArgs
) -> Transaction:
    """Merge label/metadata/tags/is_active into an existing Fork.

    Raises:
        NotFoundError: If the fork does not exist.
        UnauthorizedError: If caller is not the fork owner.
        InvalidArgumentError: For malformed supplied values.
    """
    check_key(args.fork_key, "fork_key")
    patch = args.to_patch()
    _validate_fields(ctx.settings, assigned(patch))

    now = ctx.now()
    addr = fork_address(args.fork_key)
    reads = [config_address(), lifecycle_address()]

    with ctx.ledger.transaction(reads=reads, writes=[addr]) as tx:
        check_write_gate(tx)
        fork = tx.require(addr, Fork, what="Fork", fork_key=args.fork_key)
        if caller != fork.owner:
            raise UnauthorizedError("Caller is not the fork owner", fork_key=args.fork_key)
        tx.put(addr, merge(fork, patch, updated_at=now))
    return tx


def fork_lineage(ledger: Ledger, fork_key: str) -> list[Fork]:
    """Return the fork followed by its ancestors up to the root.

    Raises:
        NotFoundError: If the fork does not exist.
        InternalInconsistencyError: If an ancestor is missing or depths are
            not strictly decreasing by one.
    """
    fork = ledger.get(fork_address(fork_key), Fork)
    if fork is None:
        raise NotFoundError("Fork not found", fork_key=fork_key)

    chain = [fork]
    while chain[-1].parent is not None:
        child = chain[-1]
        parent = ledger.get(fork_address(child.parent), Fork)
        if parent is None:
            raise InternalInconsistencyError(
                "Fork parent missing", fork_key=child.fork_key, parent=child.parent
            )
        if parent.depth + 1 != child.depth:
            raise InternalInconsistencyError(
                "Fork depth does not match parent", fork_key=child.fork_key
            )
        chain.append(parent)
    return chain
