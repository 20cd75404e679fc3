"""Repo registry.

Repos are never deleted; `update_repo(is_active=False)` deactivates them.
The registering caller becomes the repo authority and is the only identity
allowed to update it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from coderegistry.address import (
    config_address,
    lifecycle_address,
    metrics_address,
    repo_address,
)
from coderegistry.contracts.records import Repo
from coderegistry.errors import AlreadyExistsError, UnauthorizedError
from coderegistry.patch import assigned, merge
from coderegistry.registry.admin import check_write_gate
from coderegistry.registry.metrics import bump_metrics
from coderegistry.registry.validation import check_key, check_text, check_url

if TYPE_CHECKING:
    from collections.abc import Mapping
    from typing import Any

    from coderegistry.contracts.instructions import RegisterRepoArgs, UpdateRepoArgs
    from coderegistry.ledger import Transaction
    from coderegistry.registry.context import RegistryContext
    from coderegistry.settings import RegistrySettings


def _validate_fields(settings: RegistrySettings, values: Mapping[str, Any]) -> None:
    if "name" in values:
        check_text(values["name"], "name", max_len=settings.max_name_len)
    if "url" in values:
        check_url(values["url"], "url", max_len=settings.max_url_len)
    if "tags" in values:
        check_text(values["tags"], "tags", max_len=settings.max_tags_len, allow_empty=True)


def register_repo(ctx: RegistryContext, caller: str, args: RegisterRepoArgs) -> Transaction:
    """Create a Repo and increment Metrics.total_repos.

    A taken repo_key is reported before any other field is checked.

    Raises:
        AlreadyExistsError: If repo_key is already registered.
        InvalidArgumentError: For empty/oversized name or url, a url without a
            scheme, or oversized tags.
        PermissionDeniedError: If registry writes are gated off.
    """
    check_key(args.repo_key, "repo_key")

    now = ctx.now()
    addr = repo_address(args.repo_key)
    reads = [config_address(), lifecycle_address()]
    writes = [addr, metrics_address()]

    with ctx.ledger.transaction(reads=reads, writes=writes) as tx:
        check_write_gate(tx)
        if tx.exists(addr):
            raise AlreadyExistsError("Repo already exists", repo_key=args.repo_key)
        check_key(caller, "caller")
        _validate_fields(ctx.settings, args.model_dump(include={"name", "url", "tags"}))

        tx.create(
            addr,
            Repo(
                repo_key=args.repo_key,
                authority=caller,
                name=args.name,
                url=args.url,
                tags=args.tags,
                is_active=True,
                allow_observation=args.allow_observation,
                created_at=now,
                updated_at=now,
            ),
        )
        bump_metrics(tx, now, total_repos=1)
    return tx


def update_repo(ctx: RegistryContext, caller: str, args: UpdateRepoArgs) -> Transaction:
    """Merge supplied fields into an existing Repo.

    Fields left as None keep their stored values exactly.

    Raises:
        NotFoundError: If the repo does not exist.
        UnauthorizedError: If caller is not the repo authority.
        InvalidArgumentError: For malformed supplied values.
    """
    check_key(args.repo_key, "repo_key")
    patch = args.to_patch()
    _validate_fields(ctx.settings, assigned(patch))

    now = ctx.now()
    addr = repo_address(args.repo_key)
    reads = [config_address(), lifecycle_address()]

    with ctx.ledger.transaction(reads=reads, writes=[addr]) as tx:
        check_write_gate(tx)
        repo = tx.require(addr, Repo, what="Repo", repo_key=args.repo_key)
        if caller != repo.authority:
            raise UnauthorizedError("Caller is not the repo authority", repo_key=args.repo_key)
        tx.put(addr, merge(repo, patch, updated_at=now))
    return tx
