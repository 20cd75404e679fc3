"""Module registry.

A module has two data shapes:
- the Module record, whose metadata and `current_version` pointer are
  replaced on update;
- its ModuleVersion snapshots, one record per exact (major, minor, patch)
  tuple, created once and never rewritten.

`update_module` composes a metadata merge with an optional snapshot; both
commit in one transaction or neither does.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from coderegistry.address import (
    config_address,
    lifecycle_address,
    metrics_address,
    module_address,
    module_version_address,
    repo_address,
)
from coderegistry.contracts.records import Module, ModuleVersion, Repo
from coderegistry.errors import (
    AlreadyExistsError,
    InvalidArgumentError,
    LimitExceededError,
    PermissionDeniedError,
    UnauthorizedError,
)
from coderegistry.logging_config import get_logger
from coderegistry.patch import assigned, merge
from coderegistry.registry.admin import check_write_gate
from coderegistry.registry.metrics import bump_metrics, checked_add
from coderegistry.registry.validation import check_key, check_text, check_uri

if TYPE_CHECKING:
    from collections.abc import Mapping
    from typing import Any

    from coderegistry.contracts.instructions import RegisterModuleArgs, UpdateModuleArgs
    from coderegistry.ledger import Transaction
    from coderegistry.registry.context import RegistryContext
    from coderegistry.settings import RegistrySettings
    from coderegistry.version import SemanticVersion

logger = get_logger(__name__)


def _validate_metadata(settings: RegistrySettings, values: Mapping[str, Any]) -> None:
    if "name" in values:
        check_text(values["name"], "name", max_len=settings.max_name_len)
    if "metadata_uri" in values:
        check_uri(
            values["metadata_uri"],
            "metadata_uri",
            max_len=settings.max_uri_len,
            schemes=settings.metadata_uri_schemes,
        )
    if "category" in values:
        check_text(
            values["category"], "category", max_len=settings.max_category_len, allow_empty=True
        )
    if "tags" in values:
        check_text(values["tags"], "tags", max_len=settings.max_tags_len, allow_empty=True)


def _validate_snapshot_fields(
    settings: RegistrySettings, version_label: str, changelog_uri: str
) -> None:
    check_text(version_label, "version_label", max_len=settings.max_label_len, allow_empty=True)
    check_uri(
        changelog_uri,
        "changelog_uri",
        max_len=settings.max_uri_len,
        schemes=settings.metadata_uri_schemes,
        allow_empty=True,
    )


def _snapshot(
    module_key: str,
    version: SemanticVersion,
    *,
    version_label: str,
    changelog_uri: str,
    is_stable: bool,
    now: int,
) -> ModuleVersion:
    return ModuleVersion(
        module_key=module_key,
        version=version,
        version_label=version_label or version.label,
        changelog_uri=changelog_uri,
        is_stable=is_stable,
        created_at=now,
    )


def register_module(
    ctx: RegistryContext, caller: str, args: RegisterModuleArgs
) -> Transaction:
    """Create a Module (and, by default, its initial ModuleVersion).

    A taken module_key is reported before any other field is checked.

    Raises:
        NotFoundError: If repo_key does not resolve to a Repo.
        PermissionDeniedError: If the repo is inactive or writes are gated off.
        AlreadyExistsError: If module_key is already registered.
        LimitExceededError: If the repo already holds max_modules_per_repo modules.
        InvalidArgumentError: For malformed strings.
    """
    check_key(args.module_key, "module_key")

    now = ctx.now()
    mod_addr = module_address(args.module_key)
    reads = [config_address(), lifecycle_address()]
    writes = [mod_addr, metrics_address()]
    if args.repo_key:
        writes.append(repo_address(args.repo_key))
    version_addr = None
    if args.create_initial_version_snapshot:
        version_addr = module_version_address(args.module_key, args.version)
        writes.append(version_addr)

    with ctx.ledger.transaction(reads=reads, writes=writes) as tx:
        config = check_write_gate(tx)
        if tx.exists(mod_addr):
            raise AlreadyExistsError("Module already exists", module_key=args.module_key)
        check_key(args.repo_key, "repo_key")
        check_key(caller, "caller")
        _validate_metadata(
            ctx.settings, args.model_dump(include={"name", "metadata_uri", "category", "tags"})
        )
        _validate_snapshot_fields(ctx.settings, args.version_label, args.changelog_uri)

        repo_addr = repo_address(args.repo_key)
        repo = tx.require(repo_addr, Repo, what="Repo", repo_key=args.repo_key)
        if not repo.is_active:
            raise PermissionDeniedError("Repo is inactive", repo_key=args.repo_key)
        if repo.module_count >= config.max_modules_per_repo:
            raise LimitExceededError(
                "Repo module limit reached",
                repo_key=args.repo_key,
                max_modules_per_repo=config.max_modules_per_repo,
            )

        tx.create(
            mod_addr,
            Module(
                module_key=args.module_key,
                repo_key=args.repo_key,
                authority=caller,
                name=args.name,
                metadata_uri=args.metadata_uri,
                category=args.category,
                tags=args.tags,
                is_active=True,
                is_stable=args.is_stable,
                current_version=args.version,
                created_at=now,
                updated_at=now,
            ),
        )
        if version_addr is not None:
            tx.create(
                version_addr,
                _snapshot(
                    args.module_key,
                    args.version,
                    version_label=args.version_label,
                    changelog_uri=args.changelog_uri,
                    is_stable=args.is_stable,
                    now=now,
                ),
            )
        tx.put(
            repo_addr,
            repo.model_copy(
                update={
                    "module_count": checked_add(
                        repo.module_count, 1, "module_count", limit=2**32 - 1
                    ),
                    "updated_at": now,
                }
            ),
        )
        bump_metrics(tx, now, total_modules=1)
    return tx


def update_module(ctx: RegistryContext, caller: str, args: UpdateModuleArgs) -> Transaction:
    """Merge metadata and optionally publish a new version snapshot.

    Metadata fields left as None keep their stored values. When
    create_version_snapshot is False, versions and current_version are
    untouched regardless of new_version.

    Raises:
        NotFoundError: If the module does not exist.
        UnauthorizedError: If caller is not the module authority.
        AlreadyExistsError: If the (module_key, new_version) snapshot exists.
        InvalidArgumentError: For malformed values, or a non-increasing
            new_version when version ordering is enforced.
    """
    check_key(args.module_key, "module_key")
    patch = args.to_patch()
    _validate_metadata(ctx.settings, assigned(patch))

    new_version = args.new_version if args.wants_snapshot else None
    if new_version is not None:
        _validate_snapshot_fields(
            ctx.settings, args.version_label or "", args.changelog_uri or ""
        )
    elif args.new_version is not None:
        logger.debug(
            "new_version ignored without create_version_snapshot",
            extra={"module_key": args.module_key},
        )

    now = ctx.now()
    mod_addr = module_address(args.module_key)
    reads = [config_address(), lifecycle_address()]
    writes = [mod_addr]
    version_addr = None
    if new_version is not None:
        version_addr = module_version_address(args.module_key, new_version)
        writes.append(version_addr)

    with ctx.ledger.transaction(reads=reads, writes=writes) as tx:
        check_write_gate(tx)
        module = tx.require(mod_addr, Module, what="Module", module_key=args.module_key)
        if caller != module.authority:
            raise UnauthorizedError(
                "Caller is not the module authority", module_key=args.module_key
            )

        updated = merge(module, patch, updated_at=now)

        if new_version is not None and version_addr is not None:
            if tx.exists(version_addr):
                raise AlreadyExistsError(
                    f"Module version {new_version} already exists",
                    module_key=args.module_key,
                    version=str(new_version),
                )
            if ctx.settings.enforce_version_ordering and new_version <= module.current_version:
                raise InvalidArgumentError(
                    f"new_version {new_version} must be greater than "
                    f"current_version {module.current_version}",
                    field="new_version",
                )
            tx.create(
                version_addr,
                _snapshot(
                    args.module_key,
                    new_version,
                    version_label=args.version_label or "",
                    changelog_uri=args.changelog_uri or "",
                    is_stable=updated.is_stable,
                    now=now,
                ),
            )
            updated = updated.model_copy(
                update={"current_version": new_version, "updated_at": now}
            )

        if updated is not module:
            tx.put(mod_addr, updated)
    return tx
