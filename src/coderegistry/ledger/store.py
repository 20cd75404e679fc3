"""In-process transactional record store.

Provides the substrate contract the registry relies on:
- Each transaction declares the addresses it reads and writes up front.
- Declared write addresses are locked (in sorted order) for the whole
  transaction, so overlapping writers serialize and the later one observes
  the earlier one's committed state.
- Declared reads are version-checked at commit; if a read record changed in
  the meantime the commit fails with ConflictError and nothing is written.
- Writes are staged and applied all at once on clean exit; any exception
  discards them.

Usage:
    ledger = Ledger()
    with ledger.transaction(reads=[cfg_addr], writes=[repo_addr, metrics_addr]) as tx:
        config = tx.require(cfg_addr, Config, what="Config")
        tx.create(repo_addr, repo)
        tx.put(metrics_addr, metrics)
    tx.tx_id  # set after commit
"""

from __future__ import annotations

import hashlib
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar, cast

from coderegistry.errors import (
    AlreadyExistsError,
    ConflictError,
    InternalInconsistencyError,
    NotFoundError,
)
from coderegistry.logging_config import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from coderegistry.address import Address
    from coderegistry.contracts.base import RecordBase
    from coderegistry.contracts.types import RecordKind

logger = get_logger(__name__)

R = TypeVar("R", bound="RecordBase")


@dataclass(frozen=True)
class _Entry:
    """Committed record bytes plus the slot that last wrote them."""

    kind: RecordKind
    payload: bytes
    version: int


class Transaction:
    """A single all-or-nothing unit of work against declared addresses."""

    def __init__(
        self,
        ledger: Ledger,
        reads: frozenset[Address],
        writes: frozenset[Address],
    ) -> None:
        self._ledger = ledger
        self._reads = reads
        self._writes = writes
        # address -> committed version observed (None = absent)
        self._observed: dict[Address, int | None] = {}
        # address -> (kind, payload) staged for commit
        self._staged: dict[Address, tuple[RecordKind, bytes]] = {}
        self.tx_id: str | None = None
        self.slot: int | None = None

    @property
    def declared(self) -> frozenset[Address]:
        return self._reads | self._writes

    def _check_declared(self, address: Address, *, write: bool) -> None:
        allowed = self._writes if write else self.declared
        if address not in allowed:
            access = "write" if write else "read"
            raise InternalInconsistencyError(
                f"Undeclared {access} of address {address.short}",
                address=str(address),
            )

    def _fetch(self, address: Address) -> tuple[RecordKind, bytes] | None:
        if address in self._staged:
            return self._staged[address]
        entry = self._ledger._read_entry(address)
        self._observed.setdefault(address, entry.version if entry else None)
        if entry is None:
            return None
        return entry.kind, entry.payload

    def exists(self, address: Address) -> bool:
        """Whether a record is present (staged or committed)."""
        self._check_declared(address, write=False)
        return self._fetch(address) is not None

    def load(self, address: Address, model: type[R]) -> R | None:
        """Load and decode a record, or None if the address is empty."""
        self._check_declared(address, write=False)
        found = self._fetch(address)
        if found is None:
            return None
        kind, payload = found
        if kind != model.KIND:
            raise InternalInconsistencyError(
                f"Address {address.short} holds {kind.value}, expected {model.KIND.value}",
                address=str(address),
            )
        return cast(R, model.from_json(payload))

    def require(self, address: Address, model: type[R], *, what: str, **details: Any) -> R:
        """Load a record that must exist.

        Raises:
            NotFoundError: If the address is empty.
        """
        record = self.load(address, model)
        if record is None:
            raise NotFoundError(f"{what} not found", **details)
        return record

    def create(self, address: Address, record: RecordBase) -> None:
        """Stage a record at an address that must be empty.

        Raises:
            AlreadyExistsError: If the address is occupied.
        """
        self._check_declared(address, write=True)
        if self._fetch(address) is not None:
            raise AlreadyExistsError(
                f"{record.KIND.value} already exists",
                address=str(address),
            )
        self._staged[address] = (record.KIND, record.to_json())

    def put(self, address: Address, record: RecordBase) -> None:
        """Stage a replacement for an existing record.

        Raises:
            NotFoundError: If the address is empty.
        """
        self._check_declared(address, write=True)
        if self._fetch(address) is None:
            raise NotFoundError(
                f"{record.KIND.value} not found",
                address=str(address),
            )
        self._staged[address] = (record.KIND, record.to_json())


class Ledger:
    """Thread-safe in-memory record store with atomic multi-record commits."""

    def __init__(self) -> None:
        self._entries: dict[Address, _Entry] = {}
        self._slot = 0
        self._commit_lock = threading.Lock()
        self._locks_guard = threading.Lock()
        self._address_locks: dict[Address, threading.Lock] = {}

    @property
    def slot(self) -> int:
        """Number of committed transactions."""
        return self._slot

    def __len__(self) -> int:
        with self._commit_lock:
            return len(self._entries)

    def _lock_for(self, address: Address) -> threading.Lock:
        with self._locks_guard:
            lock = self._address_locks.get(address)
            if lock is None:
                lock = threading.Lock()
                self._address_locks[address] = lock
            return lock

    def _read_entry(self, address: Address) -> _Entry | None:
        with self._commit_lock:
            return self._entries.get(address)

    @contextmanager
    def transaction(
        self,
        *,
        reads: Iterable[Address] = (),
        writes: Iterable[Address] = (),
    ) -> Iterator[Transaction]:
        """Open a transaction over a declared read/write set.

        Commits on clean exit; discards all staged writes if the block raises.

        Raises:
            ConflictError: If a declared read changed before commit.
        """
        write_set = frozenset(writes)
        read_set = frozenset(reads) - write_set
        locks = [self._lock_for(address) for address in sorted(write_set)]
        for lock in locks:
            lock.acquire()
        try:
            tx = Transaction(self, read_set, write_set)
            yield tx
            self._commit(tx)
        finally:
            for lock in reversed(locks):
                lock.release()

    def _commit(self, tx: Transaction) -> None:
        with self._commit_lock:
            for address, seen in tx._observed.items():
                if address not in tx._reads:
                    continue
                current = self._entries.get(address)
                if (current.version if current else None) != seen:
                    raise ConflictError(
                        f"Record {address.short} changed during transaction",
                        address=str(address),
                    )

            self._slot += 1
            slot = self._slot
            digest = hashlib.sha256(slot.to_bytes(8, "big"))
            for address in sorted(tx._staged):
                kind, payload = tx._staged[address]
                digest.update(address.digest.encode())
                digest.update(payload)
                self._entries[address] = _Entry(kind=kind, payload=payload, version=slot)

        tx.slot = slot
        tx.tx_id = digest.hexdigest()
        logger.debug(
            "Transaction committed",
            extra={"slot": slot, "tx_id": tx.tx_id, "writes": len(tx._staged)},
        )

    def get(self, address: Address, model: type[R]) -> R | None:
        """Read a committed record outside any transaction."""
        entry = self._read_entry(address)
        if entry is None:
            return None
        if entry.kind != model.KIND:
            raise InternalInconsistencyError(
                f"Address {address.short} holds {entry.kind.value}, expected {model.KIND.value}",
                address=str(address),
            )
        return cast(R, model.from_json(entry.payload))

    def records(self, model: type[R]) -> list[R]:
        """All committed records of one kind, in address order."""
        with self._commit_lock:
            payloads = [
                entry.payload
                for _, entry in sorted(self._entries.items())
                if entry.kind == model.KIND
            ]
        return [cast(R, model.from_json(payload)) for payload in payloads]
