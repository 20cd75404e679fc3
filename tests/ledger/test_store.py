"""Tests for the transactional record store."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from coderegistry.address import config_address, repo_address
from coderegistry.contracts import InitializeArgs, Metrics, RegisterRepoArgs, Repo
from coderegistry.errors import (
    AlreadyExistsError,
    ConflictError,
    InternalInconsistencyError,
    NotFoundError,
)
from coderegistry.ledger import Ledger
from coderegistry.registry import Registry

T0 = 1_700_000_000


def _repo(key: str, name: str = "Demo") -> Repo:
    return Repo(
        repo_key=key,
        authority="alice",
        name=name,
        url="https://x/demo",
        created_at=T0,
        updated_at=T0,
    )


class TestTransaction:
    """Tests for staging, commit and rollback."""

    def test_commit_applies_writes(self) -> None:
        ledger = Ledger()
        addr = repo_address("r1")

        with ledger.transaction(writes=[addr]) as tx:
            tx.create(addr, _repo("r1"))
            assert ledger.get(addr, Repo) is None

        assert ledger.get(addr, Repo) == _repo("r1")
        assert tx.slot == 1
        assert tx.tx_id is not None
        assert len(tx.tx_id) == 64

    def test_exception_discards_all_writes(self) -> None:
        ledger = Ledger()
        a, b = repo_address("a"), repo_address("b")

        with pytest.raises(RuntimeError), ledger.transaction(writes=[a, b]) as tx:
            tx.create(a, _repo("a"))
            tx.create(b, _repo("b"))
            raise RuntimeError("abort")

        assert len(ledger) == 0
        assert ledger.slot == 0
        assert tx.tx_id is None

    def test_staged_writes_visible_inside_transaction(self) -> None:
        ledger = Ledger()
        addr = repo_address("r1")

        with ledger.transaction(writes=[addr]) as tx:
            tx.create(addr, _repo("r1"))
            assert tx.exists(addr)
            tx.put(addr, _repo("r1", name="Renamed"))
            assert tx.load(addr, Repo).name == "Renamed"

        assert ledger.get(addr, Repo).name == "Renamed"

    def test_create_on_occupied_address(self) -> None:
        ledger = Ledger()
        addr = repo_address("r1")
        with ledger.transaction(writes=[addr]) as tx:
            tx.create(addr, _repo("r1"))

        with pytest.raises(AlreadyExistsError), ledger.transaction(writes=[addr]) as tx:
            tx.create(addr, _repo("r1"))

    def test_put_on_empty_address(self) -> None:
        ledger = Ledger()
        addr = repo_address("r1")

        with pytest.raises(NotFoundError), ledger.transaction(writes=[addr]) as tx:
            tx.put(addr, _repo("r1"))

    def test_require_missing(self) -> None:
        ledger = Ledger()
        addr = repo_address("r1")

        with pytest.raises(NotFoundError, match="Repo not found"), ledger.transaction(
            reads=[addr]
        ) as tx:
            tx.require(addr, Repo, what="Repo", repo_key="r1")

    def test_undeclared_access_rejected(self) -> None:
        ledger = Ledger()
        declared, other = repo_address("a"), repo_address("b")

        with ledger.transaction(reads=[declared]) as tx:
            with pytest.raises(InternalInconsistencyError):
                tx.load(other, Repo)
            with pytest.raises(InternalInconsistencyError):
                tx.create(declared, _repo("a"))

    def test_kind_mismatch_rejected(self) -> None:
        ledger = Ledger()
        addr = repo_address("r1")
        with ledger.transaction(writes=[addr]) as tx:
            tx.create(addr, _repo("r1"))

        with pytest.raises(InternalInconsistencyError):
            ledger.get(addr, Metrics)

    def test_changed_read_raises_conflict(self) -> None:
        """A declared read that changes before commit aborts the transaction."""
        ledger = Ledger()
        watched, target = repo_address("watched"), repo_address("target")
        with ledger.transaction(writes=[watched]) as tx:
            tx.create(watched, _repo("watched"))

        with pytest.raises(ConflictError), ledger.transaction(
            reads=[watched], writes=[target]
        ) as tx:
            tx.load(watched, Repo)
            with ledger.transaction(writes=[watched]) as other:
                other.put(watched, _repo("watched", name="Changed"))
            tx.create(target, _repo("target"))

        assert ledger.get(target, Repo) is None
        assert ledger.get(watched, Repo).name == "Changed"


class TestLedgerQueries:
    """Tests for get and records."""

    def test_records_filters_by_kind(self) -> None:
        ledger = Ledger()
        with ledger.transaction(writes=[repo_address("a"), config_address()]) as tx:
            tx.create(repo_address("a"), _repo("a"))
        with ledger.transaction(writes=[repo_address("b")]) as tx:
            tx.create(repo_address("b"), _repo("b"))

        keys = sorted(r.repo_key for r in ledger.records(Repo))

        assert keys == ["a", "b"]
        assert ledger.records(Metrics) == []
        assert ledger.slot == 2

    def test_reads_decode_to_requested_model(self) -> None:
        """load, get and records all return instances of the requested model."""
        ledger = Ledger()
        addr = repo_address("r1")
        with ledger.transaction(writes=[addr]) as tx:
            tx.create(addr, _repo("r1"))

        with ledger.transaction(reads=[addr]) as tx:
            loaded = tx.load(addr, Repo)
        fetched = ledger.get(addr, Repo)
        (listed,) = ledger.records(Repo)

        for record in (loaded, fetched, listed):
            assert isinstance(record, Repo)
            assert record == _repo("r1")


class TestConcurrentCreation:
    """Concurrent duplicate creations commit exactly once."""

    def test_duplicate_registrations_race(self) -> None:
        registry = Registry(clock=lambda: T0)
        registry.initialize(
            "admin", InitializeArgs(admin="admin", fee_bps=0, max_modules_per_repo=8)
        )
        barrier = threading.Barrier(8)

        def attempt(i: int) -> str:
            barrier.wait()
            try:
                registry.register_repo(
                    f"caller-{i}",
                    RegisterRepoArgs(repo_key="r1", name=f"Demo {i}", url="https://x/demo"),
                )
            except AlreadyExistsError:
                return "duplicate"
            return "created"

        with ThreadPoolExecutor(max_workers=8) as pool:
            outcomes = list(pool.map(attempt, range(8)))

        assert outcomes.count("created") == 1
        assert outcomes.count("duplicate") == 7
        assert registry.get_metrics().total_repos == 1
