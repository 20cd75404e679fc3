"""Tests for fork creation, state updates and lineage."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from coderegistry.contracts import CreateForkArgs, UpdateForkStateArgs
from coderegistry.errors import (
    AlreadyExistsError,
    InvalidArgumentError,
    LimitExceededError,
    NotFoundError,
    UnauthorizedError,
)
from coderegistry.registry import Registry
from coderegistry.settings import RegistrySettings

ALICE = "alice"
BOB = "bob"


class TestCreateFork:
    """Tests for create_fork."""

    def test_root_fork(self, registry: Registry, make_fork: Callable[..., str]) -> None:
        make_fork("root")

        fork = registry.get_fork("root")
        assert fork is not None
        assert fork.is_root is True
        assert fork.parent is None
        assert fork.depth == 0
        assert fork.owner == ALICE
        assert fork.is_active is True
        assert registry.get_metrics().total_forks == 1

    def test_child_depth_is_parent_plus_one(
        self, registry: Registry, make_fork: Callable[..., str]
    ) -> None:
        make_fork("root")
        make_fork("child", parent="root", depth=1, caller=BOB)
        make_fork("grandchild", parent="child", depth=2)

        for fork in registry.list_forks():
            if fork.is_root:
                assert fork.depth == 0
            else:
                assert fork.depth == registry.get_fork(fork.parent).depth + 1
        assert registry.get_fork("child").owner == BOB
        assert registry.get_metrics().total_forks == 3

    @pytest.mark.parametrize("depth", [0, 2, 7])
    def test_wrong_depth_rejected(
        self, registry: Registry, make_fork: Callable[..., str], depth: int
    ) -> None:
        make_fork("root")

        with pytest.raises(InvalidArgumentError) as exc_info:
            make_fork("child", parent="root", depth=depth)

        assert exc_info.value.details["field"] == "depth"
        assert registry.get_fork("child") is None
        assert registry.get_metrics().total_forks == 1

    def test_root_with_nonzero_depth_rejected(
        self, registry: Registry, make_fork: Callable[..., str]
    ) -> None:
        with pytest.raises(InvalidArgumentError):
            make_fork("root", depth=1)

    def test_root_with_parent_rejected(
        self, registry: Registry, make_fork: Callable[..., str]
    ) -> None:
        make_fork("root")

        with pytest.raises(InvalidArgumentError):
            make_fork("other", parent="root", depth=1, is_root=True)

    def test_non_root_without_parent_rejected(
        self, registry: Registry, make_fork: Callable[..., str]
    ) -> None:
        with pytest.raises(InvalidArgumentError):
            make_fork("orphan", parent=None, depth=1, is_root=False)

    def test_self_parent_rejected(
        self, registry: Registry, make_fork: Callable[..., str]
    ) -> None:
        with pytest.raises(InvalidArgumentError):
            make_fork("loop", parent="loop", depth=1)

    def test_missing_parent(self, registry: Registry, make_fork: Callable[..., str]) -> None:
        with pytest.raises(NotFoundError):
            make_fork("child", parent="ghost", depth=1)

        assert registry.get_metrics().total_forks == 0

    def test_duplicate_fork_key(
        self, registry: Registry, make_fork: Callable[..., str]
    ) -> None:
        """Uniqueness holds regardless of the other field values."""
        make_fork("root")
        make_fork("child", parent="root", depth=1)

        with pytest.raises(AlreadyExistsError):
            make_fork("child")
        with pytest.raises(AlreadyExistsError):
            make_fork("root", caller=BOB)

        assert registry.get_fork("child").parent == "root"
        assert registry.get_metrics().total_forks == 2

    @pytest.mark.parametrize(
        "overrides",
        [
            {"depth": 5},
            {"is_root": True, "parent": "root", "depth": 1},
            {"is_root": False, "parent": None},
            {"parent": "child"},
            {"parent": "missing", "depth": 3},
            {"metadata_uri": "gopher://x"},
            {"label": ""},
            {"depth": 10_000},
        ],
    )
    def test_duplicate_key_with_malformed_fields_reports_duplicate(
        self, registry: Registry, make_fork: Callable[..., str], overrides: dict[str, Any]
    ) -> None:
        """A taken fork_key wins over field, lineage and depth errors."""
        make_fork("root")
        make_fork("child", parent="root", depth=1)
        original = registry.get_fork("child")
        fields: dict[str, Any] = {
            "fork_key": "child",
            "parent": "root",
            "label": "Child",
            "metadata_uri": "ipfs://bafyfork",
            "is_root": False,
            "depth": 1,
            **overrides,
        }

        with pytest.raises(AlreadyExistsError):
            registry.create_fork(BOB, CreateForkArgs(**fields))

        assert registry.get_fork("child") == original
        assert registry.get_metrics().total_forks == 2

    def test_invalid_metadata_uri(self, registry: Registry) -> None:
        with pytest.raises(InvalidArgumentError):
            registry.create_fork(
                ALICE,
                CreateForkArgs(
                    fork_key="root", label="Root", metadata_uri="gopher://x", is_root=True, depth=0
                ),
            )


class TestForkDepthLimit:
    """Tests for max_fork_depth."""

    @pytest.fixture
    def settings(self) -> RegistrySettings:
        return RegistrySettings(max_fork_depth=2)

    def test_depth_beyond_limit_rejected(
        self, registry: Registry, make_fork: Callable[..., str]
    ) -> None:
        make_fork("f0")
        make_fork("f1", parent="f0", depth=1)
        make_fork("f2", parent="f1", depth=2)

        with pytest.raises(LimitExceededError):
            make_fork("f3", parent="f2", depth=3)


class TestUpdateForkState:
    """Tests for update_fork_state."""

    def test_merge_supplied_fields(
        self, registry: Registry, make_fork: Callable[..., str], clock: Any
    ) -> None:
        make_fork("root")
        make_fork("child", parent="root", depth=1)
        before = registry.get_fork("child")
        clock.advance(5)

        registry.update_fork_state(
            ALICE, UpdateForkStateArgs(fork_key="child", label="Renamed", is_active=False)
        )

        after = registry.get_fork("child")
        assert after.label == "Renamed"
        assert after.is_active is False
        assert after.metadata_uri == before.metadata_uri
        assert after.parent == "root"
        assert after.depth == 1
        assert after.updated_at == before.updated_at + 5

    def test_all_unspecified_is_identity(
        self, registry: Registry, make_fork: Callable[..., str], clock: Any
    ) -> None:
        make_fork("root")
        before = registry.get_fork("root")
        clock.advance(5)

        registry.update_fork_state(ALICE, UpdateForkStateArgs(fork_key="root"))

        assert registry.get_fork("root") == before

    def test_non_owner_rejected(self, registry: Registry, make_fork: Callable[..., str]) -> None:
        make_fork("root")

        with pytest.raises(UnauthorizedError):
            registry.update_fork_state(BOB, UpdateForkStateArgs(fork_key="root", label="x"))

    def test_missing_fork(self, registry: Registry) -> None:
        with pytest.raises(NotFoundError):
            registry.update_fork_state(ALICE, UpdateForkStateArgs(fork_key="ghost", label="x"))

    def test_lineage_fields_not_updatable(self) -> None:
        """parent/depth/is_root are not part of the update surface."""
        with pytest.raises(ValueError):
            UpdateForkStateArgs(fork_key="root", depth=3)  # type: ignore[call-arg]


class TestForkLineage:
    """Tests for fork_lineage."""

    def test_walks_to_root(self, registry: Registry, make_fork: Callable[..., str]) -> None:
        make_fork("a")
        make_fork("b", parent="a", depth=1)
        make_fork("c", parent="b", depth=2)
        make_fork("side", parent="a", depth=1)

        lineage = registry.fork_lineage("c")

        assert [f.fork_key for f in lineage] == ["c", "b", "a"]
        assert [f.depth for f in lineage] == [2, 1, 0]

    def test_root_lineage(self, registry: Registry, make_fork: Callable[..., str]) -> None:
        make_fork("a")

        assert [f.fork_key for f in registry.fork_lineage("a")] == ["a"]

    def test_missing_fork(self, registry: Registry) -> None:
        with pytest.raises(NotFoundError):
            registry.fork_lineage("ghost")
