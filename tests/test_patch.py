"""Tests for partial-update patches and merge."""

from __future__ import annotations

import pytest

from coderegistry.contracts import Repo
from coderegistry.patch import KEEP, Assign, Keep, assigned, from_optional, is_noop, merge

T0 = 1_700_000_000


def _repo() -> Repo:
    return Repo(
        repo_key="r1",
        authority="alice",
        name="Demo",
        url="https://x/demo",
        tags="tag",
        created_at=T0,
        updated_at=T0,
    )


class TestFromOptional:
    """Tests for from_optional."""

    def test_none_is_keep(self) -> None:
        assert from_optional(None) == KEEP
        assert isinstance(from_optional(None), Keep)

    def test_falsy_values_are_assigned(self) -> None:
        """False, 0 and "" are real values, not "unchanged"."""
        assert from_optional(False) == Assign(False)
        assert from_optional(0) == Assign(0)
        assert from_optional("") == Assign("")


class TestMerge:
    """Tests for merge."""

    def test_assigns_only_supplied_fields(self) -> None:
        old = _repo()

        new = merge(old, {"name": Assign("New"), "url": KEEP}, updated_at=T0 + 5)

        assert new.name == "New"
        assert new.url == old.url
        assert new.tags == old.tags
        assert new.updated_at == T0 + 5
        assert old.name == "Demo"

    def test_all_keep_returns_same_record(self) -> None:
        old = _repo()
        patch = {"name": KEEP, "url": KEEP}

        assert is_noop(patch)
        assert merge(old, patch, updated_at=T0 + 5) is old

    def test_unknown_field(self) -> None:
        with pytest.raises(KeyError):
            merge(_repo(), {"owner": Assign("mallory")})

    def test_unknown_stamp(self) -> None:
        with pytest.raises(KeyError):
            merge(_repo(), {"name": Assign("x")}, touched_at=1)

    def test_result_is_revalidated(self) -> None:
        with pytest.raises(ValueError):
            merge(_repo(), {"module_count": Assign(-1)})

    def test_assigned_values(self) -> None:
        patch = {"name": Assign("x"), "url": KEEP, "is_active": Assign(False)}

        assert assigned(patch) == {"name": "x", "is_active": False}
        assert not is_noop(patch)
