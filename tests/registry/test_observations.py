"""Tests for observation recording."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from coderegistry.contracts import RecordObservationArgs, UpdateRepoArgs
from coderegistry.errors import (
    InvalidArgumentError,
    LimitExceededError,
    NotFoundError,
    PermissionDeniedError,
)
from coderegistry.registry import Registry
from coderegistry.settings import RegistrySettings

ALICE = "alice"
BOT = "scanner-bot"


def _observe(registry: Registry, repo_key: str = "r1", **kwargs: object) -> str:
    return registry.record_observation(
        BOT, RecordObservationArgs(repo_key=repo_key, **kwargs)  # type: ignore[arg-type]
    )


class TestRecordObservation:
    """Tests for record_observation."""

    def test_appends_log_and_updates_summaries(
        self, registry: Registry, make_repo: Callable[..., str]
    ) -> None:
        make_repo("r1")

        _observe(
            registry, lines_of_code=1200, files_processed=30, modules_touched=2, revision="abc123"
        )
        _observe(registry, lines_of_code=800, files_processed=10)

        log = registry.list_observations("r1")
        assert [o.sequence for o in log] == [0, 1]
        assert log[0].observer == BOT
        assert log[0].revision == "abc123"
        assert log[0].modules_touched == 2

        repo = registry.get_repo("r1")
        assert repo.observation_count == 2
        assert repo.total_lines_of_code == 2000
        assert repo.total_files_processed == 40

        metrics = registry.get_metrics()
        assert metrics.total_observations == 2
        assert metrics.total_lines_of_code == 2000
        assert metrics.total_files_processed == 40

    def test_logs_are_per_repo(
        self, registry: Registry, make_repo: Callable[..., str]
    ) -> None:
        make_repo("r1")
        make_repo("r2")

        _observe(registry, "r1", lines_of_code=1)
        _observe(registry, "r2", lines_of_code=2)
        _observe(registry, "r1", lines_of_code=3)

        assert [o.lines_of_code for o in registry.list_observations("r1")] == [1, 3]
        assert [o.sequence for o in registry.list_observations("r2")] == [0]
        assert registry.get_metrics().total_lines_of_code == 6

    def test_disallowed_after_update(
        self, registry: Registry, make_repo: Callable[..., str]
    ) -> None:
        """Turning allow_observation off blocks further observations."""
        make_repo("r1")
        registry.update_repo(
            ALICE, UpdateRepoArgs(repo_key="r1", name=None, url=None, allow_observation=False)
        )

        with pytest.raises(PermissionDeniedError):
            _observe(registry, lines_of_code=10)

        assert registry.list_observations("r1") == []
        assert registry.get_metrics().total_observations == 0

    def test_disallowed_at_registration(
        self, registry: Registry, make_repo: Callable[..., str]
    ) -> None:
        make_repo("r1", allow_observation=False)

        with pytest.raises(PermissionDeniedError):
            _observe(registry)

    def test_inactive_repo_rejected(
        self, registry: Registry, make_repo: Callable[..., str]
    ) -> None:
        make_repo("r1")
        registry.update_repo(ALICE, UpdateRepoArgs(repo_key="r1", is_active=False))

        with pytest.raises(PermissionDeniedError):
            _observe(registry)

    def test_missing_repo(self, registry: Registry) -> None:
        with pytest.raises(NotFoundError):
            _observe(registry, "ghost")

    def test_oversized_note_rejected(
        self, registry: Registry, make_repo: Callable[..., str]
    ) -> None:
        make_repo("r1")

        with pytest.raises(InvalidArgumentError):
            _observe(registry, note="n" * 257)


class TestObservationBounds:
    """Tests for per-observation maxima."""

    @pytest.fixture
    def settings(self) -> RegistrySettings:
        return RegistrySettings(max_loc_per_observation=1000, max_files_per_observation=10)

    def test_loc_over_limit(self, registry: Registry, make_repo: Callable[..., str]) -> None:
        make_repo("r1")

        with pytest.raises(LimitExceededError) as exc_info:
            _observe(registry, lines_of_code=1001)

        assert exc_info.value.details["field"] == "lines_of_code"
        assert registry.get_repo("r1").observation_count == 0

    def test_files_over_limit(self, registry: Registry, make_repo: Callable[..., str]) -> None:
        make_repo("r1")

        with pytest.raises(LimitExceededError):
            _observe(registry, files_processed=11)

    def test_at_limit_accepted(self, registry: Registry, make_repo: Callable[..., str]) -> None:
        make_repo("r1")

        _observe(registry, lines_of_code=1000, files_processed=10)

        assert registry.get_repo("r1").total_lines_of_code == 1000


class TestObservationLogLimit:
    """Tests for max_observations_per_repo."""

    @pytest.fixture
    def settings(self) -> RegistrySettings:
        return RegistrySettings(max_observations_per_repo=2)

    def test_log_full_rejected(self, registry: Registry, make_repo: Callable[..., str]) -> None:
        make_repo("r1")
        _observe(registry, lines_of_code=10)
        _observe(registry, lines_of_code=10)

        with pytest.raises(LimitExceededError) as exc_info:
            _observe(registry, lines_of_code=10)

        assert exc_info.value.details["max_value"] == 2
        assert registry.get_repo("r1").observation_count == 2
        assert registry.get_repo("r1").total_lines_of_code == 20
        assert len(registry.list_observations("r1")) == 2
        assert registry.get_metrics().total_observations == 2

    def test_limit_is_per_repo(self, registry: Registry, make_repo: Callable[..., str]) -> None:
        make_repo("r1")
        make_repo("r2")
        _observe(registry, "r1")
        _observe(registry, "r1")

        _observe(registry, "r2")

        assert registry.get_repo("r2").observation_count == 1
