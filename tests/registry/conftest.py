"""Shared fixtures for registry operation tests."""

from __future__ import annotations

from collections.abc import Callable

import pytest
from prometheus_client.registry import CollectorRegistry

from coderegistry.contracts import (
    CreateForkArgs,
    InitializeArgs,
    RegisterModuleArgs,
    RegisterRepoArgs,
)
from coderegistry.registry import Registry
from coderegistry.settings import RegistrySettings
from coderegistry.telemetry import RegistryTelemetry

ADMIN = "admin"
ALICE = "alice"
BOB = "bob"
T0 = 1_700_000_000


class FakeClock:
    """Deterministic unix-seconds clock."""

    def __init__(self, start: int = T0) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int = 1) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def telemetry() -> RegistryTelemetry:
    return RegistryTelemetry(registry=CollectorRegistry())


@pytest.fixture
def settings() -> RegistrySettings:
    return RegistrySettings()


@pytest.fixture
def bare_registry(
    clock: FakeClock, settings: RegistrySettings, telemetry: RegistryTelemetry
) -> Registry:
    """Registry that has not been initialized."""
    return Registry(settings=settings, clock=clock, telemetry=telemetry)


@pytest.fixture
def registry(bare_registry: Registry) -> Registry:
    """Initialized registry: admin=ADMIN, fee 250 bps, 4 modules per repo."""
    bare_registry.initialize(
        ADMIN,
        InitializeArgs(admin=ADMIN, fee_bps=250, max_modules_per_repo=4, policy_ref="ab01"),
    )
    return bare_registry


@pytest.fixture
def make_repo(registry: Registry) -> Callable[..., str]:
    """Factory registering a repo; returns the tx id."""

    def _make(
        repo_key: str = "r1",
        *,
        caller: str = ALICE,
        name: str = "Demo",
        url: str = "https://x/demo",
        tags: str = "tag",
        allow_observation: bool = True,
    ) -> str:
        return registry.register_repo(
            caller,
            RegisterRepoArgs(
                repo_key=repo_key,
                name=name,
                url=url,
                tags=tags,
                allow_observation=allow_observation,
            ),
        )

    return _make


@pytest.fixture
def make_module(registry: Registry) -> Callable[..., str]:
    """Factory registering a module; returns the tx id."""

    def _make(
        module_key: str = "m1",
        repo_key: str = "r1",
        *,
        caller: str = ALICE,
        version: tuple[int, int, int] = (0, 1, 0),
        create_initial_version_snapshot: bool = True,
        is_stable: bool = False,
    ) -> str:
        return registry.register_module(
            caller,
            RegisterModuleArgs(
                module_key=module_key,
                repo_key=repo_key,
                name="Mod",
                metadata_uri="https://x/m.json",
                category="lib",
                tags="core",
                version=version,
                is_stable=is_stable,
                create_initial_version_snapshot=create_initial_version_snapshot,
            ),
        )

    return _make


@pytest.fixture
def make_fork(registry: Registry) -> Callable[..., str]:
    """Factory creating a fork; root when parent is None."""

    def _make(
        fork_key: str,
        parent: str | None = None,
        depth: int = 0,
        *,
        caller: str = ALICE,
        is_root: bool | None = None,
    ) -> str:
        return registry.create_fork(
            caller,
            CreateForkArgs(
                fork_key=fork_key,
                parent=parent,
                label=f"fork {fork_key}",
                metadata_uri="ipfs://bafyfork",
                is_root=parent is None if is_root is None else is_root,
                depth=depth,
            ),
        )

    return _make
