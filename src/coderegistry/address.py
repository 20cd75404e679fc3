"""Deterministic record addressing.

An address is the SHA-256 digest of a namespace plus key parts. Each part is
length-prefixed before hashing so adjacent parts cannot be re-split into a
colliding input (("ab", "c") and ("a", "bc") map to different addresses).

Namespaces:
    config, metrics, lifecycle          singletons (no key material)
    repo/<repo_key>
    module/<module_key>
    module_version/<module_key>/<major>/<minor>/<patch>
    fork/<fork_key>
    observation/<repo_key>/<sequence>
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import TYPE_CHECKING

from coderegistry.errors import InvalidArgumentError

if TYPE_CHECKING:
    from coderegistry.version import SemanticVersion

NS_CONFIG = "config"
NS_METRICS = "metrics"
NS_LIFECYCLE = "lifecycle"
NS_REPO = "repo"
NS_MODULE = "module"
NS_MODULE_VERSION = "module_version"
NS_FORK = "fork"
NS_OBSERVATION = "observation"

# Domain separator so registry addresses never collide with other sha256 uses
_DOMAIN = b"coderegistry.v1"

# Singletons hash a fixed marker instead of caller key material
_SINGLETON = b"\x00"


@dataclass(frozen=True, order=True)
class Address:
    """A record address (64 lowercase hex chars)."""

    digest: str

    def __str__(self) -> str:
        return self.digest

    @property
    def short(self) -> str:
        """Abbreviated form for log lines."""
        return self.digest[:12]


def _encode_part(part: str | bytes | int) -> bytes:
    if isinstance(part, bool):
        raise InvalidArgumentError("Address key part cannot be a bool")
    if isinstance(part, bytes):
        raw = part
    elif isinstance(part, str):
        raw = part.encode("utf-8")
    elif isinstance(part, int):
        if part < 0:
            raise InvalidArgumentError("Address key part must be non-negative", part=part)
        raw = part.to_bytes(8, "big")
    else:
        raise InvalidArgumentError(f"Unsupported key part type: {type(part).__name__}")
    if not raw:
        raise InvalidArgumentError("Address key part cannot be empty")
    return len(raw).to_bytes(4, "big") + raw


def derive(namespace: str, *key_parts: str | bytes | int) -> Address:
    """Derive the address for a namespace and key material.

    Args:
        namespace: Record namespace (e.g. "repo").
        key_parts: One or more non-empty key parts.

    Returns:
        Address for the record.

    Raises:
        InvalidArgumentError: If the namespace is empty, no parts are given,
            or any part is empty or of an unsupported type.
    """
    if not namespace:
        raise InvalidArgumentError("Address namespace cannot be empty")
    if not key_parts:
        raise InvalidArgumentError("Address requires at least one key part", namespace=namespace)

    h = hashlib.sha256()
    h.update(_DOMAIN)
    h.update(_encode_part(namespace))
    for part in key_parts:
        h.update(_encode_part(part))
    return Address(h.hexdigest())


def config_address() -> Address:
    return derive(NS_CONFIG, _SINGLETON)


def metrics_address() -> Address:
    return derive(NS_METRICS, _SINGLETON)


def lifecycle_address() -> Address:
    return derive(NS_LIFECYCLE, _SINGLETON)


def repo_address(repo_key: str) -> Address:
    return derive(NS_REPO, repo_key)


def module_address(module_key: str) -> Address:
    return derive(NS_MODULE, module_key)


def module_version_address(module_key: str, version: SemanticVersion) -> Address:
    """Address of the snapshot for one exact (module, major, minor, patch) tuple."""
    return derive(NS_MODULE_VERSION, module_key, version.major, version.minor, version.patch)


def fork_address(fork_key: str) -> Address:
    return derive(NS_FORK, fork_key)


def observation_address(repo_key: str, sequence: int) -> Address:
    return derive(NS_OBSERVATION, repo_key, sequence)
