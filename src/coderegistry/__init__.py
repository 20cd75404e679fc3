"""Versioned, key-addressed registry of repos, modules, module versions and forks."""

from coderegistry.errors import ErrorKind, RegistryError
from coderegistry.registry import Registry, RegistryContext
from coderegistry.settings import RegistrySettings

__version__ = "0.1.0"

__all__ = [
    "ErrorKind",
    "Registry",
    "RegistryContext",
    "RegistryError",
    "RegistrySettings",
    "__version__",
]
