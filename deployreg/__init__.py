"""
deployreg — namespaced deployment registry with per-namespace admins.

A party claims a deployment namespace (first claim wins), becomes its admin,
and registers name → address entries in it; anyone can query them.

Public entrypoints:

- Registry                typed facade (deployreg.client)
- Host, Receipt           serialized execution host (deployreg.runtime)
- errors                  AlreadyClaimed, NamespaceNotFound, NotAuthorized, ...
- load_config()           env-driven caps and defaults
- __version__
"""

from __future__ import annotations

from .client import Registry
from .config import RegistryConfig, load_config
from .errors import (AlreadyClaimed, NamespaceNotFound, NotAuthorized,
                     RegistryError, Revert, ValidationError)
from .runtime import ZERO_ADDRESS, Host, Receipt
from .version import __version__


def version() -> str:
    """Return the deployreg semantic version string."""
    return __version__


__all__ = [
    "__version__",
    "version",
    "Registry",
    "Host",
    "Receipt",
    "ZERO_ADDRESS",
    "RegistryConfig",
    "load_config",
    "RegistryError",
    "ValidationError",
    "Revert",
    "AlreadyClaimed",
    "NamespaceNotFound",
    "NotAuthorized",
]
