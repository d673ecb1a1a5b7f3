"""
deployreg.config — caps, default state location and log level.

This module centralizes configuration for the registry host. It has NO
third-party deps and is safe to import very early.

Configuration precedence:
  1) Environment variables (DEPLOYREG_*)
  2) Hardcoded safe defaults below

Key env vars:
  - DEPLOYREG_MAX_STRING_BYTES       (int)   default: 1024
  - DEPLOYREG_MAX_BATCH_ITEMS        (int)   default: 512
  - DEPLOYREG_MAX_EVENTS_PER_CALL    (int)   default: 1024
  - DEPLOYREG_MAX_STORAGE_KEY_BYTES  (int)   default: 64
  - DEPLOYREG_MAX_STORAGE_VAL_BYTES  (int)   default: 4096
  - DEPLOYREG_STATE                  (path)  default: ~/.deployreg/state.json
  - DEPLOYREG_LOG_LEVEL              (str)   default: WARNING

Integer values outside their allowed range are clamped; unparsable values
fall back to the default. max_batch_items never exceeds max_events_per_call.

Usage:
    from deployreg.config import load_config
    CFG = load_config()
    if len(names) > CFG.max_batch_items: ...
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict

DEFAULT_STATE_PATH = Path.home() / ".deployreg" / "state.json"

_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


# ----------------------------- helpers ---------------------------------------


def _env_int(name: str, default: int, *, min_v: int, max_v: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        v = int(raw, 0)
    except ValueError:
        return default
    if v < min_v:
        return min_v
    if v > max_v:
        return max_v
    return v


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if not raw:
        return default
    return Path(raw).expanduser()


def _env_log_level(name: str, default: str) -> str:
    raw = (os.getenv(name) or "").strip().upper()
    return raw if raw in _LOG_LEVELS else default


# ------------------------------- config --------------------------------------


@dataclass(frozen=True)
class RegistryConfig:
    # ABI caps (enforced before a call reaches the contract)
    max_string_bytes: int
    max_batch_items: int

    # Runtime caps
    max_events_per_call: int
    max_storage_key_bytes: int
    max_storage_value_bytes: int

    # Host / CLI
    state_path: Path
    log_level: str

    def __post_init__(self) -> None:
        # One Claimed event per batch element: max_batch_items <= max_events_per_call.
        if self.max_batch_items > self.max_events_per_call:
            object.__setattr__(self, "max_batch_items", self.max_events_per_call)

    @property
    def log_level_no(self) -> int:
        return getattr(logging, self.log_level, logging.WARNING)

    def with_overrides(self, **kwargs: Any) -> "RegistryConfig":
        return replace(self, **kwargs)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "max_string_bytes": self.max_string_bytes,
            "max_batch_items": self.max_batch_items,
            "max_events_per_call": self.max_events_per_call,
            "max_storage_key_bytes": self.max_storage_key_bytes,
            "max_storage_value_bytes": self.max_storage_value_bytes,
            "state_path": str(self.state_path),
            "log_level": self.log_level,
        }


@lru_cache(maxsize=1)
def load_config() -> RegistryConfig:
    """
    Build and cache a RegistryConfig from environment + safe defaults.
    Tests that tweak the environment must call `load_config.cache_clear()`.
    """
    return RegistryConfig(
        max_string_bytes=_env_int("DEPLOYREG_MAX_STRING_BYTES", 1024, min_v=1, max_v=4096),
        max_batch_items=_env_int("DEPLOYREG_MAX_BATCH_ITEMS", 512, min_v=1, max_v=100_000),
        max_events_per_call=_env_int("DEPLOYREG_MAX_EVENTS_PER_CALL", 1024, min_v=1, max_v=100_000),
        max_storage_key_bytes=_env_int("DEPLOYREG_MAX_STORAGE_KEY_BYTES", 64, min_v=64, max_v=256),
        max_storage_value_bytes=_env_int("DEPLOYREG_MAX_STORAGE_VAL_BYTES", 4096, min_v=32, max_v=1_048_576),
        state_path=_env_path("DEPLOYREG_STATE", DEFAULT_STATE_PATH),
        log_level=_env_log_level("DEPLOYREG_LOG_LEVEL", "WARNING"),
    )


__all__ = ["RegistryConfig", "load_config", "DEFAULT_STATE_PATH"]
