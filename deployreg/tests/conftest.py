# -*- coding: utf-8 -*-
"""
deployreg.tests.conftest
========================

Pytest fixtures for the registry host and contract.

- Stable 20-byte addresses derived from tags (no randomness).
- A fresh Host / Registry per test over an in-memory backend.
- Event recording via host observers.
- Config cache isolation so env tweaks in one test never leak into another.

Usage (inside a test file):
    def test_claim(registry, accounts):
        alice = accounts["alice"]
        registry.claim("op-mainnet", alice, sender=alice)
        assert registry.is_admin("op-mainnet", alice)
"""
from __future__ import annotations

import hashlib
import json
import os
from typing import Any, Dict, Iterator, List, Optional

import pytest

from deployreg.client import Registry
from deployreg.config import load_config
from deployreg.runtime.events_api import Event
from deployreg.runtime.host import Host

os.environ.setdefault("TZ", "UTC")

ZERO = "0x" + "00" * 20


def det_address(tag: str) -> str:
    """Stable 20-byte hex address (0x...) derived from a tag."""
    return "0x" + hashlib.sha3_256(tag.encode("utf-8")).hexdigest()[:40]


@pytest.fixture(autouse=True)
def _fresh_config(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for key in list(os.environ):
        if key.startswith("DEPLOYREG_"):
            monkeypatch.delenv(key, raising=False)
    load_config.cache_clear()
    yield
    load_config.cache_clear()


@pytest.fixture(scope="session")
def accounts() -> Dict[str, str]:
    return {tag: det_address(tag) for tag in ("alice", "bob", "carol", "mallory")}


@pytest.fixture
def host() -> Host:
    return Host()


@pytest.fixture
def registry() -> Registry:
    return Registry()


@pytest.fixture
def recorded(host: Host) -> List[Event]:
    """Events seen by an observer on `host`, in delivery order."""
    seen: List[Event] = []
    host.subscribe(seen.append)
    return seen


# --- pretty assertion diffs for bytes & small dicts --------------------------

def pytest_assertrepr_compare(op: str, left: Any, right: Any) -> Optional[List[str]]:
    if isinstance(left, (bytes, bytearray)) and isinstance(right, (bytes, bytearray)) and op == "==":
        return [
            "bytes differ:",
            f" left: {bytes(left).hex()}",
            f"right: {bytes(right).hex()}",
        ]
    if isinstance(left, dict) and isinstance(right, dict) and op == "==":
        try:
            lj = json.dumps(left, sort_keys=True, indent=2, default=str)
            rj = json.dumps(right, sort_keys=True, indent=2, default=str)
        except (TypeError, ValueError):
            return None
        return ["dicts differ (compact JSON):", " left:", lj, " right:", rj]
    return None
