"""
deployreg.runtime — host side of the registry: call frames, storage backends,
event sink, ABI coercion, contract loading and the serialized Host.

Contracts never import this package directly; they use `deployreg.stdlib`.
"""

from __future__ import annotations

from .context import ZERO_ADDRESS, CallEnv, Frame, to_address, to_hex
from .events_api import CanonicalEvent, Event, EventSink
from .host import Host, Receipt
from .storage_api import (JsonFileBackend, MemoryBackend, SqliteBackend,
                          StorageBackend, open_backend)

__all__ = [
    "ZERO_ADDRESS",
    "CallEnv",
    "Frame",
    "to_address",
    "to_hex",
    "Event",
    "CanonicalEvent",
    "EventSink",
    "Host",
    "Receipt",
    "StorageBackend",
    "MemoryBackend",
    "JsonFileBackend",
    "SqliteBackend",
    "open_backend",
]
