"""
deployreg.runtime.context — call environment and the active call frame.

A *frame* binds, for the duration of exactly one host call:
  - the CallEnv (invoking identity + per-host call nonce),
  - the storage backend the contract reads and writes,
  - the event sink that collects emitted events.

The contract-facing stdlib (storage/events/env) resolves everything through
`current_frame()`, so the same contract module can run against any number of
independent hosts. The active frame is context-local, so hosts running on
different threads each see their own frame. Frames do not nest: within one
thread, binding a second frame while one is active is a ContextError.

Design notes
------------
- Addresses are raw 20-byte values. Hex strings (with or without "0x") are
  accepted by `to_address` and normalized to bytes.
- The zero address is a valid value (it is the "unset" sentinel on reads).
"""

from __future__ import annotations

import contextlib
from contextvars import ContextVar
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Iterator, Optional, Union

from deployreg.errors import ContextError

if TYPE_CHECKING:  # pragma: no cover
    from deployreg.config import RegistryConfig
    from deployreg.runtime.events_api import EventSink
    from deployreg.runtime.storage_api import StorageBackend

ADDRESS_LEN = 20
ZERO_ADDRESS: bytes = b"\x00" * ADDRESS_LEN

AddressLike = Union[bytes, bytearray, memoryview, str]


# ----------------------------- helpers ----------------------------- #


def _strip_0x(s: str) -> str:
    return s[2:] if s.startswith(("0x", "0X")) else s


def to_bytes(value: AddressLike) -> bytes:
    """
    Coerce `value` to bytes.
    - If str, interpret as hex (with or without '0x'); odd-length hex is rejected.
    - If a bytes-like object, copy to immutable bytes.
    """
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        h = _strip_0x(value.strip())
        if len(h) % 2 != 0:
            raise ContextError(f"hex string must have even length, got {len(h)}")
        try:
            return bytes.fromhex(h)
        except ValueError as e:
            raise ContextError(f"invalid hex string: {value!r}") from e
    raise ContextError(f"cannot convert type {type(value).__name__} to bytes")


def to_hex(b: Union[bytes, bytearray, memoryview]) -> str:
    """Encode bytes as 0x-prefixed lowercase hex."""
    return "0x" + bytes(b).hex()


def to_address(value: AddressLike) -> bytes:
    """Normalize `value` to a 20-byte address or raise ContextError."""
    b = to_bytes(value)
    if len(b) != ADDRESS_LEN:
        raise ContextError(
            f"address must be {ADDRESS_LEN} bytes, got {len(b)}",
            context={"value": value if isinstance(value, str) else to_hex(b)},
        )
    return b


# ------------------------------ models ------------------------------ #


@dataclass(frozen=True)
class CallEnv:
    """
    Per-call environment visible to contracts.

    Fields
    ------
    sender: Invoking identity (20-byte address) supplied by the host.
    nonce:  Monotonic per-host call counter (0-based).
    """

    sender: bytes
    nonce: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "sender", to_address(self.sender))
        if not isinstance(self.nonce, int) or self.nonce < 0:
            raise ContextError(f"nonce must be a non-negative int, got {self.nonce!r}")

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CallEnv":
        return cls(sender=d.get("sender", ZERO_ADDRESS), nonce=int(d.get("nonce", 0)))

    def to_dict(self) -> Dict[str, Any]:
        return {"sender": to_hex(self.sender), "nonce": self.nonce}


@dataclass
class Frame:
    env: CallEnv
    storage: "StorageBackend"
    events: "EventSink"
    config: "RegistryConfig"


# One active frame per thread / asyncio task.
_CURRENT: ContextVar[Optional[Frame]] = ContextVar("deployreg_frame", default=None)


def current_frame() -> Frame:
    frame = _CURRENT.get()
    if frame is None:
        raise ContextError("no active call frame (contract code must run inside Host.execute)")
    return frame


def has_frame() -> bool:
    return _CURRENT.get() is not None


@contextlib.contextmanager
def bind(frame: Frame) -> Iterator[Frame]:
    """Activate `frame` for the duration of the with-block."""
    if _CURRENT.get() is not None:
        raise ContextError("a call frame is already active; calls do not nest")
    token = _CURRENT.set(frame)
    try:
        yield frame
    finally:
        _CURRENT.reset(token)


__all__ = [
    "ADDRESS_LEN",
    "ZERO_ADDRESS",
    "AddressLike",
    "to_bytes",
    "to_hex",
    "to_address",
    "CallEnv",
    "Frame",
    "current_frame",
    "has_frame",
    "bind",
]
