from __future__ import annotations

from deployreg.runtime import storage_api as _rt

# Contract-facing storage. Keys and values are always bytes.


def get(key: bytes) -> bytes:
    """Value stored at `key`, or b"" if the key was never written."""
    v = _rt.get(key)
    return v if v is not None else b""


def set(key: bytes, value: bytes) -> None:
    """Store `value` at `key` (overwrites)."""
    _rt.set(key, value)


def exists(key: bytes) -> bool:
    return _rt.exists(key)


__all__ = ["get", "set", "exists"]
