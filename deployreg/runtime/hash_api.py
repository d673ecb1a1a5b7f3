"""
deployreg.runtime.hash_api — deterministic hashing wrappers.

Strictly bytes-in, bytes-out (no implicit text encoding).

Provided APIs
-------------
- keccak256(data: bytes) -> bytes      # Ethereum-compatible Keccak-256 (PyCryptodome)
- hash_concat_keccak256(*chunks) -> bytes
"""

from __future__ import annotations

from Crypto.Hash import keccak as _keccak

from deployreg.errors import ValidationError


def _ensure_bytes(buf: object, name: str) -> bytes:
    if isinstance(buf, (bytes, bytearray, memoryview)):
        return bytes(buf)
    raise ValidationError(f"{name} must be bytes-like (got {type(buf).__name__})")


def keccak256(data: bytes) -> bytes:
    h = _keccak.new(digest_bits=256)
    h.update(_ensure_bytes(data, "data"))
    return h.digest()


def hash_concat_keccak256(*chunks: bytes) -> bytes:
    """keccak256 over the concatenation of `chunks`, without building it."""
    h = _keccak.new(digest_bits=256)
    for i, c in enumerate(chunks):
        h.update(_ensure_bytes(c, f"chunk[{i}]"))
    return h.digest()


__all__ = ["keccak256", "hash_concat_keccak256"]
