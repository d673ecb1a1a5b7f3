from __future__ import annotations

from deployreg.runtime.hash_api import hash_concat_keccak256, keccak256

__all__ = ["keccak256", "hash_concat_keccak256"]
