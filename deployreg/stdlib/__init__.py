"""
deployreg.stdlib
================

Contract-facing standard library surface.

Contracts do:

    from deployreg.stdlib import abi, env, events, hash, storage

Exports
-------
- storage : get(key)->bytes (b"" if unset), set(key, value), exists(key)
- events  : emit(name: bytes, args: mapping)
- abi     : require(cond, reason, **ctx), revert(reason, **ctx)
- hash    : keccak256(b), hash_concat_keccak256(*chunks)
- env     : sender() -> bytes

Everything resolves through the active call frame bound by the Host.
"""

from __future__ import annotations

from . import abi, env, events, hash, storage

__all__ = ("storage", "events", "abi", "hash", "env")
