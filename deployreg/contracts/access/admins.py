"""
deployreg.contracts.access.admins
=================================

Monotonic admin-membership relation for contracts: `(scope, account) → bool`.

A *scope* is any 32-byte identifier chosen by the calling contract (the
registry uses keccak256 of the namespace). Membership can be granted and
checked; there is deliberately no revoke, renounce or transfer, so once an
account is an admin of a scope it stays one.

API surface
-----------
- `grant(scope, account) -> bool`   True if newly granted, False if already a member
- `has(scope, account) -> bool`
- `require(scope, account, reason)` reverts with `reason` when not a member

Storage layout
--------------
- Member flag: key = ADMIN_PREFIX + scope(32) + account(20) → b"\\x01"

Notes
-----
- This module does not emit events; the calling contract decides what to
  announce (the registry emits `Claimed`).
- Accounts are raw 20-byte addresses; the zero address is accepted.
"""

from __future__ import annotations

from typing import Final

from deployreg.stdlib import abi, storage

__all__ = ["ADMIN_PREFIX", "grant", "has", "require"]

ADMIN_PREFIX: Final[bytes] = b"acl:adm:"

_FLAG: Final[bytes] = b"\x01"


def _check_scope(scope: bytes) -> bytes:
    if not isinstance(scope, (bytes, bytearray)) or len(scope) != 32:
        abi.revert(b"ACL:SCOPE_LEN")
    return bytes(scope)


def _check_account(account: bytes) -> bytes:
    if not isinstance(account, (bytes, bytearray)) or len(account) != 20:
        abi.revert(b"ACL:ACCOUNT_LEN")
    return bytes(account)


def _key(scope: bytes, account: bytes) -> bytes:
    return ADMIN_PREFIX + _check_scope(scope) + _check_account(account)


def has(scope: bytes, account: bytes) -> bool:
    return storage.get(_key(scope, account)) == _FLAG


def grant(scope: bytes, account: bytes) -> bool:
    """Idempotent grant. Returns True only on the absent → present transition."""
    k = _key(scope, account)
    if storage.get(k) == _FLAG:
        return False
    storage.set(k, _FLAG)
    return True


def require(scope: bytes, account: bytes, reason: bytes = b"NotAuthorized", **context) -> None:
    abi.require(has(scope, account), reason, **context)
