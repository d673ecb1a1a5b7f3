# -*- coding: utf-8 -*-
"""
Deployment Registry (namespace → {name → address})

A party claims a named deployment namespace, becoming its admin; admins of a
namespace register name → address entries inside it; anyone can query them.

- First claim wins; a namespace is never unclaimed, deleted or renamed.
- Admin membership only grows (see contracts.access.admins).
- Entries are last-write-wins and can only be written into claimed namespaces.
- Namespaces never interact.

Functions (see manifest.json for ABI details):
- claim(namespace: string, admin: address) -> None
- claim_batch(namespaces: string[], admin: address) -> None
- is_admin(namespace: string, address: address) -> bool
- register(namespace: string, entries: (string,address)[]) -> None
- query(namespace: string, names: string[]) -> address[]   (zero address if unset)

Events:
- Claimed(namespace: bytes, admin: address)
- AdminChanged(oldAdmin: address, newAdmin: address)   declared, never emitted

Reverts:
- AlreadyClaimed, NamespaceNotFound, NotAuthorized

`claim` takes the admin from its arguments, not from the caller: anyone may
claim an unclaimed namespace on behalf of any address.
"""
from __future__ import annotations

from typing import List, Sequence, Tuple

from deployreg.contracts.access import admins
from deployreg.stdlib import abi, env, events, hash, storage

# ---- storage layout ---------------------------------------------------------

# Key = P_NAMESPACE || keccak(namespace)
P_NAMESPACE = b"reg:ns:"
# Key = P_ENTRY || keccak(keccak(namespace) || name)
P_ENTRY = b"reg:ent:"

EXISTS = b"\x01"
ZERO_ADDRESS = b"\x00" * 20

# ---- events & reverts -------------------------------------------------------

EVENT_CLAIMED = b"Claimed"
# Reserved for admin transfer, which this contract does not implement.
EVENT_ADMIN_CHANGED = b"AdminChanged"

ERR_ALREADY_CLAIMED = b"AlreadyClaimed"
ERR_NAMESPACE_NOT_FOUND = b"NamespaceNotFound"
ERR_NOT_AUTHORIZED = b"NotAuthorized"


def _ns_id(namespace: str) -> bytes:
    return hash.keccak256(namespace.encode("utf-8"))


def _entry_key(ns_id: bytes, name: str) -> bytes:
    # ns_id is fixed-width, so ns_id || name is unambiguous.
    return P_ENTRY + hash.hash_concat_keccak256(ns_id, name.encode("utf-8"))


def _exists(ns_id: bytes) -> bool:
    return storage.get(P_NAMESPACE + ns_id) == EXISTS


def _require_claimed(ns_id: bytes, namespace: str) -> None:
    abi.require(_exists(ns_id), ERR_NAMESPACE_NOT_FOUND, namespace=namespace)


# ---- public interface --------------------------------------------------------


def claim(namespace: str, admin: bytes) -> None:
    """
    Claim an unclaimed namespace for `admin`.
    Emits Claimed(namespace, admin).
    """
    ns_id = _ns_id(namespace)
    abi.require(not _exists(ns_id), ERR_ALREADY_CLAIMED, namespace=namespace)
    storage.set(P_NAMESPACE + ns_id, EXISTS)
    admins.grant(ns_id, admin)
    events.emit(EVENT_CLAIMED, {b"namespace": namespace.encode("utf-8"), b"admin": admin})


def claim_batch(namespaces: Sequence[str], admin: bytes) -> None:
    """
    Claim each namespace in order for the same admin.

    Stops at the first namespace that is already claimed and reverts with
    AlreadyClaimed. Namespaces claimed before it in this call stay claimed.
    """
    for namespace in namespaces:
        claim(namespace, admin)


def is_admin(namespace: str, address: bytes) -> bool:
    return admins.has(_ns_id(namespace), address)


def register(namespace: str, entries: Sequence[Tuple[str, bytes]]) -> None:
    """
    Bind each (name, address) in order; a repeated name keeps its last address.
    Caller must be an admin of a claimed namespace. No event is emitted.
    """
    ns_id = _ns_id(namespace)
    _require_claimed(ns_id, namespace)
    caller = env.sender()
    admins.require(ns_id, caller, ERR_NOT_AUTHORIZED, namespace=namespace, caller=caller)
    for name, addr in entries:
        storage.set(_entry_key(ns_id, name), bytes(addr))


def query(namespace: str, names: Sequence[str]) -> List[bytes]:
    """
    Resolve names in order. Unregistered names resolve to the zero address.
    """
    ns_id = _ns_id(namespace)
    _require_claimed(ns_id, namespace)
    out: List[bytes] = []
    for name in names:
        v = storage.get(_entry_key(ns_id, name))
        out.append(v if v else ZERO_ADDRESS)
    return out
