# -*- coding: utf-8 -*-
"""
Admin-membership module and the registry's storage layout, run inside a bare
call frame (no Host) so the raw keys can be inspected.
"""
from __future__ import annotations

import pytest

from deployreg.config import load_config
from deployreg.contracts.access import admins
from deployreg.contracts.registry import contract
from deployreg.errors import NotAuthorized, Revert
from deployreg.runtime.context import CallEnv, Frame, bind
from deployreg.runtime.events_api import EventSink
from deployreg.runtime.hash_api import hash_concat_keccak256, keccak256
from deployreg.runtime.storage_api import MemoryBackend
from deployreg.stdlib import env

ALICE = b"\xaa" * 20
BOB = b"\xbb" * 20
SCOPE = b"\x01" * 32


@pytest.fixture
def backend():
    return MemoryBackend()


@pytest.fixture
def frame(backend):
    f = Frame(
        env=CallEnv(sender=ALICE, nonce=7),
        storage=backend,
        events=EventSink(max_events=16),
        config=load_config(),
    )
    with bind(f):
        yield f


def test_keccak_vectors():
    assert keccak256(b"").hex() == "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"
    assert hash_concat_keccak256(b"ab", b"c") == keccak256(b"abc")


def test_grant_is_idempotent(frame, backend):
    assert admins.has(SCOPE, ALICE) is False
    assert admins.grant(SCOPE, ALICE) is True
    assert admins.grant(SCOPE, ALICE) is False
    assert admins.has(SCOPE, ALICE) is True
    assert admins.has(SCOPE, BOB) is False
    assert backend.get(admins.ADMIN_PREFIX + SCOPE + ALICE) == b"\x01"
    assert len(backend) == 1


def test_require(frame):
    admins.grant(SCOPE, ALICE)
    admins.require(SCOPE, ALICE)
    with pytest.raises(NotAuthorized):
        admins.require(SCOPE, BOB)


@pytest.mark.parametrize("scope, account, reason", [
    (b"\x01" * 31, ALICE, "ACL:SCOPE_LEN"),
    (SCOPE, b"\xaa" * 19, "ACL:ACCOUNT_LEN"),
])
def test_malformed_scope_or_account(frame, scope, account, reason):
    with pytest.raises(Revert) as excinfo:
        admins.grant(scope, account)
    assert excinfo.value.reason == reason


def test_env_reads_frame(frame):
    assert env.sender() == ALICE


def test_registry_storage_layout(frame, backend):
    contract.claim("op-mainnet", ALICE)
    ns_id = keccak256(b"op-mainnet")

    assert backend.get(contract.P_NAMESPACE + ns_id) == b"\x01"
    assert backend.get(admins.ADMIN_PREFIX + ns_id + ALICE) == b"\x01"

    contract.register("op-mainnet", [("L2StandardBridge", b"\x22" * 20)])
    entry_key = contract.P_ENTRY + keccak256(ns_id + b"L2StandardBridge")
    assert backend.get(entry_key) == b"\x22" * 20
    assert len(backend) == 3

    # Every key fits the default storage key cap.
    assert all(len(k) <= frame.config.max_storage_key_bytes for k, _ in backend.items())


def test_long_namespaces_and_names_hash_to_fixed_keys(frame, backend):
    ns = "n" * 1024
    contract.claim(ns, ALICE)
    contract.register(ns, [("x" * 1024, BOB)])
    assert contract.query(ns, ["x" * 1024, "y"]) == [BOB, b"\x00" * 20]


def test_register_uses_frame_sender(frame):
    contract.claim("ns", BOB)
    with pytest.raises(NotAuthorized) as excinfo:
        contract.register("ns", [])
    assert excinfo.value.context["caller"] == ALICE


def test_admin_changed_is_never_emitted(frame):
    contract.claim_batch(["a", "b"], ALICE)
    contract.register("a", [("x", BOB)])
    names = [ev.name for ev in frame.events.iter_events()]
    assert names == [contract.EVENT_CLAIMED, contract.EVENT_CLAIMED]
    assert contract.EVENT_ADMIN_CHANGED not in names
