# -*- coding: utf-8 -*-
"""
Host execution: receipts, statuses, call nonce, frames and observers.
"""
from __future__ import annotations

import logging
import threading
import types

import pytest

from deployreg.errors import ContextError, EventError, StorageError, ValidationError
from deployreg.runtime.context import (CallEnv, Frame, ZERO_ADDRESS, bind, current_frame,
                                       has_frame)
from deployreg.runtime.events_api import EventSink
from deployreg.runtime.host import (STATUS_ERROR, STATUS_INVALID, STATUS_OK, STATUS_REVERT,
                                    Host)
from deployreg.runtime.storage_api import MemoryBackend
from deployreg.stdlib import storage


def test_exports_and_name(host):
    assert host.exports == ["claim", "claim_batch", "is_admin", "query", "register"]
    assert host.name == "DeploymentRegistry"


def test_ok_receipt(host, accounts):
    alice = accounts["alice"]
    receipt = host.execute("claim", ["op-mainnet", alice], sender=alice)

    assert receipt.ok
    assert receipt.status == STATUS_OK
    assert receipt.return_value is None
    assert receipt.sender == bytes.fromhex(alice[2:])
    assert receipt.error is None
    receipt.raise_for_status()


def test_receipt_to_dict_is_json_friendly(host, accounts):
    alice = accounts["alice"]
    d = host.execute("claim", ["op-mainnet", alice], sender=alice).to_dict()

    assert d["status"] == "ok"
    assert d["sender"] == alice
    assert d["events"] == [
        {"name": "Claimed", "args": {"namespace": "0x" + b"op-mainnet".hex(), "admin": alice}}
    ]
    assert d["logs"][0]["name"] == "0x" + b"Claimed".hex()
    assert d["logs"][0]["args"][0] == {"k": "namespace", "t": "b", "v": "0x" + b"op-mainnet".hex()}
    assert d["error"] is None


def test_revert_receipt_has_problem(host, accounts):
    alice = accounts["alice"]
    host.execute("claim", ["ns", alice], sender=alice)
    receipt = host.execute("claim", ["ns", alice], sender=alice)

    assert receipt.status == STATUS_REVERT
    problem = receipt.to_dict()["error"]
    assert problem["title"] == "AlreadyClaimed"
    assert problem["type"] == "deployreg://registry/alreadyclaimed"
    assert problem["context"]["namespace"] == "ns"


def test_nonce_increments_per_call_including_failures(host, accounts):
    alice = accounts["alice"]
    nonces = [
        host.execute("claim", ["a", alice], sender=alice).nonce,
        host.execute("claim", ["a", alice], sender=alice).nonce,
        host.execute("no_such_method", []).nonce,
        host.execute("is_admin", ["a", alice]).nonce,
    ]
    assert nonces == [0, 1, 2, 3]


def test_unknown_method_is_invalid(host):
    receipt = host.execute("transfer_admin", ["ns"])
    assert receipt.status == STATUS_INVALID
    assert isinstance(receipt.error, ValidationError)
    with pytest.raises(ValidationError):
        host.call("transfer_admin", "ns")


@pytest.mark.parametrize(
    "args",
    [
        ["ns"],                              # arity
        ["ns", "aa" * 20],                   # missing 0x
        ["ns", "0x" + "aa" * 19],            # short address
        ["ns", "0xzz" + "aa" * 19],          # not hex
        [42, "0x" + "aa" * 20],              # non-string namespace
        ["x" * 1025, "0x" + "aa" * 20],      # over max_string_bytes
    ],
)
def test_bad_arguments_are_rejected_before_execution(host, recorded, args):
    receipt = host.execute("claim", args)
    assert receipt.status == STATUS_INVALID
    assert recorded == []
    assert len(host.backend) == 0


def test_invalid_register_entry_writes_nothing(host, accounts):
    alice = accounts["alice"]
    host.call("claim", "ns", alice, sender=alice)
    entries = [["good", "0x" + "11" * 20], ["bad", "0x1234"]]
    receipt = host.execute("register", ["ns", entries], sender=alice)

    assert receipt.status == STATUS_INVALID
    assert "register.entries[1].1" in receipt.error.message
    assert host.call("query", "ns", ["good"]) == ["0x" + "00" * 20]


def test_malformed_sender_is_invalid(host):
    receipt = host.execute("claim", ["ns", "0x" + "aa" * 20], sender="0x1234")
    assert receipt.status == STATUS_INVALID
    assert isinstance(receipt.error, ContextError)
    assert receipt.sender == ZERO_ADDRESS


def test_default_sender_is_zero_address(host):
    receipt = host.execute("claim", ["ns", "0x" + "aa" * 20])
    assert receipt.sender == ZERO_ADDRESS


def test_call_returns_encoded_value(host, accounts):
    alice = accounts["alice"]
    host.call("claim", "ns", alice, sender=alice)
    assert host.call("is_admin", "ns", alice) is True
    assert host.call("query", "ns", ["nothing"]) == ["0x" + "00" * 20]


def test_observer_failure_does_not_fail_the_call(host, accounts, caplog):
    def broken(ev):
        raise RuntimeError("observer exploded")

    seen = []
    host.subscribe(broken)
    host.subscribe(seen.append)

    with caplog.at_level(logging.ERROR, logger="deployreg.runtime.events_api"):
        receipt = host.execute("claim", ["ns", accounts["alice"]])

    assert receipt.ok
    assert len(seen) == 1
    assert "observer" in caplog.text


def test_unsubscribe(host, accounts):
    seen = []
    unsubscribe = host.subscribe(seen.append)
    host.execute("claim", ["one", accounts["alice"]])
    unsubscribe()
    host.execute("claim", ["two", accounts["alice"]])
    unsubscribe()  # idempotent
    assert [e.args["namespace"] for e in seen] == [b"one"]


def test_observers_run_in_subscription_order(host, accounts):
    order = []
    host.subscribe(lambda ev: order.append("first"))
    host.subscribe(lambda ev: order.append("second"))
    host.execute("claim", ["ns", accounts["alice"]])
    assert order == ["first", "second"]


def test_independent_hosts_do_not_share_state(accounts):
    alice = accounts["alice"]
    h1, h2 = Host(), Host()
    h1.call("claim", "ns", alice)
    assert h2.call("is_admin", "ns", alice) is False
    h2.call("claim", "ns", alice)


def test_hosts_on_different_threads_run_concurrently(accounts):
    alice = accounts["alice"]
    entered, release = threading.Event(), threading.Event()
    results = {}

    def run():
        entered.set()
        release.wait(timeout=5)
        storage.set(b"worker", b"\x01")

    h1 = _custom_host(run)
    worker = threading.Thread(target=lambda: results.update(receipt=h1.execute("run")))
    worker.start()
    try:
        assert entered.wait(timeout=5)
        # h1 is mid-call on the worker thread; h2 must not see its frame.
        assert not has_frame()
        receipt = Host().execute("claim", ["ns", alice], sender=alice)
        assert receipt.ok, receipt.error
    finally:
        release.set()
        worker.join(timeout=5)

    assert results["receipt"].ok, results["receipt"].error
    assert h1.backend.get(b"worker") == b"\x01"


def test_revert_logged_at_info(host, accounts, caplog):
    alice = accounts["alice"]
    host.execute("claim", ["ns", alice])
    with caplog.at_level(logging.INFO, logger="deployreg.runtime.host"):
        host.execute("claim", ["ns", alice])
    assert any(r.levelno == logging.INFO and "reverted" in r.getMessage() for r in caplog.records)


# --- frames --------------------------------------------------------------------


def _frame(config):
    return Frame(
        env=CallEnv(sender=ZERO_ADDRESS),
        storage=MemoryBackend(),
        events=EventSink(max_events=4),
        config=config,
    )


def test_contract_api_outside_frame_raises():
    assert not has_frame()
    with pytest.raises(ContextError):
        current_frame()
    with pytest.raises(ContextError):
        storage.get(b"k")


def test_frames_do_not_nest(host):
    f = _frame(host.config)
    with bind(f):
        assert current_frame() is f
        with pytest.raises(ContextError):
            with bind(_frame(host.config)):
                pass
        # The outer frame is still active after the failed nested bind.
        assert has_frame()
    assert not has_frame()


def test_frame_unbound_after_revert(host, accounts):
    host.execute("claim", ["ns", accounts["alice"]])
    host.execute("claim", ["ns", accounts["alice"]])
    assert not has_frame()


# --- runtime-level failures ---------------------------------------------------


def _custom_host(fn, config=None):
    module = types.ModuleType("custom_contract")
    module.run = fn
    manifest = {"name": "Custom", "abi": {"functions": [{"name": "run", "inputs": [], "outputs": []}]}}
    return Host(module, manifest, config=config)


def test_storage_key_cap_is_enforced(host):
    def run():
        storage.set(b"k" * (host.config.max_storage_key_bytes + 1), b"v")

    receipt = _custom_host(run, host.config).execute("run")
    assert receipt.status == STATUS_ERROR
    assert isinstance(receipt.error, StorageError)


def test_event_cap_is_enforced(host):
    from deployreg.stdlib import events

    cfg = host.config.with_overrides(max_events_per_call=2)

    def run():
        for i in range(3):
            events.emit(b"Tick", {b"i": i})

    receipt = _custom_host(run, cfg).execute("run")
    assert receipt.status == STATUS_ERROR
    assert isinstance(receipt.error, EventError)
    assert len(receipt.events) == 2


class _FailingBackend(MemoryBackend):
    def flush(self):
        raise StorageError("disk full", deterministic=False)


def test_flush_failure_becomes_call_error(accounts):
    h = Host(backend=_FailingBackend())
    receipt = h.execute("claim", ["ns", accounts["alice"]])
    assert receipt.status == STATUS_ERROR
    assert isinstance(receipt.error, StorageError)
    assert receipt.error.deterministic is False


def test_view_calls_do_not_flush(accounts):
    h = Host(backend=_FailingBackend())
    assert h.execute("is_admin", ["ns", accounts["alice"]]).ok


def test_contract_module_requires_manifest():
    with pytest.raises(ValidationError):
        Host(types.ModuleType("bare"))
