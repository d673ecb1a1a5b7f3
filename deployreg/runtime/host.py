"""
deployreg.runtime.host — serialized execution host for a contract instance.

A Host owns one long-lived contract instance: the contract module, its
manifest, a storage backend, configuration and the registered event
observers. Every external invocation goes through `execute`, which:

  1) takes the host lock (calls never interleave),
  2) builds the CallEnv from the caller-supplied identity,
  3) decodes arguments against the manifest ABI (nothing runs on failure),
  4) binds a fresh call frame and runs the contract function,
  5) flushes the backend whether the call succeeded or reverted,
  6) returns a Receipt.

Writes are applied directly to the backend while the call runs. A revert does
NOT roll back writes made earlier in the same call; batch operations rely on
this to keep the elements they already committed.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from types import ModuleType
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from deployreg.config import RegistryConfig, load_config
from deployreg.errors import (ContextError, RegistryError, Revert, StorageError,
                              ValidationError)
from deployreg.runtime.abi import decode_args, encode_return, function_table
from deployreg.runtime.context import (ZERO_ADDRESS, AddressLike, CallEnv, Frame,
                                       bind, to_hex)
from deployreg.runtime.events_api import Event, EventSink, Observer, canonicalize
from deployreg.runtime.loader import check_exports, load_contract, load_manifest
from deployreg.runtime.storage_api import MemoryBackend, StorageBackend

log = logging.getLogger(__name__)

STATUS_OK = "ok"
STATUS_REVERT = "revert"
STATUS_INVALID = "invalid"
STATUS_ERROR = "error"


def _status_for(err: Optional[RegistryError]) -> str:
    if err is None:
        return STATUS_OK
    if isinstance(err, Revert):
        return STATUS_REVERT
    if isinstance(err, (ValidationError, ContextError)):
        return STATUS_INVALID
    return STATUS_ERROR


@dataclass(frozen=True)
class Receipt:
    """Outcome of one host call."""

    method: str
    sender: bytes
    nonce: int
    status: str
    return_value: Any
    events: Tuple[Event, ...]
    error: Optional[RegistryError] = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK

    def raise_for_status(self) -> None:
        if self.error is not None:
            raise self.error

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method,
            "sender": to_hex(self.sender),
            "nonce": self.nonce,
            "status": self.status,
            "return": self.return_value,
            "events": [ev.to_dict() for ev in self.events],
            "logs": [
                {"name": c.name, "args": list(c.args)} for c in canonicalize(self.events)
            ],
            "error": self.error.to_problem() if self.error is not None else None,
        }


class Host:
    """Serialized, caller-identity-bearing execution host."""

    def __init__(
        self,
        contract: Optional[ModuleType] = None,
        manifest: Optional[Mapping[str, Any]] = None,
        *,
        backend: Optional[StorageBackend] = None,
        config: Optional[RegistryConfig] = None,
    ) -> None:
        if contract is None:
            contract, loaded = load_contract("registry")
            manifest = manifest or loaded
        if manifest is None:
            raise ValidationError("a manifest is required when passing a contract module")
        self.manifest: Dict[str, Any] = load_manifest(dict(manifest))
        check_exports(contract, self.manifest)
        self.contract = contract
        self.backend: StorageBackend = backend if backend is not None else MemoryBackend()
        self.config = config or load_config()
        self._fns = function_table(self.manifest)
        self._observers: List[Observer] = []
        self._lock = threading.RLock()
        self._nonce = 0

    # -- observers -------------------------------------------------------------

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """
        Register `observer(event)`; it runs synchronously on every emit.
        Returns a callable that unsubscribes it.
        """
        with self._lock:
            self._observers.append(observer)

        def _unsubscribe() -> None:
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return _unsubscribe

    # -- execution -------------------------------------------------------------

    @property
    def exports(self) -> List[str]:
        return sorted(self._fns)

    @property
    def name(self) -> str:
        return str(self.manifest.get("name") or getattr(self.contract, "__name__", "contract"))

    def execute(
        self, method: str, args: Sequence[Any] = (), *, sender: AddressLike = ZERO_ADDRESS
    ) -> Receipt:
        with self._lock:
            nonce = self._nonce
            self._nonce += 1

            try:
                env = CallEnv(sender=sender, nonce=nonce)
            except ContextError as e:
                return self._finish(method, ZERO_ADDRESS, nonce, None, (), e)

            fn_abi = self._fns.get(method)
            if fn_abi is None:
                err = ValidationError(f"unknown method '{method}'", context={"method": method})
                return self._finish(method, env.sender, nonce, None, (), err)

            try:
                decoded = decode_args(fn_abi, list(args), self.config)
            except ValidationError as e:
                return self._finish(method, env.sender, nonce, None, (), e)

            sink = EventSink(
                max_events=self.config.max_events_per_call, observers=tuple(self._observers)
            )
            frame = Frame(env=env, storage=self.backend, events=sink, config=self.config)
            fn = getattr(self.contract, method)

            error: Optional[RegistryError] = None
            ret: Any = None
            flush_err: Optional[StorageError] = None
            try:
                with bind(frame):
                    raw = fn(*decoded)
                ret = encode_return(fn_abi, raw)
            except RegistryError as e:
                error = e
            finally:
                # View functions never write, so there is nothing to persist.
                if not fn_abi.get("view"):
                    flush_err = self._flush(method)
            if flush_err is not None and error is None:
                error = flush_err
                ret = None
            return self._finish(method, env.sender, nonce, ret, sink.iter_events(), error)

    def call(
        self, method: str, *args: Any, sender: AddressLike = ZERO_ADDRESS
    ) -> Any:
        """Execute and return the encoded return value, raising on failure."""
        receipt = self.execute(method, args, sender=sender)
        receipt.raise_for_status()
        return receipt.return_value

    def close(self) -> None:
        with self._lock:
            self.backend.close()

    # -- internals -------------------------------------------------------------

    def _flush(self, method: str) -> Optional[StorageError]:
        try:
            self.backend.flush()
        except StorageError as e:
            log.error("storage flush failed after %s: %s", method, e)
            return e
        return None

    def _finish(
        self,
        method: str,
        sender: bytes,
        nonce: int,
        ret: Any,
        events: Tuple[Event, ...],
        error: Optional[RegistryError],
    ) -> Receipt:
        status = _status_for(error)
        receipt = Receipt(
            method=method,
            sender=sender,
            nonce=nonce,
            status=status,
            return_value=ret,
            events=tuple(events),
            error=error,
        )
        if error is None:
            log.debug(
                "%s.%s ok sender=%s nonce=%d events=%d",
                self.name, method, to_hex(sender), nonce, len(events),
            )
        elif status == STATUS_REVERT:
            log.info("%s.%s reverted nonce=%d: %s", self.name, method, nonce, error)
        else:
            log.warning("%s.%s failed (%s) nonce=%d: %s", self.name, method, status, nonce, error)
        return receipt


__all__ = [
    "Host",
    "Receipt",
    "STATUS_OK",
    "STATUS_REVERT",
    "STATUS_INVALID",
    "STATUS_ERROR",
]
