"""
deployreg.client — typed facade over a Host running the registry contract.

    reg = Registry()
    reg.claim("op-mainnet", admin=alice, sender=alice)
    reg.register("op-mainnet", [("L2StandardBridge", bridge)], sender=alice)
    reg.query("op-mainnet", ["L2StandardBridge", "Unknown"])
    # -> ["0x2222…", "0x0000000000000000000000000000000000000000"]

Addresses may be passed as 0x-hex strings or 20 raw bytes; returned
addresses are lowercase 0x-hex strings. Failures raise the typed errors from
deployreg.errors (AlreadyClaimed, NamespaceNotFound, NotAuthorized,
ValidationError, ...).
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from deployreg.config import RegistryConfig, load_config
from deployreg.runtime.context import ZERO_ADDRESS, AddressLike, to_hex
from deployreg.runtime.events_api import Event, Observer
from deployreg.runtime.host import Host, Receipt
from deployreg.runtime.storage_api import StorageBackend, open_backend

Entry = Tuple[str, AddressLike]


def _addr_arg(a: AddressLike) -> AddressLike:
    # Raw bytes go through untouched; the ABI layer validates both forms.
    return to_hex(a) if isinstance(a, (bytes, bytearray, memoryview)) else a


class Registry:
    """One long-lived registry instance."""

    def __init__(
        self,
        host: Optional[Host] = None,
        *,
        backend: Optional[StorageBackend] = None,
        config: Optional[RegistryConfig] = None,
    ) -> None:
        self.host = host or Host(backend=backend, config=config)
        self._events: List[Event] = []
        self.host.subscribe(self._events.append)
        self.last_receipt: Optional[Receipt] = None

    @classmethod
    def open(
        cls, path: Union[str, Path, None], *, config: Optional[RegistryConfig] = None
    ) -> "Registry":
        """Registry over the state at `path` (JSON file, sqlite db, or memory for None)."""
        cfg = config or load_config()
        return cls(backend=open_backend(path), config=cfg)

    # -- plumbing --------------------------------------------------------------

    def _call(self, method: str, args: Sequence[object], sender: AddressLike) -> object:
        receipt = self.host.execute(method, args, sender=_addr_arg(sender))
        self.last_receipt = receipt
        receipt.raise_for_status()
        return receipt.return_value

    @property
    def events(self) -> Tuple[Event, ...]:
        """Every event emitted through this instance, in emission order."""
        return tuple(self._events)

    def subscribe(self, observer: Observer):
        return self.host.subscribe(observer)

    def close(self) -> None:
        self.host.close()

    # -- operations ------------------------------------------------------------

    def claim(self, namespace: str, admin: AddressLike, *, sender: AddressLike = ZERO_ADDRESS) -> None:
        self._call("claim", [namespace, _addr_arg(admin)], sender)

    def claim_batch(
        self, namespaces: Iterable[str], admin: AddressLike, *, sender: AddressLike = ZERO_ADDRESS
    ) -> None:
        self._call("claim_batch", [list(namespaces), _addr_arg(admin)], sender)

    def is_admin(self, namespace: str, address: AddressLike) -> bool:
        return bool(self._call("is_admin", [namespace, _addr_arg(address)], ZERO_ADDRESS))

    def register(
        self, namespace: str, entries: Iterable[Entry], *, sender: AddressLike
    ) -> None:
        pairs = [[name, _addr_arg(addr)] for name, addr in entries]
        self._call("register", [namespace, pairs], sender)

    def query(self, namespace: str, names: Iterable[str]) -> List[str]:
        return list(self._call("query", [namespace, list(names)], ZERO_ADDRESS))  # type: ignore[arg-type]


__all__ = ["Registry", "Entry"]
