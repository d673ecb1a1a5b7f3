from __future__ import annotations

from typing import Any, Dict, Mapping

from deployreg.runtime import events_api as _rt


def _to_str_key(k: Any) -> str:
    """
    stdlib-facing keys are usually bytes; runtime-facing keys must be str.
    Non-ASCII bytes keys are hex-encoded (and then rejected by the sink's
    key grammar unless they happen to be identifier-like).
    """
    if isinstance(k, str):
        return k
    if isinstance(k, (bytes, bytearray)):
        try:
            return bytes(k).decode("ascii")
        except UnicodeDecodeError:
            return bytes(k).hex()
    return str(k)


def emit(name: bytes, args: Mapping[Any, Any]) -> None:
    """
    Contract-facing emit:

        emit(b"Claimed", {b"namespace": b"op-mainnet", b"admin": admin})
    """
    converted: Dict[str, Any] = {_to_str_key(k): v for k, v in args.items()}
    _rt.emit(name, converted)


__all__ = ["emit"]
