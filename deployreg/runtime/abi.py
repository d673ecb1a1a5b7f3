"""
deployreg.runtime.abi — contract revert helpers and call-argument coercion.

Two halves:

Contract-facing (re-exported by stdlib.abi)
  - require(cond, reason, **context)
  - revert(reason, **context)
  Both raise the Revert subclass registered for `reason` in deployreg.errors.

Host-facing
  - parse_type(spec) -> AbiType        supported: string, address, bool,
                                        string[], address[], (string,address)[]
  - decode_args(fn_abi, args, config)  coerce external values before execution
  - encode_return(fn_abi, value)       contract values -> JSON-friendly values

Externally addresses are "0x" + 40 hex digits (case-insensitive); inside the
contract they are 20 raw bytes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, NoReturn, Optional, Sequence, Tuple, Union

from deployreg.config import RegistryConfig
from deployreg.errors import ContextError, ValidationError, revert_for
from deployreg.runtime.context import to_address, to_hex

Reason = Union[str, bytes]


# ──────────────────────────────────────────────────────────────────────────────
# Contract-facing helpers
# ──────────────────────────────────────────────────────────────────────────────


def revert(reason: Reason, **context: Any) -> NoReturn:
    """Abort the current call with `reason` (e.g. b"AlreadyClaimed")."""
    raise revert_for(reason, context)


def require(condition: bool, reason: Reason = b"require failed", **context: Any) -> None:
    """
    Assertion helper for contracts:

        abi.require(not _exists(ns_id), ERR_ALREADY_CLAIMED, namespace=namespace)
    """
    if condition:
        return
    revert(reason, **context)


# ──────────────────────────────────────────────────────────────────────────────
# Types
# ──────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class AbiType:
    """Parsed ABI type. `item` is set for arrays, `fields` for tuples."""

    kind: str  # "string" | "address" | "bool" | "array" | "tuple"
    item: Optional["AbiType"] = None
    fields: Tuple["AbiType", ...] = ()

    def __str__(self) -> str:
        if self.kind == "array":
            return f"{self.item}[]"
        if self.kind == "tuple":
            return "(" + ",".join(str(f) for f in self.fields) + ")"
        return self.kind


_SCALARS = ("string", "address", "bool")


def _split_top_level(inner: str) -> List[str]:
    parts: List[str] = []
    depth = 0
    cur = ""
    for ch in inner:
        if ch == "," and depth == 0:
            parts.append(cur)
            cur = ""
            continue
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        cur += ch
    parts.append(cur)
    return parts


def parse_type(spec: str) -> AbiType:
    s = spec.replace(" ", "")
    if s.endswith("[]"):
        return AbiType("array", item=parse_type(s[:-2]))
    if s.startswith("(") and s.endswith(")"):
        inner = s[1:-1]
        if not inner:
            raise ValidationError(f"empty tuple type: {spec!r}")
        return AbiType("tuple", fields=tuple(parse_type(p) for p in _split_top_level(inner)))
    if s in _SCALARS:
        return AbiType(s)
    raise ValidationError(f"unsupported ABI type: {spec!r}")


# ──────────────────────────────────────────────────────────────────────────────
# Coercion (external -> contract)
# ──────────────────────────────────────────────────────────────────────────────


def _coerce_string(value: Any, cfg: RegistryConfig, where: str) -> str:
    if isinstance(value, (bytes, bytearray)):
        try:
            value = bytes(value).decode("utf-8")
        except UnicodeDecodeError as e:
            raise ValidationError(f"{where}: bytes are not valid UTF-8") from e
    if not isinstance(value, str):
        raise ValidationError(f"{where}: expected string, got {type(value).__name__}")
    n = len(value.encode("utf-8"))
    if n > cfg.max_string_bytes:
        raise ValidationError(
            f"{where}: string too long ({n} > {cfg.max_string_bytes} bytes)",
            context={"where": where, "len": n},
        )
    return value


def _coerce_address(value: Any, where: str) -> bytes:
    if isinstance(value, str) and not value.strip().lower().startswith("0x"):
        raise ValidationError(f"{where}: address must be 0x-prefixed hex")
    try:
        return to_address(value)
    except ContextError as e:
        raise ValidationError(f"{where}: {e.message}", context=e.context) from e


def _coerce_bool(value: Any, where: str) -> bool:
    if isinstance(value, bool):
        return value
    raise ValidationError(f"{where}: expected bool, got {type(value).__name__}")


def _item_type(t: AbiType) -> AbiType:
    if t.item is None:
        raise ValidationError(f"array type without an item type: {t.kind}")
    return t.item


def coerce(t: AbiType, value: Any, cfg: RegistryConfig, where: str = "arg") -> Any:
    if t.kind == "string":
        return _coerce_string(value, cfg, where)
    if t.kind == "address":
        return _coerce_address(value, where)
    if t.kind == "bool":
        return _coerce_bool(value, where)
    if t.kind == "array":
        if isinstance(value, (str, bytes, bytearray, Mapping)) or not isinstance(value, Sequence):
            raise ValidationError(f"{where}: expected a sequence for {t}")
        if len(value) > cfg.max_batch_items:
            raise ValidationError(
                f"{where}: too many items ({len(value)} > {cfg.max_batch_items})",
                context={"where": where, "len": len(value)},
            )
        item = _item_type(t)
        return [coerce(item, v, cfg, f"{where}[{i}]") for i, v in enumerate(value)]
    if t.kind == "tuple":
        if isinstance(value, (str, bytes, bytearray)) or not isinstance(value, Sequence):
            raise ValidationError(f"{where}: expected a {len(t.fields)}-tuple for {t}")
        if len(value) != len(t.fields):
            raise ValidationError(
                f"{where}: expected {len(t.fields)} fields, got {len(value)}"
            )
        return tuple(coerce(ft, v, cfg, f"{where}.{i}") for i, (ft, v) in enumerate(zip(t.fields, value)))
    raise ValidationError(f"unsupported ABI type kind: {t.kind}")


def decode_args(fn_abi: Mapping[str, Any], args: Sequence[Any], cfg: RegistryConfig) -> List[Any]:
    """Coerce positional `args` against `fn_abi["inputs"]`."""
    inputs = list(fn_abi.get("inputs") or [])
    name = fn_abi.get("name", "?")
    if len(args) != len(inputs):
        raise ValidationError(
            f"{name}: expected {len(inputs)} args, got {len(args)}",
            context={"method": name},
        )
    return [
        coerce(parse_type(inp["type"]), a, cfg, f"{name}.{inp.get('name', i)}")
        for i, (inp, a) in enumerate(zip(inputs, args))
    ]


# ──────────────────────────────────────────────────────────────────────────────
# Encoding (contract -> external)
# ──────────────────────────────────────────────────────────────────────────────


def encode_value(t: AbiType, value: Any) -> Any:
    if t.kind == "address":
        return to_hex(value)
    if t.kind == "array":
        item = _item_type(t)
        return [encode_value(item, v) for v in value]
    if t.kind == "tuple":
        return [encode_value(ft, v) for ft, v in zip(t.fields, value)]
    if t.kind == "bool":
        return bool(value)
    return value


def encode_return(fn_abi: Mapping[str, Any], value: Any) -> Any:
    outputs = list(fn_abi.get("outputs") or [])
    if not outputs:
        return None
    if len(outputs) == 1:
        return encode_value(parse_type(outputs[0]["type"]), value)
    return [encode_value(parse_type(o["type"]), v) for o, v in zip(outputs, value)]


def function_table(manifest: Mapping[str, Any]) -> Dict[str, Mapping[str, Any]]:
    """Index manifest ABI functions by name."""
    fns = (manifest.get("abi") or {}).get("functions") or []
    return {str(f["name"]): f for f in fns}


__all__ = [
    "revert",
    "require",
    "AbiType",
    "parse_type",
    "coerce",
    "decode_args",
    "encode_value",
    "encode_return",
    "function_table",
]
