"""
deployreg.errors — structured error taxonomy for the registry host and contract.

Every error carries:
    code:           short machine-readable code string (class-level default)
    message:        human-readable message
    context:        extra fields for debugging / wire mapping
    deterministic:  True when re-running the same call on the same state
                    reproduces the error (all contract-level failures are)

Errors convert to and from a problem+json shaped dict:

    {
        "type": "deployreg://registry/<code lowercased>",
        "title": "<code>",
        "detail": "<message>",
        "deterministic": true,
        "context": {...}
    }

`RegistryError.from_problem()` maps the title back to the registered subclass
and falls back to the base class for unknown codes.

Contract code never raises these directly; it calls `stdlib.abi.revert(reason)`
and the reason is mapped to the matching `Revert` subclass via `revert_for`.
"""

from __future__ import annotations

from typing import Any, ClassVar, Dict, Mapping, Optional, Type, Union

_PROBLEM_PREFIX = "deployreg://registry/"


class RegistryError(Exception):
    """Base class for every failure surfaced by deployreg."""

    code: ClassVar[str] = "REGISTRY_ERROR"
    default_deterministic: ClassVar[bool] = True

    def __init__(
        self,
        message: str = "",
        *,
        context: Optional[Mapping[str, Any]] = None,
        deterministic: Optional[bool] = None,
    ) -> None:
        super().__init__(message)
        self.message = str(message)
        self.context: Dict[str, Any] = dict(context or {})
        self.deterministic = (
            self.default_deterministic if deterministic is None else bool(deterministic)
        )

    def __str__(self) -> str:
        return f"{self.code}: {self.message}" if self.message else self.code

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "context": dict(self.context),
        }

    def to_problem(self) -> Dict[str, Any]:
        return {
            "type": _PROBLEM_PREFIX + self.code.lower(),
            "title": self.code,
            "detail": self.message,
            "deterministic": self.deterministic,
            "context": _jsonable(self.context),
        }

    @classmethod
    def from_problem(cls, problem: Mapping[str, Any]) -> "RegistryError":
        title = str(problem.get("title") or "")
        sub = _CODE_TO_SUBCLASS.get(title)
        ctx = dict(problem.get("context") or {})
        det = problem.get("deterministic")
        if sub is not None:
            err: RegistryError = sub.__new__(sub)
            RegistryError.__init__(
                err, str(problem.get("detail") or ""), context=ctx, deterministic=det
            )
            return err
        err = RegistryError(str(problem.get("detail") or ""), context=ctx, deterministic=det)
        # Preserve the foreign code on the instance.
        err.code = title or RegistryError.code  # type: ignore[misc]
        return err


class ValidationError(RegistryError):
    """Call arguments failed ABI decoding, or the method is unknown."""

    code = "VALIDATION_ERROR"


class ContextError(RegistryError):
    """Runtime API used outside of an active call frame, or a malformed env."""

    code = "CONTEXT_ERROR"


class StorageError(RegistryError):
    """Storage key/value out of bounds, or the backend failed to persist."""

    code = "STORAGE_ERROR"
    default_deterministic = False


class EventError(RegistryError):
    """Invalid event name/args, or the per-call event cap was exceeded."""

    code = "EVENT_INVALID"


class Revert(RegistryError):
    """Contract-level failure raised through `stdlib.abi.revert`."""

    code = "REVERT"

    def __init__(
        self,
        message: str = "",
        *,
        reason: Union[str, bytes, None] = None,
        data: Optional[bytes] = None,
        context: Optional[Mapping[str, Any]] = None,
        deterministic: Optional[bool] = None,
    ) -> None:
        ctx: Dict[str, Any] = dict(context or {})
        if reason is not None:
            ctx["reason"] = _reason_str(reason)
        if data is not None:
            ctx["data_hex"] = "0x" + bytes(data).hex()
        super().__init__(
            message or str(ctx.get("reason") or ""), context=ctx, deterministic=deterministic
        )

    @property
    def reason(self) -> str:
        return str(self.context.get("reason") or self.code)


class AlreadyClaimed(Revert):
    """The namespace has already been claimed."""

    code = "AlreadyClaimed"


class NamespaceNotFound(Revert):
    """The namespace was never claimed."""

    code = "NamespaceNotFound"


class NotAuthorized(Revert):
    """The caller is not an admin of the namespace."""

    code = "NotAuthorized"


_CODE_TO_SUBCLASS: Dict[str, Type[RegistryError]] = {
    c.code: c
    for c in (
        RegistryError,
        ValidationError,
        ContextError,
        StorageError,
        EventError,
        Revert,
        AlreadyClaimed,
        NamespaceNotFound,
        NotAuthorized,
    )
}

_REASON_TO_REVERT: Dict[str, Type[Revert]] = {
    AlreadyClaimed.code: AlreadyClaimed,
    NamespaceNotFound.code: NamespaceNotFound,
    NotAuthorized.code: NotAuthorized,
}


def _reason_str(reason: Union[str, bytes]) -> str:
    if isinstance(reason, (bytes, bytearray)):
        return bytes(reason).decode("utf-8", errors="replace")
    return str(reason)


def _jsonable(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, Mapping):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def revert_for(
    reason: Union[str, bytes], context: Optional[Mapping[str, Any]] = None
) -> Revert:
    """Build the Revert subclass registered for `reason` (plain Revert if unknown)."""
    key = _reason_str(reason)
    cls = _REASON_TO_REVERT.get(key, Revert)
    detail = ", ".join(f"{k}={_jsonable(v)}" for k, v in (context or {}).items())
    return cls(f"{key} ({detail})" if detail else key, reason=key, context=context)


__all__ = [
    "RegistryError",
    "ValidationError",
    "ContextError",
    "StorageError",
    "EventError",
    "Revert",
    "AlreadyClaimed",
    "NamespaceNotFound",
    "NotAuthorized",
    "revert_for",
]
