from __future__ import annotations

from deployreg.runtime.context import current_frame


def sender() -> bytes:
    """Invoking identity of the current call (20-byte address)."""
    return current_frame().env.sender


__all__ = ["sender"]
