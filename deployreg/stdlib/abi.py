from __future__ import annotations

from deployreg.runtime.abi import require, revert

__all__ = ["require", "revert"]
