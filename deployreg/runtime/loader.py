"""
deployreg.runtime.loader — load a contract module together with its manifest.

Packaged contracts live under `deployreg.contracts.<name>` as a pair:

    contract.py     module-level public functions
    manifest.json   {"name", "version", "abi": {"functions": [...], "events": [...]}}

`load_contract(name)` imports the module, reads the manifest via
importlib.resources (works from wheels) and checks that every ABI function is
a callable attribute of the module.
"""

from __future__ import annotations

import importlib
import json
from importlib import resources as importlib_resources
from pathlib import Path
from types import ModuleType
from typing import Any, Dict, Tuple, Union

from deployreg.errors import ValidationError

ManifestLike = Union[str, Path, Dict[str, Any]]

CONTRACTS_PACKAGE = "deployreg.contracts"


def load_manifest(m: ManifestLike) -> Dict[str, Any]:
    """Load a manifest from path or return a shallow-copied dict."""
    if isinstance(m, (str, Path)):
        p = Path(m)
        try:
            data = json.loads(p.read_text(encoding="utf-8"))
        except FileNotFoundError as e:
            raise ValidationError(f"manifest not found: {p}") from e
        except json.JSONDecodeError as e:
            raise ValidationError(f"invalid JSON in manifest {p}: {e}") from e
    elif isinstance(m, dict):
        data = dict(m)
    else:
        raise ValidationError(f"unsupported manifest input: {type(m).__name__}")
    if not isinstance(data, dict):
        raise ValidationError("manifest root must be an object")
    abi = data.get("abi")
    if not isinstance(abi, dict) or not isinstance(abi.get("functions"), list):
        raise ValidationError("manifest must contain abi.functions (list)")
    return data


def check_exports(module: ModuleType, manifest: Dict[str, Any]) -> None:
    for fn in manifest["abi"]["functions"]:
        name = fn.get("name")
        if not isinstance(name, str) or name.startswith("_"):
            raise ValidationError(f"bad function name in manifest: {name!r}")
        if not callable(getattr(module, name, None)):
            raise ValidationError(
                f"manifest function '{name}' not found in {module.__name__}"
            )


def load_contract(name: str = "registry") -> Tuple[ModuleType, Dict[str, Any]]:
    pkg = f"{CONTRACTS_PACKAGE}.{name}"
    try:
        module = importlib.import_module(f"{pkg}.contract")
    except ModuleNotFoundError as e:
        raise ValidationError(f"unknown contract: {name}") from e
    raw = importlib_resources.files(pkg).joinpath("manifest.json").read_text(encoding="utf-8")
    manifest = load_manifest(json.loads(raw))
    check_exports(module, manifest)
    return module, manifest


__all__ = ["ManifestLike", "load_manifest", "check_exports", "load_contract"]
