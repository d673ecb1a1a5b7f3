"""
deployreg.contracts — packaged contracts.

Each contract is a subpackage holding `contract.py` (module-level public
functions written against `deployreg.stdlib`) and `manifest.json` (its ABI).
Shared helpers that contracts compose live in `access/`.
"""
