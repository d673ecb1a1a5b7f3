"""
deployreg.tests helpers

- Deterministic test defaults (hash seed, Hypothesis profile).
"""

from __future__ import annotations

import os

os.environ.setdefault("PYTHONHASHSEED", "0")

# Hypothesis defaults: faster local runs, deeper CI runs
from hypothesis import HealthCheck, settings

# The autouse config-reset fixture is function scoped but holds no per-example state.
_suppressed = [HealthCheck.function_scoped_fixture]

settings.register_profile("local", settings(max_examples=60, deadline=None, suppress_health_check=_suppressed))
settings.register_profile("ci", settings(max_examples=200, deadline=None, suppress_health_check=_suppressed))
settings.load_profile(os.environ.get("HYPOTHESIS_PROFILE") or ("ci" if os.environ.get("CI") else "local"))
