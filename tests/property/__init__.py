# SPDX-License-Identifier: MIT
"""
tests.property package bootstrap.

Registers Hypothesis profiles for the property suites and picks one on import:

- HYPOTHESIS_PROFILE=dev|ci|fast selects explicitly
- otherwise "ci" when the CI env var is truthy, "dev" locally

Every property test builds its own Runtime inside the test body (function
fixtures do not reset between Hypothesis examples).
"""
from __future__ import annotations

import os
from typing import Final

from hypothesis import HealthCheck, settings

# The autouse env fixture in tests/conftest.py is function-scoped and holds no
# per-example state.
_SUPPRESSED = (HealthCheck.too_slow, HealthCheck.function_scoped_fixture)

settings.register_profile(
    "dev",
    settings(max_examples=60, deadline=None, suppress_health_check=_SUPPRESSED),
)
settings.register_profile(
    "ci",
    settings(
        max_examples=200,
        deadline=None,
        suppress_health_check=_SUPPRESSED,
        derandomize=True,
    ),
)
settings.register_profile("fast", settings(max_examples=20, deadline=None, suppress_health_check=_SUPPRESSED))


def _env_truthy(name: str) -> bool:
    return (os.getenv(name) or "").lower() not in ("", "0", "false", "no", "off")


_active: Final[str] = os.getenv("HYPOTHESIS_PROFILE") or ("ci" if _env_truthy("CI") else "dev")
settings.load_profile(_active)
