"""
Global pytest configuration for assured-jobs tests.

IMPORTANT: Keeps the developer's own ASSURED_JOBS_* settings out of tests.
"""

import os
import pytest


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """
    Remove assured-jobs environment variables for every test.

    Configuration is read from the environment, so stray settings from the
    shell (a real Redis URL, a fixed instance id) would otherwise leak in.
    """
    for name in list(os.environ):
        if name.startswith("ASSURED_JOBS_") or name == "REDIS_URL":
            monkeypatch.delenv(name, raising=False)
    yield
