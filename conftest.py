"""Root conftest — repo root on ``sys.path`` and a clean config environment."""

import os
import sys
from pathlib import Path

import pytest

_APP_DIR = str(Path(__file__).resolve().parent)
if _APP_DIR not in sys.path:
    sys.path.insert(0, _APP_DIR)

_ENV_PREFIXES = ("INSIGHTFLOW_", "RCA_AGENT_")


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """Drop config overrides inherited from the developer's shell."""
    for key in list(os.environ):
        if key.startswith(_ENV_PREFIXES):
            monkeypatch.delenv(key, raising=False)
