import sys
from pathlib import Path

import pytest
import requests

# Ensure the repository root is on sys.path for direct pytest runs
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from keepsake.services import assets  # noqa: E402


@pytest.fixture(autouse=True)
def no_network(monkeypatch):
    """Every remote fetch fails unless a test installs its own fake."""

    def refuse(url, headers=None, timeout=None):
        raise requests.ConnectionError(f"network disabled in tests: {url}")

    monkeypatch.setattr(assets._session, "get", refuse)


@pytest.fixture
def measure():
    """Fixed-width measurer: 10px per character, bold 12px."""

    def _measure(text, bold=False):
        return len(text) * (12 if bold else 10)

    return _measure
