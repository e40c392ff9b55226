import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]

if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest  # noqa: E402

from route_matching.services import matcher  # noqa: E402


@pytest.fixture(autouse=True)
def _serial_matching(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep API and analysis tests off the shared scoring pool."""
    monkeypatch.setattr(matcher, "MATCH_WORKERS", 1)
