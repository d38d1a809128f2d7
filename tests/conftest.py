from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

# Ensure src/ is importable when tests run from repo root
PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from klarity.config import Settings  # noqa: E402
from klarity.errors import AnalysisError  # noqa: E402


T0 = datetime(2024, 6, 1, 9, 30, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeAnalyzer:
    """Returns a canned payload, or raises when `error` is set."""

    def __init__(self, payload: Optional[Dict[str, Any]] = None, error: Optional[str] = None) -> None:
        self.payload = payload if payload is not None else {"acts": []}
        self.error = error
        self.images: List[str] = []

    def analyze(self, image: str) -> Dict[str, Any]:
        self.images.append(image)
        if self.error:
            raise AnalysisError(self.error)
        return self.payload


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    (tmp_path / "README.md").write_text("test marker", encoding="utf-8")
    return tmp_path


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(link_base_url="https://klarity.test", link_ttl_days=15)
