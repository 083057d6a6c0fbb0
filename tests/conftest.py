"""Shared pytest configuration, path setup and fixtures for test modules."""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Ensure repo root and src/ are on sys.path for all tests
_ROOT = Path(__file__).resolve().parents[1]
_SRC = _ROOT / "src"
for p in (str(_ROOT), str(_SRC)):
    if p not in sys.path:
        sys.path.insert(0, p)

from cohortlib.core.storage import EncryptedJSONStore  # noqa: E402
from cohortlib.core.utils.clock import ManualClock  # noqa: E402
from cohortlib.taxonomy import load_taxonomy  # noqa: E402

# 2024-03-06 是周三，ISO 第 10 周
START = datetime(2024, 3, 6, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(START)


@pytest.fixture(scope="session")
def taxonomy():
    return load_taxonomy()


@pytest.fixture
def secure_store() -> EncryptedJSONStore:
    return EncryptedJSONStore()
