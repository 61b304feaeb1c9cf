"""
Shared pytest fixtures for contest-fanout tests.

This module provides:
- A standard PartitionQuery
- Record factories shaped like the seeded ContestParticipants items
- A recording sleep so retry tests never wait
- Settings isolation from the developer's environment
"""

import sys
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

# Ensure the package is importable without installation
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from contest_fanout.core.models import PartitionQuery
from contest_fanout.core.settings import reset_settings


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark every test without an explicit marker as a unit test."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Domain fixtures
# =============================================================================


def make_records(count: int, selection_id: str = "selection_winner", partition_id: str = "2") -> list[dict[str, Any]]:
    """Records shaped like the seeded ContestParticipants items."""
    return [
        {
            "contestId": "contest_123",
            "userId": f"user-{i:05d}",
            "selectionId": selection_id,
            "partitionId": partition_id,
            "selectionPartitionId": f"{selection_id}#{partition_id}",
        }
        for i in range(count)
    ]


@pytest.fixture
def query() -> PartitionQuery:
    return PartitionQuery("contest_123", "selection_winner", "2")


@pytest.fixture
def records_factory():
    return make_records


class SleepRecorder:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def no_sleep() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def mock_logger() -> MagicMock:
    """Logger double; assert on .info/.warning/.error calls."""
    return MagicMock()


# =============================================================================
# Environment isolation
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Keep FANOUT_* variables and .env files from leaking into tests."""
    import os

    for key in list(os.environ):
        if key.startswith("FANOUT_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    reset_settings()
    yield
    reset_settings()
