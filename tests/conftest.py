"""Shared test fixtures for gridmatch."""

import pytest

from gridmatch.config import EngineConfig
from gridmatch.core.ranking import MemoryRankingStore
from gridmatch.game.engine import MatchEngine
from gridmatch.game.events import RecordingDispatcher
from gridmatch.game.reporter import OutcomeReporter
from gridmatch.game.state import Mode


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def store():
    return MemoryRankingStore()


@pytest.fixture
def reporter(store):
    return OutcomeReporter(store)


@pytest.fixture
def engine_config():
    return EngineConfig(tick_rate=10, turn_limit_s=30.0, time_update_ticks=10)


@pytest.fixture
def make_engine(engine_config, dispatcher, reporter):
    """Build a MatchEngine sharing the test's dispatcher and store."""
    def _make(mode: Mode = Mode.STANDARD, **kwargs) -> MatchEngine:
        return MatchEngine(
            engine_config, dispatcher, reporter, default_mode=mode, **kwargs
        )
    return _make
