import pytest

from game.messaging.router import MessageRouter
from game.server.settings import GameServerSettings
from game.session.manager import SessionManager
from game.session.models import MatchTimings
from game.tests.mocks import MockConnection, RecordingHistoryRepository


@pytest.fixture
def history():
    return RecordingHistoryRepository()


@pytest.fixture
def timings():
    return MatchTimings(player_eviction_seconds=60, room_deletion_seconds=0, round_transition_seconds=0)


@pytest.fixture
def session_manager(history, timings):
    return SessionManager(history=history, timings=timings)


@pytest.fixture
def message_router(session_manager):
    return MessageRouter(session_manager)


@pytest.fixture
def mock_connection():
    return MockConnection()


@pytest.fixture
def settings(tmp_path):
    return GameServerSettings(log_dir=str(tmp_path / "logs"), history_dir=str(tmp_path / "history"))
