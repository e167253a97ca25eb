from game.tests.mocks.connection import MockConnection, YieldingConnection
from game.tests.mocks.history import RecordingHistoryRepository

__all__ = ["MockConnection", "RecordingHistoryRepository", "YieldingConnection"]
