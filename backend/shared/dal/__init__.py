"""Data access layer: repository interfaces and shared persistence models."""

from shared.dal.history_repository import HistoryRepository
from shared.dal.models import MatchRecord, UserEvent

__all__ = [
    "HistoryRepository",
    "MatchRecord",
    "UserEvent",
]
