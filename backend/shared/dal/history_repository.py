"""Abstract interface for match and user history persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from shared.dal.models import MatchRecord, UserEvent


class HistoryRepository(ABC):
    """Abstract interface for the append-only history log.

    Writes are best-effort from the caller's point of view: the session
    layer logs and swallows any exception raised here.
    """

    @abstractmethod
    async def record_match(self, record: MatchRecord) -> None: ...

    @abstractmethod
    async def record_user_event(self, event: UserEvent) -> None: ...

    @abstractmethod
    async def get_recent_matches(self, limit: int = 50) -> list[MatchRecord]: ...

    @abstractmethod
    async def get_recent_user_events(self, limit: int = 50) -> list[UserEvent]: ...
