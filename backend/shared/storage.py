"""Append-only JSON-lines storage for match and user history.

Each record is one JSON object per line. Match results go to
``game_history.jsonl`` and join/leave events to ``user_history.jsonl``
inside the configured directory. The directory is created lazily with
owner-only permissions (0o700) on first write.
"""

import asyncio
import threading
from pathlib import Path
from typing import TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from shared.dal.history_repository import HistoryRepository
from shared.dal.models import MatchRecord, UserEvent

logger = structlog.get_logger()

# Owner-only directory permissions for history storage.
_HISTORY_DIR_MODE = 0o700

MATCH_HISTORY_FILE = "game_history.jsonl"
USER_HISTORY_FILE = "user_history.jsonl"

MIN_HISTORY_LIMIT = 1
MAX_HISTORY_LIMIT = 500

ModelT = TypeVar("ModelT", bound=BaseModel)


def clamp_limit(limit: int) -> int:
    """Clamp a requested record count to the supported range."""
    return max(MIN_HISTORY_LIMIT, min(MAX_HISTORY_LIMIT, limit))


class JsonlHistoryStorage(HistoryRepository):
    """History repository backed by local JSON-lines files.

    File IO runs in a worker thread so the event loop never blocks on disk.
    Lines that fail to parse on read are skipped with a warning.
    """

    def __init__(self, history_dir: str) -> None:
        self._history_dir = Path(history_dir).resolve()
        self._write_lock = threading.Lock()

    @property
    def match_path(self) -> Path:
        return self._history_dir / MATCH_HISTORY_FILE

    @property
    def user_path(self) -> Path:
        return self._history_dir / USER_HISTORY_FILE

    async def record_match(self, record: MatchRecord) -> None:
        await asyncio.to_thread(self.append, self.match_path, record)
        logger.info("recorded match", room_id=record.room_id, winner=record.winner_name, source=record.source)

    async def record_user_event(self, event: UserEvent) -> None:
        await asyncio.to_thread(self.append, self.user_path, event)

    async def get_recent_matches(self, limit: int = 50) -> list[MatchRecord]:
        return await asyncio.to_thread(self.read_recent, self.match_path, MatchRecord, limit)

    async def get_recent_user_events(self, limit: int = 50) -> list[UserEvent]:
        return await asyncio.to_thread(self.read_recent, self.user_path, UserEvent, limit)

    def append(self, path: Path, record: BaseModel) -> None:
        """Append one record as a JSON line, creating the directory if needed."""
        line = record.model_dump_json() + "\n"
        with self._write_lock:
            self._history_dir.mkdir(mode=_HISTORY_DIR_MODE, parents=True, exist_ok=True)
            with path.open("a", encoding="utf-8") as f:
                f.write(line)

    def read_recent(self, path: Path, model: type[ModelT], limit: int) -> list[ModelT]:
        """Return up to ``limit`` records, newest first."""
        if not path.exists():
            return []
        limit = clamp_limit(limit)
        lines = path.read_text(encoding="utf-8").splitlines()
        records: list[ModelT] = []
        for line in reversed(lines):
            if not line.strip():
                continue
            try:
                records.append(model.model_validate_json(line))
            except ValidationError:
                logger.warning("skipping malformed history line", path=str(path))
                continue
            if len(records) >= limit:
                break
        return records
