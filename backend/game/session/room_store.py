from __future__ import annotations

from typing import TYPE_CHECKING

from game.logic.exceptions import RoomNotFoundError
from game.session.room import Room

if TYPE_CHECKING:
    from game.logic.enums import MatchMode
    from game.session.registry import PlayerRegistry
    from game.session.types import RoomInfo


class RoomStore:
    """In-memory store of live rooms, keyed by room id."""

    def __init__(self, registry: PlayerRegistry) -> None:
        self._registry = registry
        self._rooms: dict[str, Room] = {}
        self._next_id = 0

    def __len__(self) -> int:
        return len(self._rooms)

    def __contains__(self, room_id: object) -> bool:
        return room_id in self._rooms

    def create(self, creator_id: str, name: str, mode: MatchMode) -> Room:
        """Create a waiting room with the creator seated as host."""
        self._next_id += 1
        room = Room(room_id=f"room_{self._next_id}", name=name, mode=mode, registry=self._registry)
        room.seat(creator_id)
        self._rooms[room.room_id] = room
        return room

    def get(self, room_id: str) -> Room | None:
        return self._rooms.get(room_id)

    def require(self, room_id: str) -> Room:
        room = self._rooms.get(room_id)
        if room is None:
            raise RoomNotFoundError(f"room {room_id} not found")
        return room

    def remove(self, room_id: str) -> Room | None:
        return self._rooms.pop(room_id, None)

    def all(self) -> list[Room]:
        return list(self._rooms.values())

    def directory(self) -> list[RoomInfo]:
        """Lobby listing: every room still waiting for a second player."""
        return [room.info() for room in self._rooms.values() if room.is_listed]
