from __future__ import annotations

import functools
import time
from typing import TYPE_CHECKING

import structlog

from game.logic.enums import TimerKind
from game.logic.exceptions import PlayerNotFoundError
from game.session.models import Player

if TYPE_CHECKING:
    from game.messaging.protocol import ConnectionProtocol
    from game.session.timer_manager import TimerManager

logger = structlog.get_logger()


class PlayerRegistry:
    """In-memory store of player identities.

    Map connections to players, and keep a player's identity alive across
    connection drops for a grace period so that joining again under the same
    name reattaches to it. The registry knows nothing about rooms; room
    membership is tracked through Player.room_id by the room layer.
    """

    def __init__(self, timer_manager: TimerManager | None = None, eviction_seconds: float = 1200.0) -> None:
        self._players: dict[str, Player] = {}  # player_id -> Player
        self._by_connection: dict[str, str] = {}  # connection_id -> player_id
        self._timer_manager = timer_manager
        self._eviction_seconds = eviction_seconds
        self._next_id = 0

    def __len__(self) -> int:
        return len(self._players)

    def __contains__(self, player_id: object) -> bool:
        return player_id in self._players

    def register(self, connection: ConnectionProtocol, name: str) -> Player:
        """Return the player for a connection, creating or reattaching one as needed.

        A repeated join from the same connection returns the existing player.
        Otherwise a disconnected player with the same name is reattached to
        this connection (cancelling its pending eviction); failing that a new
        player id is allocated.
        """
        existing = self.get_by_connection(connection.connection_id)
        if existing is not None:
            return existing

        player = self._find_disconnected(name)
        if player is not None:
            if self._timer_manager is not None:
                self._timer_manager.cancel(TimerKind.PLAYER_EVICTION, player.player_id)
            player.connection = connection
            player.disconnected_at = None
            self._by_connection[connection.connection_id] = player.player_id
            logger.info("player reconnected", player_id=player.player_id, player_name=name)
            return player

        self._next_id += 1
        player = Player(player_id=f"player_{self._next_id}", name=name, connection=connection)
        self._players[player.player_id] = player
        self._by_connection[connection.connection_id] = player.player_id
        logger.info("player registered", player_id=player.player_id, player_name=name)
        return player

    def _find_disconnected(self, name: str) -> Player | None:
        candidates = [p for p in self._players.values() if not p.is_connected and p.name == name]
        if not candidates:
            return None
        # most recently disconnected identity wins
        return max(candidates, key=lambda p: p.disconnected_at or 0.0)

    def get(self, player_id: str) -> Player | None:
        return self._players.get(player_id)

    def get_by_connection(self, connection_id: str) -> Player | None:
        player_id = self._by_connection.get(connection_id)
        return self._players.get(player_id) if player_id is not None else None

    def require_by_connection(self, connection_id: str) -> Player:
        """Look up the player for a connection or raise PlayerNotFoundError."""
        player = self.get_by_connection(connection_id)
        if player is None:
            raise PlayerNotFoundError("join with a name first")
        return player

    def name_of(self, player_id: str) -> str:
        player = self._players.get(player_id)
        return player.name if player is not None else ""

    def detach(self, connection_id: str) -> Player | None:
        """Mark the connection's player as disconnected and schedule its eviction."""
        player_id = self._by_connection.pop(connection_id, None)
        player = self._players.get(player_id) if player_id is not None else None
        if player is None:
            return None
        player.connection = None
        player.disconnected_at = time.monotonic()
        player.ready = False
        self.schedule_eviction(player.player_id)
        return player

    def schedule_eviction(self, player_id: str) -> None:
        """Delete the player after the grace period unless a connection was reattached."""
        if self._timer_manager is None:
            return
        self._timer_manager.schedule(
            TimerKind.PLAYER_EVICTION,
            player_id,
            self._eviction_seconds,
            functools.partial(self._evict, player_id),
        )

    async def _evict(self, player_id: str) -> None:
        self.evict_if_disconnected(player_id)

    def evict_if_disconnected(self, player_id: str) -> bool:
        """Delete a player record only if it still has no live connection."""
        player = self._players.get(player_id)
        if player is None or player.is_connected:
            return False
        del self._players[player_id]
        logger.info("player evicted", player_id=player_id, player_name=player.name)
        return True

    def connected_players(self) -> list[Player]:
        return [p for p in self._players.values() if p.is_connected]

    def idle_players(self) -> list[Player]:
        """Connected players that are not seated in a room."""
        return [p for p in self._players.values() if p.is_connected and p.room_id is None]
