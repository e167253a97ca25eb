from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from game.logic.evaluator import Digits, GuessScore
    from game.messaging.protocol import ConnectionProtocol


class MatchTimings(BaseModel):
    """Grace periods and delays used by the session layer, in seconds."""

    player_eviction_seconds: float = Field(default=1200.0, ge=0)
    room_deletion_seconds: float = Field(default=5.0, ge=0)
    round_transition_seconds: float = Field(default=3.0, ge=0)


@dataclass
class Player:
    """Represent a player identity in the registry.

    Lifecycle:
    - Created on the first join intent from a connection
    - On disconnect: connection is cleared and disconnected_at is set;
      the identity survives until the eviction grace period ends
    - On reconnect (join with the same name): connection is reattached
    - room_id is a back-reference maintained by the room it is seated in
    """

    player_id: str
    name: str
    connection: ConnectionProtocol | None = None
    room_id: str | None = None
    ready: bool = False
    disconnected_at: float | None = None  # time.monotonic() timestamp, None if connected

    @property
    def connection_id(self) -> str | None:
        return self.connection.connection_id if self.connection is not None else None

    @property
    def is_connected(self) -> bool:
        return self.connection is not None


@dataclass(frozen=True)
class GuessRecord:
    """One guess in a player's per-round history."""

    guess: Digits
    score: GuessScore
    timestamp: float

    @property
    def is_home_run(self) -> bool:
        return self.score.is_home_run
