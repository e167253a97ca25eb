"""Domain event models and service event transport container.

Room operations return lists of ServiceEvent. Each wraps a domain event
model together with a typed routing target; the session layer resolves the
target to live connections and serializes the event for the wire.

All layers import exclusively from this module for event types.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, model_validator

from game.logic.enums import MatchMode  # noqa: TC001
from game.logic.evaluator import GuessScore  # noqa: TC001

# ---------------------------------------------------------------------------
# Typed routing targets
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BroadcastTarget:
    """Event should be sent to every member of the room, minus an optional one."""

    exclude_player_id: str | None = None


@dataclass(frozen=True)
class PlayerTarget:
    """Event should be sent to a single player."""

    player_id: str


EventTarget = BroadcastTarget | PlayerTarget


# ---------------------------------------------------------------------------
# Event type enum
# ---------------------------------------------------------------------------


class EventType(StrEnum):
    """Types of room events."""

    PLAYER_JOINED = "player_joined"
    PLAYER_LEFT = "player_left"
    GAME_START = "game_start"
    PLAYER_READY = "player_ready"
    GAME_STARTED = "game_started"
    GUESS_RESULT = "guess_result"
    TURN_CHANGED = "turn_changed"
    ROUND_WIN = "round_win"
    NEXT_ROUND = "next_round"
    GAME_ENDED = "game_ended"
    GAME_RESTARTED = "game_restarted"
    GAME_INTERRUPTED = "game_interrupted"
    EMOJI_RECEIVED = "emoji_received"


# ---------------------------------------------------------------------------
# Domain event models
# ---------------------------------------------------------------------------


class GameEvent(BaseModel):
    """Base class for all room events."""

    model_config = ConfigDict(frozen=True)

    type: EventType


class PlayerJoinedEvent(GameEvent):
    type: Literal[EventType.PLAYER_JOINED] = EventType.PLAYER_JOINED
    player_id: str
    player_name: str
    player_count: int


class PlayerLeftEvent(GameEvent):
    type: Literal[EventType.PLAYER_LEFT] = EventType.PLAYER_LEFT
    player_id: str
    player_name: str
    player_count: int


class GameStartEvent(GameEvent):
    """Both seats are filled; players should now choose their secrets."""

    type: Literal[EventType.GAME_START] = EventType.GAME_START
    round: int


class PlayerReadyEvent(GameEvent):
    """Opponent has locked in a secret for this round."""

    type: Literal[EventType.PLAYER_READY] = EventType.PLAYER_READY
    player_id: str
    player_name: str


class GameStartedEvent(GameEvent):
    """Both secrets are in; guessing begins. Sent to each player individually."""

    type: Literal[EventType.GAME_STARTED] = EventType.GAME_STARTED
    is_my_turn: bool
    opponent_name: str
    mode: MatchMode
    round: int


class GuessResultEvent(GameEvent):
    type: Literal[EventType.GUESS_RESULT] = EventType.GUESS_RESULT
    player_id: str
    player_name: str
    guess: tuple[int, ...]
    result: GuessScore
    is_home_run: bool


class TurnChangedEvent(GameEvent):
    type: Literal[EventType.TURN_CHANGED] = EventType.TURN_CHANGED
    current_turn: str


class RoundWinEvent(GameEvent):
    type: Literal[EventType.ROUND_WIN] = EventType.ROUND_WIN
    winner_id: str
    winner_name: str
    round: int
    wins: dict[str, int]


class NextRoundEvent(GameEvent):
    type: Literal[EventType.NEXT_ROUND] = EventType.NEXT_ROUND
    round: int
    wins: dict[str, int]


class GameEndedEvent(GameEvent):
    """Match decided. Reveals every secret of the final round."""

    type: Literal[EventType.GAME_ENDED] = EventType.GAME_ENDED
    winner_id: str
    winner_name: str
    loser_name: str
    secrets: dict[str, tuple[int, ...]]
    final_wins: dict[str, int]
    total_rounds: int


class GameRestartedEvent(GameEvent):
    type: Literal[EventType.GAME_RESTARTED] = EventType.GAME_RESTARTED
    round: int


class GameInterruptedEvent(GameEvent):
    type: Literal[EventType.GAME_INTERRUPTED] = EventType.GAME_INTERRUPTED
    reason: str


class EmojiReceivedEvent(GameEvent):
    type: Literal[EventType.EMOJI_RECEIVED] = EventType.EMOJI_RECEIVED
    sender_id: str
    sender_name: str
    emoji: str
    text: str


# ---------------------------------------------------------------------------
# Service event wrapper
# ---------------------------------------------------------------------------


class ServiceEvent(BaseModel):
    """Event transport container for the session layer.

    Uses typed internal targets (BroadcastTarget / PlayerTarget) for routing.
    """

    model_config = {"arbitrary_types_allowed": True}

    event: EventType
    data: GameEvent
    target: EventTarget = BroadcastTarget()

    @model_validator(mode="after")
    def _ensure_event_matches_data(self) -> ServiceEvent:
        if self.event.value != self.data.type.value:
            raise ValueError(
                f"ServiceEvent.event '{self.event.value}' does not match data.type '{self.data.type.value}'",
            )
        return self


def broadcast(data: GameEvent, *, exclude_player_id: str | None = None) -> ServiceEvent:
    """Wrap an event for every room member."""
    return ServiceEvent(event=data.type, data=data, target=BroadcastTarget(exclude_player_id=exclude_player_id))


def to_player(player_id: str, data: GameEvent) -> ServiceEvent:
    """Wrap an event for a single player."""
    return ServiceEvent(event=data.type, data=data, target=PlayerTarget(player_id=player_id))


def has_event(events: list[ServiceEvent], event_type: type[GameEvent]) -> bool:
    """Check whether any event in the list carries the given payload type."""
    return any(isinstance(event.data, event_type) for event in events)
