"""Match room state machine.

A room seats two players and walks them through the match:

    waiting --(second player joins)--> setting --(both secrets in)--> playing
    playing --(home run)--> finished
    finished --(next round, series undecided)--> setting
    setting/playing/between rounds --(a player leaves)--> waiting

Every public operation validates fully before touching any state and raises
a GameRuleError subclass on rejection, so a rejected intent leaves the room
exactly as it was. Successful operations return the ServiceEvents to deliver,
in order. Scheduling (room deletion, next-round delay) is the caller's job.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from game.logic.enums import MatchMode, RoomPhase
from game.logic.evaluator import evaluate, validate_digits
from game.logic.events import (
    EmojiReceivedEvent,
    GameEndedEvent,
    GameInterruptedEvent,
    GameRestartedEvent,
    GameStartedEvent,
    GameStartEvent,
    GuessResultEvent,
    NextRoundEvent,
    PlayerJoinedEvent,
    PlayerLeftEvent,
    PlayerReadyEvent,
    RoundWinEvent,
    ServiceEvent,
    TurnChangedEvent,
    broadcast,
    to_player,
)
from game.logic.exceptions import (
    AlreadyInRoomError,
    NotInRoomError,
    NotYourTurnError,
    OpponentMissingError,
    PlayerNotFoundError,
    RoomFullError,
    SecretAlreadySetError,
    WrongPhaseError,
)
from game.session.models import GuessRecord
from game.session.types import RoomInfo

if TYPE_CHECKING:
    from game.logic.evaluator import Digits
    from game.session.models import Player
    from game.session.registry import PlayerRegistry

ROOM_CAPACITY = 2

OPPONENT_LEFT_REASON = "Opponent left the room"


@dataclass
class Room:
    room_id: str
    name: str
    mode: MatchMode
    registry: PlayerRegistry = field(repr=False)
    host_id: str | None = None
    members: list[str] = field(default_factory=list)  # player ids in seat order
    phase: RoomPhase = RoomPhase.WAITING
    secrets: dict[str, Digits] = field(default_factory=dict)
    histories: dict[str, list[GuessRecord]] = field(default_factory=dict)
    current_turn: str | None = None
    wins: dict[str, int] = field(default_factory=dict)
    current_round: int = 1
    created_at: float = field(default_factory=time.time)

    @property
    def rounds_needed(self) -> int:
        return self.mode.rounds_needed

    @property
    def max_rounds(self) -> int:
        return self.mode.max_rounds

    @property
    def player_count(self) -> int:
        return len(self.members)

    @property
    def is_empty(self) -> bool:
        return not self.members

    @property
    def is_full(self) -> bool:
        return self.player_count >= ROOM_CAPACITY

    @property
    def is_listed(self) -> bool:
        """Whether the room shows up in the lobby directory."""
        return self.phase == RoomPhase.WAITING and not self.is_empty and not self.is_full

    @property
    def match_decided(self) -> bool:
        return any(count >= self.rounds_needed for count in self.wins.values())

    @property
    def match_in_progress(self) -> bool:
        """True from seating both players until the series is decided."""
        if self.phase in (RoomPhase.SETTING, RoomPhase.PLAYING):
            return True
        return self.phase == RoomPhase.FINISHED and not self.match_decided

    def info(self) -> RoomInfo:
        return RoomInfo(
            room_id=self.room_id,
            name=self.name,
            player_count=self.player_count,
            max_players=ROOM_CAPACITY,
            phase=self.phase,
            mode=self.mode,
            players=[self.registry.name_of(pid) for pid in self.members],
        )

    def opponent_of(self, player_id: str) -> str | None:
        for member in self.members:
            if member != player_id:
                return member
        return None

    # --- Membership ---

    def seat(self, player_id: str) -> None:
        """Seat the creator of a new room as its host."""
        player = self._require_player(player_id)
        self.members.append(player_id)
        self.host_id = player_id
        self.wins[player_id] = 0
        player.room_id = self.room_id
        player.ready = False

    def check_join(self, player_id: str) -> None:
        """Raise if player_id may not join. Does not mutate."""
        self._require_player(player_id)
        if player_id in self.members:
            raise AlreadyInRoomError("already in this room")
        if self.is_full:
            raise RoomFullError("room is full")
        if self.phase != RoomPhase.WAITING:
            raise WrongPhaseError("match already in progress")

    def join(self, player_id: str) -> list[ServiceEvent]:
        """Add a second player. Filling the room moves it to the setting phase."""
        self.check_join(player_id)
        player = self._require_player(player_id)

        self.members.append(player_id)
        if self.host_id is None:
            self.host_id = player_id
        player.room_id = self.room_id
        player.ready = False
        self.wins[player_id] = 0

        events = [
            broadcast(
                PlayerJoinedEvent(
                    player_id=player_id,
                    player_name=player.name,
                    player_count=self.player_count,
                ),
            ),
        ]
        if self.is_full:
            # a new pairing always starts a fresh series
            self._reset_series()
            self.phase = RoomPhase.SETTING
            events.append(broadcast(GameStartEvent(round=self.current_round)))
        return events

    def leave(self, player_id: str) -> list[ServiceEvent]:
        """Remove a member unconditionally. Unknown ids are a no-op."""
        if player_id not in self.members:
            return []

        was_in_progress = self.match_in_progress
        player = self.registry.get(player_id)
        player_name = player.name if player is not None else ""

        self.members.remove(player_id)
        self.secrets.pop(player_id, None)
        self.histories.pop(player_id, None)
        self.wins.pop(player_id, None)
        if player is not None and player.room_id == self.room_id:
            player.room_id = None
            player.ready = False

        if self.is_empty:
            self.host_id = None
            self.current_turn = None
            self.phase = RoomPhase.WAITING
            return []

        if self.host_id == player_id:
            self.host_id = self.members[0]

        events = [
            broadcast(
                PlayerLeftEvent(
                    player_id=player_id,
                    player_name=player_name,
                    player_count=self.player_count,
                ),
            ),
        ]
        if self.phase != RoomPhase.WAITING:
            self._reset_series()
            self.phase = RoomPhase.WAITING
            if was_in_progress:
                events.append(broadcast(GameInterruptedEvent(reason=OPPONENT_LEFT_REASON)))
        return events

    # --- Match flow ---

    def submit_secret(self, player_id: str, digits: object) -> list[ServiceEvent]:
        """Lock in a player's secret for the current round."""
        player = self._require_member(player_id)
        if self.phase != RoomPhase.SETTING:
            raise WrongPhaseError("secrets can only be set before the round starts")
        secret = validate_digits(digits)
        if player_id in self.secrets:
            raise SecretAlreadySetError("secret already set for this round")

        self.secrets[player_id] = secret
        player.ready = True
        events = [
            broadcast(
                PlayerReadyEvent(player_id=player_id, player_name=player.name),
                exclude_player_id=player_id,
            ),
        ]
        if self.is_full and all(member in self.secrets for member in self.members):
            events.extend(self._start_round())
        return events

    def _start_round(self) -> list[ServiceEvent]:
        self.phase = RoomPhase.PLAYING
        self.current_turn = self.members[0]
        self.histories = {member: [] for member in self.members}
        events = []
        for member in self.members:
            opponent = self.opponent_of(member)
            events.append(
                to_player(
                    member,
                    GameStartedEvent(
                        is_my_turn=member == self.current_turn,
                        opponent_name=self.registry.name_of(opponent) if opponent else "",
                        mode=self.mode,
                        round=self.current_round,
                    ),
                ),
            )
        return events

    def guess(self, player_id: str, digits: object) -> list[ServiceEvent]:
        """Score a guess against the opponent's secret and advance the match."""
        player = self._require_member(player_id)
        if self.phase != RoomPhase.PLAYING:
            raise WrongPhaseError("round is not in progress")
        if self.current_turn != player_id:
            raise NotYourTurnError("not your turn")
        guess = validate_digits(digits)
        opponent = self.opponent_of(player_id)
        if opponent is None or opponent not in self.secrets:
            raise OpponentMissingError("no opponent secret to guess against")

        score = evaluate(guess, self.secrets[opponent])
        self.histories.setdefault(player_id, []).append(
            GuessRecord(guess=guess, score=score, timestamp=time.time()),
        )
        events = [
            broadcast(
                GuessResultEvent(
                    player_id=player_id,
                    player_name=player.name,
                    guess=guess,
                    result=score,
                    is_home_run=score.is_home_run,
                ),
            ),
        ]
        if score.is_home_run:
            events.extend(self._round_won(player_id, opponent))
        else:
            self.current_turn = opponent
            events.append(broadcast(TurnChangedEvent(current_turn=opponent)))
        return events

    def _round_won(self, winner_id: str, loser_id: str) -> list[ServiceEvent]:
        self.wins[winner_id] = self.wins.get(winner_id, 0) + 1
        self.phase = RoomPhase.FINISHED
        self.current_turn = None
        winner_name = self.registry.name_of(winner_id)
        events = [
            broadcast(
                RoundWinEvent(
                    winner_id=winner_id,
                    winner_name=winner_name,
                    round=self.current_round,
                    wins=dict(self.wins),
                ),
            ),
        ]
        if self.wins[winner_id] >= self.rounds_needed:
            events.append(
                broadcast(
                    GameEndedEvent(
                        winner_id=winner_id,
                        winner_name=winner_name,
                        loser_name=self.registry.name_of(loser_id),
                        secrets=dict(self.secrets),
                        final_wins=dict(self.wins),
                        total_rounds=self.current_round,
                    ),
                ),
            )
        else:
            self.current_round += 1
        return events

    def start_next_round(self, expected_round: int) -> list[ServiceEvent]:
        """Open the next round of an undecided series.

        Runs after the round-transition delay, so it re-checks that the room
        is still between rounds of the same series and returns no events if
        anything changed in the meantime.
        """
        if (
            self.phase != RoomPhase.FINISHED
            or self.match_decided
            or self.current_round != expected_round
            or not self.is_full
        ):
            return []
        self._clear_round_state()
        self.phase = RoomPhase.SETTING
        return [broadcast(NextRoundEvent(round=self.current_round, wins=dict(self.wins)))]

    def restart(self, player_id: str) -> list[ServiceEvent]:
        """Reset the series to round one with both current members."""
        self._require_member(player_id)
        if not self.is_full:
            raise OpponentMissingError("waiting for an opponent")
        self._reset_series()
        self.phase = RoomPhase.SETTING
        return [broadcast(GameRestartedEvent(round=self.current_round))]

    def send_emoji(self, player_id: str, emoji: str, text: str) -> list[ServiceEvent]:
        player = self._require_member(player_id)
        return [
            broadcast(
                EmojiReceivedEvent(sender_id=player_id, sender_name=player.name, emoji=emoji, text=text),
                exclude_player_id=player_id,
            ),
        ]

    # --- Internal helpers ---

    def _clear_round_state(self) -> None:
        self.secrets.clear()
        self.histories.clear()
        self.current_turn = None
        for member in self.members:
            player = self.registry.get(member)
            if player is not None:
                player.ready = False

    def _reset_series(self) -> None:
        self._clear_round_state()
        self.wins = dict.fromkeys(self.members, 0)
        self.current_round = 1

    def _require_player(self, player_id: str) -> Player:
        player = self.registry.get(player_id)
        if player is None:
            raise PlayerNotFoundError(f"unknown player {player_id}")
        return player

    def _require_member(self, player_id: str) -> Player:
        if player_id not in self.members:
            raise NotInRoomError("not a member of this room")
        return self._require_player(player_id)
