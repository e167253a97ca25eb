from enum import StrEnum


class RoomPhase(StrEnum):
    """Lifecycle phase of a match room."""

    WAITING = "waiting"
    SETTING = "setting"
    PLAYING = "playing"
    FINISHED = "finished"


class MatchMode(StrEnum):
    """Series length: a single round or best of three."""

    SINGLE = "single"
    BEST_OF_3 = "best_of_3"

    @property
    def rounds_needed(self) -> int:
        """Round wins required to take the match."""
        return 2 if self is MatchMode.BEST_OF_3 else 1

    @property
    def max_rounds(self) -> int:
        return 3 if self is MatchMode.BEST_OF_3 else 1


class GameErrorCode(StrEnum):
    """Error codes returned to the acting player when an intent is rejected."""

    INVALID_DIGITS = "invalid_digits"
    WRONG_PHASE = "wrong_phase"
    NOT_YOUR_TURN = "not_your_turn"
    ROOM_FULL = "room_full"
    ALREADY_IN_ROOM = "already_in_room"
    NOT_IN_ROOM = "not_in_room"
    ROOM_NOT_FOUND = "room_not_found"
    NOT_JOINED = "not_joined"
    SECRET_ALREADY_SET = "secret_already_set"
    OPPONENT_MISSING = "opponent_missing"
    INVALID_ACTION = "invalid_action"


class TimerKind(StrEnum):
    """Deferred work scheduled by the session layer."""

    PLAYER_EVICTION = "player_eviction"
    ROOM_DELETION = "room_deletion"
    NEXT_ROUND = "next_round"
