"""Typed domain exceptions for match rule violations.

Room operations validate fully before mutating anything and raise a
GameRuleError subclass when an intent is not allowed. The session layer
catches GameRuleError at its boundary and converts it into a failed
action result for the acting player; nothing else in the room changes.
"""

from game.logic.enums import GameErrorCode


class GameRuleError(Exception):
    """Base exception for rule violations in room and match logic."""

    code: GameErrorCode = GameErrorCode.INVALID_ACTION


class InvalidDigitsError(GameRuleError):
    """Submitted secret or guess is not four distinct digits 0-9."""

    code = GameErrorCode.INVALID_DIGITS


class WrongPhaseError(GameRuleError):
    """Intent is not valid in the room's current phase."""

    code = GameErrorCode.WRONG_PHASE


class NotYourTurnError(GameRuleError):
    """Guess submitted by the player who does not hold the turn."""

    code = GameErrorCode.NOT_YOUR_TURN


class RoomFullError(GameRuleError):
    """Room already seats two players."""

    code = GameErrorCode.ROOM_FULL


class AlreadyInRoomError(GameRuleError):
    """Player is already seated in this room."""

    code = GameErrorCode.ALREADY_IN_ROOM


class NotInRoomError(GameRuleError):
    """Player is not seated in any room (or not in this one)."""

    code = GameErrorCode.NOT_IN_ROOM


class RoomNotFoundError(GameRuleError):
    """Room id does not resolve to a live room."""

    code = GameErrorCode.ROOM_NOT_FOUND


class PlayerNotFoundError(GameRuleError):
    """Connection has not joined yet, or the player was evicted."""

    code = GameErrorCode.NOT_JOINED


class SecretAlreadySetError(GameRuleError):
    """Player already submitted a secret this round."""

    code = GameErrorCode.SECRET_ALREADY_SET


class OpponentMissingError(GameRuleError):
    """Intent needs two seated players but only one is present."""

    code = GameErrorCode.OPPONENT_MISSING
