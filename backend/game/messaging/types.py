from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, StrictInt, TypeAdapter, field_validator

from game.logic.enums import GameErrorCode, MatchMode
from game.session.types import RoomInfo
from shared.dal.models import MatchRecord

# ASCII control character boundaries for input validation
_SPACE_ORD = 0x20
_DEL_ORD = 0x7F


def _reject_control_chars(v: str) -> str:
    if any((ord(c) < _SPACE_ORD and c not in ("\t", "\n", "\r")) or ord(c) == _DEL_ORD for c in v):
        raise ValueError("text must not contain control characters")
    return v


class ClientMessageType(StrEnum):
    JOIN = "join"
    CREATE_ROOM = "create_room"
    JOIN_ROOM = "join_room"
    SET_NUMBER = "set_number"
    MAKE_GUESS = "make_guess"
    LEAVE_ROOM = "leave_room"
    RESTART_GAME = "restart_game"
    SEND_EMOJI = "send_emoji"
    GET_ROOMS = "get_rooms"
    SUBSCRIBE_HISTORY = "subscribe_history"
    PING = "ping"


class SessionMessageType(StrEnum):
    JOINED = "joined"
    ROOM_LIST = "room_list"
    ROOM_CREATED = "room_created"
    JOIN_ROOM_RESULT = "join_room_result"
    ROOM_LEFT = "room_left"
    ACTION_RESULT = "action_result"
    ONLINE_USERS = "online_users"
    HISTORY_SUBSCRIBED = "history_subscribed"
    HISTORY_UPDATE = "history_update"
    ERROR = "session_error"
    PONG = "pong"


class SessionErrorCode(StrEnum):
    INVALID_MESSAGE = "invalid_message"
    RATE_LIMITED = "rate_limited"
    NOT_JOINED = "not_joined"


# --- Client intents ---


class JoinMessage(BaseModel):
    type: Literal[ClientMessageType.JOIN] = ClientMessageType.JOIN
    name: str = Field(min_length=1, max_length=50)

    @field_validator("name")
    @classmethod
    def _validate_name(cls, v: str) -> str:
        v = _reject_control_chars(v).strip()
        if not v:
            raise ValueError("name must not be blank")
        return v


class CreateRoomMessage(BaseModel):
    type: Literal[ClientMessageType.CREATE_ROOM] = ClientMessageType.CREATE_ROOM
    name: str = Field(min_length=1, max_length=100)
    mode: MatchMode = MatchMode.SINGLE

    @field_validator("name")
    @classmethod
    def _validate_name(cls, v: str) -> str:
        return _reject_control_chars(v)


class JoinRoomMessage(BaseModel):
    type: Literal[ClientMessageType.JOIN_ROOM] = ClientMessageType.JOIN_ROOM
    room_id: str = Field(min_length=1, max_length=50, pattern=r"^[a-zA-Z0-9_-]+$")


# Elements must be real ints (no bools, no numeric strings). Length, range
# and repeats are checked by the room so those come back as action results.
_DIGITS_FIELD = Field(max_length=16)


class SetNumberMessage(BaseModel):
    type: Literal[ClientMessageType.SET_NUMBER] = ClientMessageType.SET_NUMBER
    digits: list[StrictInt] = _DIGITS_FIELD


class MakeGuessMessage(BaseModel):
    type: Literal[ClientMessageType.MAKE_GUESS] = ClientMessageType.MAKE_GUESS
    digits: list[StrictInt] = _DIGITS_FIELD


class LeaveRoomMessage(BaseModel):
    type: Literal[ClientMessageType.LEAVE_ROOM] = ClientMessageType.LEAVE_ROOM


class RestartGameMessage(BaseModel):
    type: Literal[ClientMessageType.RESTART_GAME] = ClientMessageType.RESTART_GAME


class SendEmojiMessage(BaseModel):
    type: Literal[ClientMessageType.SEND_EMOJI] = ClientMessageType.SEND_EMOJI
    emoji: str = Field(min_length=1, max_length=16)
    text: str = Field(default="", max_length=200)

    @field_validator("emoji", "text")
    @classmethod
    def _validate_text(cls, v: str) -> str:
        return _reject_control_chars(v)


class GetRoomsMessage(BaseModel):
    type: Literal[ClientMessageType.GET_ROOMS] = ClientMessageType.GET_ROOMS


class SubscribeHistoryMessage(BaseModel):
    type: Literal[ClientMessageType.SUBSCRIBE_HISTORY] = ClientMessageType.SUBSCRIBE_HISTORY


class PingMessage(BaseModel):
    type: Literal[ClientMessageType.PING] = ClientMessageType.PING


ClientMessage = (
    JoinMessage
    | CreateRoomMessage
    | JoinRoomMessage
    | SetNumberMessage
    | MakeGuessMessage
    | LeaveRoomMessage
    | RestartGameMessage
    | SendEmojiMessage
    | GetRoomsMessage
    | SubscribeHistoryMessage
    | PingMessage
)


# --- Session messages (server -> client) ---


class JoinedMessage(BaseModel):
    type: Literal[SessionMessageType.JOINED] = SessionMessageType.JOINED
    player_id: str
    player_name: str
    room_id: str | None = None


class RoomListMessage(BaseModel):
    type: Literal[SessionMessageType.ROOM_LIST] = SessionMessageType.ROOM_LIST
    rooms: list[RoomInfo]


class RoomCreatedMessage(BaseModel):
    type: Literal[SessionMessageType.ROOM_CREATED] = SessionMessageType.ROOM_CREATED
    room: RoomInfo


class JoinRoomResultMessage(BaseModel):
    type: Literal[SessionMessageType.JOIN_ROOM_RESULT] = SessionMessageType.JOIN_ROOM_RESULT
    success: bool
    room: RoomInfo | None = None
    code: GameErrorCode | None = None
    message: str | None = None


class RoomLeftMessage(BaseModel):
    type: Literal[SessionMessageType.ROOM_LEFT] = SessionMessageType.ROOM_LEFT
    room_id: str


class ActionResultMessage(BaseModel):
    """Outcome of an intent for the player who sent it."""

    type: Literal[SessionMessageType.ACTION_RESULT] = SessionMessageType.ACTION_RESULT
    action: ClientMessageType
    success: bool
    code: GameErrorCode | None = None
    message: str | None = None


class OnlineUser(BaseModel):
    player_id: str
    name: str


class OnlineUsersMessage(BaseModel):
    type: Literal[SessionMessageType.ONLINE_USERS] = SessionMessageType.ONLINE_USERS
    users: list[OnlineUser]


class HistorySubscribedMessage(BaseModel):
    type: Literal[SessionMessageType.HISTORY_SUBSCRIBED] = SessionMessageType.HISTORY_SUBSCRIBED


class HistoryUpdateMessage(BaseModel):
    type: Literal[SessionMessageType.HISTORY_UPDATE] = SessionMessageType.HISTORY_UPDATE
    record: MatchRecord


class ErrorMessage(BaseModel):
    type: Literal[SessionMessageType.ERROR] = SessionMessageType.ERROR
    code: SessionErrorCode
    message: str


class PongMessage(BaseModel):
    type: Literal[SessionMessageType.PONG] = SessionMessageType.PONG


_client_message_adapter = TypeAdapter(Annotated[ClientMessage, Field(discriminator="type")])


def parse_client_message(data: dict[str, Any]) -> ClientMessage:
    """Parse a raw dict into a typed ClientMessage, discriminated on "type"."""
    return _client_message_adapter.validate_python(data)
