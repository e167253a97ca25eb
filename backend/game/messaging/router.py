from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, assert_never

from pydantic import ValidationError

from game.logic.exceptions import GameRuleError
from game.messaging.types import (
    ActionResultMessage,
    ClientMessage,
    CreateRoomMessage,
    ErrorMessage,
    GetRoomsMessage,
    JoinMessage,
    JoinRoomMessage,
    JoinRoomResultMessage,
    LeaveRoomMessage,
    MakeGuessMessage,
    PingMessage,
    RestartGameMessage,
    SendEmojiMessage,
    SessionErrorCode,
    SetNumberMessage,
    SubscribeHistoryMessage,
    parse_client_message,
)

if TYPE_CHECKING:
    from game.messaging.protocol import ConnectionProtocol
    from game.session.manager import SessionManager

logger = logging.getLogger(__name__)


class MessageRouter:
    """
    Routes incoming messages to appropriate handlers.

    This class contains pure business logic and can be tested
    without real WebSocket connections.
    """

    def __init__(self, session_manager: SessionManager) -> None:
        self._session_manager = session_manager

    async def handle_message(
        self,
        connection: ConnectionProtocol,
        raw_message: dict[str, Any],
    ) -> None:
        try:
            message = parse_client_message(raw_message)
        except (ValidationError, KeyError, TypeError, ValueError) as e:
            logger.warning("invalid message from %s: %s", connection.connection_id, e)
            await connection.send_message(
                ErrorMessage(code=SessionErrorCode.INVALID_MESSAGE, message=str(e)).model_dump(),
            )
            return

        try:
            await self._route(connection, message)
        except GameRuleError as e:
            logger.info("%s rejected for %s: %s", message.type.value, connection.connection_id, e)
            await self._send_rejection(connection, message, e)
        except (RuntimeError, OSError, ConnectionError):
            raise
        except Exception:
            logger.exception("unexpected error handling %s for %s", message.type.value, connection.connection_id)

    async def _route(self, connection: ConnectionProtocol, message: ClientMessage) -> None:
        manager = self._session_manager
        if isinstance(message, JoinMessage):
            await manager.join(connection, message.name)
        elif isinstance(message, CreateRoomMessage):
            await manager.create_room(connection, message.name, message.mode)
        elif isinstance(message, JoinRoomMessage):
            await manager.join_room(connection, message.room_id)
        elif isinstance(message, SetNumberMessage):
            await manager.set_number(connection, message.digits)
        elif isinstance(message, MakeGuessMessage):
            await manager.make_guess(connection, message.digits)
        elif isinstance(message, LeaveRoomMessage):
            await manager.leave_room(connection)
        elif isinstance(message, RestartGameMessage):
            await manager.restart_game(connection)
        elif isinstance(message, SendEmojiMessage):
            await manager.send_emoji(connection, message.emoji, message.text)
        elif isinstance(message, GetRoomsMessage):
            await manager.send_room_list(connection)
        elif isinstance(message, SubscribeHistoryMessage):
            await manager.subscribe_history(connection)
        elif isinstance(message, PingMessage):
            await manager.handle_ping(connection)
        else:
            assert_never(message)

    async def _send_rejection(
        self,
        connection: ConnectionProtocol,
        message: ClientMessage,
        error: GameRuleError,
    ) -> None:
        """Tell the acting player why their intent was refused."""
        if isinstance(message, JoinRoomMessage):
            reply = JoinRoomResultMessage(success=False, code=error.code, message=str(error))
        else:
            reply = ActionResultMessage(action=message.type, success=False, code=error.code, message=str(error))
        await connection.send_message(reply.model_dump(mode="json"))

    async def handle_connect(self, connection: ConnectionProtocol) -> None:
        self._session_manager.register_connection(connection)

    async def handle_disconnect(self, connection: ConnectionProtocol) -> None:
        await self._session_manager.handle_disconnect(connection)
