from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import structlog
from starlette.websockets import WebSocket, WebSocketDisconnect

from game.messaging.encoder import DecodeError, decode
from game.messaging.protocol import ConnectionProtocol
from game.messaging.types import ErrorMessage, SessionErrorCode
from game.server.rate_limit import TokenBucket
from game.server.types import InboundLimits

logger = structlog.get_logger()

if TYPE_CHECKING:
    from game.messaging.router import MessageRouter

DECODE_STRIKES_CLOSE_CODE = 4004


class WebSocketConnection(ConnectionProtocol):
    def __init__(self, websocket: WebSocket, connection_id: str | None = None) -> None:
        self._websocket = websocket
        self._connection_id = connection_id or str(uuid4())

    @property
    def connection_id(self) -> str:
        return self._connection_id

    async def send_bytes(self, data: bytes) -> None:
        try:
            await self._websocket.send_bytes(data)
        except WebSocketDisconnect:
            raise ConnectionError("WebSocket already disconnected") from None

    async def receive_bytes(self) -> bytes:
        try:
            return await self._websocket.receive_bytes()
        except WebSocketDisconnect:
            raise ConnectionError("WebSocket already disconnected") from None

    async def close(self, code: int = 1000, reason: str = "") -> None:
        with contextlib.suppress(WebSocketDisconnect):
            await self._websocket.close(code=code, reason=reason)


class InboundGuard:
    """Screen one connection's raw frames before they reach the router.

    An undecodable frame is a strike; any decodable frame clears the count.
    Decoded frames beyond the token bucket are refused without a strike.
    """

    def __init__(self, limits: InboundLimits) -> None:
        self._limits = limits
        self._bucket = TokenBucket(rate=limits.message_rate, burst=limits.message_burst)
        self.strikes = 0

    @property
    def exhausted(self) -> bool:
        return self.strikes >= self._limits.max_decode_errors

    def admit(self, raw: bytes) -> dict[str, Any] | ErrorMessage:
        """Return the decoded frame, or the error to send back instead."""
        try:
            data = decode(raw)
        except DecodeError as e:
            self.strikes += 1
            logger.warning("decode error", error=str(e), strikes=self.strikes)
            return ErrorMessage(code=SessionErrorCode.INVALID_MESSAGE, message=str(e))

        self.strikes = 0
        if not self._bucket.consume():
            return ErrorMessage(code=SessionErrorCode.RATE_LIMITED, message="Too many messages")
        return data


async def websocket_endpoint(
    websocket: WebSocket,
    router: MessageRouter,
    limits: InboundLimits | None = None,
) -> None:
    await websocket.accept()

    connection = WebSocketConnection(websocket)
    structlog.contextvars.bind_contextvars(connection_id=connection.connection_id)
    logger.info("websocket connected")
    await router.handle_connect(connection)

    guard = InboundGuard(limits or InboundLimits())

    try:
        while True:
            admitted = guard.admit(await connection.receive_bytes())
            if isinstance(admitted, ErrorMessage):
                await connection.send_message(admitted.model_dump())
                if guard.exhausted:
                    logger.info("too many decode errors, disconnecting")
                    await connection.close(code=DECODE_STRIKES_CLOSE_CODE, reason="too_many_decode_errors")
                    return
                continue
            await router.handle_message(connection, admitted)
    except (WebSocketDisconnect, RuntimeError, ConnectionError):  # fmt: skip
        pass
    finally:
        logger.info("websocket disconnected")
        await router.handle_disconnect(connection)
        structlog.contextvars.clear_contextvars()
