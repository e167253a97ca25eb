from __future__ import annotations

import asyncio
import contextlib
import functools
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

from game.logic.enums import RoomPhase, TimerKind
from game.logic.events import (
    BroadcastTarget,
    GameEndedEvent,
    PlayerTarget,
    RoundWinEvent,
    has_event,
)
from game.logic.exceptions import NotInRoomError
from game.messaging.event_payload import service_event_payload
from game.messaging.types import (
    ActionResultMessage,
    ClientMessageType,
    ErrorMessage,
    HistorySubscribedMessage,
    HistoryUpdateMessage,
    JoinedMessage,
    JoinRoomResultMessage,
    OnlineUser,
    OnlineUsersMessage,
    PongMessage,
    RoomCreatedMessage,
    RoomLeftMessage,
    RoomListMessage,
    SessionErrorCode,
)
from game.session.broadcast import broadcast_to_players
from game.session.models import MatchTimings
from game.session.registry import PlayerRegistry
from game.session.room_store import RoomStore
from game.session.timer_manager import TimerManager
from shared.dal.models import MatchRecord, UserEvent

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Coroutine
    from typing import Any, Literal

    from pydantic import BaseModel

    from game.logic.enums import MatchMode
    from game.logic.events import ServiceEvent
    from game.messaging.protocol import ConnectionProtocol
    from game.session.models import Player
    from game.session.room import Room
    from shared.dal.history_repository import HistoryRepository

logger = structlog.get_logger()


class SessionManager:
    """Match orchestrator: routes player intents to rooms and fans out the results.

    Owns no game rules itself. Each intent resolves the acting player through
    the registry, applies one room operation (which raises GameRuleError
    without mutating anything on rejection), delivers the returned events in
    order, and then takes care of follow-up work: pushing the room directory
    to idle players, scheduling room deletion and round transitions, and
    handing finished matches to the history repository.

    Every room operation and its fan-out run under that room's lock, so
    members see one intent's notifications before the next intent is
    validated. An intent touching two rooms takes both locks in id order.
    """

    def __init__(
        self,
        registry: PlayerRegistry | None = None,
        rooms: RoomStore | None = None,
        history: HistoryRepository | None = None,
        timings: MatchTimings | None = None,
        timer_manager: TimerManager | None = None,
    ) -> None:
        self._timings = timings or MatchTimings()
        self._timer_manager = timer_manager or TimerManager()
        self._registry = registry or PlayerRegistry(
            timer_manager=self._timer_manager,
            eviction_seconds=self._timings.player_eviction_seconds,
        )
        self._rooms = rooms or RoomStore(self._registry)
        self._history = history
        self._connections: dict[str, ConnectionProtocol] = {}
        self._history_subscribers: dict[str, ConnectionProtocol] = {}
        self._background_tasks: set[asyncio.Task[None]] = set()
        self._room_locks: dict[str, asyncio.Lock] = {}  # room_id -> Lock

    @property
    def registry(self) -> PlayerRegistry:
        return self._registry

    @property
    def rooms(self) -> RoomStore:
        return self._rooms

    @property
    def history(self) -> HistoryRepository | None:
        return self._history

    @property
    def timer_manager(self) -> TimerManager:
        return self._timer_manager

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    # --- Connection lifecycle ---

    def register_connection(self, connection: ConnectionProtocol) -> None:
        self._connections[connection.connection_id] = connection

    async def handle_disconnect(self, connection: ConnectionProtocol) -> None:
        """Vacate the player's seat immediately; keep the identity for the grace period."""
        self._connections.pop(connection.connection_id, None)
        self._history_subscribers.pop(connection.connection_id, None)

        player = self._registry.get_by_connection(connection.connection_id)
        if player is None:
            return
        if player.room_id is not None:
            async with self._room_locked(player.room_id):
                await self._leave_current_room(player)
        self._registry.detach(connection.connection_id)
        logger.info("player disconnected", player_id=player.player_id)
        self._record_user_event(player, "leave")
        await self._broadcast_online_users()

    # --- Intents ---

    async def join(self, connection: ConnectionProtocol, name: str) -> None:
        player = self._registry.register(connection, name)
        structlog.contextvars.bind_contextvars(player_id=player.player_id)
        await self._send(
            connection,
            JoinedMessage(player_id=player.player_id, player_name=player.name, room_id=player.room_id),
        )
        if player.room_id is None:
            await self.send_room_list(connection)
        self._record_user_event(player, "join")
        await self._broadcast_online_users()

    async def create_room(self, connection: ConnectionProtocol, name: str, mode: MatchMode) -> None:
        player = self._require_player(connection)
        if player.room_id is not None:
            async with self._room_locked(player.room_id):
                await self._leave_current_room(player)

        room = self._rooms.create(player.player_id, name, mode)
        structlog.contextvars.bind_contextvars(room_id=room.room_id)
        logger.info("room created", mode=mode, room_name=name)
        await self._send(connection, RoomCreatedMessage(room=room.info()))
        await self._broadcast_room_list()

    async def join_room(self, connection: ConnectionProtocol, room_id: str) -> None:
        player = self._require_player(connection)
        self._rooms.require(room_id)

        # both rooms stay locked so a rejected join never costs the current seat
        async with self._room_locked(room_id, player.room_id):
            room = self._rooms.require(room_id)
            room.check_join(player.player_id)

            if player.room_id is not None:
                await self._leave_current_room(player)

            self._timer_manager.cancel(TimerKind.ROOM_DELETION, room_id)
            events = room.join(player.player_id)
            structlog.contextvars.bind_contextvars(room_id=room_id)
            logger.info("player joined room", player_count=room.player_count)
            await self._send(connection, JoinRoomResultMessage(success=True, room=room.info()))
            await self._dispatch(room, events)
            await self._broadcast_room_list()

    async def leave_room(self, connection: ConnectionProtocol) -> None:
        player = self._require_player(connection)
        room_id = player.room_id
        if room_id is None:
            raise NotInRoomError("not in a room")
        async with self._room_locked(room_id):
            await self._leave_current_room(player)
        await self._send(connection, RoomLeftMessage(room_id=room_id))

    async def set_number(self, connection: ConnectionProtocol, digits: list[int]) -> None:
        player, room = self._require_room(connection)
        async with self._room_locked(room.room_id):
            events = room.submit_secret(player.player_id, digits)
            await self._send(connection, ActionResultMessage(action=ClientMessageType.SET_NUMBER, success=True))
            await self._dispatch(room, events)
            if room.phase == RoomPhase.PLAYING:
                logger.info("round started", round=room.current_round)

    async def make_guess(self, connection: ConnectionProtocol, digits: list[int]) -> None:
        player, room = self._require_room(connection)
        async with self._room_locked(room.room_id):
            events = room.guess(player.player_id, digits)
            await self._dispatch(room, events)

            if has_event(events, GameEndedEvent):
                self._record_match_end(room, events)
            elif has_event(events, RoundWinEvent):
                self._schedule_next_round(room)

    async def restart_game(self, connection: ConnectionProtocol) -> None:
        player, room = self._require_room(connection)
        async with self._room_locked(room.room_id):
            events = room.restart(player.player_id)
            self._timer_manager.cancel(TimerKind.NEXT_ROUND, room.room_id)
            logger.info("match restarted", room_id=room.room_id)
            await self._dispatch(room, events)

    async def send_emoji(self, connection: ConnectionProtocol, emoji: str, text: str) -> None:
        player, room = self._require_room(connection)
        async with self._room_locked(room.room_id):
            await self._dispatch(room, room.send_emoji(player.player_id, emoji, text))

    async def send_room_list(self, connection: ConnectionProtocol) -> None:
        await self._send(connection, RoomListMessage(rooms=self._rooms.directory()))

    async def subscribe_history(self, connection: ConnectionProtocol) -> None:
        self._history_subscribers[connection.connection_id] = connection
        await self._send(connection, HistorySubscribedMessage())

    async def handle_ping(self, connection: ConnectionProtocol) -> None:
        await self._send(connection, PongMessage())

    # --- History ---

    async def record_match(self, record: MatchRecord) -> None:
        """Persist a finished match (best-effort) and push it to history subscribers."""
        if self._history is not None:
            try:
                await self._history.record_match(record)
            except Exception:
                logger.exception("failed to persist match result")
        message = HistoryUpdateMessage(record=record).model_dump(mode="json")
        for connection in list(self._history_subscribers.values()):
            try:
                await connection.send_message(message)
            except (RuntimeError, OSError):
                self._history_subscribers.pop(connection.connection_id, None)

    def _record_match_end(self, room: Room, events: list[ServiceEvent]) -> None:
        for event in events:
            if isinstance(event.data, GameEndedEvent):
                record = MatchRecord(
                    recorded_at=datetime.now(UTC),
                    room_id=room.room_id,
                    room_name=room.name,
                    winner_name=event.data.winner_name,
                    loser_name=event.data.loser_name,
                    mode=room.mode.value,
                )
                logger.info("match finished", room_id=room.room_id, winner=record.winner_name)
                self._spawn(self.record_match(record))

    def _record_user_event(self, player: Player, action: Literal["join", "leave"]) -> None:
        if self._history is None:
            return
        event = UserEvent(
            recorded_at=datetime.now(UTC),
            action=action,
            player_id=player.player_id,
            player_name=player.name,
        )
        self._spawn(self._persist_user_event(event))

    async def _persist_user_event(self, event: UserEvent) -> None:
        if self._history is None:
            return
        try:
            await self._history.record_user_event(event)
        except Exception:
            logger.exception("failed to persist user event")

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        """Run a coroutine in the background without awaiting it."""
        task = asyncio.create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def wait_for_background_tasks(self) -> None:
        """Let pending history writes finish (used on shutdown and in tests)."""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    def cancel_all_timers(self) -> None:
        self._timer_manager.cancel_all()

    # --- Room helpers ---

    @contextlib.asynccontextmanager
    async def _room_locked(self, *room_ids: str | None) -> AsyncIterator[None]:
        """Hold the locks of the given rooms, acquired in sorted id order."""
        async with contextlib.AsyncExitStack() as stack:
            for room_id in sorted({r for r in room_ids if r is not None}):
                lock = self._room_locks.setdefault(room_id, asyncio.Lock())
                await stack.enter_async_context(lock)
            yield

    async def _leave_current_room(self, player: Player) -> None:
        """Vacate the player's seat. The caller holds the room's lock."""
        room_id = player.room_id
        room = self._rooms.get(room_id) if room_id is not None else None
        if room is None:
            player.room_id = None
            return

        events = room.leave(player.player_id)
        logger.info("player left room", player_id=player.player_id, room_id=room.room_id)
        if room.phase == RoomPhase.WAITING:
            self._timer_manager.cancel(TimerKind.NEXT_ROUND, room.room_id)
        await self._dispatch(room, events)
        if room.is_empty:
            self._schedule_room_deletion(room.room_id)
        await self._broadcast_room_list()

    def _schedule_room_deletion(self, room_id: str) -> None:
        self._timer_manager.schedule(
            TimerKind.ROOM_DELETION,
            room_id,
            self._timings.room_deletion_seconds,
            functools.partial(self._delete_room_if_empty, room_id),
        )

    async def _delete_room_if_empty(self, room_id: str) -> None:
        async with self._room_locked(room_id):
            room = self._rooms.get(room_id)
            if room is None or not room.is_empty:
                return
            self._rooms.remove(room_id)
            self._room_locks.pop(room_id, None)
            self._timer_manager.cancel(TimerKind.NEXT_ROUND, room_id)
            logger.info("room deleted", room_id=room_id)
            await self._broadcast_room_list()

    def _schedule_next_round(self, room: Room) -> None:
        self._timer_manager.schedule(
            TimerKind.NEXT_ROUND,
            room.room_id,
            self._timings.round_transition_seconds,
            functools.partial(self._advance_round, room.room_id, room.current_round),
        )

    async def _advance_round(self, room_id: str, expected_round: int) -> None:
        async with self._room_locked(room_id):
            room = self._rooms.get(room_id)
            if room is None:
                return
            events = room.start_next_round(expected_round)
            if events:
                logger.info("next round", room_id=room_id, round=expected_round)
                await self._dispatch(room, events)

    async def _dispatch(self, room: Room, events: list[ServiceEvent]) -> None:
        """Deliver events to room members using typed targets."""
        for event in events:
            message = service_event_payload(event)
            members = [p for p in (self._registry.get(m) for m in room.members) if p is not None]
            if isinstance(event.target, BroadcastTarget):
                await broadcast_to_players(members, message, event.target.exclude_player_id)
            elif isinstance(event.target, PlayerTarget):
                recipients = [p for p in members if p.player_id == event.target.player_id]
                await broadcast_to_players(recipients, message)

    async def _broadcast_room_list(self) -> None:
        """Push the full directory to every connected player not seated in a room."""
        message = RoomListMessage(rooms=self._rooms.directory()).model_dump(mode="json")
        await broadcast_to_players(self._registry.idle_players(), message)

    async def _broadcast_online_users(self) -> None:
        connected = self._registry.connected_players()
        users = [OnlineUser(player_id=p.player_id, name=p.name) for p in connected]
        await broadcast_to_players(connected, OnlineUsersMessage(users=users).model_dump(mode="json"))

    def _require_player(self, connection: ConnectionProtocol) -> Player:
        return self._registry.require_by_connection(connection.connection_id)

    def _require_room(self, connection: ConnectionProtocol) -> tuple[Player, Room]:
        player = self._require_player(connection)
        room = self._rooms.get(player.room_id) if player.room_id is not None else None
        if room is None:
            raise NotInRoomError("not in a room")
        structlog.contextvars.bind_contextvars(player_id=player.player_id, room_id=room.room_id)
        return player, room

    async def _send(self, connection: ConnectionProtocol, message: BaseModel) -> None:
        await connection.send_message(message.model_dump(mode="json"))

    async def send_error(self, connection: ConnectionProtocol, code: SessionErrorCode, message: str) -> None:
        logger.warning("session error sent to client", error_code=code.value, error_message=message)
        await self._send(connection, ErrorMessage(code=code, message=message))
