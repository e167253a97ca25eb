import asyncio

import pytest

from game.logic.enums import MatchMode, RoomPhase, TimerKind
from game.logic.events import EventType
from game.logic.exceptions import (
    NotInRoomError,
    NotYourTurnError,
    PlayerNotFoundError,
    RoomFullError,
    RoomNotFoundError,
)
from game.messaging.types import SessionMessageType
from game.session.manager import SessionManager
from game.session.models import MatchTimings
from game.session.room import OPPONENT_LEFT_REASON
from game.tests.helpers.session import (
    SECRET_A,
    SECRET_B,
    create_paired_room,
    drain,
    join_player,
    start_round,
    win_round,
)
from game.tests.mocks import MockConnection, RecordingHistoryRepository, YieldingConnection


def _types(conn: MockConnection) -> list[str]:
    return [m["type"] for m in conn.sent_messages]


class TestJoin:
    async def test_join_confirms_and_sends_directory(self, session_manager):
        conn = await join_player(session_manager, "Alice")

        joined = conn.last_of_type(SessionMessageType.JOINED)
        assert joined["player_name"] == "Alice"
        assert joined["player_id"] == "player_1"
        assert joined["room_id"] is None
        assert conn.last_of_type(SessionMessageType.ROOM_LIST) == {"type": "room_list", "rooms": []}

    async def test_join_pushes_online_users_to_everyone(self, session_manager):
        alice = await join_player(session_manager, "Alice")
        await join_player(session_manager, "Bob")

        users = alice.last_of_type(SessionMessageType.ONLINE_USERS)["users"]
        assert [u["name"] for u in users] == ["Alice", "Bob"]

    async def test_join_records_user_event(self, session_manager, history):
        await join_player(session_manager, "Alice")
        await session_manager.wait_for_background_tasks()

        assert [(e.action, e.player_name) for e in history.user_events] == [("join", "Alice")]

    async def test_intent_before_join_rejected(self, session_manager):
        conn = MockConnection()
        session_manager.register_connection(conn)
        with pytest.raises(PlayerNotFoundError):
            await session_manager.create_room(conn, "Duel", MatchMode.SINGLE)


class TestRoomDirectory:
    async def test_create_room_pushes_directory_to_idle_players(self, session_manager):
        host = await join_player(session_manager, "Alice")
        watcher = await join_player(session_manager, "Carol")
        watcher.clear()

        await session_manager.create_room(host, "Duel", MatchMode.BEST_OF_3)

        created = host.last_of_type(SessionMessageType.ROOM_CREATED)["room"]
        assert created["name"] == "Duel"
        assert created["mode"] == "best_of_3"
        assert created["players"] == ["Alice"]
        listing = watcher.last_of_type(SessionMessageType.ROOM_LIST)["rooms"]
        assert [r["room_id"] for r in listing] == [created["room_id"]]
        # the seated host is not idle, so no directory push
        assert host.last_of_type(SessionMessageType.ROOM_LIST)["rooms"] == []

    async def test_full_room_drops_out_of_directory(self, session_manager):
        watcher = await join_player(session_manager, "Carol")
        await create_paired_room(session_manager)

        assert watcher.last_of_type(SessionMessageType.ROOM_LIST)["rooms"] == []

    async def test_get_rooms_answers_requester(self, session_manager):
        host = await join_player(session_manager, "Alice")
        await session_manager.create_room(host, "Duel", MatchMode.SINGLE)
        asker = await join_player(session_manager, "Bob")
        asker.clear()

        await session_manager.send_room_list(asker)

        assert len(asker.last_of_type(SessionMessageType.ROOM_LIST)["rooms"]) == 1

    async def test_create_room_leaves_previous_room(self, session_manager):
        host, guest, room_id = await create_paired_room(session_manager)

        await session_manager.create_room(host, "Another", MatchMode.SINGLE)

        guest_id = session_manager.registry.get_by_connection(guest.connection_id).player_id
        assert session_manager.rooms.get(room_id).members == [guest_id]
        assert guest.last_of_type(EventType.GAME_INTERRUPTED)["reason"] == OPPONENT_LEFT_REASON


class TestJoinRoom:
    async def test_join_room_starts_setting_phase(self, session_manager):
        host = await join_player(session_manager, "Alice")
        guest = await join_player(session_manager, "Bob")
        await session_manager.create_room(host, "Duel", MatchMode.SINGLE)
        room_id = host.last_of_type(SessionMessageType.ROOM_CREATED)["room"]["room_id"]

        await session_manager.join_room(guest, room_id)

        result = guest.last_of_type(SessionMessageType.JOIN_ROOM_RESULT)
        assert result["success"] is True
        assert result["room"]["players"] == ["Alice", "Bob"]
        for conn in (host, guest):
            assert conn.last_of_type(EventType.PLAYER_JOINED)["player_name"] == "Bob"
            assert conn.last_of_type(EventType.GAME_START)["round"] == 1
        assert session_manager.rooms.get(room_id).phase == RoomPhase.SETTING

    async def test_join_missing_room_rejected(self, session_manager):
        conn = await join_player(session_manager, "Alice")
        with pytest.raises(RoomNotFoundError):
            await session_manager.join_room(conn, "room_99")

    async def test_full_room_rejection_keeps_current_seat(self, session_manager):
        _host, _guest, room_id = await create_paired_room(session_manager)
        carol = await join_player(session_manager, "Carol")
        await session_manager.create_room(carol, "Mine", MatchMode.SINGLE)
        carol_player = session_manager.registry.get_by_connection(carol.connection_id)
        own_room = carol_player.room_id

        with pytest.raises(RoomFullError):
            await session_manager.join_room(carol, room_id)

        assert carol_player.room_id == own_room
        assert session_manager.rooms.get(own_room).members == [carol_player.player_id]

    async def test_leave_room_when_not_seated_rejected(self, session_manager):
        conn = await join_player(session_manager, "Alice")
        with pytest.raises(NotInRoomError):
            await session_manager.leave_room(conn)


class TestMatchFlow:
    async def test_set_number_acks_and_notifies_opponent(self, session_manager):
        host, guest, _ = await create_paired_room(session_manager)

        await session_manager.set_number(host, SECRET_A)

        ack = host.last_of_type(SessionMessageType.ACTION_RESULT)
        assert ack == {"type": "action_result", "action": "set_number", "success": True, "code": None, "message": None}
        assert guest.last_of_type(EventType.PLAYER_READY)["player_name"] == "Alice"
        assert host.last_of_type(EventType.PLAYER_READY) is None

    async def test_both_secrets_start_round(self, session_manager):
        host, guest, _ = await create_paired_room(session_manager)

        await session_manager.set_number(host, SECRET_A)
        await session_manager.set_number(guest, SECRET_B)

        assert host.last_of_type(EventType.GAME_STARTED)["is_my_turn"] is True
        assert guest.last_of_type(EventType.GAME_STARTED)["is_my_turn"] is False
        assert guest.last_of_type(EventType.GAME_STARTED)["opponent_name"] == "Alice"

    async def test_guess_result_broadcast_and_turn_passes(self, session_manager):
        host, guest, _ = await create_paired_room(session_manager)
        await start_round(session_manager, host, guest)

        await session_manager.make_guess(host, [5, 6, 0, 1])

        for conn in (host, guest):
            result = conn.last_of_type(EventType.GUESS_RESULT)
            assert result["guess"] == [5, 6, 0, 1]
            assert result["result"] == {"exact": 2, "misplaced": 0}
            assert result["is_home_run"] is False
        guest_id = session_manager.registry.get_by_connection(guest.connection_id).player_id
        assert host.last_of_type(EventType.TURN_CHANGED)["current_turn"] == guest_id

        with pytest.raises(NotYourTurnError):
            await session_manager.make_guess(host, SECRET_B)

    async def test_single_round_match_ends_and_is_recorded_once(self, session_manager, history):
        host, guest, room_id = await create_paired_room(session_manager)
        await start_round(session_manager, host, guest)

        await win_round(session_manager, host)
        await session_manager.wait_for_background_tasks()

        assert _types(guest)[-3:] == [EventType.GUESS_RESULT, EventType.ROUND_WIN, EventType.GAME_ENDED]
        ended = guest.last_of_type(EventType.GAME_ENDED)
        assert ended["winner_name"] == "Alice"
        assert ended["loser_name"] == "Bob"
        assert sorted(ended["secrets"].values()) == [SECRET_A, SECRET_B]

        assert len(history.matches) == 1
        record = history.matches[0]
        assert record.room_id == room_id
        assert record.winner_name == "Alice"
        assert record.loser_name == "Bob"
        assert record.mode == "single"
        assert record.source == "online"
        assert session_manager.rooms.get(room_id).phase == RoomPhase.FINISHED

    async def test_best_of_three_advances_after_transition(self, session_manager, history):
        host, guest, room_id = await create_paired_room(session_manager, MatchMode.BEST_OF_3)
        await start_round(session_manager, host, guest)

        await win_round(session_manager, host)
        await drain()

        next_round = guest.last_of_type(EventType.NEXT_ROUND)
        assert next_round["round"] == 2
        assert session_manager.rooms.get(room_id).phase == RoomPhase.SETTING
        await session_manager.wait_for_background_tasks()
        assert history.matches == []

    async def test_best_of_three_full_series(self, session_manager, history):
        host, guest, _ = await create_paired_room(session_manager, MatchMode.BEST_OF_3)
        for _ in range(2):
            await start_round(session_manager, host, guest)
            await win_round(session_manager, host)
            await drain()

        await session_manager.wait_for_background_tasks()
        ended = host.last_of_type(EventType.GAME_ENDED)
        assert ended["total_rounds"] == 2
        assert list(ended["final_wins"].values()) == [2, 0]
        assert len(history.matches) == 1
        assert history.matches[0].mode == "best_of_3"

    async def test_restart_cancels_pending_round_transition(self, history):
        manager = SessionManager(
            history=history,
            timings=MatchTimings(room_deletion_seconds=0, round_transition_seconds=60),
        )
        host, guest, room_id = await create_paired_room(manager, MatchMode.BEST_OF_3)
        await start_round(manager, host, guest)
        await win_round(manager, host)
        assert manager.timer_manager.is_scheduled(TimerKind.NEXT_ROUND, room_id)

        await manager.restart_game(guest)

        assert not manager.timer_manager.is_scheduled(TimerKind.NEXT_ROUND, room_id)
        assert host.last_of_type(EventType.GAME_RESTARTED)["round"] == 1
        assert manager.rooms.get(room_id).phase == RoomPhase.SETTING
        manager.cancel_all_timers()

    async def test_emoji_reaches_opponent_only(self, session_manager):
        host, guest, _ = await create_paired_room(session_manager)

        await session_manager.send_emoji(host, ":)", "good luck")

        assert guest.last_of_type(EventType.EMOJI_RECEIVED)["text"] == "good luck"
        assert host.last_of_type(EventType.EMOJI_RECEIVED) is None


class TestConcurrentIntents:
    """Intents whose sends suspend must not interleave inside one room."""

    async def test_rejected_concurrent_join_keeps_current_seat(self, session_manager):
        host = await join_player(session_manager, "Alice", YieldingConnection)
        await session_manager.create_room(host, "Open", MatchMode.SINGLE)
        open_room = host.last_of_type(SessionMessageType.ROOM_CREATED)["room"]["room_id"]
        carol = await join_player(session_manager, "Carol", YieldingConnection)
        await session_manager.create_room(carol, "Mine", MatchMode.SINGLE)
        dave = await join_player(session_manager, "Dave", YieldingConnection)
        carol_player = session_manager.registry.get_by_connection(carol.connection_id)
        own_room = carol_player.room_id

        results = await asyncio.gather(
            session_manager.join_room(dave, open_room),
            session_manager.join_room(carol, open_room),
            return_exceptions=True,
        )
        await drain()

        assert results[0] is None
        assert isinstance(results[1], RoomFullError)
        assert carol_player.room_id == own_room
        assert session_manager.rooms.get(own_room).members == [carol_player.player_id]
        assert session_manager.rooms.get(open_room).player_count == 2

    async def test_concurrent_guesses_arrive_in_turn_order(self, session_manager):
        host, guest, _ = await create_paired_room(session_manager, connection_cls=YieldingConnection)
        await start_round(session_manager, host, guest)
        host_id = session_manager.registry.get_by_connection(host.connection_id).player_id
        guest_id = session_manager.registry.get_by_connection(guest.connection_id).player_id

        await asyncio.gather(
            session_manager.make_guess(host, [9, 0, 1, 2]),
            session_manager.make_guess(guest, [9, 0, 5, 6]),
        )

        seen = [
            (m["type"], m.get("player_id") or m.get("current_turn"))
            for m in guest.sent_messages
            if m["type"] in (EventType.GUESS_RESULT, EventType.TURN_CHANGED)
        ]
        assert seen == [
            (EventType.GUESS_RESULT, host_id),
            (EventType.TURN_CHANGED, guest_id),
            (EventType.GUESS_RESULT, guest_id),
            (EventType.TURN_CHANGED, host_id),
        ]


class TestDisconnects:
    async def test_disconnect_mid_match_interrupts_opponent(self, session_manager, history):
        host, guest, room_id = await create_paired_room(session_manager)
        await start_round(session_manager, host, guest)

        await session_manager.handle_disconnect(guest)
        await session_manager.wait_for_background_tasks()

        assert host.last_of_type(EventType.PLAYER_LEFT)["player_name"] == "Bob"
        assert host.last_of_type(EventType.GAME_INTERRUPTED)["reason"] == OPPONENT_LEFT_REASON
        room = session_manager.rooms.get(room_id)
        assert room.phase == RoomPhase.WAITING
        assert room.secrets == {}
        assert ("leave", "Bob") in [(e.action, e.player_name) for e in history.user_events]
        session_manager.cancel_all_timers()

    async def test_empty_room_deleted_after_grace(self, session_manager):
        host = await join_player(session_manager, "Alice")
        watcher = await join_player(session_manager, "Carol")
        await session_manager.create_room(host, "Duel", MatchMode.SINGLE)
        room_id = host.last_of_type(SessionMessageType.ROOM_CREATED)["room"]["room_id"]

        await session_manager.leave_room(host)
        assert host.last_of_type(SessionMessageType.ROOM_LEFT)["room_id"] == room_id
        await drain()

        assert room_id not in session_manager.rooms
        assert watcher.last_of_type(SessionMessageType.ROOM_LIST)["rooms"] == []

    async def test_join_during_grace_keeps_room(self, history):
        manager = SessionManager(history=history, timings=MatchTimings(room_deletion_seconds=60))
        host = await join_player(manager, "Alice")
        guest = await join_player(manager, "Bob")
        await manager.create_room(host, "Duel", MatchMode.SINGLE)
        room_id = host.last_of_type(SessionMessageType.ROOM_CREATED)["room"]["room_id"]
        await manager.leave_room(host)
        assert manager.timer_manager.is_scheduled(TimerKind.ROOM_DELETION, room_id)

        await manager.join_room(guest, room_id)

        assert not manager.timer_manager.is_scheduled(TimerKind.ROOM_DELETION, room_id)
        assert manager.rooms.get(room_id).host_id == manager.registry.get_by_connection(guest.connection_id).player_id
        manager.cancel_all_timers()

    async def test_reconnect_under_same_name_keeps_identity(self, session_manager):
        first = await join_player(session_manager, "Alice")
        player_id = first.last_of_type(SessionMessageType.JOINED)["player_id"]
        await session_manager.handle_disconnect(first)

        second = await join_player(session_manager, "Alice")

        assert second.last_of_type(SessionMessageType.JOINED)["player_id"] == player_id
        assert not session_manager.timer_manager.is_scheduled(TimerKind.PLAYER_EVICTION, player_id)


class TestHistoryFeed:
    async def test_subscribers_receive_finished_matches(self, session_manager):
        host, guest, _ = await create_paired_room(session_manager)
        spectator = await join_player(session_manager, "Carol")
        await session_manager.subscribe_history(spectator)
        assert spectator.last_of_type(SessionMessageType.HISTORY_SUBSCRIBED) is not None

        await start_round(session_manager, host, guest)
        await win_round(session_manager, host)
        await session_manager.wait_for_background_tasks()

        update = spectator.last_of_type(SessionMessageType.HISTORY_UPDATE)
        assert update["record"]["winner_name"] == "Alice"
        assert update["record"]["source"] == "online"

    async def test_history_failure_does_not_break_match(self, caplog):
        manager = SessionManager(
            history=RecordingHistoryRepository(fail=True),
            timings=MatchTimings(room_deletion_seconds=0, round_transition_seconds=0),
        )
        host, guest, room_id = await create_paired_room(manager)
        await start_round(manager, host, guest)

        await win_round(manager, host)
        await manager.wait_for_background_tasks()

        assert guest.last_of_type(EventType.GAME_ENDED) is not None
        assert manager.rooms.get(room_id).phase == RoomPhase.FINISHED
        assert "failed to persist match result" in caplog.text

    async def test_ping(self, session_manager, mock_connection):
        await session_manager.handle_ping(mock_connection)
        assert mock_connection.sent_messages == [{"type": "pong"}]
