import pytest

from game.logic.enums import MatchMode
from game.session.registry import PlayerRegistry
from game.session.room import Room
from game.session.timer_manager import TimerManager
from game.tests.mocks import MockConnection


@pytest.fixture
def timer_manager():
    return TimerManager()


@pytest.fixture
def registry(timer_manager):
    return PlayerRegistry(timer_manager=timer_manager, eviction_seconds=60)


@pytest.fixture
def alice(registry):
    return registry.register(MockConnection(), "Alice")


@pytest.fixture
def bob(registry):
    return registry.register(MockConnection(), "Bob")


@pytest.fixture
def carol(registry):
    return registry.register(MockConnection(), "Carol")


@pytest.fixture
def make_room(registry):
    def _make(mode: MatchMode = MatchMode.SINGLE, room_id: str = "room_1") -> Room:
        return Room(room_id=room_id, name="Duel", mode=mode, registry=registry)

    return _make
