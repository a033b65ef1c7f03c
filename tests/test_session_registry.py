import pytest

from game.game_manager import game_manager
from game.session_registry import GameSessionRegistry


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


def _state(haunt_id: str = "sorcererslair"):
    return game_manager.create_initial_state(haunt_id)


def test_create_and_get(clock):
    registry = GameSessionRegistry(clock=clock)
    session = registry.create(_state())
    assert len(session.game_id) == 12
    assert registry.get(session.game_id) is session
    assert len(registry) == 1


def test_idle_games_expire(clock):
    registry = GameSessionRegistry(ttl_seconds=60, clock=clock)
    session = registry.create(_state())

    clock.now += 61

    assert registry.get(session.game_id) is None
    assert len(registry) == 0


def test_activity_keeps_game_alive(clock):
    registry = GameSessionRegistry(ttl_seconds=60, clock=clock)
    session = registry.create(_state())

    for _ in range(5):
        clock.now += 45
        assert registry.get(session.game_id) is session

    clock.now += 45
    registry.update(session.game_id, session.state.model_copy(update={"score": 100}))
    clock.now += 45
    assert registry.get(session.game_id).state.score == 100


def test_expiry_happens_on_create(clock):
    registry = GameSessionRegistry(ttl_seconds=60, clock=clock)
    for _ in range(3):
        registry.create(_state())

    clock.now += 120
    registry.create(_state())

    assert len(registry) == 1


def test_full_registry_drops_least_recently_used(clock):
    registry = GameSessionRegistry(max_sessions=2, clock=clock)
    first = registry.create(_state())
    clock.now += 1
    second = registry.create(_state())
    clock.now += 1
    registry.get(first.game_id)
    clock.now += 1

    third = registry.create(_state())

    assert len(registry) == 2
    assert registry.get(second.game_id) is None
    assert registry.get(first.game_id) is first
    assert registry.get(third.game_id) is third


def test_discard(clock):
    registry = GameSessionRegistry(clock=clock)
    session = registry.create(_state())
    assert registry.discard(session.game_id) is True
    assert registry.discard(session.game_id) is False
    assert len(registry) == 0
