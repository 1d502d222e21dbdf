"""
Unit tests for EventBus and EventRouter.

Test Coverage
-------------
- Wildcard matching
- Subscription validation and duplicate prevention
- Priority-ordered dispatch across exact and wildcard listeners
- Once-listeners, unsubscribe and clear
- Listener failure and timeout isolation
- Metrics
"""

import asyncio

import pytest

from src.core.event import EventBus, EventRouter, ListenerPriority
from src.core.exceptions import EventBusError


@pytest.fixture
def bus() -> EventBus:
    return EventBus(listener_timeout_seconds=1.0)


# ============================================================================
# ROUTER
# ============================================================================


@pytest.mark.unit
class TestEventRouter:
    @pytest.mark.parametrize(
        "event_name,pattern,expected",
        [
            ("poem.liked", "poem.liked", True),
            ("poem.liked", "poem.unliked", False),
            ("theme.closed", "*", True),
            ("friendship.blocked", "friendship.*", True),
            ("friendships.blocked", "friendship.*", False),
            ("theme.closed", "*.closed", True),
            ("theme.created", "*.closed", False),
            ("friendship.request.accepted", "friendship.*.accepted", True),
            ("friendship.accepted", "friendship.*.accepted", False),
            ("a.b.c.d", "a.*.c.*", True),
            ("poem.liked", "poem.**", True),
            ("Poem.Liked", "poem.*", False),
        ],
    )
    def test_matches(self, event_name, pattern, expected):
        assert EventRouter().matches(event_name, pattern) is expected

    def test_is_pattern(self):
        assert EventRouter.is_pattern("poem.*")
        assert not EventRouter.is_pattern("poem.liked")


# ============================================================================
# SUBSCRIPTION
# ============================================================================


@pytest.mark.unit
class TestSubscribe:
    def test_returns_identifier(self, bus):
        async def on_like(payload):
            return None

        identifier = bus.subscribe("poem.liked", on_like)

        assert identifier.endswith("on_like@poem.liked")
        assert bus.get_listener_count("poem.liked") == 1

    def test_empty_event_name_rejected(self, bus):
        with pytest.raises(EventBusError):
            bus.subscribe("  ", lambda payload: None)

    def test_non_callable_rejected(self, bus):
        with pytest.raises(EventBusError):
            bus.subscribe("poem.liked", "not a function")

    def test_wrong_arity_rejected(self, bus):
        with pytest.raises(EventBusError):
            bus.subscribe("poem.liked", lambda a, b: None)

    def test_duplicates_are_ignored(self, bus):
        def listener(payload):
            return None

        bus.subscribe("poem.liked", listener)
        bus.subscribe("poem.liked", listener)

        assert bus.get_listener_count() == 1

    def test_duplicates_allowed_on_request(self, bus):
        def listener(payload):
            return None

        bus.subscribe("poem.liked", listener)
        bus.subscribe("poem.liked", listener, allow_duplicates=True)

        assert bus.get_listener_count("poem.liked") == 2

    def test_unsubscribe(self, bus):
        identifier = bus.subscribe("theme.*", lambda payload: None, identifier="audit")

        assert bus.unsubscribe("theme.*", identifier) is True
        assert bus.unsubscribe("theme.*", identifier) is False
        assert bus.get_listener_count("theme.closed") == 0

    def test_get_all_events(self, bus):
        bus.subscribe("poem.liked", lambda payload: None, identifier="a")
        bus.subscribe("friendship.*", lambda payload: None, identifier="b")

        assert bus.get_all_events() == ["friendship.*", "poem.liked"]


# ============================================================================
# PUBLISH
# ============================================================================


@pytest.mark.unit
class TestPublish:
    async def test_no_listeners_returns_empty(self, bus):
        assert await bus.publish("poem.liked", {"poem_id": "p-1"}) == []

    async def test_publishing_a_pattern_is_rejected(self, bus):
        with pytest.raises(EventBusError):
            await bus.publish("poem.*", {})

    async def test_priority_order_across_exact_and_wildcard(self, bus):
        # Arrange
        calls = []

        async def record(payload):
            calls.append(payload["tag"])

        def make(tag):
            async def listener(payload):
                calls.append(tag)
            return listener

        bus.subscribe("friendship.*", make("wildcard-low"), priority=ListenerPriority.LOW, identifier="w-low")
        bus.subscribe("friendship.blocked", make("exact-normal"), identifier="e-normal")
        bus.subscribe("*", make("global-critical"), priority=ListenerPriority.CRITICAL, identifier="g-crit")
        bus.subscribe("friendship.blocked", make("exact-high"), priority=ListenerPriority.HIGH, identifier="e-high")

        # Act
        await bus.publish("friendship.blocked", {"friendship_id": "f-1"})

        # Assert
        assert calls == ["global-critical", "exact-high", "exact-normal", "wildcard-low"]

    async def test_sync_listeners_receive_payload(self, bus):
        received = []
        bus.subscribe("theme.closed", received.append)

        results = await bus.publish("theme.closed", {"theme_id": "t-1"})

        assert received == [{"theme_id": "t-1"}]
        assert results == [None]

    async def test_once_listener_fires_once(self, bus):
        received = []

        async def listener(payload):
            received.append(payload)

        bus.subscribe("poem.created", listener, once=True)

        await bus.publish("poem.created", {"n": 1})
        await bus.publish("poem.created", {"n": 2})

        assert received == [{"n": 1}]
        assert bus.get_listener_count() == 0

    async def test_failing_listener_does_not_stop_others(self, bus):
        # Arrange
        received = []

        async def broken(payload):
            raise RuntimeError("notification service down")

        async def healthy(payload):
            received.append(payload)
            return "ok"

        bus.subscribe("poem.liked", broken, priority=ListenerPriority.HIGH)
        bus.subscribe("poem.liked", healthy)

        # Act
        results = await bus.publish("poem.liked", {"poem_id": "p-1"})

        # Assert
        assert results == [None, "ok"]
        assert received == [{"poem_id": "p-1"}]
        assert bus.get_metrics().listener_errors == {"poem.liked": 1}

    async def test_slow_listener_times_out(self):
        bus = EventBus(listener_timeout_seconds=0.01)

        async def slow(payload):
            await asyncio.sleep(1)

        bus.subscribe("poem.liked", slow)

        results = await bus.publish("poem.liked", {})

        assert results == [None]
        assert bus.get_metrics_summary()["total_errors"] == 1

    async def test_timeout_read_from_config(self, mocker):
        config = mocker.MagicMock()
        config.get.return_value = "2.5"

        bus = EventBus(config)

        assert bus._listener_timeout == 2.5
        config.get.assert_called_once_with("events.listener_timeout_seconds", 5.0)


# ============================================================================
# METRICS
# ============================================================================


@pytest.mark.unit
class TestMetrics:
    async def test_summary(self, bus):
        bus.subscribe("poem.liked", lambda payload: None)

        await bus.publish("poem.liked", {})
        await bus.publish("poem.liked", {})
        await bus.publish("theme.closed", {})

        summary = bus.get_metrics_summary()
        assert summary["total_events_published"] == 3
        assert summary["events_by_type"] == {"poem.liked": 2, "theme.closed": 1}
        assert summary["total_listeners"] == 1
        assert summary["error_rate"] == 0.0

    def test_metrics_disabled(self):
        bus = EventBus(enable_metrics=False)

        assert bus.get_metrics() is None
        assert bus.get_metrics_summary() == {}

    async def test_clear_resets_everything(self, bus):
        bus.subscribe("poem.liked", lambda payload: None)
        await bus.publish("poem.liked", {})

        bus.clear()

        assert bus.get_listener_count() == 0
        assert bus.get_metrics_summary()["total_events_published"] == 0
