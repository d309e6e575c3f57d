"""
Tests for CompletionEventBus and progress rounding.
"""
import pytest

from puzzlegraph.graph.events import CompletionEventBus
from puzzlegraph.graph.models import CompletionEvent
from puzzlegraph.graph.progress import completion_percentage


@pytest.fixture
def event():
    return CompletionEvent(user_id=1, puzzle_id=2, newly_available_puzzle_ids=[3, 4])


class TestCompletionEventBus:

    def test_publish_reaches_all_handlers(self, event):
        bus = CompletionEventBus()
        first, second = [], []
        bus.subscribe(first.append)
        bus.subscribe(second.append)

        bus.publish(event)

        assert first == [event]
        assert second == [event]

    def test_subscribe_twice_delivers_once(self, event):
        bus = CompletionEventBus()
        received = []
        bus.subscribe(received.append)
        bus.subscribe(received.append)

        bus.publish(event)

        assert received == [event]

    def test_unsubscribe(self, event):
        bus = CompletionEventBus()
        received = []
        bus.subscribe(received.append)
        bus.unsubscribe(received.append)

        bus.publish(event)

        assert received == []

    def test_failing_handler_is_logged_not_raised(self, event, log_messages):
        bus = CompletionEventBus()
        received = []

        @bus.subscribe
        def broken(_event):
            raise RuntimeError("mail server down")

        bus.subscribe(received.append)
        bus.publish(event)

        assert received == [event]
        assert any("failed" in message for message in log_messages)


class TestCompletionPercentage:

    @pytest.mark.parametrize(
        "completed,total,expected",
        [
            (0, 0, 0),
            (0, 4, 0),
            (1, 3, 33),
            (2, 3, 67),
            (1, 8, 13),  # 12.5 rounds up
            (5, 8, 63),  # 62.5 rounds up
            (4, 4, 100),
        ],
    )
    def test_half_up_rounding(self, completed, total, expected):
        assert completion_percentage(completed, total) == expected
