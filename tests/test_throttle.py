"""
Unit tests for the throttle policy.
"""

import asyncio
import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from callguard.throttle import throttle
from callguard.errors import PolicyConfigurationError, NotCallableError
from callguard.test_helpers import ManualScheduler


def make_tracker(scheduler, delay=0.25):
    """Build a tracker whose operations are throttled."""

    class Tracker:
        def __init__(self):
            self.count = 0
            self.values = []

        @throttle(delay, scheduler=scheduler)
        def track(self, value):
            self.count += 1
            self.values.append(value)
            return value

        @throttle(delay, scheduler=scheduler)
        def fail(self, value):
            self.count += 1
            raise RuntimeError(f"cannot track {value}")

        @throttle(delay, scheduler=scheduler)
        async def publish(self, value):
            await asyncio.sleep(0)
            self.values.append(value)

    return Tracker


class TestThrottle:
    """Test cases for throttle."""

    @pytest.fixture
    def scheduler(self):
        """Create a manual scheduler."""
        return ManualScheduler()

    @pytest.fixture
    def tracker(self, scheduler):
        """Create a throttled tracker."""
        return make_tracker(scheduler)()

    def test_first_call_runs_on_leading_edge(self, tracker, scheduler):
        """Test the first call executes immediately."""
        result = tracker.track("a")

        assert result is None
        assert tracker.count == 1
        assert scheduler.pending == 0

    def test_call_inside_window_runs_on_trailing_edge(self, tracker, scheduler):
        """Test a call inside the window runs when the window closes."""
        tracker.track("a")
        scheduler.advance(0.0625)
        tracker.track("b")

        assert tracker.count == 1
        assert scheduler.pending == 1

        scheduler.advance(0.1875)

        assert tracker.count == 2
        assert tracker.values == ["a", "b"]

    def test_trailing_edge_uses_latest_arguments(self, tracker, scheduler):
        """Test calls inside one window keep only the last arguments."""
        tracker.track("a")
        scheduler.advance(0.0625)
        tracker.track("b")
        scheduler.advance(0.0625)
        tracker.track("c")

        assert scheduler.pending == 1

        scheduler.advance(0.125)

        assert tracker.values == ["a", "c"]

    def test_trailing_deadline_is_window_end(self, tracker, scheduler):
        """Test re-arming keeps the trailing execution at the window boundary."""
        tracker.track("a")
        scheduler.advance(0.0625)
        tracker.track("b")
        scheduler.advance(0.125)
        tracker.track("c")

        assert scheduler.timers[-1].when == 0.25

    def test_fresh_window_runs_leading_again(self, tracker, scheduler):
        """Test leading, trailing, then leading again in a fresh window."""
        tracker.track("a")
        scheduler.advance(0.0625)
        tracker.track("b")
        scheduler.advance(0.1875)
        assert tracker.count == 2

        scheduler.advance(0.5)
        tracker.track("c")
        assert tracker.count == 3

        tracker.track("d")
        tracker.track("e")
        assert tracker.count == 3

        scheduler.advance(0.25)
        assert tracker.count == 4
        assert tracker.values == ["a", "b", "c", "e"]

    def test_owners_are_isolated(self, scheduler):
        """Test one owner's window does not throttle another owner."""
        tracker_cls = make_tracker(scheduler)
        first, second = tracker_cls(), tracker_cls()

        first.track("a")
        second.track("b")

        assert first.count == 1
        assert second.count == 1

    def test_leading_failure_propagates(self, tracker):
        """Test a synchronous leading failure reaches the caller."""
        with pytest.raises(RuntimeError, match="cannot track a"):
            tracker.fail("a")

    def test_trailing_failure_is_contained(self, tracker, scheduler):
        """Test a trailing failure is logged instead of raised."""
        with pytest.raises(RuntimeError):
            tracker.fail("a")
        scheduler.advance(0.0625)
        tracker.fail("b")

        scheduler.advance(0.1875)

        assert tracker.count == 2

    @pytest.mark.asyncio
    async def test_async_operation_runs_as_task(self, tracker, scheduler):
        """Test asynchronous operations are scheduled on the loop."""
        tracker.publish("a")
        await asyncio.sleep(0.01)

        assert tracker.values == ["a"]

    def test_zero_delay_never_throttles(self, scheduler):
        """Test a zero window executes every call on the leading edge."""
        tracker = make_tracker(scheduler, delay=0)()

        tracker.track("a")
        tracker.track("b")

        assert tracker.count == 2

    def test_negative_delay(self):
        """Test negative delays are rejected at wrap time."""
        with pytest.raises(PolicyConfigurationError):
            throttle(-0.5)

    def test_not_callable(self):
        """Test applying throttle to a non-callable fails."""
        with pytest.raises(NotCallableError):
            throttle(0.1)("track")
