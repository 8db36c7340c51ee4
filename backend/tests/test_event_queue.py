"""Tests for the deferred-event queue."""
from __future__ import annotations

import pytest

from backend.app.director.event_queue import EventQueue
from backend.app.models.director import QueueSource


def _keys(events):
    return [e.storylet_key for e in events]


class TestOrdering:
    def test_drain_returns_ready_entries_in_insertion_order(self):
        """Ready ticks [5, 3, 3, 7]: drain(4) yields the two 3s, drain(10) yields 5 then 7."""
        queue = EventQueue(max_size=10)
        for key, ready in ((1, 5), (2, 3), (3, 3), (4, 7)):
            queue.enqueue(key, QueueSource.SCHEDULED, ready_tick=ready)

        first = queue.drain_ready(4)
        assert _keys(first.ready) == [2, 3]
        assert [e.sequence for e in first.ready] == [1, 2]
        assert first.expired == []

        second = queue.drain_ready(10)
        assert _keys(second.ready) == [1, 4]
        assert len(queue) == 0

    def test_drain_before_any_ready_returns_nothing(self):
        queue = EventQueue()
        queue.enqueue(1, QueueSource.SCHEDULED, ready_tick=5)
        assert queue.drain_ready(4).ready == []
        assert len(queue) == 1

    def test_requeue_keeps_original_position(self):
        queue = EventQueue()
        queue.enqueue(1, QueueSource.SCHEDULED, ready_tick=1)
        queue.enqueue(2, QueueSource.SCHEDULED, ready_tick=1)
        drained = queue.drain_ready(1).ready
        queue.enqueue(3, QueueSource.SCHEDULED, ready_tick=1)
        for event in reversed(drained):
            queue.requeue(event)
        assert _keys(queue.peek_all()) == [1, 2, 3]
        assert queue.next_sequence == 3


class TestExpiry:
    def test_entry_expires_after_max_wait(self):
        queue = EventQueue()
        queue.enqueue(9, QueueSource.PRESSURE_TRIGGERED, ready_tick=3, max_wait_ticks=2)
        result = queue.drain_ready(6)
        assert result.ready == []
        assert _keys(result.expired) == [9]

    def test_entry_is_still_ready_at_the_last_wait_tick(self):
        queue = EventQueue()
        queue.enqueue(9, QueueSource.PRESSURE_TRIGGERED, ready_tick=3, max_wait_ticks=2)
        result = queue.drain_ready(5)
        assert _keys(result.ready) == [9]

    def test_no_max_wait_never_expires(self):
        queue = EventQueue()
        queue.enqueue(9, QueueSource.SCHEDULED, ready_tick=0)
        assert _keys(queue.drain_ready(10_000).ready) == [9]


class TestOverflow:
    def test_lowest_priority_is_evicted(self):
        queue = EventQueue(max_size=2)
        queue.enqueue(1, QueueSource.SCHEDULED, ready_tick=1, priority=5)
        queue.enqueue(2, QueueSource.SCHEDULED, ready_tick=2, priority=1)
        _, evicted = queue.enqueue(3, QueueSource.SCHEDULED, ready_tick=3, priority=3)
        assert _keys(evicted) == [2]
        assert _keys(queue.peek_all()) == [1, 3]

    def test_equal_priority_evicts_latest_in_queue_order(self):
        queue = EventQueue(max_size=2)
        queue.enqueue(1, QueueSource.SCHEDULED, ready_tick=1)
        queue.enqueue(2, QueueSource.SCHEDULED, ready_tick=2)
        _, evicted = queue.enqueue(3, QueueSource.SCHEDULED, ready_tick=0)
        assert _keys(evicted) == [2]
        assert _keys(queue.peek_all()) == [3, 1]

    def test_max_size_must_be_positive(self):
        with pytest.raises(ValueError):
            EventQueue(max_size=0)


def test_remove_by_sequence():
    queue = EventQueue()
    queue.enqueue(1, QueueSource.SCHEDULED, ready_tick=1)
    event, _ = queue.enqueue(2, QueueSource.SCHEDULED, ready_tick=1)
    assert queue.remove(event.sequence).storylet_key == 2
    assert queue.remove(event.sequence) is None
    assert _keys(queue.peek_all()) == [1]
