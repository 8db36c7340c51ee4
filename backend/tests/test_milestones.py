"""Tests for staged milestone arcs."""
from __future__ import annotations

import math

import pytest

from backend.app.director.milestones import MilestoneTracker
from backend.app.director.settings import MilestoneDefinition
from backend.app.models.director import QueueSource


def _resolver(explicit, tags):
    return explicit if explicit is not None else 99


@pytest.fixture
def tracker() -> MilestoneTracker:
    return MilestoneTracker(
        [
            MilestoneDefinition(
                id="love",
                stage_thresholds=[1, 3, 5],
                linked_tags=["romance"],
                advancing_tags=["date"],
                stage_storylets={3: 400},
                ready_delay_ticks=2,
            ),
            MilestoneDefinition(id="career", stage_thresholds=[2, 4], advancing_tags=["work"], progress_per_storylet=2),
        ]
    )


class TestStageCrossing:
    def test_single_crossing_emits_exactly_one_event(self, tracker):
        events = tracker.advance("love", 1.0, tick=10, resolve_target=_resolver)
        assert len(events) == 1
        assert events[0].source == QueueSource.MILESTONE_TRIGGERED
        assert events[0].stage == 1
        assert events[0].ready_tick == 12
        assert tracker.stage("love") == 1

    def test_progress_below_threshold_emits_nothing(self, tracker):
        assert tracker.advance("love", 0.5, tick=1, resolve_target=_resolver) == []
        assert tracker.stage("love") == 0

    def test_multiple_crossings_emit_one_event_per_stage_in_order(self, tracker):
        events = tracker.advance("love", 4.0, tick=1, resolve_target=_resolver)
        assert [e.stage for e in events] == [1, 2]
        assert tracker.stage("love") == 2

    def test_stage_clamped_at_final_and_silent_afterwards(self, tracker):
        events = tracker.advance("love", 50.0, tick=1, resolve_target=_resolver)
        assert [e.stage for e in events] == [1, 2, 3]
        assert tracker.stage_proximity("love") == 0.0
        assert tracker.advance("love", 10.0, tick=2, resolve_target=_resolver) == []
        assert tracker.stage("love") == 3

    def test_explicit_stage_storylet_is_used(self, tracker):
        events = tracker.advance("love", 5.0, tick=1, resolve_target=_resolver)
        assert [e.storylet_key for e in events] == [99, 99, 400]

    def test_negative_progress_rejected(self, tracker):
        with pytest.raises(ValueError):
            tracker.advance("love", -1.0, tick=1, resolve_target=_resolver)

    @pytest.mark.parametrize("amount", [math.nan, math.inf, -math.inf])
    def test_non_finite_progress_rejected(self, tracker, amount):
        with pytest.raises(ValueError):
            tracker.advance("love", amount, tick=1, resolve_target=_resolver)
        assert tracker.runtime["love"].progress == 0.0
        assert tracker.stage_proximity("love") == 0.0

    def test_unknown_milestone_rejected(self, tracker):
        with pytest.raises(KeyError):
            tracker.advance("missing", 1.0, tick=1, resolve_target=_resolver)


class TestProximity:
    def test_proximity_to_next_threshold(self):
        tracker = MilestoneTracker([MilestoneDefinition(id="m", stage_thresholds=[2, 4])])
        tracker.advance("m", 1.0, tick=1, resolve_target=_resolver)
        assert tracker.stage_proximity("m") == pytest.approx(0.5)
        tracker.advance("m", 2.0, tick=2, resolve_target=_resolver)
        assert tracker.stage_proximity("m") == pytest.approx(0.75)

    def test_proximity_is_zero_once_complete(self):
        tracker = MilestoneTracker([MilestoneDefinition(id="m", stage_thresholds=[2])])
        tracker.advance("m", 2.0, tick=1, resolve_target=_resolver)
        assert tracker.stage_proximity("m") == 0.0


def test_advance_for_storylet_uses_advancing_tags(tracker):
    events = tracker.advance_for_storylet(["work", "office"], tick=3, resolve_target=_resolver)
    assert [e.origin_id for e in events] == ["career"]
    assert tracker.stage("career") == 1
    assert tracker.stage("love") == 0
    assert tracker.advance_for_storylet(["unrelated"], tick=4, resolve_target=_resolver) == []
