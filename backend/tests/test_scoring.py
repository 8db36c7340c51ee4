"""Tests for candidate scoring and selection."""
from __future__ import annotations

import pytest

from backend.app.director.scoring import (
    Candidate,
    ScoringContext,
    heat_affinity,
    jitter,
    rank_candidates,
    recency_penalty,
    select,
)
from backend.app.director.settings import HeatConfig, ResponseCurve, ScoringConfig
from backend.app.director.tag_bitset import TagBitset
from backend.app.models.director import QueuedEvent, QueueSource


def _ctx(
    tick=10, heat=0.0, cooldowns=None, pressures=(), milestones=(), last_domain=None, linked_bits=None
) -> ScoringContext:
    return ScoringContext(
        seed=1,
        tick=tick,
        heat=heat,
        cooldowns=cooldowns or {},
        pressures=tuple((tuple(tags), TagBitset.from_tags(tags), value) for tags, value in pressures),
        milestones=tuple((tuple(tags), TagBitset.from_tags(tags), value) for tags, value in milestones),
        last_domain=last_domain,
        linked_bits=linked_bits,
    )


def _candidate(storylet, queued=None) -> Candidate:
    return Candidate(storylet, TagBitset.from_tags(storylet.all_tags), queued=queued)


def _queued(key, sequence=0) -> QueuedEvent:
    return QueuedEvent(storylet_key=key, source=QueueSource.SCHEDULED, ready_tick=0, sequence=sequence)


class TestCurves:
    def test_response_curve_kinds(self):
        assert ResponseCurve(kind="linear", scale=2, input_max=10).evaluate(5) == pytest.approx(1.0)
        assert ResponseCurve(kind="quadratic", scale=1, input_max=1).evaluate(0.5) == pytest.approx(0.25)
        assert ResponseCurve(kind="sqrt", scale=1, input_max=1).evaluate(0.25) == pytest.approx(0.5)
        assert ResponseCurve(kind="constant", scale=3, input_max=1).evaluate(0.1) == 3
        assert ResponseCurve(kind="linear", scale=1, input_max=1).evaluate(7) == 1.0

    def test_heat_affinity_peaks_when_tier_matches_heat(self):
        heat_cfg, scoring = HeatConfig(), ScoringConfig(heat_weight=2.0, max_heat_tier=10)
        assert heat_affinity(0.0, 0, heat_cfg, scoring) == pytest.approx(2.0)
        assert heat_affinity(0.0, 10, heat_cfg, scoring) == pytest.approx(0.0)
        assert heat_affinity(50.0, 5, heat_cfg, scoring) == pytest.approx(2.0)

    def test_recency_penalty_saturates_past_horizon(self):
        scoring = ScoringConfig(recency_horizon_ticks=10)
        assert recency_penalty(None, scoring) == 0.0
        assert recency_penalty(0, scoring) == pytest.approx(0.5)
        assert recency_penalty(5, scoring) == pytest.approx(0.25)
        assert recency_penalty(10, scoring) == 0.0
        assert recency_penalty(500, scoring) == 0.0

    def test_jitter_is_seeded(self):
        assert jitter(7, 3, 100, 1.0) == jitter(7, 3, 100, 1.0)
        assert 0.0 <= jitter(7, 3, 100, 1.0) < 1.0
        assert jitter(7, 3, 100, 0.0) == 0.0


class TestRanking:
    def test_components_add_up(self, make_storylet, make_config):
        config = make_config()
        s = make_storylet(1, tags=["money"], base_weight=1.5, heat_tier=0)
        ctx = _ctx(heat=0.0, pressures=[(["money"], 50.0), (["school"], 90.0)], milestones=[(["money"], 1.0)])
        [scored] = rank_candidates([_candidate(s)], ctx, config)
        b = scored.breakdown
        assert b.base == pytest.approx(1.5)
        assert b.heat_affinity == pytest.approx(2.0)
        assert b.pressure == pytest.approx(1.0)
        assert b.milestone == pytest.approx(1.5)
        assert b.queue_bonus == 0.0
        assert scored.total == pytest.approx(6.0)

    def test_queue_bonus_only_for_queued(self, make_storylet, make_config):
        config = make_config(scoring={"queue_priority_bonus": 3.0})
        s = make_storylet(1)
        ranked = rank_candidates([_candidate(s), _candidate(s, _queued(1))], _ctx(), config)
        assert ranked[0].is_from_queue
        assert ranked[0].total - ranked[1].total == pytest.approx(3.0)

    def test_ties_break_by_lower_key(self, make_storylet, make_config):
        config = make_config()
        ranked = rank_candidates([_candidate(make_storylet(9)), _candidate(make_storylet(4))], _ctx(), config)
        assert [c.storylet_key for c in ranked] == [4, 9]

    def test_ties_on_same_key_prefer_queue(self, make_storylet, make_config):
        config = make_config(scoring={"queue_priority_bonus": 0.0})
        s = make_storylet(5)
        ranked = rank_candidates([_candidate(s), _candidate(s, _queued(5, sequence=3))], _ctx(), config)
        assert ranked[0].total == ranked[1].total
        assert ranked[0].is_from_queue
        assert ranked[0].queue_sequence == 3

    def test_min_viable_score_filters(self, make_storylet, make_config):
        config = make_config(scoring={"min_viable_score": 2.5, "heat_weight": 0.0})
        ranked = rank_candidates(
            [_candidate(make_storylet(1, base_weight=2.0)), _candidate(make_storylet(2, base_weight=3.0))],
            _ctx(),
            config,
        )
        assert [c.storylet_key for c in ranked] == [2]

    def test_linked_union_prefilter_keeps_pressure_contributions(self, make_storylet, make_config):
        config = make_config()
        s = make_storylet(1, tags=["money"])
        pressures = [(["money"], 50.0), (["school"], 90.0)]
        union = TagBitset.from_tags(["money"]) | TagBitset.from_tags(["school"])
        [plain] = rank_candidates([_candidate(s)], _ctx(pressures=pressures), config)
        [filtered] = rank_candidates([_candidate(s)], _ctx(pressures=pressures, linked_bits=union), config)
        assert filtered.breakdown == plain.breakdown
        unrelated = make_storylet(2, tags=["calm"])
        [skipped] = rank_candidates([_candidate(unrelated)], _ctx(pressures=pressures, linked_bits=union), config)
        assert skipped.breakdown.pressure == 0.0

    def test_same_domain_penalty_scales_base_only(self, make_storylet, make_config):
        config = make_config(variety={"same_domain_penalty": 0.5}, scoring={"heat_weight": 0.0})
        career = make_storylet(1, domain="career", base_weight=2.0)
        family = make_storylet(2, domain="family", base_weight=1.5)
        ranked = rank_candidates([_candidate(career), _candidate(family)], _ctx(last_domain="career"), config)
        assert [c.storylet_key for c in ranked] == [2, 1]
        assert ranked[1].breakdown.base == pytest.approx(1.0)
        assert ranked[0].breakdown.base == pytest.approx(1.5)

    def test_select_empty(self):
        assert select([]) is None
