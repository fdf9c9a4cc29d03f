"""Tests for clip planning — clip lengths, start offsets, the sequence."""

import random

import pytest

from clipshuffle.errors import InputValidationError
from clipshuffle.events import EventKind, EventLog
from clipshuffle.planner import build_sequence, plan_clip

from conftest import source


class TestPlanClip:
    def test_length_within_percent_bounds(self):
        rng = random.Random(1)
        for _ in range(500):
            length, _start = plan_clip(20.0, 10, 30, rng)
            assert 2.0 - 1e-9 <= length <= 6.0 + 1e-9

    def test_clip_fits_inside_source(self):
        rng = random.Random(2)
        for _ in range(500):
            length, start = plan_clip(12.5, 5, 95, rng)
            assert start >= 0
            assert start + length <= 12.5 + 1e-9

    def test_full_length_clip_starts_at_zero(self):
        length, start = plan_clip(8.0, 100, 100, random.Random(3))
        assert length == pytest.approx(8.0)
        assert start == 0.0

    def test_length_clamped_to_duration(self):
        """Bounds right at 100% can never produce a negative start range."""
        rng = random.Random(4)
        for _ in range(500):
            length, start = plan_clip(3.0, 99, 100, rng)
            assert length <= 3.0
            assert start >= 0
            assert start + length <= 3.0 + 1e-9

    def test_fixed_percent_gives_fixed_length(self):
        length, _ = plan_clip(10.0, 20, 20, random.Random(5))
        assert length == pytest.approx(2.0)


class TestBuildSequence:
    def test_total_meets_target(self):
        sources = [source("a.mp4", 10), source("b.mp4", 7), source("c.mp4", 30)]
        for seed in range(20):
            plan = build_sequence(sources, 45.0, 10, 40, random.Random(seed))
            assert sum(c.length for c in plan) >= 45.0

    def test_no_immediate_repeat(self):
        sources = [source("a.mp4"), source("b.mp4"), source("c.mp4")]
        for seed in range(20):
            plan = list(build_sequence(sources, 60.0, 5, 15, random.Random(seed)))
            for prev, cur in zip(plan, plan[1:]):
                assert prev.source != cur.source

    def test_two_sources_alternate(self):
        sources = [source("a.mp4"), source("b.mp4")]
        plan = list(build_sequence(sources, 40.0, 10, 20, random.Random(9)))
        names = [c.source.name for c in plan]
        assert names[::2] == [names[0]] * len(names[::2])
        assert names[1::2] == [names[1]] * len(names[1::2])

    def test_single_source_repeats(self):
        """One 10s source, clips of 50-80%, 5s target: source 0 every time."""
        only = source("only.mp4", 10.0)
        for seed in range(20):
            plan = list(build_sequence([only], 5.0, 50, 80, random.Random(seed)))
            assert all(c.source is only for c in plan)
            assert sum(c.length for c in plan) >= 5.0
            for c in plan:
                assert 5.0 - 1e-9 <= c.length <= 8.0 + 1e-9

    def test_single_source_long_target_repeats_many_times(self):
        only = source("only.mp4", 4.0)
        plan = list(build_sequence([only], 30.0, 25, 25, random.Random(0)))
        assert len(plan) == 30
        assert {c.source.name for c in plan} == {"only.mp4"}

    def test_at_least_one_clip(self):
        plan = build_sequence([source("a.mp4")], 0.0, 10, 20, random.Random(0))
        assert len(plan) == 1

    def test_plan_entries_respect_source_bounds(self):
        sources = [source("a.mp4", 3.3), source("b.mp4", 17.0)]
        plan = build_sequence(sources, 100.0, 1, 100, random.Random(11))
        for c in plan:
            assert c.start >= 0
            assert c.end <= c.source.duration + 1e-9

    def test_same_seed_same_plan(self):
        sources = [source("a.mp4"), source("b.mp4"), source("c.mp4")]
        first = list(build_sequence(sources, 50.0, 10, 30, random.Random(42)))
        second = list(build_sequence(sources, 50.0, 10, 30, random.Random(42)))
        assert first == second

    def test_pops_front_to_back(self):
        plan = build_sequence([source("a.mp4"), source("b.mp4")], 20.0, 10, 20, random.Random(1))
        first = plan[0]
        assert plan.popleft() is first

    def test_empty_sources_raises(self):
        with pytest.raises(InputValidationError, match="No sources"):
            build_sequence([], 10.0, 10, 20, random.Random(0))

    def test_zero_duration_source_raises(self):
        with pytest.raises(InputValidationError, match="no usable duration"):
            build_sequence([source("a.mp4"), source("empty.mp4", 0.0)], 10.0, 10, 20,
                           random.Random(0))

    def test_zero_max_percent_raises(self):
        with pytest.raises(InputValidationError, match="must be > 0"):
            build_sequence([source("a.mp4")], 10.0, 0, 0, random.Random(0))

    def test_reports_every_clip(self):
        log = EventLog()
        plan = build_sequence([source("a.mp4"), source("b.mp4")], 20.0, 10, 20,
                              random.Random(3), observer=log)
        selected = log.of(EventKind.CLIP_SELECTED)
        assert len(selected) == len(plan)
        assert selected[-1]["total"] == pytest.approx(sum(c.length for c in plan))
        assert log.kinds()[-1] is EventKind.PLAN_COMPLETE
