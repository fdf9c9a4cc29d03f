"""Tests for the playback driver — full runs with in-process doubles.

Runs use FrameClock, so rendering is offline and the frame counts are
exact. TestRealtimeRun is the one real-time run, on WallClock.
"""

import asyncio
from collections import deque

import pytest

from clipshuffle import engine as engine_module
from clipshuffle.clock import FrameClock, WallClock
from clipshuffle.encoder import MemoryEncoder
from clipshuffle.engine import Engine, RunState, build_clock
from clipshuffle.errors import DecodeError, InputValidationError, PlaybackStartError
from clipshuffle.events import EventKind, EventLog
from clipshuffle.models import ClipPlan, EffectParameters, RunSettings
from clipshuffle.sink import SinkAdapter

from conftest import source


def _settings(**overrides):
    values = dict(
        target_duration=5.0,
        min_clip_pct=10,
        max_clip_pct=30,
        width=32,
        height=18,
        fps=10,
        seed=1,
    )
    values.update(overrides)
    return RunSettings(**values)


def _engine(settings, fake_decoder, log=None):
    w, h, fps = settings.width, settings.height, settings.fps
    sink = SinkAdapter(lambda: MemoryEncoder(w, h, fps), lambda: MemoryEncoder(w, h, fps),
                       fps, log)
    return Engine(settings, sink, FrameClock(fps), decoder_factory=fake_decoder, observer=log)


def _run(eng, sources):
    return asyncio.run(eng.run(sources))


class TestRun:
    def test_output_duration_matches_target(self, fake_decoder):
        settings = _settings(target_duration=5.0)
        eng = _engine(settings, fake_decoder)
        artifact = _run(eng, [source("a.mp4"), source("b.mp4")])
        assert eng.state is RunState.DONE
        assert eng.sink.frames_written == 50
        assert len(artifact.data) == 50 * 32 * 18 * 3

    def test_duration_never_short_never_a_frame_long(self, fake_decoder):
        for target in (0.35, 1.0, 2.75, 4.05, 7.0):
            settings = _settings(target_duration=target, seed=int(target * 100))
            eng = _engine(settings, fake_decoder)
            _run(eng, [source("a.mp4", 3.0), source("b.mp4", 8.0), source("c.mp4", 5.0)])
            duration = eng.sink.frames_written / settings.fps
            assert duration >= target - 1e-9
            assert duration < target + 1 / settings.fps + 1e-9

    def test_states_end_done(self, fake_decoder):
        eng = _engine(_settings(), fake_decoder)
        assert eng.state is RunState.PLANNING
        _run(eng, [source("a.mp4")])
        assert eng.state is RunState.DONE

    def test_plan_covers_target(self, fake_decoder):
        eng = _engine(_settings(target_duration=12.0), fake_decoder)
        _run(eng, [source("a.mp4"), source("b.mp4"), source("c.mp4")])
        assert sum(c.length for c in eng.plan) >= 12.0

    def test_single_source(self, fake_decoder):
        settings = _settings(target_duration=5.0, min_clip_pct=50, max_clip_pct=80)
        eng = _engine(settings, fake_decoder)
        _run(eng, [source("only.mp4", 10.0)])
        assert {c.source.name for c in eng.plan} == {"only.mp4"}
        assert eng.sink.frames_written == 50

    def test_no_sources_rejected(self, fake_decoder):
        eng = _engine(_settings(), fake_decoder)
        with pytest.raises(InputValidationError):
            _run(eng, [])
        assert eng.state is RunState.FAILED

    def test_invalid_settings_rejected_before_run(self, fake_decoder):
        with pytest.raises(InputValidationError):
            _engine(_settings(min_clip_pct=50, max_clip_pct=20), fake_decoder)


class TestSlotCycle:
    def test_two_sources_four_slots_six_clips(self, fake_decoder):
        """Fixed 2s clips, 11s target: six clips through slots 0,1,2,3,0,1."""
        log = EventLog()
        settings = _settings(target_duration=11.0, min_clip_pct=20, max_clip_pct=20, slots=4)
        eng = _engine(settings, fake_decoder, log)
        _run(eng, [source("a.mp4", 10.0), source("b.mp4", 10.0)])

        assert len(eng.plan) == 6
        assert eng.slot_history == [0, 1, 2, 3, 0, 1]
        preload_slots = [p["slot"] for p in log.of(EventKind.PRELOAD_START)]
        assert preload_slots == [0, 1, 2, 3, 0, 1]

    def test_no_slot_rebound_before_its_clip_completes(self, fake_decoder):
        log = EventLog()
        settings = _settings(target_duration=11.0, min_clip_pct=20, max_clip_pct=20, slots=4)
        eng = _engine(settings, fake_decoder, log)
        _run(eng, [source("a.mp4", 10.0), source("b.mp4", 10.0)])

        bound = {}
        for kind, payload in log.records:
            if kind is EventKind.PRELOAD_START:
                assert bound.get(payload["slot"]) in (None, "done")
                bound[payload["slot"]] = "bound"
            elif kind is EventKind.CLIP_COMPLETED:
                bound[payload["slot"]] = "done"

    def test_next_clip_ready_before_current_completes(self, fake_decoder):
        log = EventLog()
        settings = _settings(target_duration=11.0, min_clip_pct=20, max_clip_pct=20, slots=2)
        eng = _engine(settings, fake_decoder, log)
        _run(eng, [source("a.mp4", 10.0), source("b.mp4", 10.0)])

        kinds = [(k, p.get("slot")) for k, p in log.records
                 if k in (EventKind.PRELOAD_COMPLETE, EventKind.CLIP_COMPLETED)]
        completed = [slot for k, slot in kinds if k is EventKind.CLIP_COMPLETED]
        assert completed == [0, 1, 0, 1, 0, 1]
        # At every clip end except the last, the other slot is already READY.
        ready_before = []
        ready = set()
        for kind, slot in kinds:
            if kind is EventKind.PRELOAD_COMPLETE:
                ready.add(slot)
            else:
                ready_before.append((1 - slot) in ready)
                ready.discard(slot)
        assert all(ready_before[:-1])

    def test_two_slot_ring(self, fake_decoder):
        settings = _settings(target_duration=6.0, slots=2)
        eng = _engine(settings, fake_decoder)
        _run(eng, [source("a.mp4"), source("b.mp4"), source("c.mp4")])
        assert set(eng.slot_history) <= {0, 1}
        assert eng.sink.frames_written == 60


class TestDeterminism:
    def test_same_seed_same_plan_and_transforms(self, fake_decoder):
        effects = EffectParameters(zoom_probability=50, min_zoom=110, max_zoom=180,
                                   flip_probability=50)
        sources = [source("a.mp4"), source("b.mp4"), source("c.mp4")]

        runs = []
        for _ in range(2):
            eng = _engine(_settings(target_duration=8.0, effects=effects, seed=77), fake_decoder)
            artifact = _run(eng, sources)
            runs.append((eng.plan, [r.transform for r in eng.results], artifact.data))

        assert runs[0][0] == runs[1][0]
        assert runs[0][1] == runs[1][1]
        assert runs[0][2] == runs[1][2]

    def test_different_seed_different_plan(self, fake_decoder):
        sources = [source("a.mp4"), source("b.mp4"), source("c.mp4")]
        plans = []
        for seed in (1, 2):
            eng = _engine(_settings(target_duration=8.0, seed=seed), fake_decoder)
            _run(eng, sources)
            plans.append(eng.plan)
        assert plans[0] != plans[1]

    def test_zero_probability_effects(self, fake_decoder):
        eng = _engine(_settings(target_duration=8.0), fake_decoder)
        _run(eng, [source("a.mp4"), source("b.mp4")])
        assert eng.results
        for r in eng.results:
            assert not r.transform.zoom_applied
            assert not r.transform.flip_applied

    def test_full_zoom_effects(self, fake_decoder):
        effects = EffectParameters(zoom_probability=100, min_zoom=150, max_zoom=150)
        eng = _engine(_settings(target_duration=8.0, effects=effects), fake_decoder)
        _run(eng, [source("a.mp4"), source("b.mp4")])
        for r in eng.results:
            assert r.transform.zoom_applied
            assert r.transform.crop.w == pytest.approx(r.transform.base_crop.w / 1.5)
            assert r.transform.crop.h == pytest.approx(r.transform.base_crop.h / 1.5)


class TestDraining:
    def test_waits_out_remaining_time(self, fake_decoder, monkeypatch):
        """A plan that under-runs the target is padded up to the target."""
        short = deque([ClipPlan(source("a.mp4"), 0.0, 1.0)])
        monkeypatch.setattr(engine_module, "build_sequence", lambda *a, **k: short)

        log = EventLog()
        eng = _engine(_settings(target_duration=3.0), fake_decoder, log)
        _run(eng, [source("a.mp4")])

        assert log.of(EventKind.DRAINING)[0]["remaining"] == pytest.approx(2.0)
        assert eng.sink.frames_written == 30

    def test_no_drain_when_plan_covers_target(self, fake_decoder):
        log = EventLog()
        eng = _engine(_settings(target_duration=3.0), fake_decoder, log)
        _run(eng, [source("a.mp4"), source("b.mp4")])
        assert log.of(EventKind.DRAINING) == []


class TestFailures:
    def test_decode_error_aborts_run(self, fake_decoder):
        fake_decoder.fail_open.add("bad.mp4")
        log = EventLog()
        eng = _engine(_settings(target_duration=5.0), fake_decoder, log)
        with pytest.raises(DecodeError, match="bad.mp4"):
            _run(eng, [source("bad.mp4")])
        assert eng.state is RunState.FAILED
        assert log.kinds()[-1] is EventKind.RUN_FAILED
        assert eng.sink.chunks == []

    def test_decode_error_mid_run(self, fake_decoder):
        """The third preload fails after recording has started."""

        class FlakySeek(fake_decoder):
            seeks = 0

            async def seek(self, t):
                FlakySeek.seeks += 1
                if FlakySeek.seeks == 3:
                    raise DecodeError(self.source.name, "seek failed")
                await super().seek(t)

        eng = _engine(_settings(target_duration=30.0, slots=2), FlakySeek)
        with pytest.raises(DecodeError, match="seek failed"):
            _run(eng, [source("a.mp4"), source("b.mp4"), source("c.mp4")])
        assert eng.state is RunState.FAILED
        assert eng.sink.frames_written > 0
        assert eng.sink.chunks == []
        assert eng.sink.encoder.stopped
        assert eng.sink.encoder.frames == []

    def test_playback_error_aborts_run(self, fake_decoder):
        fake_decoder.fail_play.add("a.mp4")
        eng = _engine(_settings(), fake_decoder)
        with pytest.raises(PlaybackStartError) as exc_info:
            _run(eng, [source("a.mp4")])
        assert exc_info.value.source_name == "a.mp4"
        assert eng.state is RunState.FAILED

    def test_decoders_closed_after_run(self, fake_decoder):
        created = []

        class Tracking(fake_decoder):
            def __init__(self):
                super().__init__()
                created.append(self)

        eng = _engine(_settings(), Tracking)
        _run(eng, [source("a.mp4"), source("b.mp4")])
        assert len(created) == 4
        assert all(d.closed for d in created)


class TestBuildClock:
    def test_offline_by_default(self):
        assert isinstance(build_clock(_settings()), FrameClock)

    def test_realtime(self):
        assert isinstance(build_clock(_settings(realtime=True)), WallClock)


class TestRealtimeRun:
    def test_wall_clock_run_starts_with_drawn_frame(self, fake_decoder):
        settings = _settings(target_duration=0.5, realtime=True)
        w, h, fps = settings.width, settings.height, settings.fps
        sink = SinkAdapter(lambda: MemoryEncoder(w, h, fps), lambda: MemoryEncoder(w, h, fps), fps)
        eng = Engine(settings, sink, WallClock(fps), decoder_factory=fake_decoder)
        _run(eng, [source("a.mp4"), source("b.mp4")])

        frames = sink.encoder.frames
        assert eng.state is RunState.DONE
        assert len(frames) >= 5
        assert frames[0].any()
