"""Tests for the breathing phase engine."""

import pytest

from breath_flow_server.breathing.engine import (
    EngineState,
    PhaseChanged,
    PhaseEngine,
    SessionFinished,
    SessionStarted,
)
from breath_flow_server.breathing.pattern import Pattern, Phase, get_preset
from breath_flow_server.errors import InvalidTransition


def run_to_end(engine: PhaseEngine, limit: int = 10_000) -> int:
    ticks = 0
    while not engine.is_terminal and ticks < limit:
        engine.tick()
        ticks += 1
    return ticks


class TestEngineLifecycle:
    """Tests for state transitions."""

    def test_start_enters_first_phase(self):
        engine = PhaseEngine(get_preset("default"), 60)
        snapshot = engine.start()

        assert snapshot.state == EngineState.RUNNING
        assert snapshot.phase == Phase.INHALE
        assert snapshot.phase_remaining == 5
        assert snapshot.cycle == 1

    def test_start_twice_rejected(self):
        engine = PhaseEngine(get_preset("default"), 60)
        engine.start()

        with pytest.raises(InvalidTransition):
            engine.start()

    def test_tick_when_idle_is_noop(self):
        engine = PhaseEngine(get_preset("default"), 60)

        snapshot = engine.tick()

        assert snapshot.state == EngineState.IDLE
        assert snapshot.elapsed_seconds == 0

    def test_runs_to_exact_target(self):
        engine = PhaseEngine(get_preset("default"), 60)
        engine.start()

        ticks = run_to_end(engine)

        assert ticks == 60
        assert engine.state == EngineState.COMPLETED
        assert engine.elapsed_seconds == 60
        assert engine.phase is None

    def test_target_of_one_second(self):
        engine = PhaseEngine(get_preset("default"), 1)
        engine.start()

        engine.tick()

        assert engine.state == EngineState.COMPLETED

    def test_invalid_target_rejected(self):
        with pytest.raises(ValueError):
            PhaseEngine(get_preset("default"), 0)

    def test_pause_freezes_and_resume_continues(self):
        engine = PhaseEngine(get_preset("default"), 60)
        engine.start()
        for _ in range(3):
            engine.tick()

        paused = engine.pause()
        for _ in range(10):
            engine.tick()

        assert engine.snapshot() == paused
        assert paused.phase_remaining == 2

        engine.resume()
        engine.tick()

        assert engine.elapsed_seconds == 4
        assert engine.snapshot().phase_remaining == 1

    def test_illegal_pause_and_resume(self):
        engine = PhaseEngine(get_preset("default"), 60)

        with pytest.raises(InvalidTransition):
            engine.pause()
        engine.start()
        with pytest.raises(InvalidTransition):
            engine.resume()

    def test_stop_is_accepted_in_every_state(self):
        for prepare in ("idle", "running", "paused"):
            engine = PhaseEngine(get_preset("default"), 60)
            if prepare != "idle":
                engine.start()
                engine.tick()
            if prepare == "paused":
                engine.pause()

            result = engine.stop()

            assert engine.state == EngineState.STOPPED
            assert result.completed is False

    def test_stop_after_completion_is_idempotent(self):
        engine = PhaseEngine(get_preset("default"), 5)
        engine.start()
        run_to_end(engine)

        result = engine.stop()

        assert result.state == EngineState.COMPLETED
        assert result.completed is True
        assert result.elapsed_seconds == 5

    def test_stop_reports_partial_elapsed(self):
        engine = PhaseEngine(get_preset("default"), 60)
        engine.start()
        for _ in range(20):
            engine.tick()

        result = engine.stop(early_exit=True)

        assert result.completed is False
        assert result.elapsed_seconds == 20
        assert result.early_exit is True

    def test_reset_returns_to_idle(self):
        engine = PhaseEngine(get_preset("default"), 5)
        engine.start()
        run_to_end(engine)

        engine.reset()

        assert engine.state == EngineState.IDLE
        assert engine.elapsed_seconds == 0
        engine.start()
        assert engine.state == EngineState.RUNNING


class TestPhaseOrder:
    """Tests for phase sequencing."""

    def test_phases_cycle_in_order(self):
        engine = PhaseEngine(get_preset("default"), 60)
        changes: list[PhaseChanged] = []
        engine.subscribe(lambda e: changes.append(e) if isinstance(e, PhaseChanged) else None)

        engine.start()
        run_to_end(engine)

        assert [c.phase for c in changes[:4]] == [
            Phase.INHALE,
            Phase.HOLD,
            Phase.EXHALE,
            Phase.INHALE,
        ]
        assert [c.elapsed_seconds for c in changes[:4]] == [0, 5, 7, 14]
        assert changes[3].cycle == 2
        # 60s of a 14s cycle: inhale of cycle 5 is the last phase entered
        assert changes[-1].phase == Phase.INHALE
        assert changes[-1].cycle == 5

    def test_zero_hold_never_entered(self):
        engine = PhaseEngine(Pattern.create("Relax", 4, 0, 6), 30)
        phases: list[Phase] = []
        engine.subscribe(lambda e: phases.append(e.phase) if isinstance(e, PhaseChanged) else None)

        engine.start()
        run_to_end(engine)

        assert Phase.HOLD not in phases
        assert phases[:3] == [Phase.INHALE, Phase.EXHALE, Phase.INHALE]

    def test_elapsed_never_exceeds_target(self):
        engine = PhaseEngine(get_preset("box"), 37)
        engine.start()

        run_to_end(engine)
        for _ in range(5):
            engine.tick()

        assert engine.elapsed_seconds == 37


class TestSubscribers:
    """Tests for event delivery."""

    def test_events_delivered_in_order(self):
        engine = PhaseEngine(get_preset("default"), 2)
        events: list[object] = []
        engine.subscribe(events.append)

        engine.start()
        run_to_end(engine)

        assert isinstance(events[0], SessionStarted)
        assert isinstance(events[-1], SessionFinished)
        assert events[-1].completed is True

    def test_unsubscribe_stops_delivery(self):
        engine = PhaseEngine(get_preset("default"), 10)
        events: list[object] = []
        unsubscribe = engine.subscribe(events.append)

        engine.start()
        unsubscribe()
        engine.tick()

        assert not any(type(e).__name__ == "SessionTicked" for e in events)

    def test_failing_listener_does_not_break_engine(self):
        engine = PhaseEngine(get_preset("default"), 3)
        received: list[object] = []

        def broken(_event):
            raise RuntimeError("listener bug")

        engine.subscribe(broken)
        engine.subscribe(received.append)
        engine.start()
        run_to_end(engine)

        assert engine.state == EngineState.COMPLETED
        assert isinstance(received[-1], SessionFinished)

    def test_failing_listener_during_start(self):
        engine = PhaseEngine(get_preset("default"), 10)
        engine.subscribe(lambda _event: 1 / 0)

        snapshot = engine.start()
        engine.tick()

        assert snapshot.phase == Phase.INHALE
        assert engine.state == EngineState.RUNNING
        assert engine.elapsed_seconds == 1
