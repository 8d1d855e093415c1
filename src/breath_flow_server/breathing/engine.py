"""Breathing phase engine.

A per-session state machine that cycles through the non-zero phases of a
pattern until the target duration elapses or the session is stopped.

    Idle --start--> Running(phase) --pause--> Paused --resume--> Running
                       |                        |
                       +--target reached--> Completed
                       +--stop------------> Stopped <--stop--+

Completed and Stopped are terminal; ``reset`` returns the engine to Idle.

The engine never sleeps and never performs I/O. Whoever owns it calls
``tick()`` once per second (the scheduler, or a client through the API),
and registered listeners are notified synchronously of every transition.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

import structlog

from breath_flow_server.breathing.pattern import Pattern, Phase
from breath_flow_server.errors import InvalidPattern, InvalidTransition

logger = structlog.get_logger()


class EngineState(str, Enum):
    """Lifecycle state of a phase engine."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    STOPPED = "stopped"

    @property
    def is_terminal(self) -> bool:
        return self in (EngineState.COMPLETED, EngineState.STOPPED)


@dataclass(frozen=True)
class SessionStarted:
    pattern_name: str
    target_seconds: int


@dataclass(frozen=True)
class PhaseChanged:
    phase: Phase
    duration: int
    cycle: int
    elapsed_seconds: int


@dataclass(frozen=True)
class SessionPaused:
    elapsed_seconds: int


@dataclass(frozen=True)
class SessionResumed:
    elapsed_seconds: int


@dataclass(frozen=True)
class SessionTicked:
    elapsed_seconds: int


@dataclass(frozen=True)
class SessionFinished:
    state: EngineState
    completed: bool
    early_exit: bool
    elapsed_seconds: int


@dataclass(frozen=True)
class SessionReset:
    pass


EngineEvent = (
    SessionStarted
    | PhaseChanged
    | SessionPaused
    | SessionResumed
    | SessionTicked
    | SessionFinished
    | SessionReset
)
Listener = Callable[[EngineEvent], None]


@dataclass(frozen=True)
class EngineSnapshot:
    """Point-in-time view of an engine for UI subscribers."""

    state: EngineState
    phase: Phase | None
    phase_remaining: int
    elapsed_seconds: int
    remaining_seconds: int
    target_seconds: int
    cycle: int

    @property
    def progress(self) -> float:
        return round(self.elapsed_seconds / self.target_seconds, 4)

    def to_dict(self) -> dict[str, object]:
        return {
            "state": self.state.value,
            "phase": self.phase.value if self.phase else None,
            "phase_remaining": self.phase_remaining,
            "elapsed_seconds": self.elapsed_seconds,
            "remaining_seconds": self.remaining_seconds,
            "target_seconds": self.target_seconds,
            "cycle": self.cycle,
            "progress": self.progress,
        }


@dataclass(frozen=True)
class StopResult:
    """Outcome of a finished engine."""

    completed: bool  # Full target duration reached
    elapsed_seconds: int
    state: EngineState
    early_exit: bool


class PhaseEngine:
    """Timer/state machine driving one breathing session."""

    def __init__(self, pattern: Pattern, target_seconds: int) -> None:
        """Initialize an idle engine.

        Args:
            pattern: Validated breathing pattern
            target_seconds: Total session length, at least one second

        Raises:
            ValueError: If target_seconds is not positive
            InvalidPattern: If every phase of the pattern is zero seconds
        """
        if target_seconds < 1:
            raise ValueError("target_seconds must be at least 1")
        steps = pattern.phases()
        if not steps:
            raise InvalidPattern(["pattern has no phase longer than zero seconds"])

        self.pattern = pattern
        self.target_seconds = target_seconds
        self._steps = steps
        self._listeners: list[Listener] = []
        self._clear()

    def _clear(self) -> None:
        self._state = EngineState.IDLE
        self._step_index = 0
        self._phase: Phase | None = None
        self._phase_remaining = 0
        self._elapsed = 0
        self._cycle = 0
        self._early_exit = False

    # -- subscription -----------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: Listener) -> None:
        """Remove a listener. Unknown listeners are ignored."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, event: EngineEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                # A broken subscriber must not stall the session clock
                logger.exception(
                    "Engine listener failed",
                    event_type=type(event).__name__,
                    listener=getattr(listener, "__qualname__", repr(listener)),
                )

    # -- state ------------------------------------------------------------

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def phase(self) -> Phase | None:
        return self._phase

    @property
    def elapsed_seconds(self) -> int:
        return self._elapsed

    @property
    def is_terminal(self) -> bool:
        return self._state.is_terminal

    def snapshot(self) -> EngineSnapshot:
        return EngineSnapshot(
            state=self._state,
            phase=self._phase,
            phase_remaining=self._phase_remaining,
            elapsed_seconds=self._elapsed,
            remaining_seconds=max(0, self.target_seconds - self._elapsed),
            target_seconds=self.target_seconds,
            cycle=self._cycle,
        )

    def result(self) -> StopResult:
        """Outcome so far; meaningful once the engine is terminal."""
        return StopResult(
            completed=self._state == EngineState.COMPLETED,
            elapsed_seconds=self._elapsed,
            state=self._state,
            early_exit=self._early_exit,
        )

    # -- commands ---------------------------------------------------------

    def start(self) -> EngineSnapshot:
        """Begin the first cycle.

        Raises:
            InvalidTransition: If the engine is not idle
        """
        if self._state != EngineState.IDLE:
            raise InvalidTransition(f"Cannot start a {self._state.value} session")

        self._state = EngineState.RUNNING
        self._cycle = 1
        self._emit(
            SessionStarted(pattern_name=self.pattern.name, target_seconds=self.target_seconds)
        )
        self._enter_step(0)
        return self.snapshot()

    def tick(self) -> EngineSnapshot:
        """Advance one second. No-op unless running."""
        if self._state != EngineState.RUNNING:
            return self.snapshot()

        self._elapsed += 1
        self._phase_remaining -= 1
        self._emit(SessionTicked(elapsed_seconds=self._elapsed))

        if self._elapsed >= self.target_seconds:
            self._finish(EngineState.COMPLETED, early_exit=False)
        elif self._phase_remaining <= 0:
            next_index = (self._step_index + 1) % len(self._steps)
            if next_index == 0:
                self._cycle += 1
            self._enter_step(next_index)

        return self.snapshot()

    def pause(self) -> EngineSnapshot:
        """Freeze the countdown, keeping the phase position.

        Raises:
            InvalidTransition: If the engine is not running
        """
        if self._state != EngineState.RUNNING:
            raise InvalidTransition(f"Cannot pause a {self._state.value} session")
        self._state = EngineState.PAUSED
        self._emit(SessionPaused(elapsed_seconds=self._elapsed))
        return self.snapshot()

    def resume(self) -> EngineSnapshot:
        """Continue from the frozen point.

        Raises:
            InvalidTransition: If the engine is not paused
        """
        if self._state != EngineState.PAUSED:
            raise InvalidTransition(f"Cannot resume a {self._state.value} session")
        self._state = EngineState.RUNNING
        self._emit(SessionResumed(elapsed_seconds=self._elapsed))
        return self.snapshot()

    def stop(self, early_exit: bool = True) -> StopResult:
        """End the session now. Accepted in every state.

        Args:
            early_exit: True when the user abandons the session, False when
                they end it on purpose and want credit for the time so far.

        Returns:
            StopResult; ``completed`` is True only if the target was reached.
            Stopping a terminal engine returns its existing result.
        """
        if not self.is_terminal:
            self._finish(EngineState.STOPPED, early_exit=early_exit)
        return self.result()

    def reset(self) -> EngineSnapshot:
        """Return to Idle so the same engine can run again."""
        self._clear()
        self._emit(SessionReset())
        return self.snapshot()

    # -- internals --------------------------------------------------------

    def _enter_step(self, index: int) -> None:
        self._step_index = index
        phase, seconds = self._steps[index]
        self._phase = phase
        self._phase_remaining = seconds
        self._emit(
            PhaseChanged(
                phase=phase,
                duration=seconds,
                cycle=self._cycle,
                elapsed_seconds=self._elapsed,
            )
        )

    def _finish(self, state: EngineState, *, early_exit: bool) -> None:
        self._state = state
        self._early_exit = early_exit
        self._phase = None
        self._phase_remaining = 0
        self._emit(
            SessionFinished(
                state=state,
                completed=state == EngineState.COMPLETED,
                early_exit=early_exit,
                elapsed_seconds=self._elapsed,
            )
        )
