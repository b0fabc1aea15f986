"""Set logging and rest transitions.

Transitions are modelled as a pure function::

    apply(session, event, now) -> Transition(session, effects)

The input session is never modified; a new session is returned together with
a tuple of side effects the host is expected to perform (persisting a
checkpoint, signalling the end of a rest, seeding the input steppers, moving
to the completion gate).  Keeping timers and storage out of this module lets
every transition be exercised directly in tests.

Phases::

    logging ──log_set──> resting_fixed ──tick to 0 / skip──> logging
       │                      │
       │                      └─enter_infinite_rest─> resting_infinite
       │                                                   │
       ├─enter_infinite_rest───────────────────────────────┤
       │                                 exit_infinite_rest┘ ──> logging
       └─log_set (planned sets reached)─> exercise_complete
                       ├─advance_exercise─> logging (next exercise)
                       └─repeat_set───────> resting_fixed

Any transition that changes the logged sets, the exercise index or the kind
of rest emits :class:`Persist`.  Per-second ticks and rest adjustments do not.
"""

from __future__ import annotations

import copy
import math
from dataclasses import dataclass
from datetime import datetime

from workout_engine import DEFAULT_REST_SECONDS
from workout_engine.errors import InvalidTransition, ValidationError
from workout_engine.models import (
    EXERCISE_COMPLETE,
    LOGGING,
    RESTING_FIXED,
    RESTING_INFINITE,
    ActiveWorkoutSession,
    PerformedSet,
    RestMode,
)
from workout_engine.utils import elapsed_seconds, utcnow


# ----------------------------------------------------------------------
# Events
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class LogSet:
    weight: float
    reps: int
    notes: str | None = None


@dataclass(frozen=True)
class AdvanceExercise:
    pass


@dataclass(frozen=True)
class RepeatSet:
    pass


@dataclass(frozen=True)
class Tick:
    seconds: int = 1


@dataclass(frozen=True)
class SkipRest:
    pass


@dataclass(frozen=True)
class AdjustRest:
    delta_seconds: int


@dataclass(frozen=True)
class EnterInfiniteRest:
    pass


@dataclass(frozen=True)
class ExitInfiniteRest:
    pass


@dataclass(frozen=True)
class MoveToExercise:
    index: int


# ----------------------------------------------------------------------
# Side effects
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class Persist:
    """Checkpoint the session through the lifecycle manager."""


@dataclass(frozen=True)
class NotifyRestFinished:
    """A fixed rest reached zero; the host vibrates or plays a sound."""


@dataclass(frozen=True)
class SeedInputs:
    """Refresh the weight/reps inputs for the exercise at ``exercise_index``."""

    exercise_index: int


@dataclass(frozen=True)
class ReadyToComplete:
    """The last exercise is done; the host continues to the completion gate."""


@dataclass(frozen=True)
class Transition:
    session: ActiveWorkoutSession
    effects: tuple = ()

    def has(self, effect_type: type) -> bool:
        return any(isinstance(e, effect_type) for e in self.effects)


# ----------------------------------------------------------------------
# Handlers.  Each receives a private copy of the session and may mutate it.
# ----------------------------------------------------------------------


def _require(session: ActiveWorkoutSession, phases: tuple, action: str) -> None:
    if session.phase not in phases:
        raise InvalidTransition(f"Cannot {action} while {session.phase}")


def _start_fixed_rest(session: ActiveWorkoutSession) -> None:
    seconds = session.current_exercise.rest_seconds or DEFAULT_REST_SECONDS
    session.rest_mode = RestMode.fixed(seconds)
    session.phase = RESTING_FIXED


def _end_rest(session: ActiveWorkoutSession, taken: int) -> None:
    session.pending_rest_seconds = taken
    session.rest_mode = RestMode.none()
    session.phase = LOGGING


def _log_set(session: ActiveWorkoutSession, event: LogSet, now: datetime) -> list:
    _require(session, (LOGGING,), "log a set")
    try:
        weight = float(event.weight)
        reps = int(event.reps)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError("Please enter valid weight and reps") from None
    if not math.isfinite(weight) or weight <= 0 or reps <= 0:
        raise ValidationError("Please enter valid weight and reps")

    if session.pending_rest_seconds is None:
        rest = DEFAULT_REST_SECONDS
    else:
        rest = session.pending_rest_seconds
    logged = session.current_logged
    logged.sets.append(
        PerformedSet(
            set_number=len(logged.sets) + 1,
            reps=reps,
            weight=weight,
            rest_time_taken_seconds=rest,
            notes=event.notes,
        )
    )
    session.current_set_index = len(logged.sets)
    session.pending_rest_seconds = None

    if len(logged.sets) >= session.current_exercise.planned_sets:
        session.rest_mode = RestMode.none()
        session.phase = EXERCISE_COMPLETE
    else:
        _start_fixed_rest(session)
    return [Persist()]


def _advance_exercise(
    session: ActiveWorkoutSession, event: AdvanceExercise, now: datetime
) -> list:
    _require(session, (EXERCISE_COMPLETE,), "advance to the next exercise")
    if session.is_last_exercise:
        return [ReadyToComplete()]
    session.current_exercise_index += 1
    session.current_set_index = len(session.current_logged.sets)
    session.rest_mode = RestMode.none()
    session.pending_rest_seconds = None
    session.phase = LOGGING
    return [Persist(), SeedInputs(session.current_exercise_index)]


def _repeat_set(session: ActiveWorkoutSession, event: RepeatSet, now: datetime) -> list:
    _require(session, (EXERCISE_COMPLETE,), "add an extra set")
    _start_fixed_rest(session)
    return [Persist()]


def _tick(session: ActiveWorkoutSession, event: Tick, now: datetime) -> list:
    if session.phase != RESTING_FIXED:
        return []
    rest = session.rest_mode
    rest.remaining_seconds = max(0, rest.remaining_seconds - event.seconds)
    if rest.remaining_seconds > 0:
        return []
    _end_rest(session, rest.taken_seconds())
    return [Persist(), NotifyRestFinished()]


def _skip_rest(session: ActiveWorkoutSession, event: SkipRest, now: datetime) -> list:
    _require(session, (RESTING_FIXED,), "skip rest")
    _end_rest(session, session.rest_mode.taken_seconds())
    return [Persist()]


def _adjust_rest(session: ActiveWorkoutSession, event: AdjustRest, now: datetime) -> list:
    _require(session, (RESTING_FIXED,), "adjust rest")
    rest = session.rest_mode
    remaining = max(0, rest.remaining_seconds + event.delta_seconds)
    # the countdown length moves with the remaining time so the time already
    # rested is unchanged
    rest.duration_seconds += remaining - rest.remaining_seconds
    rest.remaining_seconds = remaining
    return []


def _enter_infinite_rest(
    session: ActiveWorkoutSession, event: EnterInfiniteRest, now: datetime
) -> list:
    _require(session, (LOGGING, RESTING_FIXED), "start manual rest")
    session.rest_mode = RestMode.infinite(now)
    session.phase = RESTING_INFINITE
    return [Persist()]


def _exit_infinite_rest(
    session: ActiveWorkoutSession, event: ExitInfiniteRest, now: datetime
) -> list:
    _require(session, (RESTING_INFINITE,), "end manual rest")
    _end_rest(session, elapsed_seconds(session.rest_mode.started_at, now))
    return [Persist()]


def _move_to_exercise(
    session: ActiveWorkoutSession, event: MoveToExercise, now: datetime
) -> list:
    _require(
        session, (LOGGING, RESTING_FIXED, RESTING_INFINITE), "change exercise"
    )
    if not 0 <= event.index < len(session.routine_snapshot.exercises):
        return []
    session.current_exercise_index = event.index
    session.current_set_index = len(session.current_logged.sets)
    session.rest_mode = RestMode.none()
    session.pending_rest_seconds = None
    session.phase = LOGGING
    return [Persist(), SeedInputs(event.index)]


_HANDLERS = {
    LogSet: _log_set,
    AdvanceExercise: _advance_exercise,
    RepeatSet: _repeat_set,
    Tick: _tick,
    SkipRest: _skip_rest,
    AdjustRest: _adjust_rest,
    EnterInfiniteRest: _enter_infinite_rest,
    ExitInfiniteRest: _exit_infinite_rest,
    MoveToExercise: _move_to_exercise,
}


def apply(
    session: ActiveWorkoutSession, event, now: datetime | None = None
) -> Transition:
    """Apply ``event`` to ``session`` and return the resulting transition.

    Raises :class:`ValidationError` for invalid set input and
    :class:`InvalidTransition` for events not allowed in the current phase.
    ``session`` itself is left untouched in every case.
    """

    handler = _HANDLERS.get(type(event))
    if handler is None:
        raise TypeError(f"Unknown event {event!r}")
    now = now or utcnow()
    updated = copy.deepcopy(session)
    effects = handler(updated, event, now)
    if any(isinstance(e, Persist) for e in effects) and now > updated.last_activity_at:
        updated.last_activity_at = now
    return Transition(updated, tuple(effects))
