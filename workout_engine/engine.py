"""Mutex-guarded handle driving one active workout session.

:class:`WorkoutSessionEngine` is the single point through which the session
is mutated.  UI handlers and the rest ticker call into it from whichever
thread they run on; every call takes the same lock, applies the event with
:func:`workout_engine.state_machine.apply` and then performs the returned
side effects.  The in-memory transition is kept even when a checkpoint fails.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Callable

from workout_engine import DEFAULT_DB_PATH
from workout_engine import completion
from workout_engine import settings
from workout_engine.archive import WorkoutArchive
from workout_engine.errors import InvalidTransition, PersistenceError
from workout_engine.lifecycle import Fresh, Resumed, SessionLifecycle
from workout_engine.models import (
    REST_FIXED,
    REST_INFINITE,
    ActiveWorkoutSession,
    FinishedWorkout,
    RoutinePlan,
)
from workout_engine.performance import (
    ArchivePerformanceLookup,
    InputDraft,
    PerformanceLookup,
    seed_inputs,
)
from workout_engine.session_store import SessionStore
from workout_engine.state_machine import (
    AdjustRest,
    AdvanceExercise,
    EnterInfiniteRest,
    ExitInfiniteRest,
    LogSet,
    MoveToExercise,
    NotifyRestFinished,
    Persist,
    ReadyToComplete,
    RepeatSet,
    SeedInputs,
    SkipRest,
    Tick,
    Transition,
    apply,
)
from workout_engine.storage import KeyValueStore
from workout_engine.utils import elapsed_seconds, utcnow


class WorkoutSessionEngine:
    def __init__(
        self,
        lifecycle: SessionLifecycle,
        *,
        performance: PerformanceLookup | None = None,
        archive: WorkoutArchive | None = None,
        on_rest_finished: Callable[[], None] | None = None,
    ) -> None:
        self.lifecycle = lifecycle
        self.performance = performance
        self.archive = archive
        self.on_rest_finished = on_rest_finished
        self.session: ActiveWorkoutSession | None = None
        self.resumed = False
        self.active = False
        self.ready_to_complete = False
        self.inputs = InputDraft()
        self._lock = threading.RLock()
        self._deactivate_listeners: list[Callable[[], None]] = []

    # ------------------------------------------------------------------
    # Session start / stop
    # ------------------------------------------------------------------

    def start(
        self,
        routine: RoutinePlan,
        owner_profile_id: str,
        now: datetime | None = None,
    ) -> Fresh | Resumed:
        """Resume the stored session for ``routine`` or start a fresh one."""

        with self._lock:
            result = self.lifecycle.initialize(routine, owner_profile_id, now)
            self._activate(result)
            return result

    def restart(
        self,
        routine: RoutinePlan,
        owner_profile_id: str,
        now: datetime | None = None,
    ) -> Fresh:
        """Start ``routine`` afresh, discarding any resumable session."""

        with self._lock:
            result = self.lifecycle.discard_and_restart(routine, owner_profile_id, now)
            self._activate(result)
            return result

    def _activate(self, result: Fresh | Resumed) -> None:
        self.session = result.session
        self.resumed = result.resumed
        self.active = True
        self.ready_to_complete = False
        self.inputs = seed_inputs(self.session.current_exercise, self.performance)

    def add_deactivate_listener(self, callback: Callable[[], None]) -> None:
        """Call ``callback`` once the session is finished or cancelled."""

        self._deactivate_listeners.append(callback)

    def _deactivate(self) -> None:
        self.active = False
        self.session = None
        for callback in list(self._deactivate_listeners):
            callback()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def dispatch(self, event, now: datetime | None = None) -> Transition:
        """Apply ``event`` to the active session and run its side effects."""

        with self._lock:
            if not self.active or self.session is None:
                raise InvalidTransition("No active session")
            now = now or utcnow()
            transition = apply(self.session, event, now)
            self.session = transition.session
            self._drain(transition.effects, now)
            return transition

    def _drain(self, effects: tuple, now: datetime) -> None:
        for effect in effects:
            if isinstance(effect, Persist):
                self.lifecycle.checkpoint(self.session, now)
            elif isinstance(effect, NotifyRestFinished):
                if self.on_rest_finished is not None:
                    self.on_rest_finished()
            elif isinstance(effect, SeedInputs):
                entry = self.session.routine_snapshot.exercises[effect.exercise_index]
                self.inputs = seed_inputs(entry, self.performance)
            elif isinstance(effect, ReadyToComplete):
                self.ready_to_complete = True

    def log_set(
        self,
        weight: float | None = None,
        reps: int | None = None,
        notes: str | None = None,
        now: datetime | None = None,
    ) -> Transition:
        """Log a set, using the current input values when none are given."""

        with self._lock:
            weight = self.inputs.weight if weight is None else weight
            reps = self.inputs.reps if reps is None else reps
            return self.dispatch(LogSet(weight, reps, notes), now)

    def advance_exercise(self, now: datetime | None = None) -> Transition:
        return self.dispatch(AdvanceExercise(), now)

    def repeat_set(self, now: datetime | None = None) -> Transition:
        return self.dispatch(RepeatSet(), now)

    def tick(self, seconds: int = 1, now: datetime | None = None) -> Transition | None:
        """Advance a fixed rest countdown.  Ignored once the session is no
        longer active."""

        with self._lock:
            if not self.active:
                return None
            return self.dispatch(Tick(seconds), now)

    def skip_rest(self, now: datetime | None = None) -> Transition:
        return self.dispatch(SkipRest(), now)

    def adjust_rest(self, delta_seconds: int, now: datetime | None = None) -> Transition:
        return self.dispatch(AdjustRest(delta_seconds), now)

    def enter_infinite_rest(self, now: datetime | None = None) -> Transition:
        return self.dispatch(EnterInfiniteRest(), now)

    def exit_infinite_rest(self, now: datetime | None = None) -> Transition:
        return self.dispatch(ExitInfiniteRest(), now)

    def move_to_exercise(self, index: int, now: datetime | None = None) -> Transition:
        return self.dispatch(MoveToExercise(index), now)

    def previous_exercise(self, now: datetime | None = None) -> Transition:
        with self._lock:
            index = self.session.current_exercise_index if self.session else 0
            return self.dispatch(MoveToExercise(index - 1), now)

    def next_exercise(self, now: datetime | None = None) -> Transition:
        with self._lock:
            index = self.session.current_exercise_index if self.session else 0
            return self.dispatch(MoveToExercise(index + 1), now)

    def adjust_weight(self, steps: int = 1) -> float:
        with self._lock:
            return self.inputs.adjust_weight(steps)

    def adjust_reps(self, steps: int = 1) -> int:
        with self._lock:
            return self.inputs.adjust_reps(steps)

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def evaluate_completion(
        self, now: datetime | None = None
    ) -> completion.CompletionVerdict:
        with self._lock:
            if self.session is None:
                raise InvalidTransition("No active session")
            return completion.evaluate_completion(self.session, now)

    def finish(
        self,
        *,
        override: bool = False,
        notes: str = "",
        now: datetime | None = None,
    ) -> FinishedWorkout:
        """Finalise the session and hand the workout to the archive.

        Raises :class:`~workout_engine.errors.CompletionRefused` when the
        completion gate blocks and the block is not overridden.
        """

        with self._lock:
            if not self.active or self.session is None:
                raise InvalidTransition("No active session")
            workout = completion.finalize(
                self.session,
                self.lifecycle.store,
                override=override,
                notes=notes,
                now=now,
            )
            self._deactivate()
        if self.archive is not None:
            try:
                self.archive.append(workout)
            except PersistenceError:
                logging.exception("Error archiving workout %s", workout.id)
        return workout

    def cancel(self) -> None:
        """Discard the session.  The caller confirms with the user first."""

        with self._lock:
            if self.session is None:
                return
            completion.cancel(self.session, self.lifecycle.store)
            self._deactivate()

    # ------------------------------------------------------------------
    # Display helpers
    # ------------------------------------------------------------------

    @property
    def phase(self) -> str | None:
        return self.session.phase if self.session else None

    def rest_seconds(self, now: datetime | None = None) -> int:
        """Seconds remaining in a fixed rest, or elapsed in a manual rest."""

        with self._lock:
            if self.session is None:
                return 0
            rest = self.session.rest_mode
            if rest.kind == REST_FIXED:
                return rest.remaining_seconds
            if rest.kind == REST_INFINITE:
                return elapsed_seconds(rest.started_at, now or utcnow())
            return 0

    def progress_text(self) -> str:
        if self.session is None:
            return ""
        return (
            f"Exercise {self.session.current_exercise_index + 1} "
            f"of {len(self.session.routine_snapshot.exercises)}"
        )

    def set_text(self) -> str:
        if self.session is None:
            return ""
        planned = self.session.current_exercise.planned_sets
        return f"Set {self.session.current_set_index + 1} of {planned}"


def create_engine(
    db_path: Path = DEFAULT_DB_PATH,
    *,
    profile_id: str | None = None,
    on_rest_finished: Callable[[], None] | None = None,
    on_rest_sound: Callable[[], None] | None = None,
) -> WorkoutSessionEngine:
    """Build an engine wired to the SQLite store at ``db_path``.

    The staleness window comes from the settings file.  When a rest ends
    ``on_rest_finished`` is called while ``vibration_on`` is enabled and
    ``on_rest_sound`` while ``sound_on`` is enabled.
    """

    store = KeyValueStore(db_path)
    archive = WorkoutArchive(store)

    def _notify() -> None:
        if on_rest_finished is not None and settings.get_value("vibration_on"):
            on_rest_finished()
        if on_rest_sound is not None and settings.get_value("sound_on"):
            on_rest_sound()

    return WorkoutSessionEngine(
        SessionLifecycle(SessionStore(store, stale_after=settings.stale_after())),
        performance=ArchivePerformanceLookup(archive, profile_id),
        archive=archive,
        on_rest_finished=_notify,
    )
