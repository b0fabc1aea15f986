"""Completion gate: quality checks and conversion into a finished workout."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from datetime import datetime

from workout_engine import MIN_SESSION_MINUTES, MIN_TOTAL_SETS, MIN_TOTAL_VOLUME
from workout_engine.errors import CompletionRefused, PersistenceError
from workout_engine.models import ActiveWorkoutSession, FinishedWorkout
from workout_engine.session_store import SessionStore
from workout_engine.utils import utcnow, whole_minutes

# Verdict kinds
PROCEED = "proceed"
HARD_BLOCK = "hard_block"
SOFT_BLOCK = "soft_block"

# Block reasons
TOO_SHORT = "too_short"
NO_EXERCISES_COMPLETED = "no_exercises_completed"
TOO_FEW_SETS = "too_few_sets"
LOW_VOLUME = "low_volume"


@dataclass(frozen=True)
class CompletionVerdict:
    kind: str
    reason: str | None = None
    message: str = ""

    @property
    def overridable(self) -> bool:
        return self.kind == SOFT_BLOCK

    @property
    def can_proceed(self) -> bool:
        return self.kind == PROCEED


def workout_totals(session: ActiveWorkoutSession) -> dict:
    """Return ``total_sets``, ``total_volume`` and ``completed_exercises``.

    Extra sets added with ``repeat_set`` count like planned sets.
    """

    done = [ex for ex in session.logged_exercises if ex.sets]
    return {
        "total_sets": sum(len(ex.sets) for ex in done),
        "total_volume": sum(s.volume for ex in done for s in ex.sets),
        "completed_exercises": len(done),
    }


def evaluate_completion(
    session: ActiveWorkoutSession, now: datetime | None = None
) -> CompletionVerdict:
    """Check ``session`` against the quality thresholds.

    Checks run in priority order and the first failing one decides the
    verdict: duration, completed exercises, set count, volume.
    """

    now = now or utcnow()
    if whole_minutes(session.started_at, now) < MIN_SESSION_MINUTES:
        return CompletionVerdict(
            HARD_BLOCK,
            TOO_SHORT,
            f"Workouts shorter than {MIN_SESSION_MINUTES} minutes cannot be saved.",
        )
    totals = workout_totals(session)
    if totals["completed_exercises"] == 0:
        return CompletionVerdict(
            HARD_BLOCK,
            NO_EXERCISES_COMPLETED,
            "You need to complete at least one exercise to save this workout.",
        )
    if totals["total_sets"] < MIN_TOTAL_SETS:
        count = totals["total_sets"]
        return CompletionVerdict(
            SOFT_BLOCK,
            TOO_FEW_SETS,
            f"You've only completed {count} set{'' if count == 1 else 's'}. "
            f"Complete at least {MIN_TOTAL_SETS} sets for a meaningful workout.",
        )
    if totals["total_volume"] < MIN_TOTAL_VOLUME:
        return CompletionVerdict(
            SOFT_BLOCK,
            LOW_VOLUME,
            "This seems like a very light workout. Are you sure you want to save it?",
        )
    return CompletionVerdict(PROCEED)


def finalize(
    session: ActiveWorkoutSession,
    store: SessionStore,
    *,
    override: bool = False,
    notes: str = "",
    now: datetime | None = None,
) -> FinishedWorkout:
    """Convert ``session`` into a :class:`FinishedWorkout` and clear the
    stored record.

    A hard block always raises :class:`CompletionRefused`; a soft block does
    unless ``override`` is set.  Exercises without logged sets are left out.
    """

    now = now or utcnow()
    verdict = evaluate_completion(session, now)
    if verdict.kind == HARD_BLOCK or (verdict.kind == SOFT_BLOCK and not override):
        raise CompletionRefused(verdict.message or verdict.reason)

    workout = FinishedWorkout(
        id=session.id,
        profile_id=session.owner_profile_id,
        date=now,
        routine_id=session.routine_snapshot.id,
        routine_name=session.routine_snapshot.name,
        exercises=[copy.deepcopy(ex) for ex in session.logged_exercises if ex.sets],
        duration_minutes=whole_minutes(session.started_at, now),
        notes=notes,
    )
    try:
        store.clear()
    except PersistenceError:
        logging.exception("Error clearing finished session %s", session.id)
    logging.info(
        "Finished session %s: %d sets in %d minutes",
        session.id,
        workout.total_sets,
        workout.duration_minutes,
    )
    return workout


def cancel(session: ActiveWorkoutSession, store: SessionStore) -> None:
    """Drop ``session`` without producing a workout.

    The caller must already have confirmed the cancellation with the user.
    """

    try:
        store.clear()
    except PersistenceError:
        logging.exception("Error clearing cancelled session %s", session.id)
    logging.info("Cancelled session %s", session.id)


def summary(session: ActiveWorkoutSession, now: datetime | None = None) -> str:
    """Return a formatted text summary of the session."""

    now = now or utcnow()
    totals = workout_totals(session)
    lines = [f"Workout: {session.routine_snapshot.name}"]
    lines.append(f"Start: {session.started_at:%Y-%m-%d %H:%M:%S}")
    dur = max(0, int((now - session.started_at).total_seconds()))
    m, s = divmod(dur, 60)
    lines.append(f"Duration: {m}m {s}s")
    lines.append(f"Sets: {totals['total_sets']}")
    lines.append(f"Volume: {totals['total_volume']:g}kg")
    for ex in session.logged_exercises:
        if not ex.sets:
            continue
        lines.append(f"\n{ex.exercise_name}")
        for st in ex.sets:
            lines.append(f"  Set {st.set_number}: {st.weight:g}kg x {st.reps} reps")
    return "\n".join(lines)
