"""Prior performance lookup and default weight/reps for the input steppers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from workout_engine import DEFAULT_REPS, DEFAULT_WEIGHT, REPS_STEP, WEIGHT_STEP
from workout_engine.archive import WorkoutArchive
from workout_engine.errors import PersistenceError
from workout_engine.models import RoutineExercise


class PerformanceLookup(Protocol):
    def get_last_performance(self, exercise_id: str) -> tuple[float, int] | None:
        ...


class ArchivePerformanceLookup:
    """Read the most recent weight/reps for an exercise from the archive."""

    def __init__(self, archive: WorkoutArchive, profile_id: str | None = None) -> None:
        self.archive = archive
        self.profile_id = profile_id

    def get_last_performance(self, exercise_id: str) -> tuple[float, int] | None:
        """Return ``(weight, reps)`` of the last set of the newest workout
        containing ``exercise_id``, or ``None``."""

        workouts = sorted(
            self.archive.get_all(self.profile_id), key=lambda w: w.date, reverse=True
        )
        for workout in workouts:
            for ex in workout.exercises:
                if ex.exercise_id == exercise_id and ex.sets:
                    last = ex.sets[-1]
                    return last.weight, last.reps
        return None


@dataclass
class InputDraft:
    """Weight and reps shown in the set inputs before a set is logged."""

    weight: float = DEFAULT_WEIGHT
    reps: int = DEFAULT_REPS

    def adjust_weight(self, steps: int = 1) -> float:
        self.weight = max(0.0, self.weight + steps * WEIGHT_STEP)
        return self.weight

    def adjust_reps(self, steps: int = 1) -> int:
        self.reps = max(0, self.reps + steps * REPS_STEP)
        return self.reps


def seed_inputs(
    entry: RoutineExercise, lookup: PerformanceLookup | None = None
) -> InputDraft:
    """Return the default inputs for ``entry``.

    The most recent historical performance wins, then the routine's planned
    values, then :data:`DEFAULT_WEIGHT` x :data:`DEFAULT_REPS`.  A lookup
    failure falls through to the routine values.
    """

    if lookup is not None:
        try:
            last = lookup.get_last_performance(entry.exercise_id)
        except PersistenceError:
            logging.exception(
                "Error loading previous performance for %s", entry.exercise_name
            )
            last = None
        if last is not None:
            weight, reps = last
            return InputDraft(weight=weight or DEFAULT_WEIGHT, reps=reps or DEFAULT_REPS)
    return InputDraft(
        weight=entry.planned_weight or DEFAULT_WEIGHT,
        reps=entry.planned_reps or DEFAULT_REPS,
    )
