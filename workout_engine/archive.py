"""Archive of finished workouts.

Workouts are appended to a JSON list stored under the ``workouts`` key.  The
engine only appends; reading is provided for the performance lookup and for
history listings.
"""

from __future__ import annotations

from workout_engine.models import FinishedWorkout
from workout_engine.storage import KeyValueStore

WORKOUTS_KEY = "workouts"


class WorkoutArchive:
    def __init__(self, store: KeyValueStore, key: str = WORKOUTS_KEY) -> None:
        self.store = store
        self.key = key

    def append(self, workout: FinishedWorkout) -> None:
        """Add ``workout`` to the end of the archive."""

        workouts = self.store.get(self.key) or []
        workouts.append(workout.to_dict())
        self.store.set(self.key, workouts)

    def get_all(self, profile_id: str | None = None) -> list[FinishedWorkout]:
        """Return archived workouts in insertion order.

        When ``profile_id`` is given only that profile's workouts are
        returned.
        """

        workouts = [FinishedWorkout.from_dict(w) for w in self.store.get(self.key) or []]
        if profile_id is not None:
            workouts = [w for w in workouts if w.profile_id == profile_id]
        return workouts

    def get_history(
        self, limit: int | None = None, profile_id: str | None = None
    ) -> list[dict]:
        """Return past workouts, most recent first.

        Each item contains ``routine_name``, ``date``, ``duration_minutes``,
        ``total_sets`` and ``total_volume``.  When ``limit`` is provided only
        that many newest workouts are returned.
        """

        workouts = sorted(
            self.get_all(profile_id), key=lambda w: w.date, reverse=True
        )
        if limit is not None:
            workouts = workouts[:limit]
        return [
            {
                "routine_name": w.routine_name,
                "date": w.date,
                "duration_minutes": w.duration_minutes,
                "total_sets": w.total_sets,
                "total_volume": w.total_volume,
            }
            for w in workouts
        ]
