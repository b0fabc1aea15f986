"""Data model for routines, in-progress sessions and finished workouts.

Every persisted type offers ``to_dict``/``from_dict`` so that a session can be
written to the key-value store as a single JSON document.  Keys use camelCase
and all timestamps are ISO-8601 strings so the stored record stays readable
by the other clients sharing the device storage.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime

from workout_engine import DEFAULT_REST_SECONDS
from workout_engine.utils import from_iso, to_iso

# Session phases
LOGGING = "logging"
RESTING_FIXED = "resting_fixed"
RESTING_INFINITE = "resting_infinite"
EXERCISE_COMPLETE = "exercise_complete"

PHASES = (LOGGING, RESTING_FIXED, RESTING_INFINITE, EXERCISE_COMPLETE)

# Rest mode kinds
REST_NONE = "none"
REST_FIXED = "fixed"
REST_INFINITE = "infinite"


@dataclass
class RoutineExercise:
    """One planned entry of a routine."""

    exercise_id: str
    exercise_name: str
    planned_sets: int
    planned_reps: int
    planned_weight: float | None = None
    rest_seconds: int = DEFAULT_REST_SECONDS
    order: int = 0
    notes: str | None = None

    def to_dict(self) -> dict:
        return {
            "exerciseId": self.exercise_id,
            "exerciseName": self.exercise_name,
            "plannedSets": self.planned_sets,
            "plannedReps": self.planned_reps,
            "plannedWeight": self.planned_weight,
            "restTime": self.rest_seconds,
            "order": self.order,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RoutineExercise":
        return cls(
            exercise_id=str(data["exerciseId"]),
            exercise_name=data.get("exerciseName", ""),
            planned_sets=int(data.get("plannedSets") or 0),
            planned_reps=int(data.get("plannedReps") or 0),
            planned_weight=data.get("plannedWeight"),
            rest_seconds=int(data.get("restTime") or DEFAULT_REST_SECONDS),
            order=int(data.get("order", 0)),
            notes=data.get("notes"),
        )


@dataclass
class RoutinePlan:
    """A routine template.  Exercises are kept sorted by ``order``."""

    id: str
    name: str
    exercises: list[RoutineExercise] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.exercises = sorted(self.exercises, key=lambda ex: ex.order)

    def snapshot(self) -> "RoutinePlan":
        """Return a deep copy detached from the catalogue's instance."""

        return copy.deepcopy(self)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "exercises": [ex.to_dict() for ex in self.exercises],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RoutinePlan":
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            exercises=[RoutineExercise.from_dict(ex) for ex in data.get("exercises", [])],
        )


@dataclass
class PerformedSet:
    set_number: int
    reps: int
    weight: float
    rest_time_taken_seconds: int
    completed: bool = True
    notes: str | None = None

    @property
    def volume(self) -> float:
        return self.weight * self.reps

    def to_dict(self) -> dict:
        data = {
            "setNumber": self.set_number,
            "reps": self.reps,
            "weight": self.weight,
            "restTime": self.rest_time_taken_seconds,
            "completed": self.completed,
        }
        if self.notes:
            data["notes"] = self.notes
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "PerformedSet":
        return cls(
            set_number=int(data["setNumber"]),
            reps=int(data["reps"]),
            weight=float(data["weight"]),
            rest_time_taken_seconds=int(data.get("restTime") or 0),
            completed=bool(data.get("completed", True)),
            notes=data.get("notes"),
        )


@dataclass
class PerformedExercise:
    exercise_id: str
    exercise_name: str
    sets: list[PerformedSet] = field(default_factory=list)
    notes: str | None = None

    def to_dict(self) -> dict:
        return {
            "exerciseId": self.exercise_id,
            "exerciseName": self.exercise_name,
            "sets": [s.to_dict() for s in self.sets],
            "notes": self.notes or "",
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PerformedExercise":
        return cls(
            exercise_id=str(data["exerciseId"]),
            exercise_name=data.get("exerciseName", ""),
            sets=[PerformedSet.from_dict(s) for s in data.get("sets", [])],
            notes=data.get("notes") or None,
        )


@dataclass
class RestMode:
    """The rest state of a session.

    ``kind`` selects the active variant.  ``remaining_seconds`` and
    ``duration_seconds`` are only meaningful for a fixed countdown and
    ``started_at`` only for an open-ended rest.
    """

    kind: str = REST_NONE
    remaining_seconds: int = 0
    duration_seconds: int = 0
    started_at: datetime | None = None

    @classmethod
    def none(cls) -> "RestMode":
        return cls()

    @classmethod
    def fixed(cls, seconds: int) -> "RestMode":
        seconds = max(0, int(seconds))
        return cls(kind=REST_FIXED, remaining_seconds=seconds, duration_seconds=seconds)

    @classmethod
    def infinite(cls, started_at: datetime) -> "RestMode":
        return cls(kind=REST_INFINITE, started_at=started_at)

    @property
    def is_resting(self) -> bool:
        return self.kind != REST_NONE

    def taken_seconds(self) -> int:
        """Return how much of a fixed countdown has elapsed so far."""

        return max(0, self.duration_seconds - self.remaining_seconds)

    def to_dict(self) -> dict:
        if self.kind == REST_FIXED:
            return {
                "kind": REST_FIXED,
                "remainingSeconds": self.remaining_seconds,
                "durationSeconds": self.duration_seconds,
            }
        if self.kind == REST_INFINITE:
            return {"kind": REST_INFINITE, "startedAt": to_iso(self.started_at)}
        return {"kind": REST_NONE}

    @classmethod
    def from_dict(cls, data: dict | None) -> "RestMode":
        if not data:
            return cls.none()
        kind = data.get("kind", REST_NONE)
        if kind == REST_FIXED:
            remaining = int(data.get("remainingSeconds", 0))
            return cls(
                kind=REST_FIXED,
                remaining_seconds=remaining,
                duration_seconds=int(data.get("durationSeconds", remaining)),
            )
        if kind == REST_INFINITE:
            return cls.infinite(from_iso(data["startedAt"]))
        if kind != REST_NONE:
            raise ValueError(f"Unknown rest mode '{kind}'")
        return cls.none()


@dataclass
class ActiveWorkoutSession:
    """The persisted aggregate describing one in-progress workout."""

    id: str
    owner_profile_id: str
    routine_snapshot: RoutinePlan
    started_at: datetime
    last_activity_at: datetime
    current_exercise_index: int = 0
    logged_exercises: list[PerformedExercise] = field(default_factory=list)
    current_set_index: int = 0
    rest_mode: RestMode = field(default_factory=RestMode.none)
    phase: str = LOGGING
    # rest attributed to the next logged set; ``None`` means no rest episode
    # preceded it
    pending_rest_seconds: int | None = None

    @property
    def current_exercise(self) -> RoutineExercise:
        return self.routine_snapshot.exercises[self.current_exercise_index]

    @property
    def current_logged(self) -> PerformedExercise:
        return self.logged_exercises[self.current_exercise_index]

    @property
    def is_last_exercise(self) -> bool:
        return self.current_exercise_index >= len(self.routine_snapshot.exercises) - 1

    def to_dict(self) -> dict:
        """Return a JSON-serialisable representation of the session."""

        return {
            "id": self.id,
            "ownerProfileId": self.owner_profile_id,
            "routineSnapshot": self.routine_snapshot.to_dict(),
            "startedAt": to_iso(self.started_at),
            "currentExerciseIndex": self.current_exercise_index,
            "loggedExercises": [ex.to_dict() for ex in self.logged_exercises],
            "currentSetIndex": self.current_set_index,
            "restMode": self.rest_mode.to_dict(),
            "lastActivityAt": to_iso(self.last_activity_at),
            "phase": self.phase,
            "pendingRestSeconds": self.pending_rest_seconds,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ActiveWorkoutSession":
        """Reconstruct a session from :meth:`to_dict` output."""

        routine = RoutinePlan.from_dict(data["routineSnapshot"])
        rest_mode = RestMode.from_dict(data.get("restMode"))
        phase = data.get("phase")
        if phase not in PHASES:
            # records written without a phase map the rest mode directly
            phase = {
                REST_FIXED: RESTING_FIXED,
                REST_INFINITE: RESTING_INFINITE,
            }.get(rest_mode.kind, LOGGING)
        logged = [PerformedExercise.from_dict(ex) for ex in data.get("loggedExercises", [])]
        # keep one entry per planned exercise
        for entry in routine.exercises[len(logged):]:
            logged.append(PerformedExercise(entry.exercise_id, entry.exercise_name))
        return cls(
            id=str(data["id"]),
            owner_profile_id=str(data["ownerProfileId"]),
            routine_snapshot=routine,
            started_at=from_iso(data["startedAt"]),
            last_activity_at=from_iso(data["lastActivityAt"]),
            current_exercise_index=int(data.get("currentExerciseIndex", 0)),
            logged_exercises=logged,
            current_set_index=int(data.get("currentSetIndex", 0)),
            rest_mode=rest_mode,
            phase=phase,
            pending_rest_seconds=data.get("pendingRestSeconds"),
        )


@dataclass
class FinishedWorkout:
    """Completed workout handed to the archive."""

    id: str
    profile_id: str
    date: datetime
    routine_id: str
    routine_name: str
    exercises: list[PerformedExercise]
    duration_minutes: int
    notes: str = ""

    @property
    def total_sets(self) -> int:
        return sum(len(ex.sets) for ex in self.exercises)

    @property
    def total_volume(self) -> float:
        return sum(s.volume for ex in self.exercises for s in ex.sets)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.profile_id,
            "date": to_iso(self.date),
            "routineId": self.routine_id,
            "routineName": self.routine_name,
            "exercises": [ex.to_dict() for ex in self.exercises],
            "duration": self.duration_minutes,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FinishedWorkout":
        return cls(
            id=str(data["id"]),
            profile_id=str(data.get("userId", "")),
            date=from_iso(data["date"]),
            routine_id=str(data.get("routineId", "")),
            routine_name=data.get("routineName", ""),
            exercises=[PerformedExercise.from_dict(ex) for ex in data.get("exercises", [])],
            duration_minutes=int(data.get("duration", 0)),
            notes=data.get("notes") or "",
        )
