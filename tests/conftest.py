from datetime import datetime, timedelta, timezone
from pathlib import Path
import sys

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from workout_engine.lifecycle import SessionLifecycle
from workout_engine.models import RoutineExercise, RoutinePlan
from workout_engine.session_store import SessionStore
from workout_engine.storage import KeyValueStore

T0 = datetime(2026, 1, 5, 9, 0, 0, tzinfo=timezone.utc)


def at(seconds: float) -> datetime:
    """Return the timestamp ``seconds`` after :data:`T0`."""
    return T0 + timedelta(seconds=seconds)


@pytest.fixture
def kv_store(tmp_path: Path) -> KeyValueStore:
    return KeyValueStore(tmp_path / "workout.db")


@pytest.fixture
def session_store(kv_store: KeyValueStore) -> SessionStore:
    return SessionStore(kv_store)


@pytest.fixture
def lifecycle(session_store: SessionStore) -> SessionLifecycle:
    return SessionLifecycle(session_store)


@pytest.fixture
def routine() -> RoutinePlan:
    """A 'Push Day' routine: Bench Press 2x8 @60kg, then Push-up 3x12."""
    return RoutinePlan(
        id="push-day",
        name="Push Day",
        exercises=[
            RoutineExercise(
                exercise_id="pushup",
                exercise_name="Push-up",
                planned_sets=3,
                planned_reps=12,
                rest_seconds=45,
                order=1,
            ),
            RoutineExercise(
                exercise_id="bench",
                exercise_name="Bench Press",
                planned_sets=2,
                planned_reps=8,
                planned_weight=60.0,
                rest_seconds=60,
                order=0,
            ),
        ],
    )


@pytest.fixture
def single_exercise_routine() -> RoutinePlan:
    return RoutinePlan(
        id="curls",
        name="Arms",
        exercises=[
            RoutineExercise(
                exercise_id="curl",
                exercise_name="Curl",
                planned_sets=1,
                planned_reps=10,
                planned_weight=12.5,
                rest_seconds=30,
            )
        ],
    )
