import json

import pytest

from conftest import T0, at
from workout_engine.lifecycle import new_session
from workout_engine.models import (
    EXERCISE_COMPLETE,
    LOGGING,
    RESTING_FIXED,
    RESTING_INFINITE,
    ActiveWorkoutSession,
    RestMode,
    RoutinePlan,
)
from workout_engine.state_machine import EnterInfiniteRest, LogSet, apply


def test_routine_sorted_by_order(routine):
    assert [ex.exercise_id for ex in routine.exercises] == ["bench", "pushup"]


def test_snapshot_is_detached(routine):
    snap = routine.snapshot()
    snap.exercises[0].planned_sets = 99
    assert routine.exercises[0].planned_sets == 2


def test_session_state_roundtrip(routine):
    session = new_session(routine, "profile-a", now=T0, session_id="s1")
    session = apply(session, LogSet(60, 8), at(30)).session

    payload = json.dumps(session.to_dict())
    recovered = ActiveWorkoutSession.from_dict(json.loads(payload))

    assert recovered.current_exercise_index == session.current_exercise_index
    assert recovered.current_set_index == session.current_set_index == 1
    assert recovered.logged_exercises == session.logged_exercises
    assert recovered.rest_mode == session.rest_mode
    assert recovered.phase == RESTING_FIXED
    assert recovered.to_dict() == session.to_dict()


def test_persisted_shape_uses_iso_timestamps(routine):
    session = new_session(routine, "profile-a", now=T0, session_id="s1")
    data = session.to_dict()
    for key in (
        "id",
        "ownerProfileId",
        "routineSnapshot",
        "startedAt",
        "currentExerciseIndex",
        "loggedExercises",
        "currentSetIndex",
        "restMode",
        "lastActivityAt",
    ):
        assert key in data
    assert data["startedAt"] == "2026-01-05T09:00:00+00:00"
    assert data["restMode"] == {"kind": "none"}


def test_infinite_rest_roundtrip(routine):
    session = new_session(routine, "profile-a", now=T0)
    session = apply(session, EnterInfiniteRest(), at(5)).session
    recovered = ActiveWorkoutSession.from_dict(session.to_dict())
    assert recovered.rest_mode.started_at == at(5)
    assert recovered.phase == RESTING_INFINITE


def test_missing_phase_maps_from_rest_mode(routine):
    data = new_session(routine, "profile-a", now=T0).to_dict()
    del data["phase"]
    data["restMode"] = RestMode.fixed(30).to_dict()
    assert ActiveWorkoutSession.from_dict(data).phase == RESTING_FIXED
    data["restMode"] = {"kind": "none"}
    assert ActiveWorkoutSession.from_dict(data).phase == LOGGING


def test_unknown_rest_kind_rejected():
    with pytest.raises(ValueError):
        RestMode.from_dict({"kind": "nap"})


def test_logged_exercises_padded_to_routine(routine):
    data = new_session(routine, "profile-a", now=T0).to_dict()
    data["loggedExercises"] = data["loggedExercises"][:1]
    session = ActiveWorkoutSession.from_dict(data)
    assert [ex.exercise_id for ex in session.logged_exercises] == ["bench", "pushup"]


def test_routine_from_dict_defaults_rest():
    plan = RoutinePlan.from_dict(
        {
            "id": "r1",
            "name": "Legs",
            "exercises": [
                {"exerciseId": "squat", "exerciseName": "Squat", "plannedSets": 3,
                 "plannedReps": 5, "restTime": 0, "order": 0},
            ],
        }
    )
    assert plan.exercises[0].rest_seconds == 90
    assert plan.exercises[0].planned_weight is None


def test_exercise_complete_phase_survives_roundtrip(single_exercise_routine):
    session = new_session(single_exercise_routine, "profile-a", now=T0)
    session = apply(session, LogSet(12.5, 10), at(20)).session
    assert ActiveWorkoutSession.from_dict(session.to_dict()).phase == EXERCISE_COMPLETE
