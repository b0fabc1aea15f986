import logging
import threading
import time

import pytest

from conftest import T0, at
from workout_engine import SESSION_STORAGE_KEY
from workout_engine.archive import WorkoutArchive
from workout_engine.completion import SOFT_BLOCK
from workout_engine.engine import WorkoutSessionEngine, create_engine
from workout_engine.errors import (
    CompletionRefused,
    InvalidTransition,
    PersistenceError,
    ValidationError,
)
from workout_engine.lifecycle import SessionLifecycle
from workout_engine.models import (
    EXERCISE_COMPLETE,
    LOGGING,
    RESTING_FIXED,
)
from workout_engine.session_store import SessionStore
from workout_engine.storage import KeyValueStore


class FakeLookup:
    def __init__(self, history):
        self.history = history

    def get_last_performance(self, exercise_id):
        return self.history.get(exercise_id)


class FlakyStore(KeyValueStore):
    fail = False

    def set(self, key, value):
        if self.fail:
            raise PersistenceError("disk full")
        super().set(key, value)


@pytest.fixture
def archive(kv_store):
    return WorkoutArchive(kv_store)


@pytest.fixture
def engine(lifecycle, archive):
    finished = []
    eng = WorkoutSessionEngine(
        lifecycle,
        performance=FakeLookup({"bench": (70.0, 6)}),
        archive=archive,
        on_rest_finished=lambda: finished.append(True),
    )
    eng.rest_finished_calls = finished
    return eng


def _stored(kv_store):
    return kv_store.get(SESSION_STORAGE_KEY)


def test_start_seeds_inputs_from_history(engine, routine):
    result = engine.start(routine, "A", now=T0)
    assert not result.resumed
    assert engine.active
    assert engine.phase == LOGGING
    assert (engine.inputs.weight, engine.inputs.reps) == (70.0, 6)
    assert engine.progress_text() == "Exercise 1 of 2"
    assert engine.set_text() == "Set 1 of 2"


def test_log_set_checkpoints(engine, kv_store, routine):
    engine.start(routine, "A", now=T0)
    engine.log_set(now=at(30))
    stored = _stored(kv_store)
    assert stored["loggedExercises"][0]["sets"][0]["weight"] == 70.0
    assert stored["restMode"]["kind"] == "fixed"
    assert engine.rest_seconds() == 60


def test_invalid_set_is_rejected_without_mutation(engine, kv_store, routine):
    engine.start(routine, "A", now=T0)
    with pytest.raises(ValidationError):
        engine.log_set(0, 10, now=at(5))
    assert engine.phase == LOGGING
    assert engine.session.logged_exercises[0].sets == []
    assert _stored(kv_store)["loggedExercises"][0]["sets"] == []


def test_ticks_do_not_checkpoint(engine, kv_store, routine):
    engine.start(routine, "A", now=T0)
    engine.log_set(60, 8, now=at(30))
    for i in range(10):
        engine.tick(now=at(31 + i))
    assert engine.rest_seconds() == 50
    assert _stored(kv_store)["restMode"]["remainingSeconds"] == 60


def test_rest_finished_notifies_host(engine, routine):
    engine.start(routine, "A", now=T0)
    engine.log_set(60, 8, now=at(30))
    engine.adjust_rest(-58, now=at(31))
    engine.tick(now=at(32))
    assert engine.rest_finished_calls == []
    engine.tick(now=at(33))
    assert engine.rest_finished_calls == [True]
    assert engine.phase == LOGGING


def test_infinite_rest_display(engine, routine):
    engine.start(routine, "A", now=T0)
    engine.enter_infinite_rest(now=at(10))
    assert engine.rest_seconds(now=at(40)) == 30
    engine.exit_infinite_rest(now=at(55))
    engine.log_set(60, 8, now=at(60))
    assert engine.session.logged_exercises[0].sets[0].rest_time_taken_seconds == 45


def test_navigation_reseeds_inputs(engine, routine):
    engine.start(routine, "A", now=T0)
    engine.next_exercise(now=at(5))
    assert engine.session.current_exercise_index == 1
    # no history for push-ups, no planned weight
    assert (engine.inputs.weight, engine.inputs.reps) == (20.0, 12)
    engine.previous_exercise(now=at(6))
    assert engine.session.current_exercise_index == 0
    engine.previous_exercise(now=at(7))
    assert engine.session.current_exercise_index == 0


def test_input_steppers(engine, routine):
    engine.start(routine, "A", now=T0)
    assert engine.adjust_weight(1) == 72.5
    assert engine.adjust_weight(-40) == 0.0
    assert engine.adjust_reps(-1) == 5


def test_persistence_failure_is_not_fatal(tmp_path, routine, caplog):
    store = FlakyStore(tmp_path / "w.db")
    engine = WorkoutSessionEngine(SessionLifecycle(SessionStore(store)))
    engine.start(routine, "A", now=T0)

    store.fail = True
    with caplog.at_level(logging.ERROR):
        engine.log_set(60, 8, now=at(30))
    assert "Error saving checkpoint" in caplog.text
    assert engine.phase == RESTING_FIXED
    assert len(engine.session.logged_exercises[0].sets) == 1


def test_full_workout_is_archived(engine, kv_store, archive, routine):
    engine.start(routine, "A", now=T0)
    engine.log_set(60, 8, now=at(60))
    engine.skip_rest(now=at(90))
    engine.log_set(60, 8, now=at(150))
    assert engine.phase == EXERCISE_COMPLETE
    engine.advance_exercise(now=at(160))
    for n in range(3):
        engine.log_set(1, 12, now=at(200 + n * 60))
        if engine.phase == RESTING_FIXED:
            engine.skip_rest(now=at(230 + n * 60))
    engine.advance_exercise(now=at(400))
    assert engine.ready_to_complete

    assert engine.evaluate_completion(now=at(600)).can_proceed
    workout = engine.finish(now=at(600))
    assert workout.total_sets == 5
    assert not engine.active
    assert engine.session is None
    assert _stored(kv_store) is None
    assert [w.id for w in archive.get_all()] == [workout.id]


def test_soft_block_requires_override(engine, archive, routine):
    engine.start(routine, "A", now=T0)
    engine.log_set(60, 8, now=at(60))
    assert engine.evaluate_completion(now=at(600)).kind == SOFT_BLOCK
    with pytest.raises(CompletionRefused):
        engine.finish(now=at(600))
    assert engine.active
    engine.finish(override=True, now=at(600))
    assert len(archive.get_all()) == 1


def test_cancel_stops_session(engine, kv_store, routine):
    stopped = []
    engine.add_deactivate_listener(lambda: stopped.append(True))
    engine.start(routine, "A", now=T0)
    engine.log_set(60, 8, now=at(30))
    engine.cancel()
    assert stopped == [True]
    assert not engine.active
    assert _stored(kv_store) is None
    assert engine.tick(now=at(31)) is None
    with pytest.raises(InvalidTransition):
        engine.skip_rest(now=at(32))


def test_resume_through_engine(engine, lifecycle, archive, routine):
    engine.start(routine, "A", now=T0)
    engine.log_set(60, 8, now=at(30))

    other = WorkoutSessionEngine(lifecycle, archive=archive)
    result = other.start(routine, "A", now=at(50))
    assert result.resumed
    assert other.rest_seconds() == 40
    assert other.set_text() == "Set 2 of 2"


def test_create_engine_uses_settings(tmp_path, monkeypatch, routine):
    from workout_engine import settings

    monkeypatch.setattr(settings, "SETTINGS_PATH", tmp_path / "settings.json")
    settings.reset_cache()
    calls = []
    engine = create_engine(tmp_path / "w.db", profile_id="A", on_rest_finished=lambda: calls.append(1))
    engine.start(routine, "A", now=T0)
    engine.log_set(60, 8, now=at(30))
    engine.tick(60, now=at(90))
    assert calls == [1]

    settings.set_value("vibration_on", False)
    engine.log_set(60, 8, now=at(100))
    engine.repeat_set(now=at(101))
    engine.tick(60, now=at(161))
    assert calls == [1]
    settings.reset_cache()


def test_create_engine_gates_sound_on_setting(tmp_path, monkeypatch, routine):
    from workout_engine import settings

    monkeypatch.setattr(settings, "SETTINGS_PATH", tmp_path / "settings.json")
    settings.reset_cache()
    buzz, sound = [], []
    engine = create_engine(
        tmp_path / "w.db",
        on_rest_finished=lambda: buzz.append(1),
        on_rest_sound=lambda: sound.append(1),
    )
    engine.start(routine, "A", now=T0)
    engine.log_set(60, 8, now=at(30))
    engine.tick(60, now=at(90))
    assert (buzz, sound) == ([1], [1])

    settings.set_value("sound_on", False)
    engine.log_set(60, 8, now=at(100))
    engine.repeat_set(now=at(101))
    engine.tick(60, now=at(161))
    assert (buzz, sound) == ([1, 1], [1])
    settings.reset_cache()


class SlowLifecycle(SessionLifecycle):
    def __init__(self, store):
        super().__init__(store)
        self.in_flight = 0
        self.max_in_flight = 0
        self.saves = 0
        self._counter = threading.Lock()

    def checkpoint(self, session, now=None):
        with self._counter:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        time.sleep(0.05)
        try:
            self.saves += 1
            return super().checkpoint(session, now)
        finally:
            with self._counter:
                self.in_flight -= 1


def test_concurrent_tick_and_skip_are_serialised(session_store, routine):
    lifecycle = SlowLifecycle(session_store)
    engine = WorkoutSessionEngine(lifecycle)
    engine.start(routine, "A", now=T0)
    engine.log_set(60, 8, now=at(30))
    engine.adjust_rest(-59, now=at(31))
    saves_before = lifecycle.saves

    barrier = threading.Barrier(2)
    outcomes = {}

    def run(name, action):
        barrier.wait()
        try:
            action()
            outcomes[name] = "ok"
        except InvalidTransition:
            outcomes[name] = "rejected"

    threads = [
        threading.Thread(target=run, args=("tick", lambda: engine.tick(now=at(32)))),
        threading.Thread(target=run, args=("skip", lambda: engine.skip_rest(now=at(32)))),
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    # exactly one of the two ended the rest
    assert lifecycle.max_in_flight == 1
    assert lifecycle.saves - saves_before == 1
    assert outcomes["tick"] == "ok"
    assert outcomes["skip"] in ("ok", "rejected")
    assert engine.phase == LOGGING
    assert engine.session.pending_rest_seconds in (0, 1)
