"""Creation, resumption and persistence checkpoints of workout sessions."""

from __future__ import annotations

import copy
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from workout_engine.errors import PersistenceError
from workout_engine.models import (
    LOGGING,
    REST_FIXED,
    ActiveWorkoutSession,
    PerformedExercise,
    RestMode,
    RoutinePlan,
)
from workout_engine.session_store import SessionStore
from workout_engine.utils import elapsed_seconds, utcnow


@dataclass(frozen=True)
class Fresh:
    session: ActiveWorkoutSession
    resumed = False


@dataclass(frozen=True)
class Resumed:
    session: ActiveWorkoutSession
    resumed = True


def new_session(
    routine: RoutinePlan,
    owner_profile_id: str,
    now: datetime | None = None,
    session_id: str | None = None,
) -> ActiveWorkoutSession:
    """Build a session for ``routine`` with no logged sets."""

    if not routine.exercises:
        raise ValueError(f"Routine '{routine.name}' has no exercises")
    now = now or utcnow()
    snapshot = routine.snapshot()
    return ActiveWorkoutSession(
        id=session_id or f"workout-{uuid.uuid4().hex}",
        owner_profile_id=owner_profile_id,
        routine_snapshot=snapshot,
        started_at=now,
        last_activity_at=now,
        logged_exercises=[
            PerformedExercise(ex.exercise_id, ex.exercise_name)
            for ex in snapshot.exercises
        ],
    )


def catch_up_rest(
    session: ActiveWorkoutSession, now: datetime | None = None
) -> ActiveWorkoutSession:
    """Return a copy of ``session`` with a fixed rest reduced by the time
    elapsed since its last activity.

    A countdown that ran out while the app was suspended ends, and the full
    countdown is attributed to the next set.  Open-ended rest is displayed as
    ``now - started_at`` and needs no adjustment.
    """

    now = now or utcnow()
    session = copy.deepcopy(session)
    rest = session.rest_mode
    if rest.kind != REST_FIXED:
        return session
    elapsed = elapsed_seconds(session.last_activity_at, now)
    rest.remaining_seconds = max(0, rest.remaining_seconds - elapsed)
    if rest.remaining_seconds == 0:
        session.pending_rest_seconds = rest.taken_seconds()
        session.rest_mode = RestMode.none()
        session.phase = LOGGING
    return session


def _normalise_indices(session: ActiveWorkoutSession) -> None:
    last = len(session.routine_snapshot.exercises) - 1
    session.current_exercise_index = min(max(0, session.current_exercise_index), last)
    session.current_set_index = len(session.current_logged.sets)


class SessionLifecycle:
    """Start, resume and checkpoint the active session."""

    def __init__(self, store: SessionStore) -> None:
        self.store = store

    def initialize(
        self,
        routine: RoutinePlan,
        owner_profile_id: str,
        now: datetime | None = None,
    ) -> Fresh | Resumed:
        """Resume the stored session for ``routine`` if it is owned by
        ``owner_profile_id`` and not stale, otherwise start a fresh one."""

        now = now or utcnow()
        try:
            stored = self.store.get(owner_profile_id, now)
        except PersistenceError:
            logging.exception("Error reading stored session, starting fresh")
            stored = None

        if stored is not None and stored.routine_snapshot.id == routine.id:
            session = catch_up_rest(stored, now)
            _normalise_indices(session)
            try:
                self.store.update(
                    {
                        "restMode": session.rest_mode.to_dict(),
                        "phase": session.phase,
                        "pendingRestSeconds": session.pending_rest_seconds,
                    },
                    now,
                )
                session.last_activity_at = max(session.last_activity_at, now)
            except PersistenceError:
                logging.exception("Error saving resumed rest state")
            logging.info(
                "Resuming session %s at exercise %d",
                session.id,
                session.current_exercise_index + 1,
            )
            return Resumed(session)

        if stored is not None:
            logging.info(
                "Replacing stored session %s for routine %s",
                stored.id,
                stored.routine_snapshot.name,
            )
        return Fresh(self._start_fresh(routine, owner_profile_id, now))

    def discard_and_restart(
        self,
        routine: RoutinePlan,
        owner_profile_id: str,
        now: datetime | None = None,
    ) -> Fresh:
        """Ignore any resumable session and start ``routine`` from scratch."""

        self.clear()
        return Fresh(self._start_fresh(routine, owner_profile_id, now or utcnow()))

    def _start_fresh(
        self, routine: RoutinePlan, owner_profile_id: str, now: datetime
    ) -> ActiveWorkoutSession:
        session = new_session(routine, owner_profile_id, now)
        logging.info(
            "Starting session %s for routine %s (%d exercises)",
            session.id,
            routine.name,
            len(routine.exercises),
        )
        self.checkpoint(session, now)
        return session

    def checkpoint(
        self, session: ActiveWorkoutSession, now: datetime | None = None
    ) -> bool:
        """Persist ``session``.  Failures are logged and reported as
        ``False``; the in-memory session stays authoritative."""

        try:
            self.store.save(session, now)
        except PersistenceError:
            logging.exception("Error saving checkpoint for session %s", session.id)
            return False
        return True

    def clear(self) -> bool:
        """Remove the stored session, logging any failure."""

        try:
            self.store.clear()
        except PersistenceError:
            logging.exception("Error clearing stored session")
            return False
        return True
