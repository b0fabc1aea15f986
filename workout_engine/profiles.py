"""The currently active user profile."""

from __future__ import annotations

import logging

from workout_engine.errors import PersistenceError
from workout_engine.session_store import SessionStore


class ProfileContext:
    """Hold the active profile id and purge foreign sessions on a switch.

    Reading a session already enforces ownership; purging on the switch
    itself removes another profile's session before anything can read it.
    """

    def __init__(self, profile_id: str, session_store: SessionStore | None = None) -> None:
        self._profile_id = profile_id
        self.session_store = session_store

    def current_profile_id(self) -> str:
        return self._profile_id

    def switch_profile(self, profile_id: str) -> None:
        if profile_id == self._profile_id:
            return
        logging.info("Switching profile %s -> %s", self._profile_id, profile_id)
        self._profile_id = profile_id
        if self.session_store is None:
            return
        try:
            self.session_store.purge_unless_owned_by(profile_id)
        except PersistenceError:
            logging.exception("Error purging sessions after profile switch")
