"""Adapter for the single active-session slot of the key-value store.

Only one in-progress session is kept per device.  Reads enforce ownership
and staleness: a record belonging to another profile, or idle for longer than
:data:`~workout_engine.STALE_AFTER`, is evicted and reported as absent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from workout_engine import SESSION_STORAGE_KEY, STALE_AFTER
from workout_engine.models import ActiveWorkoutSession
from workout_engine.storage import KeyValueStore
from workout_engine.utils import from_iso, to_iso, utcnow


@dataclass(frozen=True)
class StaleSessionDiscarded:
    session_id: str
    owner_profile_id: str
    last_activity_at: datetime


@dataclass(frozen=True)
class OwnershipMismatchDiscarded:
    session_id: str
    owner_profile_id: str
    requested_profile_id: str


class SessionStore:
    """Durable get/save/update/clear for the active-session record."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        key: str = SESSION_STORAGE_KEY,
        stale_after: timedelta = STALE_AFTER,
        on_discard: Callable[[object], None] | None = None,
    ) -> None:
        self.store = store
        self.key = key
        self.stale_after = stale_after
        self.on_discard = on_discard

    def _discarded(self, event) -> None:
        logging.info("Discarded stored session: %s", event)
        self.store.remove(self.key)
        if self.on_discard is not None:
            self.on_discard(event)

    def get(
        self, owner_profile_id: str, now: datetime | None = None
    ) -> ActiveWorkoutSession | None:
        """Return the stored session if it is owned by ``owner_profile_id``
        and not stale, otherwise evict it and return ``None``."""

        now = now or utcnow()
        data = self.store.get(self.key)
        if data is None:
            return None
        try:
            session = ActiveWorkoutSession.from_dict(data)
        except (KeyError, TypeError, ValueError):
            logging.exception("Stored session is unreadable, removing it")
            self.store.remove(self.key)
            return None

        if session.owner_profile_id != owner_profile_id:
            self._discarded(
                OwnershipMismatchDiscarded(
                    session.id, session.owner_profile_id, owner_profile_id
                )
            )
            return None
        if now - session.last_activity_at > self.stale_after:
            self._discarded(
                StaleSessionDiscarded(
                    session.id, session.owner_profile_id, session.last_activity_at
                )
            )
            return None
        return session

    def save(self, session: ActiveWorkoutSession, now: datetime | None = None) -> None:
        """Replace the stored record with ``session``.

        ``session.last_activity_at`` is bumped to ``now`` but never moved
        backwards.
        """

        now = now or utcnow()
        if now > session.last_activity_at:
            session.last_activity_at = now
        self.store.set(self.key, session.to_dict())

    def update(self, fields: dict, now: datetime | None = None) -> bool:
        """Merge ``fields`` (stored camelCase keys) into the record.

        Returns ``False`` when there is no record to update.
        """

        now = now or utcnow()
        data = self.store.get(self.key)
        if data is None:
            logging.warning("No stored session to update")
            return False
        data.update(fields)
        previous = from_iso(data.get("lastActivityAt"))
        if previous is None or now > previous:
            data["lastActivityAt"] = to_iso(now)
        self.store.set(self.key, data)
        return True

    def clear(self) -> None:
        """Remove the stored record unconditionally."""

        self.store.remove(self.key)

    def purge_unless_owned_by(self, profile_id: str) -> bool:
        """Evict a stored session owned by any profile other than
        ``profile_id``.  Returns ``True`` if a record was removed."""

        data = self.store.get(self.key)
        if data is None:
            return False
        owner = str(data.get("ownerProfileId", ""))
        if owner == profile_id:
            return False
        self._discarded(
            OwnershipMismatchDiscarded(str(data.get("id", "")), owner, profile_id)
        )
        return True
