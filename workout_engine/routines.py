"""Routine catalogue backed by the key-value store."""

from __future__ import annotations

from workout_engine.models import RoutinePlan
from workout_engine.storage import KeyValueStore

ROUTINES_KEY = "routines"


class RoutineCatalog:
    """Load and save :class:`RoutinePlan` templates."""

    def __init__(self, store: KeyValueStore, key: str = ROUTINES_KEY) -> None:
        self.store = store
        self.key = key

    def get_all(self) -> list[RoutinePlan]:
        return [RoutinePlan.from_dict(r) for r in self.store.get(self.key) or []]

    def get_routine(self, routine_id: str) -> RoutinePlan | None:
        """Return the routine with ``routine_id`` or ``None``."""

        for routine in self.get_all():
            if routine.id == routine_id:
                return routine
        return None

    def save_routine(self, routine: RoutinePlan) -> None:
        """Insert ``routine`` or replace the entry with the same id."""

        routines = self.store.get(self.key) or []
        data = routine.to_dict()
        for idx, existing in enumerate(routines):
            if str(existing.get("id")) == routine.id:
                routines[idx] = data
                break
        else:
            routines.append(data)
        self.store.set(self.key, routines)
