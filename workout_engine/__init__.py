"""Shared constants for the workout session engine."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

# Rest used when a routine entry does not specify one, and the nominal rest
# recorded for a set that no rest episode preceded
DEFAULT_REST_SECONDS = 90

# Input defaults used when neither history nor the routine suggest a value
DEFAULT_WEIGHT = 20.0
DEFAULT_REPS = 10

# Increments offered by the weight/reps steppers
WEIGHT_STEP = 2.5
REPS_STEP = 1

# A stored session idle for longer than this is discarded on the next read
STALE_AFTER = timedelta(hours=24)

# Well-known key of the single active-session slot
SESSION_STORAGE_KEY = "active_workout_session"

# Completion quality thresholds
MIN_SESSION_MINUTES = 2
MIN_TOTAL_SETS = 3
MIN_TOTAL_VOLUME = 100

# Path to the SQLite database used for the key-value store
DEFAULT_DB_PATH = Path(__file__).resolve().parent.parent / "data" / "workout.db"

__all__ = [
    "DEFAULT_REST_SECONDS",
    "DEFAULT_WEIGHT",
    "DEFAULT_REPS",
    "WEIGHT_STEP",
    "REPS_STEP",
    "STALE_AFTER",
    "SESSION_STORAGE_KEY",
    "MIN_SESSION_MINUTES",
    "MIN_TOTAL_SETS",
    "MIN_TOTAL_VOLUME",
    "DEFAULT_DB_PATH",
]
