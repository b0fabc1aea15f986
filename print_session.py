import argparse
from pathlib import Path

from workout_engine import DEFAULT_DB_PATH, SESSION_STORAGE_KEY
from workout_engine.archive import WorkoutArchive
from workout_engine.completion import summary
from workout_engine.models import ActiveWorkoutSession
from workout_engine.storage import KeyValueStore
from workout_engine.utils import elapsed_seconds, format_clock


def format_timestamp(ts):
    """Format a stored datetime as a readable date/time string."""
    if ts is None:
        return "N/A"
    return ts.strftime("%Y-%m-%d %H:%M:%S")


def print_active_session(store):
    data = store.get(SESSION_STORAGE_KEY)
    if data is None:
        print("No active session")
        return
    session = ActiveWorkoutSession.from_dict(data)
    print(f"=== Active session {session.id} (profile {session.owner_profile_id}) ===")
    rest = session.rest_mode
    if not rest.is_resting:
        rest_text = "none"
    elif rest.started_at is None:
        rest_text = f"{format_clock(rest.remaining_seconds)} left"
    else:
        rest_text = f"manual, {format_clock(elapsed_seconds(rest.started_at, session.last_activity_at))} at last save"
    print(f"Phase: {session.phase}  Rest: {rest_text}")
    print(f"Last activity: {format_timestamp(session.last_activity_at)}")
    print(summary(session, session.last_activity_at))


def print_history(store, limit):
    for item in WorkoutArchive(store).get_history(limit):
        print(
            f"\n=== Workout: {item['routine_name']} ===\n"
            f"Date:     {format_timestamp(item['date'])}\n"
            f"Duration: {item['duration_minutes']} min\n"
            f"Sets:     {item['total_sets']}\n"
            f"Volume:   {item['total_volume']:g}kg"
        )


def main():
    parser = argparse.ArgumentParser(description="Inspect stored workout data")
    parser.add_argument("--db", type=Path, default=DEFAULT_DB_PATH)
    parser.add_argument("--history", type=int, default=5, help="workouts to list")
    args = parser.parse_args()

    store = KeyValueStore(args.db)
    print(f"Keys: {', '.join(store.keys()) or '(empty)'}")
    print_active_session(store)
    print_history(store, args.history)


if __name__ == "__main__":
    main()
