"""1 Hz rest ticker driven by the Kivy clock."""

from __future__ import annotations

from typing import Callable

from kivy.clock import Clock

from workout_engine.engine import WorkoutSessionEngine


class RestTicker:
    """Feed one-second ticks into ``engine`` while its session is active.

    The scheduled event is cancelled as soon as the engine reports that the
    session was finished or cancelled, and a tick arriving after that
    unschedules itself instead of touching the cleared session.
    """

    def __init__(
        self,
        engine: WorkoutSessionEngine,
        *,
        clock=Clock,
        interval: float = 1.0,
        on_update: Callable[[WorkoutSessionEngine], None] | None = None,
    ) -> None:
        self.engine = engine
        self.clock = clock
        self.interval = interval
        self.on_update = on_update
        self._event = None
        self._elapsed = 0.0
        engine.add_deactivate_listener(self.stop)

    @property
    def running(self) -> bool:
        return self._event is not None

    def start(self) -> None:
        if self._event is None and self.engine.active:
            self._elapsed = 0.0
            self._event = self.clock.schedule_interval(self._on_tick, self.interval)

    def stop(self) -> None:
        if self._event is not None:
            self._event.cancel()
            self._event = None

    def _on_tick(self, dt):
        if not self.engine.active:
            self.stop()
            return False
        # whole seconds of real time; the remainder carries to the next call
        self._elapsed += dt
        seconds = int(self._elapsed)
        if seconds:
            self._elapsed -= seconds
            self.engine.tick(seconds)
        if self.on_update is not None:
            self.on_update(self.engine)
        return True
