"""
Daily alarms.

`RecurringScheduler` fires callbacks at a fixed time of day and keeps firing
them every `period` until they are stopped. Every alarm runs on its own
`threading.Timer`, so a slow callback only delays itself.
"""
import datetime
import itertools
import logging
import threading
import time
from typing import Callable, Dict, Optional

from piframe.constants import SECONDS_PER_DAY

logger = logging.getLogger(__name__)

ONE_DAY = datetime.timedelta(seconds=SECONDS_PER_DAY)


def get_first_fire_delay(target: datetime.time, now: Optional[datetime.datetime] = None) -> datetime.timedelta:
    """
    Time from `now` until the next occurrence of `target` (hour and minute only).

    If the time of day has already passed today, the next day's occurrence is
    used. The result is always >= 0 and < 24 hours.

    Args:
        target (datetime.time): time of day to fire at.
        now (datetime.datetime): the current time; defaults to `datetime.now()`.

    Returns:
        datetime.timedelta: delay until the first fire.
    """
    if now is None:
        now = datetime.datetime.now()

    fire_time = now.replace(hour=target.hour, minute=target.minute, second=0, microsecond=0)
    delay = fire_time - now
    while delay < datetime.timedelta(0):
        fire_time += ONE_DAY
        delay = fire_time - now

    return delay


class _RecurringEvent:
    """One alarm: a timer that re-arms itself every `period` seconds."""

    def __init__(self, event_id: int, first_fire_delay: float, period: float, callback: Callable[[], None]):
        self.event_id = event_id
        self.period = period
        self.callback = callback

        # held while deciding to fire and while the callback runs; cancel() takes it
        # too, so once cancel() returns the callback can not run again
        self._lock = threading.RLock()
        self._cancelled = False
        self._due = time.monotonic() + first_fire_delay
        self._timer = None

    def start(self) -> None:
        with self._lock:
            self._arm()

    def cancel(self) -> None:
        with self._lock:
            self._cancelled = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _arm(self) -> None:
        if self._cancelled:
            return
        delay = max(0.0, self._due - time.monotonic())
        self._timer = threading.Timer(delay, self._fire)
        self._timer.name = f'recurring-event-{self.event_id}'
        self._timer.daemon = True
        self._timer.start()

    def _fire(self) -> None:
        with self._lock:
            if self._cancelled:
                return

            # re-arm from the due time, not from now, so the callback's runtime
            # does not push the next fire later
            self._due += self.period
            self._arm()

            try:
                self.callback()
            except Exception as e:
                logger.exception(f'Recurring event {self.event_id} raised: {e}')


class RecurringScheduler:
    """
    Schedules callbacks that repeat on a fixed period.

    Thread-safe. Event ids are never reused.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._events: Dict[int, _RecurringEvent] = {}
        self._ids = itertools.count(1)
        self._disposed = False

    @property
    def event_count(self) -> int:
        with self._lock:
            return len(self._events)

    def schedule_recurring_event(self, first_fire_delay, period, callback: Callable[[], None]) -> int:
        """
        Schedule `callback` to run after `first_fire_delay` and then every `period`.

        Args:
            first_fire_delay (timedelta | float): delay before the first call, seconds if a number.
            period (timedelta | float): time between calls, seconds if a number.
            callback (callable): called with no arguments on a timer thread.

        Returns:
            int: handle to pass to `stop_event()`.

        Raises:
            RuntimeError: if the scheduler has been disposed.
            ValueError: if the delay is negative or the period is not positive.
        """
        first_fire_delay = _seconds(first_fire_delay)
        period = _seconds(period)
        if first_fire_delay < 0:
            raise ValueError(f'first_fire_delay can not be negative, got {first_fire_delay}')
        if period <= 0:
            raise ValueError(f'period must be positive, got {period}')

        with self._lock:
            if self._disposed:
                raise RuntimeError('Can not schedule events on a disposed scheduler')
            event_id = next(self._ids)
            event = _RecurringEvent(event_id, first_fire_delay, period, callback)
            self._events[event_id] = event
            event.start()

        logger.debug(f'Scheduled event {event_id}: first fire in {first_fire_delay:.0f}s, every {period:.0f}s')
        return event_id

    def schedule_daily_event(self, time_of_day: datetime.time, callback: Callable[[], None],
                             now: Optional[datetime.datetime] = None) -> int:
        """Schedule `callback` at `time_of_day` every day."""
        delay = get_first_fire_delay(time_of_day, now)
        return self.schedule_recurring_event(delay, ONE_DAY, callback)

    def stop_event(self, event_id: int) -> None:
        """
        Cancel an event. Unknown or already stopped ids are ignored.

        When this returns the event's callback is not running and will not run again.
        """
        with self._lock:
            event = self._events.pop(event_id, None)

        if event is None:
            logger.debug(f'Event {event_id} is not scheduled, nothing to stop')
            return

        event.cancel()
        logger.debug(f'Stopped event {event_id}')

    def dispose(self) -> None:
        """Cancel every event. Safe to call more than once."""
        with self._lock:
            self._disposed = True
            events = list(self._events.values())
            self._events.clear()

        for event in events:
            event.cancel()

        if events:
            logger.debug(f'Scheduler disposed, cancelled {len(events)} event(s)')


def _seconds(value) -> float:
    if isinstance(value, datetime.timedelta):
        return value.total_seconds()
    return float(value)
