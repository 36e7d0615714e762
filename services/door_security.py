"""Door security status derived from door events, schedule and wall clock."""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass, replace
from datetime import date, datetime, time, tzinfo
from enum import Enum
from typing import Callable, Deque, Optional, Tuple

from models.records import DoorEvent, DoorEventKind, DoorState, DoorStatus, SecuritySettings
from services.scheduling import Cancellable, Scheduler, Subscription
from services.time_window import to_local

logger = logging.getLogger(__name__)

DURATION_TICK_SECONDS = 1.0
FLASH_TICK_SECONDS = 0.5
RECENT_EVENT_LIMIT = 10


class SecurityState(str, Enum):
    SECURE = "SECURE"
    WARNING = "WARNING"
    OVERSTAY_CRITICAL = "OVERSTAY_CRITICAL"
    INTRUSION_CRITICAL = "INTRUSION_CRITICAL"


_RED_STATES = frozenset({SecurityState.OVERSTAY_CRITICAL, SecurityState.INTRUSION_CRITICAL})


@dataclass(frozen=True)
class SecurityStatus:
    state: SecurityState
    elapsed_seconds: int
    opened_at: Optional[datetime] = None
    entries_today: int = 0
    recent_events: Tuple[DoorEvent, ...] = ()

    @property
    def is_red_alert(self) -> bool:
        return self.state in _RED_STATES

    @property
    def is_amber_warning(self) -> bool:
        return self.state is SecurityState.WARNING


def in_restricted_window(moment: time, start: time, end: time) -> bool:
    """Whether a local time-of-day falls in ``[start, end)``, wrapping midnight."""
    if start == end:
        return False
    if start < end:
        return start <= moment < end
    return moment >= start or moment < end


def evaluate_security(
    door: DoorState, settings: SecuritySettings, now: datetime, tz: tzinfo
) -> SecurityStatus:
    """Pure classification of one door state at one instant."""
    if door.status is DoorStatus.CLOSED or door.opened_at is None:
        return SecurityStatus(SecurityState.SECURE, 0)

    local_now = to_local(now, tz)
    elapsed = max(0.0, (local_now - to_local(door.opened_at, tz)).total_seconds())
    if in_restricted_window(local_now.time(), settings.night_mode_start, settings.night_mode_end):
        state = SecurityState.INTRUSION_CRITICAL
    elif elapsed >= settings.max_open_duration_seconds:
        state = SecurityState.OVERSTAY_CRITICAL
    else:
        state = SecurityState.WARNING
    return SecurityStatus(state, int(elapsed), door.opened_at)


class DoorSecurityStateMachine:
    """Holds the door state; every evaluation recomputes from ``opened_at``.

    Also keeps the daily entry count (CLOSED to OPEN transitions since local
    midnight) and the most recent door events, newest first.
    """

    def __init__(
        self,
        settings: SecuritySettings,
        tz: tzinfo,
        door: Optional[DoorState] = None,
    ) -> None:
        self.settings = settings
        self.tz = tz
        self.door = door or DoorState()
        self.recent_events: Deque[DoorEvent] = deque(maxlen=RECENT_EVENT_LIMIT)
        self._entry_day: Optional[date] = None
        self._entries = 0

    def apply(self, event: DoorEvent) -> DoorState:
        self.recent_events.appendleft(event)
        if event.kind is DoorEventKind.close:
            self.door = DoorState(status=DoorStatus.CLOSED)
        elif self.door.status is not DoorStatus.OPEN:
            self.door = DoorState(status=DoorStatus.OPEN, opened_at=event.timestamp)
            self._count_entry(to_local(event.timestamp, self.tz).date())
        return self.door

    def entries_today(self, now: datetime) -> int:
        if to_local(now, self.tz).date() != self._entry_day:
            return 0
        return self._entries

    def evaluate(self, now: datetime) -> SecurityStatus:
        status = evaluate_security(self.door, self.settings, now, self.tz)
        return replace(
            status,
            entries_today=self.entries_today(now),
            recent_events=tuple(self.recent_events),
        )

    def _count_entry(self, day: date) -> None:
        if day != self._entry_day:
            self._entry_day = day
            self._entries = 0
        self._entries += 1

    def update_settings(self, settings: SecuritySettings) -> None:
        self.settings = settings


class DoorSecurityMonitor:
    """Drives the state machine from a door-event feed and two clocks.

    The duration clock runs only while the door is open; the flash clock
    runs only while a red alert is showing.
    """

    def __init__(
        self,
        machine: DoorSecurityStateMachine,
        scheduler: Scheduler,
        events: Subscription[DoorEvent],
        clock: Callable[[], datetime],
        on_status: Optional[Callable[[SecurityStatus], None]] = None,
    ) -> None:
        self.machine = machine
        self.scheduler = scheduler
        self.events = events
        self.clock = clock
        self.on_status = on_status
        self.flash_on = False
        self._status = machine.evaluate(clock())
        self._subscription: Optional[Cancellable] = None
        self._duration_clock: Optional[Cancellable] = None
        self._flash_clock: Optional[Cancellable] = None
        self._lock = threading.RLock()

    @property
    def status(self) -> SecurityStatus:
        with self._lock:
            return self._status

    def start(self) -> None:
        with self._lock:
            if self._subscription is None:
                self._subscription = self.events.on_event(self.handle_event)
            self._sync_clocks()
            self._recompute()

    def stop(self) -> None:
        with self._lock:
            if self._subscription is not None:
                self._subscription.cancel()
                self._subscription = None
            self._cancel_duration_clock()
            self._cancel_flash_clock()

    def handle_event(self, event: DoorEvent) -> None:
        with self._lock:
            self.machine.apply(event)
            self._sync_clocks()
            self._recompute()

    def update_settings(self, settings: SecuritySettings) -> None:
        with self._lock:
            self.machine.update_settings(settings)
            self._recompute()

    def refresh(self) -> SecurityStatus:
        with self._lock:
            return self._recompute()

    def _tick(self) -> None:
        with self._lock:
            self._recompute()

    def _flash(self) -> None:
        with self._lock:
            self.flash_on = not self.flash_on

    def _sync_clocks(self) -> None:
        if self.machine.door.status is DoorStatus.OPEN:
            if self._duration_clock is None:
                self._duration_clock = self.scheduler.schedule_tick(DURATION_TICK_SECONDS, self._tick)
        else:
            self._cancel_duration_clock()

    def _recompute(self) -> SecurityStatus:
        previous = self._status
        status = self.machine.evaluate(self.clock())
        self._status = status

        if status.is_red_alert and self._flash_clock is None:
            self.flash_on = True
            self._flash_clock = self.scheduler.schedule_tick(FLASH_TICK_SECONDS, self._flash)
        elif not status.is_red_alert:
            self._cancel_flash_clock()

        if status.state is not previous.state:
            logger.info(
                "Door security state changed",
                extra={"state": status.state.value, "elapsed_seconds": status.elapsed_seconds},
            )
        if self.on_status is not None:
            self.on_status(status)
        return status

    def _cancel_duration_clock(self) -> None:
        if self._duration_clock is not None:
            self._duration_clock.cancel()
            self._duration_clock = None

    def _cancel_flash_clock(self) -> None:
        if self._flash_clock is not None:
            self._flash_clock.cancel()
            self._flash_clock = None
        self.flash_on = False
