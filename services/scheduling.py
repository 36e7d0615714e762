"""Tick and event capabilities consumed by the live state machines."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Generic, List, Protocol, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def schedule_tick(self, interval: float, callback: Callable[[], None]) -> Cancellable: ...


class Subscription(Protocol[T]):
    def on_event(self, callback: Callable[[T], None]) -> Cancellable: ...


@dataclass
class _ManualTick:
    interval: float
    callback: Callable[[], None]
    next_due: float
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class ManualScheduler:
    """Deterministic scheduler advanced explicitly by the caller."""

    elapsed: float = 0.0
    _ticks: List[_ManualTick] = field(default_factory=list)

    def schedule_tick(self, interval: float, callback: Callable[[], None]) -> Cancellable:
        tick = _ManualTick(interval=interval, callback=callback, next_due=self.elapsed + interval)
        self._ticks.append(tick)
        return tick

    @property
    def active_ticks(self) -> int:
        return sum(1 for tick in self._ticks if not tick.cancelled)

    def advance(self, seconds: float) -> None:
        target = self.elapsed + seconds
        while True:
            pending = [t for t in self._ticks if not t.cancelled and t.next_due <= target]
            if not pending:
                break
            tick = min(pending, key=lambda t: t.next_due)
            self.elapsed = tick.next_due
            tick.next_due += tick.interval
            tick.callback()
        self._ticks = [t for t in self._ticks if not t.cancelled]
        self.elapsed = target


class _ThreadTick:
    def __init__(self, interval: float, callback: Callable[[], None]) -> None:
        self._interval = interval
        self._callback = callback
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def _run(self) -> None:
        while not self._stopped.wait(self._interval):
            try:
                self._callback()
            except Exception:  # noqa: BLE001 - keep the clock alive
                logger.exception("Scheduled tick failed")

    def cancel(self) -> None:
        self._stopped.set()


class ThreadingScheduler:
    """Runs each tick on its own daemon thread until cancelled."""

    def schedule_tick(self, interval: float, callback: Callable[[], None]) -> Cancellable:
        return _ThreadTick(interval, callback)


class _Registration(Generic[T]):
    def __init__(self, feed: "EventFeed[T]", callback: Callable[[T], None]) -> None:
        self._feed = feed
        self.callback = callback

    def cancel(self) -> None:
        self._feed._remove(self)


class EventFeed(Generic[T]):
    """In-process push channel; ``publish`` fans out to every subscriber."""

    def __init__(self) -> None:
        self._registrations: List[_Registration[T]] = []
        self._lock = threading.Lock()

    def on_event(self, callback: Callable[[T], None]) -> Cancellable:
        registration = _Registration(self, callback)
        with self._lock:
            self._registrations.append(registration)
        return registration

    def publish(self, event: T) -> None:
        with self._lock:
            registrations = list(self._registrations)
        for registration in registrations:
            registration.callback(event)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._registrations)

    def _remove(self, registration: _Registration[T]) -> None:
        with self._lock:
            if registration in self._registrations:
                self._registrations.remove(registration)
