from __future__ import annotations

from typing import List

from services.scheduling import EventFeed, ManualScheduler


def test_manual_scheduler_fires_in_due_order() -> None:
    scheduler = ManualScheduler()
    fired: List[str] = []
    scheduler.schedule_tick(1.0, lambda: fired.append("slow"))
    scheduler.schedule_tick(0.5, lambda: fired.append("fast"))

    scheduler.advance(2.0)

    assert fired == ["fast", "slow", "fast", "fast", "slow", "fast"]
    assert scheduler.elapsed == 2.0


def test_cancelled_tick_stops_firing() -> None:
    scheduler = ManualScheduler()
    fired: List[float] = []
    handle = scheduler.schedule_tick(1.0, lambda: fired.append(scheduler.elapsed))

    scheduler.advance(2.5)
    handle.cancel()
    scheduler.advance(5.0)

    assert fired == [1.0, 2.0]
    assert scheduler.active_ticks == 0


def test_event_feed_fans_out_and_unsubscribes() -> None:
    feed: EventFeed[int] = EventFeed()
    first: List[int] = []
    second: List[int] = []
    registration = feed.on_event(first.append)
    feed.on_event(second.append)

    feed.publish(1)
    registration.cancel()
    feed.publish(2)

    assert first == [1]
    assert second == [1, 2]
    assert feed.subscriber_count == 1
