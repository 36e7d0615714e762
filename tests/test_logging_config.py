from __future__ import annotations

import logging
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from logging_config import ContextualFormatter


def _record(message: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord("services.alert_monitor", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_appends_known_extra_keys() -> None:
    formatter = ContextualFormatter(fmt="%(message)s", extra_keys=["channel", "state"])

    line = formatter.format(_record("Threshold alert raised", channel="temperature", state="critical", other=1))

    assert line == "Threshold alert raised | channel=temperature state=critical"


def test_formatter_leaves_plain_messages_alone() -> None:
    formatter = ContextualFormatter(fmt="%(levelname)s %(message)s")

    assert formatter.format(_record("Built chart series")) == "INFO Built chart series"


def test_formatter_stamps_records_in_reporting_timezone() -> None:
    formatter = ContextualFormatter(fmt="%(asctime)s", datefmt="%H:%M%z", tz=ZoneInfo("Asia/Singapore"))
    record = _record("tick")
    record.created = datetime(2025, 3, 10, 4, 0, tzinfo=timezone.utc).timestamp()

    assert formatter.format(record) == "12:00+0800"
