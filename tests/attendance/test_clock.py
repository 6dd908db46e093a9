from __future__ import annotations

from datetime import datetime

import pytz

from attendance_tracker.common.clock import ZonedClock


def test_naive_instant_is_taken_as_manila_local():
    clock = ZonedClock(now_func=lambda: datetime(2024, 1, 15, 9, 0, 0))
    assert clock.now() == "01/15/2024, 09:00:00 AM"
    assert clock.today() == "01/15/2024"


def test_utc_instant_is_converted_to_manila():
    # 17:30 UTC is 01:30 the next day in Manila (UTC+8)
    clock = ZonedClock(now_func=lambda: datetime(2024, 1, 1, 17, 30, 0, tzinfo=pytz.utc))
    assert clock.now() == "01/02/2024, 01:30:00 AM"
    assert clock.today() == "01/02/2024"


def test_default_clock_produces_display_strings():
    clock = ZonedClock()
    assert len(clock.today()) == 10
    assert clock.now()[10:12] == ", "
    assert clock.now()[-2:] in {"AM", "PM"}
