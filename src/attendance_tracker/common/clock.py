from __future__ import annotations

from datetime import datetime
from typing import Protocol

import pytz

from ..core.constants import DATE_KEY_FORMAT, OPERATING_TIMEZONE, TIMESTAMP_FORMAT


class Clock(Protocol):
    def now(self) -> str:
        raise NotImplementedError

    def today(self) -> str:
        raise NotImplementedError


class ZonedClock:
    """Wall clock pinned to the operating timezone.

    Note: `now_func` is injectable so tests can pin the instant.
    """

    def __init__(self, tz_name: str = OPERATING_TIMEZONE, *, now_func=None):
        self._tz = pytz.timezone(tz_name)
        self._now_func = now_func

    def current(self) -> datetime:
        if self._now_func is not None:
            instant = self._now_func()
            if instant.tzinfo is None:
                return self._tz.localize(instant)
            return instant.astimezone(self._tz)
        return datetime.now(pytz.utc).astimezone(self._tz)

    def now(self) -> str:
        return self.current().strftime(TIMESTAMP_FORMAT)

    def today(self) -> str:
        return self.current().strftime(DATE_KEY_FORMAT)
