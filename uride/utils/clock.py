"""
Single source of the current instant.

Shift durations and night surcharges depend on "now". Services ask
`get_clock()` instead of calling datetime.now() inline, so tests can pin
time through `app.config["CLOCK"]`.
"""

from datetime import datetime, timedelta
from flask import current_app, has_app_context

from uride.utils.timezone_utils import ensure_utc, utc_now


class SystemClock:
    def now(self) -> datetime:
        return utc_now()


class FixedClock:
    """A clock that only moves when told to."""

    def __init__(self, instant: datetime):
        self._instant = ensure_utc(instant)

    def now(self) -> datetime:
        return self._instant

    def set(self, instant: datetime) -> None:
        self._instant = ensure_utc(instant)

    def advance(self, **kwargs) -> datetime:
        self._instant = self._instant + timedelta(**kwargs)
        return self._instant


_system_clock = SystemClock()


def get_clock():
    if has_app_context():
        clock = current_app.config.get("CLOCK")
        if clock is not None:
            return clock
    return _system_clock
