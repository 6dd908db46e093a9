"""Constants and defaults.

Note: Keep constants here to avoid magic strings spread across code.
"""

from .enums import AttendanceStatus

OPERATING_TIMEZONE = "Asia/Manila"

# Display format of stored timestamps, e.g. "01/15/2024, 09:00:00 AM"
TIMESTAMP_FORMAT = "%m/%d/%Y, %I:%M:%S %p"
DATE_KEY_FORMAT = "%m/%d/%Y"

# Extra formats accepted when parsing timestamps back into instants.
ACCEPTED_TIMESTAMP_FORMATS = (
    TIMESTAMP_FORMAT,
    "%m/%d/%Y, %H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M",
)

HOURS_PRECISION = 2

ACTIVE_STATUSES = frozenset(
    {
        AttendanceStatus.CLOCKED_IN,
        AttendanceStatus.ON_BREAK,
        AttendanceStatus.ON_LUNCH,
    }
)

DEFAULT_DEPARTMENT = "Not Set"
DEFAULT_FEED_POLL_SECONDS = 2.0
