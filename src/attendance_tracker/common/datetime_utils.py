from __future__ import annotations

from datetime import datetime

from ..core.constants import ACCEPTED_TIMESTAMP_FORMATS
from ..core.exceptions import ValidationError


def parse_timestamp(value: str) -> datetime:
    """Parse a stored timestamp string into a naive local datetime.

    Stored values are already in the operating timezone, so no conversion
    happens here.
    """
    if not value or not value.strip():
        raise ValidationError("Timestamp is empty")

    text = value.strip()
    for fmt in ACCEPTED_TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    raise ValidationError(f"Unrecognized timestamp: {value!r}")
