"""
Timestamp encoding.

Signing times enter the binding payload as text, so the encoding is fixed:
UTC, millisecond precision, ``YYYY-MM-DDTHH:MM:SS.mmmZ``. The encoding is
string-sortable and reproduces byte-for-byte on recomputation.

Localized rendering is presentation only and never feeds a digest.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Union
from zoneinfo import ZoneInfo


TIMESTAMP_PATTERN = r"^[0-9]{4}-[0-9]{2}-[0-9]{2}T[0-9]{2}:[0-9]{2}:[0-9]{2}\.[0-9]{3}Z$"
DISPLAY_FORMAT = "%d/%m/%Y %H:%M:%S"

_TIMESTAMP_RE = re.compile(TIMESTAMP_PATTERN)


def format_utc_timestamp(moment: datetime) -> str:
    # Naive datetimes are taken as UTC.
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    millis = moment.microsecond // 1000
    return f"{moment:%Y-%m-%dT%H:%M:%S}.{millis:03d}Z"


def utc_now_timestamp() -> str:
    return format_utc_timestamp(datetime.now(timezone.utc))


def is_utc_timestamp(value: str) -> bool:
    return bool(_TIMESTAMP_RE.fullmatch(value))


def parse_utc_timestamp(value: str) -> datetime:
    if not is_utc_timestamp(value):
        raise ValueError(f"Not a fixed-encoding UTC timestamp: {value!r}")
    return datetime.strptime(value, "%Y-%m-%dT%H:%M:%S.%fZ").replace(
        tzinfo=timezone.utc
    )


def format_display_timestamp(
    value: Union[str, datetime],
    timezone_name: str = "UTC",
) -> str:
    """Render ``dd/mm/YYYY HH:MM:SS`` in the given IANA zone."""
    moment = parse_utc_timestamp(value) if isinstance(value, str) else value
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(ZoneInfo(timezone_name)).strftime(DISPLAY_FORMAT)
