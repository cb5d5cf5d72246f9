"""
DSM timestamp codec.

The certificate listing reports validity bounds in an OpenSSL-style text
layout rather than ISO-8601:

    "Jan  2 15:04:05 2024 GMT"   (day space-padded to two characters)

Any alphabetic zone abbreviation is accepted. The DSM reports GMT; other
abbreviations are ambiguous (CST is three different offsets), so they are
decoded at a zero offset rather than rejected, which keeps one odd entry
from failing a whole listing.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime

from railway import ErrorCode, Result

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

_LAYOUT = re.compile(
    r"^(?P<month>[A-Z][a-z]{2}) {1,2}(?P<day>\d{1,2}) "
    r"(?P<hour>\d{2}):(?P<minute>\d{2}):(?P<second>\d{2}) "
    r"(?P<year>\d{4}) (?P<zone>[A-Z]{1,5})$"
)


def parse_dsm_timestamp(text: str) -> Result[datetime]:
    """
    Decode a DSM timestamp into an aware UTC datetime.

    Returns Failure(PROTOCOL_ERROR) when the text does not follow the layout,
    names an unknown month, or describes an impossible date. The zone
    abbreviation only has to be alphabetic; it is read as UTC.
    """
    if not isinstance(text, str):
        return Result.failure(
            ErrorCode.PROTOCOL_ERROR, f"timestamp must be a string, got {type(text).__name__}"
        )
    match = _LAYOUT.match(text)
    if match is None:
        return Result.failure(ErrorCode.PROTOCOL_ERROR, f"malformed timestamp {text!r}")
    if match["month"] not in _MONTHS:
        return Result.failure(ErrorCode.PROTOCOL_ERROR, f"unknown month in timestamp {text!r}")

    return Result.from_computation(
        lambda: datetime(
            int(match["year"]),
            _MONTHS.index(match["month"]) + 1,
            int(match["day"]),
            int(match["hour"]),
            int(match["minute"]),
            int(match["second"]),
            tzinfo=UTC,
        ),
        ErrorCode.PROTOCOL_ERROR,
        f"invalid date in timestamp {text!r}",
    )


def format_dsm_timestamp(moment: datetime) -> str:
    """Render an aware datetime in the DSM layout (always as UTC)."""
    moment = moment.astimezone(UTC)
    return (
        f"{_MONTHS[moment.month - 1]} {moment.day:>2} "
        f"{moment:%H:%M:%S} {moment.year:04d} UTC"
    )
