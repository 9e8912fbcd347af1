"""Internal helpers for wire-format conversions.

These cover the small encodings every REST/JSON service shares: resource
names, base64 payloads, RFC 3339 timestamps and protobuf-style durations.
"""

from __future__ import annotations

import base64
import binascii
import datetime as dt
import re
from typing import Any, Mapping
from urllib.parse import quote

from pdum.cloud.types.exceptions import DecodeError

_TIMESTAMP = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})(?:\.(?P<frac>\d+))?(?P<tz>Z|[+-]\d{2}:\d{2})$"
)


def short_name(name: str) -> str:
    """Return the last segment of a resource name (``projects/p/topics/t`` -> ``t``)."""
    return name.rsplit("/", 1)[-1]


def quote_segment(segment: str) -> str:
    """Percent-encode a single URL path segment, slashes included."""
    return quote(segment, safe="")


def b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def b64decode(data: str) -> bytes:
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"invalid base64 payload: {e}") from e


def to_bytes(data: bytes | bytearray | str) -> bytes:
    """Accept text or binary payloads; text is UTF-8 encoded."""
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


def parse_timestamp(value: str) -> dt.datetime:
    """Parse an RFC 3339 timestamp (nanosecond precision allowed) into an aware UTC datetime.

    Fractional digits beyond microseconds are truncated.
    """
    match = _TIMESTAMP.match(value) if isinstance(value, str) else None
    if match is None:
        raise DecodeError(f"invalid timestamp: {value!r}")

    base = dt.datetime.strptime(match["base"], "%Y-%m-%dT%H:%M:%S")
    micros = int((match["frac"] or "0")[:6].ljust(6, "0"))
    tz_text = match["tz"]
    if tz_text == "Z":
        tz = dt.timezone.utc
    else:
        sign = 1 if tz_text[0] == "+" else -1
        hours, minutes = int(tz_text[1:3]), int(tz_text[4:6])
        tz = dt.timezone(sign * dt.timedelta(hours=hours, minutes=minutes))
    return base.replace(microsecond=micros, tzinfo=tz).astimezone(dt.timezone.utc)


def format_timestamp(value: dt.datetime) -> str:
    """Format a datetime as RFC 3339 in UTC.

    Naive datetimes are taken to be UTC. :func:`parse_timestamp` always returns
    aware datetimes, so a naive value does not compare equal after a round trip.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def format_duration(value: dt.timedelta) -> str:
    """Format a timedelta as a protobuf JSON duration (``"600s"``, ``"1.5s"``)."""
    seconds = value.total_seconds()
    if seconds == int(seconds):
        return f"{int(seconds)}s"
    return f"{seconds:.9f}".rstrip("0") + "s"


def require(data: Mapping[str, Any], field: str, *, what: str) -> Any:
    """Return ``data[field]`` or raise DecodeError naming the missing field."""
    if not isinstance(data, Mapping):
        raise DecodeError(f"expected a JSON object for {what}, got {type(data).__name__}")
    try:
        return data[field]
    except KeyError:
        raise DecodeError(f"{what} is missing required field `{field}`") from None
