from __future__ import annotations

import datetime
import re

_MONTH_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def utc_now() -> int:
    """Current UNIX time in whole seconds (UTC)."""
    return int(datetime.datetime.now(datetime.UTC).timestamp())


def month_bucket(ts: int) -> str:
    """``YYYY-MM`` bucket for a UNIX timestamp, in UTC."""
    return datetime.datetime.fromtimestamp(ts, datetime.UTC).strftime("%Y-%m")


def is_month(value: str) -> bool:
    return bool(_MONTH_RE.match(value))
