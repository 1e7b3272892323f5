from __future__ import annotations

import datetime as dt


def utc_now_naive() -> dt.datetime:
    """Current UTC time as a naive datetime (matches the SQLite schema)."""
    return dt.datetime.now(dt.UTC).replace(tzinfo=None)
