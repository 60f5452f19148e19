from __future__ import annotations

from datetime import datetime
from typing import Collection
from zoneinfo import ZoneInfo


DEFAULT_TZ = "Europe/Moscow"


def now_local(tz_name: str = DEFAULT_TZ) -> datetime:
    return datetime.now(tz=ZoneInfo(tz_name))


def time_based_id(now: datetime, taken: Collection[int] = ()) -> int:
    candidate = int(now.timestamp() * 1000)
    while candidate in taken:
        candidate += 1
    return candidate
