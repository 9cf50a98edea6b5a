from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from zoneinfo import ZoneInfo

from playhouse_biz_api.config import settings

Clock = Callable[[], datetime]


def _business_now() -> datetime:
    return datetime.now(ZoneInfo(settings.business_timezone))


def get_clock() -> Clock:
    return _business_now
