# utils/timestamps.py
from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso_utc(moment: Optional[datetime] = None) -> str:
    """ISO-8601 UTC with millisecond precision, e.g. 2026-10-19T08:30:00.123Z"""
    moment = (moment or utc_now()).astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def key_timestamp(moment: Optional[datetime] = None) -> str:
    """
    Timestamp safe for object keys and file names:
    ':' and '.' replaced with '-', e.g. 2026-10-19T08-30-00-123Z
    """
    return iso_utc(moment).replace(":", "-").replace(".", "-")
