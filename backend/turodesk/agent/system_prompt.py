"""
System prompt of the assistant.

Includes the current date and time so the model knows what day it is.
"""

import os
from datetime import datetime, timezone
from typing import Optional


def _host_time_zone() -> Optional[str]:
    tz = os.environ.get("TZ")
    if tz:
        return tz.lstrip(":")
    return datetime.now().astimezone().tzname()


def get_system_prompt(
    time_zone: Optional[str] = None,
    country: Optional[str] = None,
    locale: Optional[str] = None,
    now: Optional[datetime] = None,
) -> str:
    now = now or datetime.now(timezone.utc)
    tz = time_zone or _host_time_zone()
    iso_utc = now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    city_hint = tz.split("/")[-1].replace("_", " ") if tz and "/" in tz else None

    parts = ["You are an AI personal assistant.", f"Current UTC time: {iso_utc}."]
    if tz:
        parts.append(f"User local timezone: {tz}.")
    if city_hint or country:
        location = ", ".join(p for p in (city_hint, country) if p)
        parts.append(f"User appears to be located around: {location}.")
    if locale:
        parts.append(f"User locale: {locale}.")
    return " ".join(parts)
