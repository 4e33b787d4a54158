# services/calendar.py
"""行事曆匯出：.ics 檔、Google / Outlook 新增活動連結。"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import urlencode

from services.countdown import parse_instant, utcnow

PRODID = "-//N8N Masterclass//Event//EN"
UID_DOMAIN = "n8nmasterclass.com"
ICS_FILENAME = "n8n-masterclass.ics"

GOOGLE_CALENDAR_URL = "https://calendar.google.com/calendar/render"
OUTLOOK_CALENDAR_URL = "https://outlook.live.com/calendar/0/deeplink/compose"


@dataclass(frozen=True)
class CalendarEvent:
    title: str
    description: str
    start: datetime
    end: datetime
    location: Optional[str] = None

    @classmethod
    def from_config(cls, title: str, description: str, start: str, end: str, location: str | None = None):
        return cls(title, description, parse_instant(start), parse_instant(end), location)


def format_utc(dt: datetime) -> str:
    """例：2025-07-24 19:00:00+00:00 -> 20250724T190000Z"""
    return dt.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def _iso_utc(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.000Z")


def generate_ics(event: CalendarEvent, now: datetime | None = None) -> str:
    stamp = now or utcnow()
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{PRODID}",
        "BEGIN:VEVENT",
        f"UID:{int(stamp.timestamp() * 1000)}@{UID_DOMAIN}",
        f"DTSTAMP:{format_utc(stamp)}",
        f"DTSTART:{format_utc(event.start)}",
        f"DTEND:{format_utc(event.end)}",
        f"SUMMARY:{event.title}",
        "DESCRIPTION:" + event.description.replace("\n", "\\n"),
        f"LOCATION:{event.location}" if event.location else "",
        "STATUS:CONFIRMED",
        "BEGIN:VALARM",
        "TRIGGER:-PT1H",
        "ACTION:DISPLAY",
        f"DESCRIPTION:Reminder: {event.title} starts in 1 hour",
        "END:VALARM",
        "END:VEVENT",
        "END:VCALENDAR",
    ]
    return "\r\n".join(line for line in lines if line)


def google_calendar_link(event: CalendarEvent) -> str:
    params = {
        "action": "TEMPLATE",
        "text": event.title,
        "dates": f"{format_utc(event.start)}/{format_utc(event.end)}",
        "details": event.description,
        "location": event.location or "",
    }
    return f"{GOOGLE_CALENDAR_URL}?{urlencode(params)}"


def outlook_calendar_link(event: CalendarEvent) -> str:
    params = {
        "subject": event.title,
        "startdt": _iso_utc(event.start),
        "enddt": _iso_utc(event.end),
        "body": event.description,
        "location": event.location or "",
    }
    return f"{OUTLOOK_CALENDAR_URL}?{urlencode(params)}"
