from datetime import datetime, timezone
from urllib.parse import parse_qs, urlparse

from services.calendar import CalendarEvent, format_utc, generate_ics, google_calendar_link, outlook_calendar_link

EVENT = CalendarEvent.from_config(
    title="N8N Automations Masterclass",
    description="Line one\nLine two",
    start="2025-07-24T19:00:00Z",
    end="2025-07-24T22:00:00Z",
    location="Online via Zoom",
)


def test_format_utc():
    assert format_utc(EVENT.start) == "20250724T190000Z"


def test_ics_payload():
    now = datetime(2025, 7, 1, tzinfo=timezone.utc)
    lines = generate_ics(EVENT, now=now).split("\r\n")

    assert lines[0] == "BEGIN:VCALENDAR"
    assert lines[-1] == "END:VCALENDAR"
    assert "DTSTART:20250724T190000Z" in lines
    assert "DTEND:20250724T220000Z" in lines
    assert "SUMMARY:N8N Automations Masterclass" in lines
    assert "DESCRIPTION:Line one\\nLine two" in lines
    assert "LOCATION:Online via Zoom" in lines
    assert "TRIGGER:-PT1H" in lines
    assert f"UID:{int(now.timestamp() * 1000)}@n8nmasterclass.com" in lines


def test_ics_without_location_has_no_empty_line():
    event = CalendarEvent(EVENT.title, "x", EVENT.start, EVENT.end)
    payload = generate_ics(event)

    assert "LOCATION" not in payload
    assert "\r\n\r\n" not in payload


def test_google_link():
    url = urlparse(google_calendar_link(EVENT))
    params = parse_qs(url.query)

    assert url.netloc == "calendar.google.com"
    assert params["action"] == ["TEMPLATE"]
    assert params["dates"] == ["20250724T190000Z/20250724T220000Z"]
    assert params["details"] == ["Line one\nLine two"]


def test_outlook_link():
    url = urlparse(outlook_calendar_link(EVENT))
    params = parse_qs(url.query)

    assert url.netloc == "outlook.live.com"
    assert params["subject"] == ["N8N Automations Masterclass"]
    assert params["startdt"] == ["2025-07-24T19:00:00.000Z"]
    assert params["enddt"] == ["2025-07-24T22:00:00.000Z"]
