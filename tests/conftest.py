"""Shared fixtures for building iCalendar payloads."""
from datetime import datetime, timezone

import pytest


def _ical_stamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime('%Y%m%dT%H%M%SZ')


def _build_ics(events, calendar_props=None) -> str:
    lines = ['BEGIN:VCALENDAR', 'VERSION:2.0', 'PRODID:-//Test//Test//EN']
    for name, value in (calendar_props or {}).items():
        lines.append(f"{name}:{value}")
    for props in events:
        lines.append('BEGIN:VEVENT')
        for name, value in props.items():
            if isinstance(value, datetime):
                value = _ical_stamp(value)
            lines.append(f"{name}:{value}")
        lines.append('END:VEVENT')
    lines.append('END:VCALENDAR')
    return '\r\n'.join(lines) + '\r\n'


@pytest.fixture
def build_ics():
    """Build VCALENDAR text from a list of VEVENT property dicts."""
    return _build_ics
