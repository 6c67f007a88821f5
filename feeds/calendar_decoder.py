"""Decoding of iCalendar text into calendar components."""
import logging
from typing import Any, Dict, List, Optional, Tuple

from icalendar import Calendar

from processor.errors import ParseError
from processor.models import DecodedCalendar, DecodedEvent

logger = logging.getLogger(__name__)


class CalendarDecoder:
    """Adapter over ``icalendar`` that picks out VEVENTs and calendar metadata."""

    def decode(self, ics_text: str) -> DecodedCalendar:
        """
        Decode raw iCalendar text.

        Args:
            ics_text: Raw feed body

        Returns:
            DecodedCalendar with VEVENTs in document order

        Raises:
            ParseError: If the text is not a valid VCALENDAR
        """
        try:
            cal = Calendar.from_ical(ics_text)
        except Exception as e:
            raise ParseError(f"Invalid iCal data: {e}", details=type(e).__name__) from e

        if cal.name != 'VCALENDAR':
            raise ParseError(f"Invalid iCal data: expected VCALENDAR, found {cal.name}")

        components = cal.walk('VEVENT')
        events = self._collapse_by_key([
            (self._decode_event(component, position), 'RECURRENCE-ID' in component)
            for position, component in enumerate(components, start=1)
        ])

        decoded = DecodedCalendar(
            events=events,
            calendar_name=self._calendar_name(cal),
            timezone=self._timezone(cal),
        )
        logger.debug(
            f"Decoded {len(events)} VEVENT components "
            f"(calendar={decoded.calendar_name}, timezone={decoded.timezone})"
        )
        return decoded

    def _decode_event(self, component, position: int) -> DecodedEvent:
        uid = _text(component, 'UID')
        return DecodedEvent(
            key=uid or f"vevent-{position}",
            uid=uid,
            summary=_text(component, 'SUMMARY'),
            description=_text(component, 'DESCRIPTION'),
            location=_text(component, 'LOCATION'),
            start=_temporal(component, 'DTSTART'),
            end=_temporal(component, 'DTEND'),
            url=_text(component, 'URL'),
            status=_text(component, 'STATUS'),
        )

    @staticmethod
    def _collapse_by_key(decoded: List[Tuple[DecodedEvent, bool]]) -> List[DecodedEvent]:
        """
        Keep one event per key, in order of first appearance.

        The master VEVENT of a series wins over its RECURRENCE-ID overrides
        wherever they appear; otherwise the first component with a key wins.
        """
        chosen: Dict[str, Tuple[DecodedEvent, bool]] = {}
        for event, is_override in decoded:
            current = chosen.get(event.key)
            if current is None:
                chosen[event.key] = (event, is_override)
            elif current[1] and not is_override:
                chosen[event.key] = (event, is_override)
            else:
                logger.debug(f"Dropping duplicate VEVENT {event.key}")
        return [event for event, _ in chosen.values()]

    @staticmethod
    def _calendar_name(cal) -> Optional[str]:
        return _text(cal, 'X-WR-CALNAME') or _text(cal, 'PRODID')

    @staticmethod
    def _timezone(cal) -> Optional[str]:
        for tz in cal.walk('VTIMEZONE'):
            tzid = _text(tz, 'TZID')
            if tzid:
                return tzid
        return _text(cal, 'X-WR-TIMEZONE')


def _text(component, name: str) -> Optional[str]:
    value = component.get(name)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _temporal(component, name: str) -> Any:
    """Return the date/datetime of a property.

    A property icalendar could not decode comes back as non-temporal text:
    the broken value itself when the library keeps it, otherwise the
    library's error message for that property.
    """
    prop = component.get(name)
    if prop is not None:
        return getattr(prop, 'dt', prop)
    for error_name, message in getattr(component, 'errors', []):
        if error_name.upper() == name:
            return str(message)
    return None
