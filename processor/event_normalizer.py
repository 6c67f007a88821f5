"""Normalizer mapping decoded VEVENTs to the served Event shape."""
import dataclasses
import logging
from datetime import datetime, tzinfo
from typing import Optional

from processor.date_window import is_temporal, to_instant
from processor.models import DecodedEvent, Event, Temporal, ValidationResult

logger = logging.getLogger(__name__)


class EventNormalizer:
    """Validates decoded events and formats them in local time.

    Dates and times are rendered in ``local_tz``, which defaults to the
    timezone of the serving process, never in UTC or the feed's declared zone.
    """

    UNTITLED_SUMMARY = 'Untitled Event'
    LEGACY_DEFAULT_LOCATION = 'TBA'
    VALID_STATUSES = frozenset({'TENTATIVE', 'CONFIRMED', 'CANCELLED'})

    def __init__(self, local_tz: Optional[tzinfo] = None):
        """
        Initialize the normalizer.

        Args:
            local_tz: Timezone used for formatting (default: process local time)
        """
        self.local_tz = local_tz

    def normalize(
        self,
        decoded: DecodedEvent,
        now: datetime,
        default_location: str = LEGACY_DEFAULT_LOCATION
    ) -> Optional[Event]:
        """
        Normalize a single decoded event.

        Args:
            decoded: Raw decoded VEVENT
            now: Processing time, used as start for events without one
            default_location: Location used when the event has none

        Returns:
            Event, or None if the event failed validation
        """
        candidate = self.apply_defaults(decoded, now)
        result = self.validate(candidate)
        if not result.valid:
            logger.warning(
                f"Skipping invalid event {decoded.key}: {'; '.join(result.errors)}",
                extra={'event_key': decoded.key}
            )
            return None

        start = self.to_local(candidate.start)
        end = self.to_local(candidate.end) if candidate.end is not None else None

        return Event(
            uid=candidate.uid,
            title=candidate.summary,
            date=start.strftime('%Y-%m-%d'),
            location=candidate.location or default_location,
            description=candidate.description,
            start=start.strftime('%H:%M'),
            end=end.strftime('%H:%M') if end else None,
        )

    @classmethod
    def apply_defaults(cls, decoded: DecodedEvent, now: datetime) -> DecodedEvent:
        """Fill uid, summary and start the way lenient feeds expect."""
        return dataclasses.replace(
            decoded,
            uid=decoded.uid or decoded.key,
            summary=decoded.summary or cls.UNTITLED_SUMMARY,
            start=decoded.start if decoded.start is not None else now,
        )

    @classmethod
    def validate(cls, event: DecodedEvent) -> ValidationResult:
        """
        Check a decoded event against the canonical event shape.

        Args:
            event: Decoded event with defaults applied

        Returns:
            ValidationResult listing every problem found
        """
        errors = []

        if not isinstance(event.uid, str) or not event.uid.strip():
            errors.append('uid must be a non-empty string')

        if not isinstance(event.summary, str):
            errors.append('summary must be a string')

        if not is_temporal(event.start):
            errors.append(f"start is not a valid date: {event.start!r}")

        if event.end is not None and not is_temporal(event.end):
            errors.append(f"end is not a valid date: {event.end!r}")

        if event.status is not None and str(event.status).upper() not in cls.VALID_STATUSES:
            errors.append(f"unknown status: {event.status!r}")

        return ValidationResult(valid=not errors, errors=errors)

    def to_local(self, value: Temporal) -> datetime:
        """Convert a calendar value to a datetime in the formatting timezone."""
        return to_instant(value, self.local_tz).astimezone(self.local_tz)
