"""Data models for feed ingestion."""
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

Temporal = Union[date, datetime]


@dataclass(frozen=True)
class FeedSource:
    """One configured calendar endpoint."""
    name: str
    url: str


@dataclass(frozen=True)
class DecodedEvent:
    """Raw VEVENT data as read from the calendar, before validation.

    ``start`` and ``end`` hold whatever the decoder produced; a value that is
    not a date/datetime marks a property the calendar library could not read.
    """
    key: str
    uid: Optional[str] = None
    summary: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    start: Any = None
    end: Any = None
    url: Optional[str] = None
    status: Optional[str] = None


@dataclass(frozen=True)
class DecodedCalendar:
    """Decoded calendar: its VEVENTs in document order plus metadata."""
    events: List[DecodedEvent]
    calendar_name: Optional[str] = None
    timezone: Optional[str] = None


@dataclass(frozen=True)
class Event:
    """Normalized event served to the presentation layer."""
    uid: str
    title: str
    date: str
    location: str
    description: Optional[str] = None
    start: Optional[str] = None
    end: Optional[str] = None

    def to_dict(self) -> Dict[str, str]:
        """Serialize for JSON, leaving out unset optional fields."""
        data = {
            'uid': self.uid,
            'title': self.title,
            'date': self.date,
            'location': self.location,
        }
        for name in ('description', 'start', 'end'):
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        return data


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating a decoded event."""
    valid: bool
    errors: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class FeedOutcome:
    """Result of processing one feed."""
    name: str
    success: bool
    events: List[Event] = field(default_factory=list)
    error: Optional[str] = None
    error_type: Optional[str] = None


@dataclass(frozen=True)
class AggregateResult:
    """Merged, sorted events from every feed plus per-feed outcomes."""
    events: List[Event]
    feed_results: List[FeedOutcome]

    @property
    def total_feeds(self) -> int:
        return len(self.feed_results)

    @property
    def successful_feeds(self) -> int:
        return sum(1 for outcome in self.feed_results if outcome.success)

    @property
    def failed_feeds(self) -> int:
        return self.total_feeds - self.successful_feeds

    @property
    def total_events(self) -> int:
        return len(self.events)

    @property
    def failures(self) -> List[str]:
        """Failed feeds formatted as ``"<name>: <error>"``."""
        return [
            f"{outcome.name}: {outcome.error}"
            for outcome in self.feed_results
            if not outcome.success
        ]

    def metadata(self) -> Dict[str, int]:
        return {
            'totalFeeds': self.total_feeds,
            'successfulFeeds': self.successful_feeds,
            'failedFeeds': self.failed_feeds,
            'totalEvents': self.total_events,
        }
