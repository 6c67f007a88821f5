"""Per-feed pipeline: fetch, decode, filter, normalize, cap."""
import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from config.settings import ProcessingConfig
from feeds.calendar_decoder import CalendarDecoder
from feeds.ical_fetcher import ICalFetcher
from processor.date_window import in_window, is_temporal, to_instant
from processor.errors import FeedError, FeedErrorType
from processor.event_normalizer import EventNormalizer
from processor.models import DecodedCalendar, Event, FeedOutcome, FeedSource

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class FeedProcessor:
    """Turns one feed source into a FeedOutcome.

    Whole-feed failures (bad URL, HTTP error, undecodable body) come back as a
    failed outcome instead of being raised; a single bad event is only dropped.
    """

    UNEXPECTED_ERROR_MESSAGE = 'Unexpected error while processing feed'

    def __init__(
        self,
        config: ProcessingConfig,
        fetcher: Optional[ICalFetcher] = None,
        decoder: Optional[CalendarDecoder] = None,
        normalizer: Optional[EventNormalizer] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.config = config
        self.fetcher = fetcher or ICalFetcher(timeout=config.fetch_timeout)
        self.decoder = decoder or CalendarDecoder()
        self.normalizer = normalizer or EventNormalizer()
        self.clock = clock

    def process(self, source: FeedSource) -> FeedOutcome:
        """
        Run the full pipeline for one feed.

        Args:
            source: Feed to process

        Returns:
            Successful outcome with capped events, or a failed outcome
        """
        logger.info(f"Processing feed {source.name}", extra={'feed': source.name})

        try:
            ics_text = self.fetcher.fetch(source.url)
            calendar = self.decoder.decode(ics_text)
            events = self.collect_events(calendar, self.default_location_for(source))
        except FeedError as e:
            logger.error(
                f"Feed {source.name} failed: {e.message}",
                extra={'feed': source.name, 'error_type': e.error_type.value}
            )
            return FeedOutcome(
                name=source.name,
                success=False,
                error=e.message,
                error_type=e.error_type.value
            )
        except Exception as e:
            logger.error(
                f"Unexpected error processing feed {source.name}: {str(e)}",
                extra={'feed': source.name, 'error_type': type(e).__name__},
                exc_info=True
            )
            return FeedOutcome(
                name=source.name,
                success=False,
                error=self.UNEXPECTED_ERROR_MESSAGE,
                error_type=FeedErrorType.PARSE_ERROR.value
            )

        logger.info(
            f"Feed {source.name}: {len(events)} events",
            extra={'feed': source.name, 'event_count': len(events)}
        )
        return FeedOutcome(name=source.name, success=True, events=events)

    def collect_events(self, calendar: DecodedCalendar, default_location: str) -> List[Event]:
        """
        Filter and normalize decoded events, keeping document order.

        Args:
            calendar: Decoded calendar
            default_location: Location for events that have none

        Returns:
            At most ``max_events_per_feed`` normalized events
        """
        now = self.clock()
        events = []
        outside_window = 0
        rejected = 0

        for decoded in calendar.events:
            start = decoded.start if decoded.start is not None else now
            # Undecodable starts are left for validation to reject
            if is_temporal(start) and not self._in_window(start, now):
                outside_window += 1
                continue

            event = self.normalizer.normalize(decoded, now, default_location)
            if event is None:
                rejected += 1
                continue
            events.append(event)

        capped = events[:self.config.max_events_per_feed]
        logger.debug(
            f"Kept {len(capped)} of {len(calendar.events)} events "
            f"({outside_window} outside window, {rejected} rejected, "
            f"{len(events) - len(capped)} over cap)"
        )
        return capped

    def default_location_for(self, source: FeedSource) -> str:
        if self.config.default_location is not None:
            return self.config.default_location
        return source.name

    def _in_window(self, start, now: datetime) -> bool:
        return in_window(
            to_instant(start, self.normalizer.local_tz),
            now,
            self.config.min_days_in_future,
            self.config.max_days_in_future
        )
