"""Concurrent aggregation of every configured feed."""
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Iterable, List, Optional

from config.settings import AppConfig, ProcessingConfig
from processor.errors import FeedErrorType
from processor.feed_processor import FeedProcessor
from processor.models import AggregateResult, Event, FeedOutcome, FeedSource

logger = logging.getLogger(__name__)


def sort_events(events: Iterable[Event]) -> List[Event]:
    """Order events by date, then start time; untimed events sort as 00:00."""
    return sorted(events, key=lambda event: (event.date, event.start or '00:00'))


class FeedAggregator:
    """Runs one FeedProcessor per source concurrently and merges the results.

    Every task is waited on; one feed failing, or its task raising, never
    stops the others from being collected.
    """

    def __init__(self, config: ProcessingConfig, processor: Optional[FeedProcessor] = None):
        self.config = config
        self.processor = processor or FeedProcessor(config)

    def aggregate(self, sources: Iterable[FeedSource]) -> AggregateResult:
        """
        Process all sources and merge their events.

        Args:
            sources: Feeds to process

        Returns:
            AggregateResult with sorted events and one outcome per source
        """
        sources = list(sources)
        if not sources:
            logger.warning("No feeds configured")
            return AggregateResult(events=[], feed_results=[])

        workers = max(1, min(self.config.fetch_concurrency, len(sources)))
        logger.info(f"Aggregating {len(sources)} feeds with {workers} workers")

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix='feed') as executor:
            futures = [executor.submit(self.processor.process, source) for source in sources]
            outcomes = [
                self._settle(source, future)
                for source, future in zip(sources, futures)
            ]

        events = sort_events(
            event
            for outcome in outcomes if outcome.success
            for event in outcome.events
        )
        result = AggregateResult(events=events, feed_results=outcomes)

        logger.info(
            f"Aggregation complete: {result.successful_feeds}/{result.total_feeds} "
            f"feeds succeeded, {result.total_events} events",
            extra=result.metadata()
        )
        return result

    @staticmethod
    def _settle(source: FeedSource, future: Future) -> FeedOutcome:
        try:
            return future.result()
        except Exception as e:
            logger.error(
                f"Processing task for feed {source.name} raised: {str(e)}",
                extra={'feed': source.name, 'error_type': type(e).__name__},
                exc_info=True
            )
            return FeedOutcome(
                name=source.name,
                success=False,
                error=str(e) or type(e).__name__,
                error_type=FeedErrorType.PARSE_ERROR.value
            )


def aggregate_feeds(config: AppConfig, processor: Optional[FeedProcessor] = None) -> AggregateResult:
    """Aggregate every feed named in ``config``."""
    return FeedAggregator(config.processing, processor=processor).aggregate(config.feeds)
