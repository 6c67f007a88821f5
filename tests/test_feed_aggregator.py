"""Unit tests for FeedAggregator."""
import random
import threading
import time
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from config.settings import AppConfig, ProcessingConfig
from feeds.ical_fetcher import ICalFetcher
from processor.event_normalizer import EventNormalizer
from processor.feed_aggregator import FeedAggregator, aggregate_feeds, sort_events
from processor.feed_processor import FeedProcessor
from processor.models import Event, FeedOutcome, FeedSource

FEED_A = FeedSource(name="Feed A", url="https://a.example.com/events.ics")
FEED_B = FeedSource(name="Feed B", url="https://b.example.com/events.ics")
FEED_C = FeedSource(name="Feed C", url="https://c.example.com/events.ics")


def make_event(uid, date, start=None):
    return Event(uid=uid, title=uid.title(), date=date, location="Somewhere", start=start)


class StubProcessor:
    """Returns canned outcomes per feed after a random delay."""

    def __init__(self, outcomes, max_delay=0.02):
        self.outcomes = outcomes
        self.max_delay = max_delay

    def process(self, source):
        time.sleep(random.uniform(0, self.max_delay))
        outcome = self.outcomes[source.name]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def config():
    return ProcessingConfig(fetch_concurrency=4)


class TestFeedAggregator:
    """Test cases for FeedAggregator.aggregate."""

    def test_partial_failure_keeps_good_data(self, config):
        """Test that one failed feed does not drop another's events."""
        good = FeedOutcome(name="Feed A", success=True, events=[make_event("gig", "2024-01-05", "20:00")])
        bad = FeedOutcome(name="Feed B", success=False, error="Failed to fetch iCal data: 500 Server Error")
        aggregator = FeedAggregator(config, processor=StubProcessor({"Feed A": good, "Feed B": bad}))

        result = aggregator.aggregate([FEED_A, FEED_B])

        assert [e.uid for e in result.events] == ["gig"]
        assert result.total_feeds == 2
        assert result.successful_feeds == 1
        assert result.failed_feeds == 1
        assert result.total_events == 1
        assert result.failures == ["Feed B: Failed to fetch iCal data: 500 Server Error"]

    def test_raising_processor_is_converted_to_failure(self, config):
        """Test that an exception from a task becomes a failed outcome."""
        good = FeedOutcome(name="Feed A", success=True, events=[make_event("gig", "2024-01-05")])
        aggregator = FeedAggregator(
            config,
            processor=StubProcessor({"Feed A": good, "Feed B": RuntimeError("defect")})
        )

        result = aggregator.aggregate([FEED_A, FEED_B])

        assert [o.name for o in result.feed_results] == ["Feed A", "Feed B"]
        failed = result.feed_results[1]
        assert failed.success is False
        assert failed.error == "defect"
        assert failed.events == []
        assert len(result.events) == 1

    def test_all_feeds_failing_still_returns(self, config):
        """Test that total failure is reported, not raised."""
        aggregator = FeedAggregator(config, processor=StubProcessor({
            "Feed A": FeedOutcome(name="Feed A", success=False, error="x"),
            "Feed B": KeyError("y"),
        }))

        result = aggregator.aggregate([FEED_A, FEED_B])

        assert result.events == []
        assert result.failed_feeds == 2

    @pytest.mark.parametrize("run", range(5))
    def test_order_independent_of_completion_order(self, config, run):
        """Test that merged events are sorted by date then start."""
        outcomes = {
            "Feed A": FeedOutcome(name="Feed A", success=True, events=[make_event("second", "2024-01-02", "09:00")]),
            "Feed B": FeedOutcome(name="Feed B", success=True, events=[make_event("first", "2024-01-01", "23:00")]),
            "Feed C": FeedOutcome(name="Feed C", success=True, events=[make_event("third", "2024-01-02", "18:30")]),
        }
        sources = [FEED_A, FEED_B, FEED_C]
        random.shuffle(sources)
        aggregator = FeedAggregator(config, processor=StubProcessor(outcomes, max_delay=0.05))

        result = aggregator.aggregate(sources)

        assert [e.uid for e in result.events] == ["first", "second", "third"]

    def test_feed_results_follow_source_order(self, config):
        outcomes = {
            name: FeedOutcome(name=name, success=True)
            for name in ("Feed A", "Feed B", "Feed C")
        }
        aggregator = FeedAggregator(config, processor=StubProcessor(outcomes, max_delay=0.05))

        result = aggregator.aggregate([FEED_C, FEED_A, FEED_B])

        assert [o.name for o in result.feed_results] == ["Feed C", "Feed A", "Feed B"]

    def test_feeds_run_concurrently(self, config):
        """Test that every feed is in flight at the same time."""
        barrier = threading.Barrier(3, timeout=5)

        def process(source):
            barrier.wait()
            return FeedOutcome(name=source.name, success=True)

        processor = Mock()
        processor.process.side_effect = process
        aggregator = FeedAggregator(config, processor=processor)

        result = aggregator.aggregate([FEED_A, FEED_B, FEED_C])

        assert result.successful_feeds == 3
        assert processor.process.call_count == 3

    def test_no_sources(self, config):
        result = FeedAggregator(config, processor=Mock()).aggregate([])

        assert result.events == []
        assert result.feed_results == []
        assert result.metadata() == {
            'totalFeeds': 0,
            'successfulFeeds': 0,
            'failedFeeds': 0,
            'totalEvents': 0,
        }

    def test_per_feed_cap_applies_before_merge(self, build_ics):
        """Test that each feed contributes at most max_events_per_feed events."""
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        texts = {
            FEED_A.url: build_ics([
                {'UID': f'a{day}', 'SUMMARY': 'A', 'DTSTART': now + timedelta(days=day)}
                for day in range(1, 6)
            ]),
            FEED_B.url: build_ics([
                {'UID': 'b1', 'SUMMARY': 'B', 'DTSTART': now + timedelta(days=2, hours=3)}
            ]),
        }
        fetcher = Mock(spec=ICalFetcher)
        fetcher.fetch.side_effect = texts.get
        config = ProcessingConfig(max_events_per_feed=2)
        processor = FeedProcessor(
            config,
            fetcher=fetcher,
            normalizer=EventNormalizer(local_tz=timezone.utc),
            clock=lambda: now
        )

        result = FeedAggregator(config, processor=processor).aggregate([FEED_A, FEED_B])

        assert [e.uid for e in result.events] == ['a1', 'a2', 'b1']
        assert [e.location for e in result.events] == ['Feed A', 'Feed A', 'Feed B']


class TestSortEvents:
    """Test cases for sort_events."""

    def test_untimed_events_sort_first_in_day(self):
        events = [
            make_event("evening", "2024-01-01", "19:00"),
            make_event("all-day", "2024-01-01"),
            make_event("morning", "2024-01-01", "08:00"),
        ]

        assert [e.uid for e in sort_events(events)] == ["all-day", "morning", "evening"]

    def test_ties_keep_input_order(self):
        events = [
            make_event("x", "2024-01-01", "10:00"),
            make_event("y", "2024-01-01", "10:00"),
        ]

        assert [e.uid for e in sort_events(events)] == ["x", "y"]


class TestAggregateFeeds:
    """Test cases for aggregate_feeds."""

    def test_uses_config_feeds(self):
        config = AppConfig(feeds=(FEED_A,), processing=ProcessingConfig())
        processor = StubProcessor({
            "Feed A": FeedOutcome(name="Feed A", success=True, events=[make_event("gig", "2024-01-05")])
        })

        result = aggregate_feeds(config, processor=processor)

        assert result.total_feeds == 1
        assert result.total_events == 1
