"""AWS Lambda handlers serving aggregated venue calendar events."""
import dataclasses
import json
import logging
import os
import time
from typing import Any, Dict
from urllib.parse import urlparse

from config.settings import load_config
from processor.event_normalizer import EventNormalizer
from processor.feed_aggregator import aggregate_feeds
from processor.feed_processor import FeedProcessor
from processor.models import FeedSource

DEFAULT_ICAL_URL = 'https://www.monument031.com/?post_type=tribe_events&ical=1&eventDisplay=list'
GENERIC_ERROR_MESSAGE = 'Failed to fetch events'


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def json_response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'statusCode': status_code,
        'headers': {'Content-Type': 'application/json'},
        'body': json.dumps(body)
    }


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    GET /api/events: events merged from every configured feed.

    Args:
        event: API Gateway event payload
        context: Lambda context object

    Returns:
        200 with events and feed metadata, or 500 if aggregation itself failed
    """
    setup_logging(os.environ.get('LOG_LEVEL', 'INFO'))
    logger = logging.getLogger(__name__)

    start_time = time.time()
    logger.info("Events request started")

    try:
        config = load_config()
        result = aggregate_feeds(config)
    except Exception as e:
        logger.error(
            f"Error fetching events: {str(e)}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        return json_response(500, {'error': GENERIC_ERROR_MESSAGE})

    if result.failed_feeds:
        logger.warning(f"Some feeds failed to load: {result.failures}")

    logger.info(
        "Events request completed",
        extra={
            'duration_seconds': round(time.time() - start_time, 2),
            **result.metadata()
        }
    )

    return json_response(200, {
        'events': [e.to_dict() for e in result.events],
        '_metadata': result.metadata()
    })


def single_feed_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Serve a single feed named by ICAL_URL, with "TBA" for missing locations.

    Args:
        event: API Gateway event payload
        context: Lambda context object

    Returns:
        200 with events, or 500 with the feed's error message
    """
    setup_logging(os.environ.get('LOG_LEVEL', 'INFO'))
    logger = logging.getLogger(__name__)

    url = os.environ.get('ICAL_URL', DEFAULT_ICAL_URL)

    try:
        config = load_config()
        processing = dataclasses.replace(
            config.processing,
            default_location=EventNormalizer.LEGACY_DEFAULT_LOCATION
        )
        source = FeedSource(name=urlparse(url).netloc or url, url=url)
        outcome = FeedProcessor(processing).process(source)
    except Exception as e:
        logger.error(
            f"Error fetching events: {str(e)}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        return json_response(500, {'error': GENERIC_ERROR_MESSAGE})

    if not outcome.success:
        return json_response(500, {'error': outcome.error})

    return json_response(200, {'events': [e.to_dict() for e in outcome.events]})
