"""HTTP fetcher for remote iCalendar feeds."""
import logging
from urllib.parse import urlparse

import requests

from processor.errors import FetchError, InvalidUrlError

logger = logging.getLogger(__name__)


class ICalFetcher:
    """Retrieves raw calendar text from a feed URL.

    Failures are raised as typed errors at the point they happen. There is no
    retry here; callers decide whether a failed feed is worth another try.
    """

    USER_AGENT = 'venue-events-feed/1.0'

    def __init__(self, timeout: int = 30):
        """
        Initialize the fetcher.

        Args:
            timeout: HTTP request timeout in seconds (default: 30)
        """
        self.timeout = timeout

    def fetch(self, url: str) -> str:
        """
        Fetch the raw iCalendar text served at ``url``.

        Args:
            url: Absolute http(s) URL of the feed

        Returns:
            Response body as text

        Raises:
            InvalidUrlError: If the URL is not an absolute http(s) URL
            FetchError: On transport failure or a non-2xx response
        """
        self._validate_url(url)

        logger.debug(f"Fetching iCal data from {url}")
        try:
            response = requests.get(
                url,
                headers={'User-Agent': self.USER_AGENT},
                timeout=self.timeout
            )
        except requests.RequestException as e:
            raise FetchError(
                f"Failed to fetch iCal data: {e}",
                details=type(e).__name__
            ) from e

        if not 200 <= response.status_code < 300:
            raise FetchError(
                f"Failed to fetch iCal data: {response.status_code} {response.reason}",
                status_code=response.status_code
            )

        text = self._decode_body(response)
        logger.debug(f"Fetched {len(text)} characters from {url}")
        return text

    @staticmethod
    def _decode_body(response: requests.Response) -> str:
        # iCalendar is UTF-8 unless the server says otherwise; requests would
        # fall back to ISO-8859-1 for text/* without a charset.
        if 'charset' in response.headers.get('Content-Type', '').lower():
            return response.text
        return response.content.decode('utf-8', errors='replace')

    @staticmethod
    def _validate_url(url: str) -> None:
        parsed = urlparse(url or '')
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            raise InvalidUrlError(f"Invalid feed URL: {url!r}")
