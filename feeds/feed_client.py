"""HTTP client for fetching calendar feeds."""
import logging
import time

import requests

logger = logging.getLogger(__name__)


class FeedFetchError(Exception):
    """Raised when a feed cannot be fetched after all retries."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Failed to fetch feed: {reason}")
        self.url = url
        self.reason = reason


class FeedClient:
    """Fetches ICS/JSON feeds with a timeout and retry logic."""

    USER_AGENT = 'campus-sync/1.0 (+calendar feed fetcher)'

    def __init__(self, timeout: int = 30, max_retries: int = 3,
                 base_delay: float = 1):
        """
        Initialize the feed client.

        Args:
            timeout: HTTP request timeout in seconds (default: 30)
            max_retries: Attempts before giving up (default: 3)
            base_delay: First backoff delay in seconds, doubled per attempt
        """
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.session = requests.Session()
        self.session.headers['User-Agent'] = self.USER_AGENT

    def fetch_text(self, url: str) -> str:
        """
        Fetch a feed body as text with retry logic.

        Args:
            url: Feed URL

        Returns:
            Response body as string

        Raises:
            FeedFetchError: If all retry attempts fail
        """
        response = self._get(url)
        logger.info(f"Fetched feed content length: {len(response.text)}")
        return response.text

    def close(self) -> None:
        self.session.close()

    def _get(self, url: str) -> requests.Response:
        for attempt in range(self.max_retries):
            try:
                logger.info(
                    f"Fetching feed (attempt {attempt + 1}/{self.max_retries})"
                )
                response = self.session.get(url, timeout=self.timeout)
                response.raise_for_status()
                return response

            except requests.RequestException as e:
                if attempt < self.max_retries - 1:
                    delay = self.base_delay * (2 ** attempt)
                    logger.warning(
                        f"Request failed (attempt {attempt + 1}/{self.max_retries}): {e}. "
                        f"Retrying in {delay} seconds..."
                    )
                    time.sleep(delay)
                else:
                    logger.error(
                        f"All {self.max_retries} retry attempts failed. Last error: {e}"
                    )
                    raise FeedFetchError(url, self._describe(e)) from e

    @staticmethod
    def _describe(error: requests.RequestException) -> str:
        response = getattr(error, 'response', None)
        if response is not None:
            return f"HTTP {response.status_code} {response.reason or ''}".strip()
        return str(error)
