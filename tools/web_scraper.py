"""
Web Scraper Tool — fetches raw HTML from one employer's career site.
Uses a single httpx client per run with proper headers, timeouts, retry
logic and a mandatory delay between consecutive requests.
"""

import time

import httpx

from config.settings import settings


# Common browser-like headers to avoid being blocked
DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate, br",
    "Connection": "keep-alive",
}

# Worth retrying: rate limiting and server-side failures
RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


class PageFetcher:
    """
    Sequential page fetcher owned by one employer run.

    Usage:
        with PageFetcher() as fetcher:
            result = fetcher.fetch(url)
    """

    def __init__(
        self,
        timeout: float = None,
        max_retries: int = None,
        request_delay: float = None,
        client: httpx.Client = None,
        sleep=time.sleep,
        clock=time.monotonic,
    ):
        self.timeout = timeout or settings.request_timeout
        self.max_retries = max_retries or settings.max_retries
        self.request_delay = settings.request_delay if request_delay is None else request_delay
        self._client = client
        self._owns_client = client is None
        self._sleep = sleep
        self._clock = clock
        self._last_request_at = None
        self.request_count = 0

    def __enter__(self):
        if self._client is None:
            self._client = httpx.Client(
                headers=DEFAULT_HEADERS,
                timeout=self.timeout,
                follow_redirects=True,
            )
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self) -> None:
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None

    def _throttle(self) -> None:
        """Block until request_delay has passed since the previous request."""
        if self._last_request_at is not None and self.request_delay > 0:
            elapsed = self._clock() - self._last_request_at
            remaining = self.request_delay - elapsed
            if remaining > 0:
                self._sleep(remaining)
        self._last_request_at = self._clock()

    def fetch(self, url: str) -> dict:
        """
        Fetch a page and return its HTML content.

        Args:
            url: The URL to fetch.

        Returns:
            dict with keys:
                - success (bool): Whether the fetch was successful.
                - html (str): The raw HTML content (empty string on failure).
                - status_code (int): HTTP status code (0 on connection error).
                - error (str): Error message if failed (empty string on success).
                - url (str): The URL that was fetched.
        """
        if self._client is None:
            self.__enter__()

        error_msg = ""
        status_code = 0

        for attempt in range(self.max_retries):
            self._throttle()
            self.request_count += 1
            try:
                response = self._client.get(url, timeout=self.timeout)
                status_code = response.status_code

                if response.status_code == 200:
                    return {
                        "success": True,
                        "html": response.text,
                        "status_code": response.status_code,
                        "error": "",
                        "url": url,
                    }

                error_msg = f"HTTP {response.status_code} for {url}"
                if response.status_code not in RETRYABLE_STATUS_CODES:
                    break

            except httpx.TimeoutException:
                status_code = 0
                error_msg = f"Timeout after {self.timeout}s for {url}"

            except httpx.HTTPError as e:
                status_code = 0
                error_msg = f"HTTP error for {url}: {str(e)}"

            if attempt < self.max_retries - 1:
                self._sleep(2 ** attempt)  # Exponential backoff

        return {
            "success": False,
            "html": "",
            "status_code": status_code,
            "error": error_msg or f"All {self.max_retries} retries exhausted for {url}",
            "url": url,
        }
