"""
Search-engine Notifier — tells IndexNow-compatible engines (Bing, Yandex, ...)
which job pages appeared or went away.

Purely a side channel: every failure is logged and swallowed, and with no
INDEXNOW_KEY configured there is no channel at all.
"""

import json
import os
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol
from urllib.parse import urlparse

import httpx

from config.settings import settings
from models.job import PostingRef, ReconcileResult


# IndexNow accepts far more per request; kept small to stay polite
MAX_BATCH_SIZE = 50

SUCCESS_STATUS_CODES = (200, 202)


class NotificationChannel(Protocol):
    """Anything that can be told about a batch of changed absolute URLs."""

    def submit(self, urls: list[str], action: str = "update") -> bool:
        ...


def public_url(site_url: str, slug: str) -> str:
    return f"{site_url.rstrip('/')}/jobs/nursing/{slug}"


class IndexNowChannel:
    """
    IndexNow protocol adapter.

    Submissions are recorded in a local JSON tracking file; re-submitting a
    URL for the same action inside the tracking window is a no-op success.
    """

    def __init__(
        self,
        key: str,
        site_url: str = None,
        api_url: str = None,
        tracking_file: str = None,
        tracking_hours: int = None,
        client: httpx.Client = None,
        timeout: float = None,
        clock=None,
    ):
        self.key = key
        self.site_url = (site_url or settings.site_url).rstrip("/")
        self.api_url = api_url or settings.indexnow_api_url
        self.tracking_file = tracking_file or settings.indexnow_tracking_file
        tracking_hours = settings.indexnow_tracking_hours if tracking_hours is None else tracking_hours
        self.tracking_window = timedelta(hours=tracking_hours)
        self.timeout = timeout or settings.request_timeout
        self._client = client
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.Lock()

    @property
    def host(self) -> str:
        return urlparse(self.site_url).hostname or ""

    @property
    def key_location(self) -> str:
        return f"{self.site_url}/{self.key}.txt"

    # ── Tracking file ────────────────────────────────────────────

    def _load_tracking(self) -> dict:
        if not os.path.exists(self.tracking_file):
            return {}
        try:
            with open(self.tracking_file, "r") as f:
                data = json.load(f)
            return data if isinstance(data, dict) else {}
        except (OSError, json.JSONDecodeError) as e:
            print(f"[Notifier] ⚠️  Could not load tracking file: {e}")
            return {}

    def _save_tracking(self, tracked: dict) -> None:
        try:
            directory = os.path.dirname(os.path.abspath(self.tracking_file))
            os.makedirs(directory, exist_ok=True)
            with open(self.tracking_file, "w") as f:
                json.dump(tracked, f, indent=2)
        except OSError as e:
            print(f"[Notifier] ⚠️  Could not save tracking file: {e}")

    def _prune(self, tracked: dict, now: datetime) -> dict:
        cutoff = now - self.tracking_window
        return {k: v for k, v in tracked.items() if datetime.fromisoformat(v) > cutoff}

    # ── Submission ───────────────────────────────────────────────

    def _post(self, payload: dict) -> httpx.Response:
        if self._client is not None:
            return self._client.post(self.api_url, json=payload, timeout=self.timeout)
        with httpx.Client(timeout=self.timeout) as client:
            return client.post(self.api_url, json=payload)

    def submit(self, urls: list[str], action: str = "update") -> bool:
        """
        Submit one batch of absolute URLs.

        Returns:
            True on 200/202 or when every URL was already submitted for this
            action inside the tracking window; False otherwise.

        Raises:
            ValueError: more than MAX_BATCH_SIZE URLs were passed.
        """
        if len(urls) > MAX_BATCH_SIZE:
            raise ValueError(f"IndexNow batches hold at most {MAX_BATCH_SIZE} URLs (got {len(urls)})")
        if not urls:
            return True

        with self._lock:
            now = self._clock()
            tracked = self._prune(self._load_tracking(), now)
            fresh = [u for u in urls if f"{action}|{u}" not in tracked]

            if not fresh:
                print(f"[Notifier] {len(urls)} URLs already submitted ({action}) within the tracking window")
                return True

            payload = {
                "host": self.host,
                "key": self.key,
                "keyLocation": self.key_location,
                "urlList": fresh,
            }

            try:
                response = self._post(payload)
            except httpx.HTTPError as e:
                print(f"[Notifier] ❌ IndexNow request failed: {e}")
                return False

            if response.status_code not in SUCCESS_STATUS_CODES:
                print(f"[Notifier] ⚠️  IndexNow rejected batch (status {response.status_code}): {response.text[:200]}")
                return False

            for url in fresh:
                tracked[f"{action}|{url}"] = now.isoformat()
            self._save_tracking(tracked)

        print(f"[Notifier] ✅ IndexNow: notified about {len(fresh)} URLs ({action})")
        return True


def build_channel() -> Optional[IndexNowChannel]:
    """The configured channel, or None when no INDEXNOW_KEY is set."""
    if not settings.notifications_enabled:
        return None
    return IndexNowChannel(key=settings.indexnow_key)


def send_changes(
    channel: NotificationChannel,
    activated_urls: list[str],
    deactivated_urls: list[str],
    batch_size: int = None,
    batch_delay: float = None,
    sleep=time.sleep,
) -> dict:
    """
    Submit activated URLs as 'update' and deactivated ones as 'delete', in
    batches, sleeping batch_delay seconds between batches. Never raises.

    Returns:
        dict with batches, succeeded and failed counts.
    """
    batch_size = min(batch_size or settings.indexnow_batch_size, MAX_BATCH_SIZE)
    batch_delay = settings.indexnow_batch_delay if batch_delay is None else batch_delay

    batches = []
    for action, urls in (("update", activated_urls), ("delete", deactivated_urls)):
        for i in range(0, len(urls), batch_size):
            batches.append((action, urls[i: i + batch_size]))

    summary = {"batches": len(batches), "succeeded": 0, "failed": 0}
    for n, (action, batch) in enumerate(batches):
        if n > 0 and batch_delay > 0:
            sleep(batch_delay)
        try:
            ok = channel.submit(batch, action)
        except Exception as e:
            print(f"[Notifier] ❌ Batch {n + 1}/{len(batches)} raised: {e}")
            ok = False
        summary["succeeded" if ok else "failed"] += 1

    return summary


class NotificationDispatcher:
    """
    Fire-and-forget hand-off from the reconciler to a notification channel.

    Each dispatch runs on its own non-daemon thread so a slow or dead
    search-engine endpoint never holds up the pipeline; call wait() before
    the process exits. Submissions from every thread go through one lock and
    are spaced batch_delay seconds apart, however many employer runs are
    dispatching at once.
    """

    MAX_SUMMARIES = 100

    def __init__(self, channel: NotificationChannel, site_url: str = None,
                 batch_size: int = None, batch_delay: float = None,
                 sleep=time.sleep, clock=time.monotonic):
        self.channel = channel
        self.site_url = site_url or settings.site_url
        self.batch_size = batch_size
        self.batch_delay = settings.indexnow_batch_delay if batch_delay is None else batch_delay
        self._sleep = sleep
        self._clock = clock
        self._threads = []
        self._lock = threading.Lock()
        self._submit_lock = threading.Lock()
        self._last_submit = None
        self.summaries = []

    def urls_for(self, refs: list[PostingRef]) -> list[str]:
        return [public_url(self.site_url, ref.slug) for ref in refs]

    def submit(self, urls: list[str], action: str = "update") -> bool:
        """Channel submit, spaced from the previous submission of any thread."""
        with self._submit_lock:
            if self._last_submit is not None and self.batch_delay > 0:
                wait = self._last_submit + self.batch_delay - self._clock()
                if wait > 0:
                    self._sleep(wait)
            try:
                return self.channel.submit(urls, action)
            finally:
                self._last_submit = self._clock()

    def _run(self, activated: list[str], deactivated: list[str]) -> None:
        try:
            # Spacing is enforced in submit()
            summary = send_changes(
                self, activated, deactivated,
                batch_size=self.batch_size, batch_delay=0, sleep=self._sleep,
            )
            with self._lock:
                self.summaries.append(summary)
                del self.summaries[:-self.MAX_SUMMARIES]
        except Exception as e:
            print(f"[Notifier] ❌ Dispatch failed: {e}")

    def _prune_threads(self) -> None:
        self._threads = [t for t in self._threads if t.is_alive()]

    def dispatch(self, result: ReconcileResult) -> Optional[threading.Thread]:
        """Queue the result's activated/deactivated postings. Returns the worker thread, if any."""
        activated = self.urls_for(result.activated)
        deactivated = self.urls_for(result.deactivated_postings)
        if not activated and not deactivated:
            return None

        thread = threading.Thread(
            target=self._run,
            args=(activated, deactivated),
            name=f"notify-{result.employer_slug}",
            daemon=False,
        )
        with self._lock:
            self._prune_threads()
            self._threads.append(thread)
        thread.start()
        print(f"[Notifier] 📨 Queued {len(activated)} updates and {len(deactivated)} removals for {result.employer_slug}")
        return thread

    def wait(self, timeout: float = None) -> None:
        """Block until every dispatched notification has finished."""
        with self._lock:
            threads = list(self._threads)
        for thread in threads:
            thread.join(timeout)
        with self._lock:
            self._prune_threads()

    @property
    def pending(self) -> int:
        with self._lock:
            return sum(1 for t in self._threads if t.is_alive())
