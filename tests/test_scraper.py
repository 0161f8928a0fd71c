import threading
import unittest

import httpx

from agents.scraper import build_page_url, paginate_employer, scraper_agent
from models.errors import SourceUnreachableError
from models.job import EmployerConfig
from tools.web_scraper import PageFetcher


SEARCH_URL = "https://careers.example.org/jobs?q=rn"

EMPLOYER = EmployerConfig(
    slug="example-health",
    name="Example Health",
    search_url=SEARCH_URL,
    selectors={"job_link": "a.job", "description": "div.desc"},
)

EMPTY_PAGE = "<html><body><p>No matching jobs.</p></body></html>"


def listing(*job_ids):
    links = "".join(f'<li><a class="job" href="/job/{i}">Registered Nurse {i}</a></li>' for i in job_ids)
    return f"<html><body><ul>{links}</ul><a href='/about'>About us</a></body></html>"


def detail(job_id):
    return f"<html><body><div class='desc'><p>Registered Nurse opening {job_id}.</p></div></body></html>"


def job_url(job_id):
    return f"https://careers.example.org/job/{job_id}"


class FakeFetcher:
    """Serves canned pages; unknown listing pages come back empty, listed failures fail."""

    def __init__(self, pages, failures=()):
        self.pages = pages
        self.failures = set(failures)
        self.calls = []

    def fetch(self, url):
        self.calls.append(url)
        if url in self.failures:
            return {"success": False, "html": "", "status_code": 503, "error": f"HTTP 503 for {url}", "url": url}
        return {"success": True, "html": self.pages.get(url, EMPTY_PAGE), "status_code": 200, "error": "", "url": url}


def page_url(n):
    return build_page_url(SEARCH_URL, "page", n)


def site(listings, failures=()):
    pages = {page_url(n): html for n, html in listings.items()}
    for html in listings.values():
        for i in range(1, 50):
            if f'href="/job/{i}"' in html:
                pages[job_url(i)] = detail(i)
    return FakeFetcher(pages, failures)


class TestBuildPageUrl(unittest.TestCase):
    def test_adds_page_param(self):
        self.assertEqual(build_page_url(SEARCH_URL, "page", 2), "https://careers.example.org/jobs?q=rn&page=2")

    def test_replaces_existing_page_param(self):
        self.assertEqual(
            build_page_url("https://x.example/jobs?page=3&q=rn", "page", 1), "https://x.example/jobs?q=rn&page=1"
        )


class TestPagination(unittest.TestCase):
    def run_site(self, fetcher, **kwargs):
        kwargs.setdefault("max_pages", 10)
        kwargs.setdefault("empty_page_limit", 2)
        kwargs.setdefault("run_timeout", 0)
        return paginate_employer(fetcher, EMPLOYER, **kwargs)

    def test_empty_pages_end_a_complete_run(self):
        fetcher = site({1: listing(1, 2), 2: listing(3)})

        outcome = self.run_site(fetcher)

        self.assertTrue(outcome["complete"])
        self.assertEqual([job.detail_url for job in outcome["raw_jobs"]], [job_url(1), job_url(2), job_url(3)])
        self.assertEqual(outcome["unresolved_urls"], [])
        listing_calls = [url for url in fetcher.calls if "page=" in url]
        self.assertEqual(listing_calls, [page_url(1), page_url(2), page_url(3), page_url(4)])

    def test_site_that_ignores_page_param_terminates(self):
        fetcher = site({n: listing(1, 2) for n in range(1, 11)})

        outcome = self.run_site(fetcher)

        self.assertTrue(outcome["complete"])
        self.assertEqual(len(outcome["raw_jobs"]), 2)

    def test_max_pages_with_results_still_coming_is_partial(self):
        fetcher = site({1: listing(1), 2: listing(2), 3: listing(3)})

        outcome = self.run_site(fetcher, max_pages=2)

        self.assertFalse(outcome["complete"])
        self.assertEqual(len(outcome["raw_jobs"]), 2)
        self.assertTrue(any("max_pages" in e for e in outcome["errors"]))

    def test_max_pages_ending_on_empty_page_is_complete(self):
        fetcher = site({1: listing(1)})

        outcome = self.run_site(fetcher, max_pages=2, empty_page_limit=3)

        self.assertTrue(outcome["complete"])

    def test_unreachable_first_page_raises(self):
        fetcher = site({1: listing(1)}, failures=[page_url(1)])

        with self.assertRaises(SourceUnreachableError):
            self.run_site(fetcher)

    def test_later_listing_failure_is_partial(self):
        fetcher = site({1: listing(1), 2: listing(2)}, failures=[page_url(2)])

        outcome = self.run_site(fetcher)

        self.assertFalse(outcome["complete"])
        self.assertEqual([job.detail_url for job in outcome["raw_jobs"]], [job_url(1)])

    def test_failed_detail_is_unresolved_not_fatal(self):
        fetcher = site({1: listing(1, 2)}, failures=[job_url(2)])

        outcome = self.run_site(fetcher)

        self.assertTrue(outcome["complete"])
        self.assertEqual([job.detail_url for job in outcome["raw_jobs"]], [job_url(1)])
        self.assertEqual(outcome["unresolved_urls"], [job_url(2)])
        self.assertEqual(outcome["skipped"][0].stage, "scraper")

    def test_stop_event_makes_run_partial(self):
        fetcher = site({1: listing(1)})
        stop = threading.Event()
        stop.set()

        outcome = self.run_site(fetcher, stop_event=stop)

        self.assertFalse(outcome["complete"])
        self.assertEqual(fetcher.calls, [])

    def test_deadline_makes_run_partial(self):
        ticks = iter(range(0, 1000, 10))
        fetcher = site({1: listing(1), 2: listing(2)})

        outcome = self.run_site(fetcher, run_timeout=15, clock=lambda: next(ticks))

        self.assertFalse(outcome["complete"])

    def test_detail_description_uses_selector(self):
        outcome = self.run_site(site({1: listing(7)}))

        self.assertEqual(outcome["raw_jobs"][0].description_text, "Registered Nurse opening 7.")
        self.assertEqual(outcome["raw_jobs"][0].title, "Registered Nurse 7")


class TestScraperAgent(unittest.TestCase):
    def test_returns_state_update(self):
        fetcher = site({1: listing(1)}, failures=[job_url(1)])
        state = {"employer": EMPLOYER.model_dump(), "max_pages": 3}

        update = scraper_agent(state, {"configurable": {"fetcher": fetcher}})

        self.assertEqual(update["raw_jobs"], [])
        self.assertEqual(update["unresolved_urls"], [job_url(1)])
        self.assertTrue(update["run_complete"])
        self.assertEqual(update["skipped"][0]["source_url"], job_url(1))


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class TestPageFetcher(unittest.TestCase):
    def make_fetcher(self, handler, **kwargs):
        clock = FakeClock()
        client = httpx.Client(transport=httpx.MockTransport(handler))
        kwargs.setdefault("request_delay", 0)
        kwargs.setdefault("max_retries", 3)
        fetcher = PageFetcher(client=client, sleep=clock.sleep, clock=clock, **kwargs)
        return fetcher, clock

    def test_retries_server_errors_with_backoff(self):
        statuses = iter([503, 200])

        def handler(request):
            return httpx.Response(next(statuses), text="<html>ok</html>")

        fetcher, clock = self.make_fetcher(handler)
        result = fetcher.fetch("https://careers.example.org/jobs")

        self.assertTrue(result["success"])
        self.assertEqual(result["html"], "<html>ok</html>")
        self.assertEqual(fetcher.request_count, 2)
        self.assertEqual(clock.sleeps, [1])

    def test_client_errors_are_not_retried(self):
        fetcher, clock = self.make_fetcher(lambda request: httpx.Response(404))

        result = fetcher.fetch("https://careers.example.org/missing")

        self.assertFalse(result["success"])
        self.assertEqual(result["status_code"], 404)
        self.assertEqual(fetcher.request_count, 1)

    def test_timeouts_exhaust_retries(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        fetcher, clock = self.make_fetcher(handler)
        result = fetcher.fetch("https://careers.example.org/slow")

        self.assertFalse(result["success"])
        self.assertEqual(result["status_code"], 0)
        self.assertIn("Timeout", result["error"])
        self.assertEqual(clock.sleeps, [1, 2])

    def test_requests_are_spaced_by_request_delay(self):
        fetcher, clock = self.make_fetcher(lambda request: httpx.Response(200, text="x"), request_delay=2.5)

        fetcher.fetch("https://careers.example.org/a")
        fetcher.fetch("https://careers.example.org/b")

        self.assertEqual(clock.sleeps, [2.5])


if __name__ == "__main__":
    unittest.main()
