import os
import shutil
import tempfile
import unittest
from datetime import datetime, timedelta, timezone

from agents.scraper import build_page_url
from graph.workflow import initial_state, run_employer
from models.errors import ConfigurationError, SourceUnreachableError
from models.job import EmployerConfig
from tools.job_store import JobStore


T = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

EMPLOYER = EmployerConfig(
    slug="example-health",
    name="Example Health",
    search_url="https://careers.example.org/jobs",
    selectors={"job_link": "a.job", "description": "div.desc", "location": "span.loc"},
)

BENEFITS = (
    "Example Health is a regional network of hospitals and clinics. We offer competitive pay,"
    " tuition support, paid time off, retirement matching, and full medical, dental and vision"
    " coverage. Our teams are recognized for quality outcomes and a culture of respect. "
) * 3

JOBS = {
    1: ("Registered Nurse - ICU", "Current RN license required. " + BENEFITS),
    2: ("Licensed Practical Nurse", "Works alongside the RN team. " + BENEFITS),
    3: ("Registered Nurse - ER", "Job description is being updated."),
    4: ("Registered Nurse - Telemetry", "Active RN license required. " + BENEFITS),
}


def listing(job_ids):
    links = "".join(f'<a class="job" href="/job/{i}">{JOBS[i][0]}</a>' for i in job_ids)
    return f"<html><body>{links}</body></html>"


def detail(job_id):
    return (
        f"<html><body><span class='loc'>Rochester, NY</span>"
        f"<div class='desc'><p>{JOBS[job_id][1]}</p></div></body></html>"
    )


class FakeFetcher:
    def __init__(self, job_ids, fail_all=False):
        self.pages = {build_page_url(EMPLOYER.search_url, "page", 1): listing(job_ids)}
        for i in job_ids:
            self.pages[f"https://careers.example.org/job/{i}"] = detail(i)
        self.fail_all = fail_all

    def fetch(self, url):
        if self.fail_all:
            return {"success": False, "html": "", "status_code": 0, "error": "connection refused", "url": url}
        html = self.pages.get(url, "<html><body></body></html>")
        return {"success": True, "html": html, "status_code": 200, "error": "", "url": url}


class RecordingDispatcher:
    def __init__(self):
        self.results = []

    def dispatch(self, result):
        self.results.append(result)


class TestWorkflow(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.store = JobStore(os.path.join(self.tmpdir, "jobs.db"))

    def tearDown(self):
        self.store.close()
        shutil.rmtree(self.tmpdir)

    def run_pipeline(self, job_ids, run_at=T, **kwargs):
        kwargs.setdefault("store", self.store)
        return run_employer(
            EMPLOYER, fetcher=FakeFetcher(job_ids), max_pages=5, run_at=run_at, llm_classify=False, **kwargs
        )

    def test_end_to_end_run(self):
        dispatcher = RecordingDispatcher()

        final = self.run_pipeline([1, 2, 3], dispatcher=dispatcher)

        self.assertTrue(final["run_complete"])
        self.assertEqual(final["reconcile_result"]["created"], 1)
        stages = sorted(s["stage"] for s in final["skipped"])
        self.assertEqual(stages, ["classifier:placeholder", "classifier:title"])

        posting = self.store.find_by_source_url("https://careers.example.org/job/1")
        self.assertTrue(posting.is_active)
        self.assertEqual((posting.city, posting.state, posting.specialty), ("Rochester", "NY", "ICU"))
        self.assertEqual(posting.scraped_at, T)

        self.assertEqual(len(dispatcher.results), 1)
        self.assertEqual(dispatcher.results[0].activated_urls, ["https://careers.example.org/job/1"])

    def test_disappearing_job_is_deactivated_on_next_run(self):
        self.run_pipeline([1, 3])

        final = self.run_pipeline([4], run_at=T + timedelta(days=1))

        self.assertEqual(final["reconcile_result"]["deactivated"], 1)
        self.assertFalse(self.store.find_by_source_url("https://careers.example.org/job/1").is_active)

    def test_dry_run_persists_nothing(self):
        final = self.run_pipeline([1, 2], store=None)

        self.assertIsNone(final["reconcile_result"])
        self.assertEqual(len(final["final_records"]), 1)
        self.assertEqual(self.store.count_postings(), 0)

    def test_unreachable_source_is_fatal(self):
        with self.assertRaises(SourceUnreachableError):
            run_employer(EMPLOYER, store=self.store, fetcher=FakeFetcher([1], fail_all=True), run_at=T)
        self.assertEqual(self.store.count_postings(), 0)

    def test_bad_config_is_fatal(self):
        broken = EmployerConfig(slug="broken", name="Broken", search_url="not a url")
        with self.assertRaises(ConfigurationError):
            run_employer(broken, store=self.store, fetcher=FakeFetcher([1]), run_at=T)

    def test_initial_state(self):
        state = initial_state(EMPLOYER, max_pages=3, run_at=T)

        self.assertEqual(state["employer"]["slug"], "example-health")
        self.assertEqual(state["run_at"], T.isoformat())
        self.assertEqual(state["skipped"], [])


if __name__ == "__main__":
    unittest.main()
