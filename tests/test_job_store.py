import os
import shutil
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import run
from models.errors import ConfigurationError, RunLockedError, StorageError
from models.job import EmployerConfig
from tools.file_handler import find_employer, generate_summary, load_employers
from tools.job_store import JobStore, from_db_time, to_db_time


T = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

UHS = EmployerConfig(slug="uhs", name="UHS", search_url="https://careers.uhs.example/jobs")


class StoreTestCase(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.tmpdir, "jobs.db")
        self.store = JobStore(self.db_path)

    def tearDown(self):
        self.store.close()
        shutil.rmtree(self.tmpdir)


class TestJobStore(StoreTestCase):
    def test_time_round_trip_is_fixed_width_utc(self):
        local = datetime(2026, 1, 1, 7, 0, tzinfo=timezone(timedelta(hours=-5)))
        text = to_db_time(local)

        self.assertEqual(text, "2026-01-01T12:00:00.000000+00:00")
        self.assertEqual(from_db_time(text), T)

    def test_get_or_create_employer_is_idempotent(self):
        first = self.store.get_or_create_employer("uhs", "UHS", "https://a")
        second = self.store.get_or_create_employer("uhs", "UHS Health", "https://b")

        self.assertEqual(first.id, second.id)
        self.assertEqual(second.name, "UHS Health")
        self.assertEqual(second.career_page_url, "https://b")

    def test_run_audit(self):
        run_id = self.store.start_run("uhs", T)
        self.store.finish_run(run_id, T + timedelta(minutes=5), "complete", {"created": 3}, complete=True)

        runs = self.store.recent_runs("uhs")
        self.assertEqual(runs[0]["status"], "complete")
        self.assertEqual(runs[0]["created"], 3)

    def test_unopenable_path_raises_storage_error(self):
        blocker = os.path.join(self.tmpdir, "file")
        with open(blocker, "w") as f:
            f.write("")
        with self.assertRaises(StorageError):
            JobStore(os.path.join(blocker, "jobs.db"))


class TestRunLock(StoreTestCase):
    def test_lock_is_exclusive_across_connections(self):
        other = JobStore(self.db_path)
        try:
            self.assertTrue(self.store.acquire_run_lock("uhs", "worker-a", T))
            self.assertFalse(other.acquire_run_lock("uhs", "worker-b", T))
            # Different employers do not contend
            self.assertTrue(other.acquire_run_lock("nyu-langone", "worker-b", T))

            self.store.release_run_lock("uhs", "worker-a")
            self.assertTrue(other.acquire_run_lock("uhs", "worker-b", T))
        finally:
            other.close()

    def test_release_by_non_owner_is_ignored(self):
        self.store.acquire_run_lock("uhs", "worker-a", T)
        self.store.release_run_lock("uhs", "worker-b")
        self.assertFalse(self.store.acquire_run_lock("uhs", "worker-b", T))

    def test_abandoned_lock_expires(self):
        self.assertTrue(self.store.acquire_run_lock("uhs", "worker-a", T, ttl_minutes=30))
        self.assertFalse(self.store.acquire_run_lock("uhs", "worker-b", T + timedelta(minutes=29), ttl_minutes=30))
        self.assertTrue(self.store.acquire_run_lock("uhs", "worker-b", T + timedelta(minutes=31), ttl_minutes=30))


class TestRunOne(StoreTestCase):
    def test_locked_employer_is_refused(self):
        self.store.acquire_run_lock("uhs", "someone-else", datetime.now(timezone.utc))

        with patch("run.run_employer") as mock_run_employer:
            with self.assertRaises(RunLockedError):
                run.run_one(UHS, db_path=self.db_path)
        mock_run_employer.assert_not_called()

    def test_successful_run_is_recorded_and_unlocked(self):
        final = {
            "run_complete": True,
            "reconcile_result": {"created": 2, "updated": 1, "reactivated": 0, "deactivated": 1, "skipped": 0},
            "skipped": [{"stage": "classifier:title"}],
            "errors": [],
        }
        with patch("run.run_employer", return_value=final):
            summary = run.run_one(UHS, db_path=self.db_path)

        self.assertEqual(summary["status"], "complete")
        self.assertEqual(summary["counts"]["created"], 2)
        self.assertEqual(summary["skipped"], 1)
        self.assertEqual(self.store.recent_runs("uhs")[0]["deactivated"], 1)
        self.assertTrue(self.store.acquire_run_lock("uhs", "next", datetime.now(timezone.utc)))

    def test_failed_run_releases_lock(self):
        with patch("run.run_employer", side_effect=ConfigurationError("bad selectors")):
            with self.assertRaises(ConfigurationError):
                run.run_one(UHS, db_path=self.db_path)

        self.assertEqual(self.store.recent_runs("uhs")[0]["status"], "failed")
        self.assertTrue(self.store.acquire_run_lock("uhs", "next", datetime.now(timezone.utc)))

    def test_interrupted_run_is_recorded_as_aborted(self):
        with patch("run.run_employer", side_effect=KeyboardInterrupt):
            with self.assertRaises(KeyboardInterrupt):
                run.run_one(UHS, db_path=self.db_path)

        last = self.store.recent_runs("uhs")[0]
        self.assertEqual(last["status"], "aborted")
        self.assertIsNotNone(last["finished_at"])
        self.assertTrue(self.store.acquire_run_lock("uhs", "next", datetime.now(timezone.utc)))


class TestEmployerConfig(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def write(self, text):
        path = os.path.join(self.tmpdir, "employers.yaml")
        with open(path, "w") as f:
            f.write(text)
        return path

    def test_loads_employers(self):
        path = self.write(
            "employers:\n"
            "  - slug: uhs\n"
            "    name: UHS\n"
            "    search_url: https://careers.uhs.example/jobs\n"
            "    selectors:\n"
            "      job_link: a.job\n"
        )

        employers = load_employers(path)

        self.assertEqual(len(employers), 1)
        self.assertEqual(employers[0].career_page_url, "https://careers.uhs.example/jobs")
        self.assertEqual(employers[0].selectors["job_link"], "a.job")
        self.assertEqual(find_employer(employers, "uhs").name, "UHS")

    def test_missing_search_url_is_rejected(self):
        path = self.write("employers:\n  - slug: uhs\n    name: UHS\n    search_url: ''\n")
        with self.assertRaises(ConfigurationError):
            load_employers(path)

    def test_duplicate_slug_is_rejected(self):
        entry = "  - slug: uhs\n    name: UHS\n    search_url: https://a.example/jobs\n"
        with self.assertRaises(ConfigurationError):
            load_employers(self.write("employers:\n" + entry + entry))

    def test_unknown_employer(self):
        with self.assertRaises(ConfigurationError):
            find_employer([], "uhs")

    def test_summary_totals(self):
        text = generate_summary([
            {"employer": "uhs", "status": "complete", "counts": {"created": 2, "deactivated": 1}},
            {"employer": "nyu", "status": "failed", "error": "unreachable"},
        ])

        self.assertIn("uhs: complete", text)
        self.assertIn("nyu: failed", text)
        self.assertIn("Totals: 2 new, 0 updated, 0 reactivated, 1 deactivated", text)


if __name__ == "__main__":
    unittest.main()
