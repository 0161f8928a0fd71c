"""
RN Job Board Ingestion
CLI entry point for scraping employer career sites into the job board.
"""

import argparse
import os
import socket
import sys
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from config.settings import settings
from graph.workflow import run_employer
from models.errors import IngestError, RunLockedError
from models.job import EmployerConfig, PostingRef, ReconcileResult
from tools.file_handler import find_employer, generate_summary, load_employers, save_to_json
from tools.job_store import JobStore
from tools.notifier import NotificationDispatcher, build_channel
from tools.reconciler import expire_stale
from tools.web_scraper import PageFetcher


def _lock_owner() -> str:
    return f"{socket.gethostname()}:{os.getpid()}:{threading.get_ident()}"


def run_one(
    employer: EmployerConfig,
    max_pages: int = None,
    dry_run: bool = False,
    dispatcher: NotificationDispatcher = None,
    stop_event: threading.Event = None,
    db_path: str = None,
) -> dict:
    """
    Run one employer end to end as a single unit of work.

    Opens its own store connection and fetcher, holds the employer's run
    lock for the duration, and records the run in scrape_runs.

    Returns:
        Summary dict for generate_summary().

    Raises:
        IngestError: fatal for this employer (bad config, unreachable
            source, storage failure, or already running).
    """
    run_at = datetime.now(timezone.utc)

    if dry_run:
        with PageFetcher() as fetcher:
            final = run_employer(employer, store=None, fetcher=fetcher, max_pages=max_pages,
                                 run_at=run_at, stop_event=stop_event)
        path = save_to_json(
            final.get("final_records", []),
            settings.output_dir,
            f"{employer.slug}_{run_at.strftime('%Y%m%d_%H%M%S')}.json",
        )
        print(f"[Run] 💾 Dry run for {employer.slug}: saved {len(final.get('final_records', []))} records to {path}")
        return {
            "employer": employer.slug,
            "status": "dry-run" if final.get("run_complete") else "dry-run (partial)",
            "skipped": len(final.get("skipped", [])),
        }

    owner = _lock_owner()
    with JobStore(db_path) as store:
        if not store.acquire_run_lock(employer.slug, owner, run_at):
            raise RunLockedError(employer.slug)

        run_id = store.start_run(employer.slug, run_at)
        try:
            with PageFetcher() as fetcher:
                final = run_employer(
                    employer,
                    store=store,
                    fetcher=fetcher,
                    dispatcher=dispatcher,
                    max_pages=max_pages,
                    run_at=run_at,
                    stop_event=stop_event,
                )
        except IngestError as e:
            store.finish_run(run_id, datetime.now(timezone.utc), "failed", error=str(e))
            raise
        except Exception as e:
            store.finish_run(run_id, datetime.now(timezone.utc), "error", error=str(e))
            raise
        except BaseException:
            # Ctrl-C or SystemExit: never leave the audit row as running
            store.finish_run(run_id, datetime.now(timezone.utc), "aborted", error="interrupted")
            raise
        finally:
            store.release_run_lock(employer.slug, owner)

        result = final.get("reconcile_result") or {}
        complete = bool(final.get("run_complete"))
        counts = {k: result.get(k, 0) for k in ("created", "updated", "reactivated", "deactivated", "skipped")}
        status = "complete" if complete else "partial"
        store.finish_run(run_id, datetime.now(timezone.utc), status, counts, complete=complete)

    for error in final.get("errors", []):
        print(f"[Run] ⚠️  {error}")

    return {
        "employer": employer.slug,
        "status": status,
        "counts": counts,
        "skipped": len(final.get("skipped", [])),
    }


def run_many(
    employers: list[EmployerConfig],
    workers: int,
    max_pages: int = None,
    dry_run: bool = False,
    dispatcher: NotificationDispatcher = None,
    stop_event: threading.Event = None,
) -> list[dict]:
    """Run several employers on a thread pool; one employer's failure never stops the others."""
    summaries = []

    def task(employer):
        return run_one(employer, max_pages, dry_run, dispatcher, stop_event)

    with ThreadPoolExecutor(max_workers=max(1, workers)) as pool:
        futures = {pool.submit(task, employer): employer for employer in employers}
        try:
            for future in as_completed(futures):
                employer = futures[future]
                try:
                    summaries.append(future.result())
                except IngestError as e:
                    print(f"[Run] ❌ {employer.slug}: {e}")
                    summaries.append({"employer": employer.slug, "status": "failed", "error": str(e)})
                except Exception as e:
                    print(f"[Run] ❌ {employer.slug} crashed: {e}")
                    summaries.append({"employer": employer.slug, "status": "error", "error": str(e)})
        except KeyboardInterrupt:
            print("\n\n⛔ Stop requested: finishing in-flight runs as partial...")
            if stop_event is not None:
                stop_event.set()
            for future in futures:
                future.cancel()
            raise

    return summaries


def run_expiry(dispatcher: NotificationDispatcher = None, db_path: str = None) -> list[PostingRef]:
    """Time-based expiry sweep across all employers."""
    now = datetime.now(timezone.utc)
    with JobStore(db_path) as store:
        expired = expire_stale(store, now)
    if dispatcher is not None and expired:
        dispatcher.dispatch(
            ReconcileResult(employer_slug="expiry-sweep", run_at=now, deactivated_postings=expired)
        )
    return expired


def list_employers(employers: list[EmployerConfig]) -> None:
    stats = {}
    if os.path.exists(settings.db_path):
        with JobStore() as store:
            stats = store.stats()

    print(f"{'Slug':<32} {'Active':>7} {'Total':>7}  Name")
    for employer in employers:
        counts = stats.get(employer.slug, {"active": 0, "total": 0})
        print(f"{employer.slug:<32} {counts['active']:>7} {counts['total']:>7}  {employer.name}")


def main():
    """Main entry point for the ingestion engine."""
    parser = argparse.ArgumentParser(
        description="RN Job Board Ingestion — scrape, classify, normalize and reconcile RN postings",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run.py uhs
  python run.py uhs --max-pages 5
  python run.py --all --workers 3
  python run.py --expire-only
  python run.py uhs --dry-run
  python run.py --all --schedule 360
        """,
    )

    parser.add_argument("employer", nargs="?", help="Employer slug from the employer config")
    parser.add_argument("--max-pages", type=int, default=None, help=f"Listing page ceiling (default: {settings.max_pages})")
    parser.add_argument("--all", action="store_true", help="Run every configured employer")
    parser.add_argument("--workers", type=int, default=settings.max_workers,
                        help=f"Employers to run in parallel with --all (default: {settings.max_workers})")
    parser.add_argument("--expire-only", action="store_true", help="Only run the time-based expiry sweep")
    parser.add_argument("--dry-run", action="store_true",
                        help="Scrape, classify and normalize, write JSON to the output dir, persist nothing")
    parser.add_argument("--schedule", type=int, default=None, metavar="MINUTES",
                        help="Repeat every N minutes (each cycle ends with the expiry sweep)")
    parser.add_argument("--config", type=str, default=settings.employers_config,
                        help="Path to the employer YAML config")
    parser.add_argument("--list", action="store_true", help="List configured employers and posting counts")

    args = parser.parse_args()

    try:
        employers = load_employers(args.config)
    except IngestError as e:
        print(f"❌ {e}")
        sys.exit(1)

    if args.list:
        list_employers(employers)
        return

    channel = None if args.dry_run else build_channel()
    dispatcher = NotificationDispatcher(channel) if channel is not None else None

    if args.expire_only:
        try:
            expired = run_expiry(dispatcher)
            print(f"\n✅ Expiry sweep done: {len(expired)} postings deactivated.")
        except IngestError as e:
            print(f"❌ {e}")
            sys.exit(1)
        finally:
            if dispatcher is not None:
                dispatcher.wait()
        return

    if args.all:
        selected = employers
    elif args.employer:
        try:
            selected = [find_employer(employers, args.employer)]
        except IngestError as e:
            print(f"❌ {e}")
            sys.exit(1)
    else:
        parser.error("give an employer slug, --all, --expire-only or --list")

    print("=" * 60)
    print("  🩺 RN Job Board Ingestion")
    print("=" * 60)
    print(f"  Employers: {', '.join(e.slug for e in selected)}")
    print(f"  Store:     {'(dry run)' if args.dry_run else settings.db_path}")
    print(f"  Notify:    {'IndexNow' if dispatcher else 'disabled'}")
    print(f"  LLM pass:  {settings.llm_model_name if settings.llm_classify else 'disabled'}")
    if args.schedule:
        print(f"  Mode:      ⏰ Scheduled every {args.schedule} min")
    print("=" * 60)
    print()

    stop_event = threading.Event()
    exit_code = 0

    try:
        cycle = 0
        while True:
            cycle += 1
            if args.schedule:
                now = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
                print(f"\n{'─' * 60}")
                print(f"  Cycle #{cycle} — {now}")
                print(f"{'─' * 60}\n")

            if len(selected) == 1:
                try:
                    summaries = [run_one(selected[0], args.max_pages, args.dry_run, dispatcher, stop_event)]
                except IngestError as e:
                    print(f"\n❌ {e}")
                    summaries = [{"employer": selected[0].slug, "status": "failed", "error": str(e)}]
            else:
                summaries = run_many(selected, args.workers, args.max_pages, args.dry_run, dispatcher, stop_event)

            print()
            print(generate_summary(summaries))

            if any(s["status"] in ("failed", "error") for s in summaries):
                exit_code = 1

            if not args.schedule:
                break

            if not args.dry_run:
                try:
                    run_expiry(dispatcher)
                except IngestError as e:
                    print(f"❌ Expiry sweep failed: {e}")

            print(f"\n💤 Sleeping {args.schedule} minutes until next run...")
            time.sleep(args.schedule * 60)

    except KeyboardInterrupt:
        stop_event.set()
        print("\n\n⛔ Interrupted by user.")
        exit_code = 1
    finally:
        if dispatcher is not None:
            print("[Notifier] Waiting for outstanding notifications...")
            dispatcher.wait()

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
