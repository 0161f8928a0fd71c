"""
Job Board Reconciler — upserts one employer's normalized batch against the
store, keeps expiry fresh, and deactivates postings a complete run no
longer observes. Postings move between active and inactive; they are
never deleted.
"""

import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from config.settings import settings
from models.job import NormalizedJob, Posting, PostingRef, ReconcileResult, RecordOutcome
from tools.job_store import JobStore


# NormalizedJob fields copied straight onto the posting row
RECORD_FIELDS = (
    "title",
    "description",
    "location",
    "city",
    "state",
    "zip_code",
    "is_remote",
    "job_type",
    "shift_type",
    "specialty",
    "experience_level",
    "salary_min",
    "salary_max",
    "salary_type",
    "salary_currency",
    "salary_min_hourly",
    "salary_max_hourly",
    "salary_min_annual",
    "salary_max_annual",
    "meta_description",
    "keywords",
    "source_job_id",
    "posted_date",
)

MAX_SLUG_LENGTH = 100


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _unique_slug(store: JobStore, slug: str, exclude_id: int = None) -> str:
    """Suffix -2, -3, ... until the slug is free."""
    if not store.slug_taken(slug, exclude_id):
        return slug
    n = 2
    while True:
        suffix = f"-{n}"
        candidate = slug[: MAX_SLUG_LENGTH - len(suffix)] + suffix
        if not store.slug_taken(candidate, exclude_id):
            return candidate
        n += 1


def _record_fields(record: NormalizedJob, employer_id: int) -> dict:
    data = record.model_dump()
    fields = {f: data[f] for f in RECORD_FIELDS}
    fields["employer_id"] = employer_id
    fields["source_url"] = record.source_url
    return fields


def _expiry_fields(record: NormalizedJob, existing: Optional[Posting], run_at: datetime, window: timedelta) -> dict:
    """
    Work out expires_date / calculated_expires_date for an observation at run_at.

    An explicit date on the record replaces any stored one. Without one, a
    stored explicit date keeps governing while it is still in the future;
    otherwise the calculated date is run_at + window and never moves backwards.
    """
    explicit = _aware(record.expires_date)
    if explicit is None and existing is not None:
        stored = _aware(existing.expires_date)
        if stored is not None and stored > run_at:
            explicit = stored

    if explicit is not None:
        return {"expires_date": explicit, "calculated_expires_date": None}

    calculated = run_at + window
    if existing is not None:
        previous = _aware(existing.calculated_expires_date)
        if previous is not None and previous > calculated:
            calculated = previous
    return {"expires_date": None, "calculated_expires_date": calculated}


def upsert_record(
    store: JobStore,
    employer_id: int,
    record: NormalizedJob,
    run_at: datetime,
    window: timedelta,
) -> tuple[RecordOutcome, Optional[Posting]]:
    """
    Create or refresh the posting for one record.

    Returns:
        (outcome, posting) where posting is None for skips.
    """
    existing = store.find_by_source_url(record.source_url)

    if existing is None:
        fields = _record_fields(record, employer_id)
        fields.update(_expiry_fields(record, None, run_at, window))
        fields["slug"] = _unique_slug(store, record.slug)
        fields["is_active"] = True
        fields["scraped_at"] = run_at
        fields["classified_at"] = record.classified_at
        try:
            posting = store.insert_posting(fields, run_at)
            return RecordOutcome(source_url=record.source_url, status="created"), posting
        except sqlite3.IntegrityError as e:
            # Another writer got there first: fall through to the update path
            existing = store.find_by_source_url(record.source_url)
            if existing is None:
                return RecordOutcome(
                    source_url=record.source_url, status="skipped", reason=f"insert conflict: {e}"
                ), None

    was_active = existing.is_active
    fields = _record_fields(record, employer_id)
    fields.update(_expiry_fields(record, existing, run_at, window))
    fields["is_active"] = True
    fields["scraped_at"] = run_at
    if record.classified_at is not None:
        fields["classified_at"] = record.classified_at
    elif record.description != existing.description:
        fields["classified_at"] = None

    posting = store.update_posting(existing.id, fields, run_at)
    status = "updated" if was_active else "reactivated"
    return RecordOutcome(source_url=record.source_url, status=status), posting


def reconcile_run(
    store: JobStore,
    employer,
    records: list[NormalizedJob],
    run_at: datetime,
    complete: bool = True,
    unresolved_urls: Iterable[str] = (),
    expiry_window_days: int = None,
    sweep_on_empty_run: bool = None,
) -> ReconcileResult:
    """
    Reconcile one employer run's batch against the store.

    Args:
        store: Open JobStore for this run.
        employer: Anything with slug, name and career_page_url (EmployerConfig).
        records: Normalized records observed in this run.
        run_at: Run timestamp; becomes scraped_at of every observed posting.
        complete: Whether the listing enumeration finished. Partial runs never sweep.
        unresolved_urls: Detail URLs listed this run whose fetch failed. They
            count as observed so a flaky detail page does not deactivate a posting.
        expiry_window_days: Override for settings.expiry_window_days.
        sweep_on_empty_run: Override for settings.sweep_on_empty_run.

    Returns:
        ReconcileResult with counts, per-record outcomes and the postings that
        became active or inactive.
    """
    run_at = _aware(run_at)
    window = timedelta(days=settings.expiry_window_days if expiry_window_days is None else expiry_window_days)
    if sweep_on_empty_run is None:
        sweep_on_empty_run = settings.sweep_on_empty_run

    emp = store.get_or_create_employer(employer.slug, employer.name, employer.career_page_url)
    result = ReconcileResult(employer_slug=emp.slug, run_at=run_at, complete=complete)

    print(f"[Reconciler] Reconciling {len(records)} records for {emp.name}...")

    observed = set()
    for record in records:
        observed.add(record.source_url)
        try:
            outcome, posting = upsert_record(store, emp.id, record, run_at, window)
        except (sqlite3.Error, ValueError) as e:
            print(f"[Reconciler] ⚠️  Upsert failed for {record.source_url}: {e}")
            outcome, posting = RecordOutcome(source_url=record.source_url, status="skipped", reason=str(e)), None

        result.outcomes.append(outcome)
        if outcome.status == "created":
            result.created += 1
        elif outcome.status == "updated":
            result.updated += 1
        elif outcome.status == "reactivated":
            result.reactivated += 1
        else:
            result.skipped += 1

        if posting is not None and outcome.status in ("created", "reactivated"):
            result.activated.append(PostingRef(source_url=posting.source_url, slug=posting.slug))

    observed.update(unresolved_urls)

    if not complete:
        print("[Reconciler] ⏭️  Partial run: deactivation sweep skipped")
    elif not observed and not sweep_on_empty_run:
        print("[Reconciler] ⏭️  Run observed no postings: deactivation sweep skipped")
    else:
        missing = [p for p in store.active_postings(emp.id) if p.source_url not in observed]
        store.deactivate([p.id for p in missing], run_at)
        result.deactivated = len(missing)
        result.deactivated_postings = [PostingRef(source_url=p.source_url, slug=p.slug) for p in missing]
        result.sweep_ran = True

    store.touch_employer(emp.id, run_at)

    print(
        f"[Reconciler] ✅ {emp.name}: {result.created} created, {result.updated} updated, "
        f"{result.reactivated} reactivated, {result.deactivated} deactivated, {result.skipped} skipped"
    )
    return result


def expire_stale(store: JobStore, now: datetime = None) -> list[PostingRef]:
    """
    Time-based sweep: deactivate every active posting whose governing expiry has passed.
    Independent of any scrape run and safe to re-run.
    """
    now = _aware(now) or datetime.now(timezone.utc)
    expired = store.expired_active_postings(now)
    store.deactivate([p.id for p in expired], now)
    if expired:
        print(f"[Reconciler] ⌛ Expired {len(expired)} postings past their expiry date")
    else:
        print("[Reconciler] ⌛ No expired postings")
    return [PostingRef(source_url=p.source_url, slug=p.slug) for p in expired]
