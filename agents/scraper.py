"""
Scraper Agent — walks an employer's listing pages and fetches each job.

Two phases:
  1. Listing — request page N through an explicit page-index query
     parameter, collecting (title, url) references until max_pages or
     empty_page_limit consecutive pages without new references.
  2. Detail — fetch every reference's detail page. A failing detail page
     is skipped and reported as unresolved; it never stops the run.
"""

import time
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from langchain_core.runnables import RunnableConfig

from config.settings import settings
from models.errors import SourceUnreachableError
from models.job import EmployerConfig, JobReference, RawJob, SkippedJob
from models.state import AgentState
from tools.text_extractor import extract_detail, extract_job_links
from tools.web_scraper import PageFetcher


# Overridden per employer by the `selectors` block in config/employers.yaml
DEFAULT_SELECTORS = {
    "job_link": None,
    "description": None,
}


def build_page_url(search_url: str, page_param: str, page_index: int) -> str:
    """Set (or replace) the page-index query parameter on the search URL."""
    parsed = urlparse(search_url)
    query = [(k, v) for k, v in parse_qsl(parsed.query, keep_blank_values=True) if k != page_param]
    query.append((page_param, str(page_index)))
    return urlunparse(parsed._replace(query=urlencode(query)))


def _should_stop(stop_event, deadline, clock) -> str:
    if stop_event is not None and stop_event.is_set():
        return "stop requested"
    if deadline is not None and clock() >= deadline:
        return "run timeout reached"
    return ""


def collect_references(
    fetcher,
    employer: EmployerConfig,
    max_pages: int,
    empty_page_limit: int,
    stop_event=None,
    deadline: float = None,
    clock=time.monotonic,
) -> dict:
    """
    Phase 1: enumerate listing pages.

    Returns:
        dict with refs (list[JobReference]), complete (bool), pages (int), errors (list[str]).

    Raises:
        SourceUnreachableError: the first listing page could not be fetched.
    """
    selectors = {**DEFAULT_SELECTORS, **employer.selectors}
    seen_urls = set()
    refs = []
    errors = []
    empty_streak = 0
    complete = False
    pages = 0

    for n in range(max_pages):
        reason = _should_stop(stop_event, deadline, clock)
        if reason:
            print(f"[Scraper] ⏹️  Listing stopped early: {reason}")
            errors.append(f"Listing for {employer.name} stopped: {reason}")
            return {"refs": refs, "complete": False, "pages": pages, "errors": errors}

        page_url = build_page_url(employer.search_url, employer.page_param, employer.page_start + n)
        result = fetcher.fetch(page_url)
        pages += 1

        if not result["success"]:
            if n == 0:
                raise SourceUnreachableError(
                    f"Cannot reach listing page for {employer.name}: {result['error']}"
                )
            print(f"[Scraper] Listing page {n + 1} failed: {result['error']}")
            errors.append(f"Listing page {n + 1} failed for {employer.name}: {result['error']}")
            return {"refs": refs, "complete": False, "pages": pages, "errors": errors}

        links = extract_job_links(result["html"], page_url, selectors.get("job_link"))
        new_links = [link for link in links if link["url"] not in seen_urls]

        print(f"[Scraper] Page {n + 1}: {len(new_links)} new references (total so far: {len(refs) + len(new_links)})")

        if not new_links:
            empty_streak += 1
            if empty_streak >= empty_page_limit:
                complete = True
                break
            continue

        empty_streak = 0
        for link in new_links:
            seen_urls.add(link["url"])
            refs.append(JobReference(title=link["title"], url=link["url"]))
    else:
        # Ran out of pages: only complete if the last page had nothing new
        complete = empty_streak > 0
        if not complete:
            print(f"[Scraper] ⚠️  Reached limit of {max_pages} pages for {employer.name}: run is partial")
            errors.append(f"Reached max_pages={max_pages} for {employer.name} with results still coming")

    return {"refs": refs, "complete": complete, "pages": pages, "errors": errors}


def fetch_details(
    fetcher,
    employer: EmployerConfig,
    refs: list[JobReference],
    stop_event=None,
    deadline: float = None,
    clock=time.monotonic,
) -> dict:
    """
    Phase 2: fetch each reference's detail page.

    Returns:
        dict with raw_jobs (list[RawJob]), unresolved_urls, skipped, errors, stopped (bool).
    """
    selectors = {**DEFAULT_SELECTORS, **employer.selectors}
    raw_jobs = []
    unresolved = []
    skipped = []
    errors = []

    for i, ref in enumerate(refs):
        reason = _should_stop(stop_event, deadline, clock)
        if reason:
            print(f"[Scraper] ⏹️  Detail fetch stopped after {i}/{len(refs)} jobs: {reason}")
            errors.append(f"Detail fetch for {employer.name} stopped: {reason}")
            return {
                "raw_jobs": raw_jobs, "unresolved_urls": unresolved,
                "skipped": skipped, "errors": errors, "stopped": True,
            }

        result = fetcher.fetch(ref.url)
        if not result["success"]:
            print(f"[Scraper] Skipping {ref.url}: {result['error']}")
            unresolved.append(ref.url)
            skipped.append(
                SkippedJob(stage="scraper", source_url=ref.url, title=ref.title, reason=result["error"])
            )
            continue

        detail = extract_detail(result["html"], selectors)
        raw_jobs.append(
            RawJob(
                title=ref.title,
                detail_url=ref.url,
                description_text=detail["description_text"],
                description_html=detail["description_html"],
                metadata=detail["metadata"],
            )
        )

    return {"raw_jobs": raw_jobs, "unresolved_urls": unresolved, "skipped": skipped, "errors": errors, "stopped": False}


def paginate_employer(
    fetcher,
    employer: EmployerConfig,
    max_pages: int = None,
    empty_page_limit: int = None,
    stop_event=None,
    run_timeout: float = None,
    clock=time.monotonic,
) -> dict:
    """
    Run both phases for one employer.

    Args:
        fetcher: PageFetcher (anything with fetch(url) -> result dict).
        employer: Employer config.
        max_pages: Hard ceiling on listing pages (defaults to settings.max_pages).
        empty_page_limit: Consecutive pages without new references that end
            phase 1 (defaults to settings.empty_page_limit).
        stop_event: Optional threading.Event; when set the run ends as partial.
        run_timeout: Wall-clock budget in seconds (defaults to settings.run_timeout).

    Returns:
        dict with raw_jobs, complete, unresolved_urls, skipped, errors.

    Raises:
        SourceUnreachableError: the source could not be reached at all.
    """
    max_pages = max_pages or settings.max_pages
    empty_page_limit = empty_page_limit or settings.empty_page_limit
    run_timeout = settings.run_timeout if run_timeout is None else run_timeout
    deadline = clock() + run_timeout if run_timeout else None

    listing = collect_references(fetcher, employer, max_pages, empty_page_limit, stop_event, deadline, clock)
    print(f"[Scraper] Found {len(listing['refs'])} job references across {listing['pages']} pages")

    details = fetch_details(fetcher, employer, listing["refs"], stop_event, deadline, clock)

    return {
        "raw_jobs": details["raw_jobs"],
        "complete": listing["complete"] and not details["stopped"],
        "unresolved_urls": details["unresolved_urls"],
        "skipped": details["skipped"],
        "errors": listing["errors"] + details["errors"],
    }


def scraper_agent(state: AgentState, config: RunnableConfig = None) -> dict:
    """
    Scrape the run's employer. The fetcher and stop event come from
    config["configurable"]; a fresh PageFetcher is used when none is given.
    """
    employer = EmployerConfig(**state["employer"])
    configurable = (config or {}).get("configurable", {})
    stop_event = configurable.get("stop_event")

    print(f"[Scraper] 🌐 Scraping {employer.name} ({employer.search_url})")

    fetcher = configurable.get("fetcher")
    if fetcher is not None:
        outcome = paginate_employer(fetcher, employer, state.get("max_pages"), stop_event=stop_event)
    else:
        with PageFetcher() as own_fetcher:
            outcome = paginate_employer(own_fetcher, employer, state.get("max_pages"), stop_event=stop_event)

    status = "complete" if outcome["complete"] else "partial"
    print(
        f"[Scraper] ✅ Fetched {len(outcome['raw_jobs'])} jobs, "
        f"{len(outcome['unresolved_urls'])} unresolved ({status} run)"
    )

    return {
        "raw_jobs": [job.model_dump() for job in outcome["raw_jobs"]],
        "run_complete": outcome["complete"],
        "unresolved_urls": outcome["unresolved_urls"],
        "skipped": [s.model_dump() for s in outcome["skipped"]],
        "errors": outcome["errors"],
    }
