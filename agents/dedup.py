"""
Dedup Agent — deterministic in-run deduplication of normalized records.
No LLM needed.
"""

from models.job import SkippedJob
from models.state import AgentState
from tools.reconciler import MAX_SLUG_LENGTH


def dedup_records(records: list[dict]) -> tuple[list[dict], list[dict]]:
    """
    Collapse records sharing a source_url (the last one wins, in its first
    position) and suffix slugs that collide within the batch.

    Returns:
        (unique_records, skipped)
    """
    by_url = {}
    order = []
    skipped = []

    for record in records:
        url = record.get("source_url", "").strip()
        title = record.get("title", "").strip()
        if not url or not title:
            skipped.append(
                SkippedJob(stage="dedup", source_url=url, title=title, reason="missing source_url or title").model_dump()
            )
            continue
        if url in by_url:
            skipped.append(
                SkippedJob(stage="dedup", source_url=url, title=title, reason="duplicate source_url in run").model_dump()
            )
        else:
            order.append(url)
        by_url[url] = record

    seen_slugs = set()
    unique = []
    for url in order:
        record = dict(by_url[url])
        slug = record["slug"]
        n = 2
        while slug in seen_slugs:
            suffix = f"-{n}"
            slug = record["slug"][: MAX_SLUG_LENGTH - len(suffix)] + suffix
            n += 1
        record["slug"] = slug
        seen_slugs.add(slug)
        unique.append(record)

    return unique, skipped


def dedup_agent(state: AgentState) -> dict:
    """Deduplicate the normalized batch before it reaches the reconciler."""
    normalized_jobs = state.get("normalized_jobs", [])

    if not normalized_jobs:
        print("[Dedup] No jobs to deduplicate")
        return {"final_records": [], "skipped": []}

    print(f"[Dedup] Processing {len(normalized_jobs)} total jobs...")

    unique, skipped = dedup_records(normalized_jobs)

    print(f"[Dedup] Removed {len(normalized_jobs) - len(unique)} duplicates")
    print(f"[Dedup] {len(unique)} unique jobs remaining")

    return {"final_records": unique, "skipped": skipped}
