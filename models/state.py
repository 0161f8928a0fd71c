"""
LangGraph Agent State — shared state that flows through one employer run.
"""

from typing import TypedDict, Annotated, Optional


def merge_lists(left: list, right: list) -> list:
    """Reducer that merges two lists (used for accumulating skips and errors across nodes)."""
    return left + right


class AgentState(TypedDict):
    """
    Shared state for one employer's pipeline run.
    Each agent reads from and writes to this state; the store, fetcher and
    notifier travel in the run config, not here.
    """

    # Input: the employer config (EmployerConfig as a dict) and run parameters
    employer: dict
    max_pages: int
    run_at: str

    # Scraper output: RawJob dicts plus completeness of the listing enumeration
    raw_jobs: list[dict]
    run_complete: bool
    unresolved_urls: list[str]

    # Classifier output: RawJob dicts that passed the RN filter
    accepted_jobs: list[dict]

    # Normalizer / LLM classifier output: NormalizedJob dicts
    normalized_jobs: list[dict]

    # Dedup output: the batch handed to the reconciler
    final_records: list[dict]

    # Reconciler output: ReconcileResult as a dict (None on dry runs)
    reconcile_result: Optional[dict]

    # Explicit per-record skips (SkippedJob dicts) from every stage
    skipped: Annotated[list[dict], merge_lists]

    # Accumulated non-fatal errors during processing
    errors: Annotated[list[str], merge_lists]
