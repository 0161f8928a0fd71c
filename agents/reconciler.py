"""
Reconciler Agent — hands the deduplicated batch to the job board reconciler.
The store comes from config["configurable"]["store"]; without one (dry runs)
nothing is persisted.
"""

from datetime import datetime, timezone

from langchain_core.runnables import RunnableConfig

from models.job import EmployerConfig, NormalizedJob, SkippedJob
from models.state import AgentState
from tools.reconciler import reconcile_run


def reconciler_agent(state: AgentState, config: RunnableConfig = None) -> dict:
    store = (config or {}).get("configurable", {}).get("store")
    records = state.get("final_records", [])

    if store is None:
        print(f"[Reconciler] Dry run: {len(records)} records not persisted")
        return {"reconcile_result": None}

    employer = EmployerConfig(**state["employer"])
    run_at = datetime.fromisoformat(state["run_at"]) if state.get("run_at") else datetime.now(timezone.utc)

    result = reconcile_run(
        store,
        employer,
        [NormalizedJob(**r) for r in records],
        run_at,
        complete=state.get("run_complete", False),
        unresolved_urls=state.get("unresolved_urls", []),
    )

    skipped = [
        SkippedJob(stage="reconciler", source_url=o.source_url, reason=o.reason).model_dump()
        for o in result.outcomes
        if o.status == "skipped"
    ]
    return {"reconcile_result": result.model_dump(), "skipped": skipped}
