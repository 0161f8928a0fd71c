"""
Notifier Agent — passes the run's activated/deactivated postings to the
notification dispatcher, if one is configured. Never affects the run's outcome.
"""

from langchain_core.runnables import RunnableConfig

from models.job import ReconcileResult
from models.state import AgentState


def notifier_agent(state: AgentState, config: RunnableConfig = None) -> dict:
    dispatcher = (config or {}).get("configurable", {}).get("dispatcher")
    result_data = state.get("reconcile_result")

    if dispatcher is None or not result_data:
        return {}

    try:
        dispatcher.dispatch(ReconcileResult(**result_data))
    except Exception as e:
        print(f"[Notifier] ⚠️  Could not queue notifications: {e}")
        return {"errors": [f"Notification dispatch failed: {e}"]}

    return {}
