"""
LangGraph Workflow — defines the per-employer agent graph.

Graph structure:
    planner → scraper → classifier → normalizer → llm_classifier → dedup → reconciler → notifier

One invocation is one employer run. Resources that must not live in the
state (store, fetcher, dispatcher, stop event, optional LLM) are passed in
config["configurable"].
"""

from datetime import datetime, timezone

from langgraph.graph import StateGraph, END

from agents.classifier import classifier_agent
from agents.dedup import dedup_agent
from agents.llm_classifier import llm_classifier_agent
from agents.normalizer import normalizer_agent
from agents.notifier import notifier_agent
from agents.planner import planner_agent
from agents.reconciler import reconciler_agent
from agents.scraper import scraper_agent
from models.job import EmployerConfig
from models.state import AgentState


def build_workflow() -> StateGraph:
    """
    Build and compile the LangGraph workflow.

    Returns:
        Compiled StateGraph ready to invoke.
    """
    workflow = StateGraph(AgentState)

    workflow.add_node("planner", planner_agent)
    workflow.add_node("scraper", scraper_agent)
    workflow.add_node("classifier", classifier_agent)
    workflow.add_node("normalizer", normalizer_agent)
    workflow.add_node("llm_classifier", llm_classifier_agent)
    workflow.add_node("dedup", dedup_agent)
    workflow.add_node("reconciler", reconciler_agent)
    workflow.add_node("notifier", notifier_agent)

    workflow.set_entry_point("planner")
    workflow.add_edge("planner", "scraper")
    workflow.add_edge("scraper", "classifier")
    workflow.add_edge("classifier", "normalizer")
    workflow.add_edge("normalizer", "llm_classifier")
    workflow.add_edge("llm_classifier", "dedup")
    # Runs even with an empty batch: the reconciler still owns the sweep decision
    workflow.add_edge("dedup", "reconciler")
    workflow.add_edge("reconciler", "notifier")
    workflow.add_edge("notifier", END)

    return workflow.compile()


# Pre-built graph instance
graph = build_workflow()


def initial_state(employer: EmployerConfig, max_pages: int = None, run_at: datetime = None) -> dict:
    run_at = run_at or datetime.now(timezone.utc)
    return {
        "employer": employer.model_dump(),
        "max_pages": max_pages or 0,
        "run_at": run_at.isoformat(),
        "raw_jobs": [],
        "run_complete": False,
        "unresolved_urls": [],
        "accepted_jobs": [],
        "normalized_jobs": [],
        "final_records": [],
        "reconcile_result": None,
        "skipped": [],
        "errors": [],
    }


def run_employer(
    employer: EmployerConfig,
    store=None,
    fetcher=None,
    dispatcher=None,
    max_pages: int = None,
    run_at: datetime = None,
    stop_event=None,
    llm=None,
    llm_classify: bool = None,
) -> dict:
    """
    Run the whole pipeline for one employer and return the final state.

    store=None is a dry run: scrape, classify and normalize without persisting.

    Raises:
        ConfigurationError / SourceUnreachableError: fatal for this employer.
    """
    configurable = {
        "store": store,
        "fetcher": fetcher,
        "dispatcher": dispatcher,
        "stop_event": stop_event,
        "llm": llm,
    }
    if llm_classify is not None:
        configurable["llm_classify"] = llm_classify

    return graph.invoke(
        initial_state(employer, max_pages, run_at),
        config={"configurable": configurable},
    )
