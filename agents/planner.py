"""
Planner Agent — validates the employer config before any request is made.
This is a deterministic agent (no LLM needed).
"""

from urllib.parse import urlparse

from pydantic import ValidationError

from config.settings import settings
from models.errors import ConfigurationError
from models.job import EmployerConfig
from models.state import AgentState


def validate_employer(employer: EmployerConfig) -> None:
    """
    Raise ConfigurationError when the employer config cannot drive a run.
    """
    if not employer.slug or not employer.name:
        raise ConfigurationError("Employer config needs both 'slug' and 'name'")
    parsed = urlparse(employer.search_url or "")
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigurationError(
            f"Employer '{employer.slug}' has no valid search_url (got '{employer.search_url}')"
        )
    if not employer.page_param:
        raise ConfigurationError(f"Employer '{employer.slug}' has an empty page_param")


def planner_agent(state: AgentState) -> dict:
    """
    Validate the employer and settle the run's page ceiling.

    Raises:
        ConfigurationError: the config violates the employer contract (fatal).
    """
    try:
        employer = EmployerConfig(**state.get("employer", {}))
    except ValidationError as e:
        raise ConfigurationError(f"Invalid employer config: {e}") from e
    validate_employer(employer)

    max_pages = state.get("max_pages") or settings.max_pages
    if max_pages < 1:
        raise ConfigurationError(f"max_pages must be at least 1 (got {max_pages})")

    print(f"[Planner] Run plan for {employer.name}:")
    print(f"  - Search URL: {employer.search_url}")
    print(f"  - Pages: up to {max_pages} (stop after {settings.empty_page_limit} empty pages)")
    print(f"  - Delay: {settings.request_delay}s between requests")

    return {"employer": employer.model_dump(), "max_pages": max_pages}
