"""
Normalizer Agent — maps raw career-site fields onto the canonical record.
Deterministic lookups only (tools/vocabulary.py); the optional LLM pass
lives in agents/llm_classifier.py.
"""

import re
from datetime import datetime, timezone
from typing import Optional

from langchain_core.runnables import RunnableConfig

from models.job import EmployerConfig, NormalizedJob, RawJob, SkippedJob
from models.state import AgentState
from tools.text_extractor import format_description
from tools.vocabulary import (
    DEFAULT_EXPERIENCE_LEVEL,
    build_keywords,
    build_meta_description,
    derive_salary_fields,
    detect_experience_level,
    detect_job_type,
    detect_shift_type,
    detect_specialty,
    generate_job_slug,
    normalize_experience_level,
    normalize_job_type,
    normalize_shift_type,
    normalize_specialty,
    parse_date,
    parse_location,
    parse_salary,
)


# Used when neither the source field nor the text names a job type
DEFAULT_JOB_TYPE = "full-time"

# Workday-style requisition ids at the end of a detail URL ("..._R123456")
_JOB_ID_RE = re.compile(r"[_/](R?-?\d{4,})(?:[/?#]|$)")


def _clean_title(title: str) -> str:
    return re.sub(r"\s+", " ", title or "").strip()


def _source_job_id(url: str, metadata: dict) -> Optional[str]:
    if metadata.get("job_id"):
        return metadata["job_id"].strip()
    match = _JOB_ID_RE.search(url)
    return match.group(1) if match else None


def _is_truthy(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "remote")


def normalize_job(raw: RawJob, employer: EmployerConfig, now: Optional[datetime] = None) -> NormalizedJob:
    """
    Build the canonical record for one accepted listing.

    Pure: the RawJob is not modified and the same input always yields
    the same record (now only anchors relative dates like "3 days ago").

    Raises:
        ValueError: the listing has no usable title or URL.
    """
    title = _clean_title(raw.title)
    if not title or not raw.detail_url:
        raise ValueError("listing has no title or detail URL")

    metadata = dict(raw.metadata)
    description = raw.description_text.strip() or format_description(raw.description_html)

    location = metadata.get("location", "").strip()
    place = parse_location(location, employer.facility_locations)
    is_remote = place["is_remote"] or _is_truthy(metadata.get("remote"))

    job_type = (
        normalize_job_type(metadata.get("employment_type"))
        or detect_job_type(title, description)
        or DEFAULT_JOB_TYPE
    )
    shift_type = normalize_shift_type(metadata.get("shift")) or detect_shift_type(title, description)
    specialty = normalize_specialty(metadata.get("specialty")) or detect_specialty(title, description)
    experience_level = (
        normalize_experience_level(metadata.get("experience_level"))
        or detect_experience_level(title, description)
        or DEFAULT_EXPERIENCE_LEVEL
    )

    salary_min, salary_max, salary_type = parse_salary(metadata.get("salary"))
    if salary_type is None:
        salary_min, salary_max, salary_type = parse_salary(description, require_context=True)
    salary = derive_salary_fields(salary_min, salary_max, salary_type)

    slug = generate_job_slug(title, place["city"], place["state"], employer.slug, raw.detail_url)

    return NormalizedJob(
        title=title,
        description=description,
        source_url=raw.detail_url,
        employer_name=employer.name,
        employer_slug=employer.slug,
        career_page_url=employer.career_page_url or employer.search_url,
        location=location,
        city=place["city"],
        state=place["state"],
        zip_code=place["zip_code"],
        is_remote=is_remote,
        job_type=job_type,
        shift_type=shift_type,
        specialty=specialty,
        experience_level=experience_level,
        salary_min=salary_min,
        salary_max=salary_max,
        salary_type=salary_type,
        **salary,
        slug=slug,
        meta_description=build_meta_description(
            title, place["city"], place["state"], specialty, job_type, employer.name
        ),
        keywords=build_keywords(place["city"], place["state"], specialty, employer.name),
        source_job_id=_source_job_id(raw.detail_url, metadata),
        posted_date=parse_date(metadata.get("posted_date"), now),
        expires_date=parse_date(metadata.get("expires_date"), now),
    )


def normalizer_agent(state: AgentState, config: RunnableConfig = None) -> dict:
    """
    Normalize every accepted RawJob into a NormalizedJob dict.
    A listing that cannot be normalized is skipped with a reason, never fatal.
    """
    accepted_jobs = state.get("accepted_jobs", [])
    employer = EmployerConfig(**state["employer"])
    run_at = datetime.fromisoformat(state["run_at"]) if state.get("run_at") else datetime.now(timezone.utc)

    if not accepted_jobs:
        print(f"[Normalizer] No jobs to normalize for {employer.name}")
        return {"normalized_jobs": [], "skipped": []}

    print(f"[Normalizer] Normalizing {len(accepted_jobs)} jobs from {employer.name}...")

    normalized = []
    skipped = []
    for job_data in accepted_jobs:
        raw = RawJob(**job_data)
        try:
            record = normalize_job(raw, employer, now=run_at)
            normalized.append(record.model_dump())
        except ValueError as e:
            print(f"[Normalizer] Skipping {raw.detail_url}: {e}")
            skipped.append(
                SkippedJob(stage="normalizer", source_url=raw.detail_url, title=raw.title, reason=str(e)).model_dump()
            )

    print(f"[Normalizer] Normalized {len(normalized)} jobs")

    return {"normalized_jobs": normalized, "skipped": skipped}
