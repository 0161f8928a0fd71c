"""
Job data models — raw scraped listings, the normalized record contract,
persisted postings/employers, and the per-record result types.
"""

from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class EmployerConfig(BaseModel):
    """One employer source as declared in config/employers.yaml."""

    slug: str = Field(description="URL-safe employer identifier")
    name: str = Field(description="Employer display name")
    search_url: str = Field(description="Listing/search entry URL")
    career_page_url: str = Field(default="", description="Public careers landing page")
    page_param: str = Field(default="page", description="Query parameter carrying the page index")
    page_start: int = Field(default=1, description="Index of the first listing page")
    selectors: dict[str, str] = Field(default_factory=dict)
    facility_locations: dict[str, dict[str, str]] = Field(default_factory=dict)


class JobReference(BaseModel):
    """Lightweight listing-page reference collected in phase 1."""

    title: str
    url: str


class RawJob(BaseModel):
    """A job as extracted from its detail page, before any classification."""

    title: str
    detail_url: str
    description_text: str = ""
    description_html: str = ""
    metadata: dict[str, str] = Field(default_factory=dict)


class NormalizedJob(BaseModel):
    """The canonical record handed to the reconciler (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str
    description: str
    source_url: str
    employer_name: str
    employer_slug: str
    career_page_url: str
    location: str = ""
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    is_remote: bool = False
    job_type: Optional[str] = None
    shift_type: Optional[str] = None
    specialty: Optional[str] = None
    experience_level: Optional[str] = None
    salary_min: Optional[float] = None
    salary_max: Optional[float] = None
    salary_type: Optional[Literal["hourly", "annual"]] = None
    salary_currency: str = "USD"
    salary_min_hourly: Optional[float] = None
    salary_max_hourly: Optional[float] = None
    salary_min_annual: Optional[float] = None
    salary_max_annual: Optional[float] = None
    slug: str
    meta_description: str = ""
    keywords: list[str] = Field(default_factory=list)
    source_job_id: Optional[str] = None
    posted_date: Optional[datetime] = None
    expires_date: Optional[datetime] = None
    classified_at: Optional[datetime] = None


class Employer(BaseModel):
    """Persisted employer row."""

    id: int
    slug: str
    name: str
    career_page_url: str = ""
    last_scraped: Optional[datetime] = None


class Posting(BaseModel):
    """Persisted posting row. Never hard-deleted; lifecycle lives in is_active + expiry."""

    id: int
    employer_id: int
    source_url: str
    slug: str
    title: str
    description: str
    location: str = ""
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    is_remote: bool = False
    job_type: Optional[str] = None
    shift_type: Optional[str] = None
    specialty: Optional[str] = None
    experience_level: Optional[str] = None
    salary_min: Optional[float] = None
    salary_max: Optional[float] = None
    salary_type: Optional[str] = None
    salary_currency: str = "USD"
    salary_min_hourly: Optional[float] = None
    salary_max_hourly: Optional[float] = None
    salary_min_annual: Optional[float] = None
    salary_max_annual: Optional[float] = None
    meta_description: str = ""
    keywords: list[str] = Field(default_factory=list)
    source_job_id: Optional[str] = None
    posted_date: Optional[datetime] = None
    is_active: bool = True
    expires_date: Optional[datetime] = None
    calculated_expires_date: Optional[datetime] = None
    scraped_at: datetime
    classified_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def governing_expiry(self) -> Optional[datetime]:
        """Explicit source expiry when present, otherwise the calculated one."""
        return self.expires_date or self.calculated_expires_date


class ClassificationResult(BaseModel):
    """Outcome of the RN classification filter for one listing."""

    accepted: bool
    stage: Literal["title", "context", "placeholder", "requirement", "accepted"]
    reason: str = ""


class SkippedJob(BaseModel):
    """A listing or record dropped somewhere in the pipeline, with why."""

    stage: str
    source_url: str = ""
    title: str = ""
    reason: str


class PostingRef(BaseModel):
    """Enough of a posting to address it on the public site."""

    source_url: str
    slug: str


class RecordOutcome(BaseModel):
    """Result of upserting one normalized record."""

    source_url: str
    status: Literal["created", "updated", "reactivated", "skipped"]
    reason: str = ""


class ReconcileResult(BaseModel):
    """Summary of one reconciliation batch for a single employer."""

    employer_slug: str
    run_at: datetime
    complete: bool = True
    sweep_ran: bool = False
    created: int = 0
    updated: int = 0
    reactivated: int = 0
    deactivated: int = 0
    skipped: int = 0
    outcomes: list[RecordOutcome] = Field(default_factory=list)
    activated: list[PostingRef] = Field(default_factory=list)
    deactivated_postings: list[PostingRef] = Field(default_factory=list)

    @property
    def activated_urls(self) -> list[str]:
        return [ref.source_url for ref in self.activated]

    @property
    def deactivated_urls(self) -> list[str]:
        return [ref.source_url for ref in self.deactivated_postings]
