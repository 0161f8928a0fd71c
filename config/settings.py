"""
Configuration settings for the RN job board ingestion engine.
Loads values from .env file and provides typed access.
"""

import os
from dataclasses import dataclass, field
from dotenv import load_dotenv

# Determine project root
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
env_path = os.path.join(project_root, ".env")
load_dotenv(env_path)


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    # Storage
    db_path: str = field(
        default_factory=lambda: os.getenv(
            "DB_PATH", os.path.join(project_root, "data", "job_board.db")
        )
    )
    employers_config: str = field(
        default_factory=lambda: os.getenv(
            "EMPLOYERS_CONFIG", os.path.join(project_root, "config", "employers.yaml")
        )
    )

    # Scraping Configuration
    request_timeout: int = field(
        default_factory=lambda: int(os.getenv("REQUEST_TIMEOUT", "30"))
    )
    max_retries: int = field(
        default_factory=lambda: int(os.getenv("MAX_RETRIES", "3"))
    )
    # Seconds between consecutive requests to one source site
    request_delay: float = field(
        default_factory=lambda: float(os.getenv("REQUEST_DELAY", "2.5"))
    )
    max_pages: int = field(
        default_factory=lambda: int(os.getenv("MAX_PAGES", "25"))
    )
    empty_page_limit: int = field(
        default_factory=lambda: int(os.getenv("EMPTY_PAGE_LIMIT", "2"))
    )
    # Wall-clock budget for one employer run, in seconds
    run_timeout: int = field(
        default_factory=lambda: int(os.getenv("RUN_TIMEOUT", "3600"))
    )

    # Job lifecycle
    expiry_window_days: int = field(
        default_factory=lambda: int(os.getenv("EXPIRY_WINDOW_DAYS", "60"))
    )
    sweep_on_empty_run: bool = field(
        default_factory=lambda: _env_bool("SWEEP_ON_EMPTY_RUN")
    )
    run_lock_ttl_minutes: int = field(
        default_factory=lambda: int(os.getenv("RUN_LOCK_TTL_MINUTES", "180"))
    )
    max_workers: int = field(
        default_factory=lambda: int(os.getenv("MAX_WORKERS", "2"))
    )

    # Paths
    output_dir: str = field(
        default_factory=lambda: os.getenv("OUTPUT_DIR", "output")
    )

    # Search-engine notification (IndexNow). No key = side channel disabled.
    site_url: str = field(
        default_factory=lambda: os.getenv("SITE_URL", "https://example-rn-jobs.com")
    )
    indexnow_key: str = field(
        default_factory=lambda: os.getenv("INDEXNOW_KEY", "")
    )
    indexnow_api_url: str = field(
        default_factory=lambda: os.getenv("INDEXNOW_API_URL", "https://api.indexnow.org/indexnow")
    )
    indexnow_batch_size: int = field(
        default_factory=lambda: int(os.getenv("INDEXNOW_BATCH_SIZE", "50"))
    )
    indexnow_batch_delay: float = field(
        default_factory=lambda: float(os.getenv("INDEXNOW_BATCH_DELAY", "180"))
    )
    indexnow_tracking_file: str = field(
        default_factory=lambda: os.getenv(
            "INDEXNOW_TRACKING_FILE", os.path.join(project_root, "data", "indexnow_submitted.json")
        )
    )
    indexnow_tracking_hours: int = field(
        default_factory=lambda: int(os.getenv("INDEXNOW_TRACKING_HOURS", "24"))
    )

    # Optional LLM classification pass (any OpenAI-compatible server)
    llm_classify: bool = field(
        default_factory=lambda: _env_bool("LLM_CLASSIFY")
    )
    llm_base_url: str = field(
        default_factory=lambda: os.getenv("LLM_BASE_URL", "http://localhost:1234/v1")
    )
    llm_model_name: str = field(
        default_factory=lambda: os.getenv("LLM_MODEL_NAME", "qwen3-8b")
    )
    llm_api_key: str = field(
        default_factory=lambda: os.getenv("LLM_API_KEY", "lm-studio")
    )
    llm_temperature: float = field(
        default_factory=lambda: float(os.getenv("LLM_TEMPERATURE", "0.2"))
    )
    llm_max_tokens: int = field(
        default_factory=lambda: int(os.getenv("LLM_MAX_TOKENS", "2048"))
    )

    @property
    def notifications_enabled(self) -> bool:
        return bool(self.indexnow_key)


# Singleton instance
settings = Settings()
