"""
Error types for the ingestion engine.

Only conditions that must abort an employer run are raised as exceptions.
Per-record problems (a failed detail fetch, a rejected listing, a failed
upsert) are reported as explicit outcome values instead.
"""


class IngestError(Exception):
    """Base error carrying whether the whole run has to stop."""

    def __init__(self, message: str, *, fatal: bool) -> None:
        super().__init__(message)
        self.fatal = fatal


class ConfigurationError(IngestError):
    """Employer config or settings violate the contract (e.g. missing search_url)."""

    def __init__(self, message: str) -> None:
        super().__init__(message, fatal=True)


class SourceUnreachableError(IngestError):
    """The employer's listing site could not be reached at all."""

    def __init__(self, message: str) -> None:
        super().__init__(message, fatal=True)


class StorageError(IngestError):
    """The persisted store cannot be opened or written."""

    def __init__(self, message: str) -> None:
        super().__init__(message, fatal=True)


class RunLockedError(IngestError):
    """Another run for the same employer holds the lock."""

    def __init__(self, employer_slug: str) -> None:
        super().__init__(f"A run for '{employer_slug}' is already in progress", fatal=False)
        self.employer_slug = employer_slug
