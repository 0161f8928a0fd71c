"""
Classifier Agent — deterministic RN-role filter. No LLM needed.

Decides, per raw listing, whether it is a genuine Registered Nurse posting.
Stages run in order and the first failing stage rejects:

  1. title       — title names a different role (LPN, CNA, tech, NP, ...)
  2. context     — the description only mentions RNs as someone the role assists
  3. placeholder — description missing, too short, or boilerplate
  4. requirement — RN / R.N. / registered nurse must appear somewhere

Ambiguous listings are rejected: a missed posting costs less than a
wrong-role posting on the board. Edit the tables below, bump RULES_VERSION,
and re-run tests/test_classifier.py.
"""

import re

from models.job import ClassificationResult, RawJob, SkippedJob
from models.state import AgentState
from tools.vocabulary import phrase_pattern


RULES_VERSION = "2026.01"

MIN_DESCRIPTION_LENGTH = 500

# Other credential levels and support roles; overridden when the title also names the RN role
SUPPORT_ROLE_TITLES = phrase_pattern(
    "lpn",
    "licensed practical nurse",
    "lvn",
    "licensed vocational nurse",
    "cna",
    "certified nursing assistant",
    "stna",
    "nursing assistant",
    "nursing attendant",
    "nurse aide",
    "nurse aid",
    "home health aide",
    "patient care assistant",
    "patient care aide",
    "patient care tech",
    "patient care technician",
    "pct",
    "pcna",
    "pca",
    "nurse technician",
    "nurse tech",
    "clinical assistant",
    "clinical technician",
    "surgical technologist",
    "surgical technician",
    "surgical tech",
    "health unit coordinator",
    "unit secretary",
    "medical assistant",
    "student nurse",
    "nursing student",
    "nurse extern",
    "nurse externship",
)

# Roles that need more than an RN license; rejected even when the title also says RN
ADVANCED_PRACTICE_TITLES = phrase_pattern(
    "nurse practitioner",
    "np",
    "aprn",
    "crna",
    "nurse anesthetist",
    "clinical nurse specialist",
    "cns",
    "certified nurse midwife",
    "cnm",
    "midwife",
    "physician assistant",
)

# The credential itself, tolerant of hyphen/space/period variants
RN_MENTION = re.compile(
    r"(?<![a-z0-9])(?:rns?|r\.\s?n\.?|registered[\s\-]+nurses?)(?![a-z0-9])",
    re.IGNORECASE,
)

_CREDENTIAL = r"(?:rns?|r\.\s?n\.?|registered[\s\-]+nurses?)"

# Spans also take in a trailing alias: "registered nurse (RN)", "RN/registered nurse"
_RN = (
    r"(?:a\s+|an\s+|the\s+)?" + _CREDENTIAL + r"(?![a-z0-9])"
    r"(?:\s*[(/]\s*" + _CREDENTIAL + r"(?![a-z0-9])\s*\)?)?"
)

# "assists the RN", "under the supervision of a registered nurse", ...
CONTEXT_EXCLUSIONS = (
    re.compile(r"\b(?:assists?|assisting|aids?|aiding)\s+(?:with\s+|to\s+)?" + _RN, re.IGNORECASE),
    re.compile(r"\b(?:supports?|supporting|helps?|helping)\s+" + _RN, re.IGNORECASE),
    re.compile(r"\b(?:works?|working)\s+(?:closely\s+)?(?:with|alongside)\s+" + _RN, re.IGNORECASE),
    re.compile(r"\b(?:reports?|reporting)\s+to\s+" + _RN, re.IGNORECASE),
    re.compile(
        r"\bunder\s+the\s+(?:direct\s+|general\s+)?(?:supervision|direction|delegation)\s+of\s+" + _RN,
        re.IGNORECASE,
    ),
    re.compile(r"\bunder\s+(?:direct\s+|general\s+)?(?:supervision|direction)\s+of\s+" + _RN, re.IGNORECASE),
    re.compile(r"\b(?:supervised|directed|delegated)\s+by\s+" + _RN, re.IGNORECASE),
)

PLACEHOLDER_PATTERNS = (
    re.compile(r"job description is being updated", re.IGNORECASE),
    re.compile(r"please visit (?:the )?employer(?:'s)? website", re.IGNORECASE),
    re.compile(r"description coming soon", re.IGNORECASE),
    re.compile(r"description to be added", re.IGNORECASE),
    re.compile(r"details to follow", re.IGNORECASE),
    re.compile(r"job description not available", re.IGNORECASE),
    re.compile(r"description will be updated", re.IGNORECASE),
    re.compile(r"^\s*(?:job\s+)?description\s*:?\s*$", re.IGNORECASE),
    re.compile(r"^\s*details\s*$", re.IGNORECASE),
    re.compile(r"^\s*n/?a\b", re.IGNORECASE),
    re.compile(r"^\s*not available", re.IGNORECASE),
)


def _title_names_rn(title: str) -> bool:
    return bool(RN_MENTION.search(title))


def check_title(title: str) -> ClassificationResult:
    match = ADVANCED_PRACTICE_TITLES.search(title)
    if match:
        return ClassificationResult(
            accepted=False, stage="title", reason=f"advanced practice role in title: '{match.group(0)}'"
        )
    match = SUPPORT_ROLE_TITLES.search(title)
    if match and not _title_names_rn(title):
        return ClassificationResult(
            accepted=False, stage="title", reason=f"non-RN role in title: '{match.group(0)}'"
        )
    return ClassificationResult(accepted=True, stage="accepted")


def check_context(title: str, description: str) -> ClassificationResult:
    """Reject when every RN mention in the description sits inside an excluding phrase."""
    if _title_names_rn(title):
        return ClassificationResult(accepted=True, stage="accepted")

    mentions = [m.span() for m in RN_MENTION.finditer(description)]
    if not mentions:
        return ClassificationResult(accepted=True, stage="accepted")

    excluded_spans = [m.span() for pattern in CONTEXT_EXCLUSIONS for m in pattern.finditer(description)]
    if not excluded_spans:
        return ClassificationResult(accepted=True, stage="accepted")

    def inside(span):
        return any(start <= span[0] and span[1] <= end for start, end in excluded_spans)

    if all(inside(span) for span in mentions):
        return ClassificationResult(
            accepted=False, stage="context", reason="RN only mentioned as a role this position supports"
        )
    return ClassificationResult(accepted=True, stage="accepted")


def check_placeholder(description: str) -> ClassificationResult:
    text = (description or "").strip()
    if not text:
        return ClassificationResult(accepted=False, stage="placeholder", reason="empty description")
    for pattern in PLACEHOLDER_PATTERNS:
        if pattern.search(text):
            return ClassificationResult(
                accepted=False, stage="placeholder", reason=f"placeholder text: '{pattern.pattern}'"
            )
    if len(text) < MIN_DESCRIPTION_LENGTH:
        return ClassificationResult(
            accepted=False, stage="placeholder",
            reason=f"description too short ({len(text)} < {MIN_DESCRIPTION_LENGTH} chars)",
        )
    return ClassificationResult(accepted=True, stage="accepted")


def check_requirement(title: str, description: str) -> ClassificationResult:
    if RN_MENTION.search(title) or RN_MENTION.search(description):
        return ClassificationResult(accepted=True, stage="accepted")
    return ClassificationResult(
        accepted=False, stage="requirement", reason="no RN / registered nurse requirement found"
    )


def classify_job(title: str, description: str) -> ClassificationResult:
    """
    Run the four stages in order. Pure: same input, same answer.

    Args:
        title: Listing title as scraped.
        description: Plain-text description.

    Returns:
        ClassificationResult; stage names the first failing stage, or "accepted".
    """
    title = title or ""
    description = description or ""
    for result in (
        check_title(title),
        check_context(title, description),
        check_placeholder(description),
        check_requirement(title, description),
    ):
        if not result.accepted:
            return result
    return ClassificationResult(accepted=True, stage="accepted")


def classifier_agent(state: AgentState) -> dict:
    """
    Filter the scraped RawJobs down to genuine RN postings.
    Every rejection is recorded as a SkippedJob with its stage and reason.
    """
    raw_jobs = state.get("raw_jobs", [])

    if not raw_jobs:
        print("[Classifier] No jobs to classify")
        return {"accepted_jobs": [], "skipped": []}

    print(f"[Classifier] Classifying {len(raw_jobs)} jobs (rules {RULES_VERSION})...")

    accepted = []
    skipped = []
    per_stage = {}

    for job_data in raw_jobs:
        job = RawJob(**job_data)
        result = classify_job(job.title, job.description_text)
        if result.accepted:
            accepted.append(job_data)
            continue
        per_stage[result.stage] = per_stage.get(result.stage, 0) + 1
        skipped.append(
            SkippedJob(
                stage=f"classifier:{result.stage}",
                source_url=job.detail_url,
                title=job.title,
                reason=result.reason,
            ).model_dump()
        )

    print(f"[Classifier] ✅ {len(accepted)} accepted, {len(skipped)} rejected")
    for stage, count in sorted(per_stage.items()):
        print(f"  - {stage}: {count}")

    return {"accepted_jobs": accepted, "skipped": skipped}
