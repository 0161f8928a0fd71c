"""
Vocabulary Tool — canonical enumerations and the lookup tables that map raw
career-site wording onto them.

Every table here is data, not logic: change a mapping, bump
VOCABULARY_VERSION, and re-run tests/test_vocabulary.py.
"""

import hashlib
import re
from datetime import datetime, timedelta, timezone
from typing import Optional


VOCABULARY_VERSION = "2026.01"

HOURS_PER_YEAR = 2080


# ── Canonical enumerations ───────────────────────────────────────

JOB_TYPES = ("full-time", "part-time", "per-diem", "contract", "travel")

SHIFT_TYPES = ("days", "nights", "evenings", "rotating", "variable")

EXPERIENCE_LEVELS = ("new-grad", "experienced", "leadership")

SPECIALTIES = (
    "Ambulatory",
    "Cardiac",
    "Case Management",
    "Cath Lab",
    "Clinical Documentation",
    "Correctional",
    "Dialysis",
    "Endoscopy",
    "ER",
    "Float Pool",
    "General Nursing",
    "Geriatrics",
    "Home Health",
    "Hospice",
    "ICU",
    "Infusion",
    "Labor & Delivery",
    "Maternity",
    "Med-Surg",
    "Mental Health",
    "Neurology",
    "NICU",
    "Nurse Educator",
    "Oncology",
    "OR",
    "PACU",
    "Pediatrics",
    "Quality Assurance",
    "Radiology",
    "Rehabilitation",
    "School",
    "Stepdown",
    "Telehealth",
    "Telemetry",
    "Transplant",
    "Utilization Review",
    "Wound Care",
)

DEFAULT_SPECIALTY = "General Nursing"
DEFAULT_EXPERIENCE_LEVEL = "experienced"


# ── Locations ────────────────────────────────────────────────────

STATE_NAMES = {
    "AL": "Alabama", "AK": "Alaska", "AZ": "Arizona", "AR": "Arkansas",
    "CA": "California", "CO": "Colorado", "CT": "Connecticut", "DE": "Delaware",
    "FL": "Florida", "GA": "Georgia", "HI": "Hawaii", "ID": "Idaho",
    "IL": "Illinois", "IN": "Indiana", "IA": "Iowa", "KS": "Kansas",
    "KY": "Kentucky", "LA": "Louisiana", "ME": "Maine", "MD": "Maryland",
    "MA": "Massachusetts", "MI": "Michigan", "MN": "Minnesota", "MS": "Mississippi",
    "MO": "Missouri", "MT": "Montana", "NE": "Nebraska", "NV": "Nevada",
    "NH": "New Hampshire", "NJ": "New Jersey", "NM": "New Mexico", "NY": "New York",
    "NC": "North Carolina", "ND": "North Dakota", "OH": "Ohio", "OK": "Oklahoma",
    "OR": "Oregon", "PA": "Pennsylvania", "RI": "Rhode Island", "SC": "South Carolina",
    "SD": "South Dakota", "TN": "Tennessee", "TX": "Texas", "UT": "Utah",
    "VT": "Vermont", "VA": "Virginia", "WA": "Washington", "WV": "West Virginia",
    "WI": "Wisconsin", "WY": "Wyoming", "DC": "District of Columbia",
}

# Older postings and some ATS exports use these instead of USPS codes
STATE_ABBREVIATIONS = {
    "calif": "CA", "cal": "CA", "conn": "CT", "del": "DE", "fla": "FL",
    "ill": "IL", "ind": "IN", "kan": "KS", "ken": "KY", "mass": "MA",
    "mich": "MI", "minn": "MN", "miss": "MS", "neb": "NE", "nev": "NV",
    "ore": "OR", "tenn": "TN", "tex": "TX", "wash": "WA", "wva": "WV",
    "wisc": "WI", "wyo": "WY", "d.c.": "DC", "washington dc": "DC",
    "washington d.c.": "DC",
}

_STATE_BY_NAME = {name.lower(): code for code, name in STATE_NAMES.items()}

_CITY_PREFIXES = {"st": "St.", "st.": "St.", "ft": "Ft.", "ft.": "Ft.", "mt": "Mt.", "mt.": "Mt."}

_REMOTE_RE = re.compile(r"\b(remote|work from home|telecommute|virtual)\b", re.IGNORECASE)


def _key(value: str) -> str:
    """Case-, hyphen- and whitespace-insensitive lookup key."""
    text = value.lower().strip()
    text = re.sub(r"[-_]+", " ", text)
    return re.sub(r"\s+", " ", text)


def normalize_state(value: Optional[str]) -> Optional[str]:
    """Map a state name or abbreviation to its 2-letter code (None if unknown)."""
    if not value:
        return None
    cleaned = value.strip().rstrip(".")
    if cleaned.upper() in STATE_NAMES:
        return cleaned.upper()
    for candidate in (value.strip(), cleaned):
        lowered = re.sub(r"\s+", " ", candidate.lower())
        code = _STATE_BY_NAME.get(lowered) or STATE_ABBREVIATIONS.get(lowered)
        if code:
            return code
    return None


def state_full_name(code: Optional[str]) -> Optional[str]:
    if not code:
        return None
    return STATE_NAMES.get(code.upper())


def normalize_city(value: Optional[str]) -> Optional[str]:
    """Title-case a city name, canonicalising St./Ft./Mt. prefixes."""
    if not value or not value.strip():
        return None
    words = []
    for word in value.strip().split():
        lowered = word.lower()
        if lowered in _CITY_PREFIXES:
            words.append(_CITY_PREFIXES[lowered])
        else:
            words.append("-".join(part[:1].upper() + part[1:].lower() for part in word.split("-")))
    return " ".join(words)


def normalize_zip_code(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    digits = re.sub(r"\D", "", value)
    return digits[:5] if len(digits) >= 5 else None


def parse_location(value: Optional[str], facility_locations: Optional[dict] = None) -> dict:
    """
    Split a raw location string into canonical parts.

    Handles "City, ST", "City, ST 12345", "City, State", "ST - City",
    "Remote" and facility names listed in the employer config.

    Returns:
        dict with keys city, state, zip_code, is_remote.
    """
    result = {"city": None, "state": None, "zip_code": None, "is_remote": False}
    if not value or not value.strip():
        return result

    text = re.sub(r"\s+", " ", value.strip())
    result["is_remote"] = bool(_REMOTE_RE.search(text))

    for facility, place in (facility_locations or {}).items():
        if facility.lower() in text.lower():
            result["city"] = normalize_city(place.get("city"))
            result["state"] = normalize_state(place.get("state"))
            return result

    zip_match = re.search(r"\b(\d{5})(?:-\d{4})?\b", text)
    if zip_match:
        result["zip_code"] = zip_match.group(1)
        text = (text[: zip_match.start()] + text[zip_match.end():]).strip(" ,")

    # Workday style: "NY - Rochester" or "Rochester - NY"
    dash_parts = [p.strip() for p in re.split(r"\s+-\s+", text) if p.strip()]
    if len(dash_parts) == 2:
        first, second = dash_parts
        if normalize_state(first) and not normalize_state(second):
            result["state"], result["city"] = normalize_state(first), normalize_city(second)
            return result
        if normalize_state(second):
            result["city"], result["state"] = normalize_city(first), normalize_state(second)
            return result

    parts = [p.strip() for p in text.split(",") if p.strip()]
    if len(parts) >= 2:
        # Drop a trailing country ("Boston, MA, USA")
        if parts[-1].lower() in ("us", "usa", "united states", "united states of america"):
            parts = parts[:-1]
    if len(parts) >= 2:
        state = normalize_state(parts[1]) or normalize_state(parts[1].split(" ")[0])
        if state:
            city = None if _REMOTE_RE.fullmatch(parts[0]) else normalize_city(parts[0])
            result["city"], result["state"] = city, state
            return result

    # Last resort: a bare 2-letter code somewhere in the string
    code_match = re.search(r"\b([A-Z]{2})\b", text)
    if code_match and code_match.group(1) in STATE_NAMES:
        result["state"] = code_match.group(1)
        city_part = text[: code_match.start()].strip(" ,-")
        if city_part and not _REMOTE_RE.fullmatch(city_part):
            result["city"] = normalize_city(city_part)
    elif len(parts) == 1 and normalize_state(parts[0]):
        result["state"] = normalize_state(parts[0])
    return result


# ── Job type ─────────────────────────────────────────────────────

JOB_TYPE_ALIASES = {
    "full time": "full-time",
    "fulltime": "full-time",
    "ft": "full-time",
    "f/t": "full-time",
    "f.t.": "full-time",
    "regular full time": "full-time",
    "part time": "part-time",
    "parttime": "part-time",
    "pt": "part-time",
    "p/t": "part-time",
    "p.t.": "part-time",
    "regular part time": "part-time",
    "per diem": "per-diem",
    "perdiem": "per-diem",
    "prn": "per-diem",
    "as needed": "per-diem",
    "casual": "per-diem",
    "contract": "contract",
    "temporary": "contract",
    "temp": "contract",
    "seasonal": "contract",
    "travel": "travel",
    "traveler": "travel",
    "travel nurse": "travel",
}

_JOB_TYPE_TITLE_PATTERNS = (
    ("per-diem", re.compile(r"\b(per[\s\-]?diem|prn)\b", re.IGNORECASE)),
    ("travel", re.compile(r"\btravel(er|ing)?\b", re.IGNORECASE)),
    ("contract", re.compile(r"\b(contract|temporary|temp)\b", re.IGNORECASE)),
    ("part-time", re.compile(r"\bpart[\s\-]?time\b", re.IGNORECASE)),
    ("full-time", re.compile(r"\bfull[\s\-]?time\b", re.IGNORECASE)),
)


def normalize_job_type(value: Optional[str]) -> Optional[str]:
    """Map a raw employment-type string to a canonical job type (None if unknown)."""
    if not value:
        return None
    key = _key(value)
    if key in JOB_TYPE_ALIASES:
        return JOB_TYPE_ALIASES[key]
    # "Full time (40 hours)", "Part-Time, Days"
    for canonical, pattern in _JOB_TYPE_TITLE_PATTERNS:
        if pattern.search(value):
            return canonical
    return None


def detect_job_type(title: str, description: str = "") -> Optional[str]:
    """Infer job type from the title, or from the description when it names exactly one."""
    for canonical, pattern in _JOB_TYPE_TITLE_PATTERNS:
        if pattern.search(title or ""):
            return canonical
    found = {canonical for canonical, pattern in _JOB_TYPE_TITLE_PATTERNS if pattern.search(description or "")}
    if len(found) == 1:
        return found.pop()
    return None


# ── Shift type ───────────────────────────────────────────────────

SHIFT_TYPE_ALIASES = {
    "day": "days",
    "days": "days",
    "day shift": "days",
    "first shift": "days",
    "1st shift": "days",
    "night": "nights",
    "nights": "nights",
    "night shift": "nights",
    "third shift": "nights",
    "3rd shift": "nights",
    "overnight": "nights",
    "evening": "evenings",
    "evenings": "evenings",
    "evening shift": "evenings",
    "second shift": "evenings",
    "2nd shift": "evenings",
    "rotating": "rotating",
    "rotating shift": "rotating",
    "days/nights": "rotating",
    "day/night": "rotating",
    "variable": "variable",
    "various": "variable",
    "varies": "variable",
    "flexible": "variable",
    "all shifts": "variable",
    "multiple shifts": "variable",
}

_SHIFT_PATTERNS = (
    ("rotating", re.compile(r"\brotating\b|\bdays?\s*/\s*nights?\b", re.IGNORECASE)),
    ("variable", re.compile(r"\b(variable|various|all)\s+shifts?\b", re.IGNORECASE)),
    ("nights", re.compile(r"\bnights?\s+shift\b|\bnights\b|\bovernight\b", re.IGNORECASE)),
    ("evenings", re.compile(r"\bevenings?\s+shift\b|\bevenings\b", re.IGNORECASE)),
    ("days", re.compile(r"\bdays?\s+shift\b|\bdays\b", re.IGNORECASE)),
)


def normalize_shift_type(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    key = _key(value)
    if key in SHIFT_TYPE_ALIASES:
        return SHIFT_TYPE_ALIASES[key]
    return detect_shift_type(value)


def detect_shift_type(title: str, description: str = "") -> Optional[str]:
    """Shift named in the title wins; several distinct shifts in the description mean variable."""
    for canonical, pattern in _SHIFT_PATTERNS:
        if pattern.search(title or ""):
            return canonical
    found = [canonical for canonical, pattern in _SHIFT_PATTERNS if pattern.search(description or "")]
    if len(found) == 1:
        return found[0]
    if len(found) > 1:
        return "rotating" if "rotating" in found else "variable"
    return None


# ── Specialty ────────────────────────────────────────────────────

SPECIALTY_ALIASES = {
    # Legacy tag, folded into the catch-all
    "all specialties": "General Nursing",
    "all specialities": "General Nursing",
    "multi specialty": "General Nursing",
    "general": "General Nursing",
    "inpatient": "General Nursing",
    "leadership": "General Nursing",
    "other": "General Nursing",
    "travel": "General Nursing",
    "travel nurse": "General Nursing",
    "travel nursing": "General Nursing",
    # L&D
    "l&d": "Labor & Delivery",
    "l & d": "Labor & Delivery",
    "l and d": "Labor & Delivery",
    "labor and delivery": "Labor & Delivery",
    "labor delivery": "Labor & Delivery",
    "ob/gyn": "Labor & Delivery",
    "obgyn": "Labor & Delivery",
    "obstetrics": "Labor & Delivery",
    "women's services": "Labor & Delivery",
    # Maternity
    "postpartum": "Maternity",
    "mother baby": "Maternity",
    "newborn nursery": "Maternity",
    # Mental health
    "psychiatric": "Mental Health",
    "psych": "Mental Health",
    "psychiatry": "Mental Health",
    "behavioral health": "Mental Health",
    # Rehab
    "rehab": "Rehabilitation",
    # ER
    "ed": "ER",
    "emergency": "ER",
    "emergency department": "ER",
    "emergency room": "ER",
    "triage": "ER",
    # Neuro
    "neuro": "Neurology",
    "neuroscience": "Neurology",
    "neurosurgery": "Neurology",
    # Cardiac
    "cardiac care": "Cardiac",
    "cardiovascular": "Cardiac",
    "cardiology": "Cardiac",
    "cardiac surgery": "Cardiac",
    "cv": "Cardiac",
    # ICU
    "critical care": "ICU",
    "intensive care": "ICU",
    "ccu": "ICU",
    "micu": "ICU",
    "sicu": "ICU",
    "picu": "ICU",
    "cardiac icu": "ICU",
    # OR
    "operating room": "OR",
    "surgery": "OR",
    "surgical": "OR",
    "perioperative": "OR",
    "or/perioperative": "OR",
    "crna": "OR",
    # Med-Surg
    "med surg": "Med-Surg",
    "medsurg": "Med-Surg",
    "med/surg": "Med-Surg",
    "medical surgical": "Med-Surg",
    "orthopedics": "Med-Surg",
    "orthopedic": "Med-Surg",
    "ortho": "Med-Surg",
    # PACU
    "post anesthesia": "PACU",
    "recovery room": "PACU",
    # Ambulatory
    "outpatient": "Ambulatory",
    "clinic": "Ambulatory",
    # Radiology
    "interventional radiology": "Radiology",
    "ir": "Radiology",
    # Geriatrics
    "geriatric": "Geriatrics",
    "elderly care": "Geriatrics",
    "long term care": "Geriatrics",
    "ltc": "Geriatrics",
    "skilled nursing": "Geriatrics",
    "snf": "Geriatrics",
    # Pediatrics
    "pediatric": "Pediatrics",
    "peds": "Pediatrics",
    # Oncology
    "cancer": "Oncology",
    "cancer care": "Oncology",
    # Telemetry
    "tele": "Telemetry",
    # Stepdown (Progressive Care was merged into it)
    "pcu": "Stepdown",
    "progressive": "Stepdown",
    "progressive care": "Stepdown",
    "step down": "Stepdown",
    # Cath lab
    "cath": "Cath Lab",
    "cardiac cath": "Cath Lab",
    "catheterization": "Cath Lab",
    # Case management
    "case manager": "Case Management",
    "care management": "Case Management",
    "care coordination": "Case Management",
    # Home health (Home Care was merged into it)
    "home care": "Home Health",
    "homecare": "Home Health",
    "home healthcare": "Home Health",
    "visiting nurse": "Home Health",
    # School
    "school nurse": "School",
    "school nursing": "School",
    # Correctional
    "corrections": "Correctional",
    "prison": "Correctional",
    "jail": "Correctional",
    # Float
    "float": "Float Pool",
    "floating": "Float Pool",
    "resource pool": "Float Pool",
    # Wound
    "wound": "Wound Care",
    "ostomy": "Wound Care",
    # Utilization review
    "utilization management": "Utilization Review",
    "prior authorization": "Utilization Review",
    "concurrent review": "Utilization Review",
    # Telehealth
    "telemedicine": "Telehealth",
    "virtual care": "Telehealth",
    "telephone triage": "Telehealth",
    # Clinical documentation
    "cdi": "Clinical Documentation",
    "clinical documentation improvement": "Clinical Documentation",
    # Quality
    "quality improvement": "Quality Assurance",
    "patient safety": "Quality Assurance",
    "risk management": "Quality Assurance",
    # Education
    "education": "Nurse Educator",
    "clinical educator": "Nurse Educator",
    "staff development": "Nurse Educator",
}

_SPECIALTY_BY_KEY = {_key(name): name for name in SPECIALTIES}
_SPECIALTY_ALIAS_BY_KEY = {_key(alias): name for alias, name in SPECIALTY_ALIASES.items()}


def lookup_specialty(value: Optional[str]) -> Optional[str]:
    """Canonical specialty for a known name or alias, else None."""
    if not value or not value.strip():
        return None
    key = _key(value)
    return _SPECIALTY_BY_KEY.get(key) or _SPECIALTY_ALIAS_BY_KEY.get(key)


def normalize_specialty(value: Optional[str]) -> Optional[str]:
    """
    Map a raw specialty tag to the canonical list.

    Unrecognised non-empty values fall back to DEFAULT_SPECIALTY; this
    conflates genuinely unknown units with general positions.
    """
    if not value or not value.strip():
        return None
    return lookup_specialty(value) or DEFAULT_SPECIALTY


def phrase_pattern(*phrases: str) -> re.Pattern:
    """Word-bounded, hyphen/space-tolerant alternation of phrases."""
    parts = []
    for phrase in phrases:
        words = [re.escape(w) for w in re.split(r"[\s\-]+", phrase)]
        parts.append(r"[\s\-]*".join(words))
    return re.compile(r"(?<![a-z0-9])(?:" + "|".join(parts) + r")(?![a-z0-9])", re.IGNORECASE)


# Checked in order against the title; most specific first
TITLE_SPECIALTY_RULES = (
    ("Float Pool", phrase_pattern("float", "floating", "float pool", "resource pool", "multi specialty", "multiple specialties")),
    ("General Nursing", phrase_pattern("all specialties", "all specialities", "various specialties")),
    ("Labor & Delivery", phrase_pattern("labor and delivery", "labor & delivery", "l&d", "l & d")),
    ("Maternity", phrase_pattern("maternity", "postpartum", "mother baby", "newborn nursery")),
    ("NICU", phrase_pattern("nicu", "neonatal intensive care")),
    ("PACU", phrase_pattern("pacu", "post anesthesia", "recovery room")),
    ("Cath Lab", phrase_pattern("cath lab", "cardiac cath", "catheterization")),
    ("OR", phrase_pattern("operating room", "perioperative", "periop", "surgical services", "circulator")),
    # Uppercase only, lowercase "or" is a conjunction in titles
    ("OR", re.compile(r"(?<![A-Za-z])OR(?![A-Za-z])")),
    ("Stepdown", phrase_pattern("progressive care", "stepdown", "step down", "pcu")),
    ("ICU", phrase_pattern("intensive care", "icu", "micu", "sicu", "ccu", "critical care")),
    ("ER", phrase_pattern("emergency", "emergency department", "er nurse", "er rn", "ed rn")),
    ("Dialysis", phrase_pattern("dialysis", "hemodialysis")),
    ("Endoscopy", phrase_pattern("endoscopy", "gi lab")),
    ("Infusion", phrase_pattern("infusion")),
    ("Transplant", phrase_pattern("transplant")),
    ("Wound Care", phrase_pattern("wound care", "wound ostomy")),
    ("Radiology", phrase_pattern("radiology", "interventional radiology")),
    ("Oncology", phrase_pattern("oncology", "cancer")),
    ("Cardiac", phrase_pattern("cardiac", "cardiology", "cardiovascular")),
    ("Telemetry", phrase_pattern("telemetry")),
    ("Neurology", phrase_pattern("neurology", "neuroscience", "neuro")),
    ("Med-Surg", phrase_pattern("med surg", "medsurg", "medical surgical", "med/surg", "orthopedic", "orthopedics")),
    ("Pediatrics", phrase_pattern("pediatric", "pediatrics", "peds")),
    ("Geriatrics", phrase_pattern("geriatric", "geriatrics", "long term care", "skilled nursing")),
    ("Mental Health", phrase_pattern("mental health", "psychiatric", "psych", "behavioral health")),
    ("Rehabilitation", phrase_pattern("rehab", "rehabilitation")),
    ("Case Management", phrase_pattern("case management", "case manager", "care coordination")),
    ("Utilization Review", phrase_pattern("utilization review", "utilization management")),
    ("Clinical Documentation", phrase_pattern("clinical documentation", "cdi specialist")),
    ("Quality Assurance", phrase_pattern("quality assurance", "quality improvement", "patient safety")),
    ("Nurse Educator", phrase_pattern("nurse educator", "clinical educator", "staff development")),
    ("Telehealth", phrase_pattern("telehealth", "telemedicine", "virtual care", "telephone triage")),
    ("School", phrase_pattern("school nurse", "school nursing")),
    ("Correctional", phrase_pattern("correctional", "corrections", "detention")),
    ("Ambulatory", phrase_pattern("ambulatory", "outpatient", "clinic")),
    ("Home Health", phrase_pattern("home health", "home care", "homecare", "visiting nurse")),
    ("Hospice", phrase_pattern("hospice", "palliative")),
)

# Description mentions are noisier: only unit names that rarely appear in passing.
# ER/ICU come before NICU so "accepts NICU transfers" in an ED posting stays ER.
DESCRIPTION_SPECIALTY_RULES = (
    ("Float Pool", phrase_pattern("float pool", "resource pool")),
    ("ER", phrase_pattern("emergency room", "emergency department", "emergency dept", "emergency nursing")),
    ("ICU", phrase_pattern("intensive care unit", "critical care unit", "icu")),
    ("Labor & Delivery", phrase_pattern("labor and delivery", "labor & delivery")),
    ("Maternity", phrase_pattern("maternity", "postpartum", "newborn nursery")),
    ("NICU", phrase_pattern("nicu", "neonatal intensive care")),
    ("PACU", phrase_pattern("pacu", "post anesthesia care", "recovery room")),
    ("Stepdown", phrase_pattern("progressive care", "stepdown", "step down unit")),
    ("Dialysis", phrase_pattern("dialysis unit", "hemodialysis")),
    ("Radiology", phrase_pattern("interventional radiology")),
    ("Oncology", phrase_pattern("oncology", "cancer care")),
    ("Telemetry", phrase_pattern("telemetry")),
    ("Med-Surg", phrase_pattern("med surg", "medical surgical", "medsurg")),
    ("Pediatrics", phrase_pattern("pediatric unit", "pediatrics")),
    ("Mental Health", phrase_pattern("behavioral health", "psychiatric unit", "inpatient psychiatry")),
    ("Rehabilitation", phrase_pattern("inpatient rehabilitation", "rehab unit")),
    ("Home Health", phrase_pattern("home health")),
    ("Hospice", phrase_pattern("hospice", "palliative care")),
)


def detect_specialty(title: str, description: str = "") -> str:
    """Title rules first, then the conservative description rules, else the catch-all."""
    for specialty, pattern in TITLE_SPECIALTY_RULES:
        if pattern.search(title or ""):
            return specialty
    for specialty, pattern in DESCRIPTION_SPECIALTY_RULES:
        if pattern.search(description or ""):
            return specialty
    return DEFAULT_SPECIALTY


# ── Experience level ─────────────────────────────────────────────

EXPERIENCE_LEVEL_ALIASES = {
    "new grad": "new-grad",
    "newgrad": "new-grad",
    "new graduate": "new-grad",
    "graduate nurse": "new-grad",
    "gn": "new-grad",
    "residency": "new-grad",
    "experienced": "experienced",
    # Entry Level and Senior were merged into Experienced
    "entry level": "experienced",
    "entrylevel": "experienced",
    "entry": "experienced",
    "senior": "experienced",
    "senior rn": "experienced",
    "leadership": "leadership",
    "lead": "leadership",
    "manager": "leadership",
    "charge": "leadership",
    "charge nurse": "leadership",
    "director": "leadership",
    "coordinator": "leadership",
    "supervisor": "leadership",
}

_LEADERSHIP_TITLE_RE = re.compile(
    r"\b(manager|director|supervisor|chief|head nurse|charge nurse|charge rn|lead rn|lead nurse"
    r"|clinical coordinator|assistant nurse manager|team lead)\b",
    re.IGNORECASE,
)
_NEW_GRAD_TITLE_RE = re.compile(
    r"\b(new[\s\-]?grad(uate)?|graduate nurse|gn|residency|fellowship|newly licensed|entry[\s\-]level)\b",
    re.IGNORECASE,
)
_NEW_GRAD_TEXT_RE = re.compile(
    r"\b(new[\s\-]?grad(uate)?s?( nurses?)? (are )?welcome|new graduate|no (prior )?experience required"
    r"|newly licensed rn|nurse residency program)\b",
    re.IGNORECASE,
)
_YEARS_NEARBY_RE = re.compile(r"\d+\s*\+?\s*years?\s+(of\s+)?experience", re.IGNORECASE)
_REQUIRED_YEARS_RE = re.compile(
    r"\b(?:requires?|must\s+have|minimum\s+(?:of\s+)?)\s*(?:a\s+minimum\s+of\s+)?(\d+)\s*\+?\s*years?\s+"
    r"(?:of\s+)?(?:rn\s+|recent\s+|acute\s+care\s+)?(?:nursing\s+)?experience(?:\s+(?:is\s+)?(required|needed|preferred))?",
    re.IGNORECASE,
)


def normalize_experience_level(value: Optional[str]) -> Optional[str]:
    """Map a raw level to the three-level taxonomy; unknown non-empty values become experienced."""
    if not value or not value.strip():
        return None
    key = _key(value)
    if key in EXPERIENCE_LEVEL_ALIASES:
        return EXPERIENCE_LEVEL_ALIASES[key]
    if any(word in key for word in ("manager", "director", "lead", "charge", "supervisor", "coordinator")):
        return "leadership"
    return DEFAULT_EXPERIENCE_LEVEL


def detect_experience_level(title: str, description: str = "") -> Optional[str]:
    """
    Conservative experience-level detection.

    Only clear signals count: leadership words or new-grad wording in the
    title, explicit new-grad language in the description without a years
    requirement next to it, or a *required* (not preferred) years figure.
    Anything else returns None.
    """
    title = title or ""
    text = description or ""
    if _LEADERSHIP_TITLE_RE.search(title):
        return "leadership"
    if _NEW_GRAD_TITLE_RE.search(title):
        return "new-grad"

    match = _NEW_GRAD_TEXT_RE.search(text)
    if match:
        context = text[max(0, match.start() - 50): match.end() + 100]
        if not _YEARS_NEARBY_RE.search(context):
            return "new-grad"

    for match in _REQUIRED_YEARS_RE.finditer(text):
        qualifier = (match.group(2) or "").lower()
        context = text[max(0, match.start() - 30): match.end() + 30].lower()
        if qualifier == "preferred" or "preferred" in context or "preferably" in context:
            continue
        years = int(match.group(1))
        if years <= 1:
            return "new-grad"
        if years <= 20:
            return "experienced"
    return None


# ── Salary ───────────────────────────────────────────────────────

_NUMBER = r"(\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?)"
_SALARY_RANGE_RE = re.compile(
    r"\$\s?" + _NUMBER + r"\s?([kK])?\s*(?:-|–|—|to)\s*\$?\s?" + _NUMBER + r"\s?([kK])?"
)
_SALARY_SINGLE_RE = re.compile(r"\$\s?" + _NUMBER + r"\s?([kK])?")
_HOURLY_HINT_RE = re.compile(r"\b(per\s+hour|an\s+hour|hourly|/\s?h(?:ou)?r|hr\b|p/h)", re.IGNORECASE)
_ANNUAL_HINT_RE = re.compile(r"\b(per\s+year|a\s+year|annual(?:ly)?|/\s?y(?:ea)?r|yearly|salary)", re.IGNORECASE)
_PAY_CONTEXT_RE = re.compile(r"\b(pay|salary|compensation|wage|rate|range|earn)", re.IGNORECASE)

HOURLY_BOUNDS = (10.0, 400.0)
ANNUAL_BOUNDS = (20000.0, 1000000.0)


def _to_number(token: str, thousands: Optional[str]) -> float:
    value = float(token.replace(",", ""))
    return value * 1000 if thousands else value


def _salary_type(context: str, value: float) -> str:
    if _HOURLY_HINT_RE.search(context):
        return "hourly"
    if _ANNUAL_HINT_RE.search(context):
        return "annual"
    return "annual" if value > 1000 else "hourly"


def _plausible(value: float, salary_type: str) -> bool:
    low, high = HOURLY_BOUNDS if salary_type == "hourly" else ANNUAL_BOUNDS
    return low <= value <= high


def parse_salary(text: Optional[str], require_context: bool = False) -> tuple:
    """
    Extract (salary_min, salary_max, salary_type) from free text.

    Args:
        text: Salary field or description text.
        require_context: Only accept figures preceded by pay wording
            (used when scanning a whole description).

    Returns:
        Tuple of (min, max, "hourly"|"annual") or (None, None, None).
    """
    if not text:
        return None, None, None

    for pattern in (_SALARY_RANGE_RE, _SALARY_SINGLE_RE):
        for match in pattern.finditer(text):
            before = text[max(0, match.start() - 80): match.start()]
            after = text[match.end(): match.end() + 40]
            if require_context and not _PAY_CONTEXT_RE.search(before + after):
                continue
            low = _to_number(match.group(1), match.group(2))
            high = _to_number(match.group(3), match.group(4)) if pattern is _SALARY_RANGE_RE else low
            low, high = sorted((low, high))
            salary_type = _salary_type(before[-40:] + " " + match.group(0) + " " + after, low)
            if _plausible(low, salary_type) and _plausible(high, salary_type):
                return low, high, salary_type
    return None, None, None


def hourly_to_annual(hourly: float) -> float:
    return hourly * HOURS_PER_YEAR


def annual_to_hourly(annual: float) -> float:
    return annual / HOURS_PER_YEAR


def derive_salary_fields(salary_min: Optional[float], salary_max: Optional[float], salary_type: Optional[str]) -> dict:
    """
    Fill both hourly and annual figures from whichever unit the source gave.

    The source's own unit is copied verbatim; derived hourly figures are
    rounded to cents and derived annual figures to whole dollars.
    """
    fields = {
        "salary_min_hourly": None,
        "salary_max_hourly": None,
        "salary_min_annual": None,
        "salary_max_annual": None,
    }
    if salary_type == "hourly":
        fields["salary_min_hourly"] = salary_min
        fields["salary_max_hourly"] = salary_max
        if salary_min is not None:
            fields["salary_min_annual"] = float(round(hourly_to_annual(salary_min)))
        if salary_max is not None:
            fields["salary_max_annual"] = float(round(hourly_to_annual(salary_max)))
    elif salary_type == "annual":
        fields["salary_min_annual"] = salary_min
        fields["salary_max_annual"] = salary_max
        if salary_min is not None:
            fields["salary_min_hourly"] = round(annual_to_hourly(salary_min), 2)
        if salary_max is not None:
            fields["salary_max_hourly"] = round(annual_to_hourly(salary_max), 2)
    return fields


# ── Slugs ────────────────────────────────────────────────────────

def slugify(value: Optional[str]) -> str:
    if not value:
        return ""
    text = value.lower()
    text = re.sub(r"\[[^\]]*\]|\{[^}]*\}", "", text)
    text = re.sub(r"[^a-z0-9]+", "-", text)
    return text.strip("-")


def generate_employer_slug(name: str) -> str:
    return slugify(name)


def generate_job_slug(title: str, city: Optional[str], state: Optional[str], employer_slug: str, source_url: str) -> str:
    """
    Build a URL-safe slug from title, location and employer.

    A short digest of the source URL keeps it unique and stable across runs.
    """
    digest = hashlib.sha1(source_url.encode("utf-8")).hexdigest()[:8]
    parts = [slugify(title)[:50], slugify(city), (state or "").lower(), employer_slug]
    prefix = "-".join(p for p in parts if p)
    prefix = re.sub(r"-+", "-", prefix).strip("-")[: 100 - len(digest) - 1].rstrip("-")
    return f"{prefix}-{digest}" if prefix else digest


# ── Dates ────────────────────────────────────────────────────────

_DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%m/%d/%y", "%B %d, %Y", "%b %d, %Y", "%d %B %Y")
_RELATIVE_DAYS_RE = re.compile(r"(\d+)\+?\s+days?\s+ago", re.IGNORECASE)


def parse_date(value: Optional[str], now: Optional[datetime] = None) -> Optional[datetime]:
    """
    Parse an ISO, US-style or relative ("Posted 3 Days Ago") date into an aware UTC datetime.
    Unparseable values return None.
    """
    if not value or not value.strip():
        return None
    text = re.sub(r"^(posted|closing date|apply by|expires?)\s*:?\s*", "", value.strip(), flags=re.IGNORECASE)

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    except ValueError:
        pass

    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue

    if now is not None:
        lowered = text.lower()
        if "today" in lowered:
            return now
        if "yesterday" in lowered:
            return now - timedelta(days=1)
        match = _RELATIVE_DAYS_RE.search(lowered)
        if match:
            return now - timedelta(days=int(match.group(1)))
    return None


# ── SEO fields ───────────────────────────────────────────────────

_JOB_TYPE_LABELS = {
    "full-time": "Full-Time",
    "part-time": "Part-Time",
    "per-diem": "Per Diem",
    "contract": "Contract",
    "travel": "Travel",
}


def build_meta_description(
    title: str,
    city: Optional[str],
    state: Optional[str],
    specialty: Optional[str],
    job_type: Optional[str],
    employer_name: str,
) -> str:
    """'{title} in {city}, {state} ({specialty} specialty) - {job type}. Find RN nursing jobs at {employer}.'"""
    text = title
    place = ", ".join(p for p in (city, state) if p)
    if place:
        text += f" in {place}"
    if specialty:
        text += f" ({specialty} specialty)"
    if job_type:
        text += f" - {_JOB_TYPE_LABELS.get(job_type, job_type)}"
    return f"{text}. Find RN nursing jobs at {employer_name}."


def build_keywords(
    city: Optional[str], state: Optional[str], specialty: Optional[str], employer_name: str
) -> list[str]:
    keywords = []
    for word in ("registered nurse", "rn jobs", "nursing jobs", city, state, specialty, employer_name):
        if word and word.lower() not in keywords:
            keywords.append(word.lower())
    return keywords
