"""
LLM Classifier Agent — optional second opinion on accepted records.

When LLM_CLASSIFY is enabled, normalized records are sent in small batches
to an OpenAI-compatible chat model. The model confirms each posting is a
staff RN role and proposes specialty, job type, shift and experience level;
its answers go back through tools/vocabulary.py so only canonical values
land on the record. A failed batch keeps the heuristic fields.
"""

import json
import re
from datetime import datetime, timezone

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_core.runnables import RunnableConfig
from langchain_openai import ChatOpenAI

from config.settings import settings
from models.job import SkippedJob
from models.state import AgentState
from tools.vocabulary import (
    EXPERIENCE_LEVELS,
    JOB_TYPES,
    SHIFT_TYPES,
    SPECIALTIES,
    lookup_specialty,
    normalize_experience_level,
    normalize_job_type,
    normalize_shift_type,
)


BATCH_SIZE = 5

# Descriptions are cut to keep a batch inside a small model's context
MAX_DESCRIPTION_CHARS = 2500

CLASSIFIER_SYSTEM_PROMPT = f"""You are a classifier for a Registered Nurse (RN) job board.

For each job you are given, decide:
1. "is_staff_rn": true only if the position requires an RN license and is a staff, bedside,
   charge or nursing-leadership role. false for LPN/LVN, CNA, techs, aides, medical assistants,
   students, and advanced practice roles (NP, CRNA, CNS, CNM, midwife).
2. "specialty": one of {", ".join(SPECIALTIES)}.
3. "job_type": one of {", ".join(JOB_TYPES)}.
4. "shift_type": one of {", ".join(SHIFT_TYPES)}, or null if not stated.
5. "experience_level": one of {", ".join(EXPERIENCE_LEVELS)}.

Return a JSON array with one object per job, in the same order, each with the keys
"index", "is_staff_rn", "specialty", "job_type", "shift_type", "experience_level".
Return ONLY the JSON array, no other text. Do NOT wrap the JSON in markdown code blocks.

/no_think"""

CLASSIFIER_USER_PROMPT = """Classify the following job postings.

Jobs:
{jobs_json}

Return ONLY a JSON array."""


def build_llm() -> ChatOpenAI:
    return ChatOpenAI(
        base_url=settings.llm_base_url,
        api_key=settings.llm_api_key,
        model=settings.llm_model_name,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
        timeout=120,
    )


def _parse_response(text: str) -> list:
    """Pull the JSON array out of a model reply, tolerating code fences and chatter."""
    text = text.strip()
    if "```json" in text:
        text = text.split("```json")[-1].split("```")[0].strip()
    elif "```" in text:
        text = text.split("```")[1].split("```")[0].strip()

    match = re.search(r"\[.*\]", text, re.DOTALL)
    if match:
        text = match.group(0)

    data = json.loads(text)
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        raise ValueError(f"expected a JSON array, got {type(data).__name__}")
    return data


def _apply_answer(record: dict, answer: dict, classified_at: datetime) -> dict:
    """Merge a model answer into a copy of the record, keeping heuristic values the vocabulary rejects."""
    updated = dict(record)

    # Unknown labels would collapse to the catch-all; keep the heuristic instead
    updated["specialty"] = lookup_specialty(answer.get("specialty")) or record.get("specialty")

    updated["job_type"] = normalize_job_type(answer.get("job_type")) or record.get("job_type")
    updated["shift_type"] = normalize_shift_type(answer.get("shift_type")) or record.get("shift_type")

    level = answer.get("experience_level")
    if level and level.strip().lower() in EXPERIENCE_LEVELS:
        updated["experience_level"] = normalize_experience_level(level)

    updated["classified_at"] = classified_at
    return updated


def classify_batch(llm, records: list[dict], classified_at: datetime) -> tuple[list[dict], list[dict]]:
    """
    Classify one batch.

    Returns:
        (kept_records, skipped) — kept records carry the model's fields.

    Raises:
        Exception from the model call or ValueError/JSONDecodeError on a bad reply;
        the caller keeps the batch's heuristic fields in that case.
    """
    payload = [
        {
            "index": i,
            "title": r["title"],
            "location": r.get("location", ""),
            "description": r["description"][:MAX_DESCRIPTION_CHARS],
        }
        for i, r in enumerate(records)
    ]
    messages = [
        SystemMessage(content=CLASSIFIER_SYSTEM_PROMPT),
        HumanMessage(content=CLASSIFIER_USER_PROMPT.format(jobs_json=json.dumps(payload, indent=2))),
    ]

    response = llm.invoke(messages)
    answers = _parse_response(response.content)

    by_index = {}
    for position, answer in enumerate(answers):
        if not isinstance(answer, dict):
            continue
        try:
            index = int(answer.get("index", position))
        except (TypeError, ValueError):
            print(f"[LLM Classifier] Ignoring answer with unusable index: {answer.get('index')!r}")
            continue
        by_index[index] = answer

    kept = []
    skipped = []
    for i, record in enumerate(records):
        answer = by_index.get(i)
        if answer is None:
            # No verdict for this one: keep the heuristic record as-is
            kept.append(record)
            continue
        if answer.get("is_staff_rn") is False:
            skipped.append(
                SkippedJob(
                    stage="llm_classifier",
                    source_url=record["source_url"],
                    title=record["title"],
                    reason="model judged the posting not a staff RN role",
                ).model_dump()
            )
            continue
        kept.append(_apply_answer(record, answer, classified_at))
    return kept, skipped


def llm_classifier_agent(state: AgentState, config: RunnableConfig = None) -> dict:
    """
    Optional LLM pass over the normalized records. A no-op unless enabled.
    The model can be injected as config["configurable"]["llm"].
    """
    records = state.get("normalized_jobs", [])
    configurable = (config or {}).get("configurable", {})
    enabled = configurable.get("llm_classify", settings.llm_classify)

    if not enabled or not records:
        return {}

    llm = configurable.get("llm") or build_llm()
    classified_at = datetime.fromisoformat(state["run_at"]) if state.get("run_at") else datetime.now(timezone.utc)

    total_batches = (len(records) + BATCH_SIZE - 1) // BATCH_SIZE
    print(f"[LLM Classifier] Classifying {len(records)} records in {total_batches} batches...")

    kept_all = []
    skipped_all = []
    errors = []
    for i in range(0, len(records), BATCH_SIZE):
        batch = records[i: i + BATCH_SIZE]
        batch_no = i // BATCH_SIZE + 1
        try:
            kept, skipped = classify_batch(llm, batch, classified_at)
            kept_all.extend(kept)
            skipped_all.extend(skipped)
        except Exception as e:
            print(f"[LLM Classifier] Batch {batch_no} failed: {e}. Keeping heuristic fields.")
            errors.append(f"LLM classification batch {batch_no} failed: {e}")
            kept_all.extend(batch)

    print(f"[LLM Classifier] ✅ {len(kept_all)} kept, {len(skipped_all)} rejected by the model")

    return {"normalized_jobs": kept_all, "skipped": skipped_all, "errors": errors}
