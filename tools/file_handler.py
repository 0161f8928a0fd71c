"""
File Handler Tool — loads the employer config and saves run results to JSON.
"""

import json
import os
from datetime import datetime

import yaml
from pydantic import ValidationError

from models.errors import ConfigurationError
from models.job import EmployerConfig


def load_employers(yaml_path: str) -> list[EmployerConfig]:
    """
    Load employer source configurations from a YAML file.

    Args:
        yaml_path: Path to the employers.yaml file.

    Returns:
        List of EmployerConfig, in file order.

    Raises:
        ConfigurationError: missing file, bad YAML, an entry without the
            required fields, or a duplicated slug.
    """
    if not os.path.exists(yaml_path):
        raise ConfigurationError(f"Employer config not found: {yaml_path}")

    try:
        with open(yaml_path, "r") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Cannot parse {yaml_path}: {e}") from e

    entries = data.get("employers", []) if isinstance(data, dict) else []

    employers = []
    seen_slugs = set()
    for i, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ConfigurationError(f"Employer entry #{i + 1} in {yaml_path} is not a mapping")
        try:
            employer = EmployerConfig(**entry)
        except ValidationError as e:
            name = entry.get("slug") or entry.get("name") or f"#{i + 1}"
            raise ConfigurationError(f"Employer {name} in {yaml_path} is invalid: {e}") from e
        if not employer.search_url:
            raise ConfigurationError(f"Employer {employer.slug} in {yaml_path} has no search_url")
        if employer.slug in seen_slugs:
            raise ConfigurationError(f"Employer slug {employer.slug} appears twice in {yaml_path}")
        if not employer.career_page_url:
            employer.career_page_url = employer.search_url
        seen_slugs.add(employer.slug)
        employers.append(employer)

    return employers


def find_employer(employers: list[EmployerConfig], slug: str) -> EmployerConfig:
    for employer in employers:
        if employer.slug == slug:
            return employer
    known = ", ".join(e.slug for e in employers) or "none"
    raise ConfigurationError(f"Unknown employer '{slug}' (configured: {known})")


def save_to_json(records: list[dict], output_dir: str, filename: str = None) -> str:
    """
    Save records to a JSON file.

    Args:
        records: List of dicts to save.
        output_dir: Directory to save the file in.
        filename: Optional filename (auto-generated with timestamp if not provided).

    Returns:
        Path to the saved file.
    """
    os.makedirs(output_dir, exist_ok=True)

    if not filename:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        filename = f"jobs_{timestamp}.json"

    filepath = os.path.join(output_dir, filename)

    with open(filepath, "w") as f:
        json.dump(records, f, indent=2, default=str)

    return filepath


def generate_summary(runs: list[dict]) -> str:
    """
    Generate a human-readable summary of one or more employer runs.

    Args:
        runs: Dicts with employer, status, and optionally the reconcile
            counts, skipped count and error message.

    Returns:
        Formatted summary string.
    """
    if not runs:
        return "No employers were run."

    lines = [
        f"{'=' * 60}",
        f"  INGESTION SUMMARY",
        f"{'=' * 60}",
    ]
    totals = {"created": 0, "updated": 0, "reactivated": 0, "deactivated": 0}
    for run in runs:
        counts = run.get("counts") or {}
        for key in totals:
            totals[key] += counts.get(key, 0)
        line = f"  - {run['employer']}: {run['status']}"
        if counts:
            line += (
                f" ({counts.get('created', 0)} new, {counts.get('updated', 0)} updated, "
                f"{counts.get('reactivated', 0)} reactivated, {counts.get('deactivated', 0)} deactivated)"
            )
        if run.get("skipped"):
            line += f", {run['skipped']} skipped"
        if run.get("error"):
            line += f" — {run['error']}"
        lines.append(line)

    lines.append(f"")
    lines.append(
        f"  Totals: {totals['created']} new, {totals['updated']} updated, "
        f"{totals['reactivated']} reactivated, {totals['deactivated']} deactivated"
    )
    lines.append(f"{'=' * 60}")

    return "\n".join(lines)
