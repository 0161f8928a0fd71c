"""
Text Extractor Tool — pulls job links, descriptions and metadata out of HTML.
Uses BeautifulSoup to strip irrelevant elements.
"""

import json
import re
from typing import Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup


# Elements that never carry posting content
NOISE_TAGS = ["script", "style", "nav", "footer", "header", "noscript", "svg", "iframe", "form", "button"]

BLOCK_TAGS = ["p", "div", "section", "article", "h1", "h2", "h3", "h4", "h5", "h6", "br", "tr"]

# Metadata keys read from the detail page (selectors or JSON-LD)
METADATA_KEYS = ("location", "employment_type", "shift", "salary", "posted_date", "expires_date", "job_id", "remote")


def extract_text(html: str, max_length: int = None) -> str:
    """
    Extract meaningful text from raw HTML.
    Removes scripts, styles, nav, footer, and other non-content elements.

    Args:
        html: Raw HTML string.
        max_length: Optional maximum character length of extracted text.

    Returns:
        Cleaned text content.
    """
    if not html:
        return ""

    soup = BeautifulSoup(html, "html.parser")

    for element in soup.find_all(NOISE_TAGS):
        element.decompose()

    # Try to find the main content area first
    main_content = (
        soup.find("main")
        or soup.find("div", {"role": "main"})
        or soup.find("div", {"id": re.compile(r"(content|main|job|description)", re.I)})
        or soup.body
        or soup
    )

    text = main_content.get_text(separator="\n", strip=True)
    text = re.sub(r"\n{3,}", "\n\n", text)
    text = re.sub(r" {2,}", " ", text)

    if max_length and len(text) > max_length:
        text = text[:max_length]

    return text


def format_description(html: str) -> str:
    """
    Turn description HTML into canonical block-structured plain text.

    Paragraphs and headings become blocks separated by a blank line,
    list items become "- " bullets.
    """
    if not html:
        return ""

    soup = BeautifulSoup(html, "html.parser")
    for element in soup.find_all(NOISE_TAGS):
        element.decompose()

    for li in soup.find_all("li"):
        text = li.get_text(" ", strip=True)
        li.replace_with(f"\n- {text}\n" if text else "")
    for tag in soup.find_all(BLOCK_TAGS):
        tag.insert_before("\n\n")
        tag.insert_after("\n\n")

    text = soup.get_text()
    lines = []
    for line in text.split("\n"):
        line = re.sub(r"[ \t ]+", " ", line).strip()
        # Normalise the various bullet glyphs sources use
        line = re.sub(r"^[•·▪◦●\*]\s*", "- ", line)
        lines.append(line)

    text = "\n".join(lines)
    text = re.sub(r"\n{3,}", "\n\n", text)
    # Keep consecutive bullets in one block
    text = re.sub(r"(\n- [^\n]*)\n\n(?=- )", r"\1\n", text)
    text = re.sub(r"(\n- [^\n]*)\n\n(?=- )", r"\1\n", text)
    return text.strip()


def extract_job_links(html: str, base_url: str, selector: str = None) -> list[dict]:
    """
    Extract links that point to job postings on a listing page.

    Args:
        html: Raw HTML string.
        base_url: Base URL for resolving relative links.
        selector: CSS selector for job title anchors. When omitted, any
            link whose text or href looks job-related is taken.

    Returns:
        List of dicts with 'title' and 'url' keys, in page order, unique by URL.
    """
    if not html:
        return []

    soup = BeautifulSoup(html, "html.parser")

    if selector:
        anchors = soup.select(selector)
    else:
        job_patterns = re.compile(r"(job|career|position|opening|requisition)", re.IGNORECASE)
        anchors = [
            a for a in soup.find_all("a", href=True)
            if job_patterns.search(a["href"])
        ]

    job_links = []
    seen_urls = set()

    for link in anchors:
        href = link.get("href")
        if not href:
            continue
        text = link.get_text(" ", strip=True)

        full_url = urljoin(base_url, href).split("#", 1)[0]

        if full_url in seen_urls or not full_url.startswith("http") or not text:
            continue

        seen_urls.add(full_url)
        job_links.append({
            "title": text[:200],
            "url": full_url,
        })

    return job_links


def _json_ld_postings(soup: BeautifulSoup) -> list[dict]:
    """Return JobPosting objects embedded as JSON-LD."""
    postings = []
    for script in soup.find_all("script", type="application/ld+json"):
        try:
            data = json.loads(script.string or script.get_text() or "")
        except (json.JSONDecodeError, TypeError):
            continue
        nodes = data if isinstance(data, list) else data.get("@graph", [data]) if isinstance(data, dict) else []
        for node in nodes:
            if isinstance(node, dict) and node.get("@type") == "JobPosting":
                postings.append(node)
    return postings


def _metadata_from_json_ld(posting: dict) -> dict:
    metadata = {}

    location = posting.get("jobLocation")
    if isinstance(location, list):
        location = location[0] if location else None
    if isinstance(location, dict):
        address = location.get("address") or {}
        if isinstance(address, dict):
            parts = [address.get("addressLocality"), address.get("addressRegion")]
            text = ", ".join(p for p in parts if p)
            if address.get("postalCode"):
                text = f"{text} {address['postalCode']}".strip()
            if text:
                metadata["location"] = text

    employment_type = posting.get("employmentType")
    if isinstance(employment_type, list):
        employment_type = employment_type[0] if employment_type else None
    if employment_type:
        metadata["employment_type"] = str(employment_type)

    if posting.get("datePosted"):
        metadata["posted_date"] = str(posting["datePosted"])
    if posting.get("validThrough"):
        metadata["expires_date"] = str(posting["validThrough"])

    identifier = posting.get("identifier")
    if isinstance(identifier, dict):
        identifier = identifier.get("value")
    if identifier:
        metadata["job_id"] = str(identifier)

    if posting.get("jobLocationType") == "TELECOMMUTE":
        metadata["remote"] = "true"

    salary = posting.get("baseSalary")
    if isinstance(salary, dict):
        value = salary.get("value") or {}
        if isinstance(value, dict):
            low = value.get("minValue", value.get("value"))
            high = value.get("maxValue", low)
            unit = str(value.get("unitText", "")).lower()
            if low is not None:
                per = "per hour" if unit == "hour" else "per year" if unit == "year" else ""
                metadata["salary"] = f"${low} - ${high} {per}".strip()

    return metadata


def extract_detail(html: str, selectors: Optional[dict] = None) -> dict:
    """
    Extract description and raw metadata from a job detail page.

    Selector matches win over JSON-LD, which wins over nothing.

    Returns:
        dict with description_text, description_html and metadata.
    """
    selectors = selectors or {}
    if not html:
        return {"description_text": "", "description_html": "", "metadata": {}}

    soup = BeautifulSoup(html, "html.parser")

    metadata = {}
    ld_postings = _json_ld_postings(soup)
    if ld_postings:
        metadata.update(_metadata_from_json_ld(ld_postings[0]))

    for key in METADATA_KEYS:
        selector = selectors.get(key)
        if not selector:
            continue
        node = soup.select_one(selector)
        if node:
            value = node.get_text(" ", strip=True)
            if value:
                metadata[key] = value

    description_node = None
    if selectors.get("description"):
        description_node = soup.select_one(selectors["description"])

    if description_node is not None:
        description_html = str(description_node)
    elif ld_postings and ld_postings[0].get("description"):
        description_html = str(ld_postings[0]["description"])
    else:
        description_html = ""

    if description_html:
        description_text = format_description(description_html)
    else:
        description_text = extract_text(html)

    return {
        "description_text": description_text,
        "description_html": description_html,
        "metadata": metadata,
    }
