"""
Heuristic people extraction from free-text search snippets.

Only for unstructured web results (LinkedIn search titles such as
"Tanya Chen - VP Engineering at Atlassian | LinkedIn"). Structured provider
data never goes through here.

Rules:
    name    = text before the first dash/pipe delimiter when it is 1-4 words
              and under NAME_MAX_CHARS; else the first capitalized word run;
              else the truncated title
    title   = text after the delimiter, cut before "at <company>"
    company = "at <Company>" / "@ <Company>" match, else the query target
All three are truncated independently.
"""

import re
from typing import List, Optional

from coffee_agent.clients.search_client import SearchResult
from coffee_agent.common.schemas import Person

NAME_MAX_CHARS = 60
TITLE_MAX_CHARS = 100
COMPANY_MAX_CHARS = 80
FALLBACK_NAME_CHARS = 40

DELIMITER_PATTERN = re.compile(r"\s+[-–—|]\s+")
LINKEDIN_SUFFIX_PATTERN = re.compile(r"\s*[|\-–]\s*LinkedIn\s*$", re.IGNORECASE)
CAPITALIZED_RUN_PATTERN = re.compile(r"\b([A-Z][a-zA-Z'\-]+(?:\s+[A-Z][a-zA-Z'\-]+){1,3})\b")
COMPANY_PATTERN = re.compile(r"(?:\bat\b|@)\s+([A-Z0-9][\w&'\-]*(?:\s+[A-Z0-9][\w&'\-]*){0,4})")
ROLE_CUT_PATTERN = re.compile(r"\s+(?:at|@)\s+", re.IGNORECASE)


def _truncate(value: str, limit: int) -> str:
    value = value.strip()
    return value if len(value) <= limit else value[:limit].rstrip()


def parse_name(title: str) -> str:
    cleaned = LINKEDIN_SUFFIX_PATTERN.sub("", title).strip()
    head = DELIMITER_PATTERN.split(cleaned, maxsplit=1)[0].strip()
    words = head.split()
    if 1 <= len(words) <= 4 and len(head) < NAME_MAX_CHARS:
        return head

    match = CAPITALIZED_RUN_PATTERN.search(cleaned)
    if match:
        return _truncate(match.group(1), NAME_MAX_CHARS)

    return _truncate(cleaned, FALLBACK_NAME_CHARS) or "Unknown Person"


def parse_title(title: str) -> Optional[str]:
    cleaned = LINKEDIN_SUFFIX_PATTERN.sub("", title).strip()
    parts = DELIMITER_PATTERN.split(cleaned, maxsplit=1)
    if len(parts) < 2:
        return None
    role = ROLE_CUT_PATTERN.split(parts[1], maxsplit=1)[0].strip()
    return _truncate(role, TITLE_MAX_CHARS) or None


def parse_company(text: str, default_company: str) -> str:
    match = COMPANY_PATTERN.search(text)
    company = match.group(1) if match else default_company
    return _truncate(company, COMPANY_MAX_CHARS)


class HeuristicPeopleParser:
    """Pattern-based Person extraction from search snippets."""

    def parse_result(
        self,
        result: SearchResult,
        company_name: str,
        role: Optional[str] = None,
    ) -> Person:
        title = result.title or ""
        name = parse_name(title) if title else "Unknown Person"
        job_title = parse_title(title) or _truncate(role or "Contact", TITLE_MAX_CHARS)
        company = parse_company(f"{title} {result.text}", company_name)

        linkedin_url = result.url if "linkedin.com/in/" in result.url.lower() else None
        headline = _truncate(result.text, 200) if result.text else None

        return Person(
            name=name,
            company=company,
            role=job_title,
            headline=headline,
            linkedin_url=linkedin_url,
        )

    def parse_results(
        self,
        results: List[SearchResult],
        company_name: str,
        role: Optional[str] = None,
    ) -> List[Person]:
        return [self.parse_result(r, company_name, role) for r in results]
