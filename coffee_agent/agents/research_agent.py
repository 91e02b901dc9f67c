"""
Research Agent: "who/what is this company".

Runs the company-info, domain and social-profile searches concurrently (plus
news when asked), puts every raw result into one prompt and extracts a
ResearchReport. A failed search branch contributes an empty list; only an
extraction failure fails the call.
"""

import json
import uuid
from typing import Any, Dict, List, Optional, Sequence, Tuple

from coffee_agent.clients.search_client import FirecrawlSearchClient, SearchResponse
from coffee_agent.clients.search_helpers import (
    find_company_domain,
    find_company_news,
    find_social_profiles,
    search_company_info,
)
from coffee_agent.common.error_handling import (
    BranchResult,
    SchemaValidationError,
    gather_branches,
    successful_values,
)
from coffee_agent.common.logger import get_logger
from coffee_agent.common.schemas import ResearchReport
from coffee_agent.extraction.structured_extractor import StructuredExtractor

RESEARCH_PROMPT = """You are a company research agent. Based on the following search results about "{company_name}", extract and format the information as a JSON object.

SEARCH RESULTS:
{search_results}

REQUIRED JSON SCHEMA:
{{
  "organization": {{
    "name": "string (company name)",
    "domain": "string (optional, primary domain, e.g. 'example.com' without www)",
    "websiteUrl": "string (optional, full website URL)",
    "linkedinUrl": "string (optional, LinkedIn company page)",
    "twitterUrl": "string (optional, Twitter/X profile)",
    "facebookUrl": "string (optional, Facebook page)",
    "phone": "string (optional)",
    "logoUrl": "string (optional)",
    "foundedYear": "number (optional)",
    "industry": "string (optional)",
    "employeeCount": "number (optional)",
    "description": "string (optional, brief company description)"
  }},
  "keyPeople": [
    {{
      "name": "string (full name)",
      "firstName": "string (optional)",
      "lastName": "string (optional)",
      "company": "string (should be {company_name})",
      "role": "string (job title)",
      "headline": "string (optional, professional headline)",
      "linkedinUrl": "string (optional)",
      "twitterUrl": "string (optional)",
      "location": {{"city": "string (optional)", "state": "string (optional)", "country": "string (optional)"}}
    }}
  ],
  "insights": "string (key insights about the company, business, and market position)",
  "sources": [{{"title": "string (source title)", "url": "string (source URL)"}}]
}}

INSTRUCTIONS:
1. Extract company information from the search results
2. Identify 3-5 key people (executives, founders, key employees) if found in the results
3. Provide insights about the company's business and market position
4. List all source URLs used
5. If information is not available, omit those fields (use empty lists for keyPeople and sources)
6. The domain is just the hostname without protocol or www
7. Write line breaks inside strings as \\n

Return ONLY a valid JSON object matching the schema above."""


def _branch_rows(name: str, branch: Optional[BranchResult]) -> List[Dict[str, Any]]:
    """Flatten one search branch into prompt rows; failures become []."""
    if branch is None:
        return []
    response: Optional[SearchResponse] = branch.value_or(None)
    if response is None:
        return []
    rows = []
    for result in response.results:
        row = result.to_dict()
        if name == "domainInfo":
            row["domain"] = result.domain
        elif name == "socialMedia":
            row["platform"] = result.platform
        rows.append(row)
    return rows


class ResearchAgent:
    """Company research over concurrent web searches + structured extraction."""

    def __init__(
        self,
        extractor: StructuredExtractor,
        search_client: FirecrawlSearchClient,
        branch_timeout: Optional[float] = None,
    ):
        self.extractor = extractor
        self.search_client = search_client
        self.branch_timeout = branch_timeout

    def build_prompt(self, company_name: str, results: Dict[str, Any]) -> str:
        return RESEARCH_PROMPT.format(
            company_name=company_name,
            search_results=json.dumps(results, indent=2, ensure_ascii=False),
        )

    async def gather_search_results(
        self,
        company_name: str,
        additional_context: Optional[str] = None,
        include_news: bool = False,
    ) -> Dict[str, Any]:
        """Run the search branches concurrently; every branch resolves to a list."""
        branches = {
            "companyInfo": search_company_info(self.search_client, company_name, additional_context),
            "domainInfo": find_company_domain(self.search_client, company_name),
            "socialMedia": find_social_profiles(self.search_client, company_name),
        }
        if include_news:
            branches["news"] = find_company_news(self.search_client, company_name)

        outcomes = await gather_branches(branches, timeout=self.branch_timeout)

        combined: Dict[str, Any] = {
            name: _branch_rows(name, outcomes.get(name))
            for name in ("companyInfo", "domainInfo", "socialMedia")
        }
        combined["news"] = _branch_rows("news", outcomes.get("news")) if include_news else None
        return combined

    async def research(
        self,
        company_name: str,
        additional_context: Optional[str] = None,
        include_news: bool = False,
        run_id: Optional[str] = None,
    ) -> ResearchReport:
        """
        Research a company and return a structured report.

        Args:
            company_name: Company to research
            additional_context: Industry, location or other disambiguation
            include_news: Also search recent news (past month)
            run_id: Correlation id for logs

        Returns:
            ResearchReport

        Raises:
            SchemaValidationError: if company_name is empty
            ExtractionError: if the model reply cannot be parsed or validated
        """
        if not company_name or not company_name.strip():
            raise SchemaValidationError("companyName must be non-empty", fields=["companyName"])
        company_name = company_name.strip()
        logger = get_logger(__name__, run_id=run_id or uuid.uuid4().hex, component="research")

        logger.info(f"Researching {company_name} (news={include_news})")
        results = await self.gather_search_results(company_name, additional_context, include_news)
        total = sum(len(rows) for rows in results.values() if rows)
        if total == 0:
            logger.warning(f"No search signal for {company_name}; extracting from empty results")

        report = await self.extractor.extract(self.build_prompt(company_name, results), ResearchReport)
        logger.info(
            f"Research complete: domain={report.organization.domain or '-'}, "
            f"{len(report.key_people)} key people, {len(report.sources)} sources"
        )
        return report

    async def research_companies(
        self,
        companies: Sequence[Tuple[str, Optional[str]]],
    ) -> List[ResearchReport]:
        """
        Research several companies concurrently.

        Failed companies are dropped; successful reports keep input order.
        """
        branches = {
            f"{index}:{name}": self.research(name, additional_context=context)
            for index, (name, context) in enumerate(companies)
        }
        outcomes = await gather_branches(branches)
        return successful_values(list(outcomes.values()))
