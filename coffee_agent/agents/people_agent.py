"""
People Agent: "find people at this company".

Two interchangeable strategies sit behind PeopleStrategy:

- CandidatePoolStrategy: structured Apollo query (role as title filter,
  company name as keyword). This is the primary path.
- HeuristicSearchStrategy: LinkedIn-restricted web search whose snippets are
  parsed with pattern heuristics (see people_heuristics).

search_people_by_roles fans out one query per role and merges the results:
people with a LinkedIn URL are deduplicated by it (last write wins), people
without one are always kept.
"""

import json
import uuid
from typing import Dict, Iterable, List, Optional, Sequence

from coffee_agent.agents.people_heuristics import HeuristicPeopleParser
from coffee_agent.clients.candidate_client import ApolloCandidateClient, CandidateFilters
from coffee_agent.clients.search_client import FirecrawlSearchClient
from coffee_agent.clients.search_helpers import (
    find_company_domain,
    search_company_info,
    search_people_snippets,
)
from coffee_agent.common.error_handling import (
    CoffeeAgentError,
    SchemaValidationError,
    gather_branches,
    successful_values,
)
from coffee_agent.common.logger import get_logger
from coffee_agent.common.schemas import CandidateResultSet, Organization, Person
from coffee_agent.extraction.structured_extractor import StructuredExtractor

DECISION_MAKER_ROLES = [
    "CEO",
    "CTO",
    "CFO",
    "COO",
    "CMO",
    "VP",
    "Vice President",
    "Director",
    "Head of",
    "Founder",
]

ROLE_QUERY_RESULTS = 5

COMPANY_INFO_PROMPT = """Based on the following search results about "{company_name}", extract the company as a JSON object.

SEARCH RESULTS:
{search_results}

REQUIRED JSON SCHEMA:
{{
  "name": "string (company name)",
  "domain": "string (optional, primary domain without www)",
  "websiteUrl": "string (optional)",
  "linkedinUrl": "string (optional)",
  "industry": "string (optional)",
  "description": "string (optional)"
}}

If information is not available, omit those fields. Return ONLY the JSON object."""


def _require_company_name(company_name: Optional[str]) -> str:
    if not company_name or not company_name.strip():
        raise SchemaValidationError("companyName must be non-empty", fields=["companyName"])
    return company_name.strip()


def linkedin_key(url: Optional[str]) -> Optional[str]:
    """Dedup key for a LinkedIn profile URL (case and trailing slash ignored)."""
    if not url:
        return None
    key = url.strip().lower().rstrip("/")
    return key or None


def merge_people(groups: Iterable[Sequence[Person]]) -> List[Person]:
    """
    Merge people from several sub-queries.

    People sharing a LinkedIn URL collapse into one entry; the last one seen
    wins. People without a LinkedIn URL are appended afterwards, unfiltered.
    """
    by_linkedin: Dict[str, Person] = {}
    without_linkedin: List[Person] = []
    for group in groups:
        for person in group:
            key = linkedin_key(person.linkedin_url)
            if key is None:
                without_linkedin.append(person)
            else:
                by_linkedin[key] = person
    return list(by_linkedin.values()) + without_linkedin


class PeopleStrategy:
    """Interface for people lookup backends."""

    name = "base"

    def require_ready(self) -> None:
        """Raise ConfigurationError if the backend cannot run at all."""

    async def find(self, company_name: str, role: Optional[str], num_results: int) -> List[Person]:
        raise NotImplementedError


class CandidatePoolStrategy(PeopleStrategy):
    """Structured lookup through the candidate pool provider."""

    name = "candidate_pool"

    def __init__(self, client: ApolloCandidateClient):
        self.client = client

    def require_ready(self) -> None:
        self.client.require_credential()

    async def find(self, company_name: str, role: Optional[str], num_results: int) -> List[Person]:
        filters = CandidateFilters(
            titles=[role] if role else None,
            keywords=company_name,
            per_page=min(num_results, 200),
        )
        page = await self.client.search_candidates(filters, default_company=company_name)
        return page.candidates[:num_results]


class HeuristicSearchStrategy(PeopleStrategy):
    """Heuristic extraction from LinkedIn web-search snippets."""

    name = "heuristic"

    def __init__(self, search_client: FirecrawlSearchClient, parser: Optional[HeuristicPeopleParser] = None):
        self.search_client = search_client
        self.parser = parser or HeuristicPeopleParser()

    async def find(self, company_name: str, role: Optional[str], num_results: int) -> List[Person]:
        response = await search_people_snippets(self.search_client, company_name, role, num_results)
        return self.parser.parse_results(response.results[:num_results], company_name, role)


class PeopleAgent:
    """People lookup with optional company info and multi-role merging."""

    def __init__(
        self,
        strategy: PeopleStrategy,
        search_client: Optional[FirecrawlSearchClient] = None,
        extractor: Optional[StructuredExtractor] = None,
        branch_timeout: Optional[float] = None,
    ):
        self.strategy = strategy
        self.search_client = search_client
        self.extractor = extractor
        self.branch_timeout = branch_timeout

    async def search_people(
        self,
        company_name: str,
        role: Optional[str] = None,
        num_results: int = 10,
        include_company_info: bool = False,
        run_id: Optional[str] = None,
    ) -> CandidateResultSet:
        """
        Find people at a company.

        Raises:
            SchemaValidationError: empty company name or num_results <= 0
            ConfigurationError: the strategy's credential is missing
        """
        company_name = _require_company_name(company_name)
        if num_results <= 0:
            raise SchemaValidationError("numResults must be positive", fields=["numResults"])
        logger = get_logger(__name__, run_id=run_id or uuid.uuid4().hex, component="people")

        self.strategy.require_ready()
        logger.info(f"Searching people at {company_name} (role={role or '-'}, strategy={self.strategy.name})")

        branches = {"people": self.strategy.find(company_name, role, num_results)}
        if include_company_info and self.search_client is not None and self.extractor is not None:
            branches["companyInfo"] = self.extract_company_info(company_name)

        outcomes = await gather_branches(branches, timeout=self.branch_timeout)
        people = outcomes["people"].value_or([])
        company_info = outcomes["companyInfo"].value_or(None) if "companyInfo" in outcomes else None
        if not outcomes["people"].ok:
            logger.warning(f"People lookup failed: {outcomes['people'].error}")

        logger.info(f"Found {len(people)} people at {company_name}")
        return CandidateResultSet(people=people, company_info=company_info, total_found=len(people))

    async def extract_company_info(self, company_name: str) -> Optional[Organization]:
        """Organization record from company-info and domain searches, or None."""
        outcomes = await gather_branches(
            {
                "companyInfo": search_company_info(self.search_client, company_name),
                "domainInfo": find_company_domain(self.search_client, company_name),
            },
            timeout=self.branch_timeout,
        )
        info = outcomes["companyInfo"].value_or(None)
        domain = outcomes["domainInfo"].value_or(None)

        rows = {
            "companyInfo": [r.to_dict() for r in info.results] if info else [],
            "domainInfo": [{**r.to_dict(), "domain": r.domain} for r in domain.results] if domain else [],
        }
        if not rows["companyInfo"] and not rows["domainInfo"]:
            return None

        prompt = COMPANY_INFO_PROMPT.format(
            company_name=company_name,
            search_results=json.dumps(rows, indent=2, ensure_ascii=False),
        )
        try:
            return await self.extractor.extract(prompt, Organization)
        except CoffeeAgentError as e:
            get_logger(__name__, component="people").warning(f"Company info unavailable: {e}")
            return None

    async def search_people_by_roles(
        self,
        company_name: str,
        roles: Sequence[str],
        run_id: Optional[str] = None,
    ) -> CandidateResultSet:
        """
        One query per role, run concurrently, merged by LinkedIn URL.

        Failed role queries are dropped. Merge order across roles is not
        meaningful; order within one role's results is preserved.

        Raises:
            SchemaValidationError: empty company name
            ConfigurationError: the strategy's credential is missing
        """
        company_name = _require_company_name(company_name)
        run_id = run_id or uuid.uuid4().hex
        self.strategy.require_ready()

        branches = {
            role: self.search_people(company_name, role=role, num_results=ROLE_QUERY_RESULTS, run_id=run_id)
            for role in dict.fromkeys(roles)
        }
        outcomes = await gather_branches(branches, timeout=self.branch_timeout)
        result_sets = successful_values(list(outcomes.values()))

        people = merge_people(rs.people for rs in result_sets)
        company_info = result_sets[0].company_info if result_sets else None
        get_logger(__name__, run_id=run_id, component="people").info(
            f"Merged {sum(len(rs.people) for rs in result_sets)} hits across "
            f"{len(result_sets)}/{len(branches)} roles into {len(people)} people"
        )
        return CandidateResultSet(people=people, company_info=company_info, total_found=len(people))

    async def search_decision_makers(self, company_name: str, run_id: Optional[str] = None) -> CandidateResultSet:
        """Leadership at a company across the fixed executive role list."""
        return await self.search_people_by_roles(company_name, DECISION_MAKER_ROLES, run_id=run_id)
