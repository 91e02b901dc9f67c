"""
Canned searches used by the research and people agents.

Each helper is one call to the Search Provider Client with fixed result
counts and content limits. Like the client itself they never raise for
provider failures; an empty SearchResponse means "no signal".
"""

from typing import Optional

from coffee_agent.clients.search_client import FirecrawlSearchClient, SearchOptions, SearchResponse

SOCIAL_DOMAINS = ("linkedin.com", "twitter.com", "x.com", "facebook.com")


async def search_company_info(
    client: FirecrawlSearchClient,
    company_name: str,
    additional_context: Optional[str] = None,
) -> SearchResponse:
    """General company information: website, LinkedIn page, overview."""
    context = f" {additional_context}" if additional_context else ""
    query = f"{company_name}{context} company information website linkedin"
    return await client.search(query, SearchOptions(num_results=5, max_chars_per_result=1500))


async def find_company_domain(client: FirecrawlSearchClient, company_name: str) -> SearchResponse:
    """Official website lookup. Use ``result.domain`` for the bare hostname."""
    query = f"{company_name} official website"
    return await client.search(query, SearchOptions(num_results=3, max_chars_per_result=500))


async def find_social_profiles(
    client: FirecrawlSearchClient,
    company_name: str,
    domain: Optional[str] = None,
) -> SearchResponse:
    """Social media pages. Use ``result.platform`` for the platform tag."""
    query = f"{company_name} {domain} social media" if domain else f"{company_name} social media"
    return await client.search(
        query,
        SearchOptions(num_results=8, domain_allow_list=SOCIAL_DOMAINS, max_chars_per_result=500),
    )


async def find_company_news(
    client: FirecrawlSearchClient,
    company_name: str,
    timeframe: str = "month",
) -> SearchResponse:
    """Recent news within a week / month / year window."""
    query = f"{company_name} news announcements"
    return await client.search(
        query,
        SearchOptions(num_results=5, max_chars_per_result=500, freshness=timeframe),
    )


async def search_people_snippets(
    client: FirecrawlSearchClient,
    company_name: str,
    role: Optional[str] = None,
    num_results: int = 10,
) -> SearchResponse:
    """LinkedIn profile snippets for people at a company (heuristic input)."""
    role_part = role if role else "employees people team"
    query = f"{company_name} {role_part}"
    return await client.search(
        query,
        SearchOptions(
            num_results=num_results,
            domain_allow_list=("linkedin.com",),
            max_chars_per_result=500,
        ),
    )
