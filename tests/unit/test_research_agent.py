"""
Unit tests for coffee_agent/agents/research_agent.py

Search goes through FakeFirecrawlApp (or a raising stub client) and the
model through FakeExtractionLLM.
"""

import json

import pytest

from coffee_agent.agents.research_agent import ResearchAgent
from coffee_agent.clients.search_client import FirecrawlSearchClient, SearchResponse, SearchResult
from coffee_agent.common.error_handling import ExtractionError, SchemaValidationError
from coffee_agent.extraction.structured_extractor import StructuredExtractor
from tests.unit.fakes import FakeExtractionLLM, FakeFirecrawlApp, web

REPORT_JSON = json.dumps(
    {
        "organization": {"name": "Acme", "domain": "https://www.acme.com", "industry": "Fintech"},
        "keyPeople": [{"name": "Jane Doe", "company": "Acme", "role": "CEO"}],
        "insights": "Acme builds payment rails.\nGrowing in Europe.",
        "sources": [{"title": "Acme", "url": "https://acme.com"}],
    }
)

REPORT_WITHOUT_DOMAIN = json.dumps(
    {
        "organization": {"name": "Stealth Startup"},
        "keyPeople": [],
        "insights": "Little public information is available.",
        "sources": [],
    }
)


def firecrawl_app() -> FakeFirecrawlApp:
    return FakeFirecrawlApp(
        responses={
            "company information": web({"url": "https://acme.com", "title": "Acme", "markdown": "Payments"}),
            "official website": web({"url": "https://www.acme.com/", "title": "Acme Home"}),
            "social media": web({"url": "https://www.linkedin.com/company/acme", "title": "Acme | LinkedIn"}),
            "news announcements": web({"url": "https://news.com/acme-raises", "title": "Acme raises"}),
        }
    )


def make_agent(app, replies) -> tuple:
    llm = FakeExtractionLLM(replies)
    agent = ResearchAgent(
        extractor=StructuredExtractor(llm),
        search_client=FirecrawlSearchClient(app=app, retry_attempts=1),
    )
    return agent, llm


class TestGatherSearchResults:
    @pytest.mark.asyncio
    async def test_branches_are_annotated(self):
        agent, _ = make_agent(firecrawl_app(), [REPORT_JSON])

        results = await agent.gather_search_results("Acme")

        assert results["domainInfo"][0]["domain"] == "acme.com"
        assert results["socialMedia"][0]["platform"] == "linkedin"
        assert results["companyInfo"][0]["text"] == "Payments"
        assert results["news"] is None

    @pytest.mark.asyncio
    async def test_news_branch_only_when_requested(self):
        app = firecrawl_app()
        agent, _ = make_agent(app, [REPORT_JSON])

        results = await agent.gather_search_results("Acme", include_news=True)

        assert results["news"][0]["title"] == "Acme raises"
        assert len(app.queries) == 4

    @pytest.mark.asyncio
    async def test_raising_branch_contributes_empty_list(self):
        class PartlyBrokenClient:
            async def search(self, query, options=None):
                if "official website" in query:
                    raise RuntimeError("socket closed")
                return SearchResponse(query=query, results=[SearchResult(title="t", url="https://acme.com")])

        agent = ResearchAgent(StructuredExtractor(FakeExtractionLLM([REPORT_JSON])), PartlyBrokenClient())

        results = await agent.gather_search_results("Acme")

        assert results["domainInfo"] == []
        assert len(results["companyInfo"]) == 1
        assert len(results["socialMedia"]) == 1


class TestResearch:
    @pytest.mark.asyncio
    async def test_returns_validated_report(self):
        agent, llm = make_agent(firecrawl_app(), [REPORT_JSON])

        report = await agent.research("Acme", additional_context="fintech")

        assert report.organization.domain == "acme.com"
        assert report.key_people[0].role == "CEO"
        assert report.insights == "Acme builds payment rails.\nGrowing in Europe."
        assert '"Acme"' in llm.last_prompt
        assert "https://acme.com" in llm.last_prompt

    @pytest.mark.asyncio
    async def test_no_search_signal_still_yields_report_without_domain(self):
        agent, llm = make_agent(FakeFirecrawlApp(), [REPORT_WITHOUT_DOMAIN])

        report = await agent.research("Stealth Startup")

        assert report.organization.name == "Stealth Startup"
        assert report.organization.domain is None
        assert '"companyInfo": []' in llm.last_prompt

    @pytest.mark.asyncio
    async def test_provider_outage_still_yields_report(self):
        agent, _ = make_agent(FakeFirecrawlApp(error=RuntimeError("HTTP 503")), [REPORT_WITHOUT_DOMAIN])

        report = await agent.research("Stealth Startup")

        assert report.sources == []

    @pytest.mark.asyncio
    async def test_same_inputs_give_equal_reports(self):
        agent, _ = make_agent(firecrawl_app(), [REPORT_JSON])

        first = await agent.research("Acme")
        second = await agent.research("Acme")

        assert first == second

    @pytest.mark.asyncio
    async def test_extraction_failure_fails_the_call(self):
        agent, _ = make_agent(firecrawl_app(), ["I could not find anything."])

        with pytest.raises(ExtractionError) as exc_info:
            await agent.research("Acme")

        assert exc_info.value.kind == "parse"

    @pytest.mark.asyncio
    async def test_empty_company_name_rejected_before_search(self):
        app = firecrawl_app()
        agent, _ = make_agent(app, [REPORT_JSON])

        with pytest.raises(SchemaValidationError):
            await agent.research("  ")

        assert app.queries == []


class TestResearchCompanies:
    @pytest.mark.asyncio
    async def test_failed_companies_are_dropped_in_order(self):
        other = REPORT_JSON.replace('"name": "Acme"', '"name": "Beta"', 1)
        agent, _ = make_agent(FakeFirecrawlApp(), [REPORT_JSON, "not json", other])

        reports = await agent.research_companies([("Acme", None), ("Broken", None), ("Beta", "retail")])

        assert len(reports) == 2
        names = {r.organization.name for r in reports}
        assert names == {"Acme", "Beta"}
