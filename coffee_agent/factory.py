"""
Startup wiring.

build_agents() constructs the model handles and provider clients exactly
once and injects them by reference into every agent and the conversation
controller. Nothing downstream re-reads the environment.
"""

from dataclasses import dataclass
from typing import Any, Optional

import httpx
from langchain_core.language_models import BaseChatModel

from coffee_agent.agents.outreach_agent import OutreachAgent
from coffee_agent.agents.people_agent import (
    CandidatePoolStrategy,
    HeuristicSearchStrategy,
    PeopleAgent,
    PeopleStrategy,
)
from coffee_agent.agents.research_agent import ResearchAgent
from coffee_agent.chat.controller import ConversationController
from coffee_agent.chat.tools import build_chat_tools
from coffee_agent.clients.candidate_client import ApolloCandidateClient
from coffee_agent.clients.search_client import FirecrawlSearchClient
from coffee_agent.common.config import AgentSettings
from coffee_agent.common.llm_factory import create_chat_llm, create_extraction_llm
from coffee_agent.extraction.structured_extractor import StructuredExtractor


@dataclass(frozen=True)
class AgentBundle:
    settings: AgentSettings
    search_client: FirecrawlSearchClient
    candidate_client: ApolloCandidateClient
    extractor: StructuredExtractor
    research: ResearchAgent
    people: PeopleAgent
    outreach: OutreachAgent
    controller: ConversationController


def build_agents(
    settings: AgentSettings,
    chat_llm: Optional[BaseChatModel] = None,
    extraction_llm: Optional[BaseChatModel] = None,
    search_app: Any = None,
    candidate_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AgentBundle:
    """
    Build every agent from one settings object.

    The optional arguments replace the real model handles, the FireCrawl SDK
    object and the Apollo HTTP transport (tests inject fakes here).
    """
    extraction_llm = extraction_llm or create_extraction_llm(settings)
    chat_llm = chat_llm or create_chat_llm(settings)

    if search_app is not None:
        search_client = FirecrawlSearchClient(
            app=search_app,
            timeout=settings.search_timeout_seconds,
            max_results=settings.max_search_results,
            retry_attempts=settings.provider_retry_attempts,
        )
    else:
        search_client = FirecrawlSearchClient.from_settings(settings)
    candidate_client = ApolloCandidateClient.from_settings(settings, transport=candidate_transport)
    extractor = StructuredExtractor(extraction_llm)

    strategy: PeopleStrategy
    if settings.people_strategy == "heuristic":
        strategy = HeuristicSearchStrategy(search_client)
    else:
        strategy = CandidatePoolStrategy(candidate_client)

    # Per-branch ceilings cover every retry attempt of the underlying call
    attempts = settings.provider_retry_attempts
    search_ceiling = settings.search_timeout_seconds * attempts + 5
    people_ceiling = max(
        settings.candidate_timeout_seconds * attempts,
        search_ceiling + settings.llm_timeout_seconds,
    ) + 5

    research = ResearchAgent(extractor, search_client, branch_timeout=search_ceiling)
    people = PeopleAgent(
        strategy,
        search_client=search_client,
        extractor=extractor,
        branch_timeout=people_ceiling,
    )
    outreach = OutreachAgent(extractor)

    controller = ConversationController(
        chat_llm,
        build_chat_tools(research, people, outreach, search_client),
        max_tool_rounds=settings.max_tool_rounds,
        turn_budget_seconds=settings.turn_budget_seconds,
    )

    return AgentBundle(
        settings=settings,
        search_client=search_client,
        candidate_client=candidate_client,
        extractor=extractor,
        research=research,
        people=people,
        outreach=outreach,
        controller=controller,
    )
