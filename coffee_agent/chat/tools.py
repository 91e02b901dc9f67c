"""
Chat tools exposed to the conversation model.

Each ChatTool pairs a pydantic argument model (used both for the JSON schema
handed to the model and for validating the arguments it sends back) with an
async handler. Handlers return JSON-serializable dicts shaped
{"success": True, ...}; any exception they raise is captured by the
controller as an output-error for that call only.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Type

from pydantic import BaseModel

from coffee_agent.agents.outreach_agent import OutreachAgent
from coffee_agent.agents.people_agent import PeopleAgent
from coffee_agent.agents.research_agent import ResearchAgent
from coffee_agent.clients.search_client import FirecrawlSearchClient, SearchOptions
from coffee_agent.common.schemas import (
    GenerateEmailArgs,
    ResearchCompanyArgs,
    SearchPeopleArgs,
    WebSearchArgs,
    to_wire,
    validate_record,
)

ToolHandler = Callable[[Any], Awaitable[Dict[str, Any]]]


@dataclass
class ChatTool:
    name: str
    description: str
    args_model: Type[BaseModel]
    handler: ToolHandler

    def schema(self) -> Dict[str, Any]:
        """OpenAI function-calling definition."""
        parameters = self.args_model.model_json_schema(by_alias=True)
        parameters.pop("title", None)
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": parameters,
            },
        }

    async def run(self, raw_args: Dict[str, Any]) -> Dict[str, Any]:
        """Validate the model-supplied arguments and execute the handler."""
        args = validate_record(self.args_model, raw_args or {})
        return await self.handler(args)


def build_chat_tools(
    research_agent: ResearchAgent,
    people_agent: PeopleAgent,
    outreach_agent: OutreachAgent,
    search_client: FirecrawlSearchClient,
) -> List[ChatTool]:
    """The tool set available to the chat model."""

    async def web_search(args: WebSearchArgs) -> Dict[str, Any]:
        response = await search_client.search(
            args.query,
            SearchOptions(num_results=args.num_results, max_chars_per_result=1000),
        )
        return {
            "success": True,
            "query": args.query,
            "results": [r.to_dict() for r in response.results],
        }

    async def research_company(args: ResearchCompanyArgs) -> Dict[str, Any]:
        report = await research_agent.research(
            args.company_name,
            additional_context=args.additional_context,
            include_news=args.include_news,
        )
        return {"success": True, "companyName": args.company_name, "report": to_wire(report)}

    async def search_people(args: SearchPeopleArgs) -> Dict[str, Any]:
        result = await people_agent.search_people(
            args.company_name,
            role=args.role,
            num_results=args.num_results,
            include_company_info=True,
        )
        wire = to_wire(result)
        return {
            "success": True,
            "companyName": args.company_name,
            "people": wire.get("people", []),
            "totalFound": result.total_found,
            "companyInfo": wire.get("companyInfo"),
        }

    async def generate_email(args: GenerateEmailArgs) -> Dict[str, Any]:
        message = await outreach_agent.generate_email(
            args.contact,
            tone=args.tone,
            purpose=args.purpose,
            sender_info=args.sender_info,
            additional_context=args.additional_context,
            call_to_action=args.call_to_action,
        )
        return {"success": True, "email": to_wire(message)}

    return [
        ChatTool(
            name="webSearch",
            description="Search the web for information about companies and people.",
            args_model=WebSearchArgs,
            handler=web_search,
        ),
        ChatTool(
            name="researchCompany",
            description=(
                "Research a company and get comprehensive information including domain, "
                "social media, industry, and key people"
            ),
            args_model=ResearchCompanyArgs,
            handler=research_company,
        ),
        ChatTool(
            name="searchPeople",
            description="Search for people at a company by role or title.",
            args_model=SearchPeopleArgs,
            handler=search_people,
        ),
        ChatTool(
            name="generateEmail",
            description="Write a personalized outreach email to a contact.",
            args_model=GenerateEmailArgs,
            handler=generate_email,
        ),
    ]
