"""
FastAPI service for the CoffeeAgent core.

Endpoints:
    POST /chat                stream one tool-calling chat turn as server-sent events
    POST /outreach/generate   one outreach email
    POST /outreach/follow-up  follow-up email
    POST /outreach/improve    rewrite of an existing email
    POST /research            company research report
    POST /people              people at a company (single role or merged roles)
    GET  /health              configuration status

Agents are built once per process (see get_agents) and shared by reference.
Internal errors are collapsed to one human-readable message per response.

Run with:
    uvicorn chat_service.app:app --host 0.0.0.0 --port 8000
"""

import logging
from datetime import datetime
from functools import lru_cache
from typing import AsyncIterator

from fastapi import Depends, FastAPI, HTTPException
from fastapi.responses import StreamingResponse

from coffee_agent.agents.outreach_agent import DEFAULT_PURPOSE, DEFAULT_TONE
from coffee_agent.common.config import get_settings
from coffee_agent.common.error_handling import (
    CoffeeAgentError,
    ConfigurationError,
    ExtractionError,
    SchemaValidationError,
    user_facing_message,
)
from coffee_agent.common.logger import setup_logging
from coffee_agent.common.schemas import OutreachContact, to_wire, validate_record
from coffee_agent.factory import AgentBundle, build_agents

from .models import (
    ChatRequest,
    FollowUpRequest,
    HealthResponse,
    ImproveRequest,
    OutreachRequest,
    PeopleRequest,
    ResearchRequest,
)

settings = get_settings()
setup_logging(settings.log_level, settings.log_format)
logger = logging.getLogger(__name__)

app = FastAPI(title="CoffeeAgent Chat Service", version="0.1.0")


@lru_cache
def get_agents() -> AgentBundle:
    """Process-wide agent bundle, built on first use."""
    logger.info(get_settings().summary())
    return build_agents(get_settings())


def _http_error(exc: Exception) -> HTTPException:
    """Map an agent error to an HTTP error with a user-facing message."""
    if isinstance(exc, SchemaValidationError):
        return HTTPException(status_code=400, detail=user_facing_message(exc))
    if isinstance(exc, ConfigurationError):
        logger.error(f"Configuration error: {exc}")
        return HTTPException(status_code=503, detail=user_facing_message(exc))
    if isinstance(exc, ExtractionError):
        logger.error(f"Extraction failed ({exc.kind}): {exc}")
        return HTTPException(status_code=500, detail=user_facing_message(exc))
    logger.exception(f"Agent call failed: {exc}")
    return HTTPException(status_code=502, detail=user_facing_message(exc))


def _contact_or_400(raw_contact) -> OutreachContact:
    if not raw_contact or not all(raw_contact.get(k) for k in ("name", "company", "role")):
        raise HTTPException(status_code=400, detail="Missing required contact information")
    try:
        return validate_record(OutreachContact, raw_contact)
    except SchemaValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid contact: {', '.join(e.fields)}")


@app.post("/chat")
async def chat(request: ChatRequest, agents: AgentBundle = Depends(get_agents)) -> StreamingResponse:
    """Stream text deltas, tool-call state transitions and a final finish event."""

    async def event_generator() -> AsyncIterator[str]:
        async for event in agents.controller.stream(request.messages):
            yield event.to_sse()
        yield "data: [DONE]\n\n"

    return StreamingResponse(event_generator(), media_type="text/event-stream")


@app.post("/outreach/generate")
async def generate_outreach(request: OutreachRequest, agents: AgentBundle = Depends(get_agents)):
    contact = _contact_or_400(request.contact)
    try:
        email = await agents.outreach.generate_email(
            contact,
            tone=request.tone or DEFAULT_TONE,
            purpose=request.purpose or DEFAULT_PURPOSE,
            sender_info=request.sender_info,
            additional_context=request.additional_context,
            call_to_action=request.call_to_action,
        )
    except CoffeeAgentError as e:
        raise _http_error(e)
    return {"email": to_wire(email)}


@app.post("/outreach/follow-up")
async def generate_follow_up(request: FollowUpRequest, agents: AgentBundle = Depends(get_agents)):
    contact = _contact_or_400(request.contact)
    try:
        email = await agents.outreach.generate_follow_up(
            contact,
            request.previous_email,
            request.days_since_last,
            tone=request.tone,
            sender_info=request.sender_info,
            additional_context=request.additional_context,
            call_to_action=request.call_to_action,
        )
    except CoffeeAgentError as e:
        raise _http_error(e)
    return {"email": to_wire(email)}


@app.post("/outreach/improve")
async def improve_outreach(request: ImproveRequest, agents: AgentBundle = Depends(get_agents)):
    try:
        email = await agents.outreach.improve_email(
            request.original_email, request.improvements, tone=request.tone
        )
    except CoffeeAgentError as e:
        raise _http_error(e)
    return {"email": to_wire(email)}


@app.post("/research")
async def research(request: ResearchRequest, agents: AgentBundle = Depends(get_agents)):
    try:
        report = await agents.research.research(
            request.company_name,
            additional_context=request.additional_context,
            include_news=request.include_news,
        )
    except CoffeeAgentError as e:
        raise _http_error(e)
    return {"report": to_wire(report)}


@app.post("/people")
async def people(request: PeopleRequest, agents: AgentBundle = Depends(get_agents)):
    try:
        if request.roles:
            result = await agents.people.search_people_by_roles(request.company_name, request.roles)
        else:
            result = await agents.people.search_people(
                request.company_name,
                role=request.role,
                num_results=request.num_results,
                include_company_info=request.include_company_info,
            )
    except CoffeeAgentError as e:
        raise _http_error(e)
    return to_wire(result)


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    current = get_settings()
    return HealthResponse(
        status="healthy",
        timestamp=datetime.utcnow(),
        llm_configured=bool(current.openrouter_api_key),
        search_configured=bool(current.firecrawl_api_key),
        candidate_pool_configured=current.has_candidate_credential,
        max_tool_rounds=current.max_tool_rounds,
        turn_budget_seconds=current.turn_budget_seconds,
    )
