"""
Request and response models for the chat service.

Request bodies use camelCase keys on the wire, like the agent records.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from coffee_agent.chat.controller import ChatMessage
from coffee_agent.common.schemas import SenderInfo, Tone, WireModel


class ChatRequest(WireModel):
    """Conversation history for one chat turn."""

    messages: List[ChatMessage] = Field(..., min_length=1)


class OutreachRequest(WireModel):
    """
    Request body for email generation.

    contact stays a loose mapping here so that missing name/company/role can
    be reported as one 400 instead of a field-level 422.
    """

    contact: Optional[Dict[str, Any]] = None
    tone: Optional[Tone] = None
    purpose: Optional[str] = None
    sender_info: Optional[SenderInfo] = None
    additional_context: Optional[str] = None
    call_to_action: Optional[str] = None


class FollowUpRequest(WireModel):
    contact: Dict[str, Any]
    previous_email: str = Field(..., min_length=1)
    days_since_last: int = Field(..., ge=0)
    tone: Tone = "professional"
    sender_info: Optional[SenderInfo] = None
    additional_context: Optional[str] = None
    call_to_action: Optional[str] = None


class ImproveRequest(WireModel):
    original_email: str = Field(..., min_length=1)
    improvements: str = Field(..., min_length=1)
    tone: Tone = "professional"


class ResearchRequest(WireModel):
    company_name: str = Field(..., min_length=1)
    additional_context: Optional[str] = None
    include_news: bool = False


class PeopleRequest(WireModel):
    company_name: str = Field(..., min_length=1)
    role: Optional[str] = None
    roles: Optional[List[str]] = Field(
        default=None, description="Fan out one query per role and merge the results"
    )
    num_results: int = Field(default=10, ge=1, le=50)
    include_company_info: bool = False


class HealthResponse(WireModel):
    """Health check response."""

    status: str
    timestamp: datetime
    llm_configured: bool
    search_configured: bool
    candidate_pool_configured: bool
    max_tool_rounds: int
    turn_budget_seconds: float
