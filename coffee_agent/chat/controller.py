"""
Tool-Calling Conversation Controller.

Drives one streaming chat turn. The model may request tool calls; each call
moves through

    pending -> input-available -> output-available | output-error

and every transition, as well as every text delta, is streamed to the caller
as a StreamEvent. Tool calls from one model step run concurrently. The turn
stops when the model answers without tool calls, when the step budget is
used up, or when the wall-clock budget runs out. The final "finish" event
carries the assembled AssistantTurn.
"""

import asyncio
import json
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Literal, Optional, Sequence, Tuple, Union

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage
from langchain_core.utils.json import parse_partial_json
from pydantic import BaseModel, Field

from coffee_agent.chat.tools import ChatTool
from coffee_agent.common.error_handling import ToolExecutionError, user_facing_message
from coffee_agent.common.logger import get_logger
from coffee_agent.extraction.structured_extractor import message_text

SYSTEM_PROMPT = """You are an AI assistant for CoffeeAgent.AI, a professional networking platform. You help users research companies, find people, and generate outreach emails.

Your capabilities:
1. Web Search - Search the web for information about companies and people
2. Research Company - Get comprehensive information about a company including its domain, social media, industry, and key people
3. Search People - Find people working at a company, optionally filtered by role
4. Generate Email - Write a personalized outreach email to a contact

When a user asks about a company or wants to find people, use the appropriate tools to gather real-time information.

Be helpful, concise, and provide actionable insights. Format your responses clearly with proper markdown."""

FINISH_STOP = "stop"
FINISH_STEP_BUDGET = "step-budget"
FINISH_TIMEOUT = "timeout"
FINISH_ERROR = "error"


class ToolCallState(str, Enum):
    PENDING = "pending"
    INPUT_AVAILABLE = "input-available"
    OUTPUT_AVAILABLE = "output-available"
    OUTPUT_ERROR = "output-error"


ALLOWED_TRANSITIONS = {
    ToolCallState.PENDING: {ToolCallState.INPUT_AVAILABLE},
    ToolCallState.INPUT_AVAILABLE: {ToolCallState.OUTPUT_AVAILABLE, ToolCallState.OUTPUT_ERROR},
    ToolCallState.OUTPUT_AVAILABLE: set(),
    ToolCallState.OUTPUT_ERROR: set(),
}

EVENT_FOR_STATE = {
    ToolCallState.PENDING: "tool-input-start",
    ToolCallState.INPUT_AVAILABLE: "tool-input-available",
    ToolCallState.OUTPUT_AVAILABLE: "tool-output-available",
    ToolCallState.OUTPUT_ERROR: "tool-output-error",
}


class ChatMessage(BaseModel):
    """One message of the conversation history sent by the client."""

    role: Literal["system", "user", "assistant"]
    content: str = Field(default="")


@dataclass
class ToolCallRecord:
    """Lifecycle of one tool invocation within a turn."""

    tool_call_id: str
    tool_name: str
    step: int
    state: ToolCallState = ToolCallState.PENDING
    input: Optional[Dict[str, Any]] = None
    output: Optional[Dict[str, Any]] = None
    error_text: Optional[str] = None
    error: Optional[ToolExecutionError] = field(default=None, repr=False, compare=False)

    @property
    def terminal(self) -> bool:
        return self.state in (ToolCallState.OUTPUT_AVAILABLE, ToolCallState.OUTPUT_ERROR)

    def transition(self, new_state: ToolCallState) -> None:
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise ValueError(
                f"Illegal tool call transition {self.state.value} -> {new_state.value} ({self.tool_call_id})"
            )
        self.state = new_state

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "toolCallId": self.tool_call_id,
            "toolName": self.tool_name,
            "state": self.state.value,
        }
        if self.input is not None:
            data["input"] = self.input
        if self.output is not None:
            data["output"] = self.output
        if self.error_text is not None:
            data["errorText"] = self.error_text
        return data


@dataclass
class StreamEvent:
    type: str
    data: Dict[str, Any] = field(default_factory=dict)
    turn: Optional["AssistantTurn"] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, **self.data}

    def to_sse(self) -> str:
        """Server-sent event frame."""
        return f"data: {json.dumps(self.to_dict(), default=str)}\n\n"


@dataclass
class AssistantTurn:
    """Final assembled assistant message for one turn."""

    text: str = ""
    tool_calls: List[ToolCallRecord] = field(default_factory=list)
    steps: int = 0
    finish_reason: str = FINISH_STOP

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role": "assistant",
            "text": self.text,
            "toolCalls": [call.to_dict() for call in self.tool_calls],
            "steps": self.steps,
            "finishReason": self.finish_reason,
        }


def to_langchain_messages(messages: Sequence[Union[ChatMessage, Dict[str, Any]]]) -> List[BaseMessage]:
    converted: List[BaseMessage] = []
    for raw in messages:
        message = raw if isinstance(raw, ChatMessage) else ChatMessage.model_validate(raw)
        if message.role == "system":
            converted.append(SystemMessage(content=message.content))
        elif message.role == "assistant":
            converted.append(AIMessage(content=message.content))
        else:
            converted.append(HumanMessage(content=message.content))
    return converted


def _parse_tool_args(raw: Optional[str]) -> Tuple[Dict[str, Any], Optional[str]]:
    """Arguments of one streamed tool call, or an error when they are not a JSON object."""
    if not raw:
        return {}, None
    try:
        args = parse_partial_json(raw)
    except Exception as e:
        return {}, str(e)
    if not isinstance(args, dict):
        return {}, f"not a JSON object: {raw}"
    return args, None


class TurnBudgetExceeded(Exception):
    """The wall-clock budget for the turn ran out."""


class ConversationController:
    """Streaming tool-calling loop with a step budget and a turn budget."""

    def __init__(
        self,
        llm: BaseChatModel,
        tools: Sequence[ChatTool],
        max_tool_rounds: int = 5,
        turn_budget_seconds: float = 60.0,
        system_prompt: str = SYSTEM_PROMPT,
    ):
        self.llm = llm
        self.tools = {tool.name: tool for tool in tools}
        self.max_tool_rounds = max_tool_rounds
        self.turn_budget_seconds = turn_budget_seconds
        self.system_prompt = system_prompt
        self.bound_llm = llm.bind_tools([tool.schema() for tool in tools]) if tools else llm

    def _event(self, record: ToolCallRecord) -> StreamEvent:
        return StreamEvent(EVENT_FOR_STATE[record.state], record.to_dict())

    @staticmethod
    def _remaining(deadline: float) -> float:
        return deadline - asyncio.get_running_loop().time()

    async def run(self, messages: Sequence[Union[ChatMessage, Dict[str, Any]]]) -> AssistantTurn:
        """Consume the stream and return the assembled turn."""
        turn = AssistantTurn()
        async for event in self.stream(messages):
            if event.type == "finish":
                turn = event.turn
        return turn

    async def stream(
        self,
        messages: Sequence[Union[ChatMessage, Dict[str, Any]]],
        run_id: Optional[str] = None,
    ) -> AsyncIterator[StreamEvent]:
        """
        Run one conversational turn, yielding events as they happen.

        Event types: start, text-delta, tool-input-start, tool-input-available,
        tool-output-available, tool-output-error, error, finish. The finish
        event's data holds the AssistantTurn under "turn".
        """
        run_id = run_id or uuid.uuid4().hex
        logger = get_logger(__name__, run_id=run_id, component="chat")
        deadline = asyncio.get_running_loop().time() + self.turn_budget_seconds
        history: List[BaseMessage] = [SystemMessage(content=self.system_prompt)]
        history.extend(to_langchain_messages(messages))
        turn = AssistantTurn()

        yield StreamEvent("start", {"runId": run_id})

        try:
            for step in range(1, self.max_tool_rounds + 1):
                turn.steps = step
                step_text: List[str] = []
                records: List[ToolCallRecord] = []

                async for event in self._stream_model_step(history, step, deadline, step_text, records):
                    yield event
                turn.text += "".join(step_text)

                if not records:
                    turn.finish_reason = FINISH_STOP
                    break

                turn.tool_calls.extend(records)
                history.append(
                    AIMessage(
                        content="".join(step_text),
                        tool_calls=[
                            {"name": r.tool_name, "args": r.input or {}, "id": r.tool_call_id}
                            for r in records
                        ],
                    )
                )

                async for event in self._execute_tools(records, deadline, logger):
                    yield event

                for record in records:
                    payload = record.output if record.output is not None else {
                        "success": False,
                        "error": record.error_text,
                    }
                    history.append(
                        ToolMessage(content=json.dumps(payload, default=str), tool_call_id=record.tool_call_id)
                    )
            else:
                turn.finish_reason = FINISH_STEP_BUDGET
                logger.info(f"Step budget of {self.max_tool_rounds} reached")
        except TurnBudgetExceeded:
            turn.finish_reason = FINISH_TIMEOUT
            logger.warning(f"Turn budget of {self.turn_budget_seconds:.0f}s exceeded")
        except Exception as e:
            turn.finish_reason = FINISH_ERROR
            logger.exception(f"Chat turn failed: {e}")
            yield StreamEvent("error", {"errorText": user_facing_message(e)})

        logger.info(
            f"Turn finished ({turn.finish_reason}) after {turn.steps} steps, "
            f"{len(turn.tool_calls)} tool calls"
        )
        yield StreamEvent(
            "finish",
            {"finishReason": turn.finish_reason, "message": turn.to_dict()},
            turn=turn,
        )

    async def _stream_model_step(
        self,
        history: List[BaseMessage],
        step: int,
        deadline: float,
        step_text: List[str],
        records: List[ToolCallRecord],
    ) -> AsyncIterator[StreamEvent]:
        """Stream one model call; fills step_text and records in place."""
        pending: Dict[Any, ToolCallRecord] = {}
        aggregate = None
        iterator = self.bound_llm.astream(history).__aiter__()

        while True:
            remaining = self._remaining(deadline)
            if remaining <= 0:
                raise TurnBudgetExceeded()
            try:
                chunk = await asyncio.wait_for(iterator.__anext__(), timeout=remaining)
            except StopAsyncIteration:
                break
            except asyncio.TimeoutError as e:
                raise TurnBudgetExceeded() from e

            aggregate = chunk if aggregate is None else aggregate + chunk

            delta = message_text(chunk)
            if delta:
                step_text.append(delta)
                yield StreamEvent("text-delta", {"delta": delta})

            for tc_chunk in getattr(chunk, "tool_call_chunks", None) or []:
                index = tc_chunk.get("index")
                if index in pending or not (tc_chunk.get("id") or tc_chunk.get("name")):
                    continue
                record = ToolCallRecord(
                    tool_call_id=tc_chunk.get("id") or f"call_{uuid.uuid4().hex[:12]}",
                    tool_name=tc_chunk.get("name") or "",
                    step=step,
                )
                pending[index] = record
                yield self._event(record)

        if aggregate is None:
            return

        for merged in getattr(aggregate, "tool_call_chunks", None) or []:
            record = pending.pop(merged.get("index"), None)
            if record is None:
                record = ToolCallRecord(
                    tool_call_id=merged.get("id") or f"call_{uuid.uuid4().hex[:12]}",
                    tool_name=merged.get("name") or "",
                    step=step,
                )
                yield self._event(record)
            record.tool_name = merged.get("name") or record.tool_name
            args, parse_error = _parse_tool_args(merged.get("args"))
            record.input = args
            record.transition(ToolCallState.INPUT_AVAILABLE)
            if parse_error:
                record.error_text = f"Invalid tool arguments: {parse_error}"
            records.append(record)
            yield self._event(record)

    async def _execute_one(self, record: ToolCallRecord, logger) -> ToolCallRecord:
        if record.error_text:
            record.transition(ToolCallState.OUTPUT_ERROR)
            return record

        tool = self.tools.get(record.tool_name)
        if tool is None:
            record.error_text = f"Unknown tool: {record.tool_name}"
            record.transition(ToolCallState.OUTPUT_ERROR)
            return record

        try:
            record.output = await tool.run(record.input or {})
            record.transition(ToolCallState.OUTPUT_AVAILABLE)
        except Exception as e:
            record.error = ToolExecutionError(record.tool_name, str(e) or type(e).__name__)
            record.error.__cause__ = e
            logger.warning(f"Tool call {record.tool_call_id} failed: {record.error}")
            record.error_text = str(record.error)
            record.transition(ToolCallState.OUTPUT_ERROR)
        return record

    async def _execute_tools(
        self,
        records: List[ToolCallRecord],
        deadline: float,
        logger,
    ) -> AsyncIterator[StreamEvent]:
        """Run every call of one step concurrently; yield each result as it lands."""
        tasks = [asyncio.ensure_future(self._execute_one(record, logger)) for record in records]
        emitted = set()
        remaining = max(self._remaining(deadline), 0)
        try:
            for next_done in asyncio.as_completed(tasks, timeout=remaining):
                record = await next_done
                emitted.add(record.tool_call_id)
                yield self._event(record)
        except asyncio.TimeoutError as e:
            for task in tasks:
                if not task.done():
                    task.cancel()
            for record in records:
                if record.tool_call_id in emitted:
                    continue
                if not record.terminal:
                    record.error_text = "Turn time budget exceeded before the tool finished"
                    record.transition(ToolCallState.OUTPUT_ERROR)
                yield self._event(record)
            raise TurnBudgetExceeded() from e
