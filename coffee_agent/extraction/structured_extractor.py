"""
Structured Extractor.

Turns one language-model generation into a schema-valid record:

    extractor = StructuredExtractor(llm)
    report = await extractor.extract(prompt, ResearchReport)

The model is asked for a single JSON object with escaped newlines. Its reply
is parsed with the three-tier fallback in json_utils (direct parse, first
balanced {...} span, newline repair) and then validated against the schema.
Parse failures and validation failures raise ExtractionError with distinct
kinds so callers can tell "could not be parsed" apart from "wrong fields".
"""

import logging
from typing import Any, Dict, Optional, Type, TypeVar

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import BaseModel

from coffee_agent.common.error_handling import ExtractionError, ProviderError, SchemaValidationError
from coffee_agent.common.json_utils import (
    PARSE_NEWLINE_REPAIR,
    JSONRecoveryError,
    parse_llm_json_with_strategy,
)
from coffee_agent.common.schemas import validate_record

M = TypeVar("M", bound=BaseModel)

JSON_SYSTEM_PROMPT = """You are a precise data extraction assistant.

Respond with a single JSON object and nothing else: no prose, no Markdown code fences.
Inside string values, write line breaks as the two-character escape \\n, never as a literal line break.
Escape double quotes inside string values as \\".
Omit optional fields you have no evidence for instead of guessing."""


def message_text(response: Any) -> str:
    """Flatten a chat model response (string or content blocks) to text."""
    content = getattr(response, "content", response)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    return str(content or "")


class StructuredExtractor:
    """One generation call + parse/repair + schema validation."""

    def __init__(self, llm: BaseChatModel, system_prompt: str = JSON_SYSTEM_PROMPT):
        self.llm = llm
        self.system_prompt = system_prompt
        self.logger = logging.getLogger(__name__)

    async def generate(self, prompt: str) -> str:
        """Send the prompt and return the raw reply text."""
        messages = [
            SystemMessage(content=self.system_prompt),
            HumanMessage(content=prompt),
        ]
        try:
            response = await self.llm.ainvoke(messages)
        except Exception as e:
            self.logger.warning(f"LLM generation failed: {e}")
            raise ProviderError("llm", str(e) or type(e).__name__) from e
        return message_text(response)

    def parse(
        self,
        raw_text: str,
        schema: Type[M],
        known_fields: Optional[Dict[str, Any]] = None,
    ) -> M:
        """
        Parse raw model text into a validated record.

        known_fields are values the caller already knows (e.g., the requested
        tone); they fill keys the model left out but never override the model.

        Raises:
            ExtractionError: kind="parse" if no JSON object can be recovered,
                             kind="validation" if the object fails the schema
        """
        try:
            data, strategy = parse_llm_json_with_strategy(raw_text)
        except JSONRecoveryError as e:
            self.logger.error(f"Unrepairable model output for {schema.__name__}: {raw_text[:500]}")
            raise ExtractionError(
                "Model response could not be parsed as JSON",
                kind="parse",
                raw_text=raw_text,
            ) from e

        if strategy == PARSE_NEWLINE_REPAIR:
            self.logger.info(f"Repaired JSON via newline escape for {schema.__name__}")
        else:
            self.logger.debug(f"Parsed {schema.__name__} JSON via {strategy}")

        if known_fields:
            data = {**known_fields, **data}

        try:
            return validate_record(schema, data)
        except SchemaValidationError as e:
            self.logger.error(f"{schema.__name__} failed validation: {e.fields}")
            raise ExtractionError(
                str(e),
                kind="validation",
                raw_text=raw_text,
                fields=e.fields,
            ) from e

    async def extract(
        self,
        prompt: str,
        schema: Type[M],
        known_fields: Optional[Dict[str, Any]] = None,
    ) -> M:
        """
        Generate and extract a record of the given schema.

        Args:
            prompt: Full user prompt describing the task and the JSON shape
            schema: Pydantic model the reply must validate against
            known_fields: Caller-known values merged under the model output

        Returns:
            Validated record

        Raises:
            ProviderError: if the model call itself fails
            ExtractionError: on parse or validation failure
        """
        raw_text = await self.generate(prompt)
        return self.parse(raw_text, schema, known_fields=known_fields)
