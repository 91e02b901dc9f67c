"""
LLM Factory Module.

Provides factory functions for creating chat model handles. All agents and
the conversation controller receive a model built here once at startup;
none of them instantiate ChatOpenAI directly.

The gateway is OpenRouter, which speaks the OpenAI chat-completion protocol,
so ChatOpenAI with a custom base_url covers every provider model.

Usage:
    from coffee_agent.common.llm_factory import create_chat_llm, create_extraction_llm

    chat_llm = create_chat_llm(settings)
    extraction_llm = create_extraction_llm(settings)
"""

import logging
from typing import Any, Optional

from langchain_openai import ChatOpenAI

from coffee_agent.common.config import AgentSettings

logger = logging.getLogger(__name__)


def create_llm(
    settings: AgentSettings,
    model: str,
    temperature: Optional[float] = None,
    **kwargs: Any,
) -> ChatOpenAI:
    """
    Create a ChatOpenAI instance pointed at the configured gateway.

    Args:
        settings: Immutable agent settings
        model: Gateway model identifier (e.g., "openai/gpt-4o-mini")
        temperature: Temperature (defaults to settings.default_temperature)
        **kwargs: Additional ChatOpenAI parameters

    Returns:
        ChatOpenAI instance
    """
    effective_temperature = (
        temperature if temperature is not None else settings.default_temperature
    )

    llm = ChatOpenAI(
        model=model,
        temperature=effective_temperature,
        api_key=settings.openrouter_api_key or "missing-key",
        base_url=settings.openrouter_base_url,
        max_tokens=settings.max_tokens,
        timeout=settings.llm_timeout_seconds,
        max_retries=settings.provider_retry_attempts,
        **kwargs,
    )

    logger.debug(f"Created LLM: model={model}, temperature={effective_temperature}")
    return llm


def create_chat_llm(settings: AgentSettings, **kwargs: Any) -> ChatOpenAI:
    """Model driving the streaming tool-calling conversation."""
    return create_llm(settings, settings.chat_model, streaming=True, **kwargs)


def create_extraction_llm(settings: AgentSettings, **kwargs: Any) -> ChatOpenAI:
    """Model used for structured extraction and email generation."""
    return create_llm(settings, settings.extraction_model, **kwargs)
