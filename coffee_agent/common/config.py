"""
Configuration for the CoffeeAgent research and outreach core.

Centralized configuration management with Pydantic validation.
All values are loaded from environment variables (and an optional .env file)
once at startup, validated, and frozen. Agents receive the settings object
and the clients built from it by reference - nothing re-reads the
environment per call.

Usage:
    from coffee_agent.common.config import get_settings

    settings = get_settings()
    settings.max_tool_rounds  # 5
"""

from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file
load_dotenv()


class AgentSettings(BaseSettings):
    """
    Immutable configuration for all agents, clients and the chat controller.

    All settings can be overridden via environment variables.
    Validation happens at construction to fail fast on misconfiguration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # ===== LLM gateway (OpenRouter, OpenAI-compatible) =====
    openrouter_api_key: str = Field(default="", description="OpenRouter API key")
    openrouter_base_url: str = Field(
        default="https://openrouter.ai/api/v1",
        description="OpenAI-compatible gateway base URL",
    )
    chat_model: str = Field(
        default="anthropic/claude-3.5-sonnet",
        description="Model driving the tool-calling conversation",
    )
    extraction_model: str = Field(
        default="openai/gpt-4o-mini",
        description="Model used for structured extraction and email writing",
    )
    default_temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=4000, ge=256, le=32000)

    # ===== Search provider (FireCrawl) =====
    firecrawl_api_key: str = Field(
        default="",
        description="FireCrawl API key; when empty, search degrades to no signal",
    )
    max_search_results: int = Field(
        default=25,
        ge=1,
        le=100,
        description="Provider policy cap for results per search",
    )

    # ===== Candidate pool provider (Apollo) =====
    apollo_api_key: Optional[str] = Field(
        default=None,
        description="Apollo API key; required only when a candidate query runs",
    )
    apollo_base_url: str = Field(default="https://api.apollo.io/api/v1")
    people_strategy: str = Field(
        default="candidate_pool",
        description="People lookup backend: candidate_pool (Apollo) or heuristic (web snippets)",
    )

    # ===== Timeouts & retries =====
    search_timeout_seconds: float = Field(default=15.0, gt=0, le=120)
    candidate_timeout_seconds: float = Field(default=20.0, gt=0, le=120)
    llm_timeout_seconds: float = Field(default=45.0, gt=0, le=300)
    provider_retry_attempts: int = Field(default=2, ge=1, le=5)

    # ===== Conversation budget =====
    max_tool_rounds: int = Field(
        default=5,
        ge=1,
        le=10,
        description="Maximum model-orchestrated tool-call rounds per turn",
    )
    turn_budget_seconds: float = Field(
        default=60.0,
        gt=0,
        le=600,
        description="Wall-clock budget for one conversational turn",
    )

    # ===== Logging =====
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="simple")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a known logging level name."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of: {', '.join(sorted(allowed))}")
        return v_upper

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format is simple or json."""
        v_lower = v.lower()
        if v_lower not in {"simple", "json"}:
            raise ValueError("log_format must be 'simple' or 'json'")
        return v_lower

    @field_validator("people_strategy")
    @classmethod
    def validate_people_strategy(cls, v: str) -> str:
        v_lower = v.lower()
        if v_lower not in {"candidate_pool", "heuristic"}:
            raise ValueError("people_strategy must be 'candidate_pool' or 'heuristic'")
        return v_lower

    @field_validator("openrouter_base_url", "apollo_base_url")
    @classmethod
    def validate_url_format(cls, v: str) -> str:
        """Basic URL format validation."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Invalid URL format: {v}")
        return v.rstrip("/")

    @property
    def has_candidate_credential(self) -> bool:
        """True when the candidate pool credential is configured."""
        return bool(self.apollo_api_key and self.apollo_api_key.strip())

    def summary(self) -> str:
        """Return a summary of the current configuration (safe for logging)."""
        return f"""
Configuration Summary:
  LLM gateway: {self.openrouter_base_url} {'✓' if self.openrouter_api_key else '✗ Missing key'}
  Chat model: {self.chat_model}
  Extraction model: {self.extraction_model}
  FireCrawl search: {'✓ Configured' if self.firecrawl_api_key else '✗ Missing (search returns no signal)'}
  Apollo candidates: {'✓ Configured' if self.has_candidate_credential else '✗ Missing'}
  Tool rounds per turn: {self.max_tool_rounds}
  Turn budget: {self.turn_budget_seconds:.0f}s
        """.strip()


@lru_cache
def get_settings() -> AgentSettings:
    """Get the process-wide settings instance (constructed once)."""
    return AgentSettings()
