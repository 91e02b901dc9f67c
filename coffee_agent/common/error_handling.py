"""
Centralized error handling for the research and outreach agents.

Error taxonomy:
    (a) provider unavailable / timeout  -> ProviderErrorInfo descriptor, degrade to empty
    (b) missing required credential     -> ConfigurationError, fatal, never retried
    (c) unparsable model output         -> ExtractionError (after the repair pass)
    (d) well-formed JSON, wrong fields  -> SchemaValidationError with the failing fields
    (e) exception inside a tool         -> captured per call as an output-error

Concurrent fan-out uses BranchResult + gather_branches: every branch resolves
to an explicit success or failure value, and a failing branch never cancels
its siblings.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Dict, Generic, List, Optional, Sequence, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)

PARSE_FAILURE_MESSAGE = (
    "The AI model had trouble generating a valid response. "
    "Please try again with a different purpose or tone."
)
GENERIC_FAILURE_MESSAGE = "Something went wrong while contacting our research providers. Please try again."


class CoffeeAgentError(Exception):
    """Base class for all errors raised by the agent core."""


class ProviderError(CoffeeAgentError):
    """An external provider (search, candidate pool, LLM) failed or timed out."""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status_code = status_code


class ConfigurationError(CoffeeAgentError):
    """A required credential or setting is missing. Fatal and not retryable."""


class SchemaValidationError(CoffeeAgentError, ValueError):
    """A record or argument set failed schema validation."""

    def __init__(self, message: str, fields: Optional[List[str]] = None):
        super().__init__(message)
        self.fields = list(fields or [])


class ExtractionError(CoffeeAgentError):
    """
    Model output could not be turned into a schema-valid record.

    kind is "parse" when no JSON object could be recovered even after repair,
    and "validation" when JSON parsed but did not match the schema (in which
    case the causing SchemaValidationError is attached as __cause__ and its
    field list is copied onto this error).
    """

    def __init__(
        self,
        message: str,
        kind: str = "parse",
        raw_text: Optional[str] = None,
        fields: Optional[List[str]] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.raw_text = raw_text
        self.fields = list(fields or [])

    @property
    def is_parse_failure(self) -> bool:
        return self.kind == "parse"


class ToolExecutionError(CoffeeAgentError):
    """An exception raised inside a tool execution."""

    def __init__(self, tool_name: str, message: str):
        super().__init__(f"{tool_name}: {message}")
        self.tool_name = tool_name


@dataclass
class ProviderErrorInfo:
    """
    Structured error descriptor returned alongside an empty provider result.

    Clients never raise for provider outages; they return this instead so the
    caller can decide whether "no signal" is acceptable.
    """

    provider: str  # e.g., "firecrawl", "apollo"
    operation: str  # e.g., "search", "search_candidates"
    message: str
    retryable: bool = True
    exception_type: Optional[str] = None
    status_code: Optional[int] = None
    timestamp: str = field(default_factory=lambda: datetime.utcnow().isoformat())

    @classmethod
    def from_exception(
        cls,
        provider: str,
        operation: str,
        exc: BaseException,
        retryable: bool = True,
    ) -> "ProviderErrorInfo":
        return cls(
            provider=provider,
            operation=operation,
            message=str(exc) or type(exc).__name__,
            retryable=retryable,
            exception_type=type(exc).__name__,
            status_code=getattr(exc, "status_code", None),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "provider": self.provider,
            "operation": self.operation,
            "message": self.message,
            "retryable": self.retryable,
            "exception_type": self.exception_type,
            "status_code": self.status_code,
            "timestamp": self.timestamp,
        }


@dataclass
class BranchResult(Generic[T]):
    """Outcome of one concurrent branch: either a value or an error."""

    name: str
    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    exception_type: Optional[str] = None

    @classmethod
    def success(cls, name: str, value: T) -> "BranchResult[T]":
        return cls(name=name, ok=True, value=value)

    @classmethod
    def failure(cls, name: str, exc: BaseException) -> "BranchResult[T]":
        return cls(
            name=name,
            ok=False,
            error=str(exc) or type(exc).__name__,
            exception_type=type(exc).__name__,
        )

    def value_or(self, default: T) -> T:
        """Return the branch value, or default when the branch failed."""
        return self.value if self.ok and self.value is not None else default


async def _run_branch(
    name: str,
    awaitable: Awaitable[T],
    timeout: Optional[float],
) -> BranchResult[T]:
    try:
        if timeout is not None:
            value = await asyncio.wait_for(awaitable, timeout=timeout)
        else:
            value = await awaitable
        return BranchResult.success(name, value)
    except asyncio.TimeoutError as exc:
        logger.warning(f"[{name}] Branch timed out after {timeout}s")
        return BranchResult.failure(name, exc)
    except ConfigurationError:
        # Missing credentials are fatal for the calling agent, never degraded
        raise
    except Exception as exc:
        logger.warning(f"[{name}] Branch failed (non-critical): {exc}")
        return BranchResult.failure(name, exc)


async def gather_branches(
    branches: Dict[str, Awaitable[Any]],
    timeout: Optional[float] = None,
) -> Dict[str, BranchResult[Any]]:
    """
    Run named awaitables concurrently and join all of them.

    Each branch gets its own timeout; a branch that raises or times out
    resolves to a failed BranchResult instead of aborting its siblings.
    ConfigurationError is the one exception that propagates.

    Args:
        branches: Mapping of branch name -> awaitable
        timeout: Per-branch timeout in seconds (None = no timeout)

    Returns:
        Mapping of branch name -> BranchResult, in the input order
    """
    names = list(branches.keys())
    results = await asyncio.gather(
        *(_run_branch(name, branches[name], timeout) for name in names)
    )
    return dict(zip(names, results))


def successful_values(results: Sequence[BranchResult[T]]) -> List[T]:
    """Values of the successful branches, in order."""
    return [r.value for r in results if r.ok and r.value is not None]


def user_facing_message(exc: BaseException) -> str:
    """
    Collapse an internal error into one human-readable message.

    Internal distinctions (which provider, parse vs. validation) are kept in
    logs only; the caller sees a single sentence.
    """
    if isinstance(exc, ExtractionError) and exc.is_parse_failure:
        return PARSE_FAILURE_MESSAGE
    if isinstance(exc, ExtractionError):
        return "The AI model returned an incomplete response. Please try again."
    if isinstance(exc, ConfigurationError):
        return "This feature is not configured. Please contact your administrator."
    if isinstance(exc, SchemaValidationError):
        return f"Invalid request: {exc}"
    return GENERIC_FAILURE_MESSAGE
