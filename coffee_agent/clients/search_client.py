"""
Search Provider Client (FireCrawl web search).

Wraps the FireCrawl search API behind one async method that returns ranked
snippets normalized into SearchResult objects. Provider-specific response
shapes (SDK objects, dicts, bare lists) never leave this module.

Failure policy: timeouts, transport errors, non-2xx responses and malformed
payloads never raise. search() returns an empty result list plus a
ProviderErrorInfo descriptor; callers treat empty as "no signal".

Usage:
    client = FirecrawlSearchClient(api_key=settings.firecrawl_api_key)
    response = await client.search(
        "Stripe official website",
        SearchOptions(num_results=3, max_chars_per_result=500),
    )
    for result in response.results:
        print(result.title, result.domain)
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from coffee_agent.common.config import AgentSettings
from coffee_agent.common.error_handling import ProviderErrorInfo, SchemaValidationError
from coffee_agent.common.schemas import normalize_domain

PROVIDER_NAME = "firecrawl"

# FireCrawl time-based search filter ("tbs") per freshness preference
FRESHNESS_TBS = {
    "day": "qdr:d",
    "week": "qdr:w",
    "month": "qdr:m",
    "year": "qdr:y",
}

SOCIAL_PLATFORMS = {
    "linkedin.com": "linkedin",
    "twitter.com": "twitter",
    "x.com": "twitter",
    "facebook.com": "facebook",
}


@dataclass
class SearchOptions:
    """Per-call search parameters."""

    num_results: int = 10
    domain_allow_list: Optional[Sequence[str]] = None
    max_chars_per_result: int = 1000
    freshness: Optional[str] = None  # "day" | "week" | "month" | "year"


@dataclass
class SearchResult:
    """One ranked snippet, normalized from the provider payload."""

    title: str
    url: str
    text: str = ""
    published_date: Optional[str] = None

    @property
    def domain(self) -> Optional[str]:
        """Bare hostname of the result URL (no protocol, no www.)."""
        return normalize_domain(self.url)

    @property
    def platform(self) -> str:
        """Social platform the URL belongs to, or "other"."""
        host = self.domain or ""
        for suffix, platform in SOCIAL_PLATFORMS.items():
            if host == suffix or host.endswith(f".{suffix}"):
                return platform
        return "other"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"title": self.title, "url": self.url, "text": self.text}
        if self.published_date:
            data["publishedDate"] = self.published_date
        return data


@dataclass
class SearchResponse:
    """Search results for one query, plus an error descriptor on failure."""

    query: str
    results: List[SearchResult] = field(default_factory=list)
    error: Optional[ProviderErrorInfo] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "query": self.query,
            "results": [r.to_dict() for r in self.results],
        }
        if self.error:
            data["error"] = self.error.message
        return data


# ===== FIRECRAWL RESPONSE NORMALIZER =====

def _extract_search_results(search_response: Any) -> List[Any]:
    """
    Normalize FireCrawl search responses across SDK versions into a list of result objects.

    Supports:
      - New client (v4.8.0+): response.web (list of objects with .url / .markdown)
      - Older client (v4.7.x and earlier): response.data
      - Dict responses: {"web": [...]} or {"data": [...]}
      - Bare lists: [ {...}, {...} ]
    """
    if not search_response:
        return []

    results = getattr(search_response, "web", None)
    if results is None and hasattr(search_response, "data"):
        results = getattr(search_response, "data", None)

    if results is None and isinstance(search_response, dict):
        results = (
            search_response.get("web")
            or search_response.get("data")
            or search_response.get("results")
        )

    if results is None and isinstance(search_response, list):
        results = search_response

    if results is not None and not isinstance(results, list):
        raise ValueError(f"Malformed search payload: expected list, got {type(results).__name__}")

    return results or []


def _field(result: Any, name: str) -> Any:
    """Read a field from an SDK object or a dict."""
    value = getattr(result, name, None)
    if value is None and isinstance(result, dict):
        value = result.get(name)
    return value


def _normalize_result(result: Any, max_chars: int) -> Optional[SearchResult]:
    url = _field(result, "url")
    metadata = _field(result, "metadata") or {}
    if not url and metadata:
        url = _field(metadata, "url") or _field(metadata, "sourceURL") or _field(metadata, "source_url")
    if not url:
        return None

    title = _field(result, "title") or (_field(metadata, "title") if metadata else None) or ""
    text = _field(result, "markdown") or _field(result, "description") or _field(result, "snippet") or ""
    published = (
        _field(result, "date")
        or _field(result, "published_date")
        or (_field(metadata, "publishedTime") if metadata else None)
    )

    return SearchResult(
        title=str(title).strip(),
        url=str(url).strip(),
        text=str(text).strip()[:max_chars],
        published_date=str(published) if published else None,
    )


def _host_allowed(url: str, allow_list: Sequence[str]) -> bool:
    host = normalize_domain(url) or ""
    for allowed in allow_list:
        allowed_host = normalize_domain(allowed) or ""
        if host == allowed_host or host.endswith(f".{allowed_host}"):
            return True
    return False


def build_query(query: str, domain_allow_list: Optional[Sequence[str]]) -> str:
    """Append site: operators for a domain restriction."""
    if not domain_allow_list:
        return query
    sites = " OR ".join(f"site:{normalize_domain(d) or d}" for d in domain_allow_list)
    if len(domain_allow_list) == 1:
        return f"{query} {sites}"
    return f"{query} ({sites})"


class FirecrawlSearchClient:
    """
    Web search client backed by FireCrawl.

    The blocking SDK call runs in a worker thread so it never blocks the event
    loop; each call carries its own timeout and transient transport errors are
    retried with exponential backoff before degrading to an empty result.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        app: Any = None,
        timeout: float = 15.0,
        max_results: int = 25,
        retry_attempts: int = 2,
    ):
        """
        Args:
            api_key: FireCrawl API key. Without a key (and without an injected
                     app) every search returns empty with an error descriptor.
            app: Pre-built FireCrawl SDK object (injected in tests)
            timeout: Per-call timeout in seconds
            max_results: Provider policy cap on results per search
            retry_attempts: Attempts for transient transport errors
        """
        self.logger = logging.getLogger(__name__)
        self.timeout = timeout
        self.max_results = max_results
        self.retry_attempts = retry_attempts
        self.app = app
        if self.app is None and api_key:
            from firecrawl import FirecrawlApp

            self.app = FirecrawlApp(api_key=api_key)

    @classmethod
    def from_settings(cls, settings: AgentSettings) -> "FirecrawlSearchClient":
        return cls(
            api_key=settings.firecrawl_api_key,
            timeout=settings.search_timeout_seconds,
            max_results=settings.max_search_results,
            retry_attempts=settings.provider_retry_attempts,
        )

    @property
    def configured(self) -> bool:
        return self.app is not None

    async def search(self, query: str, options: Optional[SearchOptions] = None) -> SearchResponse:
        """
        Run a web search.

        Args:
            query: Free-text query (must be non-empty)
            options: Result count, domain restriction, content limit, freshness

        Returns:
            SearchResponse; on provider failure results is empty and error is set

        Raises:
            SchemaValidationError: if query is empty or num_results <= 0
        """
        options = options or SearchOptions()
        if not query or not query.strip():
            raise SchemaValidationError("Search query must be non-empty", fields=["query"])
        if options.num_results <= 0:
            raise SchemaValidationError("numResults must be positive", fields=["numResults"])

        limit = min(options.num_results, self.max_results)
        full_query = build_query(query.strip(), options.domain_allow_list)

        if not self.configured:
            self.logger.warning("[FireCrawl] No API key configured; returning no signal")
            return SearchResponse(
                query=full_query,
                error=ProviderErrorInfo(
                    provider=PROVIDER_NAME,
                    operation="search",
                    message="FIRECRAWL_API_KEY is not set",
                    retryable=False,
                ),
            )

        try:
            raw = await self._search_with_retry(full_query, limit, options.freshness)
            items = _extract_search_results(raw)
        except Exception as e:
            self.logger.warning(f"[FireCrawl] Search failed for '{full_query[:80]}': {e}")
            return SearchResponse(
                query=full_query,
                error=ProviderErrorInfo.from_exception(PROVIDER_NAME, "search", e),
            )

        results: List[SearchResult] = []
        for item in items:
            normalized = _normalize_result(item, options.max_chars_per_result)
            if normalized is None:
                continue
            if options.domain_allow_list and not _host_allowed(normalized.url, options.domain_allow_list):
                continue
            results.append(normalized)
            if len(results) >= limit:
                break

        self.logger.info(f"[FireCrawl] Got {len(results)} results for '{full_query[:80]}'")
        return SearchResponse(query=full_query, results=results)

    async def _search_with_retry(self, query: str, limit: int, freshness: Optional[str]) -> Any:
        kwargs: Dict[str, Any] = {"limit": limit}
        if freshness in FRESHNESS_TBS:
            kwargs["tbs"] = FRESHNESS_TBS[freshness]

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(min=1, max=5),
            retry=retry_if_exception_type((ConnectionError, TimeoutError)),
            reraise=True,
        ):
            with attempt:
                return await asyncio.wait_for(
                    asyncio.to_thread(self.app.search, query, **kwargs),
                    timeout=self.timeout,
                )
