"""
Candidate Pool Provider Client (Apollo people search).

Queries the Apollo mixed_people/search endpoint with structured filters and
maps the provider-native contact payload into Person records. Fields the
provider omits stay omitted; nothing is invented.

The credential is required: a search with no API key raises
ConfigurationError before any HTTP request is built. Transport failures and
non-2xx responses do not raise; they come back as an empty CandidatePage
carrying a ProviderErrorInfo.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
from pydantic import Field
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from coffee_agent.common.config import AgentSettings
from coffee_agent.common.error_handling import (
    ConfigurationError,
    ProviderError,
    ProviderErrorInfo,
    SchemaValidationError,
)
from coffee_agent.common.schemas import (
    EmailAddress,
    Person,
    PersonLocation,
    Seniority,
    WireModel,
    validate_record,
)

PROVIDER_NAME = "apollo"
SEARCH_PATH = "/mixed_people/search"

# Apollo returns this address when the email has not been revealed
LOCKED_EMAIL_PREFIX = "email_not_unlocked"


class CandidateFilters(WireModel):
    """Structured filters for one candidate pool query."""

    titles: Optional[List[str]] = None
    title_similarity_expansion: bool = True
    keywords: Optional[str] = None
    person_locations: Optional[List[str]] = None
    seniorities: Optional[List[Seniority]] = None
    organization_locations: Optional[List[str]] = None
    organization_domains: Optional[List[str]] = None
    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=25, ge=1, le=200)

    def to_payload(self) -> Dict[str, Any]:
        """Apollo request body; empty filters are left out."""
        payload: Dict[str, Any] = {
            "include_similar_titles": self.title_similarity_expansion,
            "page": self.page,
            "per_page": self.per_page,
        }
        if self.titles:
            payload["person_titles"] = self.titles
        if self.keywords:
            payload["q_keywords"] = self.keywords
        if self.person_locations:
            payload["person_locations"] = self.person_locations
        if self.seniorities:
            payload["person_seniorities"] = list(self.seniorities)
        if self.organization_locations:
            payload["organization_locations"] = self.organization_locations
        if self.organization_domains:
            payload["q_organization_domains_list"] = self.organization_domains
        return payload


@dataclass
class CandidatePage:
    """One page of candidates in provider order."""

    candidates: List[Person] = field(default_factory=list)
    total_entries: int = 0
    page: int = 1
    breadcrumbs: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[ProviderErrorInfo] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def map_contact(contact: Dict[str, Any], default_company: Optional[str] = None) -> Optional[Person]:
    """
    Map one Apollo contact into a Person record.

    Returns None when the contact cannot form a valid Person (no name, or
    neither a title nor a headline to serve as the role).
    """
    name = (contact.get("name") or "").strip()
    if not name:
        first = contact.get("first_name") or ""
        last = contact.get("last_name") or ""
        name = f"{first} {last}".strip()
    if not name:
        return None

    organization = contact.get("organization") or {}
    company = contact.get("organization_name") or organization.get("name") or default_company
    role = contact.get("title") or contact.get("headline")
    if not company or not role:
        return None

    record: Dict[str, Any] = {"name": name, "company": company, "role": role}
    for source_key, target_key in (
        ("first_name", "first_name"),
        ("last_name", "last_name"),
        ("headline", "headline"),
        ("linkedin_url", "linkedin_url"),
        ("twitter_url", "twitter_url"),
        ("photo_url", "avatar"),
    ):
        value = contact.get(source_key)
        if value:
            record[target_key] = value

    location = {k: contact.get(k) for k in ("city", "state", "country") if contact.get(k)}
    if location:
        record["location"] = PersonLocation(**location)

    email = contact.get("email")
    if email and "@" in email and not email.startswith(LOCKED_EMAIL_PREFIX):
        record["emails"] = [EmailAddress(email=email, is_primary=True, position=0)]

    return validate_record(Person, record)


class ApolloCandidateClient:
    """Async client for the Apollo people search API."""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://api.apollo.io/api/v1",
        timeout: float = 20.0,
        retry_attempts: int = 2,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.logger = logging.getLogger(__name__)
        self.api_key = (api_key or "").strip() or None
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retry_attempts = retry_attempts
        self.transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: AgentSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "ApolloCandidateClient":
        return cls(
            api_key=settings.apollo_api_key,
            base_url=settings.apollo_base_url,
            timeout=settings.candidate_timeout_seconds,
            retry_attempts=settings.provider_retry_attempts,
            transport=transport,
        )

    def require_credential(self) -> str:
        """Raise ConfigurationError unless an API key is configured."""
        if not self.api_key:
            self.logger.error("[Apollo] APOLLO_API_KEY is not set")
            raise ConfigurationError("APOLLO_API_KEY is not set.")
        return self.api_key

    async def search_candidates(
        self,
        filters: CandidateFilters,
        default_company: Optional[str] = None,
    ) -> CandidatePage:
        """
        Run one people search.

        Args:
            filters: Structured query filters
            default_company: Company name used when a contact lacks one

        Returns:
            CandidatePage; on provider failure candidates is empty and error is set

        Raises:
            ConfigurationError: if no API key is configured (no request is sent)
        """
        api_key = self.require_credential()
        payload = filters.to_payload()

        try:
            data = await self._post_with_retry(api_key, payload)
        except (httpx.HTTPError, ProviderError, ValueError) as e:
            self.logger.warning(f"[Apollo] People search failed: {e}")
            status = getattr(e, "status_code", None)
            return CandidatePage(
                page=filters.page,
                error=ProviderErrorInfo.from_exception(
                    PROVIDER_NAME,
                    "search_candidates",
                    e,
                    retryable=status is None or status == 429 or status >= 500,
                ),
            )

        contacts = data.get("contacts") or []
        people_rows = data.get("people") or []
        if not isinstance(contacts, list) or not isinstance(people_rows, list):
            return CandidatePage(
                page=filters.page,
                error=ProviderErrorInfo(
                    provider=PROVIDER_NAME,
                    operation="search_candidates",
                    message="Malformed payload: contacts is not a list",
                    retryable=False,
                ),
            )

        candidates: List[Person] = []
        skipped = 0
        for contact in contacts + people_rows:
            if not isinstance(contact, dict):
                skipped += 1
                continue
            try:
                person = map_contact(contact, default_company=default_company)
            except SchemaValidationError as e:
                self.logger.debug(f"[Apollo] Skipping contact: {e}")
                person = None
            if person is None:
                skipped += 1
                continue
            candidates.append(person)

        pagination = data.get("pagination") or {}
        total = pagination.get("total_entries")
        self.logger.info(
            f"[Apollo] {len(candidates)} candidates on page {filters.page}"
            + (f" ({skipped} skipped)" if skipped else "")
        )
        return CandidatePage(
            candidates=candidates,
            total_entries=int(total) if total is not None else len(candidates),
            page=int(pagination.get("page") or filters.page),
            breadcrumbs=list(data.get("breadcrumbs") or []),
        )

    async def _post_with_retry(self, api_key: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        headers = {
            "accept": "application/json",
            "Cache-Control": "no-cache",
            "Content-Type": "application/json",
            "X-Api-Key": api_key,
        }
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport,
        ) as client:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.retry_attempts),
                wait=wait_exponential(min=1, max=5),
                retry=retry_if_exception_type(httpx.TransportError),
                reraise=True,
            ):
                with attempt:
                    response = await client.post(SEARCH_PATH, json=payload, headers=headers)

        if response.status_code >= 400:
            raise ProviderError(
                PROVIDER_NAME,
                f"request failed: {response.status_code} {response.text[:200]}",
                status_code=response.status_code,
            )

        data = response.json()
        if not isinstance(data, dict):
            raise ValueError("Malformed payload: expected a JSON object")
        return data
