"""
Unit tests for coffee_agent/clients/candidate_client.py

HTTP traffic goes through httpx.MockTransport; no network access.
"""

import json

import httpx
import pytest

from coffee_agent.clients.candidate_client import (
    ApolloCandidateClient,
    CandidateFilters,
    map_contact,
)
from coffee_agent.common.error_handling import ConfigurationError


def apollo_contact(**overrides):
    contact = {
        "first_name": "Jane",
        "last_name": "Doe",
        "name": "Jane Doe",
        "title": "VP of Engineering",
        "headline": "Building payments infra",
        "linkedin_url": "https://www.linkedin.com/in/janedoe",
        "organization_name": "Acme Corp",
        "city": "Austin",
        "state": "Texas",
        "country": "United States",
        "email": "jane@acme.com",
        "photo_url": "https://img.example.com/jane.png",
    }
    contact.update(overrides)
    return contact


class RecordingTransport:
    """Builds an httpx.MockTransport that records every request."""

    def __init__(self, handler):
        self.requests = []
        self.handler = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def json_handler(payload, status=200):
    return lambda request: httpx.Response(status, json=payload)


def make_client(recorder, api_key="apollo-test-key"):
    return ApolloCandidateClient(
        api_key=api_key,
        base_url="https://api.apollo.test/v1",
        retry_attempts=1,
        transport=recorder.transport(),
    )


# ===== TESTS: Filters =====

class TestCandidateFilters:
    def test_payload_uses_provider_keys(self):
        filters = CandidateFilters(
            titles=["CTO"],
            keywords="Acme",
            seniorities=["c_suite"],
            organization_domains=["acme.com"],
            per_page=10,
        )
        payload = filters.to_payload()
        assert payload == {
            "include_similar_titles": True,
            "page": 1,
            "per_page": 10,
            "person_titles": ["CTO"],
            "q_keywords": "Acme",
            "person_seniorities": ["c_suite"],
            "q_organization_domains_list": ["acme.com"],
        }

    def test_empty_filters_are_omitted(self):
        assert set(CandidateFilters().to_payload()) == {"include_similar_titles", "page", "per_page"}


# ===== TESTS: Contact Mapping =====

class TestMapContact:
    def test_maps_known_fields(self):
        person = map_contact(apollo_contact())
        assert person.name == "Jane Doe"
        assert person.company == "Acme Corp"
        assert person.role == "VP of Engineering"
        assert person.linkedin_url == "https://www.linkedin.com/in/janedoe"
        assert person.avatar == "https://img.example.com/jane.png"
        assert person.location.city == "Austin"
        assert person.emails[0].email == "jane@acme.com"
        assert person.emails[0].is_primary

    def test_locked_email_is_dropped(self):
        person = map_contact(apollo_contact(email="email_not_unlocked@domain.com"))
        assert person.emails == []

    def test_missing_fields_stay_missing(self):
        person = map_contact({"name": "Sam Lee", "title": "CEO", "organization_name": "Beta"})
        assert person.linkedin_url is None
        assert person.location is None
        assert person.emails == []

    def test_headline_used_when_title_missing(self):
        person = map_contact(apollo_contact(title=None))
        assert person.role == "Building payments infra"

    def test_company_from_nested_organization_then_default(self):
        nested = map_contact(apollo_contact(organization_name=None, organization={"name": "Nested Co"}))
        assert nested.company == "Nested Co"
        fallback = map_contact(apollo_contact(organization_name=None), default_company="Acme")
        assert fallback.company == "Acme"

    def test_unusable_contacts_return_none(self):
        assert map_contact({"title": "CTO", "organization_name": "Acme"}) is None
        assert map_contact({"name": "Jane", "organization_name": "Acme"}) is None
        assert map_contact({"name": "Jane", "title": "CTO"}) is None


# ===== TESTS: search_candidates =====

class TestSearchCandidates:
    @pytest.mark.asyncio
    async def test_sends_filters_and_credential(self):
        recorder = RecordingTransport(json_handler({"people": [apollo_contact()]}))
        client = make_client(recorder)

        await client.search_candidates(CandidateFilters(titles=["CTO"], keywords="Acme"))

        request = recorder.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/v1/mixed_people/search"
        assert request.headers["X-Api-Key"] == "apollo-test-key"
        body = json.loads(request.content)
        assert body["person_titles"] == ["CTO"]
        assert body["q_keywords"] == "Acme"

    @pytest.mark.asyncio
    async def test_preserves_provider_order_and_skips_invalid(self):
        payload = {
            "contacts": [apollo_contact(name="First Person")],
            "people": [
                apollo_contact(name="Second Person"),
                {"name": "No Title", "organization_name": "Acme"},
                "garbage",
                apollo_contact(name="Third Person"),
            ],
            "pagination": {"page": 1, "total_entries": 240},
            "breadcrumbs": [{"label": "Titles", "value": "CTO"}],
        }
        client = make_client(RecordingTransport(json_handler(payload)))

        page = await client.search_candidates(CandidateFilters())

        assert page.ok
        assert [p.name for p in page.candidates] == ["First Person", "Second Person", "Third Person"]
        assert page.total_entries == 240
        assert page.breadcrumbs == [{"label": "Titles", "value": "CTO"}]

    @pytest.mark.asyncio
    async def test_total_defaults_to_mapped_count(self):
        client = make_client(RecordingTransport(json_handler({"people": [apollo_contact()]})))
        page = await client.search_candidates(CandidateFilters())
        assert page.total_entries == 1

    @pytest.mark.asyncio
    async def test_server_error_returns_descriptor(self):
        client = make_client(RecordingTransport(json_handler({"error": "boom"}, status=503)))

        page = await client.search_candidates(CandidateFilters())

        assert page.candidates == []
        assert page.error.status_code == 503
        assert page.error.retryable is True

    @pytest.mark.asyncio
    async def test_client_error_is_not_retryable(self):
        client = make_client(RecordingTransport(json_handler({"error": "bad key"}, status=401)))

        page = await client.search_candidates(CandidateFilters())

        assert page.error.status_code == 401
        assert page.error.retryable is False

    @pytest.mark.asyncio
    async def test_transport_error_returns_descriptor(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(RecordingTransport(refuse))

        page = await client.search_candidates(CandidateFilters())

        assert page.candidates == []
        assert page.error.exception_type == "ConnectError"

    @pytest.mark.asyncio
    async def test_non_json_body_returns_descriptor(self):
        client = make_client(RecordingTransport(lambda r: httpx.Response(200, text="<html>oops</html>")))

        page = await client.search_candidates(CandidateFilters())

        assert page.candidates == []
        assert page.error is not None

    @pytest.mark.asyncio
    async def test_malformed_people_list_returns_descriptor(self):
        client = make_client(RecordingTransport(json_handler({"people": {"not": "a list"}})))

        page = await client.search_candidates(CandidateFilters())

        assert page.candidates == []
        assert page.error.retryable is False

    @pytest.mark.asyncio
    async def test_missing_credential_raises_before_any_request(self):
        recorder = RecordingTransport(json_handler({"people": []}))
        client = make_client(recorder, api_key="")

        with pytest.raises(ConfigurationError):
            await client.search_candidates(CandidateFilters())

        assert recorder.requests == []

    def test_from_settings_reads_credential(self, monkeypatch):
        from coffee_agent.common.config import AgentSettings

        monkeypatch.setenv("APOLLO_API_KEY", "from-env")
        client = ApolloCandidateClient.from_settings(AgentSettings())
        assert client.require_credential() == "from-env"
