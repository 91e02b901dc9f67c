"""
Global fixtures for all unit tests.

This conftest provides autouse fixtures that prevent real external service calls:
- Environment variable isolation (prevents credential leakage)
- Settings cache reset between tests

These fixtures apply automatically to ALL tests in tests/unit/.
"""

import pytest

from coffee_agent.common.config import get_settings


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch):
    """
    Isolate test environment from real credentials and configurations.

    Provider keys are mock values so nothing can reach a real API; the
    candidate pool key is removed and set per test where needed.
    """
    monkeypatch.setenv("OPENROUTER_API_KEY", "sk-or-test-mock-key")
    monkeypatch.setenv("FIRECRAWL_API_KEY", "fc-test-mock-key")
    monkeypatch.delenv("APOLLO_API_KEY", raising=False)
    monkeypatch.delenv("PEOPLE_STRATEGY", raising=False)
    monkeypatch.setenv("PROVIDER_RETRY_ATTEMPTS", "1")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def sample_contact_dict():
    return {
        "name": "Jane Doe",
        "company": "Acme Corp",
        "role": "VP of Engineering",
        "headline": "Building developer platforms",
        "linkedinUrl": "https://www.linkedin.com/in/janedoe",
        "location": {"city": "Austin", "state": "TX"},
    }
