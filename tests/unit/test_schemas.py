"""
Unit tests for coffee_agent/common/schemas.py

Covers record validation (rejecting rather than coercing), domain
normalization, wire serialization and tool argument defaults.
"""

import pytest

from coffee_agent.common.error_handling import SchemaValidationError
from coffee_agent.common.schemas import (
    CandidateResultSet,
    GenerateEmailArgs,
    Organization,
    OutreachContact,
    OutreachMessage,
    Person,
    ResearchReport,
    SearchPeopleArgs,
    normalize_domain,
    to_wire,
    validate_record,
)


class TestNormalizeDomain:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("https://www.Example.com/about", "example.com"),
            ("www.stripe.com", "stripe.com"),
            ("stripe.com", "stripe.com"),
            ("http://sub.acme.io:8080/x?y=1", "sub.acme.io"),
            ("  ", None),
            (None, None),
        ],
    )
    def test_normalizes(self, raw, expected):
        assert normalize_domain(raw) == expected


class TestOrganization:
    def test_domain_is_normalized_on_validation(self):
        org = validate_record(Organization, {"name": "Acme", "domain": "https://www.acme.com/"})
        assert org.domain == "acme.com"

    def test_domain_is_optional(self):
        org = validate_record(Organization, {"name": "Acme"})
        assert org.domain is None
        assert to_wire(org) == {"name": "Acme"}

    def test_missing_name_is_rejected(self):
        with pytest.raises(SchemaValidationError) as exc_info:
            validate_record(Organization, {"domain": "acme.com"})
        assert "name" in exc_info.value.fields

    def test_wrong_type_is_rejected(self):
        with pytest.raises(SchemaValidationError) as exc_info:
            validate_record(Organization, {"name": "Acme", "employeeCount": "lots"})
        assert "employeeCount" in exc_info.value.fields

    def test_accepts_camel_case_keys(self):
        org = validate_record(
            Organization,
            {"name": "Acme", "linkedinUrl": "https://linkedin.com/company/acme", "foundedYear": 2010},
        )
        assert org.linkedin_url == "https://linkedin.com/company/acme"
        assert org.founded_year == 2010


class TestPerson:
    def test_requires_company_and_role(self):
        with pytest.raises(SchemaValidationError) as exc_info:
            validate_record(Person, {"name": "Jane Doe"})
        assert set(exc_info.value.fields) >= {"company", "role"}

    def test_blank_linkedin_becomes_none(self):
        person = validate_record(
            Person, {"name": "Jane", "company": "Acme", "role": "CTO", "linkedinUrl": "  "}
        )
        assert person.linkedin_url is None

    def test_single_primary_email_allowed(self):
        person = validate_record(
            Person,
            {
                "name": "Jane",
                "company": "Acme",
                "role": "CTO",
                "emails": [
                    {"email": "jane@acme.com", "isPrimary": True, "position": 0},
                    {"email": "j@gmail.com", "isPrimary": False, "position": 1},
                ],
            },
        )
        assert person.emails[0].is_primary

    def test_two_primary_emails_rejected(self):
        with pytest.raises(SchemaValidationError):
            validate_record(
                Person,
                {
                    "name": "Jane",
                    "company": "Acme",
                    "role": "CTO",
                    "emails": [
                        {"email": "jane@acme.com", "isPrimary": True, "position": 0},
                        {"email": "j@gmail.com", "isPrimary": True, "position": 1},
                    ],
                },
            )


class TestResearchReport:
    def test_required_sections(self):
        with pytest.raises(SchemaValidationError) as exc_info:
            validate_record(ResearchReport, {"organization": {"name": "Acme"}})
        assert {"keyPeople", "insights", "sources"} <= set(exc_info.value.fields)

    def test_nested_error_paths_are_dotted(self):
        with pytest.raises(SchemaValidationError) as exc_info:
            validate_record(
                ResearchReport,
                {
                    "organization": {"name": "Acme"},
                    "keyPeople": [{"name": "Jane"}],
                    "insights": "",
                    "sources": [],
                },
            )
        assert "keyPeople.0.company" in exc_info.value.fields

    def test_round_trip_wire_keys(self):
        report = validate_record(
            ResearchReport,
            {
                "organization": {"name": "Acme", "domain": "acme.com"},
                "keyPeople": [{"name": "Jane", "company": "Acme", "role": "CEO"}],
                "insights": "Growing fast.",
                "sources": [{"title": "Home", "url": "https://acme.com"}],
            },
        )
        wire = to_wire(report)
        assert wire["keyPeople"][0] == {"name": "Jane", "company": "Acme", "role": "CEO", "emails": []}
        assert wire["organization"] == {"name": "Acme", "domain": "acme.com"}


class TestOutreachModels:
    def test_message_alias_maps_to_body(self):
        msg = validate_record(
            OutreachMessage,
            {"subject": "Hi", "message": "Line1\nLine2", "tone": "casual", "callToAction": "Chat?"},
        )
        assert msg.body == "Line1\nLine2"
        assert to_wire(msg)["message"] == "Line1\nLine2"

    def test_unknown_tone_rejected(self):
        with pytest.raises(SchemaValidationError) as exc_info:
            validate_record(
                OutreachMessage,
                {"subject": "Hi", "message": "x", "tone": "aggressive", "callToAction": "x"},
            )
        assert exc_info.value.fields == ["tone"]

    def test_greeting_name_falls_back_to_first_token(self):
        contact = OutreachContact(name="Jane Q Doe", company="Acme", role="CTO")
        assert contact.greeting_name == "Jane"
        assert OutreachContact(name="Jane Doe", first_name="Janie", company="A", role="B").greeting_name == "Janie"

    def test_greeting_name_ignores_surrounding_whitespace(self):
        assert OutreachContact(name=" Jane Doe", company="Acme", role="CTO").greeting_name == "Jane"
        assert OutreachContact(name="Jane\tDoe", company="Acme", role="CTO").greeting_name == "Jane"

    def test_contact_from_person(self):
        person = Person(name="Jane Doe", company="Acme", role="CTO", linkedin_url="https://linkedin.com/in/jd")
        contact = OutreachContact.from_person(person)
        assert contact.linkedin_url == "https://linkedin.com/in/jd"


class TestToolArgs:
    def test_search_people_defaults(self):
        args = validate_record(SearchPeopleArgs, {"companyName": "Acme"})
        assert args.num_results == 10
        assert args.role is None

    @pytest.mark.parametrize("num", [0, -1, 51])
    def test_search_people_bounds(self, num):
        with pytest.raises(SchemaValidationError):
            validate_record(SearchPeopleArgs, {"companyName": "Acme", "numResults": num})

    def test_generate_email_defaults(self, sample_contact_dict):
        args = validate_record(GenerateEmailArgs, {"contact": sample_contact_dict})
        assert args.tone == "professional"
        assert args.purpose == "Connect and explore potential collaboration"

    def test_candidate_result_set_defaults(self):
        result = CandidateResultSet()
        assert result.people == []
        assert result.total_found == 0
