"""
Canonical record schemas for the research and outreach agents.

Every record that crosses a component boundary is a Pydantic model defined
here: organizations, people, research reports, candidate result sets,
outreach messages, and the argument shapes of the chat tools.

Wire format is camelCase (what the models are prompted to emit and what the
calling layer persists); Python attributes are snake_case. Use
``to_wire(record)`` to serialize with aliases and without empty optionals.

validate_record() is the single validation entry point: it raises
SchemaValidationError carrying the failing field paths and never fills in a
missing required field.
"""

from typing import Any, Dict, List, Literal, Optional, Type, TypeVar
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from coffee_agent.common.error_handling import SchemaValidationError

M = TypeVar("M", bound=BaseModel)

Tone = Literal["professional", "casual", "friendly"]
TONES = ("professional", "casual", "friendly")

Seniority = Literal[
    "owner",
    "founder",
    "c_suite",
    "partner",
    "vp",
    "head",
    "director",
    "manager",
    "senior",
    "entry",
    "intern",
]

NewsTimeframe = Literal["week", "month", "year"]


class WireModel(BaseModel):
    """Base model: camelCase aliases on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


def normalize_domain(value: Optional[str]) -> Optional[str]:
    """
    Reduce a URL or hostname to a bare hostname.

    >>> normalize_domain("https://www.Example.com/about")
    'example.com'
    >>> normalize_domain("www.stripe.com")
    'stripe.com'
    """
    if value is None:
        return None
    candidate = value.strip()
    if not candidate:
        return None
    if "://" not in candidate:
        candidate = f"//{candidate}"
    host = urlparse(candidate).hostname or ""
    host = host.lower().rstrip(".")
    if host.startswith("www."):
        host = host[4:]
    return host or None


# ===== PEOPLE =====

class EmailAddress(WireModel):
    """A tagged email address on a person record."""

    email: str = Field(..., min_length=3)
    is_primary: bool = Field(default=False)
    position: int = Field(default=0, ge=0)


class PersonLocation(WireModel):
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    time_zone: Optional[str] = None


class Person(WireModel):
    """
    A person at a company.

    Position 0 of ``emails`` is conventionally primary; at most one email may
    be flagged primary.
    """

    name: str = Field(..., min_length=1, description="Full name of the person")
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company: str = Field(..., description="Current company name")
    role: str = Field(..., description="Job title or role")
    headline: Optional[str] = None
    linkedin_url: Optional[str] = None
    twitter_url: Optional[str] = None
    avatar: Optional[str] = None
    location: Optional[PersonLocation] = None
    emails: List[EmailAddress] = Field(default_factory=list)

    @field_validator("linkedin_url", "twitter_url", "avatar", "headline", "first_name", "last_name")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @model_validator(mode="after")
    def single_primary_email(self) -> "Person":
        primaries = [e for e in self.emails if e.is_primary]
        if len(primaries) > 1:
            raise ValueError("at most one email may be marked primary")
        return self


# ===== ORGANIZATIONS =====

class Organization(WireModel):
    """A company. ``domain`` is always a bare hostname when present."""

    name: str = Field(..., min_length=1, description="Company name")
    domain: Optional[str] = Field(default=None, description="Primary domain, e.g. example.com")
    website_url: Optional[str] = None
    linkedin_url: Optional[str] = None
    twitter_url: Optional[str] = None
    facebook_url: Optional[str] = None
    phone: Optional[str] = None
    logo_url: Optional[str] = None
    founded_year: Optional[int] = Field(default=None, ge=1600, le=2100)
    industry: Optional[str] = None
    employee_count: Optional[int] = Field(default=None, ge=0)
    description: Optional[str] = None

    @field_validator("domain", mode="before")
    @classmethod
    def bare_hostname(cls, v: Any) -> Any:
        if v is None or not isinstance(v, str):
            return v
        return normalize_domain(v)


class Source(WireModel):
    title: str
    url: str


class ResearchReport(WireModel):
    """Research result for one company. Created per request, never persisted here."""

    organization: Organization
    key_people: List[Person] = Field(..., description="Typically 3-5 key people")
    insights: str = Field(..., description="Key insights about the company")
    sources: List[Source] = Field(..., description="Sources used for research")


class CandidateResultSet(WireModel):
    """People found at a company, optionally with company info."""

    people: List[Person] = Field(default_factory=list)
    company_info: Optional[Organization] = None
    total_found: int = Field(default=0, ge=0)


# ===== OUTREACH =====

class OutreachMessage(WireModel):
    """
    A generated outreach email.

    The body travels as ``message`` on the wire; line breaks inside it must
    arrive as escaped newlines, which the extractor's repair pass enforces.
    """

    subject: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1, alias="message")
    tone: Tone
    call_to_action: str
    personalization_notes: Optional[str] = None


class SenderInfo(WireModel):
    name: Optional[str] = None
    company: Optional[str] = None
    role: Optional[str] = None


class OutreachContact(WireModel):
    """The contact profile an outreach email is written for."""

    name: str = Field(..., min_length=1)
    first_name: Optional[str] = None
    company: str = Field(..., min_length=1)
    role: str = Field(..., min_length=1)
    headline: Optional[str] = None
    linkedin_url: Optional[str] = None
    location: Optional[PersonLocation] = None

    @property
    def greeting_name(self) -> str:
        """First name, falling back to the first token of the full name."""
        if self.first_name:
            return self.first_name
        tokens = self.name.split()
        return tokens[0] if tokens else ""

    @classmethod
    def from_person(cls, person: Person) -> "OutreachContact":
        return cls(
            name=person.name,
            first_name=person.first_name,
            company=person.company,
            role=person.role,
            headline=person.headline,
            linkedin_url=person.linkedin_url,
            location=person.location,
        )


# ===== TOOL ARGUMENTS =====

class ResearchCompanyArgs(WireModel):
    company_name: str = Field(..., min_length=1, description="The name of the company to research")
    additional_context: Optional[str] = Field(
        default=None, description="Additional context like industry or location"
    )
    include_news: bool = Field(default=False, description="Include recent company news")


class SearchPeopleArgs(WireModel):
    company_name: str = Field(..., min_length=1, description="The company name to search for people")
    role: Optional[str] = Field(
        default=None,
        description='Specific role or title to search for (e.g., "CEO", "CTO", "Engineering")',
    )
    num_results: int = Field(default=10, ge=1, le=50, description="Number of results to return")


class GenerateEmailArgs(WireModel):
    contact: OutreachContact
    tone: Tone = Field(default="professional")
    purpose: str = Field(default="Connect and explore potential collaboration", min_length=1)
    sender_info: Optional[SenderInfo] = None
    additional_context: Optional[str] = None
    call_to_action: Optional[str] = None


class WebSearchArgs(WireModel):
    query: str = Field(..., min_length=1, description="Free-text web search query")
    num_results: int = Field(default=6, ge=1, le=10)


# ===== HELPERS =====

def validate_record(model: Type[M], data: Any) -> M:
    """
    Validate raw data against a schema.

    Raises:
        SchemaValidationError: with the dotted paths of every failing field
    """
    try:
        return model.model_validate(data)
    except ValidationError as e:
        fields = [".".join(str(part) for part in err["loc"]) or "<root>" for err in e.errors()]
        raise SchemaValidationError(
            f"{model.__name__} failed validation on: {', '.join(fields)}",
            fields=fields,
        ) from e


def to_wire(record: BaseModel) -> Dict[str, Any]:
    """Serialize a record with camelCase keys, omitting empty optionals."""
    return record.model_dump(mode="json", by_alias=True, exclude_none=True)
