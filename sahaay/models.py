"""
Documents stored by the API and the request bodies that create or change them.

Attributes are snake_case in Python and camelCase on the wire; document
ids are sent as ``_id``.
"""

import uuid
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)
from pydantic.alias_generators import to_camel


def _new_id() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(UTC)


def _document_id():
    # Dashboards key documents by "_id"; "id" is still accepted on input.
    return Field(
        default_factory=_new_id,
        validation_alias=AliasChoices("_id", "id"),
        serialization_alias="_id",
    )


class Document(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Severity(StrEnum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class IncidentStatus(StrEnum):
    REPORTED = "Reported"
    RESPONDING = "Responding"
    RESOLVED = "Resolved"


class ResourceStatus(StrEnum):
    AVAILABLE = "Available"
    DEPLOYED = "Deployed"
    UNAVAILABLE = "Unavailable"


class Role(StrEnum):
    CITIZEN = "CITIZEN"
    VOLUNTEER = "VOLUNTEER"
    COORDINATOR = "COORDINATOR"
    AGENCY = "AGENCY"
    DONOR = "DONOR"


class Location(Document):
    lat: float
    lng: float


class VolunteerProfile(Document):
    skills: list[str] = []
    is_available: bool = True


class DonorProfile(Document):
    donation_types: list[str] = []  # food, clothes, money
    items: list[str] = []


class User(Document):
    id: str = _document_id()
    name: str = ""
    phone: str
    role: Role
    location: Location | None = None
    volunteer: VolunteerProfile | None = None
    donor: DonorProfile | None = None
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    @model_validator(mode="after")
    def _default_volunteer_profile(self) -> "User":
        if self.role == Role.VOLUNTEER and self.volunteer is None:
            self.volunteer = VolunteerProfile()
        return self


class Resource(Document):
    id: str = _document_id()
    domain: str
    capability: str
    status: ResourceStatus
    location: Location
    agency: str | None = None  # owning agency user id


class IncidentBase(Document):
    id: str = _document_id()
    category: str
    type: str = ""
    severity: Severity
    notes: str = ""
    location: Location
    status: IncidentStatus = IncidentStatus.REPORTED
    created_at: datetime = Field(default_factory=_now)
    resolved_at: datetime | None = None


class Incident(IncidentBase):
    """Stored form: assignments are held as document ids."""

    assigned_resources: list[str] = []
    assigned_volunteers: list[str] = []


class IncidentDetail(IncidentBase):
    """Incident with its assigned resources and volunteers embedded."""

    assigned_resources: list[Resource] = []
    assigned_volunteers: list[User] = []


# Request bodies


class IncidentCreate(Document):
    category: str
    type: str = ""
    severity: Severity
    notes: str = ""
    location: Location


class IncidentUpdate(Document):
    type: str | None = None
    severity: Severity | None = None
    notes: str | None = None
    status: IncidentStatus | None = None


class AssignVolunteerRequest(Document):
    volunteer_id: str


class AssignResourceRequest(Document):
    resource_id: str


class ResourceCreate(Document):
    domain: str
    capability: str
    status: ResourceStatus = ResourceStatus.AVAILABLE
    location: Location
    agency: str | None = None


class ResourceUpdate(Document):
    domain: str | None = None
    capability: str | None = None
    status: ResourceStatus | None = None
    location: Location | None = None


class UserCreate(Document):
    name: str = ""
    phone: str
    role: Role
    location: Location | None = None
    volunteer: VolunteerProfile | None = None
    donor: DonorProfile | None = None


class UserUpdate(Document):
    name: str | None = None
    location: Location | None = None
    skills: list[str] | None = None
    donor: DonorProfile | None = None


class AvailabilityUpdate(Document):
    user_id: str
    is_available: bool


class ResourceRecommendation(Document):
    required_domains: list[str]
    recommended_resources: list[Resource]
