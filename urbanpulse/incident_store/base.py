"""Shared protocol and types for incident storage backends."""

from datetime import datetime
from typing import List, Literal, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field

IncidentType = Literal["Medical", "Fire", "Accident", "Violence", "Other"]


class IncidentLocation(BaseModel):
    name: str
    lat: float
    lon: float


class IncidentCreate(BaseModel):
    """Fields a reporter supplies for a new incident."""
    model_config = ConfigDict(populate_by_name=True)

    type: IncidentType
    description: str = Field(min_length=1, max_length=2000)
    images: List[str] = Field(default_factory=list)
    location: IncidentLocation


class Incident(IncidentCreate):
    """A stored incident report."""
    id: str
    user_id: str = Field(alias="userId")
    pulses: int = 0
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")


class IncidentNotFound(KeyError):
    """Raised when an incident id does not exist."""


class IncidentStore(Protocol):
    """Protocol for incident storage backends."""
    def list_incidents(self) -> List[Incident]:
        """Return all incidents, newest first."""

    def create_incident(self, user_id: str, data: IncidentCreate) -> Incident:
        """Persist a new incident and return it."""

    def pulse_incident(self, incident_id: str) -> Incident:
        """Increment an incident's pulse count, raising IncidentNotFound if absent."""

    def clear(self) -> None:
        """Remove all incidents (dev/testing)."""
