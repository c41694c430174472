"""Incident storage backends."""

from .base import Incident, IncidentCreate, IncidentLocation, IncidentNotFound, IncidentStore
from .memory import InMemoryIncidentStore

__all__ = [
    "Incident",
    "IncidentCreate",
    "IncidentLocation",
    "IncidentNotFound",
    "IncidentStore",
    "InMemoryIncidentStore",
]
