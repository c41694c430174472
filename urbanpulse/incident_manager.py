"""Incident manager facade over pluggable storage backends."""
from typing import List

from urbanpulse.config import settings
from urbanpulse.incident_store import InMemoryIncidentStore, Incident, IncidentCreate, IncidentStore
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="incident_manager")


def _init_store() -> IncidentStore:
    """Initialize the backing incident store based on configuration."""
    source = (settings.incident_source or "memory").lower()
    logger.debug(f"Initializing incident store: source='{source}'")
    if source == "firestore":
        try:
            from urbanpulse.incident_store.firestore import FirestoreIncidentStore, init_firestore_client

            client = init_firestore_client(settings.firebase_project_id, settings.firebase_credentials_path)
            logger.info("Using FirestoreIncidentStore", extra={"project_id": settings.firebase_project_id})
            return FirestoreIncidentStore(client)
        except Exception as exc:  # pragma: no cover - depends on cloud credentials
            logger.warning("Falling back to InMemoryIncidentStore (Firestore unavailable)", extra={"error": str(exc)})
    elif source != "memory":
        raise ValueError(f"Unknown incident source '{source}'")
    return InMemoryIncidentStore()


_store: IncidentStore = _init_store()


def use_in_memory_store_for_tests() -> InMemoryIncidentStore:
    """Override the store for tests to ensure isolation and determinism."""
    global _store
    _store = InMemoryIncidentStore()
    return _store


def list_incidents() -> List[Incident]:
    """Return every incident, newest first."""
    return _store.list_incidents()


def create_incident(user_id: str, data: IncidentCreate) -> Incident:
    """Persist a new incident report."""
    return _store.create_incident(user_id, data)


def pulse_incident(incident_id: str) -> Incident:
    """Record one community confirmation for an incident."""
    return _store.pulse_incident(incident_id)
