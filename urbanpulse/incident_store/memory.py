"""In-memory incident store, intended for development and tests."""

import threading
import uuid
from datetime import datetime, timezone
from typing import List

from urbanpulse.incident_store.base import Incident, IncidentCreate, IncidentNotFound, IncidentStore
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="incident_store/in_memory_incident_store")


class InMemoryIncidentStore(IncidentStore):
    """Thread-safe in-memory store (dev/test)."""

    def __init__(self) -> None:
        logger.debug("Initializing InMemoryIncidentStore")
        self._incidents: dict[str, Incident] = {}
        self._lock = threading.Lock()

    def list_incidents(self) -> List[Incident]:
        with self._lock:
            items = list(self._incidents.values())
        return sorted(items, key=lambda i: i.created_at, reverse=True)

    def create_incident(self, user_id: str, data: IncidentCreate) -> Incident:
        now = datetime.now(timezone.utc)
        incident = Incident(
            id=str(uuid.uuid4()),
            user_id=user_id,
            pulses=0,
            created_at=now,
            updated_at=now,
            **data.model_dump(),
        )
        with self._lock:
            self._incidents[incident.id] = incident
        return incident

    def pulse_incident(self, incident_id: str) -> Incident:
        with self._lock:
            current = self._incidents.get(incident_id)
            if current is None:
                raise IncidentNotFound(incident_id)
            updated = current.model_copy(
                update={"pulses": current.pulses + 1, "updated_at": datetime.now(timezone.utc)}
            )
            self._incidents[incident_id] = updated
            return updated

    def clear(self) -> None:
        with self._lock:
            self._incidents.clear()
