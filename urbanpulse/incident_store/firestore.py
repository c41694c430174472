"""Firestore-backed incident store."""

from datetime import datetime, timezone
from typing import Any, List, Mapping

import firebase_admin
from firebase_admin import credentials, firestore

from urbanpulse.incident_store.base import Incident, IncidentCreate, IncidentNotFound, IncidentStore
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="incident_store/firestore_incident_store")

COLLECTION = "incidents"


def init_firestore_client(project_id: str | None = None, credentials_path: str | None = None):
    """Initialize the default firebase app once and return a Firestore client."""
    try:
        app = firebase_admin.get_app()
    except ValueError:
        cred = credentials.Certificate(credentials_path) if credentials_path else credentials.ApplicationDefault()
        options = {"projectId": project_id} if project_id else None
        app = firebase_admin.initialize_app(cred, options)
        logger.info("Initialized firebase app", extra={"project_id": project_id})
    return firestore.client(app)


class FirestoreIncidentStore(IncidentStore):
    """Incidents stored as documents in the `incidents` collection."""

    def __init__(self, client, collection: str = COLLECTION) -> None:
        logger.debug("Initializing FirestoreIncidentStore")
        self.client = client
        self.collection = collection

    def _ref(self):
        return self.client.collection(self.collection)

    @staticmethod
    def _from_doc(doc_id: str, data: Mapping[str, Any]) -> Incident:
        return Incident.model_validate({**data, "id": doc_id})

    def list_incidents(self) -> List[Incident]:
        query = self._ref().order_by("createdAt", direction=firestore.Query.DESCENDING)
        out: List[Incident] = []
        for doc in query.stream():
            try:
                out.append(self._from_doc(doc.id, doc.to_dict() or {}))
            except ValueError as exc:
                logger.warning("Skipping malformed incident document", extra={"id": doc.id, "error": str(exc)})
        return out

    def create_incident(self, user_id: str, data: IncidentCreate) -> Incident:
        doc_ref = self._ref().document()
        doc_ref.set({
            **data.model_dump(),
            "userId": user_id,
            "pulses": 0,
            "createdAt": firestore.SERVER_TIMESTAMP,
            "updatedAt": firestore.SERVER_TIMESTAMP,
        })
        now = datetime.now(timezone.utc)
        return Incident(id=doc_ref.id, user_id=user_id, pulses=0, created_at=now, updated_at=now, **data.model_dump())

    def pulse_incident(self, incident_id: str) -> Incident:
        doc_ref = self._ref().document(incident_id)
        if not doc_ref.get().exists:
            raise IncidentNotFound(incident_id)
        doc_ref.update({"pulses": firestore.Increment(1), "updatedAt": firestore.SERVER_TIMESTAMP})
        snapshot = doc_ref.get()
        return self._from_doc(snapshot.id, snapshot.to_dict() or {})

    def clear(self) -> None:
        for doc in self._ref().stream():
            doc.reference.delete()
