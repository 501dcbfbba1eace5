"""
Remote guest store backed by Firebase Firestore.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol
from urllib.parse import quote

from app.core.config import Settings
from app.schemas.guest import Guest, UNASSIGNED_TABLE
from app.schemas.invitation import Invitation
from app.services.firebase_client import get_firestore_client

logger = logging.getLogger(__name__)

GUESTS_COLLECTION = "guests"
INVITATIONS_COLLECTION = "invitations"

# Firestore caps a write batch at 500 operations
BATCH_SIZE = 400


class RemoteGuestStore(Protocol):
    def list_guests(self) -> List[Guest]: ...
    def list_invitations(self) -> List[Invitation]: ...
    def replace_guests(self, guests: List[Guest]) -> None: ...
    def upsert_invitation(self, invitation: Invitation) -> None: ...
    def delete_invitation(self, table: str) -> None: ...
    def clear_all(self) -> None: ...


def invitation_doc_id(table: str) -> str:
    return quote(table, safe="") or "_"


class FirestoreGuestStore:
    """Guests live in ``guests``; invitations in ``invitations`` keyed by table."""

    def __init__(self, client=None, project_id: str = "", raw_credentials: str = ""):
        self._client = client
        self.project_id = project_id
        self.raw_credentials = raw_credentials

    @property
    def fs(self):
        # Resolved on first use so credential problems surface as query failures
        if self._client is None:
            self._client = get_firestore_client(self.project_id, self.raw_credentials)
        return self._client

    def list_guests(self) -> List[Guest]:
        docs = self.fs.collection(GUESTS_COLLECTION).order_by("table_name").order_by("name").get()
        guests: List[Guest] = []
        for d in docs:
            item = d.to_dict() or {}
            if not item.get("name"):
                continue
            guests.append(Guest(
                name=item["name"],
                table=item.get("table_name") or UNASSIGNED_TABLE,
                downloaded=bool(item.get("downloaded")),
            ))
        return guests

    def list_invitations(self) -> List[Invitation]:
        docs = self.fs.collection(INVITATIONS_COLLECTION).get()
        results: List[Invitation] = []
        for d in docs:
            item: Dict[str, Any] = d.to_dict() or {}
            results.append(Invitation.model_validate(item))
        return results

    def _delete_all(self, collection: str) -> None:
        docs = list(self.fs.collection(collection).list_documents())
        for start in range(0, len(docs), BATCH_SIZE):
            batch = self.fs.batch()
            for doc_ref in docs[start:start + BATCH_SIZE]:
                batch.delete(doc_ref)
            batch.commit()

    def replace_guests(self, guests: List[Guest]) -> None:
        self._delete_all(GUESTS_COLLECTION)
        collection = self.fs.collection(GUESTS_COLLECTION)
        for start in range(0, len(guests), BATCH_SIZE):
            batch = self.fs.batch()
            for position, guest in enumerate(guests[start:start + BATCH_SIZE], start=start):
                batch.set(collection.document(), {
                    "name": guest.name,
                    "table_name": guest.table,
                    "downloaded": guest.downloaded,
                    "position": position,
                })
            batch.commit()

    def upsert_invitation(self, invitation: Invitation) -> None:
        data = invitation.model_dump(mode="json")
        self.fs.collection(INVITATIONS_COLLECTION).document(invitation_doc_id(invitation.table)).set(data)

    def delete_invitation(self, table: str) -> None:
        self.fs.collection(INVITATIONS_COLLECTION).document(invitation_doc_id(table)).delete()

    def clear_all(self) -> None:
        self._delete_all(GUESTS_COLLECTION)
        self._delete_all(INVITATIONS_COLLECTION)


def build_remote_store(settings: Settings) -> Optional[FirestoreGuestStore]:
    """Return the remote store, or None when it is not configured."""
    if not settings.remote_configured:
        logger.info("Remote guest store not configured; using bundled files and local cache")
        return None
    return FirestoreGuestStore(
        project_id=settings.FIREBASE_PROJECT_ID,
        raw_credentials=settings.FIREBASE_CREDENTIALS,
    )
