"""
Invitation assets per table and the one-time download flag per guest
"""

import json
import logging
import mimetypes
import re
from pathlib import Path, PurePosixPath
from typing import Dict, List, Optional, Sequence

from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError

from app.schemas.invitation import AssetType, Invitation
from app.services.directory_service import GuestDirectory
from app.services.persistence import PersistenceQueue
from app.services.repositories import RemoteGuestStore
from app.services.storage import KeyValueStore, LocalAssetStorage

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp"}

_WHITESPACE = re.compile(r"\s+")


def detect_asset_type(mime_type: Optional[str], file_name: Optional[str] = None) -> AssetType:
    """MIME type wins when present; otherwise fall back to the file extension"""
    if mime_type:
        mime_type = mime_type.lower()
        if mime_type.startswith("image/"):
            return AssetType.IMAGE
        if mime_type == "application/pdf":
            return AssetType.PDF
        return AssetType.OTHER

    suffix = PurePosixPath(file_name or "").suffix.lower()
    if suffix in IMAGE_EXTENSIONS:
        return AssetType.IMAGE
    if suffix == ".pdf":
        return AssetType.PDF
    return AssetType.OTHER


class BundledInvitationFiles:
    """Invitation files shipped with the application, named after their table.

    ``Table 3`` is looked up as ``<root>/Table 3.pdf``, then ``.png`` and so on
    in extension order. Shipped files are read-only and never persisted.
    """

    def __init__(self, root: str, extensions: Sequence[str]):
        self.root = Path(root)
        self.extensions = list(extensions)

    def _resolve(self, name: str) -> Path:
        path = (self.root / name).resolve()
        if self.root.resolve() not in path.parents:
            raise FileNotFoundError(name)
        return path

    def find(self, table: str) -> Optional[Invitation]:
        label = _WHITESPACE.sub(" ", table.strip())
        if not label:
            return None
        for extension in self.extensions:
            name = f"{label}{extension}"
            try:
                found = self._resolve(name).is_file()
            except FileNotFoundError:
                return None
            if found:
                mime_type = mimetypes.guess_type(name)[0]
                return Invitation(
                    table=table,
                    asset_type=detect_asset_type(mime_type, name),
                    asset_ref=name,
                    display_name=name,
                    mime_type=mime_type,
                    bundled=True,
                )
        return None

    def scan(self, tables: Sequence[str]) -> Dict[str, Invitation]:
        found = {}
        for table in tables:
            invitation = self.find(table)
            if invitation is not None:
                found[table] = invitation
        return found

    def read(self, name: str) -> bytes:
        return self._resolve(name).read_bytes()


class InvitationRegistry:
    """Maps tables to invitation assets and records guest downloads"""

    def __init__(
        self,
        directory: GuestDirectory,
        assets: LocalAssetStorage,
        cache: KeyValueStore,
        cache_key: str,
        queue: PersistenceQueue,
        remote: Optional[RemoteGuestStore] = None,
        bundled: Optional[BundledInvitationFiles] = None,
    ):
        self.directory = directory
        self.assets = assets
        self.cache = cache
        self.cache_key = cache_key
        self.queue = queue
        self.remote = remote
        self.bundled = bundled
        self._invitations: Dict[str, Invitation] = {}
        self._bundled: Dict[str, Invitation] = {}

    async def load(self) -> Dict[str, Invitation]:
        """Restore the uploaded index from the remote store, else the cache.

        Shipped invitation files are rescanned afterwards for tables in the
        directory; they only show through where no upload exists.
        """
        self._invitations = await self._load_index()
        await self.refresh_bundled()
        return dict(self._invitations)

    async def _load_index(self) -> Dict[str, Invitation]:
        if self.remote is not None:
            try:
                invitations = await run_in_threadpool(self.remote.list_invitations)
            except Exception as e:
                logger.warning(f"Could not load invitations from remote store: {e}")
            else:
                return {invitation.table: invitation for invitation in invitations}

        return await self._from_cache()

    async def refresh_bundled(self) -> Dict[str, Invitation]:
        if self.bundled is None:
            return {}
        tables = [summary.name for summary in self.directory.tables()]
        self._bundled = await run_in_threadpool(self.bundled.scan, tables)
        if self._bundled:
            logger.info(f"Found bundled invitations for {len(self._bundled)} tables")
        return dict(self._bundled)

    async def _from_cache(self) -> Dict[str, Invitation]:
        try:
            raw = await run_in_threadpool(self.cache.get, self.cache_key)
            data = json.loads(raw) if raw else {}
        except Exception as e:
            logger.error(f"Failed to load invitation uploads from storage: {e}")
            return {}

        if not isinstance(data, dict):
            return {}

        invitations = {}
        for table, item in data.items():
            try:
                invitations[table] = Invitation.model_validate(item)
            except ValidationError:
                logger.warning(f"Skipping malformed cached invitation for {table}")
        return invitations

    def get_for_table(self, table: str) -> Optional[Invitation]:
        return self._invitations.get(table) or self._bundled.get(table)

    def all(self) -> List[Invitation]:
        merged = dict(self._bundled)
        merged.update(self._invitations)
        return list(merged.values())

    async def set(self, table: str, payload: bytes, mime_type: Optional[str], file_name: str) -> Invitation:
        """Store an asset and attach it to ``table``, replacing any previous one"""
        reference = await run_in_threadpool(self.assets.save, payload, mime_type, file_name)
        invitation = Invitation(
            table=table,
            asset_type=detect_asset_type(mime_type, file_name),
            asset_ref=reference,
            display_name=file_name,
            mime_type=mime_type or None,
        )

        previous = self._invitations.get(table)
        self._invitations[table] = invitation
        self._persist_index()
        if self.remote is not None:
            self.queue.schedule(self.remote.upsert_invitation, invitation, description=f"remote invitation {table}")
        if previous is not None and previous.asset_ref != reference:
            self.queue.schedule(self.assets.delete, previous.asset_ref, description=f"old asset {table}")

        logger.info(f"Invitation for {table} set to {file_name} ({invitation.asset_type.value})")
        return invitation

    async def remove(self, table: str) -> bool:
        invitation = self._invitations.pop(table, None)
        if invitation is None:
            return False

        self._persist_index()
        if self.remote is not None:
            self.queue.schedule(self.remote.delete_invitation, table, description=f"remote invitation {table}")
        self.queue.schedule(self.assets.delete, invitation.asset_ref, description=f"asset {table}")
        return True

    async def clear(self) -> None:
        """Drop every invitation. Remote rows are removed by the caller's clear-all."""
        invitations = list(self._invitations.values())
        self._invitations = {}
        self._bundled = {}
        self.queue.schedule(self.cache.remove, self.cache_key, description="clear invitation cache")
        for invitation in invitations:
            self.queue.schedule(self.assets.delete, invitation.asset_ref, description=f"asset {invitation.table}")

    async def read_asset(self, invitation: Invitation) -> bytes:
        if invitation.bundled:
            if self.bundled is None:
                raise FileNotFoundError(invitation.asset_ref)
            return await run_in_threadpool(self.bundled.read, invitation.asset_ref)
        return await run_in_threadpool(self.assets.read, invitation.asset_ref)

    async def mark_downloaded(self, guest_name: str, table: Optional[str] = None) -> bool:
        """Record that a guest downloaded their invitation.

        Returns False when the guest is unknown or already marked; the flag is
        never toggled back here.
        """
        guest = self.directory.find(guest_name, table)
        if guest is None:
            logger.warning(f"Download requested for unknown guest {guest_name!r}")
            return False
        if guest.downloaded:
            logger.info(f"Guest {guest_name!r} already downloaded their invitation")
            return False

        guest.downloaded = True
        self.directory.persist_later()
        return True

    async def unmark_all(self) -> int:
        """Administrative reset of every download flag"""
        count = 0
        for guest in self.directory.guests:
            if guest.downloaded:
                guest.downloaded = False
                count += 1
        if count:
            self.directory.persist_later()
        logger.info(f"Reset download flag for {count} guests")
        return count

    def export_index(self) -> Dict[str, dict]:
        """Invitation metadata keyed by table, without payloads"""
        return {table: invitation.model_dump(mode="json") for table, invitation in self._invitations.items()}

    async def import_index(self, data: Dict[str, dict]) -> List[str]:
        """Adopt entries from an exported index whose assets are still stored.

        Returns the tables that were imported. Entries that fail validation or
        point at a missing asset are skipped.
        """
        imported: List[str] = []
        for key, item in data.items():
            try:
                invitation = Invitation.model_validate(item)
            except ValidationError:
                logger.warning(f"Skipping malformed invitation entry for {key}")
                continue
            if invitation.bundled or not await run_in_threadpool(self.assets.exists, invitation.asset_ref):
                logger.warning(f"Skipping invitation for {invitation.table}: asset {invitation.asset_ref} not stored")
                continue

            previous = self._invitations.get(invitation.table)
            self._invitations[invitation.table] = invitation
            if self.remote is not None:
                self.queue.schedule(
                    self.remote.upsert_invitation, invitation,
                    description=f"remote invitation {invitation.table}",
                )
            if previous is not None and previous.asset_ref != invitation.asset_ref:
                self.queue.schedule(self.assets.delete, previous.asset_ref, description=f"old asset {invitation.table}")
            imported.append(invitation.table)

        if imported:
            self._persist_index()
        logger.info(f"Imported {len(imported)} invitations from index")
        return imported

    def _persist_index(self) -> None:
        self.queue.schedule(
            self.cache.set, self.cache_key, json.dumps(self.export_index()),
            description="cache invitations",
        )
