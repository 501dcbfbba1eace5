"""
Wiring of the guest directory services
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from app.core.config import Settings
from app.services.directory_service import GuestDirectory
from app.services.invitation_registry import BundledInvitationFiles, InvitationRegistry
from app.services.name_matcher import NameMatcher
from app.services.persistence import PersistenceQueue
from app.services.repositories import RemoteGuestStore
from app.services.source_reconciler import BundledGuestFiles, SourceReconciler
from app.services.storage import KeyValueStore, LocalAssetStorage

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    directory: GuestDirectory
    invitations: InvitationRegistry
    reconciler: SourceReconciler
    matcher: NameMatcher
    queue: PersistenceQueue
    cache: KeyValueStore
    remote: Optional[RemoteGuestStore] = None

    async def start(self) -> None:
        """Load guests and invitations from the best available sources"""
        guests = await self.reconciler.load()
        self.directory.seed(guests)
        await self.invitations.load()
        logger.info(f"Guest directory ready with {len(guests)} guests")

    async def reload(self) -> int:
        guests = await self.reconciler.load()
        self.directory.seed(guests)
        await self.invitations.refresh_bundled()
        return len(guests)

    async def clear_all(self) -> None:
        """Remove every guest and invitation"""
        self.directory.clear()
        await self.invitations.clear()
        self.queue.schedule(self.cache.remove, self.directory.cache_key, description="clear guest cache")
        if self.remote is not None:
            self.queue.schedule(self.remote.clear_all, description="clear remote store")

    async def stop(self) -> None:
        await self.queue.drain()


def build_container(
    settings: Settings,
    cache: KeyValueStore,
    remote: Optional[RemoteGuestStore] = None,
    assets: Optional[LocalAssetStorage] = None,
) -> ServiceContainer:
    cache.init()
    queue = PersistenceQueue()
    directory = GuestDirectory(cache, settings.CACHE_KEY, queue, remote=remote)
    invitations = InvitationRegistry(
        directory,
        assets or LocalAssetStorage(settings.UPLOAD_DIR),
        cache,
        settings.invitations_cache_key,
        queue,
        remote=remote,
        bundled=BundledInvitationFiles(settings.bundled_invitation_root, settings.BUNDLED_INVITATION_EXTENSIONS),
    )
    reconciler = SourceReconciler(
        remote,
        BundledGuestFiles(settings.DATA_DIR, settings.BUNDLED_GUEST_FILES),
        cache,
        settings.CACHE_KEY,
    )
    return ServiceContainer(
        directory=directory,
        invitations=invitations,
        reconciler=reconciler,
        matcher=NameMatcher(settings.MIN_PARTIAL_QUERY_LENGTH, settings.FUZZY_MATCH_THRESHOLD),
        queue=queue,
        cache=cache,
        remote=remote,
    )


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services
