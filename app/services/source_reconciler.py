"""
Read-time reconciliation of the guest directory across its sources.

Sources are tried in a fixed order and the first one that answers wins:

1. the remote store, when configured. A configured remote is authoritative
   even when it holds no guests; only a failing remote falls through.
2. bundled spreadsheet files, in candidate order; the first one that parses
   to at least one guest is used.
3. the local cache snapshot, when it decodes to a list.

Results from 1 and 2 are written back to the cache before returning.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Union

from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError

from app.core.errors import DecodeError, SourceUnavailable
from app.schemas.guest import Guest
from app.services.guest_list_parser import GuestListParser
from app.services.repositories import RemoteGuestStore
from app.services.storage import KeyValueStore

logger = logging.getLogger(__name__)


class NotConfigured:
    """The remote store has no connection settings"""

    def __repr__(self) -> str:
        return "NotConfigured"


NOT_CONFIGURED = NotConfigured()


@dataclass(frozen=True)
class Configured:
    """Answer from a configured remote store, possibly empty"""
    guests: List[Guest]


RemoteResult = Union[NotConfigured, Configured]


class BundledGuestFiles:
    """Guest list spreadsheets shipped alongside the application"""

    def __init__(self, data_dir: str, filenames: Sequence[str]):
        self.data_dir = Path(data_dir)
        self.filenames = list(filenames)

    async def fetch(self, filename: str) -> bytes:
        path = self.data_dir / filename
        try:
            return await run_in_threadpool(path.read_bytes)
        except OSError as e:
            raise SourceUnavailable(f"Guest list file {path} not readable: {e}") from e


def dump_guests(guests: Sequence[Guest]) -> str:
    return json.dumps([guest.model_dump() for guest in guests])


def load_guests(raw: str) -> Optional[List[Guest]]:
    """Decode a cached snapshot; None unless it is a JSON array."""
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        logger.warning(f"Cached guest list is not valid JSON: {e}")
        return None

    if not isinstance(data, list):
        return None

    guests: List[Guest] = []
    for item in data:
        try:
            guests.append(Guest.model_validate(item))
        except ValidationError:
            logger.warning(f"Skipping malformed cached guest entry: {item!r}")
    return guests


class SourceReconciler:
    """Decides which source holds the guest directory"""

    def __init__(
        self,
        remote: Optional[RemoteGuestStore],
        bundled: BundledGuestFiles,
        cache: KeyValueStore,
        cache_key: str,
        parser: Optional[GuestListParser] = None,
    ):
        self.remote = remote
        self.bundled = bundled
        self.cache = cache
        self.cache_key = cache_key
        self.parser = parser or GuestListParser()

    async def load(self) -> List[Guest]:
        try:
            result = await self.from_remote()
        except SourceUnavailable as e:
            logger.warning(f"Remote guest store unavailable, falling back: {e}")
        else:
            if isinstance(result, Configured):
                await self.write_cache(result.guests)
                return result.guests

        guests = await self.from_bundled_files()
        if guests:
            await self.write_cache(guests)
            return guests

        cached = await self.from_cache()
        if cached is not None:
            logger.info(f"Loaded {len(cached)} guests from local cache")
            return cached

        logger.info("No guest list source available")
        return []

    async def from_remote(self) -> RemoteResult:
        if self.remote is None:
            return NOT_CONFIGURED
        try:
            guests = await run_in_threadpool(self.remote.list_guests)
        except Exception as e:
            raise SourceUnavailable(str(e)) from e
        logger.info(f"Loaded {len(guests)} guests from remote store")
        return Configured(list(guests))

    async def from_bundled_files(self) -> List[Guest]:
        for filename in self.bundled.filenames:
            try:
                content = await self.bundled.fetch(filename)
                guests = await run_in_threadpool(self.parser.parse_bytes, content, filename)
            except (SourceUnavailable, DecodeError) as e:
                logger.info(f"Skipping bundled guest list {filename}: {e}")
                continue
            if guests:
                logger.info(f"Loaded {len(guests)} guests from bundled file {filename}")
                return guests
        return []

    async def from_cache(self) -> Optional[List[Guest]]:
        try:
            raw = await run_in_threadpool(self.cache.get, self.cache_key)
        except Exception as e:
            logger.warning(f"Local cache unreadable: {e}")
            return None
        if raw is None:
            return None
        return load_guests(raw)

    async def write_cache(self, guests: Sequence[Guest]) -> None:
        try:
            await run_in_threadpool(self.cache.set, self.cache_key, dump_guests(guests))
        except Exception as e:
            logger.error(f"Failed to save guest list to cache: {e}")
