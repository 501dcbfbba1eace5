"""
Guest directory held in memory, with background persistence
"""

import logging
import re
from typing import List, Optional, Sequence

from fastapi.concurrency import run_in_threadpool

from app.core.errors import EMPTY_RESULT_HINT
from app.schemas.guest import Guest, ImportResult, TableSummary, UNASSIGNED_TABLE
from app.services.guest_list_parser import GuestListParser
from app.services.persistence import PersistenceQueue
from app.services.repositories import RemoteGuestStore
from app.services.source_reconciler import dump_guests
from app.services.storage import KeyValueStore

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
_DIGITS = re.compile(r"(\d+)")


def format_table_label(raw: Optional[str]) -> str:
    """Normalize a table reference such as ``"3"`` or ``"table  3"``"""
    if not raw:
        return ""
    trimmed = _WHITESPACE.sub(" ", raw.strip())
    if not trimmed:
        return ""
    if trimmed.lower().startswith("table"):
        return trimmed
    return f"Table {trimmed}"


def natural_key(value: str):
    return [int(part) if part.isdigit() else part.lower() for part in _DIGITS.split(value)]


class GuestDirectory:
    """The authoritative guest list for the running application"""

    def __init__(
        self,
        cache: KeyValueStore,
        cache_key: str,
        queue: PersistenceQueue,
        remote: Optional[RemoteGuestStore] = None,
        parser: Optional[GuestListParser] = None,
    ):
        self.cache = cache
        self.cache_key = cache_key
        self.queue = queue
        self.remote = remote
        self.parser = parser or GuestListParser()
        self._guests: List[Guest] = []

    @property
    def guests(self) -> List[Guest]:
        return list(self._guests)

    def seed(self, guests: Sequence[Guest]) -> None:
        """Adopt a list that is already persisted (e.g. from the reconciler)"""
        self._guests = list(guests)

    async def replace(self, guests: Sequence[Guest]) -> List[Guest]:
        self._guests = list(guests)
        self.persist_later()
        return self.guests

    async def import_spreadsheet(self, content: bytes, filename: Optional[str] = None) -> ImportResult:
        """Parse an uploaded spreadsheet and adopt it when it has guests.

        Raises DecodeError when the file is not tabular data.
        """
        guests = await run_in_threadpool(self.parser.parse_bytes, content, filename)
        if not guests:
            logger.info(f"No guests found in {filename or 'upload'}")
            return ImportResult(guests=[], hint=EMPTY_RESULT_HINT)

        await self.replace(guests)
        logger.info(f"Imported {len(guests)} guests from {filename or 'upload'}")
        return ImportResult(guests=self.guests)

    def clear(self) -> None:
        self._guests = []

    def find(self, name: str, table: Optional[str] = None) -> Optional[Guest]:
        """First guest with exactly this name, optionally at this table"""
        for guest in self._guests:
            if guest.name == name and (table is None or guest.table == table):
                return guest
        return None

    def tables(self) -> List[TableSummary]:
        counts = {}
        for guest in self._guests:
            table = guest.table or UNASSIGNED_TABLE
            counts[table] = counts.get(table, 0) + 1
        return [
            TableSummary(name=name, count=count)
            for name, count in sorted(counts.items(), key=lambda item: natural_key(item[0]))
        ]

    def guests_at_table(self, table: str) -> List[Guest]:
        wanted = {_WHITESPACE.sub(" ", table.strip()).lower(), format_table_label(table).lower()}
        return [guest for guest in self._guests if guest.table.lower() in wanted]

    def persist_later(self) -> None:
        """Schedule cache and remote writes of the current list"""
        snapshot = [guest.model_copy() for guest in self._guests]
        self.queue.schedule(
            self.cache.set, self.cache_key, dump_guests(snapshot),
            description="cache guest list",
        )
        if self.remote is not None:
            self.queue.schedule(self.remote.replace_guests, snapshot, description="remote guest list")
