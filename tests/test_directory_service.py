"""
Tests for the guest directory, service wiring and the local cache store
"""

import asyncio
import io
import json
import threading

import pandas as pd
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.config import Settings
from app.core.errors import DecodeError, EMPTY_RESULT_HINT
from app.schemas.guest import Guest
from app.services.container import build_container
from app.services.directory_service import GuestDirectory, format_table_label
from app.services.guest_list_parser import GuestListParser
from app.services.persistence import PersistenceQueue
from app.services.storage import MemoryKeyValueStore, SqlKeyValueStore

CACHE_KEY = "finder-flex:guest-list"

def create_test_excel(rows):
    df = pd.DataFrame(rows)
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine='openpyxl') as writer:
        df.to_excel(writer, index=False, header=False)
    return buffer.getvalue()

@pytest.fixture
def cache():
    store = MemoryKeyValueStore()
    store.init()
    return store

@pytest.fixture
def directory(cache):
    directory = GuestDirectory(cache, CACHE_KEY, PersistenceQueue())
    directory.seed([
        Guest(name="Amaka Obi", table="Table 10"),
        Guest(name="Tunde Bello", table="Table 2"),
        Guest(name="Chidi Eze", table="Table 2"),
        Guest(name="Walk In", table="Unassigned"),
    ])
    return directory

def run(coro):
    return asyncio.run(coro)

@pytest.mark.parametrize("raw,expected", [
    ("3", "Table 3"),
    ("  table   3 ", "table 3"),
    ("Table 12", "Table 12"),
    ("VIP", "Table VIP"),
    ("", ""),
    ("   ", ""),
    (None, ""),
])
def test_format_table_label(raw, expected):
    assert format_table_label(raw) == expected

def test_tables_are_naturally_sorted(directory):
    """Table 2 sorts before Table 10"""
    tables = [(t.name, t.count) for t in directory.tables()]
    assert tables == [("Table 2", 2), ("Table 10", 1), ("Unassigned", 1)]

def test_guests_at_table_accepts_short_labels(directory):
    assert [g.name for g in directory.guests_at_table("2")] == ["Tunde Bello", "Chidi Eze"]
    assert [g.name for g in directory.guests_at_table("table 10")] == ["Amaka Obi"]
    assert [g.name for g in directory.guests_at_table("Unassigned")] == ["Walk In"]

def test_guests_property_is_a_copy(directory):
    directory.guests.clear()
    assert len(directory.guests) == 4

def test_import_spreadsheet_replaces_directory(directory, cache):
    content = create_test_excel([["Guest"], ["Table 1"], ["Ngozi Ade"]])

    async def scenario():
        result = await directory.import_spreadsheet(content, "guest-list.xlsx")
        await directory.queue.drain()
        return result

    result = run(scenario())

    assert result.hint is None
    assert [(g.name, g.table) for g in directory.guests] == [("Ngozi Ade", "Table 1")]
    assert json.loads(cache.get(CACHE_KEY)) == [
        {"name": "Ngozi Ade", "table": "Table 1", "downloaded": False}
    ]

def test_import_without_guests_keeps_directory(directory):
    """Zero guests is a hint, not an error, and does not wipe the list"""
    content = create_test_excel([["Table 1"], ["Ngozi Ade"]])

    result = run(directory.import_spreadsheet(content, "guest-list.xlsx"))

    assert result.guests == []
    assert result.hint == EMPTY_RESULT_HINT
    assert len(directory.guests) == 4

def test_import_rejects_undecodable_file(directory):
    with pytest.raises(DecodeError):
        run(directory.import_spreadsheet(b"garbage", "guest-list.xlsx"))
    assert len(directory.guests) == 4

def test_container_start_and_clear_all(tmp_path):
    """Clearing removes guests, invitations and their cached copies"""
    (tmp_path / "data").mkdir()
    (tmp_path / "data" / "guest-list.xlsx").write_bytes(
        create_test_excel([["Guest"], ["Table 1"], ["Amaka Obi"]])
    )
    settings = Settings(
        DATA_DIR=str(tmp_path / "data"),
        UPLOAD_DIR=str(tmp_path / "uploads"),
        FIREBASE_PROJECT_ID="",
        FIREBASE_CREDENTIALS="",
    )
    cache = MemoryKeyValueStore()
    services = build_container(settings, cache)

    async def scenario():
        await services.start()
        loaded = services.directory.guests
        await services.invitations.set("Table 1", b"png", "image/png", "t1.png")
        await services.queue.drain()
        await services.clear_all()
        await services.stop()
        return loaded

    loaded = run(scenario())

    assert [g.name for g in loaded] == ["Amaka Obi"]
    assert services.directory.guests == []
    assert services.invitations.get_for_table("Table 1") is None
    assert cache.get(settings.CACHE_KEY) is None
    assert cache.get(settings.invitations_cache_key) is None

def test_sql_key_value_store(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'cache.db'}", connect_args={"check_same_thread": False})
    store = SqlKeyValueStore(engine, sessionmaker(autocommit=False, autoflush=False, bind=engine))
    store.init()

    assert store.get("missing") is None
    store.set("k", "one")
    store.set("k", "two")
    assert store.get("k") == "two"
    store.remove("k")
    assert store.get("k") is None

class ThreadRecordingParser(GuestListParser):
    def __init__(self):
        self.threads = []

    def parse_bytes(self, content, filename=None):
        self.threads.append(threading.get_ident())
        return super().parse_bytes(content, filename)

def test_import_decodes_off_the_event_loop(cache):
    parser = ThreadRecordingParser()
    directory = GuestDirectory(cache, CACHE_KEY, PersistenceQueue(), parser=parser)
    content = create_test_excel([["Guest"], ["Table 1"], ["Ngozi Ade"]])

    async def scenario():
        loop_thread = threading.get_ident()
        await directory.import_spreadsheet(content, "guest-list.xlsx")
        await directory.queue.drain()
        return loop_thread

    loop_thread = run(scenario())

    assert len(parser.threads) == 1
    assert parser.threads[0] != loop_thread
