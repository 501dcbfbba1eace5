"""
Tests for invitation assets and the one-time download flag
"""

import asyncio
import json

import pytest

from app.schemas.guest import Guest
from app.schemas.invitation import AssetType
from app.services.directory_service import GuestDirectory
from app.services.invitation_registry import (
    BundledInvitationFiles,
    InvitationRegistry,
    detect_asset_type,
)
from app.services.persistence import PersistenceQueue
from app.services.storage import LocalAssetStorage, MemoryKeyValueStore

GUEST_KEY = "finder-flex:guest-list"
INVITATION_KEY = "finder-flex:guest-list:uploads"

class RecordingRemote:
    def __init__(self, invitations=None, error=None):
        self.invitations = invitations or []
        self.error = error
        self.upserted = []
        self.deleted = []
        self.replaced = []

    def list_invitations(self):
        if self.error:
            raise self.error
        return list(self.invitations)

    def upsert_invitation(self, invitation):
        self.upserted.append(invitation.table)

    def delete_invitation(self, table):
        self.deleted.append(table)

    def replace_guests(self, guests):
        self.replaced.append([(g.name, g.downloaded) for g in guests])

def build(tmp_path, remote=None, guests=None, bundled=None):
    cache = MemoryKeyValueStore()
    cache.init()
    queue = PersistenceQueue()
    directory = GuestDirectory(cache, GUEST_KEY, queue, remote=remote)
    directory.seed(guests or [
        Guest(name="Amaka Obi", table="Table 1"),
        Guest(name="Tunde Bello", table="Table 2"),
        Guest(name="Amaka Obi", table="Table 2"),
    ])
    registry = InvitationRegistry(
        directory,
        LocalAssetStorage(str(tmp_path)),
        cache,
        INVITATION_KEY,
        queue,
        remote=remote,
        bundled=bundled,
    )
    return registry, directory, cache, queue

def run(coro):
    return asyncio.run(coro)

@pytest.mark.parametrize("mime_type,file_name,expected", [
    ("image/png", "card.pdf", AssetType.IMAGE),
    ("application/pdf", "card.png", AssetType.PDF),
    ("text/plain", "card.png", AssetType.OTHER),
    (None, "Table 1.JPEG", AssetType.IMAGE),
    ("", "card.pdf", AssetType.PDF),
    (None, "card.docx", AssetType.OTHER),
    (None, None, AssetType.OTHER),
])
def test_detect_asset_type(mime_type, file_name, expected):
    """MIME type takes priority over the file extension"""
    assert detect_asset_type(mime_type, file_name) is expected

def test_set_and_get_invitation(tmp_path):
    registry, _, cache, queue = build(tmp_path)

    async def scenario():
        invitation = await registry.set("Table 1", b"%PDF-1.4", "application/pdf", "table1.pdf")
        await queue.drain()
        return invitation

    invitation = run(scenario())

    assert registry.get_for_table("Table 1") == invitation
    assert registry.get_for_table("Table 2") is None
    assert invitation.asset_type is AssetType.PDF
    assert invitation.display_name == "table1.pdf"
    assert (tmp_path / invitation.asset_ref).read_bytes() == b"%PDF-1.4"
    assert json.loads(cache.get(INVITATION_KEY))["Table 1"]["asset_ref"] == invitation.asset_ref

def test_replacing_invitation_keeps_last_write(tmp_path):
    registry, _, _, queue = build(tmp_path)

    async def scenario():
        first = await registry.set("Table 1", b"one", "image/png", "one.png")
        second = await registry.set("Table 1", b"two", "image/jpeg", "two.jpg")
        await queue.drain()
        return first, second

    first, second = run(scenario())

    assert registry.get_for_table("Table 1").display_name == "two.jpg"
    assert not (tmp_path / first.asset_ref).exists()
    assert (tmp_path / second.asset_ref).read_bytes() == b"two"

def test_remove_invitation(tmp_path):
    remote = RecordingRemote()
    registry, _, cache, queue = build(tmp_path, remote=remote)

    async def scenario():
        await registry.set("Table 2", b"img", "image/png", "t2.png")
        removed = await registry.remove("Table 2")
        missing = await registry.remove("Table 2")
        await queue.drain()
        return removed, missing

    removed, missing = run(scenario())

    assert removed is True
    assert missing is False
    assert registry.get_for_table("Table 2") is None
    assert remote.upserted == ["Table 2"]
    assert remote.deleted == ["Table 2"]
    assert json.loads(cache.get(INVITATION_KEY)) == {}

def test_mark_downloaded_only_once(tmp_path):
    """The second call is a no-op and the flag stays set"""
    registry, directory, cache, queue = build(tmp_path)

    async def scenario():
        first = await registry.mark_downloaded("Tunde Bello")
        second = await registry.mark_downloaded("Tunde Bello")
        await queue.drain()
        return first, second

    first, second = run(scenario())

    assert first is True
    assert second is False
    assert directory.find("Tunde Bello").downloaded is True
    cached = json.loads(cache.get(GUEST_KEY))
    assert [g["downloaded"] for g in cached] == [False, True, False]

def test_mark_downloaded_targets_table_when_given(tmp_path):
    registry, directory, _, queue = build(tmp_path)

    async def scenario():
        result = await registry.mark_downloaded("Amaka Obi", table="Table 2")
        await queue.drain()
        return result

    assert run(scenario()) is True
    assert [g.downloaded for g in directory.guests] == [False, False, True]

def test_mark_downloaded_unknown_guest(tmp_path):
    registry, _, _, _ = build(tmp_path)
    assert run(registry.mark_downloaded("Nobody Here")) is False

def test_unmark_all_resets_flags(tmp_path):
    remote = RecordingRemote()
    registry, directory, _, queue = build(tmp_path, remote=remote)

    async def scenario():
        await registry.mark_downloaded("Amaka Obi")
        await registry.mark_downloaded("Tunde Bello")
        count = await registry.unmark_all()
        await queue.drain()
        return count

    assert run(scenario()) == 2
    assert not any(g.downloaded for g in directory.guests)
    assert len(remote.replaced) == 3
    assert remote.replaced[-1] == [("Amaka Obi", False), ("Tunde Bello", False), ("Amaka Obi", False)]

def test_load_prefers_remote_then_cache(tmp_path):
    remote = RecordingRemote(error=ConnectionError("offline"))
    registry, _, cache, queue = build(tmp_path, remote=remote)
    cache.set(INVITATION_KEY, json.dumps({
        "Table 1": {
            "table": "Table 1",
            "asset_type": "image",
            "asset_ref": "invitations/a.png",
            "display_name": "a.png",
        },
        "Table 9": {"table": "Table 9"},
    }))

    invitations = run(registry.load())

    assert list(invitations) == ["Table 1"]
    assert registry.get_for_table("Table 1").asset_type is AssetType.IMAGE

def test_persistence_failure_is_logged_not_raised(tmp_path, caplog):
    class FailingRemote(RecordingRemote):
        def upsert_invitation(self, invitation):
            raise ConnectionError("remote down")

    registry, _, _, queue = build(tmp_path, remote=FailingRemote())

    async def scenario():
        invitation = await registry.set("Table 1", b"x", "image/png", "x.png")
        await queue.drain()
        return invitation

    invitation = run(scenario())

    assert registry.get_for_table("Table 1") == invitation
    assert "remote down" in caplog.text

def test_asset_references_cannot_leave_the_upload_root(tmp_path):
    root = tmp_path / "uploads"
    root.mkdir()
    outside = tmp_path / "keep.txt"
    outside.write_text("keep")
    assets = LocalAssetStorage(str(root))

    with pytest.raises(FileNotFoundError):
        assets.read("../keep.txt")
    with pytest.raises(FileNotFoundError):
        assets.delete("../keep.txt")
    with pytest.raises(FileNotFoundError):
        assets.delete(str(outside))

    assert outside.read_text() == "keep"

@pytest.fixture
def shipped(tmp_path):
    root = tmp_path / "data" / "invitations"
    root.mkdir(parents=True)
    (root / "Table 1.pdf").write_bytes(b"%PDF shipped")
    (root / "Table 1.png").write_bytes(b"png shipped")
    (root / "Table 2.jpg").write_bytes(b"jpg shipped")
    return BundledInvitationFiles(str(root), [".pdf", ".png", ".jpg", ".jpeg"])

def test_shipped_invitations_fill_tables_without_uploads(tmp_path, shipped):
    registry, _, _, _ = build(tmp_path / "uploads", bundled=shipped)

    async def scenario():
        await registry.load()
        return await registry.read_asset(registry.get_for_table("Table 1"))

    content = run(scenario())

    first = registry.get_for_table("Table 1")
    assert first.bundled is True
    assert first.display_name == "Table 1.pdf"
    assert first.asset_type is AssetType.PDF
    assert content == b"%PDF shipped"
    assert registry.get_for_table("Table 2").asset_type is AssetType.IMAGE
    assert registry.export_index() == {}

def test_upload_takes_priority_over_shipped_file(tmp_path, shipped):
    registry, _, _, queue = build(tmp_path / "uploads", bundled=shipped)

    async def scenario():
        await registry.load()
        await registry.set("Table 2", b"uploaded", "image/png", "mine.png")
        await queue.drain()
        return await registry.read_asset(registry.get_for_table("Table 2"))

    assert run(scenario()) == b"uploaded"
    assert registry.get_for_table("Table 2").bundled is False
    assert sorted(i.table for i in registry.all()) == ["Table 1", "Table 2"]

def test_shipped_lookup_normalizes_whitespace(shipped):
    assert shipped.find("  Table   2 ").display_name == "Table 2.jpg"
    assert shipped.find("Table 9") is None
    assert shipped.find("   ") is None
    assert shipped.find("../../keep") is None

def test_import_index_restores_stored_assets(tmp_path):
    remote = RecordingRemote()
    registry, _, _, queue = build(tmp_path)

    async def export():
        await registry.set("Table 1", b"card", "image/png", "card.png")
        await queue.drain()
        return registry.export_index()

    index = run(export())
    index["Table 2"] = dict(index["Table 1"], table="Table 2", asset_ref="invitations/gone.png")
    index["Table 3"] = {"table": "Table 3"}

    restored, _, cache, restored_queue = build(tmp_path, remote=remote)

    async def restore():
        tables = await restored.import_index(index)
        await restored_queue.drain()
        return tables

    assert run(restore()) == ["Table 1"]
    assert restored.get_for_table("Table 1").display_name == "card.png"
    assert restored.get_for_table("Table 2") is None
    assert remote.upserted == ["Table 1"]
    assert list(json.loads(cache.get(INVITATION_KEY))) == ["Table 1"]
