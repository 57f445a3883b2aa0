"""
Property-based tests for the Drive folder crawler.

Property: re-running a crawl over an unchanged folder tree imports nothing
the second time, traversal never goes below the depth bound, and an
unreadable folder does not stop the rest of the crawl.
"""

import asyncio

from hypothesis import given, strategies as st, settings
from sqlalchemy.orm import sessionmaker

from radiocheck.models import BatchJob, Radio, Verification
from radiocheck.services.drive import DriveFile, DriveFolder
from radiocheck.services.errors import DriveError
from radiocheck.services.folder_crawler import sync_radio, sync_radios_from_root, traverse_folder

from conftest import create_test_db


class FakeDrive:
    """In-memory folder tree: {folder_id: (files, subfolders)}."""

    def __init__(self, tree, broken=()):
        self.tree = tree
        self.broken = set(broken)
        self.listed = []

    async def list_audio_files(self, folder_id):
        self.listed.append(folder_id)
        if folder_id in self.broken:
            raise DriveError("403 forbidden")
        return self.tree.get(folder_id, ([], []))[0]

    async def list_folders(self, folder_id):
        if folder_id in self.broken:
            raise DriveError("403 forbidden")
        return self.tree.get(folder_id, ([], []))[1]


def audio(file_id, name=None):
    return DriveFile(
        id=file_id,
        name=name or f"{file_id}.mp3",
        web_view_link=f"https://drive.test/{file_id}",
        created_time="2026-01-30T06:44:00.000Z",
        mime_type="audio/mpeg",
    )


@st.composite
def folder_trees(draw):
    """Random tree rooted at 'root' with unique file ids."""
    tree = {}
    counter = {"file": 0, "folder": 0}

    def build(folder_id, depth):
        files = []
        for _ in range(draw(st.integers(min_value=0, max_value=3))):
            counter["file"] += 1
            files.append(audio(f"f{counter['file']}"))
        children = []
        if depth < 3:
            for _ in range(draw(st.integers(min_value=0, max_value=2))):
                counter["folder"] += 1
                child = DriveFolder(id=f"d{counter['folder']}", name=f"Carpeta {counter['folder']}")
                children.append(child)
                build(child.id, depth + 1)
        tree[folder_id] = (files, children)

    build("root", 0)
    return tree, counter["file"]


def seed_radio(session):
    radio = Radio(name="Radio Norte", user_id="user-1", drive_folder_id="root")
    session.add(radio)
    session.commit()
    return radio


@settings(max_examples=50)
@given(case=folder_trees())
def test_second_crawl_imports_nothing(case):
    tree, total_files = case
    engine = create_test_db()
    session = sessionmaker(bind=engine)()
    try:
        radio = seed_radio(session)
        drive = FakeDrive(tree)

        first = asyncio.run(sync_radio(session, drive, radio, delay_seconds=0))
        second = asyncio.run(sync_radio(session, drive, radio, delay_seconds=0))

        assert first.synced == total_files
        assert second.synced == 0
        assert second.found == total_files
        assert session.query(Verification).count() == total_files
        assert all(v.status == "pending" for v in session.query(Verification))
    finally:
        session.close()


@settings(max_examples=50)
@given(case=folder_trees(), max_depth=st.integers(min_value=0, max_value=3))
def test_traversal_respects_depth_bound(case, max_depth):
    tree, _ = case
    depths = {}

    def assign(folder_id, depth):
        depths[folder_id] = depth
        for child in tree.get(folder_id, ([], []))[1]:
            assign(child.id, depth + 1)

    assign("root", 0)
    drive = FakeDrive(tree)

    found = asyncio.run(traverse_folder(drive, "root", "Raiz", max_depth=max_depth, delay_seconds=0))

    assert all(depths[folder] <= max_depth for folder in drive.listed)
    expected = sum(len(tree[f][0]) for f, d in depths.items() if d <= max_depth)
    assert len(found) == expected


def test_files_are_tagged_with_their_direct_parent():
    tree = {
        "root": ([audio("a")], [DriveFolder(id="enero", name="Enero")]),
        "enero": ([audio("b")], []),
    }
    found = asyncio.run(traverse_folder(FakeDrive(tree), "root", "Radio", delay_seconds=0))

    parents = {item.file.id: (item.parent_folder_id, item.parent_folder_name) for item in found}
    assert parents == {"a": ("root", "Radio"), "b": ("enero", "Enero")}


def test_unreadable_folder_is_skipped():
    tree = {
        "root": ([audio("a")], [DriveFolder(id="bad", name="Privada"), DriveFolder(id="ok", name="Ok")]),
        "bad": ([audio("hidden")], []),
        "ok": ([audio("c")], []),
    }
    found = asyncio.run(traverse_folder(FakeDrive(tree, broken={"bad"}), "root", "Radio", delay_seconds=0))

    assert sorted(item.file.id for item in found) == ["a", "c"]


def test_delay_between_subfolder_visits():
    tree = {
        "root": ([], [DriveFolder(id="x", name="X"), DriveFolder(id="y", name="Y")]),
    }
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    asyncio.run(traverse_folder(FakeDrive(tree), "root", "Radio", delay_seconds=0.2, sleep=fake_sleep))

    assert sleeps == [0.2, 0.2]


def test_new_rows_carry_broadcast_metadata_and_batch_label(db_session, test_radio):
    tree = {
        "root-folder": (
            [audio("a", "NORTE_2026-01-30-0644.mp3"), audio("b", "x_20260131064221304.aac"), audio("c", "sin-fecha.mp3")],
            [],
        ),
    }
    result = asyncio.run(
        sync_radio(db_session, FakeDrive(tree), test_radio, create_batch=True, batch_name="Enero", delay_seconds=0)
    )

    batch = db_session.get(BatchJob, result.batch_id)
    assert (batch.status, batch.total_files, batch.processed_files, batch.name) == ("processing", 3, 0, "Enero")
    rows = {v.drive_file_id: v for v in db_session.query(Verification)}
    assert (rows["a"].broadcast_date, rows["a"].broadcast_time) == ("2026-01-30", "06:44")
    assert (rows["b"].broadcast_date, rows["b"].broadcast_time) == ("2026-01-31", "06:42")
    assert (rows["c"].broadcast_date, rows["c"].broadcast_time) == (None, None)
    assert all(v.batch_id == batch.id and v.target_phrase is None for v in rows.values())
    assert rows["a"].created_at.year == 2026


def test_duplicate_ids_within_one_crawl_are_imported_once(db_session, test_radio):
    tree = {
        "root-folder": ([audio("dup")], [DriveFolder(id="sub", name="Sub")]),
        "sub": ([audio("dup")], []),
    }
    result = asyncio.run(sync_radio(db_session, FakeDrive(tree), test_radio, delay_seconds=0))
    assert result.synced == 1


def test_root_sync_creates_each_radio_once(db_session, monkeypatch):
    monkeypatch.setattr("radiocheck.services.folder_crawler.get_settings", lambda: _NoDelaySettings())
    tree = {
        "drive-root": ([], [DriveFolder(id="r1", name="Radio Uno"), DriveFolder(id="r2", name="Radio Dos")]),
        "r1": ([audio("a")], []),
        "r2": ([audio("b"), audio("c")], []),
    }
    drive = FakeDrive(tree)

    first = asyncio.run(sync_radios_from_root(db_session, drive, "drive-root", user_id="user-1"))
    second = asyncio.run(sync_radios_from_root(db_session, drive, "drive-root", user_id="user-1"))

    assert (first.created_radios, first.synced_audios, first.total_found) == (2, 3, 3)
    assert (second.created_radios, second.synced_audios) == (0, 0)
    assert sorted(r.name for r in db_session.query(Radio)) == ["Radio Dos", "Radio Uno"]


class _NoDelaySettings:
    drive_max_depth = 5
    drive_request_delay_seconds = 0
