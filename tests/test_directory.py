import pytest

from linkfs.directory import DirectoryEntry, DirectoryTable
from linkfs.disk import DiskError

# "a", "q" and "A" all hash to slot 1 in a 16-slot table


def test_rolling_hash():
    table = DirectoryTable(16)
    assert table.hash("a") == 97 % 16
    assert table.hash("ab") == (97 * 31 + 98) % 16
    assert table.hash("") == 0


def test_insert_and_search():
    table = DirectoryTable(16)
    assert table.insert("a", 3, 10)
    entry = table.search("a")
    assert entry == DirectoryEntry("a", 3, 10, True)
    assert table.slot_of("a") == 1
    assert table.search("b") is None
    assert len(table) == 1


def test_duplicate_rejected():
    table = DirectoryTable(16)
    assert table.insert("a", 3, 10)
    assert not table.insert("a", 4, 20)
    assert table.search("a").start_block == 3


def test_linear_probing():
    table = DirectoryTable(16)
    table.insert("a", 0, 1)
    table.insert("q", 1, 1)
    table.insert("A", 2, 1)
    assert [table.slot_of(n) for n in ("a", "q", "A")] == [1, 2, 3]


def test_probe_wraps_around():
    table = DirectoryTable(4)
    # "c" = 99 -> slot 3
    table.insert("c", None, 0)
    table.insert("g", None, 0)  # 103 -> slot 3, wraps to 0
    assert table.slot_of("g") == 0


def test_remove_leaves_tombstone():
    table = DirectoryTable(16)
    table.insert("a", 0, 1)
    assert table.remove("a")
    assert table.slots[1] is not None
    assert not table.slots[1].occupied
    assert table.search("a") is None
    assert not table.remove("a")
    assert len(table) == 0


def test_tombstone_does_not_hide_colliding_entry():
    table = DirectoryTable(16)
    table.insert("a", 0, 1)
    table.insert("q", 1, 1)
    table.remove("a")
    assert table.search("q").start_block == 1
    assert not table.insert("q", 5, 5)


def test_insert_reuses_tombstone():
    table = DirectoryTable(16)
    table.insert("a", 0, 1)
    table.insert("q", 1, 1)
    table.remove("a")
    assert table.insert("A", 2, 1)
    assert table.slot_of("A") == 1


def test_table_full():
    table = DirectoryTable(4)
    for name in ("w", "x", "y", "z"):
        assert table.insert(name, None, 0)
    assert table.is_full()
    assert not table.insert("v", None, 0)
    table.remove("x")
    assert not table.is_full()
    assert table.insert("v", None, 0)


def test_list_occupied_in_slot_order():
    table = DirectoryTable(16)
    table.insert("c", None, 0)  # 99 % 16 = 3
    table.insert("a", None, 0)  # 1
    table.insert("b", None, 0)  # 2
    table.remove("b")
    assert [e.name for e in table.list_occupied()] == ["a", "c"]


def test_update_in_place():
    table = DirectoryTable(16)
    table.insert("a", 0, 1)
    table.take_dirty()
    assert table.update("a", 7, 99)
    assert table.search("a") == DirectoryEntry("a", 7, 99)
    assert table.take_dirty() == [1]
    assert not table.update("missing", 0, 0)


def test_dirty_slots():
    table = DirectoryTable(16)
    table.insert("a", 0, 1)
    table.insert("c", 0, 1)
    assert table.take_dirty() == [1, 3]
    assert table.take_dirty() == []


def test_entry_pack_roundtrip():
    for entry in (DirectoryEntry("name", 3, 10), DirectoryEntry("пусто", None, 0), DirectoryEntry("old", 1, 5, False)):
        raw = entry.pack(128)
        assert len(raw) == 128
        assert DirectoryEntry.unpack(raw) == entry


def test_unpack_never_used_slot():
    assert DirectoryEntry.unpack(b"\x00" * 128) is None


def test_pack_name_too_long():
    with pytest.raises(DiskError):
        DirectoryEntry("x" * 200, 0, 0).pack(128)


def test_load_rejects_duplicate_names():
    table = DirectoryTable(4)
    entries = [DirectoryEntry("a", 0, 1), DirectoryEntry("a", 1, 1), None, None]
    with pytest.raises(DiskError):
        table.load(entries)


def test_load_counts_live_entries():
    table = DirectoryTable(4)
    # "a" hashes to slot 1, "b" to slot 2
    table.load([None, DirectoryEntry("a", 0, 1), DirectoryEntry("b", 1, 1, False), None])
    assert len(table) == 1
    assert table.search("a") is not None
    assert table.search("b") is None
