import os

import pytest

from udpfileserver.filetable import FileTable, OpenFile


def test_add_and_find():
    table = FileTable()
    entry = table.add("a.txt", 10, 0)
    assert table.find_by_name("a.txt") is entry
    assert table.find_by_fid(0) is entry
    assert len(table) == 1


def test_missing_lookups_return_none():
    table = FileTable()
    table.add("a.txt", 10, 0)
    assert table.find_by_name("b.txt") is None
    assert table.find_by_fid(5) is None


def test_iteration_is_newest_first():
    table = FileTable()
    table.add("a", 1, 0)
    table.add("b", 2, 1)
    table.add("c", 3, 2)
    assert [e.name for e in table] == ["c", "b", "a"]


def test_newest_duplicate_wins():
    table = FileTable()
    table.add("a", 1, 7)
    newer = table.add("a", 2, 7)
    assert table.find_by_name("a") is newer
    assert table.find_by_fid(7) is newer


def test_remove():
    table = FileTable()
    table.add("a", 1, 0)
    table.add("b", 2, 1)
    removed = table.remove("a")
    assert removed.fd == 1
    assert [e.name for e in table] == ["b"]
    assert len(table) == 1


def test_remove_missing_raises():
    table = FileTable()
    with pytest.raises(KeyError):
        table.remove("nothing")


def test_touch_updates_activity():
    entry = OpenFile("a", 1, 0, last_activity=100.0)
    entry.touch(250.0)
    assert entry.last_activity == 250.0


def test_expire_removes_only_stale_entries():
    table = FileTable()
    old = table.add("old", 1, 0)
    fresh = table.add("fresh", 2, 1)
    old.touch(0.0)
    fresh.touch(90.0)
    stale = table.expire(60, now=100.0)
    assert stale == [old]
    assert list(table) == [fresh]


def test_expire_keeps_entry_at_exact_age():
    table = FileTable()
    entry = table.add("edge", 1, 0)
    entry.touch(40.0)
    assert table.expire(60, now=100.0) == []
    assert len(table) == 1


def test_describe_format():
    table = FileTable()
    table.add("a.txt", 4, 0)
    table.add("b.txt", 5, 1)
    assert table.describe().splitlines() == [
        "File name: b.txt, fd: 5, fid: 1",
        "File name: a.txt, fd: 4, fid: 0",
    ]


def test_close_all_closes_descriptors(tmp_path):
    table = FileTable()
    fd = os.open(tmp_path / "f.bin", os.O_RDWR | os.O_CREAT, 0o644)
    table.add("f.bin", fd, 0)
    table.close_all()
    assert len(table) == 0
    with pytest.raises(OSError):
        os.fstat(fd)