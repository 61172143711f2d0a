"""Tests for the transactional key-value store."""

import stat
import threading

import pytest

from pageserver.storage import (
    KeyValueStore,
    NameEmpty,
    NestedWriteTransaction,
    ReadOnlyTransaction,
    StorageUnavailable,
    ValidationError,
)


# ── Open ─────────────────────────────────────────────────


def test_open_creates_owner_only_file(store):
    assert store.path.is_file()
    mode = stat.S_IMODE(store.path.stat().st_mode)
    assert mode & 0o077 == 0


def test_open_creates_parent_dirs(tmp_path):
    kv = KeyValueStore.open(tmp_path / "nested" / "dir" / "pages.db")
    assert kv.path.is_file()
    kv.close()


def test_open_directory_fails(tmp_path):
    with pytest.raises(StorageUnavailable):
        KeyValueStore.open(tmp_path)


def test_open_non_database_fails(tmp_path):
    path = tmp_path / "garbage.db"
    path.write_bytes(b"definitely not a database file " * 64)
    with pytest.raises(StorageUnavailable):
        KeyValueStore.open(path)


def test_reopen_keeps_data(tmp_path):
    kv = KeyValueStore.open(tmp_path / "pages.db")
    kv.put("home", b'{"type":"page"}')
    kv.close()
    again = KeyValueStore.open(tmp_path / "pages.db")
    assert again.get("home") == b'{"type":"page"}'
    again.close()


def test_closed_store_refuses_transactions(store):
    store.close()
    with pytest.raises(StorageUnavailable):
        store.get("home")


def test_second_open_is_locked_out(store):
    with pytest.raises(StorageUnavailable):
        KeyValueStore.open(store.path)
    assert store.lock_path.is_file()


def test_close_releases_file_lock(store):
    store.put("home", b"{}")
    store.close()
    again = KeyValueStore.open(store.path)
    assert again.get("home") == b"{}"
    again.close()


def test_failed_open_releases_file_lock(tmp_path):
    path = tmp_path / "garbage.db"
    path.write_bytes(b"definitely not a database file " * 64)
    with pytest.raises(StorageUnavailable):
        KeyValueStore.open(path)
    path.unlink()
    kv = KeyValueStore.open(path)
    kv.close()


# ── Get / Put / Delete ───────────────────────────────────


def test_get_missing_returns_none(store):
    assert store.get("nope") is None
    assert store.get("") is None


def test_put_get_roundtrip(store):
    doc = '{"type":"page","title":"Grüße 🚀"}'.encode("utf-8")
    store.put("greeting", doc)
    assert store.get("greeting") == doc


def test_put_overwrites(store):
    store.put("home", b"1")
    store.put("home", b"2")
    assert store.get("home") == b"2"


def test_put_empty_name(store):
    with pytest.raises(NameEmpty):
        store.put("", b"{}")


def test_put_str_value_is_utf8(store):
    store.put("greeting", "Grüße")
    assert store.get("greeting") == "Grüße".encode("utf-8")


def test_put_rejects_non_bytes_value(store):
    with pytest.raises(ValidationError):
        store.put("home", 42)
    assert store.get("home") is None


def test_delete(store):
    store.put("home", b"{}")
    store.delete("home")
    assert store.get("home") is None


def test_delete_absent_is_noop(store):
    store.put("keep", b"{}")
    store.delete("missing")
    store.delete("missing")
    assert store.items() == [("keep", b"{}")]


# ── Iteration ────────────────────────────────────────────


def test_for_each_byte_order(store):
    for name in ["b", "é", "a", "B", "aa"]:
        store.put(name, name.encode("utf-8"))
    seen = []
    store.for_each(lambda name, value: seen.append((name, value)))
    assert [name for name, _ in seen] == ["B", "a", "aa", "b", "é"]
    assert all(value == name.encode("utf-8") for name, value in seen)


def test_for_each_empty(store):
    seen = []
    store.for_each(lambda name, value: seen.append(name))
    assert seen == []


def test_for_each_missing_namespace(store):
    other = KeyValueStore(store.path, namespace="never-created")
    with pytest.raises(StorageUnavailable):
        other.for_each(lambda name, value: None)


def test_namespaces_are_separate(store):
    other = KeyValueStore(store.path, namespace="other")
    other.ensure_namespace()
    other.put("x", b"1")
    assert store.get("x") is None
    assert other.items() == [("x", b"1")]


def test_ensure_namespace_idempotent(store):
    store.put("home", b"{}")
    store.ensure_namespace()
    store.ensure_namespace()
    assert store.get("home") == b"{}"


# ── Transactions ─────────────────────────────────────────


def test_update_commits_all_writes(store):
    with store.update() as tx:
        tx.put("a", b"1")
        tx.put("b", b"2")
        assert tx.get("a") == b"1"
    assert store.items() == [("a", b"1"), ("b", b"2")]


def test_failed_update_rolls_back(store):
    store.put("a", b"old")
    with pytest.raises(RuntimeError):
        with store.update() as tx:
            tx.put("a", b"new")
            tx.put("b", b"2")
            raise RuntimeError("boom")
    assert store.get("a") == b"old"
    assert store.get("b") is None


def test_view_is_read_only(store):
    with store.view() as tx:
        assert not tx.writable
        with pytest.raises(ReadOnlyTransaction):
            tx.put("a", b"1")
        with pytest.raises(ReadOnlyTransaction):
            tx.delete("a")
    assert store.get("a") is None


def test_reader_keeps_snapshot_during_write(store):
    store.put("home", b"before")
    with store.view() as tx:
        assert tx.get("home") == b"before"
        store.put("home", b"after")
        store.put("extra", b"1")
        assert tx.get("home") == b"before"
        assert tx.get("extra") is None
    assert store.get("home") == b"after"


def test_concurrent_writers(store):
    errors = []

    def writer(n):
        try:
            for i in range(20):
                store.put(f"w{n}-{i:02d}", str(i).encode())
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    items = store.items()
    assert len(items) == 160
    assert [name for name, _ in items] == sorted(name for name, _ in items)


def test_reader_snapshot_starts_on_entry(store):
    store.put("home", b"before")
    with store.view() as tx:
        store.put("home", b"after")
        store.put("extra", b"1")
        assert tx.get("home") == b"before"
        assert tx.get("extra") is None
        assert tx.items() == [("home", b"before")]
    assert store.get("home") == b"after"


def test_reader_thread_keeps_snapshot(store):
    store.put("home", b"before")
    entered = threading.Event()
    written = threading.Event()
    seen = []

    def reader():
        with store.view() as tx:
            entered.set()
            written.wait(timeout=5)
            seen.append(tx.get("home"))

    t = threading.Thread(target=reader)
    t.start()
    entered.wait(timeout=5)
    store.put("home", b"after")
    written.set()
    t.join()

    assert seen == [b"before"]
    assert store.get("home") == b"after"


def test_nested_write_raises_instead_of_hanging(store):
    with store.update() as tx:
        tx.put("a", b"1")
        with pytest.raises(NestedWriteTransaction):
            store.put("b", b"2")
        with pytest.raises(NestedWriteTransaction):
            store.delete("a")
        assert store.get("a") is None
    assert store.get("a") == b"1"
    assert store.get("b") is None
    store.put("b", b"2")
    assert store.get("b") == b"2"


def test_read_inside_update_is_allowed(store):
    store.put("a", b"old")
    with store.update() as tx:
        tx.put("a", b"new")
        assert store.get("a") == b"old"
        assert tx.get("a") == b"new"
    assert store.get("a") == b"new"
