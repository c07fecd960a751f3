import time

from nl_files_api.adapters.storage import InMemoryFileStore, MemoryStorage


def test_instances_do_not_share_state():
    first = MemoryStorage(InMemoryFileStore())
    second = MemoryStorage(InMemoryFileStore())

    first.create("a.txt", b"x")

    assert first.names() == ["a.txt"]
    assert second.names() == []


def test_storage_uses_injected_store(memory_store, memory_storage):
    memory_storage.create("a.txt", b"hello")
    assert "a.txt" in memory_store
    assert memory_store.get("a.txt").content == b"hello"


def test_update_preserves_created_at_and_advances_modified_at(memory_storage):
    memory_storage.create("a.txt", b"v1")
    before = memory_storage.list()[0]
    time.sleep(0.01)

    memory_storage.update("a.txt", b"version two")
    after = memory_storage.list()[0]

    assert after.created_at == before.created_at
    assert after.modified_at > before.modified_at
    assert after.size == len(b"version two")


def test_upload_records_mimetype(memory_storage):
    memory_storage.add_uploaded("page.html", b"<p>hi</p>", "text/html")
    entry = memory_storage.list()[0]
    assert entry.mimetype == "text/html"
    assert entry.path == "/uploads/page.html"


def test_list_is_sorted_by_name(memory_storage):
    for name in ["c.txt", "a.txt", "b.txt"]:
        memory_storage.create(name)
    assert memory_storage.names() == ["a.txt", "b.txt", "c.txt"]


def test_clear_empties_store(memory_store, memory_storage):
    memory_storage.create("a.txt")
    memory_store.clear()
    assert len(memory_store) == 0
    assert memory_storage.list() == []
