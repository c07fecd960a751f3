"""
Two writers racing on one name: the survivor is one of them, whole.

Neither backend serializes writers, so which one wins is unspecified.
"""
import threading

import pytest

from nl_files_api.adapters.storage import InMemoryFileStore, LocalStorage, MemoryStorage

ROUNDS = 50
CONTENT_A = b"A" * 64 * 1024
CONTENT_B = b"B" * 16 * 1024


@pytest.fixture(params=["filesystem", "memory"])
def storage(request, tmp_path):
    if request.param == "filesystem":
        return LocalStorage(str(tmp_path / "uploads"))
    return MemoryStorage(InMemoryFileStore())


def _race(*targets):
    barrier = threading.Barrier(len(targets))
    errors = []

    def run(target):
        try:
            barrier.wait()
            target()
        except Exception as err:  # surfaced by the assertion below
            errors.append(err)

    threads = [threading.Thread(target=run, args=(target,)) for target in targets]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert errors == []


def test_concurrent_creates_are_last_writer_wins(storage):
    for _ in range(ROUNDS):
        _race(
            lambda: storage.create("race.txt", CONTENT_A),
            lambda: storage.create("race.txt", CONTENT_B),
        )
        assert storage.read("race.txt") in (CONTENT_A, CONTENT_B)


def test_reader_sees_old_or_new_content_in_full(storage):
    storage.create("race.txt", CONTENT_A)
    observed = []

    for _ in range(ROUNDS):
        _race(
            lambda: storage.update("race.txt", CONTENT_B),
            lambda: observed.append(storage.read("race.txt")),
        )
        storage.create("race.txt", CONTENT_A)

    assert all(content in (CONTENT_A, CONTENT_B) for content in observed)
