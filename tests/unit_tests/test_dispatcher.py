import pytest

from nl_files_api.dispatcher import CommandDispatcher
from nl_files_api.errors import InvalidCommand, NotFound
from nl_files_api.schemas import Command


@pytest.fixture
def dispatcher(memory_storage):
    return CommandDispatcher(memory_storage)


def test_create_with_content(dispatcher, memory_storage):
    result = dispatcher.dispatch(Command(command="create", args=["a.txt", "hello"]))
    assert result.message == "File a.txt created."
    assert memory_storage.read("a.txt") == b"hello"


def test_create_without_content_makes_empty_file(dispatcher, memory_storage):
    dispatcher.dispatch(Command(command="create", args=["a.txt"]))
    assert memory_storage.read("a.txt") == b""


def test_create_encodes_utf8(dispatcher, memory_storage):
    dispatcher.dispatch(Command(command="create", args=["a.txt", "héllo ✓"]))
    assert memory_storage.read("a.txt") == "héllo ✓".encode("utf-8")


def test_edit_replaces_content(dispatcher, memory_storage):
    memory_storage.create("a.txt", b"old")
    result = dispatcher.dispatch(Command(command="edit", args=["a.txt", "<h1>Hello World</h1>"]))
    assert result.message == "File a.txt edited."
    assert memory_storage.read("a.txt") == b"<h1>Hello World</h1>"


@pytest.mark.parametrize("args", [["a.txt"], ["a.txt", ""]])
def test_edit_requires_content(dispatcher, memory_storage, args):
    memory_storage.create("a.txt", b"old")
    with pytest.raises(InvalidCommand, match="Content is required"):
        dispatcher.dispatch(Command(command="edit", args=args))
    assert memory_storage.read("a.txt") == b"old"


def test_edit_missing_file_propagates_not_found(dispatcher):
    with pytest.raises(NotFound):
        dispatcher.dispatch(Command(command="edit", args=["missing.txt", "x"]))


def test_delete_removes_file(dispatcher, memory_storage):
    memory_storage.create("a.txt", b"x")
    memory_storage.create("b.txt", b"y")

    result = dispatcher.dispatch(Command(command="delete", args=["a.txt"]))

    assert result.message == "File a.txt deleted."
    assert memory_storage.names() == ["b.txt"]


def test_delete_missing_file_propagates_not_found(dispatcher):
    with pytest.raises(NotFound):
        dispatcher.dispatch(Command(command="delete", args=["missing.txt"]))


@pytest.mark.parametrize("verb", ["rename", "move", "CREATE", ""])
def test_unknown_verb_is_invalid(dispatcher, memory_storage, verb):
    with pytest.raises(InvalidCommand, match="Invalid command"):
        dispatcher.dispatch(Command(command=verb, args=["a.txt"]))
    assert memory_storage.names() == []


@pytest.mark.parametrize("args", [[], [""], ["   "]])
def test_missing_target_is_invalid(dispatcher, args):
    command = Command.model_construct(command="create", args=args)
    with pytest.raises(InvalidCommand):
        dispatcher.dispatch(command)


@pytest.mark.parametrize("name", ["../escape.txt", "dir/a.txt", "dir\\a.txt"])
def test_unsafe_target_is_invalid_and_nothing_written(dispatcher, memory_storage, name):
    with pytest.raises(InvalidCommand):
        dispatcher.dispatch(Command(command="create", args=[name, "x"]))
    assert memory_storage.names() == []
