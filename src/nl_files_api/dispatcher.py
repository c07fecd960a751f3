"""Map a resolved `Command` onto storage operations."""

import logging

from pydantic import BaseModel

from nl_files_api.adapters.storage import BaseStorage
from nl_files_api.errors import InvalidCommand, ValidationError
from nl_files_api.schemas import SUPPORTED_VERBS, Command
from nl_files_api.validation import validate_filename

logger = logging.getLogger(__name__)


class CommandResult(BaseModel):
    message: str


class CommandDispatcher:
    """
    Executes create/edit/delete commands against one storage backend.

    Storage errors are not caught here; they reach the HTTP layer unchanged.
    """

    def __init__(self, storage: BaseStorage):
        self.storage = storage

    def dispatch(self, command: Command) -> CommandResult:
        handlers = {
            "create": self._create,
            "edit": self._edit,
            "delete": self._delete,
        }
        handler = handlers.get(command.command)
        if handler is None:
            raise InvalidCommand(f"Invalid command: {command.command!r}. Supported commands: {', '.join(SUPPORTED_VERBS)}")

        name = self._target(command)
        logger.info("Dispatching %s on %s", command.command, name)
        return handler(name, command.args[1:])

    @staticmethod
    def _target(command: Command) -> str:
        name = command.args[0] if command.args else ""
        if not name or not name.strip():
            raise InvalidCommand("Invalid command structure: a file name is required")
        # The name comes from the language model, so it gets the same checks as a URL.
        try:
            return validate_filename(name)
        except ValidationError as err:
            raise InvalidCommand(f"Invalid file name in command: {name!r}") from err

    def _create(self, name: str, rest: list) -> CommandResult:
        content = rest[0] if rest else ""
        self.storage.create(name, content.encode("utf-8"))
        return CommandResult(message=f"File {name} created.")

    def _edit(self, name: str, rest: list) -> CommandResult:
        if not rest or not rest[0]:
            raise InvalidCommand("Content is required for edit command")
        self.storage.update(name, rest[0].encode("utf-8"))
        return CommandResult(message=f"File {name} edited.")

    def _delete(self, name: str, rest: list) -> CommandResult:
        self.storage.delete(name)
        return CommandResult(message=f"File {name} deleted.")
