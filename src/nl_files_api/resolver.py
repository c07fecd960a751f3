"""
Turn a free-text instruction into a `Command` by asking a chat-completion model.

The model is an untrusted collaborator: whatever it returns is parsed and
validated here before anything reaches storage. Nothing is retried.
"""

import json
import logging
import re
from textwrap import dedent
from typing import TYPE_CHECKING, Optional, Sequence

import openai
import pydantic

from nl_files_api.errors import MalformedResolution, ResolutionUnavailable
from nl_files_api.schemas import Command
from nl_files_api.settings import Settings
from nl_files_api.utils.decorators import log_execution_time

if TYPE_CHECKING:
    from openai import OpenAI

logger = logging.getLogger(__name__)

CODE_FENCE_PATTERN = re.compile(r"^```[a-zA-Z]*\s*(.*?)\s*```$", re.DOTALL)

SYSTEM_PROMPT_TEMPLATE = dedent(
    """\
    You are a helpful assistant that translates natural language prompts into file system commands.
    The user wants to perform an operation on a flat directory of files.
    The current files are:
    {file_listing}

    Translate the prompt into exactly one of these commands:
    - "create": args are [filename] or [filename, content]
    - "edit": args are [filename, new content]
    - "delete": args are [filename]

    Reply with a single JSON object and nothing else. It must have a "command" string
    and an "args" array of strings. For example:
    - "create a new file called test.txt" => {{"command": "create", "args": ["test.txt"]}}
    - "add '<h1>Hello World</h1>' to index.html" => {{"command": "edit", "args": ["index.html", "<h1>Hello World</h1>"]}}
    - "delete the file style.css" => {{"command": "delete", "args": ["style.css"]}}
    """
)


def build_system_prompt(known_names: Sequence[str]) -> str:
    """Render the fixed instruction with the current namespace embedded as JSON."""
    return SYSTEM_PROMPT_TEMPLATE.format(file_listing=json.dumps(list(known_names), indent=2))


def parse_command(reply: Optional[str]) -> Command:
    """
    Parse the model's reply into a `Command`.

    :param reply: raw message content returned by the completion API.
    :raises MalformedResolution: if the reply is not a JSON object with a
        string `command` and a non-empty list of string `args`.
    """
    if not reply or not reply.strip():
        raise MalformedResolution("Language model returned an empty reply")

    text = reply.strip()
    fenced = CODE_FENCE_PATTERN.match(text)
    if fenced:
        text = fenced.group(1)

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as err:
        raise MalformedResolution(f"Language model reply is not valid JSON: {err.msg}") from err

    if not isinstance(payload, dict):
        raise MalformedResolution("Invalid command structure: expected a JSON object")
    missing = [key for key in ("command", "args") if key not in payload]
    if missing:
        raise MalformedResolution(f"Invalid command structure: missing {', '.join(missing)}")

    try:
        return Command.model_validate(payload)
    except pydantic.ValidationError as err:
        raise MalformedResolution("Invalid command structure: command must be a string and args a non-empty list of strings") from err


class CommandResolver:
    """Resolves prompts through an OpenAI-compatible chat completions endpoint."""

    def __init__(
        self,
        client: Optional["OpenAI"] = None,
        model: str = "gpt-3.5-turbo",
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
    ):
        self._client = client
        self.model = model
        self._api_key = api_key
        self._base_url = base_url

    @classmethod
    def from_settings(cls, settings: Settings) -> "CommandResolver":
        return cls(
            model=settings.openai_model,
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
        )

    @property
    def client(self) -> "OpenAI":
        # Built on first use so the app can start (and serve uploads) without a key.
        if self._client is None:
            if not self._api_key:
                raise ResolutionUnavailable(
                    "OpenAI API key is not configured. Please check your configuration.",
                    reason="invalid_credentials",
                )
            self._client = openai.OpenAI(api_key=self._api_key, base_url=self._base_url)
        return self._client

    @log_execution_time(label="command resolution")
    def resolve(self, prompt: str, known_names: Sequence[str]) -> Command:
        """
        Ask the model to translate `prompt` into a command over `known_names`.

        :raises ResolutionUnavailable: the upstream call failed; `reason` says why.
        :raises MalformedResolution: the reply could not be parsed into a command.
        """
        messages = [
            {"role": "system", "content": build_system_prompt(known_names)},
            {"role": "user", "content": prompt},
        ]
        try:
            completion = self.client.chat.completions.create(model=self.model, messages=messages)
        except openai.RateLimitError as err:
            if getattr(err, "code", None) == "insufficient_quota":
                raise ResolutionUnavailable(
                    "OpenAI API quota exceeded. Please check your billing details.",
                    reason="quota_exceeded",
                ) from err
            raise ResolutionUnavailable("Rate limit exceeded. Please try again later.", reason="rate_limited") from err
        except openai.AuthenticationError as err:
            raise ResolutionUnavailable(
                "Invalid OpenAI API key. Please check your configuration.",
                reason="invalid_credentials",
            ) from err
        except openai.APIConnectionError as err:
            raise ResolutionUnavailable(f"Could not reach the OpenAI API: {err}", reason="network") from err
        except openai.OpenAIError as err:
            raise ResolutionUnavailable(f"OpenAI API error: {err}", reason="upstream_error") from err

        if not completion.choices:
            raise MalformedResolution("Language model returned no choices")
        reply = completion.choices[0].message.content
        logger.debug("Model reply for prompt %r: %r", prompt, reply)
        command = parse_command(reply)
        logger.info("Resolved prompt to %s %s", command.command, command.args[:1])
        return command
