"""Input checks applied before anything reaches a storage backend."""

from nl_files_api.errors import ValidationError


def validate_filename(filename: str) -> str:
    """
    Check that `filename` names a single entry of the flat namespace.

    :param filename: name taken from a URL, an upload part or a resolved command.
    :return: the filename, unchanged.
    :raises ValidationError: if the name is blank or could escape the namespace.
    """
    if not isinstance(filename, str) or not filename.strip():
        raise ValidationError("Filename is required and must be a non-empty string")
    if ".." in filename or "/" in filename or "\\" in filename:
        raise ValidationError("Invalid filename")
    return filename


def validate_prompt(prompt: str) -> str:
    """Return the trimmed prompt, or raise if nothing is left."""
    if not isinstance(prompt, str) or not prompt.strip():
        raise ValidationError("Prompt is required and must be a non-empty string")
    return prompt.strip()
