"""Character dictionary parsing."""

from typing import List, Sequence, Union

from .errors import InvalidDictionaryError


def parse_dictionary(content: Union[bytes, bytearray, memoryview, str, Sequence[str]]) -> List[str]:
    """Split dictionary content into entries, one per line.

    The last entry is kept as-is (even if empty): it is the sentinel token
    the recognizer maps to a space.

    Args:
        content: UTF-8 bytes, text, or an already split sequence of entries

    Returns:
        List of entries indexed by class id

    Raises:
        InvalidDictionaryError: If the content is empty or not valid UTF-8
    """
    if isinstance(content, (bytes, bytearray, memoryview)):
        try:
            content = bytes(content).decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidDictionaryError(f"Character dictionary is not valid UTF-8: {e}") from e

    if isinstance(content, str):
        if not content.strip():
            raise InvalidDictionaryError("Character dictionary is empty or could not be loaded.")
        return [line.rstrip("\r") for line in content.split("\n")]

    entries = list(content)
    if not entries:
        raise InvalidDictionaryError("Character dictionary is empty or could not be loaded.")
    if not all(isinstance(entry, str) for entry in entries):
        raise InvalidDictionaryError("Character dictionary entries must be strings.")
    return entries
