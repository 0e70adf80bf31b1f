"""Helpers for pulling JSON out of free-form model output.

Model replies are untrusted text: the JSON we asked for may be wrapped in
prose or a markdown fence, truncated, or missing entirely. These helpers
never raise on bad input; they return ``None`` when nothing usable is found.
"""
import json
from typing import Any, Callable, Optional

_decoder = json.JSONDecoder()


def extract_json(
    text: Optional[str],
    opener: str,
    predicate: Optional[Callable[[Any], bool]] = None,
) -> Optional[Any]:
    """
    Return the first value that parses as JSON starting at ``opener``.

    Each occurrence of ``opener`` (``"["`` or ``"{"``) is tried in order and
    the first one that decodes into a complete value is returned.

    Args:
        text: Raw model output
        opener: Opening bracket of the wanted JSON value
        predicate: Optional check a decoded value must pass; values that
            fail it are skipped and the scan goes on

    Returns:
        The decoded list/dict, or None
    """
    if not text or not isinstance(text, str):
        return None

    wanted = list if opener == "[" else dict
    start = text.find(opener)
    while start != -1:
        try:
            value, _ = _decoder.raw_decode(text, start)
        except ValueError:
            value = None
        if isinstance(value, wanted) and (predicate is None or predicate(value)):
            return value
        start = text.find(opener, start + 1)

    return None


def extract_json_array(
    text: Optional[str],
    predicate: Optional[Callable[[list], bool]] = None,
) -> Optional[list]:
    """First parseable ``[...]`` span in ``text`` that passes ``predicate``."""
    return extract_json(text, "[", predicate)


def extract_json_object(text: Optional[str]) -> Optional[dict]:
    """First parseable ``{...}`` span in ``text``."""
    return extract_json(text, "{")
