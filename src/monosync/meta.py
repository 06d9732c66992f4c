"""
Commit message metadata trailer.

Copied commits carry a trailing block pointing back at their source::

    <original message>

    meta:sha:<source sha>[;skipSync]

Grammar of the meta line: ``meta:`` followed by ``;``-separated pairs,
each ``key:value`` or a bare ``key`` (meaning ``True``).
"""

import re
from typing import Dict, Mapping, Union

META_PREFIX = "meta:"

MetaValue = Union[str, bool]

_META_BLOCK_RE = re.compile(r"(?:\r\n|\r|\n){2}meta:[^\r\n]*")
_TITLE_SUFFIX_RE = re.compile(r" ?\([^)]+\)$")


def _normalize_newlines(message: str) -> str:
    return message.replace("\r\n", "\n").replace("\r", "\n")


def decode_meta(message: str) -> Dict[str, MetaValue]:
    """
    Parse the first meta line of a commit message.

    Args:
        message: Full commit message

    Returns:
        Dict of meta values; empty if the message has no meta line
    """
    result: Dict[str, MetaValue] = {}

    for line in _normalize_newlines(message).split("\n"):
        if not line.startswith(META_PREFIX):
            continue

        for prop in line.strip()[len(META_PREFIX):].split(";"):
            if not prop:
                continue
            key, _, value = prop.partition(":")
            # bare keys (and empty values) are flags
            result[key] = value or True
        break

    return result


def encode_meta(message: str, meta: Mapping[str, object]) -> str:
    """
    Append a meta line to a commit message.

    Args:
        message: Commit message without meta
        meta: Values to record; ``True`` is written as a bare key and
            ``None``/``False`` are left out

    Returns:
        Message with the meta block appended
    """
    props = []
    for key, value in meta.items():
        if value is None or value is False:
            continue
        props.append(key if value is True else f"{key}:{value}")

    if not props:
        return message

    return f"{message}\n\n{META_PREFIX}{';'.join(props)}"


def strip_meta(message: str) -> str:
    """Remove meta lines (and the blank line before each) from a message."""
    return _META_BLOCK_RE.sub("", message)


def raw_commit_title(message: str) -> str:
    """
    First line of a commit message without a trailing PR reference.

    e.g. ``"My title (#123)\\n\\nbody"`` -> ``"My title"``
    """
    title = _normalize_newlines(message).split("\n", 1)[0]
    return _TITLE_SUFFIX_RE.sub("", title)
