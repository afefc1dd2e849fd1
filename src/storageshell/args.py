"""Token readers for console argument strings.

Each reader consumes a token from the front of the argument text and returns
``(token, remainder)``; the remainder is trimmed so the next reader starts at
the following token. ``None`` signals a missing or malformed token.
"""
from __future__ import annotations

import re


_TRIM_CHARS = " \t\r\n"
_UNSIGNED_PREFIX = re.compile(r"[ \t\r\n]*\+?(\d+)")
# Chunk sizes are 32-bit unsigned values.
_UINT32_MAX = 0xFFFFFFFF


def trim(text: str) -> str:
    return text.strip(_TRIM_CHARS)


def read_word(args: str) -> tuple[str | None, str]:
    """Consume the text up to the first space."""

    index = args.find(" ")
    if index < 0:
        index = len(args)
    word = args[:index]
    remainder = trim(args[index:])
    if not word:
        return None, remainder
    return word, remainder


def read_probably_quoted(args: str) -> tuple[str | None, str]:
    """Consume a double-quoted token, or a plain word when unquoted.

    An opening quote without its partner, or an empty pair of quotes, is a
    malformed token.
    """

    if len(args) > 1 and args[0] == '"':
        closing = args.find('"', 1)
        if closing < 0:
            return None, args
        word = args[1:closing]
        remainder = trim(args[closing + 1 :])
        if not word:
            return None, remainder
        return word, remainder
    return read_word(args)


def read_unsigned(args: str) -> int | None:
    """Parse a leading unsigned integer from ``args``.

    Leading whitespace is skipped and anything after the digits is ignored.
    """

    match = _UNSIGNED_PREFIX.match(args)
    if match is None:
        return None
    value = int(match.group(1))
    if value > _UINT32_MAX:
        return None
    return value


__all__ = ["read_probably_quoted", "read_unsigned", "read_word", "trim"]
