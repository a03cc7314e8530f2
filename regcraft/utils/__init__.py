"""Shared utility helpers for regcraft."""

import re
from typing import List, Tuple

_INT_PATTERNS = (
    (re.compile(r"0[xX]([0-9a-fA-F]+)"), 16),
    (re.compile(r"0[bB]([01]+)"), 2),
    (re.compile(r"#([01]+)"), 2),
    (re.compile(r"([0-9]+)"), 10),
)
_WORD_PATTERN = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+[0-9]*|[A-Z]+[0-9]*|[0-9]+")


def parse_int(text: str) -> int:
    """Parse a non-negative integer literal.

    Accepts decimal (``42``), hexadecimal (``0x2A``) and binary
    (``0b101010`` or SVD ``#101010``) notation.

    Raises:
        ValueError: If the text is empty, negative or not a number.
    """
    if text is None:
        raise ValueError("Empty numeric literal")

    clean = text.strip()
    if not clean:
        raise ValueError("Empty numeric literal")

    for pattern, base in _INT_PATTERNS:
        match = pattern.fullmatch(clean)
        if match:
            return int(match.group(1), base)

    raise ValueError(f"Invalid numeric literal: '{text}'")


def parse_bit_range(bits_str: str) -> Tuple[int, int]:
    """Parse bit notation like ``[7:4]`` or ``[0]`` into ``(offset, width)``.

    Args:
        bits_str: Bit notation string.

    Returns:
        Tuple of ``(bit_offset, bit_width)``.

    Raises:
        ValueError: If notation is empty or invalid.
    """
    if not bits_str:
        raise ValueError("Empty bit range notation")

    clean = bits_str.strip().strip("[]").strip()

    match_range = re.fullmatch(r"(\d+)\s*:\s*(\d+)", clean)
    if match_range:
        msb = int(match_range.group(1))
        lsb = int(match_range.group(2))
        if msb < lsb:
            raise ValueError(f"Invalid bit range '{bits_str}': MSB must be >= LSB")
        return lsb, msb - lsb + 1

    match_single = re.fullmatch(r"(\d+)", clean)
    if match_single:
        bit = int(match_single.group(1))
        return bit, 1

    raise ValueError(f"Invalid bit range notation: '{bits_str}'")


def format_bit_range(offset: int, width: int) -> str:
    """Format ``(offset, width)`` as ``[msb:lsb]`` or ``[bit]``."""
    msb = offset + width - 1
    if msb == offset:
        return f"[{offset}]"
    return f"[{msb}:{offset}]"


def split_words(name: str) -> List[str]:
    """Split an identifier into words on separators and case changes.

    Digits stay attached to the word before them:
        >>> split_words("USART_CR1")
        ['USART', 'CR1']
        >>> split_words("TxEmpty")
        ['Tx', 'Empty']
    """
    words = []
    for part in re.split(r"[^A-Za-z0-9]+", name):
        words.extend(_WORD_PATTERN.findall(part))
    return words


def to_snake_case(name: str) -> str:
    return "_".join(word.lower() for word in split_words(name))


def to_pascal_case(name: str) -> str:
    return "".join(word[:1].upper() + word[1:].lower() for word in split_words(name))


def to_constant_case(name: str) -> str:
    return "_".join(word.upper() for word in split_words(name))


def identifier_key(name: str) -> str:
    """Key under which two names would collide once turned into identifiers."""
    return re.sub(r"[^0-9a-z]", "", name.casefold())


def filter_none(data: dict) -> dict:
    """Remove keys with None values from a dictionary.

    Required for Pydantic v2 compatibility: passing None explicitly
    to fields with defaults causes validation errors. Filtering None
    values lets Pydantic use its own defaults.
    """
    return {k: v for k, v in data.items() if v is not None}
