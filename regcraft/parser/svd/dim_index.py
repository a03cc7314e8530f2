"""
Grammar for ``<dimIndex>`` expressions of register arrays.

Three forms are accepted::

    0-3         numeric range, inclusive
    A-D         letter range, inclusive
    rx,tx,err   explicit list
"""

from typing import List

from pyparsing import (
    DelimitedList,
    ParseBaseException,
    StringEnd,
    Suppress,
    Word,
    alphanums,
    alphas,
    nums,
)


def _expand_numbers(tokens):
    return [str(i) for i in range(int(tokens[0]), int(tokens[1]) + 1)]


def _expand_letters(tokens):
    return [chr(c) for c in range(ord(tokens[0]), ord(tokens[1]) + 1)]


NUMBER_RANGE = (Word(nums) + Suppress("-") + Word(nums)).set_parse_action(_expand_numbers)
LETTER_RANGE = (
    Word(alphas, exact=1) + Suppress("-") + Word(alphas, exact=1)
).set_parse_action(_expand_letters)
INDEX_LIST = DelimitedList(Word(alphanums + "_"))

DIM_INDEX = (NUMBER_RANGE | LETTER_RANGE | INDEX_LIST) + StringEnd()


def expand_dim_index(text: str) -> List[str]:
    """
    Expand a dimIndex expression into its index strings.

    Raises:
        ValueError: If the expression matches none of the accepted forms.
    """
    try:
        return list(DIM_INDEX.parse_string(text.strip()))
    except ParseBaseException as e:
        raise ValueError(f"Invalid <dimIndex> '{text}': {e.msg}") from e
