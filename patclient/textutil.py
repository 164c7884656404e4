"""Splitting of user-supplied lists."""

import itertools
import unicodedata

_LATIN1_SPACES = "\t\n\v\f\r \x85\xa0"


def is_separator(char: str) -> bool:
    """Return True for whitespace, ',' and ';'."""
    if char in ",;" or char in _LATIN1_SPACES:
        return True
    return ord(char) > 0xFF and unicodedata.category(char) in ("Zs", "Zl", "Zp")


def split_fields(text: str) -> list[str]:
    """Split text on runs of separators, dropping empty fields."""
    return [
        "".join(group)
        for is_sep, group in itertools.groupby(text, is_separator)
        if not is_sep
    ]