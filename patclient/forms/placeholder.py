"""Case-insensitive placeholder substitution."""

import re
from typing import Callable, Mapping

from patclient import debug

_SPACE = r"[\t\n\f\r ]*"


def placeholder_replacer(prefix: str, suffix: str, fields: Mapping[str, str]) -> Callable[[str], str]:
    """Return a function replacing prefix+key+suffix with the key's value.

    Keys match case-insensitively and whitespace around the key is ignored.
    """
    head = re.escape(prefix) + _SPACE
    tail = _SPACE + re.escape(suffix)
    patterns = [
        (re.compile(head + re.escape(key) + tail, re.IGNORECASE), value)
        for key, value in fields.items()
    ]
    leftover = re.compile(head + r"[0-9A-Za-z_-]+" + tail, re.IGNORECASE)

    def replace(text: str) -> str:
        for pattern, value in patterns:
            text = pattern.sub(lambda _m, v=value: v, text)
        if debug.enabled():
            matches = leftover.findall(text)
            if matches:
                debug.printf("Unhandled placeholder: %s", matches)
        return text

    return replace