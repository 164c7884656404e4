"""Interactive prompts embedded in text templates."""

import re
from dataclasses import dataclass, field
from typing import Callable

_SPACE = r"[\t\n\f\r ]"
_ASK_RE = re.compile(r"<Ask" + _SPACE + r"+([^,]+)(,[^>]+)?>", re.IGNORECASE)
_SELECT_RE = re.compile(r"<Select" + _SPACE + r"+([^,]+)(,[^>]+)?>", re.IGNORECASE)
_VAR_RE = re.compile(r"<Var" + _SPACE + r"+([0-9A-Za-z_]+)" + _SPACE + r"*>", re.IGNORECASE)


@dataclass
class Option:
    """One choice of a Select prompt."""

    item: str
    value: str


@dataclass
class Select:
    """A prompt choosing one of several options."""

    prompt: str
    options: list[Option] = field(default_factory=list)


@dataclass
class Ask:
    """A free text prompt."""

    prompt: str
    multiline: bool = False
    uppercase: bool = False


def prompt_asks(text: str, prompt_fn: Callable[[Ask], str]) -> str:
    """Replace each <Ask prompt[,MU|UP]> with the answer from prompt_fn."""
    while match := _ASK_RE.search(text):
        options = (match.group(2) or "").removeprefix(",")
        ask = Ask(
            prompt=match.group(1),
            multiline=options.lower() == "mu",
            uppercase=options.lower() == "up",
        )
        text = text.replace(match.group(0), prompt_fn(ask), 1)
    return text


def prompt_selects(text: str, prompt_fn: Callable[[Select], Option]) -> str:
    """Replace each <Select prompt,item[=value],...> with the chosen option's value."""
    while match := _SELECT_RE.search(text):
        select = Select(prompt=match.group(1))
        for opt in (match.group(2) or "").removeprefix(",").split(","):
            item, sep, value = opt.partition("=")
            select.options.append(Option(item=item, value=value if sep else item))
        text = text.replace(match.group(0), prompt_fn(select).value, 1)
    return text


def prompt_vars(text: str, prompt_fn: Callable[[str], str]) -> str:
    """Replace each <Var key> with the answer from prompt_fn ("blank" if empty)."""
    while match := _VAR_RE.search(text):
        answer = prompt_fn(match.group(1)) or "blank"
        text = text.replace(match.group(0), answer, 1)
    return text