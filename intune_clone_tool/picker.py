"""
Interactive selection helpers.

Input goes through a ``Prompter`` so tests can inject scripted answers
instead of reading the terminal.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence

import typer

from .models import ResourceSummary

AFFIRMATIVE_ANSWERS = ("y", "yes")


def _typer_ask(label: str, default: str) -> str:
    return typer.prompt(label, default=default, show_default=bool(default))


@dataclass
class Prompter:
    ask: Callable[[str, str], str] = _typer_ask
    echo: Callable[[str], None] = typer.echo

    def confirm(self, label: str) -> bool:
        answer = self.ask(f"{label} (y/N)", "")
        return answer.strip().casefold() in AFFIRMATIVE_ANSWERS


def format_choices(items: Sequence[ResourceSummary]) -> List[str]:
    lines = []
    for index, item in enumerate(items, start=1):
        suffix = f" [{item.kind}]" if item.kind else ""
        lines.append(f"  {index:>3}. {item.name}{suffix} ({item.id})")
    return lines


def parse_selection(selection: str, count: int) -> Optional[int]:
    """Return the 0-based index for a 1-based selection, or None when out of range or not a number."""
    try:
        index = int(selection.strip()) - 1
    except ValueError:
        return None
    if 0 <= index < count:
        return index
    return None


def pick_resource(
    items: Sequence[ResourceSummary],
    prompter: Prompter,
    title: str = "Select an item to clone",
) -> Optional[ResourceSummary]:
    """
    Present ``items`` as a numbered list and resolve the user's choice.

    Blank input cancels and returns None. Invalid input is reported and the
    list is shown again.
    """
    if not items:
        return None
    while True:
        prompter.echo("")
        prompter.echo(title)
        for line in format_choices(items):
            prompter.echo(line)
        selection = prompter.ask("Enter number (or press Enter to finish)", "")
        if not selection.strip():
            return None
        index = parse_selection(selection, len(items))
        if index is not None:
            return items[index]
        prompter.echo(f"Invalid selection '{selection}'. Enter a number between 1 and {len(items)}.")


def find_by_name(items: Iterable[ResourceSummary], name: str) -> Optional[ResourceSummary]:
    """Case-insensitive, trimmed exact name match; first match wins."""
    wanted = name.strip().casefold()
    for item in items:
        if item.name.strip().casefold() == wanted:
            return item
    return None
