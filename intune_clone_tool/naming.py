"""
Name allocation for cloned objects.

Three policies are supported:

- prefix: "Copy of X", then "Copy of X (2)", "Copy of X (3)", ... until free
- timestamp: "Copy of X - YYYYMMDD-HHMMSS", without a collision re-check
- interactive rename: a user-supplied name, normalized, suffixed with
  " - YYYYMMDD-HHMMSS" when it collides with an existing name

Every allocation registers the returned name in the ExistingNameSet so later
allocations in the same run do not collide with it.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Callable, Iterable, Iterator, Optional, Set

from .picker import Prompter
from .utils import timestamp_suffix

COPY_PREFIX = "Copy of"

_QUOTE_PAIRS = {
    '"': '"',
    "'": "'",
    "\u201c": "\u201d",
    "\u2018": "\u2019",
}
_DASHES = re.compile("[\u2010-\u2015\u2212\ufe58\ufe63\uff0d]")
_SPACES = re.compile("[\u00a0\u1680\u2000-\u200a\u202f\u205f\u3000]")
_WHITESPACE = re.compile(r"\s+")


class ExistingNameSet:
    """
    Case-insensitive set of names in use for one resource kind.

    ``loader`` returns the current names from the service; ``refresh()``
    re-reads them while keeping names allocated earlier in this run.
    """

    def __init__(self, loader: Optional[Callable[[], Iterable[str]]] = None, names: Iterable[str] = ()):
        self._loader = loader
        self._names: Set[str] = set()
        self._allocated: Set[str] = set()
        for name in names:
            self._names.add(_key(name))

    def refresh(self) -> None:
        if self._loader is None:
            return
        self._names = {_key(name) for name in self._loader() if name}
        self._names |= self._allocated

    def add(self, name: str) -> None:
        key = _key(name)
        self._names.add(key)
        self._allocated.add(key)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and _key(name) in self._names

    def __iter__(self) -> Iterator[str]:
        return iter(self._names)

    def __len__(self) -> int:
        return len(self._names)


def _key(name: str) -> str:
    return name.strip().casefold()


def prefixed_candidate(base_name: str, names: ExistingNameSet) -> str:
    candidate = f"{COPY_PREFIX} {base_name}"
    counter = 2
    while candidate in names:
        candidate = f"{COPY_PREFIX} {base_name} ({counter})"
        counter += 1
    return candidate


def timestamped_candidate(base_name: str, now: Optional[datetime] = None) -> str:
    return f"{COPY_PREFIX} {base_name} - {timestamp_suffix(now)}"


def allocate_prefixed_name(base_name: str, names: ExistingNameSet) -> str:
    """
    Return "Copy of {base}" or the first free "Copy of {base} (n)" for n >= 2.

    Examples:
        >>> allocate_prefixed_name("X", ExistingNameSet(names=["Copy of X"]))
        'Copy of X (2)'
    """
    candidate = prefixed_candidate(base_name, names)
    names.add(candidate)
    return candidate


def allocate_timestamped_name(base_name: str, names: ExistingNameSet, now: Optional[datetime] = None) -> str:
    # No collision re-check: two calls within the same second return the same name.
    candidate = timestamped_candidate(base_name, now=now)
    names.add(candidate)
    return candidate


def strip_matching_quotes(value: str) -> str:
    if len(value) >= 2 and _QUOTE_PAIRS.get(value[0]) == value[-1]:
        return value[1:-1]
    return value


def normalize_name(raw: str, normalize_dashes: bool = False) -> str:
    """
    Normalize a user-entered name.

    Trims, strips one layer of matching surrounding quotes and collapses
    internal whitespace. With ``normalize_dashes`` (platform scripts), Unicode
    dash and space variants are mapped to ASCII first.
    """
    value = raw or ""
    if normalize_dashes:
        value = _DASHES.sub("-", value)
        value = _SPACES.sub(" ", value)
    value = strip_matching_quotes(value.strip())
    return _WHITESPACE.sub(" ", value).strip()


def resolve_override_name(
    requested: str,
    names: ExistingNameSet,
    normalize_dashes: bool = False,
    now: Optional[datetime] = None,
    logger: Optional[logging.Logger] = None,
) -> Optional[str]:
    """
    Apply the rename policy to a name supplied without prompting.

    Returns None when the name is blank after normalization.
    """
    log = logger or logging.getLogger(__name__)
    name = normalize_name(requested, normalize_dashes=normalize_dashes)
    if not name:
        return None
    if name in names:
        substitute = f"{name} - {timestamp_suffix(now)}"
        log.warning("Name '%s' is already in use; using '%s' instead", name, substitute)
        name = substitute
    names.add(name)
    return name


def allocate_interactive_name(
    default_name: str,
    names: ExistingNameSet,
    prompter: Prompter,
    normalize_dashes: bool = False,
    now: Optional[datetime] = None,
    logger: Optional[logging.Logger] = None,
) -> str:
    """
    Prompt for a new name until a non-blank one is given, then de-duplicate it.

    Args:
        default_name: Offered as the prompt default
        names: Names currently in use; the result is added to it
        prompter: Input abstraction
        normalize_dashes: Map Unicode dashes/spaces to ASCII (platform scripts)
        now: Clock override for the collision suffix

    Returns:
        The name to create the clone with
    """
    log = logger or logging.getLogger(__name__)
    while True:
        raw = prompter.ask("New name", default_name)
        name = normalize_name(raw, normalize_dashes=normalize_dashes)
        if not name:
            prompter.echo("Name cannot be blank.")
            continue
        if name in names:
            substitute = f"{name} - {timestamp_suffix(now)}"
            prompter.echo(f"'{name}' already exists; using '{substitute}' instead.")
            log.info("Substituted '%s' for colliding name '%s'", substitute, name)
            name = substitute
        names.add(name)
        return name
