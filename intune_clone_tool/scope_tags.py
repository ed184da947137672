"""
Scope tag resolution: translate human-readable tag names into stable ids.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from .graph_client import GraphClient
from .models import ScopeTag

MAX_DESTINATION_TAGS = 64


class CloneConfigurationError(Exception):
    """Raised when a clone invocation is misconfigured before any discovery runs."""


class ScopeTagNotFoundError(CloneConfigurationError):
    """Raised when a requested scope tag name does not exist in the tenant."""

    def __init__(self, tag_name: str):
        super().__init__(f"Scope tag '{tag_name}' not found")
        self.tag_name = tag_name


@dataclass
class ResolvedScopeTags:
    source_ids: List[str]
    destination_ids: List[str]
    source_names: List[str]
    destination_names: List[str]


def fetch_scope_tags(client: GraphClient) -> List[ScopeTag]:
    tags: List[ScopeTag] = []
    for item in client.list_scope_tags():
        tag_id = item.get("id")
        if tag_id is None:
            continue
        tags.append(ScopeTag(id=str(tag_id), display_name=item.get("displayName") or ""))
    return tags


def build_tag_index(tags: Iterable[ScopeTag]) -> Dict[str, ScopeTag]:
    """Index tags by case-folded display name; the first tag wins on duplicates."""
    index: Dict[str, ScopeTag] = {}
    for tag in tags:
        index.setdefault(tag.display_name.strip().casefold(), tag)
    return index


def lookup_tag_ids(names: Iterable[str], index: Dict[str, ScopeTag]) -> List[str]:
    ids: List[str] = []
    for name in names:
        tag = index.get(name.strip().casefold())
        if tag is None:
            raise ScopeTagNotFoundError(name)
        ids.append(tag.id)
    return ids


def validate_tag_names(source_names: List[str], destination_names: List[str]) -> None:
    if len(source_names) != 1:
        raise CloneConfigurationError(
            f"Exactly one source scope tag is required, got {len(source_names)}"
        )
    if not destination_names:
        raise CloneConfigurationError("At least one destination scope tag is required")
    if len(destination_names) > MAX_DESTINATION_TAGS:
        raise CloneConfigurationError(
            f"At most {MAX_DESTINATION_TAGS} destination scope tags are supported, got {len(destination_names)}"
        )


def resolve_scope_tags(
    client: GraphClient,
    source_names: List[str],
    destination_names: List[str],
    logger: Optional[logging.Logger] = None,
) -> ResolvedScopeTags:
    """
    Resolve source and destination scope tag names to ids.

    The tag catalog is fetched once. Names match case-insensitively and exactly;
    the first unknown name aborts resolution with ``ScopeTagNotFoundError``.

    Returns:
        ResolvedScopeTags whose id lists are positional translations of the inputs
    """
    log = logger or logging.getLogger(__name__)
    validate_tag_names(source_names, destination_names)

    index = build_tag_index(fetch_scope_tags(client))
    log.debug("Loaded %d scope tags", len(index))

    source_ids = lookup_tag_ids(source_names, index)
    destination_ids = lookup_tag_ids(destination_names, index)
    log.info(
        "Source scope tag %s -> %s; destination scope tags %s -> %s",
        source_names, source_ids, destination_names, destination_ids,
    )
    return ResolvedScopeTags(
        source_ids=source_ids,
        destination_ids=destination_ids,
        source_names=list(source_names),
        destination_names=list(destination_names),
    )
