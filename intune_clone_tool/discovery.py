"""
Discovery of management objects carrying an exact scope tag set.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from .graph_client import GraphClient
from .models import (
    COMPLIANCE_POLICY,
    INTENT,
    PLATFORM_SCRIPT,
    REMEDIATION_SCRIPT,
    SETTINGS_CATALOG,
    ResourceSummary,
)

CONFIGURATION_DOMAIN = "configurationProfile"

DISCOVERY_KINDS = (COMPLIANCE_POLICY, CONFIGURATION_DOMAIN, PLATFORM_SCRIPT, REMEDIATION_SCRIPT)


def tag_set_matches(resource_tag_ids: Iterable[Any], source_tag_ids: Iterable[Any]) -> bool:
    """
    Return True when both tag id collections hold exactly the same members.

    Subsets and supersets do not match; order is irrelevant.
    """
    resource_ids = {str(t) for t in resource_tag_ids}
    source_ids = {str(t) for t in source_tag_ids}
    return len(resource_ids) == len(source_ids) and source_ids.issubset(resource_ids)


def to_summary(item: Dict[str, Any], kind: str, name_key: str = "displayName") -> Optional[ResourceSummary]:
    resource_id = item.get("id")
    if not resource_id:
        return None
    tag_ids = item.get("roleScopeTagIds")
    return ResourceSummary(
        id=str(resource_id),
        name=item.get(name_key) or "",
        kind=kind,
        scope_tag_ids=frozenset(str(t) for t in tag_ids) if tag_ids else frozenset(),
        odata_type=item.get("@odata.type"),
        raw=item,
    )


def filter_by_tags(
    items: Iterable[Dict[str, Any]],
    kind: str,
    source_tag_ids: List[str],
    name_key: str = "displayName",
    require_complete: bool = False,
) -> List[ResourceSummary]:
    """
    Convert listing items to summaries and keep those whose tag set equals ``source_tag_ids``.

    With ``require_complete`` set, items lacking an id, a name, or any scope tag are skipped.
    """
    matched: List[ResourceSummary] = []
    for item in items:
        summary = to_summary(item, kind, name_key=name_key)
        if summary is None:
            continue
        if require_complete and (not summary.name or not item.get("roleScopeTagIds")):
            continue
        if tag_set_matches(summary.scope_tag_ids, source_tag_ids):
            matched.append(summary)
    return matched


def discover_compliance_policies(client: GraphClient, source_tag_ids: List[str]) -> List[ResourceSummary]:
    return filter_by_tags(
        client.list_compliance_policies(), COMPLIANCE_POLICY, source_tag_ids, require_complete=True
    )


def discover_configuration_profiles(client: GraphClient, source_tag_ids: List[str]) -> List[ResourceSummary]:
    """Settings Catalog policies and Endpoint Security intents, as one domain."""
    catalog = filter_by_tags(client.list_configuration_policies(), SETTINGS_CATALOG, source_tag_ids, name_key="name")
    intents = filter_by_tags(client.list_intents(), INTENT, source_tag_ids)
    return catalog + intents


def discover_platform_scripts(client: GraphClient, source_tag_ids: List[str]) -> List[ResourceSummary]:
    return filter_by_tags(client.list_platform_scripts(), PLATFORM_SCRIPT, source_tag_ids)


def discover_remediation_scripts(client: GraphClient, source_tag_ids: List[str]) -> List[ResourceSummary]:
    return filter_by_tags(client.list_remediation_scripts(), REMEDIATION_SCRIPT, source_tag_ids)


_DISCOVERERS: Dict[str, Callable[[GraphClient, List[str]], List[ResourceSummary]]] = {
    COMPLIANCE_POLICY: discover_compliance_policies,
    CONFIGURATION_DOMAIN: discover_configuration_profiles,
    PLATFORM_SCRIPT: discover_platform_scripts,
    REMEDIATION_SCRIPT: discover_remediation_scripts,
}


def discover_resources(
    client: GraphClient,
    kind: str,
    source_tag_ids: List[str],
    logger: Optional[logging.Logger] = None,
) -> List[ResourceSummary]:
    """
    List all resources of ``kind`` and return those tagged with exactly ``source_tag_ids``.

    Args:
        client: GraphClient instance
        kind: One of DISCOVERY_KINDS
        source_tag_ids: Resolved source scope tag ids

    Returns:
        Matching resource summaries in listing order
    """
    log = logger or logging.getLogger(__name__)
    try:
        discoverer = _DISCOVERERS[kind]
    except KeyError as exc:
        raise ValueError(f"Unknown resource kind '{kind}'. Expected one of: {', '.join(DISCOVERY_KINDS)}") from exc
    found = discoverer(client, source_tag_ids)
    log.info("Discovered %d %s item(s) tagged exactly %s", len(found), kind, sorted(source_tag_ids))
    return found
