"""
Base class shared by the per-kind cloners.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .discovery import discover_resources
from .graph_client import GraphApiError, GraphClient, GraphRequestError
from .models import CloneOutcome, ResourceSummary
from .naming import ExistingNameSet, prefixed_candidate, timestamped_candidate
from .utils import clone_description


class ScopeTagPatchError(Exception):
    """Raised when a resource was created but its scope tags could not be applied."""

    def __init__(self, label: str, new_id: str, cause: Exception):
        super().__init__(
            f"Created {label} (id {new_id}) but could not apply its scope tags: {cause}"
        )
        self.new_id = new_id


class ResourceCloner:
    """
    Discovery, naming defaults and creation for one kind of management object.

    Subclasses set ``kind`` (a discovery kind) and ``label`` and implement
    ``list_existing_names`` and ``clone``.
    """

    kind = ""
    label = "resource"
    normalize_dashes = False
    prefix_default_name = False

    def __init__(
        self,
        client: GraphClient,
        logger: Optional[logging.Logger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.client = client
        self.logger = logger or logging.getLogger(__name__)
        self.clock = clock or datetime.now

    def list_existing_names(self) -> List[str]:
        raise NotImplementedError

    def discover(self, source_tag_ids: List[str]) -> List[ResourceSummary]:
        return discover_resources(self.client, self.kind, source_tag_ids, logger=self.logger)

    def default_interactive_name(self, source: ResourceSummary, names: ExistingNameSet) -> str:
        """Name offered at the interactive prompt; not registered until the user accepts it."""
        if self.prefix_default_name:
            return prefixed_candidate(source.name, names)
        return timestamped_candidate(source.name, now=self.clock())

    def clone(self, source: ResourceSummary, new_name: str, destination_tag_ids: List[str]) -> CloneOutcome:
        raise NotImplementedError

    def describe(self, source: ResourceSummary) -> str:
        return clone_description(source.name, now=self.clock())

    def ensure_scope_tags(
        self,
        created: Dict[str, Any],
        destination_tag_ids: List[str],
        patch: Callable[[str, Dict[str, Any]], Any],
        odata_type: Optional[str] = None,
    ) -> List[str]:
        """
        Patch scope tags onto a new object when the create response did not echo them.

        Returns:
            The destination tag ids now applied
        """
        echoed = created.get("roleScopeTagIds")
        if echoed is not None and {str(t) for t in echoed} == {str(t) for t in destination_tag_ids}:
            return list(destination_tag_ids)

        self.logger.info(
            "Create response for %s '%s' did not carry scope tags %s; patching",
            self.label, created.get("displayName") or created.get("name"), destination_tag_ids,
        )
        body: Dict[str, Any] = {"roleScopeTagIds": list(destination_tag_ids)}
        if odata_type:
            body["@odata.type"] = odata_type
        return self.patch_scope_tags(require_id(created, self.label), body, patch)

    def patch_scope_tags(
        self,
        new_id: str,
        body: Dict[str, Any],
        patch: Callable[[str, Dict[str, Any]], Any],
    ) -> List[str]:
        """
        Send a scope-tag PATCH for a resource that already exists.

        Raises:
            ScopeTagPatchError: carrying the created id when the PATCH fails
        """
        try:
            patch(new_id, body)
        except (GraphRequestError, GraphApiError) as exc:
            raise ScopeTagPatchError(self.label, new_id, exc) from exc
        return list(body["roleScopeTagIds"])

    def report(self, source: ResourceSummary, new_name: str, new_id: str, tag_ids: List[str]) -> None:
        self.logger.info(
            "Cloned %s '%s' -> '%s' (id %s) with scope tags %s",
            self.label, source.name, new_name, new_id, ", ".join(tag_ids),
        )


def require_id(created: Dict[str, Any], label: str) -> str:
    new_id = created.get("id")
    if not new_id:
        raise GraphApiError(f"Create response for {label} did not include an id")
    return str(new_id)
