"""
Cloning of platform scripts (deviceManagementScripts) and remediation scripts (deviceHealthScripts).
"""

from __future__ import annotations

from typing import Any, Dict, List

from .cloners import ResourceCloner, require_id
from .graph_client import names_of
from .models import (
    PLATFORM_SCRIPT,
    REMEDIATION_SCRIPT,
    STATUS_CLONED,
    CloneOutcome,
    PlatformScriptPayload,
    RemediationScriptPayload,
    ResourceSummary,
)

PLATFORM_SCRIPT_ODATA_TYPE = "#microsoft.graph.deviceManagementScript"
REMEDIATION_SCRIPT_ODATA_TYPE = "#microsoft.graph.deviceHealthScript"


class ScriptContentError(Exception):
    """
    Raised when a fetched script carries no content.

    ``reason`` is "missing" when the service omitted the content field, which
    usually means the caller cannot read script content, and "empty" when the
    script exists but its content is genuinely empty.
    """

    def __init__(self, script_name: str, reason: str):
        if reason == "missing":
            detail = (
                "the service returned no content field; the account likely lacks permission to read "
                "script content (DeviceManagementConfiguration.Read.All or an Intune role with script read)"
            )
        else:
            detail = "the script content is empty"
        super().__init__(f"Cannot clone script '{script_name}': {detail}")
        self.script_name = script_name
        self.reason = reason


def require_content(full: Dict[str, Any], field_name: str, script_name: str) -> str:
    if field_name not in full or full[field_name] is None:
        raise ScriptContentError(script_name, "missing")
    content = full[field_name]
    if not str(content).strip():
        raise ScriptContentError(script_name, "empty")
    return content


class PlatformScriptCloner(ResourceCloner):
    kind = PLATFORM_SCRIPT
    label = "platform script"
    normalize_dashes = True
    prefix_default_name = True

    def list_existing_names(self) -> List[str]:
        return names_of(self.client.list_platform_scripts(), "displayName")

    def clone(self, source: ResourceSummary, new_name: str, destination_tag_ids: List[str]) -> CloneOutcome:
        # The listing omits scriptContent, so the script is fetched explicitly.
        full = self.client.get_platform_script(source.id)
        content = require_content(full, "scriptContent", source.name)

        payload = PlatformScriptPayload(
            display_name=new_name,
            description=self.describe(source),
            script_content=content,
            role_scope_tag_ids=list(destination_tag_ids),
            file_name=full.get("fileName"),
            run_as_account=full.get("runAsAccount"),
            enforce_signature_check=full.get("enforceSignatureCheck"),
            run_as_32_bit=full.get("runAs32Bit"),
        )
        created = self.client.create_platform_script(payload.to_body())
        new_id = require_id(created, self.label)
        tag_ids = self.ensure_scope_tags(
            created, destination_tag_ids, self.client.patch_platform_script, odata_type=PLATFORM_SCRIPT_ODATA_TYPE
        )
        self.report(source, new_name, new_id, tag_ids)
        return CloneOutcome(
            source_name=source.name,
            status=STATUS_CLONED,
            new_name=new_name,
            new_id=new_id,
            scope_tag_ids=tag_ids,
        )


class RemediationScriptCloner(ResourceCloner):
    kind = REMEDIATION_SCRIPT
    label = "remediation script"
    normalize_dashes = True
    prefix_default_name = True

    def list_existing_names(self) -> List[str]:
        return names_of(self.client.list_remediation_scripts(), "displayName")

    def clone(self, source: ResourceSummary, new_name: str, destination_tag_ids: List[str]) -> CloneOutcome:
        full = self.client.get_remediation_script(source.id)
        detection = require_content(full, "detectionScriptContent", source.name)

        payload = RemediationScriptPayload(
            display_name=new_name,
            description=self.describe(source),
            detection_script_content=detection,
            role_scope_tag_ids=list(destination_tag_ids),
            remediation_script_content=full.get("remediationScriptContent") or None,
            publisher=full.get("publisher"),
            run_as_account=full.get("runAsAccount"),
            enforce_signature_check=full.get("enforceSignatureCheck"),
            run_as_32_bit=full.get("runAs32Bit"),
            detection_script_parameters=full.get("detectionScriptParameters"),
            remediation_script_parameters=full.get("remediationScriptParameters"),
        )
        created = self.client.create_remediation_script(payload.to_body())
        new_id = require_id(created, self.label)
        tag_ids = self.ensure_scope_tags(
            created, destination_tag_ids, self.client.patch_remediation_script, odata_type=REMEDIATION_SCRIPT_ODATA_TYPE
        )
        self.report(source, new_name, new_id, tag_ids)
        return CloneOutcome(
            source_name=source.name,
            status=STATUS_CLONED,
            new_name=new_name,
            new_id=new_id,
            scope_tag_ids=tag_ids,
        )
