"""
Data models for Intune Clone Tool.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional

COMPLIANCE_POLICY = "compliancePolicy"
SETTINGS_CATALOG = "settingsCatalog"
INTENT = "intent"
PLATFORM_SCRIPT = "platformScript"
REMEDIATION_SCRIPT = "remediationScript"

STATUS_CLONED = "cloned"
STATUS_DRY_RUN = "dry-run"
STATUS_SKIPPED = "skipped"
STATUS_NOT_FOUND = "not-found"
STATUS_FAILED = "failed"


@dataclass(frozen=True)
class ScopeTag:
    id: str
    display_name: str


@dataclass
class ResourceSummary:
    """Summary of a management object as returned by a discovery listing."""
    id: str
    name: str
    kind: str  # discriminator, e.g. "settingsCatalog" vs "intent"
    scope_tag_ids: FrozenSet[str] = field(default_factory=frozenset)
    odata_type: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class CloneRequest:
    source_tag_names: List[str]
    destination_tag_names: List[str]
    source_names: List[str] = field(default_factory=list)
    new_name: Optional[str] = None
    dry_run: bool = False

    @property
    def interactive(self) -> bool:
        return not self.source_names


@dataclass
class CreatedResource:
    """A resource created by a clone, including dependent resources."""
    id: str
    name: str
    kind: str


@dataclass
class CloneOutcome:
    source_name: str
    status: str
    new_name: Optional[str] = None
    new_id: Optional[str] = None
    scope_tag_ids: List[str] = field(default_factory=list)
    dependencies: List[CreatedResource] = field(default_factory=list)
    message: Optional[str] = None


@dataclass
class CloneReport:
    kind: str
    discovered: int = 0
    outcomes: List[CloneOutcome] = field(default_factory=list)

    def count(self, status: str) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def exit_code(self) -> int:
        if any(o.status in (STATUS_FAILED, STATUS_NOT_FOUND) for o in self.outcomes):
            return 1
        return 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "discovered": self.discovered,
            "summary": {
                status: self.count(status)
                for status in (STATUS_CLONED, STATUS_DRY_RUN, STATUS_SKIPPED, STATUS_NOT_FOUND, STATUS_FAILED)
            },
            "outcomes": [
                {
                    "sourceName": o.source_name,
                    "status": o.status,
                    "newName": o.new_name,
                    "newId": o.new_id,
                    "scopeTagIds": o.scope_tag_ids,
                    "dependencies": [
                        {"id": d.id, "name": d.name, "kind": d.kind} for d in o.dependencies
                    ],
                    "message": o.message,
                }
                for o in self.outcomes
            ],
        }


# -------- Create payloads --------

@dataclass
class ComplianceScriptPayload:
    display_name: str
    detection_script_content: str
    description: Optional[str] = None
    publisher: Optional[str] = None
    run_as_account: Optional[str] = None
    enforce_signature_check: Optional[bool] = None
    run_as_32_bit: Optional[bool] = None

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "displayName": self.display_name,
            "detectionScriptContent": self.detection_script_content,
        }
        _put(body, "description", self.description)
        _put(body, "publisher", self.publisher)
        _put(body, "runAsAccount", self.run_as_account)
        _put(body, "enforceSignatureCheck", self.enforce_signature_check)
        _put(body, "runAs32Bit", self.run_as_32_bit)
        return body


@dataclass
class CompliancePolicyPayload:
    """
    Creation body for a compliance policy.

    Compliance policies are polymorphic per platform, so platform settings are
    carried in ``settings`` after server-owned fields have been removed.
    """
    odata_type: str
    display_name: str
    description: str
    role_scope_tag_ids: List[str]
    scheduled_actions_for_rule: List[Dict[str, Any]]
    settings: Dict[str, Any] = field(default_factory=dict)
    script_reference: Optional[Dict[str, Any]] = None

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"@odata.type": self.odata_type}
        body.update(self.settings)
        body["displayName"] = self.display_name
        body["description"] = self.description
        body["roleScopeTagIds"] = list(self.role_scope_tag_ids)
        body["scheduledActionsForRule"] = self.scheduled_actions_for_rule
        if self.script_reference is not None:
            body["deviceCompliancePolicyScript"] = self.script_reference
        return body


@dataclass
class SettingsCatalogPayload:
    name: str
    description: str
    role_scope_tag_ids: List[str]
    platforms: Optional[str] = None
    technologies: Optional[str] = None
    template_reference: Optional[Dict[str, Any]] = None
    settings: List[Dict[str, Any]] = field(default_factory=list)

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "roleScopeTagIds": list(self.role_scope_tag_ids),
            "settings": self.settings,
        }
        _put(body, "platforms", self.platforms)
        _put(body, "technologies", self.technologies)
        _put(body, "templateReference", self.template_reference)
        return body


@dataclass
class PlatformScriptPayload:
    display_name: str
    description: str
    script_content: str
    role_scope_tag_ids: List[str]
    file_name: Optional[str] = None
    run_as_account: Optional[str] = None
    enforce_signature_check: Optional[bool] = None
    run_as_32_bit: Optional[bool] = None

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "@odata.type": "#microsoft.graph.deviceManagementScript",
            "displayName": self.display_name,
            "description": self.description,
            "scriptContent": self.script_content,
            "roleScopeTagIds": list(self.role_scope_tag_ids),
        }
        _put(body, "fileName", self.file_name)
        _put(body, "runAsAccount", self.run_as_account)
        _put(body, "enforceSignatureCheck", self.enforce_signature_check)
        _put(body, "runAs32Bit", self.run_as_32_bit)
        return body


@dataclass
class RemediationScriptPayload:
    display_name: str
    description: str
    detection_script_content: str
    role_scope_tag_ids: List[str]
    remediation_script_content: Optional[str] = None
    publisher: Optional[str] = None
    run_as_account: Optional[str] = None
    enforce_signature_check: Optional[bool] = None
    run_as_32_bit: Optional[bool] = None
    detection_script_parameters: Optional[List[Dict[str, Any]]] = None
    remediation_script_parameters: Optional[List[Dict[str, Any]]] = None

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "@odata.type": "#microsoft.graph.deviceHealthScript",
            "displayName": self.display_name,
            "description": self.description,
            "detectionScriptContent": self.detection_script_content,
            "roleScopeTagIds": list(self.role_scope_tag_ids),
        }
        _put(body, "remediationScriptContent", self.remediation_script_content)
        _put(body, "publisher", self.publisher)
        _put(body, "runAsAccount", self.run_as_account)
        _put(body, "enforceSignatureCheck", self.enforce_signature_check)
        _put(body, "runAs32Bit", self.run_as_32_bit)
        _put(body, "detectionScriptParameters", self.detection_script_parameters)
        _put(body, "remediationScriptParameters", self.remediation_script_parameters)
        return body


def _put(body: Dict[str, Any], key: str, value: Any) -> None:
    if value is not None:
        body[key] = value
