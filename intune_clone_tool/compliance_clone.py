"""
Cloning of device compliance policies, including their custom compliance scripts.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from .cloners import ResourceCloner, require_id
from .graph_client import DataModelError, GraphApiError, GraphRequestError, names_of
from .models import (
    COMPLIANCE_POLICY,
    STATUS_CLONED,
    CloneOutcome,
    CompliancePolicyPayload,
    ComplianceScriptPayload,
    CreatedResource,
    ResourceSummary,
)

COMPLIANCE_SCRIPT = "complianceScript"

# Fields the service owns or that are rebuilt explicitly in the payload.
SERVER_OWNED_FIELDS = frozenset({
    "id",
    "createdDateTime",
    "lastModifiedDateTime",
    "version",
    "assignments",
    "scheduledActionsForRule",
    "deviceStatuses",
    "userStatuses",
    "deviceStatusOverview",
    "userStatusOverview",
    "deviceSettingStateSummaries",
    "displayName",
    "description",
    "roleScopeTagIds",
    "deviceCompliancePolicyScript",
})

# Original scheduled actions are not carried over; every clone gets one
# immediate block action.
BASIC_SCHEDULED_ACTIONS: List[Dict[str, Any]] = [
    {
        "ruleName": "PasswordRequired",
        "scheduledActionConfigurations": [
            {
                "actionType": "block",
                "gracePeriodHours": 0,
                "notificationTemplateId": "",
                "notificationMessageCCList": [],
            }
        ],
    }
]


def carried_settings(full: Dict[str, Any]) -> Dict[str, Any]:
    """Platform settings of a fetched policy, without server-owned fields or OData annotations."""
    return {
        key: value
        for key, value in full.items()
        if key not in SERVER_OWNED_FIELDS and "@odata." not in key
    }


def basic_scheduled_actions() -> List[Dict[str, Any]]:
    return [
        {
            "ruleName": rule["ruleName"],
            "scheduledActionConfigurations": [dict(c) for c in rule["scheduledActionConfigurations"]],
        }
        for rule in BASIC_SCHEDULED_ACTIONS
    ]


class CompliancePolicyCloner(ResourceCloner):
    kind = COMPLIANCE_POLICY
    label = "compliance policy"

    def list_existing_names(self) -> List[str]:
        return names_of(self.client.list_compliance_policies(), "displayName")

    def clone(self, source: ResourceSummary, new_name: str, destination_tag_ids: List[str]) -> CloneOutcome:
        full = self.client.get_compliance_policy(source.id)
        odata_type = full.get("@odata.type") or source.odata_type
        if not odata_type:
            raise DataModelError(f"Compliance policy '{source.name}' has no @odata.type")

        dependencies: List[CreatedResource] = []
        script_reference = self._script_reference(full, new_name, dependencies)

        payload = CompliancePolicyPayload(
            odata_type=odata_type,
            display_name=new_name,
            description=self.describe(source),
            role_scope_tag_ids=list(destination_tag_ids),
            scheduled_actions_for_rule=basic_scheduled_actions(),
            settings=carried_settings(full),
            script_reference=script_reference,
        )
        created = self.client.create_compliance_policy(payload.to_body())
        new_id = require_id(created, self.label)
        tag_ids = self.ensure_scope_tags(
            created, destination_tag_ids, self.client.patch_compliance_policy, odata_type=odata_type
        )
        self.report(source, new_name, new_id, tag_ids)
        return CloneOutcome(
            source_name=source.name,
            status=STATUS_CLONED,
            new_name=new_name,
            new_id=new_id,
            scope_tag_ids=tag_ids,
            dependencies=dependencies,
        )

    def _script_reference(
        self,
        full: Dict[str, Any],
        new_policy_name: str,
        dependencies: List[CreatedResource],
    ) -> Optional[Dict[str, Any]]:
        """
        Clone the custom compliance script a policy references, if any.

        On failure the original script reference is kept and a warning logged.
        """
        reference = full.get("deviceCompliancePolicyScript")
        if not reference or not reference.get("deviceComplianceScriptId"):
            return None

        original_id = str(reference["deviceComplianceScriptId"])
        rules_content = reference.get("rulesContent")
        try:
            script = self.clone_compliance_script(original_id, new_policy_name)
        except (GraphRequestError, GraphApiError, DataModelError) as exc:
            self.logger.warning(
                "Could not clone compliance script %s for '%s'; the new policy will reference the original script: %s",
                original_id, new_policy_name, exc,
            )
            return {"deviceComplianceScriptId": original_id, "rulesContent": rules_content}

        dependencies.append(script)
        return {"deviceComplianceScriptId": script.id, "rulesContent": rules_content}

    def clone_compliance_script(self, script_id: str, new_policy_name: str) -> CreatedResource:
        source = self.client.get_compliance_script(script_id)
        content = source.get("detectionScriptContent")
        if not content:
            raise DataModelError(f"Compliance script {script_id} returned no detection script content")

        name = f"{source.get('displayName') or script_id} - Clone for {new_policy_name}"
        # Compliance scripts do not support scope tags.
        payload = ComplianceScriptPayload(
            display_name=name,
            detection_script_content=content,
            description=source.get("description"),
            publisher=source.get("publisher"),
            run_as_account=source.get("runAsAccount"),
            enforce_signature_check=source.get("enforceSignatureCheck"),
            run_as_32_bit=source.get("runAs32Bit"),
        )
        created = self.client.create_compliance_script(payload.to_body())
        new_id = require_id(created, "compliance script")
        self.logger.info("Cloned compliance script %s -> '%s' (id %s)", script_id, name, new_id)
        return CreatedResource(id=new_id, name=name, kind=COMPLIANCE_SCRIPT)
