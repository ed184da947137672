"""
Cloning of configuration profiles: Settings Catalog policies and Endpoint Security intents.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from .cloners import ResourceCloner, require_id
from .discovery import CONFIGURATION_DOMAIN
from .graph_client import DataModelError, names_of
from .models import (
    INTENT,
    SETTINGS_CATALOG,
    STATUS_CLONED,
    CloneOutcome,
    ResourceSummary,
    SettingsCatalogPayload,
)

SETTING_ODATA_TYPE = "#microsoft.graph.deviceManagementConfigurationSetting"


def settings_for_create(settings: Optional[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    """Rebuild expanded settings as create entries, dropping their server ids."""
    result: List[Dict[str, Any]] = []
    for index, setting in enumerate(settings or []):
        instance = setting.get("settingInstance")
        if instance is None:
            raise DataModelError(f"Setting #{index} has no settingInstance")
        result.append({"@odata.type": SETTING_ODATA_TYPE, "settingInstance": instance})
    return result


def template_reference_for_create(reference: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not reference or not reference.get("templateId"):
        return None
    return {"templateId": reference["templateId"]}


class ConfigurationProfileCloner(ResourceCloner):
    """
    Settings Catalog policies are re-created from their expanded settings.
    Intents use the service-side copy operation and get their scope tags in a
    follow-up PATCH, since the copy operation does not accept tags.
    """

    kind = CONFIGURATION_DOMAIN
    label = "configuration profile"

    def list_existing_names(self) -> List[str]:
        return (
            names_of(self.client.list_configuration_policies(), "name")
            + names_of(self.client.list_intents(), "displayName")
        )

    def clone(self, source: ResourceSummary, new_name: str, destination_tag_ids: List[str]) -> CloneOutcome:
        if source.kind == SETTINGS_CATALOG:
            new_id, tag_ids = self._clone_settings_catalog(source, new_name, destination_tag_ids)
        elif source.kind == INTENT:
            new_id, tag_ids = self._clone_intent(source, new_name, destination_tag_ids)
        else:
            raise ValueError(f"Unsupported configuration profile kind '{source.kind}'")

        self.report(source, new_name, new_id, tag_ids)
        return CloneOutcome(
            source_name=source.name,
            status=STATUS_CLONED,
            new_name=new_name,
            new_id=new_id,
            scope_tag_ids=tag_ids,
        )

    def _clone_settings_catalog(self, source: ResourceSummary, new_name: str, destination_tag_ids: List[str]):
        full = self.client.get_configuration_policy(source.id)
        payload = SettingsCatalogPayload(
            name=new_name,
            description=self.describe(source),
            role_scope_tag_ids=list(destination_tag_ids),
            platforms=full.get("platforms"),
            technologies=full.get("technologies"),
            template_reference=template_reference_for_create(full.get("templateReference")),
            settings=settings_for_create(full.get("settings")),
        )
        created = self.client.create_configuration_policy(payload.to_body())
        new_id = require_id(created, "settings catalog policy")
        tag_ids = self.ensure_scope_tags(created, destination_tag_ids, self.client.patch_configuration_policy)
        return new_id, tag_ids

    def _clone_intent(self, source: ResourceSummary, new_name: str, destination_tag_ids: List[str]):
        copied = self.client.copy_intent(source.id, new_name, self.describe(source))
        new_id = require_id(copied, "endpoint security intent")
        tag_ids = self.patch_scope_tags(
            new_id, {"roleScopeTagIds": list(destination_tag_ids)}, self.client.patch_intent
        )
        self.logger.debug("Patched scope tags %s onto intent %s", destination_tag_ids, new_id)
        return new_id, tag_ids
