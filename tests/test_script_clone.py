import pytest

from intune_clone_tool.models import PLATFORM_SCRIPT, REMEDIATION_SCRIPT, STATUS_CLONED, ResourceSummary
from intune_clone_tool.naming import ExistingNameSet
from intune_clone_tool.script_clone import (
    PlatformScriptCloner,
    RemediationScriptCloner,
    ScriptContentError,
)

PLATFORM_SOURCE = ResourceSummary(id="s-1", name="Set TZ", kind=PLATFORM_SCRIPT, scope_tag_ids=frozenset({"5"}))
REMEDIATION_SOURCE = ResourceSummary(id="h-1", name="Fix Spooler", kind=REMEDIATION_SCRIPT, scope_tag_ids=frozenset({"5"}))

FULL_PLATFORM = {
    "id": "s-1",
    "displayName": "Set TZ",
    "scriptContent": "U2V0LVRpbWVab25l",
    "fileName": "set-tz.ps1",
    "runAsAccount": "system",
    "enforceSignatureCheck": False,
    "runAs32Bit": True,
    "roleScopeTagIds": ["5"],
}


class TestPlatformScript:
    def test_clone_body(self, fake_graph, client, fixed_clock):
        fake_graph.add("GET", "/deviceManagement/deviceManagementScripts/s-1", FULL_PLATFORM)
        fake_graph.add("POST", "/deviceManagement/deviceManagementScripts", lambda body: {"id": "s-2", **body})

        outcome = PlatformScriptCloner(client, clock=fixed_clock).clone(PLATFORM_SOURCE, "Copy of Set TZ", ["10"])

        assert fake_graph.calls_for("POST")[0][2] == {
            "@odata.type": "#microsoft.graph.deviceManagementScript",
            "displayName": "Copy of Set TZ",
            "description": "Cloned from 'Set TZ' on 2024-03-15 09:30:05",
            "scriptContent": "U2V0LVRpbWVab25l",
            "roleScopeTagIds": ["10"],
            "fileName": "set-tz.ps1",
            "runAsAccount": "system",
            "enforceSignatureCheck": False,
            "runAs32Bit": True,
        }
        assert outcome.status == STATUS_CLONED
        assert outcome.new_id == "s-2"
        assert fake_graph.calls_for("PATCH") == []

    def test_corrective_patch_when_tags_not_echoed(self, fake_graph, client):
        fake_graph.add("GET", "/deviceManagement/deviceManagementScripts/s-1", FULL_PLATFORM)
        fake_graph.add("POST", "/deviceManagement/deviceManagementScripts", {"id": "s-2", "displayName": "Copy"})
        fake_graph.add("PATCH", "/deviceManagement/deviceManagementScripts/s-2", None, status=204)

        outcome = PlatformScriptCloner(client).clone(PLATFORM_SOURCE, "Copy", ["10", "11"])

        assert fake_graph.calls_for("PATCH") == [
            (
                "PATCH",
                "/deviceManagement/deviceManagementScripts/s-2",
                {"roleScopeTagIds": ["10", "11"], "@odata.type": "#microsoft.graph.deviceManagementScript"},
            )
        ]
        assert outcome.scope_tag_ids == ["10", "11"]

    def test_missing_content_reported(self, fake_graph, client):
        full = {k: v for k, v in FULL_PLATFORM.items() if k != "scriptContent"}
        fake_graph.add("GET", "/deviceManagement/deviceManagementScripts/s-1", full)

        with pytest.raises(ScriptContentError) as excinfo:
            PlatformScriptCloner(client).clone(PLATFORM_SOURCE, "Copy", ["10"])

        assert excinfo.value.reason == "missing"
        assert "permission" in str(excinfo.value)
        assert fake_graph.mutating_calls == []

    def test_empty_content_reported(self, fake_graph, client):
        fake_graph.add("GET", "/deviceManagement/deviceManagementScripts/s-1", dict(FULL_PLATFORM, scriptContent=""))

        with pytest.raises(ScriptContentError) as excinfo:
            PlatformScriptCloner(client).clone(PLATFORM_SOURCE, "Copy", ["10"])

        assert excinfo.value.reason == "empty"
        assert fake_graph.mutating_calls == []

    def test_default_interactive_name_uses_prefix_policy(self, client):
        names = ExistingNameSet(names=["Copy of Set TZ"])
        assert PlatformScriptCloner(client).default_interactive_name(PLATFORM_SOURCE, names) == "Copy of Set TZ (2)"
        assert "Copy of Set TZ (2)" not in names


class TestRemediationScript:
    def test_clone_carries_both_scripts(self, fake_graph, client, fixed_clock):
        fake_graph.add(
            "GET",
            "/deviceManagement/deviceHealthScripts/h-1",
            {
                "id": "h-1",
                "displayName": "Fix Spooler",
                "publisher": "IT",
                "detectionScriptContent": "ZGV0ZWN0",
                "remediationScriptContent": "Zml4",
                "runAsAccount": "system",
                "detectionScriptParameters": [],
                "isGlobalScript": False,
            },
        )
        fake_graph.add("POST", "/deviceManagement/deviceHealthScripts", lambda body: {"id": "h-2", **body})

        outcome = RemediationScriptCloner(client, clock=fixed_clock).clone(REMEDIATION_SOURCE, "Copy of Fix Spooler", ["11"])

        body = fake_graph.calls_for("POST")[0][2]
        assert body["@odata.type"] == "#microsoft.graph.deviceHealthScript"
        assert body["detectionScriptContent"] == "ZGV0ZWN0"
        assert body["remediationScriptContent"] == "Zml4"
        assert body["publisher"] == "IT"
        assert body["roleScopeTagIds"] == ["11"]
        assert "isGlobalScript" not in body
        assert "id" not in body
        assert outcome.new_id == "h-2"

    def test_missing_detection_script(self, fake_graph, client):
        fake_graph.add("GET", "/deviceManagement/deviceHealthScripts/h-1", {"id": "h-1", "displayName": "Fix Spooler"})

        with pytest.raises(ScriptContentError) as excinfo:
            RemediationScriptCloner(client).clone(REMEDIATION_SOURCE, "Copy", ["10"])
        assert excinfo.value.reason == "missing"
