import pytest

from intune_clone_tool.discovery import (
    CONFIGURATION_DOMAIN,
    discover_resources,
    tag_set_matches,
)
from intune_clone_tool.models import COMPLIANCE_POLICY, INTENT, PLATFORM_SCRIPT, SETTINGS_CATALOG


def test_exact_set_equality_only():
    assert tag_set_matches(["A", "B"], ["B", "A"])
    assert not tag_set_matches(["A", "B"], ["A"])  # resource superset of filter
    assert not tag_set_matches(["A", "B"], ["A", "B", "C"])  # resource subset of filter
    assert not tag_set_matches([], ["A"])


def test_ids_compared_as_strings():
    assert tag_set_matches([5], ["5"])


def test_production_scenario_returns_only_exact_match(fake_graph, client):
    fake_graph.add(
        "GET",
        "/deviceManagement/deviceCompliancePolicies",
        {
            "value": [
                {"id": "p1", "displayName": "Exact", "roleScopeTagIds": ["5"]},
                {"id": "p2", "displayName": "Superset", "roleScopeTagIds": ["5", "6"]},
                {"id": "p3", "displayName": "Untagged", "roleScopeTagIds": []},
            ]
        },
    )

    found = discover_resources(client, COMPLIANCE_POLICY, ["5"])

    assert [f.id for f in found] == ["p1"]
    assert found[0].kind == COMPLIANCE_POLICY
    assert found[0].scope_tag_ids == frozenset({"5"})


def test_compliance_policies_without_name_are_skipped(fake_graph, client):
    fake_graph.add(
        "GET",
        "/deviceManagement/deviceCompliancePolicies",
        {
            "value": [
                {"id": "p1", "displayName": "", "roleScopeTagIds": ["5"]},
                {"id": "", "displayName": "No id", "roleScopeTagIds": ["5"]},
                {"id": "p3", "displayName": "No tags", "roleScopeTagIds": None},
            ]
        },
    )
    assert discover_resources(client, COMPLIANCE_POLICY, ["5"]) == []


def test_configuration_domain_unions_catalog_and_intents(fake_graph, client):
    fake_graph.add(
        "GET",
        "/deviceManagement/configurationPolicies",
        {
            "value": [
                {"id": "c1", "name": "Catalog A", "roleScopeTagIds": ["5"]},
                {"id": "c2", "name": "Catalog B", "roleScopeTagIds": ["0"]},
            ]
        },
    )
    fake_graph.add(
        "GET",
        "/deviceManagement/intents",
        {"value": [{"id": "i1", "displayName": "Defender AV", "roleScopeTagIds": ["5"]}]},
    )

    found = discover_resources(client, CONFIGURATION_DOMAIN, ["5"])

    assert [(f.id, f.name, f.kind) for f in found] == [
        ("c1", "Catalog A", SETTINGS_CATALOG),
        ("i1", "Defender AV", INTENT),
    ]


def test_platform_scripts_discovered(fake_graph, client):
    fake_graph.add(
        "GET",
        "/deviceManagement/deviceManagementScripts",
        {"value": [{"id": "s1", "displayName": "Set TZ", "roleScopeTagIds": ["6", "5"]}]},
    )
    assert [f.id for f in discover_resources(client, PLATFORM_SCRIPT, ["5", "6"])] == ["s1"]


def test_unknown_kind_rejected(client):
    with pytest.raises(ValueError, match="Unknown resource kind"):
        discover_resources(client, "apps", ["5"])
