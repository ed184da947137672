import pytest

from intune_clone_tool.scope_tags import (
    CloneConfigurationError,
    ScopeTagNotFoundError,
    resolve_scope_tags,
)


def test_resolves_names_case_insensitively_in_order(fake_graph, client):
    resolved = resolve_scope_tags(client, ["production"], ["Test", "DEVELOPMENT"])
    assert resolved.source_ids == ["5"]
    assert resolved.destination_ids == ["11", "10"]


def test_catalog_fetched_once(fake_graph, client):
    resolve_scope_tags(client, ["Production"], ["Development", "Test", "Sales"])
    assert len(fake_graph.calls_for("GET", "/deviceManagement/roleScopeTags")) == 1


def test_unknown_destination_tag_fails_fast(fake_graph, client):
    with pytest.raises(ScopeTagNotFoundError) as excinfo:
        resolve_scope_tags(client, ["Production"], ["Test", "Nope"])
    message = str(excinfo.value)
    assert "Scope tag" in message and "not found" in message
    assert excinfo.value.tag_name == "Nope"


def test_partial_name_is_not_a_match(fake_graph, client):
    with pytest.raises(ScopeTagNotFoundError):
        resolve_scope_tags(client, ["Prod"], ["Test"])


def test_more_than_one_source_tag_rejected_before_any_call(fake_graph, client):
    with pytest.raises(CloneConfigurationError, match="Exactly one source scope tag"):
        resolve_scope_tags(client, ["Production", "Sales"], ["Test"])
    assert fake_graph.calls == []


def test_destination_tag_limit(fake_graph, client):
    with pytest.raises(CloneConfigurationError, match="At most 64"):
        resolve_scope_tags(client, ["Production"], [f"T{i}" for i in range(65)])
    with pytest.raises(CloneConfigurationError, match="At least one"):
        resolve_scope_tags(client, ["Production"], [])
