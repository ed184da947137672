import json

import pytest
from typer.testing import CliRunner

from intune_clone_tool.cli import app

runner = CliRunner()

SCRIPTS_PATH = "/deviceManagement/deviceManagementScripts"


@pytest.fixture(autouse=True)
def cli_env(monkeypatch, tmp_path):
    monkeypatch.setenv("GRAPH_BEARER_TOKEN", "test-token")
    monkeypatch.setenv("INTUNE_CLONE_TOOL_CONFIG", str(tmp_path / "absent.yml"))
    monkeypatch.delenv("INTUNE_CLONE_TOOL_ENVIRONMENT", raising=False)


@pytest.fixture
def scripts(fake_graph):
    fake_graph.add(
        "GET",
        SCRIPTS_PATH,
        {"value": [{"id": "s1", "displayName": "Set TZ", "roleScopeTagIds": ["5"]}]},
    )
    fake_graph.add("GET", f"{SCRIPTS_PATH}/s1", {"id": "s1", "displayName": "Set TZ", "scriptContent": "V3JpdGU="})
    fake_graph.add("POST", SCRIPTS_PATH, lambda body: {"id": "s2", **body})
    return fake_graph


def _copy_args(*extra):
    return [
        "copy-platform-script",
        "--source-scope-tag", "Production",
        "--destination-scope-tag", "Test",
        *extra,
    ]


def test_dry_run_exits_zero_without_changes(scripts):
    result = runner.invoke(app, _copy_args("--source-name", "Set TZ", "--dry-run"))

    assert result.exit_code == 0, result.output
    assert "DRY RUN MODE" in result.output
    assert "Would clone 'Set TZ'" in result.output
    assert scripts.mutating_calls == []


def test_batch_clone_writes_json(scripts, tmp_path):
    out = tmp_path / "report.json"
    result = runner.invoke(app, _copy_args("--source-name", "Set TZ", "--output-json", str(out)))

    assert result.exit_code == 0, result.output
    data = json.loads(out.read_text())
    assert data["summary"]["cloned"] == 1
    assert data["outcomes"][0]["newId"] == "s2"
    assert data["outcomes"][0]["scopeTagIds"] == ["11"]


def test_source_names_file(scripts, tmp_path):
    names = tmp_path / "names.txt"
    names.write_text("# scripts to copy\nSet TZ\n\nMissing\n")

    result = runner.invoke(app, _copy_args("--source-names-file", str(names)))

    assert result.exit_code == 1
    assert "'Missing' not found" in result.output
    assert len(scripts.calls_for("POST")) == 1


def test_unknown_scope_tag_exits_two(scripts):
    result = runner.invoke(
        app,
        ["copy-platform-script", "--source-scope-tag", "Production", "--destination-scope-tag", "Nope",
         "--source-name", "Set TZ"],
    )

    assert result.exit_code == 2
    assert "Scope tag 'Nope' not found" in result.output
    assert scripts.mutating_calls == []


def test_two_source_tags_exit_two(scripts):
    result = runner.invoke(
        app,
        ["copy-platform-script", "--source-scope-tag", "Production", "--source-scope-tag", "Sales",
         "--destination-scope-tag", "Test", "--source-name", "Set TZ"],
    )
    assert result.exit_code == 2


def test_graph_failure_exits_three(fake_graph):
    result = runner.invoke(app, _copy_args("--source-name", "Set TZ"))
    assert result.exit_code == 3


def test_missing_credentials_exit_two(fake_graph, monkeypatch):
    for var in ("GRAPH_BEARER_TOKEN", "AZURE_TENANT_ID", "AZURE_CLIENT_ID", "AZURE_CLIENT_SECRET"):
        monkeypatch.delenv(var, raising=False)
    result = runner.invoke(app, _copy_args("--source-name", "Set TZ"))
    assert result.exit_code == 2
    assert "No Graph credentials" in result.output


def test_invalid_environment_exits_two(fake_graph):
    result = runner.invoke(app, ["--environment", "Mars", "list-scope-tags"])
    assert result.exit_code == 2
    assert "Unknown environment" in result.output


def test_list_scope_tags(fake_graph):
    result = runner.invoke(app, ["list-scope-tags"])
    assert result.exit_code == 0, result.output
    assert "Production" in result.output
    assert "Development" in result.output


def test_discover_lists_exact_matches(scripts):
    result = runner.invoke(app, ["discover", "--kind", "platform-script", "--scope-tag", "production"])
    assert result.exit_code == 0, result.output
    assert "Set TZ" in result.output
    assert "1 item(s)" in result.output


def test_discover_unknown_kind(fake_graph):
    result = runner.invoke(app, ["discover", "--kind", "apps", "--scope-tag", "Production"])
    assert result.exit_code == 2


def test_names_file_without_names_exits_two(scripts, tmp_path):
    names = tmp_path / "names.txt"
    names.write_text("# nothing to copy yet\n\n   \n")

    result = runner.invoke(app, _copy_args("--source-names-file", str(names)))

    assert result.exit_code == 2
    assert "contains no source names" in result.output
    assert scripts.calls_for("GET", SCRIPTS_PATH) == []
