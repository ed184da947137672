"""
Typer CLI entrypoint for Intune Clone Tool.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Type

import typer
from tabulate import tabulate

from .cloners import ResourceCloner
from .compliance_clone import CompliancePolicyCloner
from .config import Config, ConfigError, load_config
from .configuration_clone import ConfigurationProfileCloner
from .graph_client import DataModelError, GraphApiError, GraphAuth, GraphClient, GraphRequestError
from .logging_utils import setup_logging
from .models import CloneReport, CloneRequest
from .orchestrator import CloneOrchestrator, PromptGate, describe_outcome
from .picker import Prompter
from .scope_tags import CloneConfigurationError, build_tag_index, fetch_scope_tags, lookup_tag_ids
from .script_clone import PlatformScriptCloner, RemediationScriptCloner
from .utils import parse_line_delimited_file, write_json

app = typer.Typer(add_completion=False, help="Clone Intune policies, profiles and scripts between scope tags.")

CLONERS: Dict[str, Type[ResourceCloner]] = {
    "compliance-policy": CompliancePolicyCloner,
    "configuration-profile": ConfigurationProfileCloner,
    "platform-script": PlatformScriptCloner,
    "remediation-script": RemediationScriptCloner,
}


@dataclass
class CliState:
    logger: logging.Logger
    config: Config
    output_json: Optional[Path]
    verbose: bool = False


def _build_client(state: CliState) -> GraphClient:
    """
    Build a GraphClient, surfacing a clear error when no credentials are configured.
    """
    try:
        return GraphClient(
            environment=state.config.environment,
            logger=state.logger,
            auth=GraphAuth(tenant_id=state.config.tenant_id, client_id=state.config.client_id),
            timeout=state.config.timeout,
            debug_api=state.verbose,
        )
    except GraphRequestError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=2)


@app.callback()
def main(
    ctx: typer.Context,
    environment: Optional[str] = typer.Option(None, "--environment", "-e", help="Cloud environment: Global, USGov or USGovDoD."),
    config_file: Optional[Path] = typer.Option(None, help="Optional config file to load defaults."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose debug logging."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Reduce log verbosity."),
    output_json: Optional[Path] = typer.Option(None, "--output-json", help="Write command output to JSON file."),
):
    """
    Configure global options and shared context.
    """
    logger = setup_logging(verbose=verbose, quiet=quiet, logger_name="intune-clone-tool")
    try:
        config = load_config(cli_environment=environment, config_file=str(config_file) if config_file else None)
    except ConfigError as exc:
        typer.echo(f"Config error: {exc}", err=True)
        raise typer.Exit(code=2)

    if config.config_path:
        logger.debug("Loaded config from %s", config.config_path)
    ctx.obj = CliState(logger=logger, config=config, output_json=output_json, verbose=verbose)


def _print_clone_report(report: CloneReport) -> None:
    rows = []
    for outcome in report.outcomes:
        rows.append(
            [
                outcome.source_name,
                outcome.status,
                outcome.new_name or "",
                outcome.new_id or "",
                ", ".join(outcome.scope_tag_ids),
                ", ".join(d.id for d in outcome.dependencies),
            ]
        )
    headers = ["Source", "Status", "New Name", "New ID", "Scope Tag IDs", "Dependencies"]
    if rows:
        typer.echo(tabulate(rows, headers=headers, tablefmt="github"))


def _copy_command(
    ctx: typer.Context,
    cloner_cls: Type[ResourceCloner],
    source_scope_tag: List[str],
    destination_scope_tag: List[str],
    source_name: List[str],
    source_names_file: Optional[Path],
    new_name: Optional[str],
    dry_run: bool,
    confirm: bool,
    output_json: Optional[Path],
) -> None:
    state: CliState = ctx.obj
    logger = state.logger

    names = list(source_name or [])
    if source_names_file:
        try:
            names.extend(parse_line_delimited_file(str(source_names_file)))
        except OSError as exc:
            typer.echo(f"Error reading {source_names_file}: {exc}", err=True)
            raise typer.Exit(code=2)
        if not names:
            typer.echo(f"Error: {source_names_file} contains no source names", err=True)
            raise typer.Exit(code=2)

    prompter = Prompter()
    gate = PromptGate(prompter) if (confirm or state.config.confirm) and not dry_run else None
    client = _build_client(state)
    cloner = cloner_cls(client, logger=logger)
    orchestrator = CloneOrchestrator(cloner, gate=gate, prompter=prompter, logger=logger)
    request = CloneRequest(
        source_tag_names=list(source_scope_tag or []),
        destination_tag_names=list(destination_scope_tag or []),
        source_names=names,
        new_name=new_name,
        dry_run=dry_run,
    )

    if dry_run:
        typer.echo("\n⚠️  DRY RUN MODE - No changes will be made\n")

    try:
        report = orchestrator.run(request)
    except CloneConfigurationError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=2)
    except (GraphRequestError, GraphApiError, DataModelError) as exc:
        logger.error("Clone %s error: %s", cloner.label, exc)
        raise typer.Exit(code=3)

    if not report.outcomes:
        typer.echo(f"No {cloner.label} was cloned ({report.discovered} discovered).")
    elif request.source_names:
        for outcome in report.outcomes:
            typer.echo(describe_outcome(outcome))
    typer.echo()
    _print_clone_report(report)

    json_dest = output_json or state.output_json
    if json_dest:
        payload = {"generatedAt": datetime.now(timezone.utc).isoformat(), **report.to_dict()}
        write_json(json_dest, payload, logger)

    if dry_run:
        typer.echo("\n✓ Dry run completed - no actual changes were made")
    raise typer.Exit(code=report.exit_code)


@app.command("copy-compliance-policy")
def copy_compliance_policy_cmd(
    ctx: typer.Context,
    source_scope_tag: List[str] = typer.Option(..., "--source-scope-tag", help="Scope tag the source policies carry (exactly one)."),
    destination_scope_tag: List[str] = typer.Option(..., "--destination-scope-tag", help="Scope tag for the clones (repeatable, up to 64)."),
    source_name: List[str] = typer.Option(None, "--source-name", help="Exact policy name to clone (repeatable). Omit for interactive mode.", show_default=False),
    source_names_file: Optional[Path] = typer.Option(None, "--source-names-file", help="File with policy names, one per line."),
    new_name: Optional[str] = typer.Option(None, "--new-name", help="Name for the clone; only honored with a single source name."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be done without making changes."),
    confirm: bool = typer.Option(False, "--confirm", help="Ask for confirmation before each clone."),
    output_json: Optional[Path] = typer.Option(None, "--output-json", "--json-out", help="Write command output to JSON file."),
):
    """
    Clone compliance policies tagged with exactly the source scope tag.

    A custom compliance script referenced by a policy is cloned first and the new
    policy points at the cloned script. Scheduled actions are replaced with a
    single immediate "block" action.

    Examples:
        # Clone two policies by name
        intune-clone-tool copy-compliance-policy --source-scope-tag Production \\
            --destination-scope-tag Test --source-name "Win10 Baseline" --source-name "macOS Baseline"

        # Pick policies interactively, preview only
        intune-clone-tool copy-compliance-policy --source-scope-tag Production --destination-scope-tag Test --dry-run
    """
    _copy_command(
        ctx, CompliancePolicyCloner, source_scope_tag, destination_scope_tag, source_name,
        source_names_file, new_name, dry_run, confirm, output_json,
    )


@app.command("copy-configuration-profile")
def copy_configuration_profile_cmd(
    ctx: typer.Context,
    source_scope_tag: List[str] = typer.Option(..., "--source-scope-tag", help="Scope tag the source profiles carry (exactly one)."),
    destination_scope_tag: List[str] = typer.Option(..., "--destination-scope-tag", help="Scope tag for the clones (repeatable, up to 64)."),
    source_name: List[str] = typer.Option(None, "--source-name", help="Exact profile name to clone (repeatable). Omit for interactive mode.", show_default=False),
    source_names_file: Optional[Path] = typer.Option(None, "--source-names-file", help="File with profile names, one per line."),
    new_name: Optional[str] = typer.Option(None, "--new-name", help="Name for the clone; only honored with a single source name."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be done without making changes."),
    confirm: bool = typer.Option(False, "--confirm", help="Ask for confirmation before each clone."),
    output_json: Optional[Path] = typer.Option(None, "--output-json", "--json-out", help="Write command output to JSON file."),
):
    """
    Clone Settings Catalog policies and Endpoint Security intents tagged with exactly the source scope tag.
    """
    _copy_command(
        ctx, ConfigurationProfileCloner, source_scope_tag, destination_scope_tag, source_name,
        source_names_file, new_name, dry_run, confirm, output_json,
    )


@app.command("copy-platform-script")
def copy_platform_script_cmd(
    ctx: typer.Context,
    source_scope_tag: List[str] = typer.Option(..., "--source-scope-tag", help="Scope tag the source scripts carry (exactly one)."),
    destination_scope_tag: List[str] = typer.Option(..., "--destination-scope-tag", help="Scope tag for the clones (repeatable, up to 64)."),
    source_name: List[str] = typer.Option(None, "--source-name", help="Exact script name to clone (repeatable). Omit for interactive mode.", show_default=False),
    source_names_file: Optional[Path] = typer.Option(None, "--source-names-file", help="File with script names, one per line."),
    new_name: Optional[str] = typer.Option(None, "--new-name", help="Name for the clone; only honored with a single source name."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be done without making changes."),
    confirm: bool = typer.Option(False, "--confirm", help="Ask for confirmation before each clone."),
    output_json: Optional[Path] = typer.Option(None, "--output-json", "--json-out", help="Write command output to JSON file."),
):
    """
    Clone platform (PowerShell) scripts tagged with exactly the source scope tag.
    """
    _copy_command(
        ctx, PlatformScriptCloner, source_scope_tag, destination_scope_tag, source_name,
        source_names_file, new_name, dry_run, confirm, output_json,
    )


@app.command("copy-remediation-script")
def copy_remediation_script_cmd(
    ctx: typer.Context,
    source_scope_tag: List[str] = typer.Option(..., "--source-scope-tag", help="Scope tag the source scripts carry (exactly one)."),
    destination_scope_tag: List[str] = typer.Option(..., "--destination-scope-tag", help="Scope tag for the clones (repeatable, up to 64)."),
    source_name: List[str] = typer.Option(None, "--source-name", help="Exact script name to clone (repeatable). Omit for interactive mode.", show_default=False),
    source_names_file: Optional[Path] = typer.Option(None, "--source-names-file", help="File with script names, one per line."),
    new_name: Optional[str] = typer.Option(None, "--new-name", help="Name for the clone; only honored with a single source name."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be done without making changes."),
    confirm: bool = typer.Option(False, "--confirm", help="Ask for confirmation before each clone."),
    output_json: Optional[Path] = typer.Option(None, "--output-json", "--json-out", help="Write command output to JSON file."),
):
    """
    Clone remediation (detect + remediate) scripts tagged with exactly the source scope tag.
    """
    _copy_command(
        ctx, RemediationScriptCloner, source_scope_tag, destination_scope_tag, source_name,
        source_names_file, new_name, dry_run, confirm, output_json,
    )


@app.command("list-scope-tags")
def list_scope_tags_cmd(
    ctx: typer.Context,
    output_json: Optional[Path] = typer.Option(None, "--output-json", "--json-out", help="Write command output to JSON file."),
):
    """
    List scope tags defined in the tenant.
    """
    state: CliState = ctx.obj
    logger = state.logger
    try:
        client = _build_client(state)
        tags = fetch_scope_tags(client)
    except (GraphRequestError, GraphApiError) as exc:
        logger.error("Scope tag listing error: %s", exc)
        raise typer.Exit(code=3)

    typer.echo(tabulate([[t.id, t.display_name] for t in tags], headers=["ID", "Name"], tablefmt="github"))
    json_dest = output_json or state.output_json
    if json_dest:
        payload: Dict[str, Any] = {
            "generatedAt": datetime.now(timezone.utc).isoformat(),
            "scopeTags": [{"id": t.id, "displayName": t.display_name} for t in tags],
        }
        write_json(json_dest, payload, logger)


@app.command("discover")
def discover_cmd(
    ctx: typer.Context,
    kind: str = typer.Option(..., "--kind", help=f"Resource kind: {', '.join(CLONERS)}."),
    scope_tag: str = typer.Option(..., "--scope-tag", help="List items tagged with exactly this scope tag."),
    output_json: Optional[Path] = typer.Option(None, "--output-json", "--json-out", help="Write command output to JSON file."),
):
    """
    Show which items a copy command would consider for a scope tag.
    """
    state: CliState = ctx.obj
    logger = state.logger
    cloner_cls = CLONERS.get(kind)
    if cloner_cls is None:
        typer.echo(f"Error: unknown kind '{kind}'. Expected one of: {', '.join(CLONERS)}", err=True)
        raise typer.Exit(code=2)

    client = _build_client(state)
    try:
        tag_ids = lookup_tag_ids([scope_tag], build_tag_index(fetch_scope_tags(client)))
        items = cloner_cls(client, logger=logger).discover(tag_ids)
    except CloneConfigurationError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=2)
    except (GraphRequestError, GraphApiError, DataModelError) as exc:
        logger.error("Discovery error: %s", exc)
        raise typer.Exit(code=3)

    rows = [[item.id, item.name, item.kind, ", ".join(sorted(item.scope_tag_ids))] for item in items]
    typer.echo(tabulate(rows, headers=["ID", "Name", "Kind", "Scope Tag IDs"], tablefmt="github"))
    typer.echo(f"\n{len(items)} item(s) tagged exactly '{scope_tag}'")

    json_dest = output_json or state.output_json
    if json_dest:
        payload = {
            "generatedAt": datetime.now(timezone.utc).isoformat(),
            "kind": kind,
            "scopeTag": scope_tag,
            "items": [
                {"id": i.id, "name": i.name, "kind": i.kind, "scopeTagIds": sorted(i.scope_tag_ids)} for i in items
            ],
        }
        write_json(json_dest, payload, logger)


def run():
    try:
        app()
    except Exception as exc:  # pylint: disable=broad-except
        typer.echo(f"Fatal error: {exc}", err=True)
        sys.exit(2)


if __name__ == "__main__":
    run()
