"""
Clone orchestration: tag resolution, discovery, naming and cloning in batch or interactive mode.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from .cloners import ResourceCloner, ScopeTagPatchError
from .graph_client import DataModelError, GraphApiError, GraphRequestError
from .models import (
    STATUS_DRY_RUN,
    STATUS_FAILED,
    STATUS_NOT_FOUND,
    STATUS_SKIPPED,
    CloneOutcome,
    CloneReport,
    CloneRequest,
    ResourceSummary,
)
from .naming import (
    ExistingNameSet,
    allocate_interactive_name,
    allocate_timestamped_name,
    resolve_override_name,
)
from .picker import Prompter, find_by_name, pick_resource
from .scope_tags import ResolvedScopeTags, resolve_scope_tags
from .script_clone import ScriptContentError
from .utils import dedupe_names

CLONE_ERRORS = (GraphRequestError, GraphApiError, DataModelError, ScriptContentError, ValueError)


class ConfirmationGate:
    """Decides whether a mutating action may run."""

    declined_status = STATUS_SKIPPED

    def should_process(self, target: str, action: str) -> bool:
        raise NotImplementedError


class AutoApproveGate(ConfirmationGate):
    def should_process(self, target: str, action: str) -> bool:
        return True


class DryRunGate(ConfirmationGate):
    declined_status = STATUS_DRY_RUN

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self.declined: List[str] = []

    def should_process(self, target: str, action: str) -> bool:
        self.logger.info("[DRY RUN] Would perform '%s' on target '%s'", action, target)
        self.declined.append(target)
        return False


class PromptGate(ConfirmationGate):
    def __init__(self, prompter: Prompter):
        self.prompter = prompter

    def should_process(self, target: str, action: str) -> bool:
        return self.prompter.confirm(f"{action} (source '{target}')?")


class CloneOrchestrator:
    """
    Runs one clone invocation for a single resource kind.

    Args:
        cloner: Kind-specific cloner
        gate: Confirmation gate consulted before every clone; replaced by a
            DryRunGate when the request is a dry run
        prompter: Input abstraction for interactive mode
        names: Name cache; built from the cloner when omitted
    """

    def __init__(
        self,
        cloner: ResourceCloner,
        gate: Optional[ConfirmationGate] = None,
        prompter: Optional[Prompter] = None,
        names: Optional[ExistingNameSet] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.cloner = cloner
        self.gate = gate or AutoApproveGate()
        self.prompter = prompter or Prompter()
        self.names = names if names is not None else ExistingNameSet(loader=cloner.list_existing_names)
        self.logger = logger or logging.getLogger(__name__)

    def run(self, request: CloneRequest) -> CloneReport:
        """
        Execute a clone request.

        Raises:
            CloneConfigurationError: wrong number of tag names, or an unknown tag name
        """
        if request.dry_run and not isinstance(self.gate, DryRunGate):
            self.gate = DryRunGate(logger=self.logger)

        resolved = resolve_scope_tags(
            self.cloner.client, request.source_tag_names, request.destination_tag_names, logger=self.logger
        )
        self.names.refresh()
        items = self.cloner.discover(resolved.source_ids)
        report = CloneReport(kind=self.cloner.kind, discovered=len(items))

        if not items:
            self.logger.warning(
                "No %s found with exactly scope tag '%s'; nothing to clone",
                self.cloner.label, resolved.source_names[0],
            )
            return report

        if request.interactive:
            self._run_interactive(items, resolved, request, report)
        else:
            self._run_batch(items, resolved, request, report)
        return report

    def _run_batch(
        self,
        items: List[ResourceSummary],
        resolved: ResolvedScopeTags,
        request: CloneRequest,
        report: CloneReport,
    ) -> None:
        source_names = dedupe_names(request.source_names)
        override = request.new_name
        if override and len(source_names) > 1:
            self.logger.warning(
                "A new name override applies only to a single source name; ignoring '%s' for %d names",
                override, len(source_names),
            )
            override = None

        for name in source_names:
            source = find_by_name(items, name)
            if source is None:
                self.logger.warning(
                    "%s '%s' not found among items tagged '%s'",
                    self.cloner.label.capitalize(), name, resolved.source_names[0],
                )
                report.outcomes.append(
                    CloneOutcome(source_name=name, status=STATUS_NOT_FOUND, message="not found")
                )
                continue

            new_name = None
            if override:
                self.names.refresh()
                new_name = resolve_override_name(
                    override,
                    self.names,
                    normalize_dashes=self.cloner.normalize_dashes,
                    now=self.cloner.clock(),
                    logger=self.logger,
                )
                if new_name is None:
                    self.logger.warning("New name override is blank; generating a name instead")
            if new_name is None:
                new_name = allocate_timestamped_name(source.name, self.names, now=self.cloner.clock())

            report.outcomes.append(self._clone_one(source, new_name, resolved))

    def _run_interactive(
        self,
        items: List[ResourceSummary],
        resolved: ResolvedScopeTags,
        request: CloneRequest,
        report: CloneReport,
    ) -> None:
        first_default = request.new_name
        while True:
            self.names.refresh()
            source = pick_resource(items, self.prompter, title=f"Select a {self.cloner.label} to clone")
            if source is None:
                break

            default_name = first_default or self.cloner.default_interactive_name(source, self.names)
            first_default = None
            new_name = allocate_interactive_name(
                default_name,
                self.names,
                self.prompter,
                normalize_dashes=self.cloner.normalize_dashes,
                now=self.cloner.clock(),
                logger=self.logger,
            )
            outcome = self._clone_one(source, new_name, resolved)
            report.outcomes.append(outcome)
            self.prompter.echo(describe_outcome(outcome))

            if not self.prompter.confirm(f"Clone another {self.cloner.label}?"):
                break

    def _clone_one(self, source: ResourceSummary, new_name: str, resolved: ResolvedScopeTags) -> CloneOutcome:
        action = (
            f"Clone {self.cloner.label} to '{new_name}' with scope tags "
            f"{', '.join(resolved.destination_names)}"
        )
        if not self.gate.should_process(source.name, action):
            return CloneOutcome(
                source_name=source.name,
                status=self.gate.declined_status,
                new_name=new_name,
                scope_tag_ids=list(resolved.destination_ids),
            )
        try:
            return self.cloner.clone(source, new_name, list(resolved.destination_ids))
        except ScopeTagPatchError as exc:
            self.logger.warning("Scope tags not applied to %s '%s': %s", self.cloner.label, new_name, exc)
            return CloneOutcome(
                source_name=source.name,
                status=STATUS_FAILED,
                new_name=new_name,
                new_id=exc.new_id,
                message=str(exc),
            )
        except CLONE_ERRORS as exc:
            self.logger.warning("Failed to clone %s '%s': %s", self.cloner.label, source.name, exc)
            return CloneOutcome(
                source_name=source.name,
                status=STATUS_FAILED,
                new_name=new_name,
                message=str(exc),
            )


def describe_outcome(outcome: CloneOutcome) -> str:
    if outcome.status == STATUS_FAILED:
        return f"✗ '{outcome.source_name}' failed: {outcome.message}"
    if outcome.status == STATUS_NOT_FOUND:
        return f"✗ '{outcome.source_name}' not found"
    if outcome.status == STATUS_DRY_RUN:
        return f"[DRY RUN] Would clone '{outcome.source_name}' -> '{outcome.new_name}'"
    if outcome.status == STATUS_SKIPPED:
        return f"Skipped '{outcome.source_name}'"
    return (
        f"✓ Cloned '{outcome.source_name}' -> '{outcome.new_name}' (id {outcome.new_id}) "
        f"with scope tags {', '.join(outcome.scope_tag_ids)}"
    )
