"""Batch workflow generation: one result per owner, failures never abort the batch."""

from __future__ import annotations

from collections.abc import Sequence

from procflow.application.dtos.workflow import (
    GenerationResult,
    GenerationSummary,
    WorkflowOwner,
)
from procflow.application.interfaces.repositories import ITemplateRepository
from procflow.application.services.graph_generator import WorkflowGraphGenerator
from procflow.domain.exceptions import GraphInvalidError, ProcflowException
from procflow.shared.enums import GenerationStatus
from procflow.shared.telemetry.logging import get_logger
from procflow.shared.telemetry.tracing import traced

logger = get_logger(__name__)


class GenerateWorkflowsUseCase:
    """Generates workflow templates for many processes and sub-processes."""

    def __init__(
        self,
        generator: WorkflowGraphGenerator,
        template_repo: ITemplateRepository,
    ) -> None:
        self._generator = generator
        self._template_repo = template_repo

    async def _owners(
        self, process_ids: Sequence[str], sub_process_ids: Sequence[str]
    ) -> list[WorkflowOwner]:
        if not process_ids and not sub_process_ids:
            process_ids = await self._template_repo.list_process_ids()
            sub_process_ids = await self._template_repo.list_sub_process_ids()
        return [WorkflowOwner.process(i) for i in process_ids] + [
            WorkflowOwner.sub_process(i) for i in sub_process_ids
        ]

    @traced("generate_workflows.execute")
    async def execute(
        self,
        *,
        process_ids: Sequence[str] = (),
        sub_process_ids: Sequence[str] = (),
        force: bool = False,
        dry_run: bool = False,
    ) -> GenerationSummary:
        """Generate workflows for the given owners (all active owners when none given).

        Args:
            process_ids: Process templates to generate for.
            sub_process_ids: Sub-process templates to generate for.
            force: Supersede existing defaults.
            dry_run: Report outcomes without writing.

        Returns:
            GenerationSummary with per-owner results, warnings and counts.
        """
        results: list[GenerationResult] = []
        warnings: list[str] = []
        for owner in await self._owners(process_ids, sub_process_ids):
            try:
                result = await self._generator.generate(owner, force=force, dry_run=dry_run)
            except GraphInvalidError as e:
                if e.reason == "no_task_templates":
                    warnings.append(f"{owner.kind.value} {owner.id}: {e.message}")
                logger.warning(
                    "Workflow generation failed for %s %s: %s",
                    owner.kind.value,
                    owner.id,
                    e.message,
                )
                result = GenerationResult(owner, GenerationStatus.ERROR, e.message)
            except ProcflowException as e:
                logger.warning(
                    "Workflow generation failed for %s %s: %s",
                    owner.kind.value,
                    owner.id,
                    e.message,
                )
                result = GenerationResult(owner, GenerationStatus.ERROR, e.message)
            results.append(result)
        summary = GenerationSummary.from_results(results, warnings, dry_run=dry_run)
        logger.info("Workflow generation finished: %s", summary.counts)
        return summary
