"""GenerateWorkflowsUseCase: batch outcomes never abort on a single owner's failure."""

from fakes import World, process_template, sub_process_template, task_template

from procflow.shared.enums import GenerationStatus, OwnerKind


async def test_batch_reports_errors_and_continues(world: World) -> None:
    world.templates.add_process(process_template("proc-ok"))
    world.templates.add_sub_process(
        sub_process_template("sp-ok", "proc-ok"), [task_template("tt-1", "sp-ok")]
    )
    world.templates.add_process(process_template("proc-bad"))
    world.templates.add_sub_process(sub_process_template("sp-bad", "proc-bad"), [])

    summary = await world.engine().generate_workflows.execute(
        process_ids=["proc-bad", "proc-ok", "proc-missing"]
    )

    statuses = {r.owner.id: r.status for r in summary.results}
    assert statuses == {
        "proc-bad": GenerationStatus.ERROR,
        "proc-ok": GenerationStatus.CREATED,
        "proc-missing": GenerationStatus.ERROR,
    }
    assert summary.counts == {"total": 3, "created": 1, "updated": 0, "skipped": 0, "errors": 2}
    assert len(summary.warnings) == 1
    assert "proc-bad" in summary.warnings[0]


async def test_no_ids_means_every_active_owner(world: World) -> None:
    world.templates.add_process(process_template())
    world.templates.add_sub_process(
        sub_process_template("sp-1"), [task_template("tt-1", "sp-1")]
    )

    summary = await world.engine().generate_workflows.execute(dry_run=True)

    kinds = sorted((r.owner.kind, r.owner.id) for r in summary.results)
    assert kinds == [(OwnerKind.PROCESS, "proc-1"), (OwnerKind.SUB_PROCESS, "sp-1")]
    assert summary.dry_run
    assert world.workflows.rows == {}
