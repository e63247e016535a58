"""Tests for workflow endpoints (generation, templates, runs) over in-memory repositories."""

from fakes import (
    ACTOR_HEADERS,
    World,
    process_template,
    seed_parallel_process,
    sub_process_template,
)
from httpx import AsyncClient


async def test_generate_creates_default_workflow(client: AsyncClient, api_world: World) -> None:
    seed_parallel_process(api_world)

    response = await client.post("/api/v1/workflows/generate", json={"process_ids": ["proc-1"]})

    assert response.status_code == 200
    data = response.json()
    assert data["dry_run"] is False
    (result,) = data["results"]
    assert result["owner_kind"] == "process"
    assert result["owner_id"] == "proc-1"
    assert result["status"] == "created"
    assert result["version"] == 1

    template = await client.get(f"/api/v1/workflows/{result['workflow_template_id']}")
    assert template.status_code == 200
    node_types = {n["type"] for n in template.json()["nodes"]}
    assert {"start", "end", "fork", "join"} <= node_types


async def test_generate_reports_per_owner_errors(client: AsyncClient, api_world: World) -> None:
    api_world.templates.add_process(process_template("proc-empty"))
    api_world.templates.add_sub_process(
        sub_process_template("sp-empty", process_id="proc-empty"), []
    )

    response = await client.post(
        "/api/v1/workflows/generate", json={"process_ids": ["proc-empty", "proc-unknown"]}
    )

    assert response.status_code == 200
    statuses = [r["status"] for r in response.json()["results"]]
    assert statuses == ["error", "error"]


async def test_generate_dry_run_writes_nothing(client: AsyncClient, api_world: World) -> None:
    seed_parallel_process(api_world)

    response = await client.post(
        "/api/v1/workflows/generate", json={"process_ids": ["proc-1"], "dry_run": True}
    )

    assert response.status_code == 200
    assert response.json()["dry_run"] is True
    assert api_world.workflows.rows == {}


async def test_unknown_workflow_template_is_404(client: AsyncClient, api_world: World) -> None:
    response = await client.get("/api/v1/workflows/wt-missing")
    assert response.status_code == 404
    assert response.json()["error"] == "RESOURCE_NOT_FOUND"


async def test_workflow_run_after_submission(client: AsyncClient, api_world: World) -> None:
    seed_parallel_process(api_world)
    submitted = await client.post(
        "/api/v1/requests",
        json={"process_template_id": "proc-1", "title": "Hire"},
        headers=ACTOR_HEADERS,
    )
    run_id = submitted.json()["workflow_run"]["id"]

    response = await client.get(f"/api/v1/workflows/runs/{run_id}")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "running"
    assert data["execution_log"][0]["action"] == "workflow_started"
