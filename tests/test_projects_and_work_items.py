"""Project, repository and work item adapter tests (in-memory stubs, no network)."""

from __future__ import annotations

from typing import Any

import azure_devops_mcp.projects as projects
import azure_devops_mcp.work_items as work_items
import pytest
from azure_devops_mcp.connection import Connection
from azure_devops_mcp.errors import (NOT_FOUND, REMOTE_OPERATION_FAILED,
                                     SafeError)


class Recorder:
    """Generic async stub: attribute access yields a coroutine answering from `responses`."""

    def __init__(self, responses: dict[str, Any]) -> None:
        self._responses = responses
        self.calls: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = []

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)

        async def _call(*args: Any, **kwargs: Any) -> Any:
            self.calls.append((name, args, kwargs))
            if name not in self._responses:
                raise AssertionError(f"Unexpected call: {name}")
            val = self._responses[name]
            if isinstance(val, Exception):
                raise val
            return val

        return _call


def _connection(*, git: Recorder | None = None, core: Recorder | None = None, wit: Recorder | None = None) -> Connection:
    return Connection(
        client=None,  # type: ignore[arg-type]
        git=git or Recorder({}),  # type: ignore[arg-type]
        core=core or Recorder({}),  # type: ignore[arg-type]
        work_items=wit or Recorder({}),  # type: ignore[arg-type]
    )


@pytest.mark.asyncio
async def test_list_projects_passes_paging() -> None:
    core = Recorder({"get_projects": [{"name": "Fabrikam"}]})

    out = await projects.list_projects(_connection(core=core), {"top": 5, "skip": 10})

    assert out == [{"name": "Fabrikam"}]
    assert core.calls == [("get_projects", (), {"top": 5, "skip": 10})]


@pytest.mark.asyncio
async def test_get_project_missing_is_not_found() -> None:
    core = Recorder({"get_project": None})

    with pytest.raises(SafeError) as exc:
        _ = await projects.get_project(_connection(core=core), {"projectId": "Ghost"})

    assert exc.value.code == NOT_FOUND
    assert exc.value.message == "Project 'Ghost' not found"


@pytest.mark.asyncio
async def test_get_repository_missing_is_not_found() -> None:
    git = Recorder({"get_repository": None})

    with pytest.raises(SafeError) as exc:
        _ = await projects.get_repository(_connection(git=git), {"projectId": "Fabrikam", "repositoryId": "web"})

    assert exc.value.message == "Repository 'web' not found in project 'Fabrikam'"


@pytest.mark.asyncio
async def test_list_repositories_wraps_failure() -> None:
    git = Recorder({"get_repositories": RuntimeError("503")})

    with pytest.raises(SafeError) as exc:
        _ = await projects.list_repositories(_connection(git=git), {"projectId": "Fabrikam"})

    assert exc.value.code == REMOTE_OPERATION_FAILED
    assert exc.value.message == "Failed to list repositories: 503"


@pytest.mark.asyncio
async def test_get_work_item_missing_is_not_found() -> None:
    wit = Recorder({"get_work_item": None})

    with pytest.raises(SafeError) as exc:
        _ = await work_items.get_work_item(_connection(wit=wit), {"workItemId": 77, "expand": "All"})

    assert exc.value.message == "Work item '77' not found"
    assert wit.calls == [("get_work_item", (77,), {"expand": "All"})]


@pytest.mark.asyncio
async def test_list_work_items_defaults_to_project_wiql_and_pages_ids() -> None:
    wit = Recorder(
        {
            "query_by_wiql": {"workItems": [{"id": 1}, {"id": 2}, {"id": 3}, {"id": 2}]},
            "get_work_items": [{"id": 2}, {"id": 3}],
        }
    )

    out = await work_items.list_work_items(_connection(wit=wit), {"projectId": "Fabrikam", "skip": 1, "top": 5})

    assert out == [{"id": 2}, {"id": 3}]
    assert wit.calls[0] == ("query_by_wiql", (work_items.DEFAULT_WIQL, "Fabrikam", None), {})
    assert wit.calls[1] == ("get_work_items", ([2, 3],), {})


@pytest.mark.asyncio
async def test_list_work_items_by_saved_query_reads_link_targets() -> None:
    wit = Recorder(
        {
            "query_by_id": {"workItemRelations": [{"source": None, "target": {"id": 8}}, {"target": {"id": 9}}]},
            "get_work_items": [{"id": 8}, {"id": 9}],
        }
    )

    out = await work_items.list_work_items(
        _connection(wit=wit), {"projectId": "Fabrikam", "queryId": "q-1", "teamId": "Core"}
    )

    assert [w["id"] for w in out] == [8, 9]
    assert wit.calls[0] == ("query_by_id", ("q-1", "Fabrikam", "Core"), {})


@pytest.mark.asyncio
async def test_list_work_items_empty_query_skips_batch_fetch() -> None:
    wit = Recorder({"query_by_wiql": {"workItems": []}})

    out = await work_items.list_work_items(_connection(wit=wit), {"projectId": "Fabrikam", "wiql": "SELECT 1"})

    assert out == []
    assert [c[0] for c in wit.calls] == ["query_by_wiql"]


def test_build_work_item_document_maps_fields() -> None:
    doc = work_items.build_work_item_document(
        {
            "title": "Crash on start",
            "priority": 1,
            "assignedTo": "ada@example.com",
            "additionalFields": {"Microsoft.VSTS.TCM.ReproSteps": "Open app"},
        }
    )

    assert doc == [
        {"op": "add", "path": "/fields/System.Title", "value": "Crash on start"},
        {"op": "add", "path": "/fields/System.AssignedTo", "value": "ada@example.com"},
        {"op": "add", "path": "/fields/Microsoft.VSTS.Common.Priority", "value": 1},
        {"op": "add", "path": "/fields/Microsoft.VSTS.TCM.ReproSteps", "value": "Open app"},
    ]


@pytest.mark.asyncio
async def test_create_work_item_posts_document_for_type() -> None:
    wit = Recorder({"create_work_item": {"id": 501}})

    out = await work_items.create_work_item(
        _connection(wit=wit), {"projectId": "Fabrikam", "workItemType": "Bug", "title": "Crash"}
    )

    assert out == {"id": 501}
    name, args, _ = wit.calls[0]
    assert name == "create_work_item"
    assert args[1:] == ("Fabrikam", "Bug")
    assert args[0] == [{"op": "add", "path": "/fields/System.Title", "value": "Crash"}]


@pytest.mark.asyncio
async def test_create_work_item_empty_response_fails() -> None:
    wit = Recorder({"create_work_item": None})

    with pytest.raises(SafeError) as exc:
        _ = await work_items.create_work_item(
            _connection(wit=wit), {"projectId": "Fabrikam", "workItemType": "Task", "title": "t"}
        )

    assert exc.value.message == "Failed to create work item: empty response"
