"""Core (projects) and Work Item Tracking resource areas."""

from __future__ import annotations

from typing import Any

from .ado_client import JSON_PATCH, AzureDevOpsClient, RequestBudget, segment, unwrap_collection

# The service rejects batch fetches larger than this.
MAX_WORK_ITEMS_PER_BATCH = 200


def _scope(project: str, team: str | None) -> str:
    if team:
        return f"{segment(project)}/{segment(team)}"
    return segment(project)


class CoreApi:
    """Projects REST area."""

    def __init__(self, client: AzureDevOpsClient, *, budget: RequestBudget) -> None:
        self._client = client
        self._budget = budget

    async def get_projects(self, *, top: int | None = None, skip: int | None = None) -> list[Any]:
        data = await self._client.request_json(
            method="GET",
            path="_apis/projects",
            params={"$top": top, "$skip": skip},
            budget=self._budget,
        )
        return unwrap_collection(data)

    async def get_project(
        self,
        project_id: str,
        *,
        include_capabilities: bool | None = None,
        include_history: bool | None = None,
    ) -> dict[str, Any] | None:
        return await self._client.request_json(
            method="GET",
            path=f"_apis/projects/{segment(project_id)}",
            params={"includeCapabilities": include_capabilities, "includeHistory": include_history},
            allow_not_found=True,
            budget=self._budget,
        )


class WorkItemApi:
    """Work Item Tracking REST area."""

    def __init__(self, client: AzureDevOpsClient, *, budget: RequestBudget) -> None:
        self._client = client
        self._budget = budget

    async def get_work_item(self, work_item_id: int, *, expand: str | None = None) -> dict[str, Any] | None:
        return await self._client.request_json(
            method="GET",
            path=f"_apis/wit/workitems/{segment(work_item_id)}",
            params={"$expand": expand},
            allow_not_found=True,
            budget=self._budget,
        )

    async def get_work_items(self, ids: list[int], *, expand: str | None = None) -> list[Any]:
        """Fetch work items in id order, one request per batch of at most 200 ids."""
        items: list[Any] = []
        for start in range(0, len(ids), MAX_WORK_ITEMS_PER_BATCH):
            batch = ids[start : start + MAX_WORK_ITEMS_PER_BATCH]
            data = await self._client.request_json(
                method="GET",
                path="_apis/wit/workitems",
                params={"ids": ",".join(str(i) for i in batch), "$expand": expand},
                budget=self._budget,
            )
            items.extend(unwrap_collection(data))
        return items

    async def query_by_id(self, query_id: str, project: str, team: str | None = None) -> dict[str, Any]:
        data = await self._client.request_json(
            method="GET",
            path=f"{_scope(project, team)}/_apis/wit/wiql/{segment(query_id)}",
            budget=self._budget,
        )
        return data if isinstance(data, dict) else {}

    async def query_by_wiql(
        self,
        wiql: str,
        project: str,
        team: str | None = None,
        *,
        top: int | None = None,
    ) -> dict[str, Any]:
        data = await self._client.request_json(
            method="POST",
            path=f"{_scope(project, team)}/_apis/wit/wiql",
            json_body={"query": wiql},
            params={"$top": top},
            budget=self._budget,
        )
        return data if isinstance(data, dict) else {}

    async def create_work_item(
        self,
        document: list[dict[str, Any]],
        project: str,
        work_item_type: str,
    ) -> dict[str, Any] | None:
        return await self._client.request_json(
            method="POST",
            path=f"{segment(project)}/_apis/wit/workitems/${segment(work_item_type)}",
            json_body=document,
            content_type=JSON_PATCH,
            budget=self._budget,
        )
