"""Git resource area: repositories, pull requests, threads, iterations.

Thin async wrappers over the REST endpoints. Values are returned in the service's
native JSON shapes; single-entity getters return None when the service answers 404.
"""

from __future__ import annotations

from typing import Any

from .ado_client import AzureDevOpsClient, RequestBudget, segment, unwrap_collection


class GitApi:
    """Git REST area bound to one organization."""

    def __init__(self, client: AzureDevOpsClient, *, budget: RequestBudget) -> None:
        self._client = client
        self._budget = budget

    @staticmethod
    def _repo_path(project: str, repository_id: str) -> str:
        return f"{segment(project)}/_apis/git/repositories/{segment(repository_id)}"

    def _pr_path(self, project: str, repository_id: str, pull_request_id: int) -> str:
        return f"{self._repo_path(project, repository_id)}/pullRequests/{segment(pull_request_id)}"

    async def get_repository(self, repository_id: str, project: str) -> dict[str, Any] | None:
        return await self._client.request_json(
            method="GET",
            path=self._repo_path(project, repository_id),
            allow_not_found=True,
            budget=self._budget,
        )

    async def get_repositories(self, project: str, include_links: bool | None = None) -> list[Any]:
        data = await self._client.request_json(
            method="GET",
            path=f"{segment(project)}/_apis/git/repositories",
            params={"includeLinks": include_links},
            budget=self._budget,
        )
        return unwrap_collection(data)

    async def get_pull_request(self, repository_id: str, pull_request_id: int, project: str) -> dict[str, Any] | None:
        return await self._client.request_json(
            method="GET",
            path=self._pr_path(project, repository_id, pull_request_id),
            allow_not_found=True,
            budget=self._budget,
        )

    async def get_pull_requests(
        self,
        repository_id: str,
        search_criteria: dict[str, Any],
        project: str,
    ) -> list[Any]:
        params = {f"searchCriteria.{k}": v for k, v in search_criteria.items() if v is not None}
        data = await self._client.request_json(
            method="GET",
            path=f"{self._repo_path(project, repository_id)}/pullrequests",
            params=params,
            budget=self._budget,
        )
        return unwrap_collection(data)

    async def get_threads(self, repository_id: str, pull_request_id: int, project: str) -> list[Any]:
        data = await self._client.request_json(
            method="GET",
            path=f"{self._pr_path(project, repository_id, pull_request_id)}/threads",
            budget=self._budget,
        )
        return unwrap_collection(data)

    async def get_pull_request_thread(
        self,
        repository_id: str,
        pull_request_id: int,
        thread_id: int,
        project: str,
    ) -> dict[str, Any] | None:
        return await self._client.request_json(
            method="GET",
            path=f"{self._pr_path(project, repository_id, pull_request_id)}/threads/{segment(thread_id)}",
            allow_not_found=True,
            budget=self._budget,
        )

    async def create_thread(
        self,
        thread: dict[str, Any],
        repository_id: str,
        pull_request_id: int,
        project: str,
    ) -> dict[str, Any] | None:
        return await self._client.request_json(
            method="POST",
            path=f"{self._pr_path(project, repository_id, pull_request_id)}/threads",
            json_body=thread,
            budget=self._budget,
        )

    async def update_thread(
        self,
        thread: dict[str, Any],
        repository_id: str,
        pull_request_id: int,
        thread_id: int,
        project: str,
    ) -> dict[str, Any] | None:
        return await self._client.request_json(
            method="PATCH",
            path=f"{self._pr_path(project, repository_id, pull_request_id)}/threads/{segment(thread_id)}",
            json_body=thread,
            allow_not_found=True,
            budget=self._budget,
        )

    async def update_comment(
        self,
        comment: dict[str, Any],
        repository_id: str,
        pull_request_id: int,
        thread_id: int,
        comment_id: int,
        project: str,
    ) -> dict[str, Any] | None:
        pr_path = self._pr_path(project, repository_id, pull_request_id)
        return await self._client.request_json(
            method="PATCH",
            path=f"{pr_path}/threads/{segment(thread_id)}/comments/{segment(comment_id)}",
            json_body=comment,
            allow_not_found=True,
            budget=self._budget,
        )

    async def get_pull_request_iterations(self, repository_id: str, pull_request_id: int, project: str) -> list[Any]:
        data = await self._client.request_json(
            method="GET",
            path=f"{self._pr_path(project, repository_id, pull_request_id)}/iterations",
            budget=self._budget,
        )
        return unwrap_collection(data)

    async def get_pull_request_iteration_changes(
        self,
        repository_id: str,
        pull_request_id: int,
        iteration_id: int,
        project: str,
        *,
        top: int | None = None,
        skip: int | None = None,
        compare_to: int | None = None,
    ) -> dict[str, Any]:
        pr_path = self._pr_path(project, repository_id, pull_request_id)
        data = await self._client.request_json(
            method="GET",
            path=f"{pr_path}/iterations/{segment(iteration_id)}/changes",
            params={"$top": top, "$skip": skip, "$compareTo": compare_to},
            budget=self._budget,
        )
        return data if isinstance(data, dict) else {}
