"""Project and repository passthrough adapters."""

from __future__ import annotations

from typing import Any

from .connection import Connection
from .errors import remote_operation_failed, resource_not_found


async def list_projects(connection: Connection, arguments: dict[str, Any]) -> list[Any]:
    try:
        return await connection.core.get_projects(top=arguments.get("top"), skip=arguments.get("skip"))
    except Exception as exc:  # pylint: disable=broad-exception-caught
        raise remote_operation_failed("list projects", exc) from exc


async def get_project(connection: Connection, arguments: dict[str, Any]) -> dict[str, Any]:
    project_id = arguments["projectId"]
    try:
        project = await connection.core.get_project(
            project_id,
            include_capabilities=arguments.get("includeCapabilities"),
            include_history=arguments.get("includeHistory"),
        )
    except Exception as exc:  # pylint: disable=broad-exception-caught
        raise remote_operation_failed("get project", exc) from exc

    if not project:
        raise resource_not_found(f"Project '{project_id}' not found")
    return project


async def get_repository(connection: Connection, arguments: dict[str, Any]) -> dict[str, Any]:
    project_id = arguments["projectId"]
    repository_id = arguments["repositoryId"]
    try:
        repository = await connection.git.get_repository(repository_id, project_id)
    except Exception as exc:  # pylint: disable=broad-exception-caught
        raise remote_operation_failed("get repository", exc) from exc

    if not repository:
        raise resource_not_found(f"Repository '{repository_id}' not found in project '{project_id}'")
    return repository


async def list_repositories(connection: Connection, arguments: dict[str, Any]) -> list[Any]:
    try:
        return await connection.git.get_repositories(arguments["projectId"], arguments.get("includeLinks"))
    except Exception as exc:  # pylint: disable=broad-exception-caught
        raise remote_operation_failed("list repositories", exc) from exc
