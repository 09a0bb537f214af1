"""Work item passthrough adapters.

``list_work_items`` is a query followed by a batch fetch of the matching ids;
everything else is a single call.
"""

from __future__ import annotations

from typing import Any

from .connection import Connection
from .errors import remote_operation_failed, resource_not_found

DEFAULT_WIQL = "SELECT [System.Id] FROM WorkItems WHERE [System.TeamProject] = @project ORDER BY [System.Id]"

# Tool argument -> work item field reference name.
_FIELD_ARGUMENTS: tuple[tuple[str, str], ...] = (
    ("title", "System.Title"),
    ("description", "System.Description"),
    ("assignedTo", "System.AssignedTo"),
    ("areaPath", "System.AreaPath"),
    ("iterationPath", "System.IterationPath"),
    ("priority", "Microsoft.VSTS.Common.Priority"),
)


async def get_work_item(connection: Connection, arguments: dict[str, Any]) -> dict[str, Any]:
    work_item_id = arguments["workItemId"]
    try:
        work_item = await connection.work_items.get_work_item(work_item_id, expand=arguments.get("expand"))
    except Exception as exc:  # pylint: disable=broad-exception-caught
        raise remote_operation_failed("get work item", exc) from exc

    if not work_item:
        raise resource_not_found(f"Work item '{work_item_id}' not found")
    return work_item


def _query_ids(result: dict[str, Any]) -> list[int]:
    """Collect work item ids from a flat or link-type query result, in result order."""
    ids: list[int] = []
    seen: set[int] = set()

    refs: list[Any] = list(result.get("workItems") or [])
    for relation in result.get("workItemRelations") or []:
        if isinstance(relation, dict):
            refs.append(relation.get("target"))

    for ref in refs:
        wid = ref.get("id") if isinstance(ref, dict) else None
        if isinstance(wid, int) and not isinstance(wid, bool) and wid not in seen:
            seen.add(wid)
            ids.append(wid)
    return ids


async def list_work_items(connection: Connection, arguments: dict[str, Any]) -> list[Any]:
    project_id = arguments["projectId"]
    team_id = arguments.get("teamId")
    skip = arguments.get("skip") or 0
    top = arguments.get("top")

    try:
        if arguments.get("queryId"):
            result = await connection.work_items.query_by_id(arguments["queryId"], project_id, team_id)
        else:
            result = await connection.work_items.query_by_wiql(
                arguments.get("wiql") or DEFAULT_WIQL,
                project_id,
                team_id,
            )

        ids = _query_ids(result)
        ids = ids[skip:] if top is None else ids[skip : skip + top]
        if not ids:
            return []
        return await connection.work_items.get_work_items(ids)
    except Exception as exc:  # pylint: disable=broad-exception-caught
        raise remote_operation_failed("list work items", exc) from exc


def build_work_item_document(arguments: dict[str, Any]) -> list[dict[str, Any]]:
    """Build the JSON-patch document for a new work item."""
    document: list[dict[str, Any]] = []
    for arg_name, field_name in _FIELD_ARGUMENTS:
        value = arguments.get(arg_name)
        if value is None:
            continue
        document.append({"op": "add", "path": f"/fields/{field_name}", "value": value})

    for field_name, value in (arguments.get("additionalFields") or {}).items():
        document.append({"op": "add", "path": f"/fields/{field_name}", "value": value})
    return document


async def create_work_item(connection: Connection, arguments: dict[str, Any]) -> dict[str, Any]:
    document = build_work_item_document(arguments)
    try:
        created = await connection.work_items.create_work_item(
            document,
            arguments["projectId"],
            arguments["workItemType"],
        )
    except Exception as exc:  # pylint: disable=broad-exception-caught
        raise remote_operation_failed("create work item", exc) from exc

    if not created:
        raise remote_operation_failed("create work item", RuntimeError("empty response"))
    return created
