"""Pull request operation adapters.

Each adapter takes a connection and already-validated arguments, performs its remote
call(s), and returns a JSON-serializable result. Remote failures are re-raised as
``RemoteOperationFailed``; a missing entity is raised as ``NotFound`` outside the
re-wrap path so it reaches the caller unchanged.
"""

from __future__ import annotations

from typing import Any

from .connection import Connection
from .errors import AZURE_DEVOPS, SafeError, remote_operation_failed, resource_not_found
from .normalize import flatten_comments, list_threads, normalize_thread
from .status import pull_request_status_wire_name, to_pull_request_status, to_thread_status

# Anchors always start at the first character of the line.
ANCHOR_OFFSET = 1
DEFAULT_ANCHOR_LINE = 1


async def get_pull_request(connection: Connection, arguments: dict[str, Any]) -> dict[str, Any]:
    repository_id = arguments["repositoryId"]
    pull_request_id = arguments["pullRequestId"]
    try:
        pull_request = await connection.git.get_pull_request(repository_id, pull_request_id, arguments["projectId"])
    except Exception as exc:  # pylint: disable=broad-exception-caught
        raise remote_operation_failed("get pull request", exc) from exc

    if not pull_request:
        raise resource_not_found(f"Pull request {pull_request_id} not found in repository {repository_id}")
    return pull_request


async def list_pull_requests(connection: Connection, arguments: dict[str, Any]) -> list[Any]:
    status = arguments.get("status")
    search_criteria: dict[str, Any] = {
        "status": pull_request_status_wire_name(to_pull_request_status(status)) if status else None,
        "creatorId": arguments.get("creatorId"),
        "reviewerId": arguments.get("reviewerId"),
        "sourceRefName": arguments.get("sourceRefName"),
        "targetRefName": arguments.get("targetRefName"),
        "includeLinks": arguments.get("includeLinks"),
    }
    try:
        return await connection.git.get_pull_requests(arguments["repositoryId"], search_criteria, arguments["projectId"])
    except Exception as exc:  # pylint: disable=broad-exception-caught
        raise remote_operation_failed("list pull requests", exc) from exc


async def _get_threads(connection: Connection, arguments: dict[str, Any], action: str) -> list[Any]:
    try:
        return await connection.git.get_threads(
            arguments["repositoryId"],
            arguments["pullRequestId"],
            arguments["projectId"],
        )
    except Exception as exc:  # pylint: disable=broad-exception-caught
        raise remote_operation_failed(action, exc) from exc


async def list_pr_comments(connection: Connection, arguments: dict[str, Any]) -> list[dict[str, Any]]:
    threads = await _get_threads(connection, arguments, "list PR comments")
    return [c.to_dict() for c in flatten_comments(threads)]


async def list_pr_threads(connection: Connection, arguments: dict[str, Any]) -> list[dict[str, Any]]:
    threads = await _get_threads(connection, arguments, "list PR threads")
    return [t.to_dict() for t in list_threads(threads)]


async def get_pr_thread_comments(connection: Connection, arguments: dict[str, Any]) -> dict[str, Any]:
    pull_request_id = arguments["pullRequestId"]
    thread_id = arguments["threadId"]
    try:
        thread = await connection.git.get_pull_request_thread(
            arguments["repositoryId"],
            pull_request_id,
            thread_id,
            arguments["projectId"],
        )
    except Exception as exc:  # pylint: disable=broad-exception-caught
        raise remote_operation_failed("get PR thread comments", exc) from exc

    if not thread:
        raise resource_not_found(f"Thread {thread_id} not found in pull request {pull_request_id}")
    return normalize_thread(thread).to_dict()


async def update_pr_comment(connection: Connection, arguments: dict[str, Any]) -> dict[str, Any]:
    thread_id = arguments["threadId"]
    comment_id = arguments["commentId"]
    try:
        updated = await connection.git.update_comment(
            {"content": arguments["content"]},
            arguments["repositoryId"],
            arguments["pullRequestId"],
            thread_id,
            comment_id,
            arguments["projectId"],
        )
    except Exception as exc:  # pylint: disable=broad-exception-caught
        raise remote_operation_failed("update PR comment", exc) from exc

    if not updated:
        raise resource_not_found(f"Comment {comment_id} not found in thread {thread_id}")
    return updated


async def update_pr_thread_status(connection: Connection, arguments: dict[str, Any]) -> dict[str, Any]:
    pull_request_id = arguments["pullRequestId"]
    thread_id = arguments["threadId"]
    status = to_thread_status(arguments["status"])
    try:
        updated = await connection.git.update_thread(
            {"status": int(status)},
            arguments["repositoryId"],
            pull_request_id,
            thread_id,
            arguments["projectId"],
        )
    except Exception as exc:  # pylint: disable=broad-exception-caught
        raise remote_operation_failed("update thread status", exc) from exc

    if not updated:
        raise resource_not_found(f"Thread {thread_id} not found in pull request {pull_request_id}")
    return updated


def build_comment_thread(arguments: dict[str, Any]) -> dict[str, Any]:
    """Build the new-thread payload for a comment or reply.

    A file path anchors the thread to a single line (line 1 when no line number is
    given); without a file path the thread is a general pull request comment.
    """
    comment: dict[str, Any] = {"content": arguments["content"]}
    if arguments.get("parentCommentId") is not None:
        comment["parentCommentId"] = arguments["parentCommentId"]

    thread: dict[str, Any] = {"comments": [comment]}
    file_path = arguments.get("filePath")
    if file_path:
        line = arguments.get("lineNumber")
        if line is None:
            line = DEFAULT_ANCHOR_LINE
        thread["threadContext"] = {
            "filePath": file_path,
            "rightFileStart": {"line": line, "offset": ANCHOR_OFFSET},
            "rightFileEnd": {"line": line, "offset": ANCHOR_OFFSET},
        }
    return thread


async def create_pr_comment(connection: Connection, arguments: dict[str, Any]) -> dict[str, Any]:
    thread = build_comment_thread(arguments)
    try:
        created = await connection.git.create_thread(
            thread,
            arguments["repositoryId"],
            arguments["pullRequestId"],
            arguments["projectId"],
        )
        if not created:
            raise SafeError(code=AZURE_DEVOPS, message="Failed to create comment thread")
    except Exception as exc:  # pylint: disable=broad-exception-caught
        raise remote_operation_failed("create PR comment", exc) from exc
    return created


async def get_pr_files(connection: Connection, arguments: dict[str, Any]) -> list[Any]:
    repository_id = arguments["repositoryId"]
    pull_request_id = arguments["pullRequestId"]
    project_id = arguments["projectId"]
    compare_to = arguments.get("compareTo")

    try:
        iterations = await connection.git.get_pull_request_iterations(repository_id, pull_request_id, project_id)
        if not iterations:
            return []

        # The service returns iterations oldest first.
        latest = iterations[-1]
        iteration_id = latest.get("id") if isinstance(latest, dict) else None
        if isinstance(iteration_id, bool) or not isinstance(iteration_id, int) or iteration_id <= 0:
            raise SafeError(code=AZURE_DEVOPS, message="Latest iteration ID is missing")

        changes = await connection.git.get_pull_request_iteration_changes(
            repository_id,
            pull_request_id,
            iteration_id,
            project_id,
            compare_to=int(compare_to) if compare_to else None,
        )
    except Exception as exc:  # pylint: disable=broad-exception-caught
        raise remote_operation_failed("get PR files", exc) from exc

    entries = changes.get("changeEntries") if isinstance(changes, dict) else None
    return entries if isinstance(entries, list) else []
