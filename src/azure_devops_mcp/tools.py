"""Tool registry and dispatch layer.

This module:
- defines the tools (public contract surface) and their input schemas
- builds a per-server runtime from host-provided config
- validates arguments before any adapter runs
- serializes results and funnels every failure through one error formatter
- writes one audit event per dispatch
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from . import projects, pull_requests, work_items
from .audit import DENIED, FAILED, SUCCEEDED, AuditLogger, build_event, new_correlation_id
from .config import AppConfig, load_config_from_env
from .connection import Connection, connect
from .errors import (
    CONFIG,
    INVALID_ARGUMENT,
    MISSING_ARGUMENTS,
    UNKNOWN_TOOL,
    VALIDATION,
    SafeError,
    error_response,
    missing_arguments,
    text_response,
    unknown_tool,
    validation_error,
)
from .status import PULL_REQUEST_STATUS_NAMES, THREAD_STATUS_NAMES

logger = logging.getLogger(__name__)

ToolFunc = Callable[[Connection, dict[str, Any]], Awaitable[Any]]

_REPO_PR = {
    "repositoryId": {"type": "string", "minLength": 1, "description": "Repository ID or name"},
    "pullRequestId": {"type": "integer", "description": "Pull request ID"},
    "projectId": {"type": "string", "minLength": 1, "description": "Project ID or name"},
}

_THREAD_ID = {"threadId": {"type": "integer", "description": "Comment thread ID"}}

TOOL_METADATA: dict[str, dict[str, Any]] = {
    "list_projects": {
        "description": "List projects in the Azure DevOps organization.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "top": {"type": "integer", "minimum": 1, "description": "Maximum number of projects to return"},
                "skip": {"type": "integer", "minimum": 0, "description": "Number of projects to skip"},
            },
        },
    },
    "get_project": {
        "description": "Get details of a specific project.",
        "inputSchema": {
            "type": "object",
            "required": ["projectId"],
            "properties": {
                "projectId": {"type": "string", "minLength": 1},
                "includeCapabilities": {"type": "boolean"},
                "includeHistory": {"type": "boolean"},
            },
        },
    },
    "get_work_item": {
        "description": "Get a work item by ID.",
        "inputSchema": {
            "type": "object",
            "required": ["workItemId"],
            "properties": {
                "workItemId": {"type": "integer", "minimum": 1},
                "expand": {"type": "string", "enum": ["None", "Relations", "Fields", "Links", "All"]},
            },
        },
    },
    "list_work_items": {
        "description": "List work items in a project by saved query, WIQL, or all items.",
        "inputSchema": {
            "type": "object",
            "required": ["projectId"],
            "properties": {
                "projectId": {"type": "string", "minLength": 1},
                "queryId": {"type": "string", "description": "Saved query ID"},
                "wiql": {"type": "string", "description": "Work Item Query Language text"},
                "teamId": {"type": "string"},
                "top": {"type": "integer", "minimum": 1},
                "skip": {"type": "integer", "minimum": 0},
            },
        },
    },
    "create_work_item": {
        "description": "Create a new work item.",
        "inputSchema": {
            "type": "object",
            "required": ["projectId", "workItemType", "title"],
            "properties": {
                "projectId": {"type": "string", "minLength": 1},
                "workItemType": {"type": "string", "minLength": 1, "description": "e.g. Task, Bug, User Story"},
                "title": {"type": "string", "minLength": 1},
                "description": {"type": "string"},
                "assignedTo": {"type": "string"},
                "areaPath": {"type": "string"},
                "iterationPath": {"type": "string"},
                "priority": {"type": "integer"},
                "additionalFields": {"type": "object", "description": "Field reference name -> value"},
            },
        },
    },
    "get_repository": {
        "description": "Get details of a Git repository.",
        "inputSchema": {
            "type": "object",
            "required": ["projectId", "repositoryId"],
            "properties": {
                "projectId": {"type": "string", "minLength": 1},
                "repositoryId": {"type": "string", "minLength": 1},
            },
        },
    },
    "list_repositories": {
        "description": "List Git repositories in a project.",
        "inputSchema": {
            "type": "object",
            "required": ["projectId"],
            "properties": {
                "projectId": {"type": "string", "minLength": 1},
                "includeLinks": {"type": "boolean"},
            },
        },
    },
    "get_pull_request": {
        "description": "Get a specific pull request.",
        "inputSchema": {
            "type": "object",
            "required": ["repositoryId", "pullRequestId", "projectId"],
            "properties": dict(_REPO_PR),
        },
    },
    "list_pull_requests": {
        "description": "List pull requests in a repository.",
        "inputSchema": {
            "type": "object",
            "required": ["repositoryId", "projectId"],
            "properties": {
                "repositoryId": _REPO_PR["repositoryId"],
                "projectId": _REPO_PR["projectId"],
                "status": {"type": "string", "enum": list(PULL_REQUEST_STATUS_NAMES)},
                "creatorId": {"type": "string"},
                "reviewerId": {"type": "string"},
                "sourceRefName": {"type": "string", "description": "e.g. refs/heads/feature"},
                "targetRefName": {"type": "string", "description": "e.g. refs/heads/main"},
                "includeLinks": {"type": "boolean"},
            },
        },
    },
    "list_pr_comments": {
        "description": "List human comments on file-anchored threads of a pull request, flattened.",
        "inputSchema": {
            "type": "object",
            "required": ["repositoryId", "pullRequestId", "projectId"],
            "properties": dict(_REPO_PR),
        },
    },
    "list_pr_threads": {
        "description": "List file-anchored comment threads of a pull request with all replies.",
        "inputSchema": {
            "type": "object",
            "required": ["repositoryId", "pullRequestId", "projectId"],
            "properties": dict(_REPO_PR),
        },
    },
    "get_pr_thread_comments": {
        "description": "Get all comments and replies in one pull request thread.",
        "inputSchema": {
            "type": "object",
            "required": ["repositoryId", "pullRequestId", "threadId", "projectId"],
            "properties": {**_REPO_PR, **_THREAD_ID},
        },
    },
    "update_pr_comment": {
        "description": "Edit the content of a pull request comment.",
        "inputSchema": {
            "type": "object",
            "required": ["repositoryId", "pullRequestId", "threadId", "commentId", "content", "projectId"],
            "properties": {
                **_REPO_PR,
                **_THREAD_ID,
                "commentId": {"type": "integer"},
                "content": {"type": "string", "minLength": 1},
            },
        },
    },
    "update_pr_thread_status": {
        "description": "Set the status of a pull request comment thread.",
        "inputSchema": {
            "type": "object",
            "required": ["repositoryId", "pullRequestId", "threadId", "status", "projectId"],
            "properties": {
                **_REPO_PR,
                **_THREAD_ID,
                "status": {
                    "type": "string",
                    "minLength": 1,
                    "description": "One of " + ", ".join(THREAD_STATUS_NAMES) + " (case-insensitive)",
                },
            },
        },
    },
    "create_pr_comment": {
        "description": "Create a pull request comment or reply, optionally anchored to a file line.",
        "inputSchema": {
            "type": "object",
            "required": ["repositoryId", "pullRequestId", "content", "projectId"],
            "properties": {
                **_REPO_PR,
                "content": {"type": "string", "minLength": 1},
                "filePath": {"type": "string", "description": "Repository path, e.g. /src/app.py"},
                "lineNumber": {"type": "integer", "minimum": 1},
                "parentCommentId": {"type": "integer", "description": "Comment being replied to"},
            },
        },
    },
    "get_pr_files": {
        "description": "List files changed in the latest iteration of a pull request.",
        "inputSchema": {
            "type": "object",
            "required": ["repositoryId", "pullRequestId", "projectId"],
            "properties": {
                **_REPO_PR,
                "compareTo": {
                    "type": "string",
                    "pattern": r"^\d+$",
                    "description": "Iteration number to diff against",
                },
            },
        },
    },
}


_TOOL_FUNCS: dict[str, ToolFunc] = {
    "list_projects": projects.list_projects,
    "get_project": projects.get_project,
    "get_repository": projects.get_repository,
    "list_repositories": projects.list_repositories,
    "get_work_item": work_items.get_work_item,
    "list_work_items": work_items.list_work_items,
    "create_work_item": work_items.create_work_item,
    "get_pull_request": pull_requests.get_pull_request,
    "list_pull_requests": pull_requests.list_pull_requests,
    "list_pr_comments": pull_requests.list_pr_comments,
    "list_pr_threads": pull_requests.list_pr_threads,
    "get_pr_thread_comments": pull_requests.get_pr_thread_comments,
    "update_pr_comment": pull_requests.update_pr_comment,
    "update_pr_thread_status": pull_requests.update_pr_thread_status,
    "create_pr_comment": pull_requests.create_pr_comment,
    "get_pr_files": pull_requests.get_pr_files,
}


@dataclass(frozen=True, slots=True)
class Runtime:
    """Per-server runtime dependencies shared across tool calls."""

    config: AppConfig
    audit: AuditLogger
    connection: Connection


_RUNTIME: Runtime | None = None

_TYPE_CHECKS: dict[str, tuple[Callable[[Any], bool], str]] = {
    "string": (lambda v: isinstance(v, str), "a string"),
    "integer": (lambda v: isinstance(v, int) and not isinstance(v, bool), "an integer"),
    "boolean": (lambda v: isinstance(v, bool), "a boolean"),
    "array": (lambda v: isinstance(v, list), "an array"),
    "object": (lambda v: isinstance(v, dict), "an object"),
}


def validate_tool_arguments(tool_name: str, arguments: Any) -> dict[str, Any]:
    """Validate tool arguments against the tool's declared input schema.

    This is intentionally a minimal validator that enforces:
    - required fields
    - basic JSON types (string/integer/boolean/array/object)
    - minLength, minimum/maximum, enum, and pattern constraints

    It does NOT implement full JSON Schema. Undeclared fields are dropped from the
    returned mapping.
    """
    if tool_name not in TOOL_METADATA:
        raise unknown_tool(tool_name)
    if not isinstance(arguments, dict):
        raise validation_error("Arguments must be an object")

    schema = TOOL_METADATA[tool_name]["inputSchema"]
    props: dict[str, Any] = schema.get("properties", {})
    required: list[str] = schema.get("required", [])

    for k in required:
        if arguments.get(k) is None:
            raise validation_error(f"Missing required field: {k}")

    validated: dict[str, Any] = {}
    for k, prop in props.items():
        v = arguments.get(k)
        if v is None:
            continue

        expected = prop.get("type")
        if expected in _TYPE_CHECKS:
            check, noun = _TYPE_CHECKS[expected]
            if not check(v):
                raise validation_error(f"Field '{k}' must be {noun}")

        if expected == "string":
            min_len = prop.get("minLength")
            if isinstance(min_len, int) and len(v) < min_len:
                raise validation_error(f"Field '{k}' must be at least {min_len} characters")
            pattern = prop.get("pattern")
            if isinstance(pattern, str) and not re.search(pattern, v):
                raise validation_error(f"Field '{k}' has an invalid format")

        if expected == "integer":
            minimum = prop.get("minimum")
            maximum = prop.get("maximum")
            if isinstance(minimum, int) and v < minimum:
                raise validation_error(f"Field '{k}' must be >= {minimum}")
            if isinstance(maximum, int) and v > maximum:
                raise validation_error(f"Field '{k}' must be <= {maximum}")

        allowed = prop.get("enum")
        if isinstance(allowed, list) and v not in allowed:
            raise validation_error(f"Field '{k}' must be one of: {', '.join(map(str, allowed))}")

        validated[k] = v

    return validated


def initialize_runtime_from_env() -> Runtime:
    """Build the runtime from environment variables, once per process.

    Start-up calls it to fail fast; tool calls reuse the cached value.
    """
    global _RUNTIME  # pylint: disable=global-statement
    if _RUNTIME is not None:
        return _RUNTIME

    config = load_config_from_env()
    audit = AuditLogger(
        sink_path=config.audit_log_path,
        max_bytes=config.audit_max_bytes,
        max_backups=config.audit_max_backups,
    )
    _RUNTIME = Runtime(config=config, audit=audit, connection=connect(config))
    return _RUNTIME


def _target_from_args(arguments: Any) -> str:
    if not isinstance(arguments, dict):
        return "<unknown>"
    parts = [arguments.get("projectId"), arguments.get("repositoryId")]
    named = [p for p in parts if isinstance(p, str) and p]
    return "/".join(named) if named else "<organization>"


def _outcome(exc: BaseException) -> str:
    if isinstance(exc, SafeError) and exc.code in {UNKNOWN_TOOL, MISSING_ARGUMENTS, VALIDATION, INVALID_ARGUMENT, CONFIG}:
        return DENIED
    return FAILED


async def dispatch_tool(name: str, arguments: dict[str, Any] | None) -> dict[str, Any]:
    """Dispatch a tool call.

    Always returns ``{"content": [{"type": "text", "text": ...}]}``: indented JSON of
    the adapter's result on success, one prefixed error line on failure.
    """
    correlation_id = new_correlation_id()
    target = _target_from_args(arguments)
    # stderr-only sink used until the runtime (and its configured sink) exists
    audit = AuditLogger(sink_path=None)
    start = audit.measure_start()
    runtime: Runtime | None = None

    try:
        func = _TOOL_FUNCS.get(name)
        if func is None:
            raise unknown_tool(name)
        if arguments is None:
            raise missing_arguments()

        validated = validate_tool_arguments(name, arguments)
        runtime = initialize_runtime_from_env()

        result = await func(runtime.connection, validated)
        text = json.dumps(result, indent=2, ensure_ascii=False, default=str)

        runtime.audit.write_event(
            build_event(
                correlation_id=correlation_id,
                operation=name,
                target=target,
                outcome=SUCCEEDED,
                duration_ms=runtime.audit.measure_duration_ms(start),
            )
        )
        return text_response(text)

    except Exception as exc:  # pylint: disable=broad-exception-caught
        if not isinstance(exc, SafeError):
            logger.exception("Tool %s raised an unexpected error", name)
        if runtime is not None:
            audit = runtime.audit
        audit.write_event(
            build_event(
                correlation_id=correlation_id,
                operation=name,
                target=target,
                outcome=_outcome(exc),
                error=exc,
                duration_ms=audit.measure_duration_ms(start),
            )
        )
        return error_response(exc)
