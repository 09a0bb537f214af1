"""Dispatch layer tests: validation, error formatting, serialization and audit."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import azure_devops_mcp.tools as tools
import pytest
from azure_devops_mcp.audit import AuditEvent
from azure_devops_mcp.config import AppConfig, LimitsConfig
from azure_devops_mcp.connection import Connection
from azure_devops_mcp.errors import AUTH, SafeError


@dataclass
class DummyAudit:
    events: list[AuditEvent]

    def write_event(self, event: AuditEvent) -> None:
        self.events.append(event)

    def measure_start(self) -> float:
        return time.monotonic()

    def measure_duration_ms(self, start: float) -> int:
        return int((time.monotonic() - start) * 1000)


class DummyArea:
    def __init__(self, responses: dict[str, Any]) -> None:
        self._responses = responses
        self.calls: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = []

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)

        async def _call(*args: Any, **kwargs: Any) -> Any:
            self.calls.append((name, args, kwargs))
            val = self._responses[name]
            if isinstance(val, Exception):
                raise val
            return val

        return _call


def _runtime(git: dict[str, Any] | None = None, core: dict[str, Any] | None = None) -> tools.Runtime:
    cfg = AppConfig(
        organization_url="https://dev.azure.com/fabrikam",
        personal_access_token="pat-does-not-matter",
        api_version="7.1",
        audit_log_path=None,
        audit_max_bytes=5 * 1024 * 1024,
        audit_max_backups=2,
        limits=LimitsConfig(),
    )
    return tools.Runtime(
        config=cfg,
        audit=DummyAudit(events=[]),  # type: ignore[arg-type]
        connection=Connection(
            client=None,  # type: ignore[arg-type]
            git=DummyArea(git or {}),  # type: ignore[arg-type]
            core=DummyArea(core or {}),  # type: ignore[arg-type]
            work_items=DummyArea({}),  # type: ignore[arg-type]
        ),
    )


def _text(out: dict[str, Any]) -> str:
    assert len(out["content"]) == 1
    assert out["content"][0]["type"] == "text"
    return out["content"][0]["text"]


def _install(monkeypatch: pytest.MonkeyPatch, runtime: tools.Runtime) -> None:
    monkeypatch.setattr(tools, "initialize_runtime_from_env", lambda: runtime)


PR_ARGS = {"repositoryId": "web", "pullRequestId": 42, "projectId": "Fabrikam"}


@pytest.mark.asyncio
async def test_success_is_indented_json_of_adapter_result(monkeypatch: pytest.MonkeyPatch) -> None:
    pr = {"pullRequestId": 42, "title": "Résumé parser", "reviewers": [{"vote": 10}]}
    runtime = _runtime(git={"get_pull_request": pr})
    _install(monkeypatch, runtime)

    out = await tools.dispatch_tool("get_pull_request", dict(PR_ARGS))

    assert _text(out) == json.dumps(pr, indent=2, ensure_ascii=False)
    events = runtime.audit.events  # type: ignore[attr-defined]
    assert [(e.operation, e.target, e.outcome) for e in events] == [("get_pull_request", "Fabrikam/web", "succeeded")]


@pytest.mark.asyncio
async def test_unknown_tool_invokes_nothing(monkeypatch: pytest.MonkeyPatch) -> None:
    def _boom() -> tools.Runtime:
        raise AssertionError("runtime must not be initialized")

    monkeypatch.setattr(tools, "initialize_runtime_from_env", _boom)

    def _no_validation(*_args: Any, **_kwargs: Any) -> dict[str, Any]:
        raise AssertionError("validator must not run")

    monkeypatch.setattr(tools, "validate_tool_arguments", _no_validation)

    out = await tools.dispatch_tool("delete_repository", {"projectId": "p"})

    assert _text(out) == "Unknown tool: delete_repository"


@pytest.mark.asyncio
async def test_unknown_tool_wins_over_missing_arguments() -> None:
    out = await tools.dispatch_tool("nope", None)
    assert _text(out) == "Unknown tool: nope"


@pytest.mark.asyncio
async def test_missing_arguments() -> None:
    out = await tools.dispatch_tool("get_pull_request", None)
    assert _text(out) == "Arguments are required"


@pytest.mark.asyncio
async def test_validation_failure_short_circuits(monkeypatch: pytest.MonkeyPatch) -> None:
    runtime = _runtime(git={})
    _install(monkeypatch, runtime)

    out = await tools.dispatch_tool("get_pull_request", {"repositoryId": "web", "projectId": "p", "pullRequestId": "42"})

    assert _text(out) == "Validation Error: Field 'pullRequestId' must be an integer"
    assert runtime.connection.git.calls == []  # type: ignore[attr-defined]


@pytest.mark.asyncio
async def test_validation_reports_missing_required_field() -> None:
    out = await tools.dispatch_tool("list_pr_threads", {"repositoryId": "web", "pullRequestId": 1})
    assert _text(out) == "Validation Error: Missing required field: projectId"


@pytest.mark.asyncio
async def test_not_found_passes_through_unwrapped(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(monkeypatch, _runtime(git={"get_pull_request": None}))

    out = await tools.dispatch_tool("get_pull_request", dict(PR_ARGS))

    assert _text(out) == "Not Found: Pull request 42 not found in repository web"


@pytest.mark.asyncio
async def test_remote_failure_uses_generic_prefix(monkeypatch: pytest.MonkeyPatch) -> None:
    runtime = _runtime(git={"get_threads": RuntimeError("socket hang up")})
    _install(monkeypatch, runtime)

    out = await tools.dispatch_tool("list_pr_comments", dict(PR_ARGS))

    assert _text(out) == "Error: Failed to list PR comments: socket hang up"
    (event,) = runtime.audit.events  # type: ignore[attr-defined]
    assert event.outcome == "failed"
    assert event.reason == "Failed to list PR comments: socket hang up"
    assert event.error_code == "RemoteOperationFailed"


@pytest.mark.asyncio
async def test_auth_error_outside_adapter_wrap(monkeypatch: pytest.MonkeyPatch) -> None:
    def _auth_fail() -> tools.Runtime:
        raise SafeError(code=AUTH, message="token rejected")

    monkeypatch.setattr(tools, "initialize_runtime_from_env", _auth_fail)

    out = await tools.dispatch_tool("list_projects", {})

    assert _text(out) == "Authentication Failed: token rejected"


@pytest.mark.asyncio
async def test_invalid_pull_request_status_is_validation_error(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(monkeypatch, _runtime())

    out = await tools.dispatch_tool("list_pull_requests", {"repositoryId": "web", "projectId": "p", "status": "Active"})

    assert _text(out).startswith("Validation Error: ")


@pytest.mark.asyncio
async def test_thread_status_round_trips_to_canonical_spelling(monkeypatch: pytest.MonkeyPatch) -> None:
    store: dict[str, Any] = {
        "id": 3,
        "status": 4,
        "threadContext": {"filePath": "/src/A.cs"},
        "comments": [{"id": 1, "content": "fix", "commentType": 1}],
    }

    class StatefulGit:
        async def update_thread(self, thread: dict[str, Any], *_args: Any) -> dict[str, Any]:
            store.update(thread)
            return dict(store)

        async def get_threads(self, *_args: Any) -> list[dict[str, Any]]:
            return [dict(store)]

    runtime = _runtime()
    runtime = tools.Runtime(
        config=runtime.config,
        audit=runtime.audit,
        connection=Connection(client=None, git=StatefulGit(), core=None, work_items=None),  # type: ignore[arg-type]
    )
    _install(monkeypatch, runtime)

    update = await tools.dispatch_tool("update_pr_thread_status", {**PR_ARGS, "threadId": 3, "status": "aCtIvE"})
    assert json.loads(_text(update))["status"] == 1

    listed = json.loads(_text(await tools.dispatch_tool("list_pr_threads", dict(PR_ARGS))))
    assert listed[0]["status"] == "Active"


@pytest.mark.asyncio
async def test_undeclared_arguments_are_dropped(monkeypatch: pytest.MonkeyPatch) -> None:
    runtime = _runtime(core={"get_projects": []})
    _install(monkeypatch, runtime)

    out = await tools.dispatch_tool("list_projects", {"top": 3, "organization": "other"})

    assert _text(out) == "[]"
    assert runtime.connection.core.calls == [("get_projects", (), {"top": 3, "skip": None})]  # type: ignore[attr-defined]


@pytest.mark.asyncio
async def test_validation_denial_is_audited(monkeypatch: pytest.MonkeyPatch) -> None:
    runtime = _runtime()
    _install(monkeypatch, runtime)
    seen: list[AuditEvent] = []
    monkeypatch.setattr(tools.AuditLogger, "write_event", lambda self, event: seen.append(event))

    _ = await tools.dispatch_tool("get_pr_files", {**PR_ARGS, "compareTo": "latest"})

    (event,) = seen
    assert event.outcome == "denied"
    assert event.operation == "get_pr_files"
    assert event.reason == "Field 'compareTo' has an invalid format"
    assert event.error_code == "Validation"


def test_validate_tool_arguments_rejects_bool_as_integer() -> None:
    with pytest.raises(SafeError) as exc:
        _ = tools.validate_tool_arguments("get_work_item", {"workItemId": True})

    assert exc.value.message == "Field 'workItemId' must be an integer"


def test_validate_tool_arguments_enforces_enum_and_minimum() -> None:
    with pytest.raises(SafeError) as exc:
        _ = tools.validate_tool_arguments("get_work_item", {"workItemId": 1, "expand": "Everything"})
    assert "must be one of" in exc.value.message

    with pytest.raises(SafeError) as exc:
        _ = tools.validate_tool_arguments("create_pr_comment", {**PR_ARGS, "content": "x", "lineNumber": 0})
    assert exc.value.message == "Field 'lineNumber' must be >= 1"


def test_validate_tool_arguments_rejects_empty_required_string() -> None:
    with pytest.raises(SafeError) as exc:
        _ = tools.validate_tool_arguments("update_pr_comment", {**PR_ARGS, "threadId": 1, "commentId": 2, "content": ""})

    assert exc.value.message == "Field 'content' must be at least 1 characters"


def test_every_tool_has_a_handler_and_object_schema() -> None:
    assert set(tools.TOOL_METADATA) == set(tools._TOOL_FUNCS)  # pylint: disable=protected-access
    for name, meta in tools.TOOL_METADATA.items():
        schema = meta["inputSchema"]
        assert schema["type"] == "object", name
        assert set(schema.get("required", [])) <= set(schema["properties"]), name


def test_initialize_runtime_from_env_caches_runtime(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("AZURE_DEVOPS_ORG_URL", "fabrikam")
    monkeypatch.setenv("AZURE_DEVOPS_PAT", "secret-pat")
    monkeypatch.setenv("AZURE_DEVOPS_MCP_AUDIT_LOG_PATH", str(tmp_path / "audit.jsonl"))
    monkeypatch.setattr(tools, "_RUNTIME", None)

    r1 = tools.initialize_runtime_from_env()
    r2 = tools.initialize_runtime_from_env()

    assert r1 is r2
    assert r1.config.organization_url == "https://dev.azure.com/fabrikam"
    assert r1.connection.client.organization_url == "https://dev.azure.com/fabrikam"


@pytest.mark.asyncio
async def test_dispatch_times_calls_from_the_audit_clock(monkeypatch: pytest.MonkeyPatch) -> None:
    runtime = _runtime(core={"get_projects": []})
    _install(monkeypatch, runtime)
    starts: list[float] = []

    def _start(self: tools.AuditLogger) -> float:
        starts.append(time.monotonic())
        return starts[-1]

    monkeypatch.setattr(tools.AuditLogger, "measure_start", _start)

    _ = await tools.dispatch_tool("list_projects", {})

    assert len(starts) == 1
    (event,) = runtime.audit.events  # type: ignore[attr-defined]
    assert event.duration_ms is not None and event.duration_ms >= 0
