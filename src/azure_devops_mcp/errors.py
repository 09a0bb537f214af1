"""Safe error types and the tool-response error formatter.

Every failure that reaches a caller is rendered as a single text line whose prefix
names the error kind. Messages must never include the personal access token.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

NOT_FOUND = "NotFound"
VALIDATION = "Validation"
INVALID_ARGUMENT = "InvalidArgument"
AUTH = "Auth"
AZURE_DEVOPS = "AzureDevOps"
UNKNOWN_TOOL = "UnknownTool"
MISSING_ARGUMENTS = "MissingArguments"
REMOTE_OPERATION_FAILED = "RemoteOperationFailed"
CONFIG = "Config"
NETWORK = "Network"


@dataclass(frozen=True, slots=True)
class SafeError(Exception):
    """An error safe to expose to agents.

    This must never include secrets (personal access tokens, authorization headers).
    """

    code: str
    message: str
    hint: str | None = None
    status_code: int | None = None

    def __str__(self) -> str:
        return self.message


def describe(exc: BaseException) -> str:
    """Return the human-readable text of an arbitrary exception."""
    if isinstance(exc, SafeError):
        return exc.message
    text = str(exc)
    return text or exc.__class__.__name__


def resource_not_found(message: str) -> SafeError:
    """Error for a single-entity fetch that resolved to nothing."""
    return SafeError(code=NOT_FOUND, message=message, status_code=404)


def validation_error(message: str) -> SafeError:
    """Error for tool arguments rejected by the declared input schema."""
    return SafeError(code=VALIDATION, message=message)


def invalid_argument(message: str) -> SafeError:
    """Error for an argument value no translation table accepts."""
    return SafeError(code=INVALID_ARGUMENT, message=message)


def unknown_tool(name: str) -> SafeError:
    return SafeError(code=UNKNOWN_TOOL, message=f"Unknown tool: {name}")


def missing_arguments() -> SafeError:
    return SafeError(code=MISSING_ARGUMENTS, message="Arguments are required")


def remote_operation_failed(action: str, exc: BaseException) -> SafeError:
    """Wrap a remote-layer failure, naming the attempted operation.

    Example: ``remote_operation_failed("get pull request", exc)`` yields
    ``"Failed to get pull request: <cause text>"``.
    """
    status_code = exc.status_code if isinstance(exc, SafeError) else None
    return SafeError(
        code=REMOTE_OPERATION_FAILED,
        message=f"Failed to {action}: {describe(exc)}",
        status_code=status_code,
    )


def azure_devops_auth_failed(*, status_code: int) -> SafeError:
    """Return a safe error for 401/403 responses.

    Used when the token is expired, revoked, or lacks the scope for the operation.
    """
    return SafeError(
        code=AUTH,
        message="Azure DevOps rejected the personal access token",
        hint="The token may be expired, revoked, or missing required scopes",
        status_code=status_code,
    )


_PREFIXES: tuple[tuple[frozenset[str], str], ...] = (
    (frozenset({NOT_FOUND}), "Not Found"),
    (frozenset({VALIDATION, INVALID_ARGUMENT}), "Validation Error"),
    (frozenset({AUTH}), "Authentication Failed"),
    (frozenset({AZURE_DEVOPS}), "Azure DevOps API Error"),
)


def format_error(exc: BaseException) -> str:
    """Render any raised value as one prefixed error line.

    Kinds are checked in precedence order; anything unrecognized falls through to
    the generic ``Error:`` prefix.
    """
    if isinstance(exc, SafeError):
        for codes, prefix in _PREFIXES:
            if exc.code in codes:
                return f"{prefix}: {exc.message}"
        if exc.code in {UNKNOWN_TOOL, MISSING_ARGUMENTS}:
            return exc.message
    return f"Error: {describe(exc)}"


def text_response(text: str) -> dict[str, Any]:
    """Build the single-element tool response envelope."""
    return {"content": [{"type": "text", "text": text}]}


def error_response(exc: BaseException) -> dict[str, Any]:
    """Convert any raised value into the standard tool response."""
    return text_response(format_error(exc))
