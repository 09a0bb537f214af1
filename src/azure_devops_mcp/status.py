"""Translation between tool-facing enum strings and Azure DevOps native codes.

The service reports enums either as integers or as camelCase names depending on the
endpoint and serializer, so every decoder accepts both forms.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any

from .errors import invalid_argument


class PullRequestStatus(IntEnum):
    NOT_SET = 0
    ACTIVE = 1
    ABANDONED = 2
    COMPLETED = 3
    ALL = 4


class CommentThreadStatus(IntEnum):
    UNKNOWN = 0
    ACTIVE = 1
    FIXED = 2
    WONT_FIX = 3
    CLOSED = 4
    BY_DESIGN = 5
    PENDING = 6


class CommentType(IntEnum):
    UNKNOWN = 0
    TEXT = 1
    CODE_CHANGE = 2
    SYSTEM = 3


# Case-sensitive on purpose: the tool schema advertises lowercase values only.
_PULL_REQUEST_STATUS_IN: dict[str, PullRequestStatus] = {
    "active": PullRequestStatus.ACTIVE,
    "abandoned": PullRequestStatus.ABANDONED,
    "completed": PullRequestStatus.COMPLETED,
    "all": PullRequestStatus.ALL,
}

_PULL_REQUEST_STATUS_WIRE: dict[PullRequestStatus, str] = {
    PullRequestStatus.NOT_SET: "notSet",
    PullRequestStatus.ACTIVE: "active",
    PullRequestStatus.ABANDONED: "abandoned",
    PullRequestStatus.COMPLETED: "completed",
    PullRequestStatus.ALL: "all",
}

_THREAD_STATUS_LABELS: dict[CommentThreadStatus, str] = {
    CommentThreadStatus.UNKNOWN: "Unknown",
    CommentThreadStatus.ACTIVE: "Active",
    CommentThreadStatus.FIXED: "Fixed",
    CommentThreadStatus.WONT_FIX: "WontFix",
    CommentThreadStatus.CLOSED: "Closed",
    CommentThreadStatus.BY_DESIGN: "ByDesign",
    CommentThreadStatus.PENDING: "Pending",
}

# Lowercased label -> code; also matches the service's camelCase names once lowercased.
_THREAD_STATUS_IN: dict[str, CommentThreadStatus] = {
    label.lower(): code for code, label in _THREAD_STATUS_LABELS.items()
}

PULL_REQUEST_STATUS_NAMES: tuple[str, ...] = tuple(_PULL_REQUEST_STATUS_IN)
THREAD_STATUS_NAMES: tuple[str, ...] = tuple(_THREAD_STATUS_LABELS.values())

_COMMENT_TYPE_LABELS: dict[CommentType, str] = {
    CommentType.UNKNOWN: "unknown",
    CommentType.TEXT: "text",
    CommentType.CODE_CHANGE: "codeChange",
    CommentType.SYSTEM: "system",
}

_COMMENT_TYPE_IN: dict[str, CommentType] = {
    label.lower(): code for code, label in _COMMENT_TYPE_LABELS.items()
}


def to_pull_request_status(value: str) -> PullRequestStatus:
    """Map a tool argument onto the native pull request status.

    Raises:
        SafeError: ``InvalidArgument`` for anything outside active/abandoned/completed/all.
    """
    try:
        return _PULL_REQUEST_STATUS_IN[value]
    except (KeyError, TypeError):
        raise invalid_argument(f"Invalid pull request status: {value}") from None


def pull_request_status_wire_name(code: PullRequestStatus) -> str:
    """Return the name the REST search criteria expect (``searchCriteria.status``)."""
    return _PULL_REQUEST_STATUS_WIRE[code]


def to_thread_status(value: str) -> CommentThreadStatus:
    """Map a thread status argument (any case) onto the native code.

    Raises:
        SafeError: ``InvalidArgument`` for unrecognized values.
    """
    code = _THREAD_STATUS_IN.get(value.lower()) if isinstance(value, str) else None
    if code is None:
        raise invalid_argument(f"Invalid thread status: {value}")
    return code


def _decode(raw: Any, enum_cls: type[IntEnum], by_name: dict[str, Any]) -> Any:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        try:
            return enum_cls(raw)
        except ValueError:
            return None
    if isinstance(raw, str):
        return by_name.get(raw.lower())
    return None


def decode_thread_status(raw: Any) -> CommentThreadStatus | None:
    """Decode a remote thread status (int or name); None when unrecognized."""
    return _decode(raw, CommentThreadStatus, _THREAD_STATUS_IN)


def decode_comment_type(raw: Any) -> CommentType | None:
    """Decode a remote comment type (int or name); None when unrecognized."""
    return _decode(raw, CommentType, _COMMENT_TYPE_IN)


def thread_status_label(raw: Any) -> str:
    """Return the canonical external spelling; absent or unknown codes read as "Unknown"."""
    code = decode_thread_status(raw)
    if code is None:
        code = CommentThreadStatus.UNKNOWN
    return _THREAD_STATUS_LABELS[code]


def comment_type_label(raw: Any) -> str:
    """Return the outward comment type bucket. Never raises."""
    code = decode_comment_type(raw)
    if code is None:
        return "unknown"
    return _COMMENT_TYPE_LABELS[code]


def is_system_comment(raw: Any) -> bool:
    return decode_comment_type(raw) is CommentType.SYSTEM
