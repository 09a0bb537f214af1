"""Pull request comment thread normalization.

Turns the service's nested thread payloads into flat, predictable records:

- system-generated comments are dropped everywhere
- thread listings keep only file-anchored threads with at least one human comment
- absent optional fields get defaults and never raise
- thread and comment order mirror the remote response; nothing is re-sorted
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable

from .status import comment_type_label, is_system_comment, thread_status_label


@dataclass(frozen=True, slots=True)
class CommentRecord:
    comment_id: int
    parent_comment_id: int
    content: str
    author: str
    comment_type: str
    published_date: str
    last_updated_date: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "commentId": self.comment_id,
            "parentCommentId": self.parent_comment_id,
            "content": self.content,
            "author": self.author,
            "commentType": self.comment_type,
            "publishedDate": self.published_date,
            "lastUpdatedDate": self.last_updated_date,
        }


@dataclass(frozen=True, slots=True)
class ThreadRecord:
    thread_id: int
    status: str
    file_path: str
    start_line: int | None = None
    end_line: int | None = None
    comments: tuple[CommentRecord, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "threadId": self.thread_id,
            "status": self.status,
            "filePath": self.file_path,
        }
        # Unanchored threads carry no line range at all, not a null one.
        if self.start_line is not None:
            out["startLine"] = self.start_line
        if self.end_line is not None:
            out["endLine"] = self.end_line
        out["comments"] = [c.to_dict() for c in self.comments]
        return out


@dataclass(frozen=True, slots=True)
class PullRequestComment:
    """One entry of the flat comment listing, carrying its thread's context."""

    thread_id: int
    status: str
    file_path: str
    line_number: int | None
    comment: CommentRecord

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"threadId": self.thread_id}
        out.update(self.comment.to_dict())
        out["status"] = self.status
        out["filePath"] = self.file_path
        if self.line_number is not None:
            out["lineNumber"] = self.line_number
        return out


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _as_str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _iso(value: Any) -> str:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    if isinstance(value, str):
        return value
    return ""


def _dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _comments(thread: dict[str, Any]) -> list[dict[str, Any]]:
    raw = thread.get("comments")
    if not isinstance(raw, list):
        return []
    return [c for c in raw if isinstance(c, dict)]


def _line(context: dict[str, Any], key: str) -> int | None:
    return _as_int(_dict(context.get(key)).get("line"))


def normalize_comment(raw: dict[str, Any]) -> CommentRecord:
    """Apply field defaults to one remote comment."""
    author = _dict(raw.get("author")).get("displayName")
    return CommentRecord(
        comment_id=_as_int(raw.get("id")) or 0,
        parent_comment_id=_as_int(raw.get("parentCommentId")) or 0,
        content=_as_str(raw.get("content")),
        author=author if isinstance(author, str) else "Unknown",
        comment_type=comment_type_label(raw.get("commentType")),
        published_date=_iso(raw.get("publishedDate")),
        last_updated_date=_iso(raw.get("lastUpdatedDate")),
    )


def human_comments(thread: dict[str, Any]) -> list[CommentRecord]:
    """Normalize a thread's comments, dropping system-generated ones."""
    return [normalize_comment(c) for c in _comments(thread) if not is_system_comment(c.get("commentType"))]


def normalize_thread(raw: dict[str, Any]) -> ThreadRecord:
    """Normalize a single thread (detail path: only system comments are filtered)."""
    context = _dict(raw.get("threadContext"))
    return ThreadRecord(
        thread_id=_as_int(raw.get("id")) or 0,
        status=thread_status_label(raw.get("status")),
        file_path=_as_str(context.get("filePath")),
        start_line=_line(context, "rightFileStart"),
        end_line=_line(context, "rightFileEnd"),
        comments=tuple(human_comments(raw)),
    )


def is_reviewable_thread(raw: Any) -> bool:
    """Return True if a thread is file-anchored, has a human comment, and an integer id."""
    if not isinstance(raw, dict):
        return False
    if not _as_str(_dict(raw.get("threadContext")).get("filePath")):
        return False
    if not any(not is_system_comment(c.get("commentType")) for c in _comments(raw)):
        return False
    return _as_int(raw.get("id")) is not None


def list_threads(threads: Iterable[Any]) -> list[ThreadRecord]:
    """Thread-grouped listing, in remote order."""
    return [normalize_thread(t) for t in threads if is_reviewable_thread(t)]


def flatten_comments(threads: Iterable[Any]) -> list[PullRequestComment]:
    """Flat listing: same filters as :func:`list_threads`, one entry per comment."""
    out: list[PullRequestComment] = []
    for thread in list_threads(threads):
        for comment in thread.comments:
            out.append(
                PullRequestComment(
                    thread_id=thread.thread_id,
                    status=thread.status,
                    file_path=thread.file_path,
                    line_number=thread.start_line,
                    comment=comment,
                )
            )
    return out
