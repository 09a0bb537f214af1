"""Audit trail for tool dispatches.

One JSON line per dispatch goes to stderr and, when configured, to a size-rotated
file. An event names the tool, the ``project/repository`` it targeted and how it
ended. Argument values and credentials are never recorded.
"""

from __future__ import annotations

import json
import sys
import time
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path

from .errors import SafeError, describe

SUCCEEDED = "succeeded"
DENIED = "denied"
FAILED = "failed"

DEFAULT_MAX_BYTES = 5 * 1024 * 1024
DEFAULT_MAX_BACKUPS = 2


def new_correlation_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True, slots=True)
class AuditEvent:
    timestamp: str
    correlation_id: str
    operation: str
    target: str
    outcome: str
    error_code: str | None = None
    status_code: int | None = None
    reason: str | None = None
    duration_ms: int | None = None

    def to_json(self) -> str:
        """Compact, key-sorted JSON; unset optional fields are left out."""
        payload = {k: v for k, v in asdict(self).items() if v is not None}
        return json.dumps(payload, sort_keys=True, separators=(",", ":"))


class AuditLogger:
    """JSONL audit sink: stderr always, plus an optional file rotated by size."""

    def __init__(
        self,
        *,
        sink_path: Path | None,
        max_bytes: int = DEFAULT_MAX_BYTES,
        max_backups: int = DEFAULT_MAX_BACKUPS,
    ) -> None:
        self._sink_path = sink_path
        self._max_bytes = max_bytes
        self._max_backups = max_backups

    def _rotate(self, sink: Path) -> None:
        if not sink.exists() or sink.stat().st_size < self._max_bytes:
            return
        if self._max_backups <= 0:
            sink.write_text("", encoding="utf-8")
            return

        # audit.jsonl -> .1 -> .2 ...; the oldest backup falls off the end.
        chain = [sink] + [Path(f"{sink}.{n}") for n in range(1, self._max_backups + 1)]
        chain[-1].unlink(missing_ok=True)
        for newer, older in reversed(list(zip(chain, chain[1:]))):
            if newer.exists():
                newer.replace(older)

    def write_event(self, event: AuditEvent) -> None:
        """Emit one event. A failing file sink never fails the tool call."""
        line = event.to_json()
        print(line, file=sys.stderr)

        sink = self._sink_path
        if sink is None:
            return
        try:
            sink.parent.mkdir(parents=True, exist_ok=True)
            self._rotate(sink)
            with sink.open("a", encoding="utf-8") as fh:
                fh.write(f"{line}\n")
        except OSError:  # pragma: no cover
            return

    def measure_start(self) -> float:
        return time.monotonic()

    def measure_duration_ms(self, start: float) -> int:
        return int((time.monotonic() - start) * 1000)


def build_event(
    *,
    correlation_id: str,
    operation: str,
    target: str,
    outcome: str,
    error: BaseException | None = None,
    duration_ms: int | None = None,
) -> AuditEvent:
    """Build an event; a failure contributes its kind, HTTP status and message."""
    error_code = status_code = reason = None
    if error is not None:
        reason = describe(error)
        if isinstance(error, SafeError):
            error_code = error.code
            status_code = error.status_code
        else:
            error_code = error.__class__.__name__
    return AuditEvent(
        timestamp=datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        correlation_id=correlation_id,
        operation=operation,
        target=target,
        outcome=outcome,
        error_code=error_code,
        status_code=status_code,
        reason=reason,
        duration_ms=duration_ms,
    )
