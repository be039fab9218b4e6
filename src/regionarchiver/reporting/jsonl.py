from __future__ import annotations

import json
import sys
import time
from typing import Any, Dict
from .base import Reporter, TaskStatus, TaskRecord, get_verbosity

# Status lines starting with one of these prefixes also produce a structured
# ``summary`` event whose fields are the ``key=value`` tokens of the line.
SUMMARY_PREFIXES: Dict[str, str] = {
    "export summary": "export",
    "import summary": "import",
    "filter summary": "filter",
    "scan summary": "scan",
    "verify summary": "verify",
    "inspect summary": "inspect",
}


def parse_summary_fields(message: str) -> Dict[str, str]:
    _, _, kv_text = message.partition(":")
    fields: Dict[str, str] = {}
    for token in kv_text.split():
        if "=" in token:
            k, v = token.split("=", 1)
            fields[k] = v
    return fields


class JsonLinesReporter(Reporter):
    """Machine-readable reporter: one JSON object per event."""

    supports_progress = False

    def __init__(self, stream=None):
        self.stream = stream or sys.stdout
        self._tasks: Dict[str, TaskRecord] = {}

    def _emit(self, obj: dict) -> None:
        self.stream.write(json.dumps(obj, sort_keys=True, default=str) + "\n")

    def start_task(
        self, task_id: str, name: str, total: int | None = None, **meta: Any
    ) -> None:
        self._tasks[task_id] = TaskRecord(task_id, name, total, meta=meta)
        self._emit(
            {"event": "task_start", "id": task_id, "name": name, "total": total, **meta}
        )

    def advance(self, task_id: str, step: int = 1, **meta: Any) -> None:
        rec = self._tasks.get(task_id)
        if not rec:
            return
        rec.completed += step
        rec.meta.update(meta)
        self._emit(
            {"event": "task_progress", "id": task_id, "completed": rec.completed, **meta}
        )

    def end_task(
        self,
        task_id: str,
        status: TaskStatus = TaskStatus.SUCCESS,
        **final_meta: Any,
    ) -> None:
        rec = self._tasks.pop(task_id, None)
        if not rec:
            return
        rec.status = status
        rec.end_time = time.time()
        rec.meta.update(final_meta)
        self._emit(
            {
                "event": "task_end",
                "id": task_id,
                "status": status.name.lower(),
                "completed": rec.completed,
                "total": rec.total,
                "duration_seconds": rec.duration,
                **rec.meta,
            }
        )

    def _maybe_summary(self, message: str, level: str, **fields: Any) -> None:
        lower = message.lower()
        for prefix, stype in SUMMARY_PREFIXES.items():
            if lower.startswith(prefix):
                self._emit(
                    {
                        "event": "summary",
                        "summary_type": stype,
                        "level": level,
                        "raw": message,
                        **parse_summary_fields(message),
                        **fields,
                    }
                )
                break

    def status(self, message: str, **fields: Any) -> None:
        self._maybe_summary(message, "info", **fields)
        self._emit({"event": "status", "message": message, "level": "info", **fields})

    def verbose(self, message: str, *, level: int = 1, **fields: Any) -> None:
        if get_verbosity() < level:
            return
        self._emit(
            {
                "event": "status",
                "message": message,
                "level": f"verbose{level}",
                "vlevel": level,
                **fields,
            }
        )

    def error(self, message: str, **fields: Any) -> None:
        self._maybe_summary(message, "error", **fields)
        self._emit({"event": "status", "message": message, "level": "error", **fields})

    def warning(self, message: str, **fields: Any) -> None:
        self._maybe_summary(message, "warning", **fields)
        self._emit(
            {"event": "status", "message": message, "level": "warning", **fields}
        )

    def section(self, title: str) -> None:
        self._emit({"event": "section", "title": title})
