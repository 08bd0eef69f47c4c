from __future__ import annotations

import json
import traceback
import uuid
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, TextIO

_MESSAGE_LIMIT = 500
_TRACEBACK_LIMIT = 8000


def _clip(text: str, limit: int) -> str:
    s = str(text or "")
    return s if len(s) <= limit else s[: limit - 1] + "…"


class ActivityLogger:
    """
    Audit trail of what one context did to a state file, as JSON lines.

    Every line carries ts, level, event, context_id and data. Three kinds of
    line are written:

    - INFO `<event>`: a mutation that was stored.
    - WARN `<action>_rejected`: a mutation refused before anything was
      written (validation, policy, sign-in, authorship).
    - ERROR `<action>_failed`: a mutation or command that broke, with the
      traceback.

    The file is always appended to; several contexts may share one log and are
    told apart by context_id.
    """

    def __init__(self, fp: TextIO, path: Path, *, context_id: str | None = None) -> None:
        self._fp = fp
        self._path = path
        self.context_id = (context_id or "").strip() or uuid.uuid4().hex
        self._lock = Lock()

    @classmethod
    def open(cls, path: str | Path, *, context_id: str | None = None) -> "ActivityLogger":
        p = Path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        return cls(p.open("a", encoding="utf-8", newline="\n"), p, context_id=context_id)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def closed(self) -> bool:
        return self._fp.closed

    def close(self) -> None:
        with self._lock:
            if not self._fp.closed:
                self._fp.close()

    def __enter__(self) -> "ActivityLogger":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    def info(self, event: str, **data: Any) -> None:
        self._append("INFO", event, data)

    def rejected(self, action: str, exc: BaseException, **data: Any) -> None:
        self._append(
            "WARN",
            f"{action}_rejected",
            {**data, "reason": type(exc).__name__, "message": _clip(str(exc), _MESSAGE_LIMIT)},
        )

    def failed(self, action: str, exc: BaseException, **data: Any) -> None:
        tb = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        error = {
            "type": type(exc).__name__,
            "message": _clip(str(exc), _MESSAGE_LIMIT),
            "traceback": _clip(tb, _TRACEBACK_LIMIT),
        }
        self._append("ERROR", f"{action}_failed", {**data, "error": error})

    def _append(self, level: str, event: str, data: dict[str, Any]) -> None:
        record: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": level,
            "event": event,
            "context_id": self.context_id,
        }
        if data:
            record["data"] = data

        line = json.dumps(record, ensure_ascii=False, sort_keys=True, separators=(",", ":"), default=str)
        with self._lock:
            # Lines logged after close() are dropped.
            if self._fp.closed:
                return
            self._fp.write(line + "\n")
            self._fp.flush()
