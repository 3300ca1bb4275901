from __future__ import annotations

import hashlib
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict


# Fields that may carry statement text; only a digest and length are logged
SENSITIVE_FIELDS = frozenset({"text", "prompt", "content", "chunk_text", "line"})


def _fingerprint(value: Any) -> Dict[str, Any]:
    s = value if isinstance(value, str) else str(value)
    return {"sha256_12": hashlib.sha256(s.encode("utf-8")).hexdigest()[:12], "length": len(s)}


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "msg": record.getMessage(),
            "logger": record.name,
        }
        if hasattr(record, "extra") and isinstance(record.extra, dict):
            for key, value in record.extra.items():
                payload[key] = _fingerprint(value) if key in SENSITIVE_FIELDS else value
        if record.exc_info:
            payload["exc_type"] = record.exc_info[0].__name__ if record.exc_info[0] else None
        return json.dumps(payload, ensure_ascii=False, default=str)


def get_json_logger(name: str = "statement_ingest", level: int = logging.INFO) -> logging.Logger:
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger
    logger.setLevel(level)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def set_debug(logger: logging.Logger, enabled: bool) -> None:
    logger.setLevel(logging.DEBUG if enabled else logging.INFO)
