from __future__ import annotations

import json
import logging
import os
import sys
from typing import Any


_CONFIGURED = False


def configure_logging(level_name: str | None = None) -> None:
    global _CONFIGURED
    if _CONFIGURED:
        return
    level_name = (level_name or os.environ.get("MIME_TREE_LOG_LEVEL") or "WARNING").strip().upper()
    level = getattr(logging, level_name, logging.WARNING)
    logger = logging.getLogger("mime_tree")
    logger.setLevel(level)
    logger.propagate = False
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
    )
    logger.handlers.clear()
    logger.addHandler(handler)
    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    clean = (name or "").strip()
    if not clean or clean == "mime_tree" or clean.startswith("mime_tree."):
        return logging.getLogger(clean or "mime_tree")
    if clean.startswith("__main__"):
        return logging.getLogger("mime_tree.cli")
    return logging.getLogger(f"mime_tree.{clean}")


def log_event(logger: logging.Logger, event: str, level: str = "info", **fields: Any) -> None:
    parts = [f"event={_format_value(event)}"]
    for key in sorted(fields.keys()):
        parts.append(f"{key}={_format_value(fields[key])}")
    fn = getattr(logger, level, logger.info)
    fn(" ".join(parts))


def _format_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        cleaned = " ".join(value.strip().split())
        if len(cleaned) > 240:
            cleaned = cleaned[:240] + "...(truncated)"
        return json.dumps(cleaned, ensure_ascii=False)
    return _format_value(str(value))


__all__ = ["configure_logging", "get_logger", "log_event"]
