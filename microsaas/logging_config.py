"""Centralized logging configuration for the pipeline process."""

import logging
import logging.handlers
from pathlib import Path
from typing import Any

_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_DATEFMT = "%Y-%m-%dT%H:%M:%S%z"


def _file_handler(project_root: Path, cfg: dict[str, Any], level: int) -> logging.Handler:
    max_bytes = int(cfg.get("max_bytes", 10 * 1024 * 1024))
    backup_count = int(cfg.get("backup_count", 3))
    log_path = project_root / cfg["file"]
    log_path.parent.mkdir(parents=True, exist_ok=True)
    h = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    h.setLevel(level)
    return h


def _console_handler(level: int) -> logging.Handler:
    h = logging.StreamHandler()
    h.setLevel(level)
    return h


def parse_level(name: str | None) -> int | None:
    """Map a level name (any case) to its logging constant; None if unknown."""
    level = logging.getLevelName(str(name or "").upper())
    return level if isinstance(level, int) else None


def setup_logging(project_root: Path, settings: dict[str, Any]) -> None:
    """Configure the root logger from settings["logging"].

    An unknown level falls back to DEBUG with a warning. An empty file
    setting disables the rotating file handler.
    """
    cfg = settings.get("logging", {})
    level = parse_level(cfg.get("level", "INFO"))
    bad_level = level is None
    if level is None:
        level = logging.DEBUG
    formatter = logging.Formatter(_FORMAT, datefmt=_DATEFMT)
    root = logging.getLogger()
    root.setLevel(level)
    for h in root.handlers[:]:
        root.removeHandler(h)
    if cfg.get("file"):
        file_handler = _file_handler(project_root, cfg, level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
    if cfg.get("log_to_console", True):
        console_handler = _console_handler(level)
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)
    if bad_level:
        logging.getLogger(__name__).warning(
            "Failed to parse log level %r, default is debug.", cfg.get("level")
        )
