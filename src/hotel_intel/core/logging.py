"""Logging helpers."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

# Request-level chatter; httpx logs full URLs, which include the provider key.
NOISY_LOGGERS: tuple[str, ...] = ("httpx", "httpcore")


def configure_logging(
    level: str,
    log_dir: Path,
    *,
    filename: str = "collector.log",
    quiet: Iterable[str] = NOISY_LOGGERS,
) -> Path:
    """Send records to the console and ``log_dir/filename``; returns the log file path."""
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / filename

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(log_file, encoding="utf-8"),
        ],
    )
    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)
    return log_file
