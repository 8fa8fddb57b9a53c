from __future__ import annotations

import logging

from hotel_intel.core.logging import configure_logging


def test_configure_logging_creates_file_and_quiets_http(tmp_path):
    root = logging.getLogger()
    saved, saved_level = root.handlers[:], root.level
    root.handlers.clear()
    try:
        log_file = configure_logging("debug", tmp_path / "logs")
        logging.getLogger("hotel_intel.test").info("collected %s dates", 3)
        for handler in root.handlers:
            handler.flush()

        assert log_file == tmp_path / "logs" / "collector.log"
        assert "collected 3 dates" in log_file.read_text()
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = saved
        root.setLevel(saved_level)
