"""
Logging configuration module.

Design principles:
- Standard library only
- Dual output: console (readable text) + file (CSV for analysis)
- Daily rotation, keep 30 days history
"""

import csv
import io
import logging
import os
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

# Log directory (relative to backend/)
LOG_DIR = Path(__file__).parent.parent.parent / "logs"

CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Sync runs tag their records with extra={'config_id': ..., 'error': ...}
CSV_FIELDS = ['timestamp', 'level', 'module', 'message', 'config_id', 'error']


class CsvFormatter(logging.Formatter):
    """
    CSV format logger - auto-handles quotes and commas.

    Usage:
        logger.info("message", extra={'config_id': 'xxx', 'error': 'yyy'})
    """

    def format(self, record):
        output = io.StringIO()
        writer = csv.writer(output, quoting=csv.QUOTE_MINIMAL)
        writer.writerow([
            self.formatTime(record, self.datefmt),
            record.levelname,
            record.name,
            record.getMessage(),
            getattr(record, 'config_id', ''),
            getattr(record, 'error', ''),
        ])
        return output.getvalue().strip()


class CsvRotatingFileHandler(TimedRotatingFileHandler):
    """Timed rotating handler that writes the CSV header into new files."""

    def _open(self):
        is_new = not os.path.exists(self.baseFilename) or \
                 os.path.getsize(self.baseFilename) == 0

        stream = super()._open()

        if is_new:
            stream.write(','.join(CSV_FIELDS) + '\n')
            stream.flush()

        return stream


def setup_logging(level: int = logging.INFO, log_dir: Path | None = None) -> None:
    """
    Configure logging system.

    Called by both FastAPI and Celery worker.
    Idempotent: repeated calls won't create duplicate handlers.
    """
    root_logger = logging.getLogger()

    if any(isinstance(h, CsvRotatingFileHandler) for h in root_logger.handlers):
        return

    directory = log_dir or LOG_DIR
    directory.mkdir(parents=True, exist_ok=True)

    root_logger.setLevel(level)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, DATE_FORMAT))
    root_logger.addHandler(console_handler)

    # e.g. repo_sync_2026_10_17.csv, rotated at midnight
    today = datetime.now().strftime("%Y_%m_%d")
    csv_handler = CsvRotatingFileHandler(
        filename=directory / f"repo_sync_{today}.csv",
        when="midnight",
        interval=1,
        backupCount=30,
        encoding="utf-8"
    )
    csv_handler.setFormatter(CsvFormatter(datefmt=DATE_FORMAT))
    root_logger.addHandler(csv_handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("hpack").setLevel(logging.WARNING)
