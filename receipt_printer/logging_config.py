# Logging configuration - rotating agent log plus a separate print-attempt audit log

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

# Default log directory (project root / logs)
LOG_DIR = Path(__file__).resolve().parent.parent / "logs"
LOG_FILE = LOG_DIR / "receipt_printer.log"
AUDIT_FILE = LOG_DIR / "print_attempts.log"
LOG_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
LOG_BACKUP_COUNT = 5

# Every PrintAttempt is also written here, one line per attempt
AUDIT_LOGGER_NAME = "receipt_printer.audit"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_audit_logger() -> logging.Logger:
    return logging.getLogger(AUDIT_LOGGER_NAME)


def setup_logging(
    log_path: Optional[Union[str, Path]] = None,
    audit_path: Optional[Union[str, Path]] = None,
    max_bytes: int = LOG_MAX_BYTES,
    backup_count: int = LOG_BACKUP_COUNT,
    console: bool = True,
    level: Union[int, str] = logging.INFO,
) -> None:
    """
    Configure the agent log (rotating file + optional console) and the
    print-attempt audit log.
    """
    log_path = Path(log_path or LOG_FILE)
    audit_path = Path(audit_path or log_path.with_name(AUDIT_FILE.name))
    log_path.parent.mkdir(parents=True, exist_ok=True)
    audit_path.parent.mkdir(parents=True, exist_ok=True)

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    root = logging.getLogger()
    root.setLevel(level)
    # Avoid duplicate handlers when called multiple times
    for h in list(root.handlers):
        root.removeHandler(h)

    file_handler = RotatingFileHandler(
        log_path,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)

    # Audit records still propagate to the agent log
    audit = get_audit_logger()
    audit.setLevel(logging.INFO)
    for h in list(audit.handlers):
        audit.removeHandler(h)
    audit_handler = RotatingFileHandler(
        audit_path,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    audit_handler.setFormatter(logging.Formatter(fmt="%(asctime)s | %(message)s", datefmt=DATE_FORMAT))
    audit.addHandler(audit_handler)

    # requests/urllib3 are chatty at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)
