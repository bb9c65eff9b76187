"""
Logging setup for the wellness tracker.

Each area of the application logs into its own subdirectory of LOG_BASE_DIR:

- api         request-level warnings from the web app
- import      bulk upload runs (one summary line per run, one line per skip)
- migrations  schema bootstrap and duplicate reconciliation
- cli / app   command-line runs

Files rotate daily (optionally also by size) and are kept for
LOG_RETENTION_DAYS. Under pytest everything goes to a temp directory that
cleanup_test_logs() removes.

Usage:
    from wellness_tracker.logging_config import get_logger

    logger = get_logger('upload_importer', 'import')
    logger.info('Imported 40 attendance rows')
"""

import logging
import os
import shutil
import sys
import tempfile
from datetime import datetime, timedelta
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from pathlib import Path
from typing import Optional


IS_TEST_ENV = 'pytest' in sys.modules

TEST_LOG_DIR = Path(tempfile.gettempdir()) / 'wellness_tracker_test_logs'
LOG_BASE_DIR = TEST_LOG_DIR if IS_TEST_ENV else Path(os.getenv('WELLNESS_LOG_DIR', 'logs'))
DEFAULT_LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()
LOG_RETENTION_DAYS = int(os.getenv('LOG_RETENTION_DAYS', '30'))
MAX_LOG_SIZE_MB = int(os.getenv('MAX_LOG_SIZE_MB', '10'))

FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
CONSOLE_FORMAT = '%(levelname)s: %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def ensure_log_directory(log_subdir: str) -> Path:
    """
    Create (if needed) and return the directory for one log area.

    Args:
        log_subdir: Subdirectory under LOG_BASE_DIR (e.g., 'import', 'api')
    """
    log_dir = LOG_BASE_DIR / log_subdir
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def cleanup_old_logs(log_dir: Path, retention_days: int = LOG_RETENTION_DAYS) -> int:
    """
    Remove .log files older than the retention period.

    Returns:
        Number of files removed
    """
    if not log_dir.exists():
        return 0

    cutoff = (datetime.now() - timedelta(days=retention_days)).timestamp()
    removed = 0
    for log_file in log_dir.glob('*.log*'):
        if log_file.stat().st_mtime >= cutoff:
            continue
        try:
            log_file.unlink()
            removed += 1
        except OSError:
            # another process may still hold the file
            continue
    return removed


def _resolve_level(level: Optional[str]) -> int:
    return getattr(logging, (level or DEFAULT_LOG_LEVEL).upper())


def _daily_handler(log_dir: Path, stem: str, level: int) -> logging.Handler:
    handler = TimedRotatingFileHandler(
        filename=log_dir / f"{stem}_{datetime.now().strftime('%Y-%m-%d')}.log",
        when='midnight',
        interval=1,
        backupCount=LOG_RETENTION_DAYS,
        encoding='utf-8'
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
    return handler


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    return handler


def get_logger(
    name: str,
    log_subdir: str,
    level: Optional[str] = None,
    use_size_rotation: bool = False,
    console_output: bool = True
) -> logging.Logger:
    """
    Get a configured logger instance.

    Handlers are attached once per logger name; later calls return the same
    logger untouched.

    Args:
        name: Logger name (e.g., 'upload_importer', 'cleanup_duplicates')
        log_subdir: Subdirectory under LOG_BASE_DIR (e.g., 'import', 'migrations')
        level: Handler level (DEBUG, INFO, ...). Defaults to LOG_LEVEL
        use_size_rotation: Also write a size-rotated file (MAX_LOG_SIZE_MB)
        console_output: Also log to stderr

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(logging.DEBUG)
    log_level = _resolve_level(level)
    log_dir = ensure_log_directory(log_subdir)
    cleanup_old_logs(log_dir)

    logger.addHandler(_daily_handler(log_dir, log_subdir, log_level))

    if use_size_rotation:
        size_handler = RotatingFileHandler(
            filename=log_dir / f"{log_subdir}_rolling.log",
            maxBytes=MAX_LOG_SIZE_MB * 1024 * 1024,
            backupCount=5,
            encoding='utf-8'
        )
        size_handler.setLevel(log_level)
        size_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(size_handler)

    if console_output:
        logger.addHandler(_console_handler(log_level))

    return logger


def configure_root_logger(level: Optional[str] = None, console_output: bool = True) -> None:
    """Attach the 'app' file handler (and console) to the root logger once."""
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return

    root_logger.setLevel(logging.DEBUG)
    log_level = _resolve_level(level)
    log_dir = ensure_log_directory('app')
    cleanup_old_logs(log_dir)

    root_logger.addHandler(_daily_handler(log_dir, 'app', log_level))
    if console_output:
        root_logger.addHandler(_console_handler(log_level))


def cleanup_test_logs() -> None:
    """
    Remove the temporary log directory used under pytest.

    Does nothing outside the test environment.
    """
    if not IS_TEST_ENV:
        return
    if TEST_LOG_DIR.exists():
        shutil.rmtree(TEST_LOG_DIR, ignore_errors=True)
