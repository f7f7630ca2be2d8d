"""Logging setup for dockship runs.

Each run writes one timestamped log file (``deploy_<timestamp>.log``) that
records every remote command's stderr at DEBUG level, while the console gets
INFO and above. Older run logs beyond the retention count are pruned when a
new run starts. Registered secrets are masked in every record.
"""

from __future__ import annotations

import logging
import sys
from collections import deque
from datetime import datetime, timezone
from pathlib import Path

from dockship.lib.masking import mask_secret

LOGGER_NAME = "dockship"
LOG_FILE_PREFIX = "deploy_"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
CONSOLE_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

# Log level names as they appear in run logs
logging.addLevelName(logging.WARNING, "WARN")


class SecretMaskingFilter(logging.Filter):
    """Replace registered secrets with their masked form.

    The filter rewrites the fully formatted message, so secrets passed as
    format arguments are masked too.
    """

    def __init__(self) -> None:
        super().__init__()
        self._secrets: set[str] = set()

    def register(self, secret: str | None) -> None:
        """Add a secret to mask. Empty values are ignored."""
        if secret:
            self._secrets.add(secret)

    def filter(self, record: logging.LogRecord) -> bool:
        if not self._secrets:
            return True
        message = record.getMessage()
        masked = message
        # Longest first so a secret containing another is masked whole
        for secret in sorted(self._secrets, key=len, reverse=True):
            masked = masked.replace(secret, mask_secret(secret))
        if masked != message:
            record.msg = masked
            record.args = None
        return True


_masking_filter = SecretMaskingFilter()


def register_secret(secret: str | None) -> None:
    """Mask ``secret`` in all dockship log output from now on."""
    _masking_filter.register(secret)


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the dockship namespace."""
    if name == LOGGER_NAME or name.startswith(f"{LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


def run_log_path(log_dir: Path, now: datetime | None = None) -> Path:
    """Return the log file path for a run started at ``now``."""
    now = now or datetime.now(timezone.utc)
    return log_dir / f"{LOG_FILE_PREFIX}{now.strftime('%Y%m%d%H%M%S')}.log"


def prune_logs(log_dir: Path, keep: int) -> list[Path]:
    """Delete all but the newest ``keep`` run logs in ``log_dir``.

    Returns:
        The paths that were removed
    """
    logs = sorted(
        log_dir.glob(f"{LOG_FILE_PREFIX}*.log"),
        key=lambda p: (p.stat().st_mtime, p.name),
    )
    stale = logs[:-keep] if keep > 0 else logs
    removed: list[Path] = []
    for path in stale:
        try:
            path.unlink()
        except OSError:
            continue
        removed.append(path)
    return removed


def tail_log(path: Path, lines: int = 20) -> list[str]:
    """Return the last ``lines`` lines of a log file."""
    if not path.exists():
        return []
    with path.open(encoding="utf-8", errors="replace") as handle:
        return [line.rstrip("\n") for line in deque(handle, maxlen=lines)]


def setup_logging(
    verbose: bool = False,
    quiet: bool = False,
    log_dir: Path | None = None,
    keep_logs: int | None = 30,
) -> Path | None:
    """Configure dockship logging for one run.

    Args:
        verbose: Show DEBUG messages on the console
        quiet: Only show errors on the console
        log_dir: Directory for the run log; no file is written when None
        keep_logs: Number of run logs to retain in ``log_dir``; None defers
            pruning to the caller (see prune_logs)

    Returns:
        Path of the run log file, or None when file logging is disabled
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stderr)
    if quiet:
        console.setLevel(logging.ERROR)
    elif verbose:
        console.setLevel(logging.DEBUG)
    else:
        console.setLevel(logging.INFO)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    console.addFilter(_masking_filter)
    logger.addHandler(console)

    if log_dir is None:
        return None

    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = run_log_path(log_dir)
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    file_handler.addFilter(_masking_filter)
    logger.addHandler(file_handler)

    logger.info("Deployment started. Logfile: %s", log_path)
    if keep_logs is not None:
        removed = prune_logs(log_dir, keep_logs)
        if removed:
            logger.debug("Pruned %d old run log(s)", len(removed))
    return log_path
