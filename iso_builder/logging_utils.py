from __future__ import annotations

import logging
import os
from pathlib import Path

from .lib.command import CHILD_OUTPUT

DEFAULT_LOG_PATH = "/var/log/iso-builder.log"
FALLBACK_LOG_NAME = "iso-builder.log"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


class BuildLogFormatter(logging.Formatter):
    """Formats build records; streamed child output stays bare.

    Lines from ``CommandRunner.run(..., stream=True)`` already carry their
    indent, so they print as-is under the ``CMD`` line that started them
    instead of repeating a timestamp and logger name on every line.
    """

    def __init__(self) -> None:
        super().__init__(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        if getattr(record, CHILD_OUTPUT, False):
            return record.getMessage()
        return super().format(record)


def console_level(*, verbose: bool = False, quiet: bool = False) -> int:
    if verbose:
        return logging.DEBUG
    if quiet:
        return logging.WARNING
    return logging.INFO


def _open_log_file(log_path: str) -> tuple[logging.Handler, str]:
    # /var/log is not writable in containers and CI sandboxes.
    try:
        Path(os.path.dirname(log_path) or ".").mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(log_path), log_path
    except OSError:
        fallback = str(Path.cwd() / FALLBACK_LOG_NAME)
        return logging.FileHandler(fallback), fallback


def configure_logging(
    log_path: str = DEFAULT_LOG_PATH,
    *,
    console: int | None = logging.INFO,
    file_level: int = logging.DEBUG,
) -> str:
    """Send build logs to ``log_path`` and, unless ``console`` is None, stderr.

    The file always gets ``file_level`` (DEBUG by default, so captured
    command stdout/stderr is kept); the console only gets ``console`` and up.
    Calling it again only adjusts the console level.

    Returns the log file actually in use.
    """

    root = logging.getLogger()
    existing = getattr(root, "_iso_builder_handlers", None)
    if existing is not None:
        _, console_handler, path = existing
        if console_handler is not None and console is not None:
            console_handler.setLevel(console)
        return path

    formatter = BuildLogFormatter()

    file_handler, path = _open_log_file(log_path)
    file_handler.setLevel(file_level)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    console_handler = None
    if console is not None:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(console)
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)

    root.setLevel(min(file_level, console if console is not None else file_level))
    root._iso_builder_handlers = (file_handler, console_handler, path)  # type: ignore[attr-defined]

    logging.getLogger(__name__).info("Logging to %s (requested %s)", path, log_path)
    return path
