import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Mapping, Optional


LOG_DIR_ENV_VAR = "VENDING_MACHINE_LOG_DIR"
LOG_FILE_NAME = "vending_machine.log"


def resolve_log_dir(environ: Optional[Mapping[str, str]] = None) -> Path:
    """Return the log directory: ``$VENDING_MACHINE_LOG_DIR`` or ``./.logs``.

    The working directory is used instead of the package location so an
    installed package never writes into site-packages.
    """

    environ = os.environ if environ is None else environ
    override = environ.get(LOG_DIR_ENV_VAR, "").strip()
    if override:
        return Path(override).expanduser()
    return Path.cwd() / ".logs"


LOG_DIR = resolve_log_dir()
LOG_FILE = LOG_DIR / LOG_FILE_NAME


def _configure_logging() -> logging.Logger:
    """Configure package-wide logging with file and console handlers.

    Every INFO record goes to the rotating log file. The console only shows
    warnings and errors so the interactive shell menu stays readable.
    """

    logger = logging.getLogger(__name__)
    if logger.handlers:
        return logger

    logger.setLevel(logging.INFO)
    formatter = logging.Formatter(
        fmt="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            LOG_FILE,
            maxBytes=1_000_000,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    except OSError as exc:
        print(
            f"Warning: unable to initialize log file at '{LOG_FILE}': {exc}",
            file=sys.stderr,
        )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


log = _configure_logging()
log.debug("Logger initialized for the 'vending_machine' package.")
