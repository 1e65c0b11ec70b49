import logging
import os
from typing import Optional


_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}

_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _coerce_level(value: Optional[str]) -> int:
    if isinstance(value, str):
        return _LEVELS.get(value.upper().strip(), logging.INFO)
    if isinstance(value, int):
        return value
    return logging.INFO


def get_logger(name: str) -> logging.Logger:
    """Return a console logger for one area of the menu pipeline.

    - Writes to stderr so JSON printed by the CLI stays clean on stdout.
    - Honors LOG_LEVEL (default INFO) and LOG_FILE (optional, appended).
    - Loggers live under the ``menu_lens.`` namespace and are configured once.
    """
    logger = logging.getLogger(f"menu_lens.{name}")
    if getattr(logger, "_menu_lens_configured", False):
        return logger

    level = _coerce_level(os.environ.get("LOG_LEVEL", "INFO"))
    logger.setLevel(level)
    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT)

    sh = logging.StreamHandler()
    sh.setLevel(level)
    sh.setFormatter(formatter)
    logger.addHandler(sh)

    log_file = os.environ.get("LOG_FILE")
    if log_file:
        try:
            fh = logging.FileHandler(log_file, encoding="utf-8")
        except OSError:
            logger.warning("LOG_FILE could not be opened; continuing without file logging")
        else:
            fh.setLevel(level)
            fh.setFormatter(formatter)
            logger.addHandler(fh)

    logger.propagate = False
    setattr(logger, "_menu_lens_configured", True)
    return logger
