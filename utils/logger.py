"""Logging setup shared by every component."""

import logging
import os

from config.defaults import DEFAULTS

ROOT_LOGGER = "pluginsmith"

DEFAULT_LOG_FORMAT = logging.Formatter(
    "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"
)


def _configure_root():
    root = logging.getLogger(ROOT_LOGGER)
    if root.handlers:
        return root

    root.setLevel(DEFAULTS["log_level"].upper())

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(DEFAULT_LOG_FORMAT)
    root.addHandler(console_handler)

    log_file = DEFAULTS["log_file"]
    if log_file:
        log_dir = os.path.dirname(os.path.abspath(log_file))
        os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(DEFAULT_LOG_FORMAT)
        root.addHandler(file_handler)

    return root


def get_logger(name):
    """Return a child of the service logger, e.g. get_logger("builder")."""
    _configure_root()
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
