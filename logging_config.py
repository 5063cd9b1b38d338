"""
Logging setup for the sholl command line tool.

The analysis modules are top-level modules, so their loggers hang off the
root logger; this configures the root logger once per process.
"""
import logging
import sys
from typing import Optional


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure console (and optionally file) output.

    Args:
        level: Logging level (e.g. logging.DEBUG, logging.INFO)
        log_file: Optional path to also write the log to.
    """
    root = logging.getLogger()
    root.setLevel(level)

    # Avoid duplicate lines when called more than once
    for handler in list(root.handlers):
        root.removeHandler(handler)

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    # numba's compiler chatter drowns everything at DEBUG
    logging.getLogger("numba").setLevel(max(level, logging.WARNING))
    return root
