"""Utility functions for svautos."""

from __future__ import annotations

__copyright__ = """
Copyright (c) 2025 RapidStream Design Automation, Inc. and contributors.
All rights reserved. The contributor(s) of this file has/have agreed to the
RapidStream Contributor License Agreement.
"""

import logging
import os.path
from typing import TYPE_CHECKING

import coloredlogs

if TYPE_CHECKING:
    from collections.abc import Iterator

_logger = logging.getLogger().getChild(__name__)

VCS_MARKER = ".git"


def setup_logging(
    verbose: int | None,
    quiet: int | None,
    log_file: str | None = None,
) -> None:
    verbose = 0 if verbose is None else verbose
    quiet = 0 if quiet is None else quiet
    logging_level = (quiet - verbose) * 10 + logging.INFO
    logging_level = max(logging.DEBUG, min(logging.CRITICAL, logging_level))

    coloredlogs.install(
        level=logging_level,
        fmt="%(levelname).1s%(asctime)s %(name)s:%(lineno)d] %(message)s",
        datefmt="%m%d %H:%M:%S.%f",
    )

    if log_file is not None:
        log_dir = os.path.dirname(os.path.abspath(log_file))
        os.makedirs(log_dir, exist_ok=True)
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setFormatter(
            logging.Formatter(
                fmt=(
                    "%(levelname).1s%(asctime)s.%(msecs)03d "
                    "%(name)s:%(lineno)d] %(message)s"
                ),
                datefmt="%m%d %H:%M:%S",
            ),
        )
        handler.setLevel(logging.DEBUG)
        logging.getLogger().addHandler(handler)

    _logger.debug("logging level set to %s", logging.getLevelName(logging_level))


def iter_parent_dirs(start: str) -> Iterator[str]:
    """Yield `start` and each of its ancestors, closest first."""
    current = os.path.abspath(start)
    while True:
        yield current
        parent = os.path.dirname(current)
        if parent == current:
            return
        current = parent


def find_vcs_root(start: str) -> str | None:
    """Return the closest ancestor of `start` holding a `.git` entry."""
    for directory in iter_parent_dirs(start):
        if os.path.exists(os.path.join(directory, VCS_MARKER)):
            return directory
    return None


def line_of_offset(text: str, offset: int) -> int:
    """Return the 1-based line number of character `offset` in `text`."""
    return text.count("\n", 0, offset) + 1
