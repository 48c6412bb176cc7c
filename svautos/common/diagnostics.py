"""Warning and error records accumulated over one run."""

from __future__ import annotations

__copyright__ = """
Copyright (c) 2025 RapidStream Design Automation, Inc. and contributors.
All rights reserved. The contributor(s) of this file has/have agreed to the
RapidStream Contributor License Agreement.
"""

import logging
from typing import Literal, NamedTuple

_logger = logging.getLogger().getChild(__name__)

Level = Literal["warning", "error"]
Kind = Literal["general", "parse", "template", "port", "module", "config", "width"]


class AutosError(Exception):
    """Unrecoverable failure that aborts the whole run."""


class ConfigError(AutosError):
    """Invalid configuration file or option value."""


class LoadError(AutosError):
    """Input could not be read or parsed."""


class Diagnostic(NamedTuple):
    level: Level
    message: str
    file_path: str = ""
    line: int = 0
    kind: Kind = "general"

    def __str__(self) -> str:
        location = ""
        if self.file_path:
            location = f"{self.file_path}: "
            if self.line:
                location = f"{self.file_path}:{self.line}: "
        return f"{location}{self.level}: {self.message}"


class DiagnosticCollector:
    """Accumulates diagnostics; each one is also forwarded to the logger."""

    def __init__(self) -> None:
        self._diagnostics: list[Diagnostic] = []

    def add(self, diagnostic: Diagnostic) -> None:
        self._diagnostics.append(diagnostic)
        if diagnostic.level == "error":
            _logger.error("%s", diagnostic)
        else:
            _logger.warning("%s", diagnostic)

    def warning(
        self,
        message: str,
        file_path: str = "",
        line: int = 0,
        kind: Kind = "general",
    ) -> None:
        self.add(Diagnostic("warning", message, file_path, line, kind))

    def error(
        self,
        message: str,
        file_path: str = "",
        line: int = 0,
        kind: Kind = "general",
    ) -> None:
        self.add(Diagnostic("error", message, file_path, line, kind))

    @property
    def diagnostics(self) -> tuple[Diagnostic, ...]:
        return tuple(self._diagnostics)

    @property
    def warning_count(self) -> int:
        return sum(1 for d in self._diagnostics if d.level == "warning")

    @property
    def error_count(self) -> int:
        return sum(1 for d in self._diagnostics if d.level == "error")

    @property
    def has_errors(self) -> bool:
        return self.error_count > 0

    def format(self) -> str:
        return "".join(f"{d}\n" for d in self._diagnostics)

    def clear(self) -> None:
        self._diagnostics.clear()

    def __len__(self) -> int:
        return len(self._diagnostics)
