"""Expansion entry point shared by the command line and the stdio server."""

from __future__ import annotations

__copyright__ = """
Copyright (c) 2025 RapidStream Design Automation, Inc. and contributors.
All rights reserved. The contributor(s) of this file has/have agreed to the
RapidStream Contributor License Agreement.
"""

import logging
from typing import TYPE_CHECKING, NamedTuple

import pyslang

from svautos.autos.analyzer import AutosAnalyzer, ExpansionCounts
from svautos.autos.matcher import PatternCache
from svautos.common.diagnostics import AutosError, DiagnosticCollector, LoadError
from svautos.common.replacement import Replacement, apply_replacements
from svautos.config import (
    CliFlags,
    FileConfig,
    InlineConfig,
    MergedConfig,
    merge_config,
    parse_inline_config,
)
from svautos.verilog.collector import collect_file
from svautos.verilog.const import AUTOINST, AUTOLOGIC, AUTOPORTS
from svautos.verilog.frontend import Compilation
from svautos.verilog.trivia import OffsetMap

if TYPE_CHECKING:
    from collections.abc import Iterable

    from svautos.verilog.frontend import PortFacts

_logger = logging.getLogger().getChild(__name__)


class ExpansionResult(NamedTuple):
    """Outcome of expanding, or deleting, the AUTOs of one file."""

    file_path: str
    original: str
    modified: str
    replacements: tuple[Replacement, ...] = ()
    counts: ExpansionCounts = ExpansionCounts()
    success: bool = True

    @property
    def has_changes(self) -> bool:
        return self.original != self.modified


def read_source(path: str) -> str:
    try:
        with open(path, encoding="utf-8", newline="") as fp:
            return fp.read()
    except (OSError, UnicodeDecodeError) as e:
        msg = f"cannot read {path}: {e}"
        raise LoadError(msg) from e


class AutosTool:
    """Loads a design once, then expands the AUTOs of its files one by one.

    The configuration of each file is the project file and the command line
    flags given here, merged with the inline directives of that file.
    """

    def __init__(
        self,
        file_config: FileConfig | None = None,
        cli: CliFlags | None = None,
        diagnostics: DiagnosticCollector | None = None,
    ) -> None:
        self.file_config = file_config
        self.cli = cli
        self.diagnostics = (
            diagnostics if diagnostics is not None else DiagnosticCollector()
        )
        self.facts: PortFacts | None = None
        self._inline: dict[str, InlineConfig] = {}
        self._cache = PatternCache()

    @property
    def config(self) -> MergedConfig:
        """Options before any inline directive is applied."""
        return merge_config(self.file_config, None, self.cli)

    def inline_config(self, path: str, text: str | None = None) -> InlineConfig:
        """Parse the inline directives of `path` once per run."""
        if path not in self._inline:
            if text is None:
                text = read_source(path)
            self._inline[path] = parse_inline_config(text, path, self.diagnostics)
        return self._inline[path]

    def config_for(self, path: str, text: str | None = None) -> MergedConfig:
        return merge_config(self.file_config, self.inline_config(path, text), self.cli)

    def load(
        self,
        paths: Iterable[str],
        defines: Iterable[str] = (),
        file_lists: Iterable[str] = (),
    ) -> Compilation:
        """Parse and elaborate `paths` for port lookups.

        Library and include directories set inline in any of the files are
        added to those of the project file and the command line.
        """
        paths = list(paths)
        config = self.config
        libdirs = list(config.libdirs)
        libext = list(config.libext)
        incdirs = list(config.incdirs)
        for path in paths:
            inline = self.inline_config(path)
            libdirs += inline.libdirs
            libext += inline.libext
            incdirs += inline.incdirs

        _logger.info("loading %d source file(s)", len(paths))
        compilation = Compilation.from_args(
            paths,
            libdirs=libdirs,
            libext=libext,
            incdirs=incdirs,
            defines=defines,
            file_lists=file_lists,
            single_unit=config.single_unit,
            diagnostics=self.diagnostics,
        )
        self.facts = compilation
        return compilation

    def parse(
        self, text: str, file_path: str, config: MergedConfig
    ) -> pyslang.SyntaxTree | None:
        """Parse `text`; return None if syntax errors forbid editing it."""
        tree = pyslang.SyntaxTree.fromText(text)
        errors = [d for d in tree.diagnostics if d.isError()]
        if not errors:
            return tree

        line = tree.sourceManager.getLineNumber(errors[0].location)
        message = f"{len(errors)} syntax error(s), the first one at line {line}"
        if config.is_strict:
            self.diagnostics.error(
                f"{message}; leaving the file unchanged", file_path, line, "parse"
            )
            return None
        self.diagnostics.warning(message, file_path, line, "parse")
        return tree

    def expand_text(
        self,
        text: str,
        file_path: str = "",
        config: MergedConfig | None = None,
    ) -> ExpansionResult:
        """Expand every AUTO marker in `text`."""
        if self.facts is None:
            msg = "no design loaded; call load() first"
            raise AutosError(msg)
        config = config or self.config
        tree = self.parse(text, file_path, config)
        if tree is None:
            return ExpansionResult(file_path, text, text, success=False)

        errors_before = self.diagnostics.error_count
        analyzer = AutosAnalyzer(
            self.facts, config, self.diagnostics, file_path, self._cache
        )
        result = analyzer.analyze(tree, text)
        modified = apply_replacements(text, result.replacements)
        _logger.debug(
            "%s: %d AUTOINST, %d AUTOLOGIC, %d AUTOPORTS",
            file_path or "<text>",
            *result.counts,
        )
        return ExpansionResult(
            file_path,
            text,
            modified,
            result.replacements,
            result.counts,
            success=self.diagnostics.error_count == errors_before,
        )

    def expand_file(self, path: str, dry_run: bool = False) -> ExpansionResult:
        """Expand the AUTOs of `path`, writing it back unless `dry_run`.

        A file whose expansion recorded an error is never written.
        """
        text = read_source(path)
        result = self.expand_text(text, path, self.config_for(path, text))
        if result.has_changes and result.success and not dry_run:
            _write(path, result.modified)
            _logger.info("updated %s", path)
        return result

    def delete_autos(self, text: str, file_path: str = "") -> ExpansionResult:
        """Strip generated content, leaving only the bare markers."""
        config = self.config
        tree = self.parse(text, file_path, config)
        if tree is None:
            return ExpansionResult(file_path, text, text, success=False)

        replacements = []
        autoinst = autologic = autoports = 0
        for info in collect_file(tree, OffsetMap(text)):
            for record in info.autoinsts:
                if text[record.marker_end : record.close_paren]:
                    replacements.append(
                        Replacement(
                            record.marker_end,
                            record.close_paren,
                            "",
                            f"{AUTOINST}: {record.instance_name}",
                        )
                    )
                    autoinst += 1
            if info.autologic is not None and info.autologic.has_block:
                replacements.append(
                    Replacement(
                        info.autologic.marker_end,
                        info.autologic.block_end,
                        "",
                        AUTOLOGIC,
                    )
                )
                autologic += 1
            ports = info.autoports
            if ports is not None and text[ports.marker_end : ports.close_paren].strip():
                replacements.append(
                    Replacement(ports.marker_end, ports.close_paren, "\n", AUTOPORTS)
                )
                autoports += 1

        modified = apply_replacements(text, replacements)
        return ExpansionResult(
            file_path,
            text,
            modified,
            tuple(replacements),
            ExpansionCounts(autoinst, autologic, autoports),
        )


def _write(path: str, text: str) -> None:
    try:
        with open(path, "w", encoding="utf-8", newline="") as fp:
            fp.write(text)
    except OSError as e:
        msg = f"cannot write {path}: {e}"
        raise LoadError(msg) from e
