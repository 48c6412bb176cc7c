"""Expand the AUTO markers of one parsed file into text replacements.

Each module goes through three phases:

1. collect its markers and hand-written declarations;
2. resolve the ports of every AUTOINST instance, match them against the
   closest preceding template and fold the connections into a fresh
   aggregator;
3. generate AUTOINST, AUTOLOGIC and AUTOPORTS text from the aggregate.

AUTOLOGIC is generated after every AUTOINST of the module since width
adaptation may register padding signals that need a declaration.
"""

from __future__ import annotations

__copyright__ = """
Copyright (c) 2025 RapidStream Design Automation, Inc. and contributors.
All rights reserved. The contributor(s) of this file has/have agreed to the
RapidStream Contributor License Agreement.
"""

import logging
from typing import TYPE_CHECKING, NamedTuple

from svautos.autos.aggregator import PortConnection, SignalAggregator
from svautos.autos.generator import TextGenerator
from svautos.autos.matcher import MatchResult, PatternCache, TemplateMatcher
from svautos.common.diagnostics import DiagnosticCollector
from svautos.common.replacement import Replacement, check_non_overlapping
from svautos.config import MergedConfig
from svautos.verilog.collector import AutoInstRecord, CollectedInfo, collect_file
from svautos.verilog.template import collect_templates, select_template
from svautos.verilog.trivia import OffsetMap

if TYPE_CHECKING:
    from collections.abc import Sequence

    import pyslang

    from svautos.verilog.frontend import PortFacts
    from svautos.verilog.port import PortInfo
    from svautos.verilog.template import AutoTemplate

_logger = logging.getLogger().getChild(__name__)


class ExpansionCounts(NamedTuple):
    autoinst: int = 0
    autologic: int = 0
    autoports: int = 0

    @property
    def total(self) -> int:
        return self.autoinst + self.autologic + self.autoports

    def merged(self, other: ExpansionCounts) -> ExpansionCounts:
        return ExpansionCounts(*(a + b for a, b in zip(self, other, strict=True)))


class AnalysisResult(NamedTuple):
    replacements: tuple[Replacement, ...] = ()
    counts: ExpansionCounts = ExpansionCounts()


class ResolvedInstance(NamedTuple):
    """An AUTOINST instance with the ports it will connect automatically."""

    record: AutoInstRecord
    ports: tuple[PortInfo, ...]
    matches: dict[str, MatchResult]


class AutosAnalyzer:
    """Turns collected markers into replacements against the original text."""

    def __init__(
        self,
        facts: PortFacts,
        config: MergedConfig | None = None,
        diagnostics: DiagnosticCollector | None = None,
        file_path: str = "",
        cache: PatternCache | None = None,
    ) -> None:
        self.facts = facts
        self.config = config or MergedConfig()
        self.diagnostics = (
            diagnostics if diagnostics is not None else DiagnosticCollector()
        )
        self.file_path = file_path
        self._cache = cache or PatternCache()

    def analyze(
        self,
        tree: pyslang.SyntaxTree,
        text: str,
        templates: Sequence[AutoTemplate] | None = None,
    ) -> AnalysisResult:
        """Expand every module of `tree`, whose source is `text`."""
        offsets = OffsetMap(text)
        if templates is None:
            templates = collect_templates(
                tree, offsets, self.file_path, self.diagnostics
            )

        replacements: list[Replacement] = []
        counts = ExpansionCounts()
        for info in collect_file(tree, offsets):
            if not info.has_autos:
                continue
            result = self.analyze_module(info, text, templates)
            replacements.extend(result.replacements)
            counts = counts.merged(result.counts)

        check_non_overlapping(replacements)
        return AnalysisResult(tuple(replacements), counts)

    def analyze_module(
        self,
        info: CollectedInfo,
        text: str,
        templates: Sequence[AutoTemplate] = (),
    ) -> AnalysisResult:
        _logger.debug(
            "expanding module %s: %d AUTOINST, AUTOLOGIC %s, AUTOPORTS %s",
            info.module_name,
            len(info.autoinsts),
            "yes" if info.autologic else "no",
            "yes" if info.autoports else "no",
        )
        aggregator = SignalAggregator()
        resolved = [
            instance
            for record in info.autoinsts
            if (instance := self._resolve(record, templates, aggregator)) is not None
        ]

        generator = TextGenerator(
            aggregator,
            indent=self.config.indent_string,
            alignment=self.config.alignment,
            grouping=self.config.grouping,
            diagnostics=self.diagnostics,
            file_path=self.file_path,
        )
        replacements: list[Replacement] = []
        autoinst = autologic = autoports = 0
        for instance in resolved:
            replacement = generator.autoinst(
                text, instance.record, instance.ports, instance.matches
            )
            if replacement is not None:
                replacements.append(replacement)
                autoinst += 1

        if info.autologic is not None:
            replacement = generator.autologic(text, info.autologic, info.declared)
            if replacement is not None:
                replacements.append(replacement)
                autologic += 1

        if info.autoports is not None:
            replacement = generator.autoports(text, info.autoports, info.declared)
            if replacement is not None:
                replacements.append(replacement)
                autoports += 1

        return AnalysisResult(
            tuple(replacements), ExpansionCounts(autoinst, autologic, autoports)
        )

    def _resolve(
        self,
        record: AutoInstRecord,
        templates: Sequence[AutoTemplate],
        aggregator: SignalAggregator,
    ) -> ResolvedInstance | None:
        ports = self.facts.get_ports(record.module_type)
        if ports is None:
            message = (
                f"module {record.module_type} of instance {record.instance_name} "
                "not found"
            )
            if self.config.is_strict:
                self.diagnostics.error(message, self.file_path, record.line, "module")
            else:
                self.diagnostics.warning(
                    f"{message}; leaving its AUTOINST unchanged",
                    self.file_path,
                    record.line,
                    "module",
                )
            return None
        if not ports:
            return None

        template = select_template(templates, record.module_type, record.line)
        if template is not None:
            _logger.debug(
                "instance %s uses the AUTO_TEMPLATE at line %d",
                record.instance_name,
                template.line,
            )
        matcher = TemplateMatcher(template, self.diagnostics, self._cache)
        matcher.set_instance(record.instance_name)

        auto_ports = self._auto_ports(record, ports)
        matches = {port.name: matcher.match_port(port) for port in auto_ports}

        resolved_ranges = self.config.resolved_ranges
        by_name = {port.name: port for port in ports}
        connections = []
        for manual in record.manual_connections:
            port = by_name.get(manual.port_name)
            if port is None:
                message = (
                    f"module {record.module_type} has no port {manual.port_name} "
                    f"connected by {record.instance_name}"
                )
                if self.config.is_strict:
                    self.diagnostics.error(message, self.file_path, record.line, "port")
                else:
                    self.diagnostics.warning(
                        message, self.file_path, record.line, "port"
                    )
                continue
            connections.append(
                PortConnection.create(port, manual.expression, resolved_ranges)
            )
        connections.extend(
            PortConnection.create(port, matches[port.name].signal, resolved_ranges)
            for port in auto_ports
        )
        aggregator.add_from_instance(record.instance_name, connections)
        return ResolvedInstance(record, auto_ports, matches)

    def _auto_ports(
        self, record: AutoInstRecord, ports: Sequence[PortInfo]
    ) -> tuple[PortInfo, ...]:
        """Ports not connected by hand that pass the AUTOINST filter."""
        manual = record.manual_ports
        auto_ports = [port for port in ports if port.name not in manual]
        if not record.filter_pattern:
            return tuple(auto_ports)

        pattern = self._cache.compile(record.filter_pattern)
        if pattern is None:
            if self._cache.first_time("filter", record.filter_pattern):
                self.diagnostics.warning(
                    f"invalid AUTOINST filter {record.filter_pattern!r}; "
                    "connecting all ports",
                    self.file_path,
                    record.line,
                    "template",
                )
            return tuple(auto_ports)
        return tuple(port for port in auto_ports if pattern.search(port.name))
