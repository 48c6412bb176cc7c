"""Render the text of AUTOINST, AUTOLOGIC and AUTOPORTS expansions.

Every replacement is computed against the original text. A candidate that
equals the text it would replace is dropped, so expanding an expanded file
yields no edits.
"""

from __future__ import annotations

__copyright__ = """
Copyright (c) 2025 RapidStream Design Automation, Inc. and contributors.
All rights reserved. The contributor(s) of this file has/have agreed to the
RapidStream Contributor License Agreement.
"""

import logging
from typing import TYPE_CHECKING

from svautos.autos.matcher import format_special_value
from svautos.common.replacement import Replacement
from svautos.verilog.const import (
    AUTOINST,
    AUTOLOGIC,
    AUTOPORTS,
    BEGIN_AUTOLOGIC,
    END_AUTOMATICS,
    GROUP_HEADERS,
)

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence

    from svautos.autos.aggregator import NetInfo, SignalAggregator
    from svautos.autos.matcher import MatchResult
    from svautos.common.diagnostics import DiagnosticCollector
    from svautos.config import Grouping
    from svautos.verilog.collector import (
        AutoInstRecord,
        AutoLogicRecord,
        AutoPortsRecord,
    )
    from svautos.verilog.port import PortInfo

_logger = logging.getLogger().getChild(__name__)

_DIRECTION_ORDER = ("output", "inout", "input")


def order_ports(ports: Sequence[PortInfo], grouping: Grouping) -> list[PortInfo]:
    """Sort ports alphabetically, or stably as outputs, inouts, inputs."""
    if grouping == "alphabetical":
        return sorted(ports, key=lambda port: port.name)
    return sorted(ports, key=lambda port: _DIRECTION_ORDER.index(port.direction))


def _last_non_space(text: str, end: int) -> str:
    stripped = text[:end].rstrip()
    return stripped[-1] if stripped else ""


class TextGenerator:
    """Builds replacements for one module from its aggregated nets."""

    def __init__(  # noqa: PLR0913
        self,
        aggregator: SignalAggregator,
        indent: str = "  ",
        alignment: bool = True,
        grouping: Grouping = "by_direction",
        diagnostics: DiagnosticCollector | None = None,
        file_path: str = "",
    ) -> None:
        self.aggregator = aggregator
        self.indent = indent
        self.alignment = alignment
        self.grouping = grouping
        self._diagnostics = diagnostics
        self._file_path = file_path

    def adapt_width(
        self,
        signal: str,
        port: PortInfo,
        match: MatchResult,
        instance_name: str,
    ) -> str:
        """Slice, extend or pad `signal` to the width of `port`.

        Signals chosen by a template rule and special values are never
        adapted, and neither are expressions that are not a single net.
        """
        if match.rule is not None or match.is_special:
            return signal
        net = self.aggregator.get_net_info(signal)
        if net is None or net.width == port.width:
            return signal

        if port.width < net.width:
            if port.width == 1:
                return f"{signal}[0]"
            return f"{signal}[{port.width - 1}:0]"

        if port.direction == "input":
            return f"{{'0, {signal}}}"
        if port.direction == "output":
            unused = f"unused_{signal}_{instance_name}"
            self.aggregator.add_unused_signal(unused, port.width - net.width)
            return f"{{{unused}, {signal}}}"

        self._warn(
            f"width mismatch on inout port {port.name} of {instance_name}: "
            f"port is {port.width} bit(s) but {signal} is {net.width}; "
            "leaving it unchanged",
        )
        return signal

    def autoinst_text(
        self,
        record: AutoInstRecord,
        ports: Sequence[PortInfo],
        matches: dict[str, MatchResult],
    ) -> str:
        """Render the connections of `ports`, in order, for one instance.

        Starts with a newline and ends with the instance indent so that the
        close paren lines up with the instance.
        """
        indent = record.indent if record.indent is not None else self.indent
        port_indent = indent + indent
        if not ports:
            return "\n" + indent

        width = max(len(port.name) for port in ports) if self.alignment else 0
        lines = []
        group = None
        for port in order_ports(ports, self.grouping):
            if self.grouping == "by_direction" and port.direction != group:
                group = port.direction
                lines.append(f"{port_indent}// {GROUP_HEADERS[group]}")
            match = matches[port.name]
            if match.is_unconnected:
                signal = ""
            else:
                signal = self.adapt_width(
                    format_special_value(match.signal),
                    port,
                    match,
                    record.instance_name,
                )
            lines.append(f"{port_indent}.{port.name.ljust(width)} ({signal}),")

        # Only the last connection goes without a comma.
        lines[-1] = lines[-1][:-1]
        return "\n" + "".join(f"{line}\n" for line in lines) + indent

    def autoinst(
        self,
        text: str,
        record: AutoInstRecord,
        ports: Sequence[PortInfo],
        matches: dict[str, MatchResult],
    ) -> Replacement | None:
        new_text = self.autoinst_text(record, ports, matches)
        if (
            ports
            and record.manual_connections
            and _last_non_space(text, record.marker_start) != ","
        ):
            new_text = "," + new_text
        return self._replacement(
            text,
            record.marker_end,
            record.close_paren,
            new_text,
            f"{AUTOINST}: {record.instance_name}",
        )

    def autologic_nets(self, declared: Collection[str]) -> list[NetInfo]:
        """Internal nets and padding signals that still need a declaration."""
        nets = [
            net
            for net in self.aggregator.internal
            if not net.inout and net.name not in declared
        ]
        names = {net.name for net in nets}
        nets.extend(
            net
            for net in self.aggregator.unused_signals
            if net.name not in declared and net.name not in names
        )
        return nets

    def autologic_text(self, declared: Collection[str]) -> str:
        lines = []
        for net in self.autologic_nets(declared):
            range_ = f" {net.range}" if net.range else ""
            lines.append(
                f"{self.indent}{net.net_type}{range_} {net.name}{net.unpacked_dims};\n"
            )
        return "".join(lines)

    def autologic(
        self, text: str, record: AutoLogicRecord, declared: Collection[str]
    ) -> Replacement | None:
        declarations = self.autologic_text(declared)
        if record.has_block:
            start = record.block_start
            new_text = ""
            if declarations:
                new_text = (
                    f"{BEGIN_AUTOLOGIC}\n{declarations}{self.indent}{END_AUTOMATICS}"
                )
            elif not text[record.marker_end : start].strip():
                # Drop the emptied block with the line break and indent before it.
                start = record.marker_end
            return self._replacement(
                text,
                start,
                record.block_end,
                new_text,
                f"{AUTOLOGIC}: re-expansion",
            )

        if not declarations:
            return None
        return Replacement(
            record.marker_end,
            record.marker_end,
            f"\n{self.indent}{BEGIN_AUTOLOGIC}\n{declarations}"
            f"{self.indent}{END_AUTOMATICS}",
            f"{AUTOLOGIC}: expansion",
        )

    def autoports_entries(
        self, record: AutoPortsRecord, declared: Collection[str]
    ) -> list[str]:
        """Port declarations for external nets, outputs first."""
        skip = set(record.existing_ports) | set(declared)
        groups = (
            ("output", self.aggregator.external_outputs),
            ("inout", self.aggregator.inouts),
            ("input", self.aggregator.external_inputs),
        )
        entries = []
        for direction, nets in groups:
            for net in nets:
                if net.name in skip:
                    continue
                range_ = f" {net.range}" if net.range else ""
                entries.append(
                    f"{direction} {net.net_type}{range_} {net.name}{net.unpacked_dims}"
                )
        return entries

    def autoports(
        self, text: str, record: AutoPortsRecord, declared: Collection[str]
    ) -> Replacement | None:
        entries = self.autoports_entries(record, declared)
        current = text[record.marker_end : record.close_paren]
        if not entries:
            if not current.strip():
                return None
            new_text = "\n"
        else:
            port_indent = self.indent + self.indent
            new_text = ",".join(f"\n{port_indent}{entry}" for entry in entries) + "\n"
            previous = _last_non_space(text, record.marker_start)
            if record.existing_ports and previous not in {",", "("}:
                new_text = "," + new_text
        return self._replacement(
            text, record.marker_end, record.close_paren, new_text, AUTOPORTS
        )

    @staticmethod
    def _replacement(
        text: str, start: int, end: int, new_text: str, description: str
    ) -> Replacement | None:
        if text[start:end] == new_text:
            _logger.debug("%s is up to date", description)
            return None
        return Replacement(start, end, new_text, description)

    def _warn(self, message: str) -> None:
        if self._diagnostics is None:
            _logger.warning("%s", message)
        else:
            self._diagnostics.warning(message, self._file_path, kind="width")

