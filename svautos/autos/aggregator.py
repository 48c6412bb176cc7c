"""Fold the connections of every instance in a module into per-net facts.

A net is classified from how instance ports use it:

- external input: consumed by an input port and never driven;
- external output: driven by an output port and never consumed;
- internal: everything else, including nets both driven and consumed and
  nets that receive part of an output through a concatenation.

Inout usage is tracked separately and may overlap with the above.
"""

from __future__ import annotations

__copyright__ = """
Copyright (c) 2025 RapidStream Design Automation, Inc. and contributors.
All rights reserved. The contributor(s) of this file has/have agreed to the
RapidStream Contributor License Agreement.
"""

import logging
from typing import TYPE_CHECKING, Literal, NamedTuple

from svautos.verilog.const import CONSTANTS, UNCONNECTED
from svautos.verilog.expression import analyze_expression

if TYPE_CHECKING:
    from collections.abc import Iterable

    from svautos.verilog.port import Direction, PortInfo

_logger = logging.getLogger().getChild(__name__)

NetUsage = Literal["external_input", "external_output", "internal"]


class PortConnection(NamedTuple):
    """What one port of one instance connects to."""

    port_name: str
    signal_expr: str
    direction: Direction
    port_width: int = 1
    port_range: str = ""
    unpacked_dims: str = ""

    @property
    def is_unconnected(self) -> bool:
        return self.signal_expr in {UNCONNECTED, ""}

    @property
    def is_constant(self) -> bool:
        return self.signal_expr in CONSTANTS

    @classmethod
    def create(
        cls, port: PortInfo, signal_expr: str, resolved_ranges: bool = False
    ) -> PortConnection:
        """Connect `port` to `signal_expr`, declaring nets with its range."""
        return cls(
            port.name,
            signal_expr,
            port.direction,
            port.width,
            port.resolved_range if resolved_ranges else port.range,
            port.unpacked_dims,
        )


class NetInfo(NamedTuple):
    name: str
    width: int = 1
    range: str = ""
    net_type: str = "logic"
    unpacked_dims: str = ""
    driven: bool = False
    consumed: bool = False
    inout: bool = False
    concat: bool = False
    instances: tuple[str, ...] = ()

    @property
    def msb(self) -> int:
        return self.width - 1

    @property
    def lsb(self) -> int:
        return 0

    @property
    def usage(self) -> NetUsage:
        if self.concat:
            return "internal"
        if self.consumed and not self.driven:
            return "external_input"
        if self.driven and not self.consumed and not self.inout:
            return "external_output"
        return "internal"


class SignalAggregator:
    """Per-net usage of one module; build a fresh one for every module."""

    def __init__(self) -> None:
        self._nets: dict[str, NetInfo] = {}
        self._unused: dict[str, int] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._nets

    def __len__(self) -> int:
        return len(self._nets)

    def add_from_instance(
        self, instance_name: str, connections: Iterable[PortConnection]
    ) -> None:
        """Fold the connections of `instance_name` into the net map.

        Unconnected ports, constants and literal expressions carry no net.
        """
        for connection in connections:
            if connection.is_unconnected or connection.is_constant:
                continue
            facts = analyze_expression(connection.signal_expr)
            if facts.is_literal or not facts.identifiers:
                continue

            width, range_ = connection.port_width, connection.port_range
            if facts.max_bit_index + 1 > width:
                width = facts.max_bit_index + 1
                range_ = f"[{facts.max_bit_index}:0]"

            concat = facts.is_concatenation and connection.direction == "output"
            bare = facts.identifiers == (connection.signal_expr.strip(),)
            for name in facts.identifiers:
                self._fold(
                    name,
                    instance_name,
                    connection.direction,
                    width,
                    range_,
                    concat,
                    connection.unpacked_dims if bare else "",
                )

    def _fold(  # noqa: PLR0913,PLR0917
        self,
        name: str,
        instance_name: str,
        direction: Direction,
        width: int,
        range_: str,
        concat: bool,
        unpacked_dims: str,
    ) -> None:
        net = self._nets.get(name)
        if net is None:
            net = NetInfo(name, width, range_, unpacked_dims=unpacked_dims)
        elif width > net.width:
            _logger.debug(
                "net %s widened from %d to %d by %s",
                name,
                net.width,
                width,
                instance_name,
            )
            net = net._replace(width=width, range=range_)

        if instance_name not in net.instances:
            net = net._replace(instances=(*net.instances, instance_name))
        if direction == "output":
            net = net._replace(driven=True)
        elif direction == "input":
            net = net._replace(consumed=True)
        else:
            net = net._replace(driven=True, consumed=True, inout=True)
        if concat:
            net = net._replace(concat=True)
        self._nets[name] = net

    def get_net_info(self, name: str) -> NetInfo | None:
        return self._nets.get(name)

    def add_unused_signal(self, name: str, width: int) -> None:
        """Register a padding signal for the upper bits of a wide output."""
        self._unused[name] = max(width, self._unused.get(name, 0))

    @property
    def nets(self) -> list[NetInfo]:
        return [self._nets[name] for name in sorted(self._nets)]

    @property
    def external_inputs(self) -> list[NetInfo]:
        return [net for net in self.nets if net.usage == "external_input"]

    @property
    def external_outputs(self) -> list[NetInfo]:
        return [net for net in self.nets if net.usage == "external_output"]

    @property
    def inouts(self) -> list[NetInfo]:
        return [net for net in self.nets if net.inout]

    @property
    def internal(self) -> list[NetInfo]:
        return [net for net in self.nets if net.usage == "internal"]

    @property
    def unused_signals(self) -> list[NetInfo]:
        return [
            NetInfo(
                name,
                width,
                f"[{width - 1}:0]" if width > 1 else "",
                driven=True,
            )
            for name, width in sorted(self._unused.items())
        ]
