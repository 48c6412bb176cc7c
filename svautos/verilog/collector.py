"""Collect AUTO markers and their surrounding context from parsed modules."""

__copyright__ = """
Copyright (c) 2025 RapidStream Design Automation, Inc. and contributors.
All rights reserved. The contributor(s) of this file has/have agreed to the
RapidStream Contributor License Agreement.
"""

import functools
import logging
from typing import NamedTuple

import pyslang

from svautos.util import line_of_offset
from svautos.verilog.const import (
    AUTOINST_PATTERN,
    AUTOLOGIC_MARKERS,
    AUTOPORTS,
    BEGIN_PREFIX,
    END_AUTOMATICS,
)
from svautos.verilog.trivia import Comment, OffsetMap, iter_comments, leading_indent

_logger = logging.getLogger().getChild(__name__)

_SIGNAL_SYNTAX = pyslang.DataDeclarationSyntax | pyslang.NetDeclarationSyntax


class ManualConnection(NamedTuple):
    port_name: str
    expression: str


class AutoInstRecord(NamedTuple):
    """An instantiation carrying `/*AUTOINST*/`.

    The generated connections live in `[marker_end, close_paren)`.
    """

    module_type: str
    instance_name: str
    marker_start: int
    marker_end: int
    close_paren: int
    manual_connections: tuple[ManualConnection, ...] = ()
    filter_pattern: str = ""
    line: int = 0
    indent: str | None = None

    @property
    def manual_ports(self) -> frozenset[str]:
        return frozenset(c.port_name for c in self.manual_connections)


class AutoLogicRecord(NamedTuple):
    """A `/*AUTOLOGIC*/` marker and any block generated after it before."""

    marker_end: int
    block_start: int = -1
    block_end: int = -1
    line: int = 0

    @property
    def has_block(self) -> bool:
        return self.block_start >= 0


class AutoPortsRecord(NamedTuple):
    marker_start: int
    marker_end: int
    close_paren: int
    existing_ports: tuple[str, ...] = ()
    line: int = 0


class CollectedInfo(NamedTuple):
    module_name: str
    autoinsts: tuple[AutoInstRecord, ...] = ()
    autologic: AutoLogicRecord | None = None
    autoports: AutoPortsRecord | None = None
    declared: frozenset[str] = frozenset()

    @property
    def has_autos(self) -> bool:
        return (
            bool(self.autoinsts)
            or self.autologic is not None
            or self.autoports is not None
        )


def find_modules(
    root: pyslang.SyntaxNode,
) -> list[pyslang.ModuleDeclarationSyntax]:
    modules = []

    def visitor(node: object) -> pyslang.VisitAction:
        if isinstance(node, pyslang.ModuleDeclarationSyntax):
            modules.append(node)
            return pyslang.VisitAction.Skip
        return pyslang.VisitAction.Advance

    root.visit(visitor)
    return modules


def _node_start(node: pyslang.SyntaxNode, offsets: OffsetMap) -> int:
    return offsets.to_char(node.sourceRange.start.offset)


def _collect_autoinst(
    node: pyslang.HierarchyInstantiationSyntax,
    instance: pyslang.HierarchicalInstanceSyntax,
    offsets: OffsetMap,
) -> AutoInstRecord | None:
    marker = None
    for comment in iter_comments(instance, offsets):
        match = AUTOINST_PATTERN.search(comment.text)
        if match is not None:
            marker = (comment.start + match.start(), comment.start + match.end(), match)
            break
    if marker is None:
        return None
    marker_start, marker_end, match = marker

    close_paren = offsets.token_start(instance.closeParen)
    if close_paren is None or close_paren < marker_end:
        _logger.debug("AUTOINST marker without a usable close paren")
        return None

    manual = []
    for connection in instance.connections:
        if not isinstance(connection, pyslang.NamedPortConnectionSyntax):
            continue
        if _node_start(connection, offsets) >= marker_start:
            continue
        name = connection.name.valueText
        if connection.expr is not None:
            expression = str(connection.expr).strip()
        elif connection.openParen.valueText:
            expression = ""
        else:
            # `.name` shorthand connects the signal of the same name.
            expression = name
        manual.append(ManualConnection(name, expression))

    start = _node_start(node, offsets)
    return AutoInstRecord(
        module_type=node.type.valueText,
        instance_name=(
            instance.decl.name.valueText if instance.decl is not None else ""
        ),
        marker_start=marker_start,
        marker_end=marker_end,
        close_paren=close_paren,
        manual_connections=tuple(manual),
        filter_pattern=match[1] or "",
        line=line_of_offset(offsets.text, start),
        indent=leading_indent(node.getFirstToken()),
    )


def _collect_autologic(
    comments: list[Comment], offsets: OffsetMap
) -> AutoLogicRecord | None:
    text = offsets.text
    for index, comment in enumerate(comments):
        found = [(comment.text.find(m), m) for m in AUTOLOGIC_MARKERS]
        found = [(pos, m) for pos, m in found if pos >= 0]
        if not found:
            continue
        pos, marker = min(found)
        marker_end = comment.start + pos + len(marker)
        line = line_of_offset(text, marker_end)

        following = comments[index + 1 :]
        if (
            following
            and following[0].text.startswith(BEGIN_PREFIX)
            and not text[marker_end : following[0].start].strip()
        ):
            for end_comment in following[1:]:
                if end_comment.text.startswith(END_AUTOMATICS):
                    return AutoLogicRecord(
                        marker_end,
                        following[0].start,
                        end_comment.start + len(END_AUTOMATICS),
                        line,
                    )
            _logger.warning(
                "automatic logic block at line %d is not terminated by %r",
                line,
                END_AUTOMATICS,
            )
        return AutoLogicRecord(marker_end, line=line)
    return None


def _collect_autoports(
    ports: pyslang.AnsiPortListSyntax, offsets: OffsetMap
) -> AutoPortsRecord | None:
    for comment in iter_comments(ports, offsets):
        pos = comment.text.find(AUTOPORTS)
        if pos < 0:
            continue
        marker_start = comment.start + pos
        close_paren = offsets.token_start(ports.closeParen)
        if close_paren is None or close_paren < marker_start:
            return None
        existing = [
            port.declarator.name.valueText
            for port in ports.ports
            if isinstance(port, pyslang.ImplicitAnsiPortSyntax)
            and _node_start(port, offsets) < marker_start
        ]
        return AutoPortsRecord(
            marker_start=marker_start,
            marker_end=marker_start + len(AUTOPORTS),
            close_paren=close_paren,
            existing_ports=tuple(existing),
            line=line_of_offset(offsets.text, marker_start),
        )
    return None


def _declarator_names(node: pyslang.SyntaxNode) -> list[str]:
    return [
        item.name.valueText
        for item in node.declarators
        if isinstance(item, pyslang.DeclaratorSyntax)
    ]


def collect_module(
    module: pyslang.ModuleDeclarationSyntax, offsets: OffsetMap
) -> CollectedInfo:
    """Collect the AUTO markers of `module` and its hand-written declarations."""
    autoinsts: list[AutoInstRecord] = []

    @functools.singledispatch
    def visitor(_: object) -> pyslang.VisitAction:
        return pyslang.VisitAction.Advance

    @visitor.register
    def _(node: pyslang.HierarchyInstantiationSyntax) -> pyslang.VisitAction:
        for instance in node.instances:
            if not isinstance(instance, pyslang.HierarchicalInstanceSyntax):
                continue
            record = _collect_autoinst(node, instance, offsets)
            if record is not None:
                autoinsts.append(record)
        return pyslang.VisitAction.Skip

    for member in module.members:
        member.visit(visitor)

    autologic = _collect_autologic(list(iter_comments(module, offsets)), offsets)

    declared: set[str] = set()
    autoports = None
    header_ports = module.header.ports
    if isinstance(header_ports, pyslang.AnsiPortListSyntax):
        autoports = _collect_autoports(header_ports, offsets)
        limit = autoports.marker_start if autoports else len(offsets.text)
        declared.update(
            port.declarator.name.valueText
            for port in header_ports.ports
            if isinstance(port, pyslang.ImplicitAnsiPortSyntax)
            and _node_start(port, offsets) < limit
        )

    for member in module.members:
        if isinstance(member, pyslang.PortDeclarationSyntax):
            declared.update(_declarator_names(member))
        elif isinstance(member, _SIGNAL_SYNTAX):
            start = _node_start(member, offsets)
            if (
                autologic is not None
                and autologic.has_block
                and autologic.block_start <= start < autologic.block_end
            ):
                continue
            declared.update(_declarator_names(member))
    declared.discard("")

    return CollectedInfo(
        module_name=module.header.name.valueText,
        autoinsts=tuple(autoinsts),
        autologic=autologic,
        autoports=autoports,
        declared=frozenset(declared),
    )


def collect_file(tree: pyslang.SyntaxTree, offsets: OffsetMap) -> list[CollectedInfo]:
    """Collect every module declared in `tree`."""
    return [collect_module(module, offsets) for module in find_modules(tree.root)]
