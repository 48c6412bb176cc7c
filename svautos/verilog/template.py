"""AUTO_TEMPLATE blocks: per-module port-to-signal remapping rules.

A template is a block comment of the form::

    /* sub AUTO_TEMPLATE "u_sub_(\\d+)"
       data_in  => fifo_%1_in
       data_out => fifo_%1_out,   // trailing comma and comment are ignored
    */

Each rule maps a port-name regex to a signal expression. Rules end at a
newline; nested block comments are not supported in the body since they
would close the template itself.
"""

from __future__ import annotations

__copyright__ = """
Copyright (c) 2025 RapidStream Design Automation, Inc. and contributors.
All rights reserved. The contributor(s) of this file has/have agreed to the
RapidStream Contributor License Agreement.
"""

import logging
import re
from typing import TYPE_CHECKING, NamedTuple

from svautos.util import line_of_offset
from svautos.verilog.trivia import Comment, OffsetMap, iter_comments

if TYPE_CHECKING:
    from collections.abc import Iterable

    import pyslang

    from svautos.common.diagnostics import DiagnosticCollector

_logger = logging.getLogger().getChild(__name__)

_HEADER = re.compile(r'/\*\s*(\w+)\s+AUTO_TEMPLATE(?:\s+"([^"]*)")?\s*')
_RULE = re.compile(r"^\s*(\S+)\s*=>\s*(.+?)\s*$")


class TemplateRule(NamedTuple):
    port_pattern: str
    signal_expression: str
    line: int = 0


class AutoTemplate(NamedTuple):
    module_name: str
    instance_pattern: str
    rules: tuple[TemplateRule, ...]
    file_path: str = ""
    line: int = 0
    offset: int = 0


def parse_template(
    comment: str,
    file_path: str = "",
    line: int = 0,
    offset: int = 0,
    diagnostics: DiagnosticCollector | None = None,
) -> AutoTemplate | None:
    """Parse one block comment; return None if it is not an AUTO_TEMPLATE."""
    header = _HEADER.search(comment)
    if header is None:
        return None
    module_name, instance_pattern = header[1], header[2] or ""

    if instance_pattern:
        try:
            re.compile(instance_pattern)
        except re.error as e:
            _warn(
                diagnostics,
                f"invalid instance pattern {instance_pattern!r} in AUTO_TEMPLATE "
                f"for {module_name}: {e}",
                file_path,
                line,
            )

    body = comment[header.end() :]
    if body.endswith("*/"):
        body = body[:-2]
    body_line = line + comment.count("\n", 0, header.end())

    rules = []
    for index, raw in enumerate(body.split("\n")):
        text = raw.split("//", 1)[0]
        match = _RULE.match(text)
        if match is None:
            continue
        port_pattern = match[1]
        signal = match[2].rstrip()
        if signal.endswith(","):
            signal = signal[:-1].rstrip()
        rule_line = body_line + index
        try:
            re.compile(port_pattern)
        except re.error as e:
            _warn(
                diagnostics,
                f"skipping rule with invalid port pattern {port_pattern!r}: {e}",
                file_path,
                rule_line,
            )
            continue
        rules.append(TemplateRule(port_pattern, signal, rule_line))

    if not rules:
        _warn(
            diagnostics,
            f"AUTO_TEMPLATE for {module_name} has no rules",
            file_path,
            line,
        )

    return AutoTemplate(
        module_name=module_name,
        instance_pattern=instance_pattern,
        rules=tuple(rules),
        file_path=file_path,
        line=line,
        offset=offset,
    )


def _warn(
    diagnostics: DiagnosticCollector | None, message: str, file_path: str, line: int
) -> None:
    if diagnostics is None:
        _logger.warning("%s", message)
    else:
        diagnostics.warning(message, file_path, line, kind="template")


def templates_from_comments(
    comments: Iterable[Comment],
    text: str,
    file_path: str = "",
    diagnostics: DiagnosticCollector | None = None,
) -> list[AutoTemplate]:
    templates = []
    for comment in comments:
        if not comment.is_block or "AUTO_TEMPLATE" not in comment.text:
            continue
        template = parse_template(
            comment.text,
            file_path,
            line_of_offset(text, comment.start),
            comment.start,
            diagnostics,
        )
        if template is not None:
            _logger.debug(
                "found AUTO_TEMPLATE for %s at line %d with %d rule(s)",
                template.module_name,
                template.line,
                len(template.rules),
            )
            templates.append(template)
    return templates


def collect_templates(
    tree: pyslang.SyntaxTree,
    offsets: OffsetMap,
    file_path: str = "",
    diagnostics: DiagnosticCollector | None = None,
) -> list[AutoTemplate]:
    """Parse every AUTO_TEMPLATE block comment of a file."""
    return templates_from_comments(
        iter_comments(tree.root, offsets), offsets.text, file_path, diagnostics
    )


def select_template(
    templates: Iterable[AutoTemplate], module_name: str, line: int
) -> AutoTemplate | None:
    """Return the closest template for `module_name` that precedes `line`."""
    best = None
    for template in templates:
        if template.module_name != module_name or template.line >= line:
            continue
        if best is None or template.line > best.line:
            best = template
    return best
