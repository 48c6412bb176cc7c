"""Resolve the signal each port of an instance connects to.

A template rule's signal expression is rewritten in this order:

1. port captures: `$1`, `${1}`, ... and `$0` for the whole port name;
2. instance captures: `%1`, `%{1}`, ..., `@` as an alias of `%1`, and `%0`
   for the whole instance name;
3. built-ins: `port.name`, `port.width`, `port.range`, `port.direction`,
   `port.input`, `port.output`, `port.inout` and `inst.name`;
4. a ternary `cond ? a : b` whose condition is the literal `0` or `1`;
5. integer functions `add`, `sub`, `mul`, `div` and `mod`, innermost first.

A ternary whose condition only becomes `0` or `1` after step 5 is resolved
last.
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

from svautos.verilog.const import CONSTANTS, UNCONNECTED

if TYPE_CHECKING:
    from svautos.common.diagnostics import DiagnosticCollector
    from svautos.verilog.port import PortInfo
    from svautos.verilog.template import AutoTemplate, TemplateRule

_logger = logging.getLogger().getChild(__name__)

_PORT_CAPTURE = re.compile(r"\$\{(\d+)\}|\$(\d+)")
_INSTANCE_CAPTURE = re.compile(r"%\{(\d+)\}|%(\d+)|@")
_BUILTIN = re.compile(
    r"port\.(?:name|width|range|direction|input|output|inout)|inst\.name"
)
_TERNARY_CONDITION = re.compile(r"^\s*([01])\s*\?")
_MATH = re.compile(r"(add|sub|mul|div|mod)\s*\(\s*(-?\d+)\s*,\s*(-?\d+)\s*\)")
_UNRESOLVED = re.compile(r"\$\{?\d+\}?|%\{?\d+\}?|@")
_FIRST_NUMBER = re.compile(r"\d+")

_OPEN_BRACKETS = "([{"
_CLOSE_BRACKETS = ")]}"


def is_special_value(signal: str) -> bool:
    return signal == UNCONNECTED or signal in CONSTANTS


def format_special_value(signal: str) -> str:
    """Render `'0`/`'1`/`'z` as sized literals; other signals are unchanged."""
    return CONSTANTS.get(signal, signal)


class MatchResult(NamedTuple):
    signal: str
    rule: TemplateRule | None = None

    @property
    def is_unconnected(self) -> bool:
        return self.signal == UNCONNECTED

    @property
    def is_constant(self) -> bool:
        return self.signal in CONSTANTS

    @property
    def is_special(self) -> bool:
        return is_special_value(self.signal)


class PatternCache:
    """Compiled regular expressions and issued warnings, scoped to one run."""

    def __init__(self) -> None:
        self._patterns: dict[str, re.Pattern[str] | None] = {}
        self._warned: set[tuple[str, ...]] = set()

    def compile(self, pattern: str) -> re.Pattern[str] | None:
        """Return the compiled `pattern`, or None if it is invalid."""
        if pattern not in self._patterns:
            try:
                self._patterns[pattern] = re.compile(pattern)
            except re.error as e:
                _logger.debug("invalid pattern %r: %s", pattern, e)
                self._patterns[pattern] = None
        return self._patterns[pattern]

    def first_time(self, *key: str) -> bool:
        """Return True only the first time `key` is seen."""
        if key in self._warned:
            return False
        self._warned.add(key)
        return True


def _truncating_div(a: int, b: int) -> int:
    quotient = abs(a) // abs(b)
    return quotient if (a < 0) == (b < 0) else -quotient


class TemplateMatcher:
    """Applies one template (or none) to the ports of one instance."""

    def __init__(
        self,
        template: AutoTemplate | None,
        diagnostics: DiagnosticCollector | None = None,
        cache: PatternCache | None = None,
    ) -> None:
        self.template = template
        self._diagnostics = diagnostics
        self._cache = cache or PatternCache()
        self.instance_name = ""
        self._instance_groups: list[str] = []

    def set_instance(self, instance_name: str) -> None:
        """Bind the instance and capture groups from its name."""
        self.instance_name = instance_name
        self._instance_groups = [instance_name]
        if self.template is None:
            return

        pattern = self.template.instance_pattern
        if not pattern:
            match = _FIRST_NUMBER.search(instance_name)
            if match is not None:
                self._instance_groups.append(match[0])
            return

        compiled = self._cache.compile(pattern)
        if compiled is None:
            if self._cache.first_time("instance-pattern", pattern):
                self._warn(
                    f"invalid instance pattern {pattern!r} for "
                    f"{self.template.module_name}; comparing literally"
                )
            return
        match = compiled.fullmatch(instance_name)
        if match is None:
            _logger.debug(
                "instance %s does not match template pattern %r",
                instance_name,
                pattern,
            )
            return
        self._instance_groups.extend(g or "" for g in match.groups())

    def match_port(self, port: PortInfo) -> MatchResult:
        """Return the signal for `port` from the first matching rule."""
        if self.template is not None:
            for rule in self.template.rules:
                groups = self._match_rule(rule, port.name)
                if groups is None:
                    continue
                signal = self._substitute(rule.signal_expression, groups, port)
                if signal in CONSTANTS and port.direction == "output":
                    self._warn(
                        f"constant {signal} assigned to output port {port.name} "
                        f"of {self.instance_name}"
                    )
                return MatchResult(signal, rule)
        return MatchResult(port.name)

    def _match_rule(self, rule: TemplateRule, port_name: str) -> list[str] | None:
        compiled = self._cache.compile(rule.port_pattern)
        if compiled is None:
            return [port_name] if rule.port_pattern == port_name else None
        match = compiled.fullmatch(port_name)
        if match is None:
            return None
        return [match[0], *(g or "" for g in match.groups())]

    def _substitute(self, expression: str, groups: list[str], port: PortInfo) -> str:
        def port_capture(match: re.Match[str]) -> str:
            index = int(match[1] or match[2])
            return groups[index] if index < len(groups) else match[0]

        def instance_capture(match: re.Match[str]) -> str:
            index = 1 if match[0] == "@" else int(match[1] or match[2])
            if index < len(self._instance_groups):
                return self._instance_groups[index]
            return match[0]

        builtins = {
            "port.name": port.name,
            "port.width": str(port.width),
            "port.range": port.range,
            "port.direction": port.direction,
            "port.input": "1" if port.direction == "input" else "0",
            "port.output": "1" if port.direction == "output" else "0",
            "port.inout": "1" if port.direction == "inout" else "0",
            "inst.name": self.instance_name,
        }

        result = _PORT_CAPTURE.sub(port_capture, expression)
        result = _INSTANCE_CAPTURE.sub(instance_capture, result)
        result = _BUILTIN.sub(lambda m: builtins[m[0]], result)
        result = _evaluate_ternary(result)
        result = self._evaluate_math(result, port)
        result = _evaluate_ternary(result).strip()

        for placeholder in _UNRESOLVED.findall(result):
            if not self._cache.first_time(self.instance_name, port.name, placeholder):
                continue
            if placeholder.startswith("$"):
                self._warn(
                    f"port capture {placeholder} is not defined by the pattern "
                    f"for port {port.name} of {self.instance_name}"
                )
            else:
                self._warn(
                    f"instance capture {placeholder} is not defined for "
                    f"{self.instance_name} (port {port.name})"
                )
        return result

    def _evaluate_math(self, expression: str, port: PortInfo) -> str:
        def evaluate(match: re.Match[str]) -> str:
            op, a, b = match[1], int(match[2]), int(match[3])
            if op in {"div", "mod"} and b == 0:
                self._warn(
                    f"{op}({a}, {b}) divides by zero for port {port.name} of "
                    f"{self.instance_name}; using 0"
                )
                return "0"
            if op == "add":
                return str(a + b)
            if op == "sub":
                return str(a - b)
            if op == "mul":
                return str(a * b)
            if op == "div":
                return str(_truncating_div(a, b))
            return str(a - b * _truncating_div(a, b))

        while True:
            result = _MATH.sub(evaluate, expression)
            if result == expression:
                return result
            expression = result

    def _warn(self, message: str) -> None:
        if self._diagnostics is None:
            _logger.warning("%s", message)
            return
        file_path, line = "", 0
        if self.template is not None:
            file_path, line = self.template.file_path, self.template.line
        self._diagnostics.warning(message, file_path, line, kind="template")


def _split_top_level(text: str, separator: str) -> tuple[str, str] | None:
    depth = 0
    for index, char in enumerate(text):
        if char in _OPEN_BRACKETS:
            depth += 1
        elif char in _CLOSE_BRACKETS:
            depth -= 1
        elif char == separator and depth == 0:
            return text[:index], text[index + 1 :]
    return None


def _evaluate_ternary(expression: str) -> str:
    match = _TERNARY_CONDITION.match(expression)
    if match is None:
        return expression
    branches = _split_top_level(expression[match.end() :], ":")
    if branches is None:
        return expression
    chosen = branches[0] if match[1] == "1" else branches[1]
    return chosen.strip()
