"""Port facts of a SystemVerilog module."""

__copyright__ = """
Copyright (c) 2025 RapidStream Design Automation, Inc. and contributors.
All rights reserved. The contributor(s) of this file has/have agreed to the
RapidStream Contributor License Agreement.
"""

import re
from typing import Literal, NamedTuple

import pyslang

Direction = Literal["input", "output", "inout"]

DIRECTIONS: tuple[Direction, ...] = ("input", "output", "inout")

_LITERAL_RANGE = re.compile(r"\[\s*(\d+)\s*:\s*(\d+)\s*\]")
_ANY_RANGE = re.compile(r"\[[^\[\]]*\]")


class PortInfo(NamedTuple):
    name: str
    direction: Direction
    width: int = 1
    resolved_range: str = ""
    original_range: str = ""
    unpacked_dims: str = ""
    is_packed_array: bool = False

    @property
    def is_unpacked_array(self) -> bool:
        return bool(self.unpacked_dims)

    @property
    def range(self) -> str:
        """Range text for declarations, preferring the declared syntax."""
        return self.original_range or self.resolved_range

    @classmethod
    def create(
        cls,
        port: pyslang.ImplicitAnsiPortSyntax | pyslang.PortDeclarationSyntax,
        default_direction: Direction = "inout",
    ) -> list["PortInfo"]:
        """Create ports from syntax, evaluating literal packed ranges only.

        A non-ANSI declaration may name more than one port.
        """
        header = port.header
        direction = _direction_of(header, default_direction)
        original_range = packed_dimensions(header)
        width = literal_width(original_range)
        resolved_range = f"[{width - 1}:0]" if width > 1 else ""

        if isinstance(port, pyslang.ImplicitAnsiPortSyntax):
            declarators = [port.declarator]
        else:
            declarators = [
                item
                for item in port.declarators
                if isinstance(item, pyslang.DeclaratorSyntax)
            ]

        return [
            cls(
                name=declarator.name.valueText,
                direction=direction,
                width=width,
                resolved_range=resolved_range,
                original_range=original_range,
                unpacked_dims="".join(
                    str(dim).strip() for dim in declarator.dimensions
                ),
                is_packed_array=bool(original_range),
            )
            for declarator in declarators
        ]


def _direction_of(header: pyslang.SyntaxNode, default: Direction) -> Direction:
    token = getattr(header, "direction", None)
    text = token.valueText if token is not None else ""
    if text in DIRECTIONS:
        return text  # type: ignore[return-value]
    return default


def packed_dimensions(header: pyslang.SyntaxNode) -> str:
    """Return the packed dimension text of a port header, e.g. `[W-1:0]`."""
    data_type = getattr(header, "dataType", None)
    dimensions = getattr(data_type, "dimensions", None)
    if not dimensions:
        return ""
    return "".join(str(dim).strip() for dim in dimensions)


def literal_width(range_text: str) -> int:
    """Width of packed dimensions made only of integer literals.

    Returns 1 if `range_text` is empty or holds non-literal bounds.
    """
    dims = _ANY_RANGE.findall(range_text)
    if not dims:
        return 1
    width = 1
    for dim in dims:
        match = _LITERAL_RANGE.fullmatch(dim)
        if match is None:
            return 1
        width *= abs(int(match[1]) - int(match[2])) + 1
    return width
