"""Facts about a connection expression, parsed in isolation by pyslang."""

__copyright__ = """
Copyright (c) 2025 RapidStream Design Automation, Inc. and contributors.
All rights reserved. The contributor(s) of this file has/have agreed to the
RapidStream Contributor License Agreement.
"""

import functools
from typing import NamedTuple

import pyslang

_FRAGMENT = "module __svautos_fragment; assign __svautos_lhs = {expr}; endmodule"


class ExpressionFacts(NamedTuple):
    identifiers: tuple[str, ...]
    max_bit_index: int
    is_concatenation: bool
    is_literal: bool


_NO_FACTS = ExpressionFacts((), -1, False, False)


def parse_fragment(expr: str) -> pyslang.SyntaxTree:
    """Parse `expr` as the right-hand side of a continuous assignment."""
    return pyslang.SyntaxTree.fromText(_FRAGMENT.format(expr=expr))


def fragment_expression(tree: pyslang.SyntaxTree) -> pyslang.ExpressionSyntax | None:
    """Return the expression of a tree made by `parse_fragment`."""
    found: list[pyslang.ExpressionSyntax] = []

    def visitor(node: object) -> pyslang.VisitAction:
        if isinstance(node, pyslang.ContinuousAssignSyntax):
            assignment = node.assignments[0]
            if isinstance(assignment, pyslang.BinaryExpressionSyntax):
                found.append(assignment.right)
            return pyslang.VisitAction.Skip
        return pyslang.VisitAction.Advance

    tree.root.visit(visitor)
    return found[0] if found else None


def _integer_literal(node: object) -> int:
    if (
        isinstance(node, pyslang.LiteralExpressionSyntax)
        and node.kind == pyslang.SyntaxKind.IntegerLiteralExpression
    ):
        try:
            return int(node.literal.rawText.replace("_", ""))
        except ValueError:
            return -1
    return -1


def _max_bit_of_select(select: object) -> int:
    if not isinstance(select, pyslang.ElementSelectSyntax):
        return -1
    selector = select.selector
    if isinstance(selector, pyslang.BitSelectSyntax):
        return _integer_literal(selector.expr)
    if isinstance(selector, pyslang.RangeSelectSyntax):
        return max(_integer_literal(selector.left), _integer_literal(selector.right))
    return -1


@functools.lru_cache(maxsize=4096)
def analyze_expression(expr: str) -> ExpressionFacts:
    """Extract the nets referenced by `expr` and its highest literal bit index.

    Only base identifiers are reported: member names of `a.b` and the scoped
    part of `pkg::c` are not nets, and neither are identifiers used inside a
    select such as `a[i]`.
    """
    expr = expr.strip()
    if not expr:
        return _NO_FACTS
    tree = parse_fragment(expr)
    root = fragment_expression(tree)
    if root is None:
        return _NO_FACTS

    identifiers: list[str] = []
    max_bit = -1

    def add_identifier(token: pyslang.Token) -> None:
        name = token.valueText
        if name and name not in identifiers:
            identifiers.append(name)

    def walk(node: pyslang.SyntaxNode) -> None:
        if visitor(node) == pyslang.VisitAction.Advance:
            node.visit(visitor)

    @functools.singledispatch
    def visitor(_: object) -> pyslang.VisitAction:
        return pyslang.VisitAction.Advance

    @visitor.register
    def _(node: pyslang.IdentifierNameSyntax) -> pyslang.VisitAction:
        add_identifier(node.identifier)
        return pyslang.VisitAction.Skip

    @visitor.register
    def _(node: pyslang.IdentifierSelectNameSyntax) -> pyslang.VisitAction:
        nonlocal max_bit
        add_identifier(node.identifier)
        for select in node.selectors:
            max_bit = max(max_bit, _max_bit_of_select(select))
        return pyslang.VisitAction.Skip

    @visitor.register
    def _(node: pyslang.ElementSelectExpressionSyntax) -> pyslang.VisitAction:
        nonlocal max_bit
        walk(node.left)
        max_bit = max(max_bit, _max_bit_of_select(node.select))
        return pyslang.VisitAction.Skip

    @visitor.register
    def _(node: pyslang.ScopedNameSyntax) -> pyslang.VisitAction:
        walk(node.left)
        return pyslang.VisitAction.Skip

    @visitor.register
    def _(node: pyslang.MemberAccessExpressionSyntax) -> pyslang.VisitAction:
        walk(node.left)
        return pyslang.VisitAction.Skip

    walk(root)

    return ExpressionFacts(
        identifiers=tuple(identifiers),
        max_bit_index=max_bit,
        is_concatenation=isinstance(root, pyslang.ConcatenationExpressionSyntax),
        is_literal=isinstance(
            root,
            pyslang.LiteralExpressionSyntax | pyslang.IntegerVectorExpressionSyntax,
        ),
    )
