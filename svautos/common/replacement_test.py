"""Unit tests for svautos.common.replacement."""

__copyright__ = """
Copyright (c) 2025 RapidStream Design Automation, Inc. and contributors.
All rights reserved. The contributor(s) of this file has/have agreed to the
RapidStream Contributor License Agreement.
"""

import itertools

import pytest

from svautos.common.replacement import (
    Replacement,
    apply_replacements,
    check_non_overlapping,
    generate_diff,
)


def test_single_replacement() -> None:
    assert (
        apply_replacements("Hello World", [Replacement(6, 11, "Universe")])
        == "Hello Universe"
    )


def test_no_replacements_returns_input() -> None:
    assert apply_replacements("unchanged", []) == "unchanged"


def test_insertion() -> None:
    assert apply_replacements("ac", [Replacement(1, 1, "b")]) == "abc"


def test_deletion() -> None:
    assert apply_replacements("abXc", [Replacement(2, 3, "")]) == "abc"


def test_order_of_production_is_irrelevant() -> None:
    text = "module top(); sub u(/*AUTOINST*/); endmodule"
    replacements = [
        Replacement(0, 6, "MODULE"),
        Replacement(13, 13, "\n"),
        Replacement(32, 32, ".a(a)"),
        Replacement(35, 44, "endmodule // top"),
    ]
    results = {
        apply_replacements(text, order)
        for order in itertools.permutations(replacements)
    }
    assert len(results) == 1
    assert results.pop() == (
        "MODULE top();\n sub u(/*AUTOINST*/.a(a)); endmodule // top"
    )


def test_adjacent_ranges_are_allowed() -> None:
    assert (
        apply_replacements(
            "aaabbb", [Replacement(0, 3, "x"), Replacement(3, 6, "y")]
        )
        == "xy"
    )


def test_insertion_at_range_boundaries_is_allowed() -> None:
    check_non_overlapping(
        [Replacement(2, 4, "x"), Replacement(2, 2, "a"), Replacement(4, 4, "b")]
    )


def test_overlapping_ranges_are_rejected() -> None:
    with pytest.raises(ValueError, match="overlap"):
        apply_replacements(
            "abcdef", [Replacement(0, 3, "x", "first"), Replacement(2, 4, "y")]
        )


def test_insertion_inside_range_is_rejected() -> None:
    with pytest.raises(ValueError, match="overlap"):
        check_non_overlapping([Replacement(0, 4, "x"), Replacement(2, 2, "y")])


def test_duplicate_insertion_is_rejected() -> None:
    with pytest.raises(ValueError, match="overlap"):
        check_non_overlapping([Replacement(1, 1, "x"), Replacement(1, 1, "y")])


def test_out_of_range_is_rejected() -> None:
    with pytest.raises(ValueError, match="out of range"):
        apply_replacements("abc", [Replacement(2, 9, "x")])


def test_generate_diff() -> None:
    diff = generate_diff("a\nb\n", "a\nc\n", "top.sv")
    assert diff.startswith("--- a/top.sv\n+++ b/top.sv\n")
    assert "-b\n" in diff
    assert "+c\n" in diff


def test_generate_diff_of_identical_text_is_empty() -> None:
    assert not generate_diff("same\n", "same\n")
