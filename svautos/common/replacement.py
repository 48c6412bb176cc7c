"""Offset-based text edits against an immutable source buffer."""

__copyright__ = """
Copyright (c) 2025 RapidStream Design Automation, Inc. and contributors.
All rights reserved. The contributor(s) of this file has/have agreed to the
RapidStream Contributor License Agreement.
"""

import difflib
import logging
from collections.abc import Iterable
from typing import NamedTuple

from intervaltree import Interval, IntervalTree

_logger = logging.getLogger().getChild(__name__)


class Replacement(NamedTuple):
    """Replace `text[start:end]` of the original buffer with `new_text`.

    `start == end` is a pure insertion.
    """

    start: int
    end: int
    new_text: str
    description: str = ""


def check_non_overlapping(replacements: Iterable[Replacement]) -> None:
    """Raise `ValueError` if any two replacements touch the same bytes.

    Insertions conflict only with each other at the same offset, or when they
    fall strictly inside a deleted range.
    """
    deletions = IntervalTree()
    insertions: dict[int, Replacement] = {}
    for replacement in replacements:
        if replacement.start > replacement.end:
            msg = f"invalid replacement range: {replacement}"
            raise ValueError(msg)
        if replacement.start == replacement.end:
            if replacement.start in insertions:
                msg = (
                    f"replacements overlap: {replacement.description!r} and "
                    f"{insertions[replacement.start].description!r}"
                )
                raise ValueError(msg)
            insertions[replacement.start] = replacement
            continue
        overlapping = deletions.overlap(replacement.start, replacement.end)
        if overlapping:
            other = next(iter(overlapping)).data
            msg = (
                f"replacements overlap: {replacement.description!r} and "
                f"{other.description!r}"
            )
            raise ValueError(msg)
        deletions.add(Interval(replacement.start, replacement.end, replacement))

    for offset, insertion in insertions.items():
        for interval in deletions.at(offset):
            if interval.begin < offset:
                msg = (
                    f"replacements overlap: {insertion.description!r} and "
                    f"{interval.data.description!r}"
                )
                raise ValueError(msg)


def apply_replacements(text: str, replacements: Iterable[Replacement]) -> str:
    """Splice all `replacements` into `text` and return the result.

    All offsets refer to the unmodified `text`; the edits are applied from
    the highest offset to the lowest so that earlier offsets stay valid.
    """
    replacements = list(replacements)
    if not replacements:
        return text
    check_non_overlapping(replacements)

    for replacement in replacements:
        if replacement.end > len(text):
            msg = f"replacement out of range: {replacement}"
            raise ValueError(msg)

    pieces = []
    cursor = len(text)
    for replacement in sorted(
        replacements, key=lambda r: (r.start, r.end), reverse=True
    ):
        pieces.append(text[replacement.end : cursor])
        pieces.append(replacement.new_text)
        cursor = replacement.start
        _logger.debug(
            "applied replacement [%d, %d): %s",
            replacement.start,
            replacement.end,
            replacement.description,
        )
    pieces.append(text[:cursor])
    return "".join(reversed(pieces))


def generate_diff(original: str, modified: str, path: str = "") -> str:
    """Return a unified diff from `original` to `modified`."""
    return "".join(
        difflib.unified_diff(
            original.splitlines(keepends=True),
            modified.splitlines(keepends=True),
            fromfile=f"a/{path}" if path else "original",
            tofile=f"b/{path}" if path else "modified",
        )
    )
