"""Locate comments attached to pyslang tokens in the original source text."""

__copyright__ = """
Copyright (c) 2025 RapidStream Design Automation, Inc. and contributors.
All rights reserved. The contributor(s) of this file has/have agreed to the
RapidStream Contributor License Agreement.
"""

import bisect
import itertools
from collections.abc import Iterator
from typing import NamedTuple

import pyslang

_COMMENT_KINDS = (pyslang.TriviaKind.LineComment, pyslang.TriviaKind.BlockComment)


class OffsetMap:
    """Converts pyslang byte offsets to `str` indices of the same text."""

    def __init__(self, text: str) -> None:
        self.text = text
        self._starts: list[int] | None = None
        if not text.isascii():
            self._starts = [
                0,
                *itertools.accumulate(len(c.encode("utf-8")) for c in text),
            ]

    def to_char(self, byte_offset: int) -> int:
        if self._starts is None:
            return byte_offset
        return bisect.bisect_left(self._starts, byte_offset)

    def token_start(self, token: pyslang.Token) -> int | None:
        """Return the index of `token` in the text, or None if it is not there.

        Tokens produced by macro expansion live in other buffers.
        """
        start = self.to_char(token.location.offset)
        raw = token.rawText
        if self.text[start : start + len(raw)] != raw:
            return None
        return start


class Comment(NamedTuple):
    start: int
    end: int
    text: str
    token: pyslang.Token

    @property
    def is_block(self) -> bool:
        return self.text.startswith("/*")


def iter_tokens(node: pyslang.SyntaxNode) -> list[pyslang.Token]:
    """Return all tokens under `node` in source order."""
    tokens: list[pyslang.Token] = []

    def visitor(obj: object) -> pyslang.VisitAction:
        if isinstance(obj, pyslang.Token):
            tokens.append(obj)
        return pyslang.VisitAction.Advance

    node.visit(visitor)
    return tokens


def token_comments(token: pyslang.Token, offsets: OffsetMap) -> Iterator[Comment]:
    """Yield the comments in the leading trivia of `token`."""
    trivia = [(t.kind, t.getRawText()) for t in token.trivia]
    if not any(kind in _COMMENT_KINDS for kind, _ in trivia):
        return
    token_start = offsets.token_start(token)
    if token_start is None:
        return

    text = offsets.text
    cursor = token_start - sum(len(raw) for _, raw in trivia)
    contiguous = text[cursor:token_start] == "".join(raw for _, raw in trivia)
    search_from = cursor if contiguous else 0
    for kind, raw in trivia:
        if contiguous:
            start = cursor
            cursor += len(raw)
        else:
            start = text.find(raw, search_from, token_start)
            if start < 0:
                continue
            search_from = start + len(raw)
        if kind in _COMMENT_KINDS:
            yield Comment(start, start + len(raw), raw, token)


def iter_comments(node: pyslang.SyntaxNode, offsets: OffsetMap) -> Iterator[Comment]:
    """Yield all comments attached to tokens under `node`, in source order."""
    for token in iter_tokens(node):
        yield from token_comments(token, offsets)


def leading_indent(token: pyslang.Token) -> str | None:
    """Return the whitespace that starts the last line of the token's trivia."""
    indent = None
    saw_newline = False
    for trivia in token.trivia:
        if trivia.kind == pyslang.TriviaKind.EndOfLine:
            saw_newline = True
        elif trivia.kind == pyslang.TriviaKind.Whitespace and saw_newline:
            indent = trivia.getRawText()
            saw_newline = False
        else:
            saw_newline = False
    return indent
