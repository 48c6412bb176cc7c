"""Unit tests for svautos.common.diagnostics."""

__copyright__ = """
Copyright (c) 2025 RapidStream Design Automation, Inc. and contributors.
All rights reserved. The contributor(s) of this file has/have agreed to the
RapidStream Contributor License Agreement.
"""

import logging

import pytest

from svautos.common.diagnostics import Diagnostic, DiagnosticCollector


@pytest.fixture
def collector() -> DiagnosticCollector:
    return DiagnosticCollector()


def test_counts(collector: DiagnosticCollector) -> None:
    collector.warning("w1")
    collector.warning("w2", kind="template")
    collector.error("e1", kind="module")

    assert len(collector) == 3
    assert collector.warning_count == 2
    assert collector.error_count == 1
    assert collector.has_errors


def test_warnings_only_is_not_error(collector: DiagnosticCollector) -> None:
    collector.warning("just a warning")
    assert not collector.has_errors


def test_format(collector: DiagnosticCollector) -> None:
    collector.error("bad port", file_path="top.sv", line=12)
    collector.warning("no location")
    assert collector.format() == "top.sv:12: error: bad port\nwarning: no location\n"


def test_str_without_line() -> None:
    assert str(Diagnostic("warning", "msg", "a.sv")) == "a.sv: warning: msg"


def test_clear(collector: DiagnosticCollector) -> None:
    collector.error("e")
    collector.clear()
    assert not collector.diagnostics
    assert not collector.has_errors


def test_diagnostics_are_logged(
    collector: DiagnosticCollector, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.WARNING):
        collector.warning("logged warning")
    assert "logged warning" in caplog.text
