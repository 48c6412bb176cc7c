"""Unit tests for svautos.verilog.template."""

__copyright__ = """
Copyright (c) 2025 RapidStream Design Automation, Inc. and contributors.
All rights reserved. The contributor(s) of this file has/have agreed to the
RapidStream Contributor License Agreement.
"""

import pyslang
import pytest

from svautos.common.diagnostics import DiagnosticCollector
from svautos.verilog.template import (
    AutoTemplate,
    collect_templates,
    parse_template,
    select_template,
)
from svautos.verilog.trivia import OffsetMap


@pytest.fixture
def diagnostics() -> DiagnosticCollector:
    return DiagnosticCollector()


def test_single_line_template() -> None:
    template = parse_template(
        '/* sub AUTO_TEMPLATE "u_sub_(\\d+)" data_in => fifo_%1_in */'
    )
    assert template is not None
    assert template.module_name == "sub"
    assert template.instance_pattern == "u_sub_(\\d+)"
    assert [(r.port_pattern, r.signal_expression) for r in template.rules] == [
        ("data_in", "fifo_%1_in")
    ]


def test_multi_line_template_strips_commas_and_comments() -> None:
    template = parse_template(
        "/* fifo AUTO_TEMPLATE\n"
        "   din   => in_data,   // data path\n"
        "   dout  => out_data,\n"
        "   (.*)_n => $1_b\n"
        "*/",
        line=10,
    )
    assert template is not None
    assert template.instance_pattern == ""
    assert [(r.port_pattern, r.signal_expression, r.line) for r in template.rules] == [
        ("din", "in_data", 11),
        ("dout", "out_data", 12),
        ("(.*)_n", "$1_b", 13),
    ]


def test_not_a_template() -> None:
    assert parse_template("/* plain comment */") is None


def test_template_without_rules_warns(diagnostics: DiagnosticCollector) -> None:
    template = parse_template(
        "/* sub AUTO_TEMPLATE */", "top.sv", 3, diagnostics=diagnostics
    )
    assert template is not None
    assert not template.rules
    assert diagnostics.warning_count == 1
    assert "has no rules" in diagnostics.diagnostics[0].message


def test_invalid_port_pattern_is_skipped(diagnostics: DiagnosticCollector) -> None:
    template = parse_template(
        "/* sub AUTO_TEMPLATE\n  a(b => x\n  c => y\n*/", diagnostics=diagnostics
    )
    assert template is not None
    assert [r.port_pattern for r in template.rules] == ["c"]
    assert diagnostics.warning_count == 1
    assert not diagnostics.has_errors


def test_invalid_instance_pattern_warns(diagnostics: DiagnosticCollector) -> None:
    template = parse_template(
        '/* sub AUTO_TEMPLATE "u_(" a => b */', diagnostics=diagnostics
    )
    assert template is not None
    assert diagnostics.warning_count == 1


def test_collect_templates_from_tree() -> None:
    text = (
        "module top;\n"
        "  /* sub AUTO_TEMPLATE\n"
        "     a => x\n"
        "  */\n"
        "  sub u_sub (/*AUTOINST*/);\n"
        "  /* other AUTO_TEMPLATE b => y */\n"
        "  other u_other (/*AUTOINST*/);\n"
        "endmodule\n"
    )
    tree = pyslang.SyntaxTree.fromText(text)
    templates = collect_templates(tree, OffsetMap(text), "top.sv")
    assert [(t.module_name, t.line) for t in templates] == [("sub", 2), ("other", 6)]
    assert text[templates[0].offset :].startswith("/* sub AUTO_TEMPLATE")
    assert templates[0].file_path == "top.sv"


def _template(module: str, line: int) -> AutoTemplate:
    return AutoTemplate(module, "", (), line=line)


def test_closest_preceding_template() -> None:
    templates = [_template("sub", 5), _template("sub", 20), _template("other", 22)]

    selected = select_template(templates, "sub", 25)
    assert selected is not None
    assert selected.line == 20

    selected = select_template(templates, "sub", 10)
    assert selected is not None
    assert selected.line == 5

    assert select_template(templates, "sub", 3) is None
    assert select_template(templates, "missing", 30) is None
