"""Unit tests for svautos.autos.analyzer."""

__copyright__ = """
Copyright (c) 2025 RapidStream Design Automation, Inc. and contributors.
All rights reserved. The contributor(s) of this file has/have agreed to the
RapidStream Contributor License Agreement.
"""

import pyslang
import pytest

from svautos.autos.analyzer import AnalysisResult, AutosAnalyzer, ExpansionCounts
from svautos.common.diagnostics import DiagnosticCollector
from svautos.common.replacement import apply_replacements
from svautos.config import MergedConfig
from svautos.verilog.frontend import Compilation, PortFacts, StaticPortFacts
from svautos.verilog.port import PortInfo

_FACTS = StaticPortFacts(
    {
        "producer": [
            PortInfo("data", "output", 8, "[7:0]"),
            PortInfo("clk", "input"),
        ],
        "consumer": [
            PortInfo("data", "input", 8, "[7:0]"),
            PortInfo("clk", "input"),
            PortInfo("done", "output"),
        ],
        "sub": [
            PortInfo("clk", "input"),
            PortInfo("data_in", "input", 8, "[7:0]"),
            PortInfo("data_out", "output", 8, "[7:0]"),
        ],
        "empty": [],
    }
)

_TOP = """\
module top (
    /*AUTOPORTS*/
);
  /*AUTOLOGIC*/
  producer u_prod (/*AUTOINST*/);
  consumer u_cons (/*AUTOINST*/);
endmodule
"""

_EXPANDED = """\
module top (
    /*AUTOPORTS*/
    output logic done,
    input logic clk
);
  /*AUTOLOGIC*/
  // Beginning of automatic logic
  logic [7:0] data;
  // End of automatics
  producer u_prod (/*AUTOINST*/
    // Outputs
    .data (data),
    // Inputs
    .clk  (clk)
  );
  consumer u_cons (/*AUTOINST*/
    // Outputs
    .done (done),
    // Inputs
    .data (data),
    .clk  (clk)
  );
endmodule
"""


def _expand(
    text: str,
    facts: PortFacts = _FACTS,
    config: MergedConfig | None = None,
    diagnostics: DiagnosticCollector | None = None,
) -> tuple[str, AnalysisResult]:
    tree = pyslang.SyntaxTree.fromText(text)
    result = AutosAnalyzer(facts, config, diagnostics, "top.sv").analyze(tree, text)
    return apply_replacements(text, result.replacements), result


@pytest.fixture
def diagnostics() -> DiagnosticCollector:
    return DiagnosticCollector()


def test_counts() -> None:
    counts = ExpansionCounts(1, 0, 2).merged(ExpansionCounts(2, 1, 0))
    assert counts == ExpansionCounts(3, 1, 2)
    assert counts.total == 6


def test_expand_all_markers() -> None:
    expanded, result = _expand(_TOP)
    assert expanded == _EXPANDED
    assert result.counts == ExpansionCounts(2, 1, 1)


def test_expansion_is_idempotent() -> None:
    expanded, result = _expand(_EXPANDED)
    assert expanded == _EXPANDED
    assert not result.replacements
    assert result.counts.total == 0


def test_file_without_markers() -> None:
    text = "module top; producer u (.data(), .clk(clk)); endmodule\n"
    expanded, result = _expand(text)
    assert expanded == text
    assert result == AnalysisResult()


def test_template_and_manual_connection(diagnostics: DiagnosticCollector) -> None:
    text = (
        "module top;\n"
        '  /* sub AUTO_TEMPLATE "u_sub_(\\d+)"\n'
        "     data_(.*) => fifo_%1_${1},\n"
        "  */\n"
        "  sub u_sub_3 (.clk(core_clk), /*AUTOINST*/);\n"
        "endmodule\n"
    )
    expanded, _ = _expand(text, diagnostics=diagnostics)
    assert (
        "  sub u_sub_3 (.clk(core_clk), /*AUTOINST*/\n"
        "    // Outputs\n"
        "    .data_out (fifo_3_out),\n"
        "    // Inputs\n"
        "    .data_in  (fifo_3_in)\n"
        "  );\n"
    ) in expanded
    assert not diagnostics.diagnostics


def test_template_after_instance_is_ignored() -> None:
    text = (
        "module top;\n"
        "  sub u_sub (/*AUTOINST*/);\n"
        "  /* sub AUTO_TEMPLATE\n"
        "     data_in => other\n"
        "  */\n"
        "endmodule\n"
    )
    expanded, _ = _expand(text)
    assert ".data_in  (data_in)" in expanded


def test_filter() -> None:
    text = 'module top;\n  sub u_sub (/*AUTOINST("^data_")*/);\nendmodule\n'
    expanded, _ = _expand(text)
    assert ".data_in" in expanded
    assert ".data_out" in expanded
    assert ".clk" not in expanded


def test_invalid_filter_connects_all(diagnostics: DiagnosticCollector) -> None:
    text = 'module top;\n  sub u_sub (/*AUTOINST("(")*/);\nendmodule\n'
    expanded, _ = _expand(text, diagnostics=diagnostics)
    assert ".clk" in expanded
    assert diagnostics.warning_count == 1
    assert diagnostics.diagnostics[0].kind == "template"


def test_unknown_module_lenient(diagnostics: DiagnosticCollector) -> None:
    text = (
        "module top;\n"
        "  missing u_missing (/*AUTOINST*/);\n"
        "  sub u_sub (/*AUTOINST*/);\n"
        "endmodule\n"
    )
    expanded, result = _expand(text, diagnostics=diagnostics)
    assert "u_missing (/*AUTOINST*/);" in expanded
    assert result.counts.autoinst == 1
    (diagnostic,) = diagnostics.diagnostics
    assert diagnostic.level == "warning"
    assert diagnostic.kind == "module"
    assert diagnostic.line == 2


def test_unknown_module_strict(diagnostics: DiagnosticCollector) -> None:
    text = "module top;\n  missing u_missing (/*AUTOINST*/);\nendmodule\n"
    _expand(text, config=MergedConfig(strictness="strict"), diagnostics=diagnostics)
    assert diagnostics.has_errors


def test_module_without_ports_is_skipped() -> None:
    text = "module top;\n  empty u_empty (/*AUTOINST*/);\nendmodule\n"
    expanded, result = _expand(text)
    assert expanded == text
    assert result.counts.total == 0


@pytest.mark.parametrize(
    ("strictness", "level"), [("lenient", "warning"), ("strict", "error")]
)
def test_manual_connection_to_unknown_port(
    diagnostics: DiagnosticCollector, strictness: str, level: str
) -> None:
    text = "module top;\n  sub u_sub (.bogus(x), /*AUTOINST*/);\nendmodule\n"
    config = MergedConfig(strictness=strictness)
    _expand(text, config=config, diagnostics=diagnostics)
    (diagnostic,) = diagnostics.diagnostics
    assert diagnostic.kind == "port"
    assert diagnostic.level == level
    assert "bogus" in diagnostic.message


def test_manual_connections_reach_autoports() -> None:
    text = (
        "module top (\n"
        "    /*AUTOPORTS*/\n"
        ");\n"
        "  sub u_sub (.data_in(bus_in), /*AUTOINST*/);\n"
        "endmodule\n"
    )
    expanded, _ = _expand(text)
    assert "input logic [7:0] bus_in" in expanded
    assert "input logic [7:0] data_in" not in expanded


def test_formatting_options() -> None:
    text = "module top;\n  sub u_sub (/*AUTOINST*/);\nendmodule\n"
    config = MergedConfig(alignment=False, grouping="alphabetical")
    expanded, _ = _expand(text, config=config)
    assert (
        "  sub u_sub (/*AUTOINST*/\n"
        "    .clk (clk),\n"
        "    .data_in (data_in),\n"
        "    .data_out (data_out)\n"
        "  );\n"
    ) in expanded


def test_elaborated_ranges() -> None:
    sub = (
        "module sub #(parameter W = 4) (\n"
        "    input  logic [W-1:0] a,\n"
        "    output logic [W-1:0] y\n"
        ");\n"
        "endmodule\n"
    )
    top = (
        "module top;\n"
        "  /*AUTOLOGIC*/\n"
        "  sub u_a (/*AUTOINST*/);\n"
        "  sub u_b (.a(y), /*AUTOINST*/);\n"
        "endmodule\n"
    )
    compilation = Compilation.from_texts(sub, top)
    expanded, _ = _expand(top, facts=compilation)
    assert "  logic [W-1:0] y;\n" in expanded

    resolved = MergedConfig(resolved_ranges=True)
    expanded, _ = _expand(top, facts=compilation, config=resolved)
    assert "  logic [3:0] y;\n" in expanded
