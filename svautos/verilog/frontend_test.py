"""Unit tests for svautos.verilog.frontend."""

__copyright__ = """
Copyright (c) 2025 RapidStream Design Automation, Inc. and contributors.
All rights reserved. The contributor(s) of this file has/have agreed to the
RapidStream Contributor License Agreement.
"""

from pathlib import Path

import pyslang
import pytest

from svautos.common.diagnostics import DiagnosticCollector
from svautos.verilog.frontend import Compilation, StaticPortFacts
from svautos.verilog.port import PortInfo

_SUB = """
module sub #(parameter WIDTH = 8) (
    input  logic             clk,
    input  logic [WIDTH-1:0] data_in,
    output logic [WIDTH-1:0] data_out
);
endmodule
"""

_TOP = """
module top;
  sub u_sub (/*AUTOINST*/);
endmodule
"""


@pytest.fixture
def compilation() -> Compilation:
    return Compilation.from_texts(_SUB, _TOP)


def test_elaborated_ports(compilation: Compilation) -> None:
    ports = compilation.get_ports("sub")
    assert ports is not None
    assert [(p.name, p.direction, p.width) for p in ports] == [
        ("clk", "input", 1),
        ("data_in", "input", 8),
        ("data_out", "output", 8),
    ]
    data_in = ports[1]
    assert data_in.resolved_range == "[7:0]"
    assert data_in.original_range == "[WIDTH-1:0]"
    assert data_in.range == "[WIDTH-1:0]"
    assert not ports[0].range


def test_unknown_module(compilation: Compilation) -> None:
    assert compilation.get_ports("missing") is None


def test_ports_are_cached(compilation: Compilation) -> None:
    assert compilation.get_ports("sub") is compilation.get_ports("sub")


def test_static_port_facts() -> None:
    facts = StaticPortFacts({"sub": [PortInfo("a", "input")]})
    assert facts.get_ports("sub") == (PortInfo("a", "input"),)
    assert facts.get_ports("other") is None


def test_from_args_resolves_library_modules(tmp_path: Path) -> None:
    libdir = tmp_path / "lib"
    libdir.mkdir()
    (libdir / "sub.sv").write_text(_SUB, encoding="utf-8")
    top = tmp_path / "top.sv"
    top.write_text(_TOP, encoding="utf-8")

    diagnostics = DiagnosticCollector()
    compilation = Compilation.from_args(
        [str(top)],
        libdirs=[str(libdir)],
        libext=[".sv"],
        diagnostics=diagnostics,
    )
    ports = compilation.get_ports("sub")
    assert ports is not None
    assert [p.name for p in ports] == ["clk", "data_in", "data_out"]
    assert not diagnostics.has_errors


def test_rebuild_drops_cached_ports(compilation: Compilation) -> None:
    assert [p.name for p in compilation.get_ports("sub") or ()] == [
        "clk",
        "data_in",
        "data_out",
    ]
    narrowed = _SUB.replace("[WIDTH-1:0] data_out", "[3:0] result")
    trees = [pyslang.SyntaxTree.fromText(text) for text in (narrowed, _TOP)]
    rebuilt = pyslang.Compilation()
    for tree in trees:
        rebuilt.addSyntaxTree(tree)

    compilation.rebuild(rebuilt, trees)
    ports = compilation.get_ports("sub")
    assert ports is not None
    assert ports[-1].name == "result"
    assert ports[-1].original_range == "[3:0]"


def test_empty_port_name_empties_module(
    compilation: Compilation, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(
        compilation,
        "_syntax_ports",
        lambda _: (PortInfo("", "input"), PortInfo("a", "input")),
    )
    assert compilation.get_ports("leaf") == ()
    (diagnostic,) = compilation.diagnostics.diagnostics
    assert diagnostic.level == "error"
    assert diagnostic.kind == "port"
    assert "leaf" in diagnostic.message

    # The empty list is remembered; the error is not repeated.
    assert compilation.get_ports("leaf") == ()
    assert compilation.diagnostics.error_count == 1
