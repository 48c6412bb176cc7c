"""Tests of the command surface, from the entry point down."""

__copyright__ = """
Copyright (c) 2025 RapidStream Design Automation, Inc. and contributors.
All rights reserved. The contributor(s) of this file has/have agreed to the
RapidStream Contributor License Agreement.
"""

import io
from pathlib import Path

import pytest
from click.testing import CliRunner

from svautos import __version__
from svautos.__main__ import entry_point
from svautos.server import read_message, write_message

_SUB = """\
module sub (
    input  logic       clk,
    input  logic [7:0] data_in,
    output logic [7:0] data_out
);
endmodule
"""

_TOP = """\
module top (
    /*AUTOPORTS*/
);
  sub u_sub (/*AUTOINST*/);
endmodule
"""


@pytest.fixture(autouse=True)
def _no_console_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    # Keep log records out of the captured command output.
    monkeypatch.setattr("svautos.__main__.setup_logging", lambda *_: None)


@pytest.fixture
def design(tmp_path: Path) -> Path:
    (tmp_path / "lib").mkdir()
    (tmp_path / "lib" / "sub.sv").write_text(_SUB, encoding="utf-8")
    top = tmp_path / "top.sv"
    top.write_text(_TOP, encoding="utf-8")
    return top


def _invoke(*args: str) -> tuple[int, str]:
    result = CliRunner().invoke(entry_point, list(args))
    return result.exit_code, result.output


def test_version() -> None:
    assert _invoke("version") == (0, __version__)
    code, output = _invoke("--version")
    assert code == 0
    assert __version__ in output


def test_expand(design: Path) -> None:
    libdir = str(design.parent / "lib")
    code, output = _invoke(
        "expand", str(design), "-y", libdir, "--libext", ".sv", "--indent", "4"
    )
    assert code == 0, output
    assert f"{design}: 1 AUTOINST, 0 AUTOLOGIC, 1 AUTOPORTS" in output
    assert "Summary: 1 file(s) changed" in output

    expanded = design.read_text(encoding="utf-8")
    assert "        output logic [7:0] data_out,\n" in expanded
    assert "    .data_out (data_out),\n" in expanded

    # The same flags again leave the expanded file alone.
    code, output = _invoke(
        "expand", str(design), "-y", libdir, "--libext", ".sv", "--indent", "4"
    )
    assert code == 0, output
    assert "Summary: 0 file(s) changed" in output


def test_dry_run_and_diff(design: Path) -> None:
    libdir = str(design.parent / "lib")
    code, output = _invoke(
        "expand", str(design), "-y", libdir, "--libext", ".sv", "--dry-run"
    )
    assert code == 0, output
    assert "Summary: 1 file(s) would be changed" in output
    assert design.read_text(encoding="utf-8") == _TOP

    code, output = _invoke(
        "expand", str(design), "-y", libdir, "--libext", ".sv", "--diff"
    )
    assert code == 0, output
    assert output.startswith("---")
    assert "+    .data_out (data_out)," in output
    assert "Summary" not in output
    assert design.read_text(encoding="utf-8") == _TOP


def test_quiet_hides_counts(design: Path) -> None:
    libdir = str(design.parent / "lib")
    code, output = _invoke(
        "-q", "expand", str(design), "-y", libdir, "--libext", ".sv"
    )
    assert code == 0
    assert not output


def test_strict_unknown_module(design: Path) -> None:
    code, _ = _invoke("expand", str(design))
    assert code == 0
    assert design.read_text(encoding="utf-8") == _TOP

    code, _ = _invoke("expand", "--strict", str(design))
    assert code == 1
    assert design.read_text(encoding="utf-8") == _TOP


def test_invalid_indent(design: Path) -> None:
    code, output = _invoke("expand", str(design), "--indent", "wide")
    assert code == 2
    assert "expected 0 to 16 or 'tab'" in output


def test_invalid_config_file(design: Path) -> None:
    (design.parent / ".svautos.yaml").write_text(
        "formatting:\n  indent: many\n", encoding="utf-8"
    )
    code, output = _invoke("expand", str(design))
    assert code == 1
    assert "invalid configuration" in output


def test_serve(design: Path) -> None:
    stream = io.BytesIO()
    write_message(
        stream,
        {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "svautos/deleteAutos",
            "params": {"uri": design.as_uri()},
        },
    )
    write_message(stream, {"jsonrpc": "2.0", "method": "exit"})
    result = CliRunner().invoke(entry_point, ["serve"], input=stream.getvalue())
    assert result.exit_code == 0
    response = read_message(io.BytesIO(result.stdout_bytes))
    assert response is not None
    assert response["id"] == 1
    assert response["result"]["edit"] is None
