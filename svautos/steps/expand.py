"""Expand the AUTO markers of SystemVerilog files in place."""

from __future__ import annotations

__copyright__ = """
Copyright (c) 2025 RapidStream Design Automation, Inc. and contributors.
All rights reserved. The contributor(s) of this file has/have agreed to the
RapidStream Contributor License Agreement.
"""

import logging

import click

from svautos.autos.analyzer import ExpansionCounts
from svautos.common.diagnostics import AutosError, DiagnosticCollector
from svautos.common.replacement import generate_diff
from svautos.config import CliFlags, load_config_for
from svautos.tool import AutosTool

_logger = logging.getLogger().getChild(__name__)


def parse_indent(
    ctx: click.Context, param: click.Parameter, value: str | None
) -> int | str | None:
    """Accept a number of spaces from 0 to 16, or `tab`."""
    del ctx, param
    if value is None or value == "tab":
        return value
    if value.isdigit() and int(value) <= 16:
        return int(value)
    msg = f"expected 0 to 16 or 'tab', got {value!r}"
    raise click.BadParameter(msg)


def get_verbosity() -> int | None:
    """Returns the output verbosity set on the command group, if any."""
    obj = click.get_current_context().find_root().obj or {}
    return obj.get("verbosity")


@click.command()
@click.argument(
    "files",
    nargs=-1,
    required=True,
    type=click.Path(dir_okay=False, readable=True, exists=True),
)
@click.option(
    "libdirs",
    "--libdir",
    "-y",
    multiple=True,
    type=click.Path(file_okay=False),
    help="Directory searched for undefined modules, may appear many times.",
)
@click.option(
    "libext",
    "--libext",
    multiple=True,
    type=str,
    help="Extension of library files, e.g. `.sv`, may appear many times.",
)
@click.option(
    "incdirs",
    "--incdir",
    "-I",
    multiple=True,
    type=click.Path(file_okay=False),
    help="Include directory, may appear many times.",
)
@click.option(
    "defines",
    "--define",
    "-D",
    multiple=True,
    type=str,
    help="Preprocessor macro, `NAME` or `NAME=VALUE`, may appear many times.",
)
@click.option(
    "file_lists",
    "--file-list",
    "-f",
    multiple=True,
    type=click.Path(dir_okay=False, exists=True),
    help=(
        "File holding sources and `+incdir+`, `+libext+`, `+define+` or `-y` "
        "arguments, may appear many times."
    ),
)
@click.option(
    "--strict / --lenient",
    default=None,
    help="Treat unknown modules as errors (default: warn and continue).",
)
@click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="Report what would change without writing any file.",
)
@click.option(
    "--diff",
    is_flag=True,
    default=False,
    help="Print a unified diff instead of writing files.",
)
@click.option(
    "--indent",
    metavar="N|tab",
    callback=parse_indent,
    help="Indentation of generated code: spaces (0 to 16) or `tab`.",
)
@click.option(
    "--alignment / --no-alignment",
    default=None,
    help="Align port names in generated connections.",
)
@click.option(
    "--alphabetical",
    is_flag=True,
    default=False,
    help="Sort generated connections by name instead of by direction.",
)
@click.option(
    "--resolved-ranges / --declared-ranges",
    default=None,
    help=(
        "Declare generated nets with elaborated numeric ranges instead of the "
        "ranges written in the module declaration."
    ),
)
@click.option(
    "--single-unit / --separate-units",
    default=None,
    help="Treat all sources as one compilation unit.",
)
def expand(  # noqa: PLR0913,PLR0917
    files: tuple[str, ...],
    libdirs: tuple[str, ...],
    libext: tuple[str, ...],
    incdirs: tuple[str, ...],
    defines: tuple[str, ...],
    file_lists: tuple[str, ...],
    strict: bool | None,
    dry_run: bool,
    diff: bool,
    indent: int | str | None,
    alignment: bool | None,
    alphabetical: bool,
    resolved_ranges: bool | None,
    single_unit: bool | None,
) -> None:
    """Expand the AUTO markers of SystemVerilog files in place."""
    cli = CliFlags(
        libdirs=libdirs,
        libext=libext,
        incdirs=incdirs,
        indent=indent,
        alignment=alignment,
        grouping="alphabetical" if alphabetical else None,
        strictness=None if strict is None else ("strict" if strict else "lenient"),
        verbosity=get_verbosity(),
        single_unit=single_unit,
        resolved_ranges=resolved_ranges,
    )
    diagnostics = DiagnosticCollector()
    try:
        tool = AutosTool(load_config_for(files[0]), cli, diagnostics)
        tool.load(files, defines, file_lists)
    except AutosError as e:
        raise click.ClickException(str(e)) from e
    verbosity = tool.config.verbosity

    totals = ExpansionCounts()
    changed = 0
    failed = False
    for path in files:
        _logger.debug("processing %s", path)
        try:
            result = tool.expand_file(path, dry_run=dry_run or diff)
        except AutosError as e:
            _logger.error("%s", e)
            failed = True
            continue
        if not result.success:
            failed = True
            continue

        totals = totals.merged(result.counts)
        if not result.has_changes:
            continue
        changed += 1
        if diff:
            click.echo(generate_diff(result.original, result.modified, path), nl=False)
        elif verbosity >= 1:
            counts = result.counts
            click.echo(
                f"{path}: {counts.autoinst} AUTOINST, {counts.autologic} AUTOLOGIC, "
                f"{counts.autoports} AUTOPORTS"
            )

    if verbosity >= 1 and not diff:
        would_be = "would be " if dry_run else ""
        click.echo(
            f"\nSummary: {changed} file(s) {would_be}changed, "
            f"{totals.autoinst} AUTOINST, {totals.autologic} AUTOLOGIC, "
            f"{totals.autoports} AUTOPORTS"
        )
    if diagnostics.warning_count or diagnostics.error_count:
        _logger.info(
            "%d warning(s), %d error(s)",
            diagnostics.warning_count,
            diagnostics.error_count,
        )
    if failed or diagnostics.has_errors:
        click.get_current_context().exit(1)
