"""The main entry point for svautos."""

__copyright__ = """
Copyright (c) 2025 RapidStream Design Automation, Inc. and contributors.
All rights reserved. The contributor(s) of this file has/have agreed to the
RapidStream Contributor License Agreement.
"""

import logging

import click

from svautos import __version__
from svautos.steps.expand import expand
from svautos.steps.serve import serve
from svautos.steps.version import version
from svautos.util import setup_logging

_logger = logging.getLogger().getChild(__name__)


@click.group()
@click.option(
    "--verbose",
    "-v",
    default=0,
    count=True,
    help="Increase logging verbosity.",
)
@click.option(
    "--quiet",
    "-q",
    default=0,
    count=True,
    help="Decrease logging verbosity.",
)
@click.option(
    "--log-file",
    metavar="FILE",
    required=False,
    type=click.Path(dir_okay=False),
    help="Also write debug logs to FILE.",
)
@click.version_option(__version__, prog_name="svautos")
@click.pass_context
def entry_point(
    ctx: click.Context,
    verbose: int,
    quiet: int,
    log_file: str | None,
) -> None:
    """Expand AUTOINST, AUTOLOGIC and AUTOPORTS in SystemVerilog."""
    setup_logging(verbose, quiet, log_file)

    ctx.ensure_object(dict)
    if verbose or quiet:
        ctx.obj["verbosity"] = max(0, 1 + verbose - quiet)

    _logger.debug("svautos version: %s", __version__)


entry_point.add_command(expand)
entry_point.add_command(serve)
entry_point.add_command(version)

if __name__ == "__main__":
    entry_point(prog_name="svautos")
