"""Serve expansion requests from an editor over stdio."""

__copyright__ = """
Copyright (c) 2025 RapidStream Design Automation, Inc. and contributors.
All rights reserved. The contributor(s) of this file has/have agreed to the
RapidStream Contributor License Agreement.
"""

import logging
import sys

import click

from svautos.config import CliFlags
from svautos.server import AutosServer

_logger = logging.getLogger().getChild(__name__)


@click.command()
@click.option(
    "--strict / --lenient",
    default=None,
    help="Treat unknown modules as errors (default: warn and continue).",
)
def serve(strict: bool | None) -> None:
    """Serve expansion requests as JSON-RPC over standard input and output.

    Logs go to standard error so that standard output only carries
    responses.
    """
    cli = CliFlags(
        strictness=None if strict is None else ("strict" if strict else "lenient")
    )
    _logger.info("serving on stdio")
    AutosServer(cli).serve(sys.stdin.buffer, sys.stdout.buffer)
