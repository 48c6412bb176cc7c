"""Unit tests for svautos.util."""

__copyright__ = """
Copyright (c) 2025 RapidStream Design Automation, Inc. and contributors.
All rights reserved. The contributor(s) of this file has/have agreed to the
RapidStream Contributor License Agreement.
"""

import logging
from pathlib import Path
from unittest import mock

import svautos.util


@mock.patch("coloredlogs.install")
def test_setup_logging_clamps_level(install_mock: mock.Mock) -> None:
    svautos.util.setup_logging(verbose=5, quiet=0)
    install_mock.assert_called_once()
    assert install_mock.call_args.kwargs["level"] == logging.DEBUG


@mock.patch("coloredlogs.install")
def test_setup_logging_writes_log_file(install_mock: mock.Mock, tmp_path: Path) -> None:
    log_file = tmp_path / "log" / "svautos.log"
    root = logging.getLogger()
    handlers = list(root.handlers)
    try:
        svautos.util.setup_logging(verbose=0, quiet=1, log_file=str(log_file))
        assert install_mock.call_args.kwargs["level"] == logging.WARNING
        assert log_file.parent.is_dir()
    finally:
        for handler in root.handlers[len(handlers) :]:
            handler.close()
            root.removeHandler(handler)


def test_find_vcs_root(tmp_path: Path) -> None:
    (tmp_path / ".git").mkdir()
    nested = tmp_path / "rtl" / "core"
    nested.mkdir(parents=True)
    assert svautos.util.find_vcs_root(str(nested)) == str(tmp_path)


def test_iter_parent_dirs_starts_with_itself(tmp_path: Path) -> None:
    dirs = list(svautos.util.iter_parent_dirs(str(tmp_path)))
    assert dirs[0] == str(tmp_path)
    assert dirs[-1] == str(Path(tmp_path.anchor))


def test_line_of_offset() -> None:
    text = "a\nbb\nccc"
    assert svautos.util.line_of_offset(text, 0) == 1
    assert svautos.util.line_of_offset(text, 2) == 2
    assert svautos.util.line_of_offset(text, 7) == 3
