"""Layered options: defaults, project file, inline directives, CLI flags.

Scalars are overridden by each later layer that sets them. Library, include
and extension lists are concatenated across all layers in that order.
"""

from __future__ import annotations

__copyright__ = """
Copyright (c) 2025 RapidStream Design Automation, Inc. and contributors.
All rights reserved. The contributor(s) of this file has/have agreed to the
RapidStream Contributor License Agreement.
"""

import logging
import os
import os.path
import re
from typing import TYPE_CHECKING, Annotated, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from svautos.common.diagnostics import ConfigError
from svautos.util import find_vcs_root, line_of_offset

if TYPE_CHECKING:
    from svautos.common.diagnostics import DiagnosticCollector

_logger = logging.getLogger().getChild(__name__)

CONFIG_FILE_NAME = ".svautos.yaml"
INLINE_PREFIX = "svautos-"

Strictness = Literal["strict", "lenient"]
Grouping = Literal["by_direction", "alphabetical"]
Indent = Annotated[int, Field(ge=0, le=16)] | Literal["tab"]

_INLINE_DIRECTIVE = re.compile(
    r"//\s*" + INLINE_PREFIX + r"([\w-]+)\s*:\s*(.+?)\s*$", re.MULTILINE
)
_ENV_VAR = re.compile(r"\$(?:\{(\w+)\}|\((\w+)\)|(\w+))")
_TRUE = frozenset({"true", "yes", "1"})
_FALSE = frozenset({"false", "no", "0"})
_GROUPING = {
    "alphabetical": "alphabetical",
    "alpha": "alphabetical",
    "direction": "by_direction",
    "bydirection": "by_direction",
}


class _Model(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class LibraryConfig(_Model):
    libdirs: tuple[str, ...] = ()
    libext: tuple[str, ...] = ()
    incdirs: tuple[str, ...] = ()


class FormattingConfig(_Model):
    indent: Indent | None = None
    alignment: bool | None = None
    grouping: Grouping | None = None


class BehaviorConfig(_Model):
    strictness: Strictness | None = None
    verbosity: int | None = None
    single_unit: bool | None = None
    resolved_ranges: bool | None = None


class FileConfig(_Model):
    """Contents of a project configuration file."""

    library: LibraryConfig = LibraryConfig()
    formatting: FormattingConfig = FormattingConfig()
    behavior: BehaviorConfig = BehaviorConfig()

    @classmethod
    def load(cls, path: str) -> FileConfig:
        """Load a YAML configuration file.

        Relative library and include directories are resolved against the
        directory holding the file.

        Args:
            path (str): Path of the configuration file.

        Returns:
            FileConfig: The validated configuration.

        Raises:
            ConfigError: If the file cannot be read, parsed or validated.
        """
        try:
            with open(path, encoding="utf-8") as fp:
                data = yaml.safe_load(fp)
        except (OSError, yaml.YAMLError) as e:
            msg = f"cannot load {path}: {e}"
            raise ConfigError(msg) from e
        if data is None:
            data = {}
        if not isinstance(data, dict):
            msg = f"{path}: expected a mapping at the top level"
            raise ConfigError(msg)

        try:
            config = cls.model_validate(data)
        except ValidationError as e:
            msg = f"invalid configuration in {path}:\n{e}"
            raise ConfigError(msg) from e

        base = os.path.dirname(os.path.abspath(path))
        library = config.library.model_copy(
            update={
                "libdirs": _resolve_dirs(base, config.library.libdirs),
                "incdirs": _resolve_dirs(base, config.library.incdirs),
            }
        )
        _logger.info("loaded configuration from %s", path)
        return config.model_copy(update={"library": library})


class InlineConfig(_Model):
    """Options set by `// svautos-<key>: <value>` comments in a source file."""

    libdirs: tuple[str, ...] = ()
    libext: tuple[str, ...] = ()
    incdirs: tuple[str, ...] = ()
    indent: Indent | None = None
    alignment: bool | None = None
    grouping: Grouping | None = None
    strictness: Strictness | None = None
    resolved_ranges: bool | None = None
    custom_options: dict[str, str] = Field(default_factory=dict)


class CliFlags(_Model):
    """Options given on the command line; None means the flag was not given."""

    libdirs: tuple[str, ...] = ()
    libext: tuple[str, ...] = ()
    incdirs: tuple[str, ...] = ()
    indent: Indent | None = None
    alignment: bool | None = None
    grouping: Grouping | None = None
    strictness: Strictness | None = None
    verbosity: int | None = None
    single_unit: bool | None = None
    resolved_ranges: bool | None = None


class MergedConfig(_Model):
    """The effective options of one expansion."""

    indent: Indent = 2
    alignment: bool = True
    grouping: Grouping = "by_direction"
    strictness: Strictness = "lenient"
    verbosity: int = 1
    single_unit: bool = True
    resolved_ranges: bool = False
    libdirs: tuple[str, ...] = ()
    libext: tuple[str, ...] = ()
    incdirs: tuple[str, ...] = ()
    custom_options: dict[str, str] = Field(default_factory=dict)

    @property
    def indent_string(self) -> str:
        return "\t" if self.indent == "tab" else " " * self.indent

    @property
    def is_strict(self) -> bool:
        return self.strictness == "strict"


def _resolve_dirs(base: str, dirs: tuple[str, ...]) -> tuple[str, ...]:
    return tuple(os.path.normpath(os.path.join(base, d)) for d in dirs)


def find_config_file(start_dir: str) -> str | None:
    """Return the configuration file for sources in `start_dir`, if any.

    The start directory is checked first, then the version-control root.
    """
    candidate = os.path.join(start_dir, CONFIG_FILE_NAME)
    if os.path.isfile(candidate):
        return candidate
    root = find_vcs_root(start_dir)
    if root is not None:
        candidate = os.path.join(root, CONFIG_FILE_NAME)
        if os.path.isfile(candidate):
            return candidate
    return None


def load_config_for(source_path: str) -> FileConfig | None:
    """Find and load the configuration file that applies to `source_path`."""
    start_dir = os.path.dirname(os.path.abspath(source_path))
    path = find_config_file(start_dir)
    if path is None:
        _logger.debug("no %s found for %s", CONFIG_FILE_NAME, source_path)
        return None
    return FileConfig.load(path)


def expand_env(value: str) -> tuple[str, list[str]]:
    """Expand `$VAR`, `${VAR}` and `$(VAR)`; also return undefined names."""
    missing: list[str] = []

    def replace(match: re.Match[str]) -> str:
        name = match[1] or match[2] or match[3]
        if name in os.environ:
            return os.environ[name]
        missing.append(name)
        return match[0]

    return _ENV_VAR.sub(replace, value), missing


def parse_inline_config(  # noqa: C901, PLR0912
    text: str,
    file_path: str = "",
    diagnostics: DiagnosticCollector | None = None,
) -> InlineConfig:
    """Collect the inline directives of a source file.

    Relative directories are resolved against the directory of `file_path`,
    or the working directory when it is empty.
    """
    base = os.path.dirname(os.path.abspath(file_path)) if file_path else os.getcwd()
    fields: dict[str, object] = {}
    libdirs: list[str] = []
    libext: list[str] = []
    incdirs: list[str] = []
    custom: dict[str, str] = {}

    def warn(message: str, line: int) -> None:
        if diagnostics is None:
            _logger.warning("%s", message)
        else:
            diagnostics.warning(message, file_path, line, kind="config")

    for match in _INLINE_DIRECTIVE.finditer(text):
        key, raw = match[1], match[2]
        line = line_of_offset(text, match.start())
        value, missing = expand_env(raw)
        if missing:
            message = (
                f"undefined environment variable(s) {', '.join(missing)} "
                f"in {INLINE_PREFIX}{key}"
            )
            if diagnostics is None:
                _logger.error("%s", message)
            else:
                diagnostics.error(message, file_path, line, kind="config")
            continue

        if key in {"libdir", "incdir"}:
            for directory in value.split():
                resolved = os.path.normpath(os.path.join(base, directory))
                if not os.path.isdir(resolved):
                    warn(
                        f"directory {directory} for {INLINE_PREFIX}{key} does not "
                        f"exist (resolved to {resolved})",
                        line,
                    )
                (libdirs if key == "libdir" else incdirs).append(resolved)
        elif key == "libext":
            for ext in value.split():
                if ext.startswith("."):
                    libext.append(ext)
                else:
                    warn(f"extension {ext} does not start with '.', adding it", line)
                    libext.append("." + ext)
        elif key == "indent":
            if value == "tab":
                fields["indent"] = "tab"
            elif value.isdigit() and int(value) <= 16:
                fields["indent"] = int(value)
            else:
                warn(f"invalid value {value} for {INLINE_PREFIX}indent", line)
        elif key in {"alignment", "resolved-ranges"}:
            if value.lower() in _TRUE | _FALSE:
                fields[key.replace("-", "_")] = value.lower() in _TRUE
            else:
                warn(f"invalid value {value} for {INLINE_PREFIX}{key}", line)
        elif key == "grouping":
            if value in _GROUPING:
                fields["grouping"] = _GROUPING[value]
            else:
                warn(f"invalid value {value} for {INLINE_PREFIX}grouping", line)
        elif key == "strictness":
            if value in {"strict", "lenient"}:
                fields["strictness"] = value
            else:
                warn(f"invalid value {value} for {INLINE_PREFIX}strictness", line)
        else:
            warn(f"unknown inline option {INLINE_PREFIX}{key}", line)
            custom[key] = value

    return InlineConfig(
        libdirs=tuple(libdirs),
        libext=tuple(libext),
        incdirs=tuple(incdirs),
        custom_options=custom,
        **fields,
    )


def merge_config(
    file_config: FileConfig | None = None,
    inline: InlineConfig | None = None,
    cli: CliFlags | None = None,
) -> MergedConfig:
    """Merge the layers into one set of options, highest priority last."""
    file_config = file_config or FileConfig()
    inline = inline or InlineConfig()
    cli = cli or CliFlags()

    merged: dict[str, object] = {
        "libdirs": file_config.library.libdirs + inline.libdirs + cli.libdirs,
        "libext": file_config.library.libext + inline.libext + cli.libext,
        "incdirs": file_config.library.incdirs + inline.incdirs + cli.incdirs,
        "custom_options": dict(inline.custom_options),
    }
    layers: tuple[BaseModel, ...] = (
        file_config.formatting,
        file_config.behavior,
        inline,
        cli,
    )
    for layer in layers:
        for name in (
            "indent",
            "alignment",
            "grouping",
            "strictness",
            "verbosity",
            "single_unit",
            "resolved_ranges",
        ):
            value = getattr(layer, name, None)
            if value is not None:
                merged[name] = value
    return MergedConfig(**merged)
