"""Port facts of instantiated modules, resolved through pyslang.

`Compilation` parses and elaborates a design once, then answers "what are
the ports of module X" from the elaborated instance bodies. Answers are
cached per module name for the lifetime of the compilation.
"""

from __future__ import annotations

__copyright__ = """
Copyright (c) 2025 RapidStream Design Automation, Inc. and contributors.
All rights reserved. The contributor(s) of this file has/have agreed to the
RapidStream Contributor License Agreement.
"""

import logging
from typing import TYPE_CHECKING

import pyslang

from svautos.common.diagnostics import DiagnosticCollector, LoadError
from svautos.verilog.collector import find_modules
from svautos.verilog.port import Direction, PortInfo

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

_logger = logging.getLogger().getChild(__name__)

_DIRECTIONS: dict[object, Direction] = {
    pyslang.ArgumentDirection.In: "input",
    pyslang.ArgumentDirection.Out: "output",
    pyslang.ArgumentDirection.InOut: "inout",
}


class PortFacts:
    """Interface of a port list provider."""

    def get_ports(self, module_name: str) -> tuple[PortInfo, ...] | None:
        """Return the ports of `module_name`, or None if it is unknown."""
        raise NotImplementedError


class StaticPortFacts(PortFacts):
    """Port lists known up front, e.g. supplied by an embedding host."""

    def __init__(self, modules: Mapping[str, Iterable[PortInfo]]) -> None:
        self._modules = {name: tuple(ports) for name, ports in modules.items()}

    def get_ports(self, module_name: str) -> tuple[PortInfo, ...] | None:
        return self._modules.get(module_name)


class Compilation(PortFacts):
    """An elaborated design plus the syntax trees it was built from."""

    def __init__(
        self,
        compilation: pyslang.Compilation,
        trees: Iterable[pyslang.SyntaxTree],
        diagnostics: DiagnosticCollector | None = None,
        driver: pyslang.Driver | None = None,
    ) -> None:
        self._compilation = compilation
        self._trees = list(trees)
        self._driver = driver
        self.diagnostics = (
            diagnostics if diagnostics is not None else DiagnosticCollector()
        )
        self._cache: dict[str, tuple[PortInfo, ...] | None] = {}
        self._instances: dict[str, pyslang.InstanceSymbol] | None = None

    @classmethod
    def from_texts(
        cls, *texts: str, diagnostics: DiagnosticCollector | None = None
    ) -> Compilation:
        """Elaborate a design from in-memory sources."""
        compilation = pyslang.Compilation()
        trees = [pyslang.SyntaxTree.fromText(text) for text in texts]
        for tree in trees:
            compilation.addSyntaxTree(tree)
        return cls(compilation, trees, diagnostics)

    @classmethod
    def from_args(  # noqa: PLR0913,PLR0917
        cls,
        sources: Iterable[str],
        libdirs: Iterable[str] = (),
        libext: Iterable[str] = (),
        incdirs: Iterable[str] = (),
        defines: Iterable[str] = (),
        file_lists: Iterable[str] = (),
        single_unit: bool = True,
        diagnostics: DiagnosticCollector | None = None,
    ) -> Compilation:
        """Parse and elaborate a design the way a command-line tool would.

        Library directories are searched for `<module><ext>` to resolve
        modules that are instantiated but not defined in `sources`.
        """
        args = ["svautos", *sources]
        for libdir in libdirs:
            args += ["-y", libdir]
        libext = list(libext)
        if libext:
            args.append("+libext+" + "+".join(libext))
        for incdir in incdirs:
            args.append(f"+incdir+{incdir}")
        for define in defines:
            args.append(f"+define+{define}")
        for file_list in file_lists:
            args += ["-f", file_list]
        if single_unit:
            args.append("--single-unit")
        # Leaf cells need not be elaborated.
        args.append("--ignore-unknown-modules")
        _logger.debug("front-end arguments: %s", args)

        driver = pyslang.Driver()
        driver.addStandardArgs()
        if not driver.parseCommandLine(" ".join(_quote(arg) for arg in args)):
            msg = f"invalid front-end arguments: {' '.join(args)}"
            raise LoadError(msg)
        if not driver.processOptions():
            msg = "invalid front-end options"
            raise LoadError(msg)
        if not driver.parseAllSources():
            msg = "failed to parse sources: " + ", ".join(sources)
            raise LoadError(msg)
        compilation = driver.createCompilation()
        return cls(compilation, driver.syntaxTrees, diagnostics, driver)

    def rebuild(
        self,
        compilation: pyslang.Compilation,
        trees: Iterable[pyslang.SyntaxTree],
        driver: pyslang.Driver | None = None,
    ) -> None:
        """Swap in a new compilation and drop everything cached."""
        self._compilation = compilation
        self._trees = list(trees)
        self._driver = driver
        self._cache.clear()
        self._instances = None

    def get_ports(self, module_name: str) -> tuple[PortInfo, ...] | None:
        if module_name not in self._cache:
            self._cache[module_name] = self._resolve_ports(module_name)
        return self._cache[module_name]

    def _resolve_ports(self, module_name: str) -> tuple[PortInfo, ...] | None:
        instance = self._find_instances().get(module_name)
        if instance is not None:
            ports = self._elaborated_ports(module_name, instance)
        else:
            ports = self._syntax_ports(module_name)
        if ports is None:
            _logger.debug("module %s not found", module_name)
            return None
        if any(not port.name for port in ports):
            self.diagnostics.error(
                f"module {module_name} has a port with an empty name; "
                "check for unexpanded macros in its port list",
                kind="port",
            )
            return ()
        _logger.debug("module %s has %d port(s)", module_name, len(ports))
        return ports

    def _find_instances(self) -> dict[str, pyslang.InstanceSymbol]:
        """Map each module name to its first elaborated instance."""
        if self._instances is None:
            instances: dict[str, pyslang.InstanceSymbol] = {}

            def visitor(symbol: object) -> None:
                if isinstance(symbol, pyslang.InstanceSymbol):
                    instances.setdefault(symbol.body.name, symbol)

            self._compilation.getRoot().visit(visitor)
            self._instances = instances
        return self._instances

    def _elaborated_ports(
        self, module_name: str, instance: pyslang.InstanceSymbol
    ) -> tuple[PortInfo, ...]:
        declared = {
            port.name: port for port in self._syntax_ports(module_name) or ()
        }
        ports = []
        for symbol in instance.body.portList:
            if not isinstance(symbol, pyslang.PortSymbol):
                _logger.warning(
                    "skipping unsupported port %s of module %s",
                    symbol.name,
                    module_name,
                )
                continue
            direction = _DIRECTIONS.get(symbol.direction)
            if direction is None:
                _logger.warning(
                    "skipping %s port %s of module %s",
                    symbol.direction,
                    symbol.name,
                    module_name,
                )
                continue
            port_type = symbol.type
            width = max(1, port_type.bitWidth)
            resolved_range = _packed_ranges(port_type)
            if not resolved_range and width > 1:
                resolved_range = f"[{width - 1}:0]"
            syntax = declared.get(symbol.name)
            ports.append(
                PortInfo(
                    name=symbol.name,
                    direction=direction,
                    width=width,
                    resolved_range=resolved_range,
                    original_range=syntax.original_range if syntax else "",
                    unpacked_dims=syntax.unpacked_dims if syntax else "",
                    is_packed_array=port_type.isPackedArray,
                )
            )
        return tuple(ports)

    def _syntax_ports(self, module_name: str) -> tuple[PortInfo, ...] | None:
        """Read the port list of `module_name` from syntax alone."""
        for tree in self._trees:
            for module in find_modules(tree.root):
                if module.header.name.valueText == module_name:
                    return tuple(_ports_of_declaration(module))
        return None


def _ports_of_declaration(module: pyslang.ModuleDeclarationSyntax) -> list[PortInfo]:
    ports: list[PortInfo] = []
    header_ports = module.header.ports
    if isinstance(header_ports, pyslang.AnsiPortListSyntax):
        direction: Direction = "inout"
        for port in header_ports.ports:
            if isinstance(port, pyslang.ImplicitAnsiPortSyntax):
                infos = PortInfo.create(port, direction)
                direction = infos[0].direction
                ports.extend(infos)
        return ports

    for member in module.members:
        if isinstance(member, pyslang.PortDeclarationSyntax):
            ports.extend(PortInfo.create(member))
    if isinstance(header_ports, pyslang.NonAnsiPortListSyntax):
        order = [
            str(port).strip()
            for port in header_ports.ports
            if isinstance(port, pyslang.ImplicitNonAnsiPortSyntax)
        ]
        ports.sort(key=lambda p: order.index(p.name) if p.name in order else len(order))
    return ports


def _quote(arg: str) -> str:
    if any(c.isspace() for c in arg) or '"' in arg:
        escaped = arg.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return arg


def _packed_ranges(port_type: pyslang.Type) -> str:
    ranges = []
    current = port_type.canonicalType
    while current.isPackedArray:
        packed = current.range
        ranges.append(f"[{packed.left}:{packed.right}]")
        current = current.elementType.canonicalType
    return "".join(ranges)
