"""JSON-RPC 2.0 over stdio for editor integrations.

Messages are framed the way language servers frame them: a
`Content-Length` header, a blank line, then a UTF-8 JSON body. Besides the
lifecycle methods, the server offers `svautos/expandAutos` and
`svautos/deleteAutos`, also reachable through `workspace/executeCommand`.
Both take a document URI and answer with a workspace edit that replaces the
whole document, or null when nothing changes.
"""

from __future__ import annotations

__copyright__ = """
Copyright (c) 2025 RapidStream Design Automation, Inc. and contributors.
All rights reserved. The contributor(s) of this file has/have agreed to the
RapidStream Contributor License Agreement.
"""

import json
import logging
import urllib.parse
from typing import TYPE_CHECKING, Any, BinaryIO

from svautos import __version__
from svautos.common.diagnostics import AutosError, DiagnosticCollector
from svautos.config import load_config_for
from svautos.tool import AutosTool, read_source

if TYPE_CHECKING:
    from collections.abc import Callable

    from svautos.config import CliFlags
    from svautos.tool import ExpansionResult

_logger = logging.getLogger().getChild(__name__)

EXPAND_AUTOS = "svautos/expandAutos"
DELETE_AUTOS = "svautos/deleteAutos"
COMMANDS = {"svautos.expandAutos": EXPAND_AUTOS, "svautos.deleteAutos": DELETE_AUTOS}

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


class ProtocolError(AutosError):
    """A malformed frame or request."""

    def __init__(self, message: str, code: int = INVALID_REQUEST) -> None:
        super().__init__(message)
        self.code = code


def read_message(stream: BinaryIO) -> dict[str, Any] | None:
    """Read one framed message; return None at end of stream."""
    length = None
    while True:
        line = stream.readline()
        if not line:
            return None
        line = line.strip()
        if not line:
            break
        try:
            header = line.decode("ascii")
        except UnicodeDecodeError as e:
            msg = f"invalid header {line!r}"
            raise ProtocolError(msg) from e
        name, _, value = header.partition(":")
        if name.strip().lower() == "content-length":
            if not value.strip().isdigit():
                msg = f"invalid Content-Length {value.strip()!r}"
                raise ProtocolError(msg)
            length = int(value)
    if length is None:
        msg = "missing Content-Length header"
        raise ProtocolError(msg)

    body = stream.read(length)
    try:
        message = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        msg = f"invalid JSON body: {e}"
        raise ProtocolError(msg, PARSE_ERROR) from e
    if not isinstance(message, dict):
        msg = "a message must be a JSON object"
        raise ProtocolError(msg)
    return message


def write_message(stream: BinaryIO, message: dict[str, Any]) -> None:
    body = json.dumps(message, separators=(",", ":")).encode("utf-8")
    stream.write(f"Content-Length: {len(body)}\r\n\r\n".encode("ascii"))
    stream.write(body)
    stream.flush()


def uri_to_path(uri: str) -> str:
    parsed = urllib.parse.urlparse(uri)
    if parsed.scheme not in {"", "file"}:
        msg = f"unsupported URI scheme {parsed.scheme!r} in {uri}"
        raise ProtocolError(msg, INVALID_PARAMS)
    return urllib.parse.unquote(parsed.path)


def full_document_edit(uri: str, original: str, modified: str) -> dict[str, Any]:
    """A workspace edit replacing all of `original` with `modified`."""
    lines = original.count("\n")
    if original and not original.endswith("\n"):
        lines += 1
    edit = {
        "range": {
            "start": {"line": 0, "character": 0},
            "end": {"line": lines, "character": 0},
        },
        "newText": modified,
    }
    return {"changes": {uri: [edit]}}


class AutosServer:
    """Dispatches requests to the expansion tool, one document at a time."""

    def __init__(self, cli: CliFlags | None = None) -> None:
        self.cli = cli
        self.running = True
        self._methods: dict[str, Callable[[Any], Any]] = {
            "initialize": self.initialize,
            "initialized": lambda _: None,
            "shutdown": lambda _: None,
            "exit": self.exit,
            "workspace/executeCommand": self.execute_command,
            EXPAND_AUTOS: self.expand_autos,
            DELETE_AUTOS: self.delete_autos,
        }

    def serve(self, reader: BinaryIO, writer: BinaryIO) -> None:
        while self.running:
            try:
                message = read_message(reader)
            except ProtocolError as e:
                _logger.error("%s", e)
                write_message(writer, _error_response(None, e.code, str(e)))
                continue
            if message is None:
                _logger.info("end of input, stopping")
                return
            response = self.handle(message)
            if response is not None:
                write_message(writer, response)

    def handle(self, message: dict[str, Any]) -> dict[str, Any] | None:
        """Run one request; notifications get no response."""
        request_id = message.get("id")
        is_request = "id" in message
        method = message.get("method")
        handler = self._methods.get(method) if isinstance(method, str) else None
        if handler is None:
            _logger.warning("unknown method %s", method)
            if not is_request:
                return None
            return _error_response(
                request_id, METHOD_NOT_FOUND, f"unknown method {method}"
            )

        _logger.debug("handling %s", method)
        try:
            result = handler(message.get("params"))
        except ProtocolError as e:
            if not is_request:
                _logger.error("%s", e)
                return None
            return _error_response(request_id, e.code, str(e))
        except Exception as e:
            _logger.exception("%s failed", method)
            if not is_request:
                return None
            return _error_response(request_id, INTERNAL_ERROR, f"{method} failed: {e}")
        if not is_request:
            return None
        return {"jsonrpc": "2.0", "id": request_id, "result": result}

    def initialize(self, _: Any) -> dict[str, Any]:
        return {
            "capabilities": {"executeCommandProvider": {"commands": list(COMMANDS)}},
            "serverInfo": {"name": "svautos", "version": __version__},
        }

    def exit(self, _: Any) -> None:
        self.running = False

    def execute_command(self, params: Any) -> dict[str, Any]:
        if not isinstance(params, dict) or params.get("command") not in COMMANDS:
            msg = f"unknown command in {params}"
            raise ProtocolError(msg, INVALID_PARAMS)
        arguments = params.get("arguments") or []
        return self._methods[COMMANDS[params["command"]]](
            arguments[0] if arguments else None
        )

    def expand_autos(self, params: Any) -> dict[str, Any]:
        uri = _document_uri(params)
        return self._run(
            uri,
            lambda tool, path: tool.expand_file(path, dry_run=True),
            "Expanded",
            load=True,
        )

    def delete_autos(self, params: Any) -> dict[str, Any]:
        uri = _document_uri(params)
        return self._run(
            uri,
            lambda tool, path: tool.delete_autos(read_source(path), path),
            "Deleted",
        )

    def _run(
        self,
        uri: str,
        action: Callable[[AutosTool, str], ExpansionResult],
        verb: str,
        load: bool = False,
    ) -> dict[str, Any]:
        path = uri_to_path(uri)
        diagnostics = DiagnosticCollector()
        reply: dict[str, Any] = {
            "edit": None,
            "messages": [],
            "warnings": [],
            "errors": [],
        }
        try:
            tool = AutosTool(load_config_for(path), self.cli, diagnostics)
            if load:
                tool.load([path])
            result = action(tool, path)
        except AutosError as e:
            reply["errors"].append(str(e))
            return reply
        finally:
            for diagnostic in diagnostics.diagnostics:
                key = "errors" if diagnostic.level == "error" else "warnings"
                reply[key].append(str(diagnostic))

        counts = result.counts
        reply["counts"] = counts._asdict()
        if result.has_changes:
            reply["edit"] = full_document_edit(uri, result.original, result.modified)
            reply["messages"].append(
                f"{verb} {counts.autoinst} AUTOINST, {counts.autologic} AUTOLOGIC, "
                f"{counts.autoports} AUTOPORTS"
            )
        elif not reply["errors"] and not reply["warnings"]:
            reply["messages"].append("No changes needed.")
        return reply


def _document_uri(params: Any) -> str:
    if isinstance(params, str):
        return params
    if isinstance(params, dict):
        uri = params.get("uri")
        document = params.get("textDocument")
        if uri is None and isinstance(document, dict):
            uri = document.get("uri")
        if isinstance(uri, str):
            return uri
    msg = f"expected a document URI, got {params!r}"
    raise ProtocolError(msg, INVALID_PARAMS)


def _error_response(request_id: Any, code: int, message: str) -> dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "error": {"code": code, "message": message},
    }
