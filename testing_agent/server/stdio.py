"""
Stdio tool server for conversational agents.

Speaks newline-delimited JSON-RPC 2.0 (the MCP stdio framing) and exposes
the run engine and the artifact retrieval service as tools:
``run_test``, ``get_artifact`` and ``list_runs``.
"""

import asyncio
import base64
import json
import sys
from typing import Any, Dict, IO, List, Optional

from .. import __version__
from ..core.config import Config
from ..core.exceptions import TestingAgentError
from ..core.logging_config import get_logger
from ..execution.artifacts import ArtifactStore
from ..execution.engine import RunEngine
from ..retrieval.models import ArtifactError, ArtifactFile, ArtifactKind, LogSlice
from ..retrieval.service import ArtifactRetrievalService, read_file_bytes

SUPPORTED_PROTOCOL_VERSIONS = ["2025-06-18", "2024-11-05"]
DEFAULT_PROTOCOL_VERSION = SUPPORTED_PROTOCOL_VERSIONS[0]
SERVER_NAME = "testing-agent"

logger = get_logger("testing_agent.server")


def tool_definitions() -> List[Dict[str, Any]]:
    """Tool schemas advertised by ``tools/list``."""
    return [
        {
            "name": "run_test",
            "description": "Run a Playwright test script and return a fresh summary and artifact index.",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "scriptPath": {
                        "type": "string",
                        "description": "Path to a Python script exporting run(page, context, helpers)",
                    },
                },
                "required": ["scriptPath"],
                "additionalProperties": False,
            },
        },
        {
            "name": "get_artifact",
            "description": "Retrieve specific test artifacts and logs from a given run.",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "runId": {"type": "string", "description": "Run ID (timestamp id)"},
                    "kind": {"type": "string", "enum": [k.value for k in ArtifactKind]},
                    "name": {
                        "type": "string",
                        "description": "Screenshot basename without .png when kind is screenshot",
                    },
                    "grep": {
                        "type": "string",
                        "description": "Optional case-insensitive filter for logs",
                    },
                    "limit": {
                        "type": "integer",
                        "minimum": 1,
                        "description": "Optional limit: most recent N lines or items",
                    },
                },
                "required": ["runId", "kind"],
                "additionalProperties": False,
            },
        },
        {
            "name": "list_runs",
            "description": "List run identifiers, oldest first.",
            "inputSchema": {"type": "object", "properties": {}, "additionalProperties": False},
        },
    ]


def _text(payload: Any) -> Dict[str, Any]:
    text = payload if isinstance(payload, str) else json.dumps(payload, ensure_ascii=False)
    return {"type": "text", "text": text}


class ToolServer:
    """
    JSON-RPC dispatcher over a pair of text streams.

    Args:
        config: Testing Agent configuration
        engine: Run engine used by ``run_test``
        service: Retrieval service used by ``get_artifact``
        stdin: Input stream, one JSON message per line
        stdout: Output stream for responses
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        engine: Optional[RunEngine] = None,
        service: Optional[ArtifactRetrievalService] = None,
        stdin: Optional[IO[str]] = None,
        stdout: Optional[IO[str]] = None,
    ):
        self.config = config or Config.from_env()
        store = ArtifactStore.from_config(self.config)
        self.engine = engine or RunEngine(self.config, store=store)
        self.service = service or ArtifactRetrievalService(store)
        self.stdin = stdin or sys.stdin
        self.stdout = stdout or sys.stdout

    def write_message(self, payload: Dict[str, Any]) -> None:
        # ASCII-escaped so replies carrying lone surrogates still encode
        self.stdout.write(json.dumps(payload) + "\n")
        self.stdout.flush()

    def read_line(self) -> Optional[str]:
        """Next non-blank input line; None at end of input."""
        while True:
            line = self.stdin.readline()
            if not line:
                return None
            line = line.strip()
            if line:
                return line

    def _reply(self, request_id: Any, result: Dict[str, Any]) -> None:
        self.write_message({"jsonrpc": "2.0", "id": request_id, "result": result})

    def _error(self, request_id: Any, code: int, message: str) -> None:
        self.write_message(
            {"jsonrpc": "2.0", "id": request_id, "error": {"code": code, "message": message}}
        )

    def handle_initialize(self, request_id: Any, params: Dict[str, Any]) -> None:
        requested = params.get("protocolVersion")
        protocol = requested if requested in SUPPORTED_PROTOCOL_VERSIONS else DEFAULT_PROTOCOL_VERSION
        self._reply(
            request_id,
            {
                "protocolVersion": protocol,
                "serverInfo": {"name": SERVER_NAME, "version": __version__},
                "capabilities": {"tools": {"listChanged": False}},
            },
        )

    def call_tool(self, name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """Run a tool and build its ``tools/call`` result."""
        logger.info(f"tool={name}", extra={"metadata": {"arguments": arguments}})
        if name == "run_test":
            return self._run_test(arguments)
        if name == "get_artifact":
            return self._get_artifact(arguments)
        if name == "list_runs":
            return {"content": [_text({"runs": self.service.store.list_runs()})]}
        raise KeyError(name)

    def _run_test(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        script_path = arguments.get("scriptPath")
        if not isinstance(script_path, str) or not script_path:
            return {"content": [_text({"error": "scriptPath (string) is required"})], "isError": True}
        try:
            result = asyncio.run(self.engine.run_test(script_path))
        except TestingAgentError as e:
            return {"content": [_text({"error": e.message, "error_code": e.error_code})], "isError": True}
        summary = self.service.summarize(result)
        return {"content": [_text(summary.model_dump(mode="json"))]}

    def _get_artifact(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        response = self.service.handle_payload(arguments)
        if isinstance(response, ArtifactError):
            return {"content": [_text(response.model_dump())], "isError": True}
        if isinstance(response, LogSlice):
            return {"content": [_text(response.text)]}
        content = [_text(response.model_dump(mode="json"))]
        if isinstance(response, ArtifactFile) and response.kind == ArtifactKind.SCREENSHOT:
            data = base64.b64encode(read_file_bytes(response)).decode("ascii")
            content.append({"type": "image", "data": data, "mimeType": response.mime_type})
        return {"content": content}

    def dispatch(self, message: Any) -> None:
        """Dispatch one incoming JSON-RPC message."""
        if not isinstance(message, dict):
            self._error(None, -32600, "Invalid Request")
            return
        method = message.get("method")
        request_id = message.get("id")
        params = message.get("params")
        if not isinstance(params, dict):
            params = {}
        if method is not None and not isinstance(method, str):
            self._error(request_id, -32600, "Invalid Request")
            return

        if method == "initialize":
            self.handle_initialize(request_id, params)
        elif method is not None and method.startswith("notifications/"):
            return
        elif method == "tools/list":
            self._reply(request_id, {"tools": tool_definitions()})
        elif method == "tools/call":
            name = params.get("name") or ""
            try:
                arguments = params.get("arguments")
                result = self.call_tool(name, arguments if isinstance(arguments, dict) else {})
            except KeyError:
                self._error(request_id, -32602, f"Unknown tool {name}")
                return
            except Exception as exc:
                logger.exception("tool_call_failed")
                self._error(request_id, -32001, str(exc))
                return
            self._reply(request_id, result)
        elif method == "ping":
            self._reply(request_id, {})
        else:
            self._error(request_id, -32601, f"Method {method} not found")

    def serve_forever(self) -> None:
        """Process messages until the input stream closes."""
        while True:
            line = self.read_line()
            if line is None:
                break
            try:
                message = json.loads(line)
            except ValueError as e:
                self._error(None, -32700, f"Parse error: {e}")
                continue
            self.dispatch(message)


def main() -> None:
    """Entry point for the stdio tool server."""
    ToolServer().serve_forever()


if __name__ == "__main__":
    main()
