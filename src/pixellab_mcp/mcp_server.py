"""
MCP (Model Context Protocol) server for PixelLab.

Exposes PixelLab pixel-art generation and editing (text-to-image (Pixflux),
style-reference generation (Bitforge), rotation, inpainting, skeleton
estimation, skeleton/text animation and the account balance) as MCP tools.

Protocol: JSON-RPC 2.0 over stdio (one JSON object per line).  Anything that
is not protocol output goes to stderr through ``logging``.

Each ``tools/call`` runs in its own task, so a rate-limit backoff in one call
never holds up the others.

Usage
-----
    pixellab-mcp --secret=your-api-key

Claude Desktop / Cursor ``mcpServers`` entry
--------------------------------------------
{
  "mcpServers": {
    "pixellab": {
      "command": "pixellab-mcp",
      "args": ["--secret=your-api-key"]
    }
  }
}
"""
from __future__ import annotations

import asyncio
import json
import logging
import sys
import time
from typing import Any

from . import __version__
from .handlers import HANDLERS
from .responses import ToolResponse, build_error_response
from .schemas import SCHEMAS_BY_NAME, TOOL_SCHEMAS
from .state import ToolContext
from .tool_args import ArgumentError, coerce_args, parse_tool_args

log = logging.getLogger(__name__)

SERVER_NAME = "pixellab-mcp"
_PROTOCOL_VERSIONS = {"2024-11-05", "2025-03-26", "2025-06-18"}
_DEFAULT_PROTOCOL = "2024-11-05"


# ---------------------------------------------------------------------------
# Tool dispatch
# ---------------------------------------------------------------------------

async def _call_tool(name: str, arguments: Any, ctx: ToolContext) -> ToolResponse:
    handler = HANDLERS.get(name)
    if handler is None:
        return build_error_response(f"Unknown tool: {name}")
    try:
        args = coerce_args(SCHEMAS_BY_NAME[name]["inputSchema"], parse_tool_args(arguments))
    except ArgumentError as exc:
        return build_error_response(f"Invalid arguments for {name}: {exc}")

    start = time.monotonic()
    try:
        response = await handler(args, ctx)
    except Exception as exc:  # noqa: BLE001
        log.error("tool %s crashed", name, exc_info=True)
        response = build_error_response(exc)
    log.info(
        "%s %s in %.2fs",
        name,
        "failed" if response.is_error else "ok",
        time.monotonic() - start,
    )
    return response


# ---------------------------------------------------------------------------
# JSON-RPC 2.0 helpers
# ---------------------------------------------------------------------------

def _ok(request_id: Any, result: Any) -> dict:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def _err(request_id: Any, code: int, message: str) -> dict:
    return {"jsonrpc": "2.0", "id": request_id, "error": {"code": code, "message": message}}


def _write(obj: dict) -> None:
    sys.stdout.write(json.dumps(obj) + "\n")
    sys.stdout.flush()


# ---------------------------------------------------------------------------
# Main request handler
# ---------------------------------------------------------------------------

async def _handle(line: str, ctx: ToolContext) -> None:
    try:
        req = json.loads(line)
    except json.JSONDecodeError:
        _write(_err(None, -32700, "Parse error"))
        return
    if not isinstance(req, dict):
        _write(_err(None, -32600, "Invalid Request"))
        return

    req_id = req.get("id")
    method = req.get("method", "")
    params = req.get("params") or {}
    if not isinstance(params, dict):
        if req_id is not None:
            _write(_err(req_id, -32602, "Invalid params"))
        return

    try:
        await _dispatch(req_id, method, params, ctx)
    except Exception:
        # every request with an id gets a response
        log.error("request %r (%s) failed", req_id, method, exc_info=True)
        if req_id is not None:
            _write(_err(req_id, -32603, "Internal error"))


async def _dispatch(req_id: Any, method: str, params: dict, ctx: ToolContext) -> None:
    if method == "initialize":
        client_ver = params.get("protocolVersion", _DEFAULT_PROTOCOL)
        agreed_ver = client_ver if client_ver in _PROTOCOL_VERSIONS else _DEFAULT_PROTOCOL
        _write(_ok(req_id, {
            "protocolVersion": agreed_ver,
            "capabilities": {"tools": {}},
            "serverInfo": {
                "name": SERVER_NAME,
                "version": __version__,
            },
        }))

    elif method in ("notifications/initialized", "initialized"):
        # notification, no response
        pass

    elif method == "tools/list":
        _write(_ok(req_id, {"tools": TOOL_SCHEMAS}))

    elif method == "tools/call":
        tool_name = str(params.get("name", ""))
        log.debug("tools/call %s", tool_name)
        response = await _call_tool(tool_name, params.get("arguments"), ctx)
        _write(_ok(req_id, response.as_result()))

    elif method == "ping":
        _write(_ok(req_id, {}))

    else:
        if req_id is not None:
            _write(_err(req_id, -32601, f"Method not found: {method}"))


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

async def _run(ctx: ToolContext) -> None:
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    protocol = asyncio.StreamReaderProtocol(reader)
    await loop.connect_read_pipe(lambda: protocol, sys.stdin)

    pending: set[asyncio.Task[None]] = set()
    log.info("PixelLab MCP server running on stdio (%s)", ctx.config.base_url)
    while True:
        try:
            line_bytes = await reader.readline()
        except (OSError, ValueError) as exc:
            log.error("stdin read failed: %s", exc)
            break
        if not line_bytes:
            break
        line = line_bytes.decode(errors="replace").strip()
        if line:
            task = asyncio.create_task(_handle(line, ctx))
            pending.add(task)
            task.add_done_callback(pending.discard)

    if pending:
        await asyncio.gather(*pending, return_exceptions=True)


def serve(ctx: ToolContext) -> None:
    asyncio.run(_run(ctx))
