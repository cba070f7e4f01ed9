from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from pixellab_mcp import cli, mcp_server
from pixellab_mcp.config import ServerConfig
from pixellab_mcp.responses import ToolResponse, build_error_response
from pixellab_mcp.state import ToolContext
from pixellab_mcp.tools.pixellab import Balance


def _ctx(client: object | None = None) -> ToolContext:
    return ToolContext(config=ServerConfig(secret="s"), client=client or MagicMock())


def test_main_requires_secret(monkeypatch: pytest.MonkeyPatch, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
    monkeypatch.delenv("PIXELLAB_SECRET", raising=False)
    monkeypatch.setattr(sys, "argv", ["pixellab-mcp", "--config", str(tmp_path / "none.yml")])
    with pytest.raises(SystemExit) as exc:
        cli.main()
    assert exc.value.code == 1
    assert "secret is required" in capsys.readouterr().err


def test_main_routes_to_server(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    seen: list[ToolContext] = []
    monkeypatch.setattr(cli, "mcp_serve", lambda ctx: seen.append(ctx))
    monkeypatch.setattr(cli, "_setup_logging", lambda cfg: None)
    monkeypatch.setattr(
        sys,
        "argv",
        ["pixellab-mcp", "--secret=abc", "--base-url=http://localhost:8000/v1", "--config", str(tmp_path / "x.yml")],
    )
    cli.main()
    assert len(seen) == 1
    assert seen[0].config.secret == "abc"
    assert seen[0].client.base_url == "http://localhost:8000/v1"


def test_balance_command(capsys: pytest.CaptureFixture) -> None:
    client = MagicMock()
    client.get_balance = AsyncMock(return_value=Balance(usd=3.5))
    assert cli.balance_command(_ctx(client)) == 0
    assert "PixelLab Balance: $3.5 USD" in capsys.readouterr().out


def test_parser_accepts_subcommands() -> None:
    parser = cli.build_parser()
    assert parser.parse_args(["balance"]).command == "balance"
    assert parser.parse_args([]).command is None
    with pytest.raises(SystemExit):
        parser.parse_args(["bogus"])


async def _run_handle(
    monkeypatch: pytest.MonkeyPatch,
    req: dict | str,
    *,
    response: ToolResponse | None = None,
    ctx: ToolContext | None = None,
) -> list[dict]:
    writes: list[dict] = []

    if response is not None:
        async def _fake_call_tool(name: str, arguments: object, ctx: ToolContext) -> ToolResponse:
            return response

        monkeypatch.setattr(mcp_server, "_call_tool", _fake_call_tool)

    monkeypatch.setattr(mcp_server, "_write", lambda obj: writes.append(obj))
    line = req if isinstance(req, str) else json.dumps(req)
    await mcp_server._handle(line, ctx or _ctx())
    return writes


@pytest.mark.asyncio
async def test_initialize_reports_server_info(monkeypatch: pytest.MonkeyPatch) -> None:
    writes = await _run_handle(
        monkeypatch,
        {"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {"protocolVersion": "2025-03-26"}},
    )
    result = writes[0]["result"]
    assert result["protocolVersion"] == "2025-03-26"
    assert result["serverInfo"]["name"] == "pixellab-mcp"
    assert result["capabilities"] == {"tools": {}}


@pytest.mark.asyncio
async def test_initialized_notification_has_no_response(monkeypatch: pytest.MonkeyPatch) -> None:
    writes = await _run_handle(
        monkeypatch,
        {"jsonrpc": "2.0", "method": "notifications/initialized", "params": {}},
    )
    assert writes == []


@pytest.mark.asyncio
async def test_tools_list_has_all_tools(monkeypatch: pytest.MonkeyPatch) -> None:
    writes = await _run_handle(monkeypatch, {"jsonrpc": "2.0", "id": 2, "method": "tools/list"})
    names = {tool["name"] for tool in writes[0]["result"]["tools"]}
    assert names == {
        "generate_image_pixflux",
        "generate_image_bitforge",
        "get_balance",
        "rotate",
        "inpaint",
        "estimate_skeleton",
        "animate_with_skeleton",
        "animate_with_text",
    }


@pytest.mark.asyncio
async def test_parse_error(monkeypatch: pytest.MonkeyPatch) -> None:
    writes = await _run_handle(monkeypatch, "{not json")
    assert writes == [{"jsonrpc": "2.0", "id": None, "error": {"code": -32700, "message": "Parse error"}}]


@pytest.mark.asyncio
async def test_unknown_method(monkeypatch: pytest.MonkeyPatch) -> None:
    writes = await _run_handle(monkeypatch, {"jsonrpc": "2.0", "id": 5, "method": "resources/list"})
    assert writes[0]["error"]["code"] == -32601


@pytest.mark.asyncio
async def test_tools_call_error_sets_is_error(monkeypatch: pytest.MonkeyPatch) -> None:
    writes = await _run_handle(
        monkeypatch,
        {"jsonrpc": "2.0", "id": 7, "method": "tools/call", "params": {"name": "rotate", "arguments": {}}},
        response=build_error_response("boom"),
    )
    payload = writes[0]["result"]
    assert payload["isError"] is True
    assert payload["content"] == [{"type": "text", "text": "Error: boom"}]


@pytest.mark.asyncio
async def test_tools_call_unknown_tool(monkeypatch: pytest.MonkeyPatch) -> None:
    writes = await _run_handle(
        monkeypatch,
        {"jsonrpc": "2.0", "id": 8, "method": "tools/call", "params": {"name": "nonexistent_tool"}},
    )
    payload = writes[0]["result"]
    assert payload["isError"] is True
    assert payload["content"][0]["text"] == "Error: Unknown tool: nonexistent_tool"


@pytest.mark.asyncio
async def test_tools_call_invalid_arguments(monkeypatch: pytest.MonkeyPatch) -> None:
    writes = await _run_handle(
        monkeypatch,
        {
            "jsonrpc": "2.0",
            "id": 9,
            "method": "tools/call",
            "params": {"name": "rotate", "arguments": {"image_path": "a.png", "to_direction": "sideways"}},
        },
    )
    payload = writes[0]["result"]
    assert payload["isError"] is True
    assert payload["content"][0]["text"].startswith("Error: Invalid arguments for rotate: to_direction")


@pytest.mark.asyncio
async def test_tools_call_balance_end_to_end(monkeypatch: pytest.MonkeyPatch) -> None:
    client = MagicMock()
    client.get_balance = AsyncMock(return_value=Balance(usd=9.99))
    writes = await _run_handle(
        monkeypatch,
        {"jsonrpc": "2.0", "id": 10, "method": "tools/call", "params": {"name": "get_balance", "arguments": {}}},
        ctx=_ctx(client),
    )
    payload = writes[0]["result"]
    assert payload["isError"] is False
    assert payload["content"][0]["text"].startswith("PixelLab Balance: $9.99 USD")


@pytest.mark.asyncio
async def test_handler_crash_is_contained(monkeypatch: pytest.MonkeyPatch) -> None:
    async def _explode(args: dict, ctx: ToolContext) -> ToolResponse:
        raise RuntimeError("unexpected")

    monkeypatch.setitem(mcp_server.HANDLERS, "get_balance", _explode)
    response = await mcp_server._call_tool("get_balance", {}, _ctx())
    assert response.is_error is True
    assert response.content == [{"type": "text", "text": "Error: unexpected"}]


@pytest.mark.asyncio
async def test_slow_call_does_not_block_others(monkeypatch: pytest.MonkeyPatch) -> None:
    gate = asyncio.Event()
    order: list[str] = []

    async def _fake_call_tool(name: str, arguments: object, ctx: ToolContext) -> ToolResponse:
        if name == "slow":
            await gate.wait()
        order.append(name)
        return ToolResponse([{"type": "text", "text": name}])

    monkeypatch.setattr(mcp_server, "_call_tool", _fake_call_tool)
    monkeypatch.setattr(mcp_server, "_write", lambda obj: None)
    ctx = _ctx()

    def _req(name: str) -> str:
        return json.dumps({"jsonrpc": "2.0", "id": name, "method": "tools/call", "params": {"name": name}})

    slow = asyncio.create_task(mcp_server._handle(_req("slow"), ctx))
    await asyncio.sleep(0)
    await mcp_server._handle(_req("fast"), ctx)
    assert order == ["fast"]
    gate.set()
    await slow
    assert order == ["fast", "slow"]


@pytest.mark.asyncio
async def test_array_params_get_invalid_params_error(monkeypatch: pytest.MonkeyPatch) -> None:
    writes: list[dict] = []
    monkeypatch.setattr(mcp_server, "_write", lambda obj: writes.append(obj))
    line = json.dumps({"jsonrpc": "2.0", "id": 7, "method": "tools/call", "params": ["get_balance"]})
    await asyncio.create_task(mcp_server._handle(line, _ctx()))
    assert writes == [{"jsonrpc": "2.0", "id": 7, "error": {"code": -32602, "message": "Invalid params"}}]


@pytest.mark.asyncio
async def test_dispatch_failure_becomes_internal_error(monkeypatch: pytest.MonkeyPatch) -> None:
    async def _broken_call_tool(name: str, arguments: object, ctx: ToolContext) -> ToolResponse:
        raise AttributeError("broken")

    monkeypatch.setattr(mcp_server, "_call_tool", _broken_call_tool)
    writes = await _run_handle(
        monkeypatch,
        {"jsonrpc": "2.0", "id": 11, "method": "tools/call", "params": {"name": "get_balance"}},
    )
    assert writes == [{"jsonrpc": "2.0", "id": 11, "error": {"code": -32603, "message": "Internal error"}}]


def test_main_logs_redacted_config(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    monkeypatch.setattr(cli, "mcp_serve", lambda ctx: None)
    monkeypatch.setattr(cli, "_setup_logging", lambda cfg: None)
    monkeypatch.setattr(
        sys, "argv", ["pixellab-mcp", "--secret=supersecretvalue", "--config", str(tmp_path / "x.yml")]
    )
    with caplog.at_level(logging.INFO, logger="pixellab_mcp.cli"):
        cli.main()
    assert "supe…" in caplog.text
    assert "supersecretvalue" not in caplog.text
