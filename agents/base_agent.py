"""Agent 基类 — MCP Server 工厂（支持崩溃自动重启）"""

import json
import logging
import time
from collections.abc import Sequence
from typing import Any, Protocol

from anyio import to_thread
from mcp.server.fastmcp import FastMCP
from mcp.types import TextContent
from mcp.types import Tool as MCPTool

from config.settings import RATES_AGENT_MAX_RESTARTS

logger = logging.getLogger(__name__)


class InvocableTool(Protocol):
    name: str
    description: str

    @property
    def parameters(self) -> dict[str, Any]: ...

    def invoke(self, arguments: Any = None) -> Any: ...


class AgentServer(FastMCP):
    """FastMCP Server，支持自带参数校验的工具。

    通过 add_invocable_tool 注册的工具对外声明自身的 JSON schema，
    调用时原始 arguments 原样交给 tool.invoke 校验，并在工作线程中执行。
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._invocable_tools: dict[str, InvocableTool] = {}

    def add_invocable_tool(self, tool: InvocableTool) -> None:
        if tool.name in self._invocable_tools:
            raise ValueError(f"工具已注册: {tool.name}")
        self._invocable_tools[tool.name] = tool

    async def list_tools(self) -> list[MCPTool]:
        tools = list(await super().list_tools())
        for tool in self._invocable_tools.values():
            tools.append(MCPTool(name=tool.name, description=tool.description, inputSchema=tool.parameters))
        return tools

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> Sequence[Any]:
        tool = self._invocable_tools.get(name)
        if tool is None:
            return await super().call_tool(name, arguments)

        # 同步数据库调用不能占用事件循环
        result = await to_thread.run_sync(tool.invoke, arguments)
        return [TextContent(type="text", text=json.dumps(result, ensure_ascii=False, default=str))]


def create_agent_server(
    name: str,
    description: str = "",
    host: str = "127.0.0.1",
    port: int = 8000,
) -> AgentServer:
    """创建一个 MCP Agent Server 实例

    Args:
        name: Agent 名称，如 'rates-agent'
        description: Agent 描述
        host: HTTP 模式监听地址（仅 streamable-http 传输时有效）
        port: HTTP 模式监听端口（仅 streamable-http 传输时有效）

    Returns:
        AgentServer 实例，可以在其上注册 tools
    """
    return AgentServer(name, instructions=description, host=host, port=port)


def run_agent(
    server: FastMCP,
    transport: str = "stdio",
    max_restarts: int = RATES_AGENT_MAX_RESTARTS,
) -> None:
    """启动 Agent MCP Server，支持崩溃自动重启。

    - 正常退出 / KeyboardInterrupt / SystemExit 直接退出，不重试
    - 其它异常触发重试，指数退避 (2s → 最大 60s)
    - 最大重试次数默认取 RATES_AGENT_MAX_RESTARTS
    """
    attempt = 0

    while True:
        try:
            server.run(transport=transport)
            break  # 正常退出
        except (KeyboardInterrupt, SystemExit):
            break  # 主动退出，不重试
        except Exception as exc:
            attempt += 1
            if attempt > max_restarts:
                logger.error("exceeded max restarts (%s), giving up", max_restarts)
                break
            delay = min(2 ** attempt, 60)
            logger.warning(
                "crash #%s/%s: %s, restarting in %ss …",
                attempt,
                max_restarts,
                exc,
                delay,
            )
            time.sleep(delay)
