"""Rates Agent — 汇率查询 MCP Server 入口"""

import logging

from agents.base_agent import AgentServer, create_agent_server, run_agent
from config.settings import (
    LOG_LEVEL,
    RATES_AGENT_HOST,
    RATES_AGENT_NAME,
    RATES_AGENT_PORT,
    RATES_AGENT_TRANSPORT,
)
from db.postgres import ConfigurationError, RatesDatabase
from logging_setup import setup_global_logging
from rates_tool import RateQueryTool, register_rates_tool

logger = logging.getLogger("rates_agent")


def build_server(database: RatesDatabase) -> AgentServer:
    """创建 MCP Server 并注册 get_rates 工具。"""
    server = create_agent_server(
        RATES_AGENT_NAME,
        "汇率查询 Agent：按币种、买卖方向与时间范围查询 exchange_rates 表",
        host=RATES_AGENT_HOST,
        port=RATES_AGENT_PORT,
    )
    register_rates_tool(server, RateQueryTool(database))
    return server


def main() -> None:
    """CLI 入口"""
    setup_global_logging(LOG_LEVEL)

    try:
        database = RatesDatabase.from_env()
    except ConfigurationError as exc:
        logger.error("配置校验失败: %s", exc)
        raise SystemExit(1) from exc

    database.open()
    try:
        logger.info("启动 %s (transport=%s)", RATES_AGENT_NAME, RATES_AGENT_TRANSPORT)
        run_agent(build_server(database), transport=RATES_AGENT_TRANSPORT)
    finally:
        database.close()


if __name__ == "__main__":
    main()
