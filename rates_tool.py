"""get_rates 工具 — 供 Agent 查询 exchange_rates 表。"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Optional

from agents.base_agent import AgentServer
from db.postgres import RatesDatabase
from rate_query import RateQuery, query_rates

__all__ = ["GET_RATES_DESCRIPTION", "RateQueryTool", "register_rates_tool"]

logger = logging.getLogger(__name__)

GET_RATES_DESCRIPTION = """
Runs queries against a database table for exchange rates between currencies.

The table is called "exchange_rates" and has the following columns:
- from_currency_id: The currency code of the base currency e.g USDT, it's a text field
- to_currency_id: The currency code of the target currency e.g NGN, it's a text field
- rate: The exchange rate between the two currencies, it's a numeric field
- side: Whether the rate is for buying or selling. It's an int4 field and is either 0 or 1.
  e.g when from_currency_id is USDT, to_currency_id is NGN and side is 0, the rate field is
  how much NGN you get for buying 1 USDT; when side is 1, the rate field is how much NGN you
  need to offer in exchange for 1 USDT
- created_at: time inserted into db

General guidelines:
- You can optionally filter by date range using startDate and endDate parameters.
- Remember to always convert the time to UTC before querying the database.
- When fetching rates from the past, only limit by endDate unless the user asks for rates between a range.
- Rates are inserted into the database every minute, so factor that in when aggregating rates
  for a period; there will be a lot of rate entries.
- Try not to pull more than 100 records at a time; run multiple queries that pull smaller chunks
  instead of one giant one.
- orderBy.column must be one of: from_currency_id, to_currency_id, rate, side, created_at.
""".strip()

class RateQueryTool:
    """Named callable wrapping validation, logging and execution of a rate query."""

    name = "get_rates"
    description = GET_RATES_DESCRIPTION

    def __init__(self, database: RatesDatabase) -> None:
        self._database = database

    @property
    def parameters(self) -> dict[str, Any]:
        return RateQuery.model_json_schema(by_alias=True)

    def invoke(self, arguments: Optional[Mapping[str, Any]] = None) -> list[dict[str, Any]]:
        """Validate ``arguments`` and return matching rows.

        Raises:
            pydantic.ValidationError: Before any database access.
            RateQueryExecutionError: When the database layer fails.
        """
        query = RateQuery.model_validate(dict(arguments or {}))
        logger.info("querying with %s", query.model_dump(by_alias=True, mode="json"))
        return query_rates(self._database, query)


def register_rates_tool(server: AgentServer, tool: RateQueryTool) -> None:
    """Register ``tool`` under its own name; the server forwards raw arguments to ``tool.invoke``."""
    server.add_invocable_tool(tool)
