"""汇率查询：请求模型、SQL 构建与执行。"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

import psycopg
from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictStr, field_validator

from db.postgres import RatesDatabase

__all__ = [
    "DEFAULT_LIMIT",
    "SORTABLE_COLUMNS",
    "OrderBy",
    "RateQuery",
    "RateQueryExecutionError",
    "RateStatement",
    "build_rate_query",
    "query_rates",
]

logger = logging.getLogger(__name__)

RATES_TABLE = "exchange_rates"
SORTABLE_COLUMNS = ("from_currency_id", "to_currency_id", "rate", "side", "created_at")
DEFAULT_LIMIT = 100
DEFAULT_ORDER_BY = "ORDER BY created_at DESC"


class RateQueryExecutionError(RuntimeError):
    pass


def _parse_iso_datetime(value: Any) -> datetime:
    """Parse an ISO-8601 string; naive values are treated as UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("date must not be empty")
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise ValueError(f"invalid ISO-8601 date: {text}") from exc
    else:
        raise ValueError("date must be an ISO-8601 string")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class OrderBy(BaseModel):
    model_config = ConfigDict(extra="forbid")

    column: StrictStr = Field(description=f"Column to sort by, one of: {', '.join(SORTABLE_COLUMNS)}")
    ascending: StrictBool = Field(description="true for ASC, false for DESC")

    @field_validator("column")
    @classmethod
    def _check_column(cls, value: str) -> str:
        column = value.strip()
        if column not in SORTABLE_COLUMNS:
            raise ValueError(f"column must be one of: {', '.join(SORTABLE_COLUMNS)}")
        return column


class RateQuery(BaseModel):
    """Filters accepted by the get_rates tool (camelCase on the wire)."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    from_currency: Optional[StrictStr] = Field(
        default=None,
        alias="fromCurrency",
        description="Base currency code, e.g. USDT",
    )
    to_currency: Optional[StrictStr] = Field(
        default=None,
        alias="toCurrency",
        description="Target currency code, e.g. NGN",
    )
    side: Optional[StrictInt] = Field(
        default=None,
        ge=0,
        le=1,
        description="0 for the buy rate, 1 for the sell rate",
    )
    limit: StrictInt = Field(
        default=DEFAULT_LIMIT,
        ge=1,
        description="Maximum number of rows to return",
    )
    start_date: Optional[datetime] = Field(
        default=None,
        alias="startDate",
        description="ISO string date to start fetching rates from",
    )
    end_date: Optional[datetime] = Field(
        default=None,
        alias="endDate",
        description="ISO string date to fetch rates until",
    )
    order_by: Optional[OrderBy] = Field(
        default=None,
        alias="orderBy",
        description="Sort column and direction; defaults to created_at descending",
    )

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _parse_dates(cls, value: Any) -> Optional[datetime]:
        if value is None:
            return None
        return _parse_iso_datetime(value)


@dataclass(frozen=True)
class RateStatement:
    sql: str
    params: tuple[Any, ...]
    conditions: tuple[str, ...] = ()


def build_rate_query(query: RateQuery) -> RateStatement:
    """Build a parameterized SELECT over exchange_rates.

    Values are only ever bound through ``%s`` placeholders; the ORDER BY
    column comes from ``SORTABLE_COLUMNS`` via model validation.
    """
    where: list[str] = []
    params: list[Any] = []

    if query.from_currency:
        where.append("from_currency_id = %s")
        params.append(query.from_currency)
    if query.to_currency:
        where.append("to_currency_id = %s")
        params.append(query.to_currency)
    # side=0 is a valid filter
    if query.side is not None:
        where.append("side = %s")
        params.append(query.side)
    if query.start_date is not None:
        where.append("created_at >= %s")
        params.append(query.start_date)
    if query.end_date is not None:
        where.append("created_at <= %s")
        params.append(query.end_date)

    parts = [f"SELECT * FROM {RATES_TABLE}"]
    if where:
        parts.append("WHERE " + " AND ".join(where))

    if query.order_by is not None:
        direction = "ASC" if query.order_by.ascending else "DESC"
        parts.append(f"ORDER BY {query.order_by.column} {direction}")
    else:
        parts.append(DEFAULT_ORDER_BY)

    parts.append("LIMIT %s")
    params.append(query.limit)

    return RateStatement(sql=" ".join(parts), params=tuple(params), conditions=tuple(where))


def query_rates(database: RatesDatabase, query: RateQuery) -> list[dict[str, Any]]:
    """Run the query on one pooled connection and return rows as-is.

    Raises:
        RateQueryExecutionError: On any database-layer failure; the underlying
            psycopg error is kept as ``__cause__``.
    """
    statement = build_rate_query(query)
    try:
        return database.fetch_all(statement.sql, statement.params)
    except psycopg.Error as exc:
        logger.error("Error fetching rates: %s", exc, exc_info=True)
        raise RateQueryExecutionError(f"Error fetching rates: {exc}") from exc
