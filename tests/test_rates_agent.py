import asyncio
import json
import threading
import unittest
from datetime import datetime, timezone
from decimal import Decimal
from unittest import mock

from pydantic import ValidationError

from agents import base_agent
from agents import rates_agent
from db.postgres import ConfigurationError
from rate_query import RateQuery
from rates_tool import RateQueryTool, register_rates_tool


class _FakeDatabase:
    def __init__(self):
        self.calls = []
        self.thread_ids = []

    def fetch_all(self, query, params=None):
        self.calls.append((query, tuple(params or ())))
        self.thread_ids.append(threading.get_ident())
        return [
            {
                "from_currency_id": "USDT",
                "to_currency_id": "NGN",
                "rate": Decimal("1500.25"),
                "side": 0,
                "created_at": datetime(2024, 5, 1, tzinfo=timezone.utc),
            }
        ]


class RatesAgentServerTests(unittest.TestCase):
    def test_build_server_registers_get_rates(self):
        server = rates_agent.build_server(_FakeDatabase())

        tools = asyncio.run(server.list_tools())
        self.assertEqual([tool.name for tool in tools], ["get_rates"])

        tool = tools[0]
        self.assertIn("exchange_rates", tool.description)
        properties = tool.inputSchema["properties"]
        for key in ("fromCurrency", "toCurrency", "side", "limit", "startDate", "endDate", "orderBy"):
            self.assertIn(key, properties)

    def test_advertised_schema_is_the_request_model(self):
        server = rates_agent.build_server(_FakeDatabase())

        schema = asyncio.run(server.list_tools())[0].inputSchema

        self.assertEqual(schema, RateQuery.model_json_schema(by_alias=True))
        self.assertFalse(schema.get("additionalProperties", True))
        self.assertEqual(schema["properties"]["limit"]["default"], 100)
        self.assertEqual(schema["properties"]["limit"]["minimum"], 1)
        self.assertIn("maximum", json.dumps(schema["properties"]["side"]))

    def test_tool_call_reaches_database(self):
        database = _FakeDatabase()
        server = rates_agent.build_server(database)

        content = asyncio.run(server.call_tool("get_rates", {"fromCurrency": "USDT", "side": 0, "limit": 10}))

        self.assertEqual(len(database.calls), 1)
        _, params = database.calls[0]
        self.assertEqual(params, ("USDT", 0, 10))

        rows = json.loads(content[0].text)
        self.assertEqual(rows[0]["rate"], "1500.25")
        self.assertEqual(rows[0]["created_at"], "2024-05-01 00:00:00+00:00")

    def test_tool_call_rejects_loose_arguments_before_database(self):
        database = _FakeDatabase()
        server = rates_agent.build_server(database)

        bad_arguments = [
            {"fromCurrency": "USDT", "currency": "NGN"},
            {"side": "0"},
            {"side": True},
            {"side": 2},
            {"limit": 0},
            {"orderBy": {"column": "id", "ascending": True}},
        ]
        for arguments in bad_arguments:
            with self.subTest(arguments=arguments):
                with self.assertRaises(ValidationError):
                    asyncio.run(server.call_tool("get_rates", arguments))

        self.assertEqual(database.calls, [])

    def test_tool_call_runs_query_off_the_event_loop_thread(self):
        database = _FakeDatabase()
        server = rates_agent.build_server(database)

        asyncio.run(server.call_tool("get_rates", {}))

        self.assertEqual(len(database.thread_ids), 1)
        self.assertNotEqual(database.thread_ids[0], threading.get_ident())

    def test_duplicate_registration_is_rejected(self):
        server = rates_agent.build_server(_FakeDatabase())

        with self.assertRaises(ValueError):
            register_rates_tool(server, RateQueryTool(_FakeDatabase()))


class RatesAgentMainTests(unittest.TestCase):
    def test_missing_config_exits_before_serving(self):
        with mock.patch("agents.rates_agent.setup_global_logging", return_value=None):
            with mock.patch(
                "agents.rates_agent.RatesDatabase.from_env",
                side_effect=ConfigurationError("Missing RATES_POSTGRES_URL environment variable"),
            ):
                with mock.patch("agents.rates_agent.run_agent") as mocked_run:
                    with self.assertRaises(SystemExit) as ctx:
                        rates_agent.main()

        self.assertEqual(ctx.exception.code, 1)
        mocked_run.assert_not_called()

    def test_pool_closed_even_when_server_fails(self):
        database = mock.MagicMock()
        with mock.patch("agents.rates_agent.setup_global_logging", return_value=None):
            with mock.patch("agents.rates_agent.RatesDatabase.from_env", return_value=database):
                with mock.patch("agents.rates_agent.build_server", return_value=object()):
                    with mock.patch("agents.rates_agent.run_agent", side_effect=RuntimeError("boom")):
                        with self.assertRaises(RuntimeError):
                            rates_agent.main()

        database.open.assert_called_once()
        database.close.assert_called_once()


class RunAgentTests(unittest.TestCase):
    def test_restarts_after_crash_with_backoff(self):
        server = mock.MagicMock()
        server.run.side_effect = [RuntimeError("crash"), None]

        with mock.patch("agents.base_agent.time.sleep") as mocked_sleep:
            base_agent.run_agent(server, transport="stdio", max_restarts=3)

        self.assertEqual(server.run.call_count, 2)
        mocked_sleep.assert_called_once_with(2)

    def test_gives_up_after_max_restarts(self):
        server = mock.MagicMock()
        server.run.side_effect = RuntimeError("crash")

        with mock.patch("agents.base_agent.time.sleep"):
            base_agent.run_agent(server, max_restarts=2)

        self.assertEqual(server.run.call_count, 3)

    def test_keyboard_interrupt_does_not_restart(self):
        server = mock.MagicMock()
        server.run.side_effect = KeyboardInterrupt

        base_agent.run_agent(server, max_restarts=5)

        server.run.assert_called_once_with(transport="stdio")


if __name__ == "__main__":
    unittest.main()
