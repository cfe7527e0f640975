"""全局配置"""

import os
from dotenv import load_dotenv

from utils import as_float_env, as_int_env

load_dotenv()

# ========================
# 数据库配置
# ========================
# RATES_POSTGRES_URL 在运行时由 db.postgres.get_connection_string() 读取，缺失即启动失败
RATES_POSTGRES_SCHEMA = os.getenv("RATES_POSTGRES_SCHEMA", "").strip()

RATES_POOL_MIN_SIZE = as_int_env("RATES_POOL_MIN_SIZE", 1, min_value=1)
RATES_POOL_MAX_SIZE = as_int_env("RATES_POOL_MAX_SIZE", 10, min_value=RATES_POOL_MIN_SIZE)
RATES_POOL_TIMEOUT_SEC = as_float_env("RATES_POOL_TIMEOUT_SEC", 30.0, min_value=0.1)  # 连接池耗尽时的最长等待(秒)

# ========================
# Agent Server 配置
# ========================
RATES_AGENT_NAME = os.getenv("RATES_AGENT_NAME", "rates-agent")
RATES_AGENT_TRANSPORT = os.getenv("RATES_AGENT_TRANSPORT", "stdio")  # stdio | streamable-http
RATES_AGENT_HOST = os.getenv("RATES_AGENT_HOST", "127.0.0.1")
RATES_AGENT_PORT = as_int_env("RATES_AGENT_PORT", 8000, min_value=1)
RATES_AGENT_MAX_RESTARTS = as_int_env("RATES_AGENT_MAX_RESTARTS", 10)

# ========================
# 日志配置
# ========================
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
