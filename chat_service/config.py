"""应用配置模块"""
import os
from typing import Optional

from dotenv import find_dotenv, load_dotenv

# 从当前目录向上查找 .env；已存在的环境变量优先
load_dotenv(find_dotenv(usecwd=True))


def _optional_float(name: str) -> Optional[float]:
    value = os.getenv(name, "").strip()
    return float(value) if value else None


def _optional_int(name: str) -> Optional[int]:
    value = os.getenv(name, "").strip()
    return int(value) if value else None


ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")
ANTHROPIC_BASE_URL = os.getenv("ANTHROPIC_BASE_URL") or None
CLAUDE_MODEL = os.getenv("CLAUDE_MODEL", "claude-sonnet-4-20250514")
SYSTEM_PROMPT = os.getenv("SYSTEM_PROMPT") or None

# 生成参数
MAX_TOKENS = int(os.getenv("MAX_TOKENS", "2000"))
TEMPERATURE = float(os.getenv("TEMPERATURE", "0.5"))
TOP_P = _optional_float("TOP_P")
TOP_K = _optional_int("TOP_K")

# 超时（秒）：API_TIMEOUT 给 SDK，REQUEST_TIMEOUT 是单次请求等待生成的上限
API_TIMEOUT = int(os.getenv("API_TIMEOUT", "30"))
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "60"))

# 服务
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8080"))
SHUTDOWN_GRACE_PERIOD = int(os.getenv("SHUTDOWN_GRACE_PERIOD", "5"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
