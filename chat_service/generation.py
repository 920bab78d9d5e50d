"""文本生成服务 - 封装 Claude API 调用"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

import anthropic

from chat_service import config

logger = logging.getLogger(__name__)


class GenerationError(Exception):
    """生成服务调用失败"""


class GenerationTimeout(GenerationError):
    """生成服务调用超时"""


class GenerationService(Protocol):
    """生成服务接口：输入提示词，返回回复文本，失败时抛出 GenerationError"""

    def generate(self, prompt: str) -> str:
        ...


@dataclass
class GenerationConfig:
    """模型与采样参数"""

    model: str = config.CLAUDE_MODEL
    max_tokens: int = config.MAX_TOKENS
    temperature: Optional[float] = config.TEMPERATURE
    top_p: Optional[float] = config.TOP_P
    top_k: Optional[int] = config.TOP_K
    system: Optional[str] = config.SYSTEM_PROMPT
    timeout: float = config.API_TIMEOUT

    def request_params(self) -> Dict[str, Any]:
        """转换为 messages.create 的参数，未设置的可选项不传"""
        params: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "timeout": self.timeout,
        }
        for key in ("temperature", "top_p", "top_k", "system"):
            value = getattr(self, key)
            if value is not None:
                params[key] = value
        return params


class AnthropicGenerator:
    """基于 anthropic SDK 的生成服务"""

    def __init__(
        self,
        api_key: str = config.ANTHROPIC_API_KEY,
        generation_config: Optional[GenerationConfig] = None,
        base_url: Optional[str] = config.ANTHROPIC_BASE_URL,
        client: Optional[anthropic.Anthropic] = None,
    ):
        self.api_key = api_key
        self.config = generation_config or GenerationConfig()
        self.base_url = base_url
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.api_key) or self._client is not None

    def _get_client(self) -> anthropic.Anthropic:
        """获取 Claude API 客户端，首次使用时创建"""
        if self._client is None:
            if not self.api_key:
                raise GenerationError("Anthropic API Key 未配置，请设置 ANTHROPIC_API_KEY 环境变量")
            self._client = anthropic.Anthropic(api_key=self.api_key, base_url=self.base_url)
        return self._client

    def generate(self, prompt: str) -> str:
        client = self._get_client()
        try:
            response = client.messages.create(
                messages=[{"role": "user", "content": prompt}],
                **self.config.request_params(),
            )
        except anthropic.AuthenticationError as e:
            raise GenerationError("API Key 无效，请检查 ANTHROPIC_API_KEY 配置") from e
        except anthropic.APITimeoutError as e:
            raise GenerationTimeout("Claude API 调用超时，请稍后重试") from e
        except anthropic.APIError as e:
            raise GenerationError(f"Claude API 调用异常: {e}") from e

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        logger.debug("Generated %d chars with %s", len(text), self.config.model)
        return text
