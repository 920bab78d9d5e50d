"""
多会话聊天服务 - FastAPI 应用
每个会话独立保存消息历史，历史会拼接进提示词交给生成服务
"""
import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI
from pydantic import BaseModel, Field, field_validator

from chat_service import __version__, config
from chat_service.context_builder import build_prompt
from chat_service.errors import (
    GenerationFailedError,
    GenerationTimeoutError,
    register_exception_handlers,
)
from chat_service.generation import (
    AnthropicGenerator,
    GenerationError,
    GenerationService,
    GenerationTimeout,
)
from chat_service.session_store import Message, SessionStore

logger = logging.getLogger(__name__)


# ========== 请求/响应模型 ==========

class ChatRequest(BaseModel):
    session_id: Optional[str] = Field(None, description="会话 ID，不传则自动生成")
    message: str = Field(..., description="用户消息")

    @field_validator("message")
    @classmethod
    def message_not_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("消息内容不能为空")
        return value


class ChatResponse(BaseModel):
    session_id: str
    message: Message


class HistoryResponse(BaseModel):
    session_id: str
    messages: List[Message]


class DeleteResponse(BaseModel):
    message: str


# ========== 辅助函数 ==========

def new_session_id() -> str:
    """生成会话 ID：纳秒时间戳加随机后缀"""
    return f"session_{time.time_ns()}_{uuid.uuid4().hex[:8]}"


# ========== App 工厂 ==========

def create_app(
    store: Optional[SessionStore] = None,
    generator: Optional[GenerationService] = None,
    request_timeout: float = config.REQUEST_TIMEOUT,
) -> FastAPI:
    """创建应用；会话存储和生成服务由调用方注入，未注入时使用默认实现"""
    store = store if store is not None else SessionStore()
    generator = generator if generator is not None else AnthropicGenerator()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Chat service starting")
        yield
        logger.info("Chat service stopped with %d sessions in memory", len(store))

    app = FastAPI(
        title="Chat Service API",
        description="多会话对话服务，保存每个会话的历史消息",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.store = store
    app.state.generator = generator
    register_exception_handlers(app)

    @app.post("/chat", response_model=ChatResponse)
    async def chat(request: ChatRequest):
        """发送消息并获取助手回复"""
        session_id = request.session_id or new_session_id()
        session = store.resolve_or_create(session_id)

        # 记录用户消息，生成失败也保留
        user_message = session.append("user", request.message)

        # 上下文排除刚追加的这条用户消息，它会单独拼在提示词末尾
        history = session.history_excluding(user_message.id)
        prompt = build_prompt(history, request.message)

        # 调用生成服务时不持有任何锁；超时只放弃等待，不回滚用户消息
        loop = asyncio.get_running_loop()
        try:
            reply = await asyncio.wait_for(
                loop.run_in_executor(None, generator.generate, prompt),
                timeout=request_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Generation timed out after %ss for session %s", request_timeout, session_id)
            raise GenerationTimeoutError("AI 回应生成超时")
        except GenerationTimeout as e:
            logger.warning("Generation timed out for session %s: %s", session_id, e)
            raise GenerationTimeoutError("AI 回应生成超时")
        except GenerationError as e:
            logger.warning("Generation failed for session %s: %s", session_id, e)
            raise GenerationFailedError("AI 回应生成失败")

        assistant_message = session.append("assistant", reply)
        return ChatResponse(session_id=session_id, message=assistant_message)

    @app.get("/chat/{session_id}/history", response_model=HistoryResponse)
    async def get_history(session_id: str):
        """获取会话历史；未知会话返回空列表"""
        session = store.resolve_or_create(session_id)
        return HistoryResponse(session_id=session_id, messages=session.history())

    @app.delete("/chat/{session_id}", response_model=DeleteResponse)
    async def delete_session(session_id: str):
        """删除会话，不存在也返回成功"""
        store.delete(session_id)
        return DeleteResponse(message="对话记录已删除")

    @app.get("/health")
    async def health_check():
        """健康检查接口"""
        return {
            "status": "ok",
            "sessions": len(store),
            "api_key_configured": getattr(generator, "configured", True),
        }

    return app
