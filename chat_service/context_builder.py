"""对话上下文构建 - 把历史消息渲染成提示词前缀"""
from typing import Iterable

from chat_service.session_store import Message


CONTEXT_HEADER = "对话历史:"
CONTEXT_FOOTER = "请根据以上对话历史继续对话："

ROLE_LABELS = {
    "user": "用户",
    "assistant": "助手",
}


def build_context_from_history(messages: Iterable[Message]) -> str:
    """
    将历史消息转换为模型能理解的上下文文本
    没有历史时返回空字符串；未知角色的消息直接跳过
    不做截断，历史越长提示词越长
    """
    messages = list(messages)
    if not messages:
        return ""

    lines = [CONTEXT_HEADER]
    for msg in messages:
        label = ROLE_LABELS.get(msg.role)
        if label is None:
            continue
        lines.append(f"{label}: {msg.content}")

    return "\n".join(lines) + "\n\n" + CONTEXT_FOOTER


def build_prompt(history: Iterable[Message], user_message: str) -> str:
    """完整提示词：历史上下文 + 当前用户消息"""
    return build_context_from_history(history) + user_message
