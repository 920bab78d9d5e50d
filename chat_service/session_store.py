"""会话存储模块 - 基于内存的多会话管理（线程安全）"""
import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Literal, Optional

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)


Role = Literal["user", "assistant"]


class Message(BaseModel):
    """一条对话消息，创建后不可修改"""

    model_config = ConfigDict(frozen=True)

    id: str
    role: Role
    content: str
    timestamp: datetime


# ========== 读写锁 ==========

class ReadWriteLock:
    """
    读写锁：允许多个读者并发，写者独占
    写者等待期间新的读者会被挡住，避免写者饥饿
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


# ========== 会话 ==========

class Session:
    """单个会话：按顺序追加的消息日志"""

    def __init__(self, session_id: str):
        self.id = session_id
        self.created_at = datetime.now(timezone.utc)
        self._messages: List[Message] = []
        self._lock = ReadWriteLock()

    def append(self, role: Role, content: str) -> Message:
        """
        追加一条消息并返回
        消息 ID 为 "<session_id>_<序号>"，序号在写锁内计算
        """
        with self._lock.write():
            message = Message(
                id=f"{self.id}_{len(self._messages)}",
                role=role,
                content=content,
                timestamp=datetime.now(timezone.utc),
            )
            self._messages.append(message)
        return message

    def history(self) -> List[Message]:
        """获取消息历史的副本，调用方修改不会影响会话本身"""
        with self._lock.read():
            return list(self._messages)

    def history_excluding(self, message_id: str) -> List[Message]:
        """获取历史副本，排除指定 ID 的消息（通常是刚追加的用户消息）"""
        with self._lock.read():
            return [m for m in self._messages if m.id != message_id]

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._messages)

    def __repr__(self) -> str:
        return f"Session(id={self.id!r}, messages={len(self)})"


# ========== 会话存储 ==========

class SessionStore:
    """内存中的会话存储，由应用启动时创建并注入"""

    def __init__(self):
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def resolve_or_create(self, session_id: str) -> Session:
        """
        获取会话，不存在则创建
        先无锁查找；未命中时加锁后再次检查，防止并发请求重复创建
        """
        session = self._sessions.get(session_id)
        if session is not None:
            return session

        with self._lock:
            # 再次检查：等锁期间可能已被其他线程创建
            session = self._sessions.get(session_id)
            if session is None:
                session = Session(session_id)
                self._sessions[session_id] = session
                logger.info("Created session %s", session_id)
        return session

    def get(self, session_id: str) -> Optional[Session]:
        """只查找，不创建"""
        return self._sessions.get(session_id)

    def delete(self, session_id: str) -> bool:
        """删除会话，返回是否实际删除；不存在时不报错"""
        with self._lock:
            removed = self._sessions.pop(session_id, None) is not None
        if removed:
            logger.info("Deleted session %s", session_id)
        return removed

    def session_ids(self) -> List[str]:
        with self._lock:
            return list(self._sessions)

    def clear(self):
        """清除所有会话"""
        with self._lock:
            self._sessions.clear()

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
