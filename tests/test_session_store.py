"""
会话存储测试
覆盖：会话隔离、并发追加、并发创建、历史快照、删除
"""
import threading
from datetime import datetime

import pytest
from pydantic import ValidationError

from chat_service.session_store import Message, ReadWriteLock, Session, SessionStore


def _run_concurrently(count: int, target):
    """启动 count 个线程，同时放行，等待全部结束"""
    barrier = threading.Barrier(count)
    errors = []

    def worker(index):
        try:
            barrier.wait()
            target(index)
        except Exception as e:  # pragma: no cover - 失败时才会走到
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)
    assert not errors


# ========== Session ==========

def test_append_returns_message_with_position_id():
    session = Session("s1")
    first = session.append("user", "你好")
    second = session.append("assistant", "你好！")

    assert first.id == "s1_0"
    assert second.id == "s1_1"
    assert first.role == "user"
    assert second.content == "你好！"
    assert isinstance(first.timestamp, datetime)
    assert first.timestamp.tzinfo is not None
    assert first.timestamp <= second.timestamp


def test_message_is_immutable():
    msg = Session("s1").append("user", "hi")
    with pytest.raises(ValidationError):
        msg.content = "changed"


def test_concurrent_appends_are_linear():
    """N 个线程并发追加，结果恰好 N 条，ID 连续无重复"""
    session = Session("race")
    n = 200

    _run_concurrently(n, lambda i: session.append("user", f"msg-{i}"))

    history = session.history()
    assert len(history) == n
    assert [m.id for m in history] == [f"race_{i}" for i in range(n)]
    assert sorted(m.content for m in history) == sorted(f"msg-{i}" for i in range(n))


def test_history_is_a_snapshot():
    session = Session("snap")
    session.append("user", "A")

    snapshot = session.history()
    snapshot.append(Message(id="x", role="user", content="injected", timestamp=datetime.now()))
    snapshot.clear()

    assert [m.content for m in session.history()] == ["A"]

    before = session.history()
    session.append("assistant", "B")
    assert [m.content for m in before] == ["A"]
    assert len(session.history()) == 2


def test_history_excluding_drops_only_that_message():
    session = Session("ex")
    session.append("user", "A")
    session.append("assistant", "r1")
    latest = session.append("user", "B")

    remaining = session.history_excluding(latest.id)
    assert [m.content for m in remaining] == ["A", "r1"]
    assert len(session) == 3


def test_history_excluding_keeps_later_messages():
    """被排除的消息后面又追加了别的消息，只排除那一条"""
    session = Session("ex")
    session.append("user", "A")
    own = session.append("user", "B")
    other = session.append("user", "concurrent turn")

    remaining = session.history_excluding(own.id)
    assert [m.id for m in remaining] == ["ex_0", other.id]
    assert [m.content for m in remaining] == ["A", "concurrent turn"]


# ========== SessionStore ==========

def test_resolve_or_create_returns_same_session(store):
    first = store.resolve_or_create("abc")
    second = store.resolve_or_create("abc")
    assert first is second
    assert "abc" in store
    assert len(store) == 1


def test_concurrent_resolve_or_create_yields_one_session(store):
    """K 个线程同时引用一个新 ID，只能创建出一个会话"""
    k = 64
    results = [None] * k

    def resolve(i):
        results[i] = store.resolve_or_create("shared")

    _run_concurrently(k, resolve)

    assert all(s is results[0] for s in results)
    assert store.session_ids() == ["shared"]


def test_sessions_are_isolated(store):
    a = store.resolve_or_create("A")
    b = store.resolve_or_create("B")

    def append(i):
        target = a if i % 2 == 0 else b
        target.append("user", f"{target.id}-{i}")

    _run_concurrently(40, append)

    assert all(m.content.startswith("A-") for m in a.history())
    assert all(m.content.startswith("B-") for m in b.history())
    assert len(a) == 20
    assert len(b) == 20


def test_delete_removes_session(store):
    session = store.resolve_or_create("gone")
    session.append("user", "hi")

    assert store.delete("gone") is True
    assert store.get("gone") is None

    fresh = store.resolve_or_create("gone")
    assert fresh is not session
    assert fresh.history() == []


def test_delete_unknown_is_noop(store):
    assert store.delete("never-seen") is False
    assert len(store) == 0


def test_get_does_not_create(store):
    assert store.get("missing") is None
    assert "missing" not in store


def test_clear(store):
    store.resolve_or_create("a")
    store.resolve_or_create("b")
    store.clear()
    assert len(store) == 0


# ========== ReadWriteLock ==========

def test_readers_share_the_lock():
    lock = ReadWriteLock()
    inside = threading.Barrier(2, timeout=5)

    def reader(_):
        with lock.read():
            # 两个读者必须能同时持有读锁，否则 barrier 超时
            inside.wait()

    _run_concurrently(2, reader)


def test_writer_excludes_readers():
    lock = ReadWriteLock()
    events = []
    writer_in = threading.Event()

    def writer():
        with lock.write():
            writer_in.set()
            events.append("write-start")
            threading.Event().wait(0.05)
            events.append("write-end")

    def reader():
        writer_in.wait(5)
        with lock.read():
            events.append("read")

    t1 = threading.Thread(target=writer)
    t2 = threading.Thread(target=reader)
    t1.start()
    t2.start()
    t1.join(5)
    t2.join(5)

    assert events == ["write-start", "write-end", "read"]
