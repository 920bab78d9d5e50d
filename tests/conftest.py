"""测试共享 fixture：隔离的会话存储、假生成服务、TestClient"""
import pytest
from fastapi.testclient import TestClient

from chat_service.main import create_app
from chat_service.session_store import SessionStore
from tests.fakes import SpyGenerator


@pytest.fixture
def store():
    return SessionStore()


@pytest.fixture
def spy():
    return SpyGenerator()


@pytest.fixture
def client(store, spy):
    return TestClient(create_app(store=store, generator=spy))
