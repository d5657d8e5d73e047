"""
StudyNotes 测试基础配置

每个测试使用独立的临时数据目录，通过 dependency_overrides 替换记录存储。
"""
import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# 必须在导入 studynotes 之前设置环境变量
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["ENVIRONMENT"] = "test"

from studynotes.core.deps import get_store
from studynotes.core.security import create_access_token
from studynotes.core.storage import RecordStore
from studynotes.schemas.user import UserOut
from studynotes.services.credentials import CredentialStore


def token_for(user: UserOut) -> str:
    return create_access_token(user.id, user.username, user.role)


def headers_for(user: UserOut) -> dict:
    return {"Authorization": f"Bearer {token_for(user)}"}


@pytest.fixture
def store(tmp_path) -> RecordStore:
    """临时数据目录上的记录存储。"""
    record_store = RecordStore(tmp_path / "data")
    record_store.ensure_directories()
    return record_store


@pytest_asyncio.fixture
async def client(store: RecordStore) -> AsyncGenerator[AsyncClient, None]:
    """提供配置好依赖覆盖的异步 HTTP 测试客户端。"""
    from studynotes.main import app

    app.dependency_overrides[get_store] = lambda: store

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def admin_user(store: RecordStore) -> UserOut:
    """创建一个管理员用户。"""
    return await CredentialStore(store).create_user("admin", "admin@test.com", "admin123", role="admin")


@pytest_asyncio.fixture
async def alice(store: RecordStore) -> UserOut:
    """创建一个普通用户 alice。"""
    return await CredentialStore(store).create_user("alice", "alice@test.com", "alice123")


@pytest_asyncio.fixture
async def bob(store: RecordStore) -> UserOut:
    """创建一个普通用户 bob。"""
    return await CredentialStore(store).create_user("bob", "bob@test.com", "bob12345")


@pytest_asyncio.fixture
async def auth_headers(admin_user: UserOut) -> dict:
    """管理员认证头。"""
    return headers_for(admin_user)


@pytest_asyncio.fixture
async def alice_headers(alice: UserOut) -> dict:
    return headers_for(alice)


@pytest_asyncio.fixture
async def bob_headers(bob: UserOut) -> dict:
    return headers_for(bob)
