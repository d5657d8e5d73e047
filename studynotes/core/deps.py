"""
FastAPI 依赖项模块 (FastAPI Dependencies Module)

提供通用依赖注入函数，包括记录存储获取、用户认证、权限检查等。
基于 JWT 令牌实现用户身份验证和基于角色的访问控制（RBAC）。

Provides common dependency injection functions: record store access, user
authentication and role checks. Implements JWT authentication and RBAC.
"""
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from studynotes.core.config import settings
from studynotes.core.exceptions import (
    AccountDisabledError,
    AuthenticationError,
    AuthorizationError,
    TokenInvalidError,
)
from studynotes.core.security import Identity, verify_token
from studynotes.core.storage import RecordStore

# Bearer Token 认证方案；缺失令牌由 get_current_user 返回 401
# (Bearer scheme; a missing token is turned into 401 by get_current_user)
security = HTTPBearer(auto_error=False)

_store: RecordStore | None = None


def get_store() -> RecordStore:
    """
    FastAPI 依赖项：获取记录存储 (FastAPI Dependency: Get Record Store)

    进程内单例，测试中可通过 dependency_overrides 替换。
    Process-wide singleton; tests replace it through dependency_overrides.
    """
    global _store
    if _store is None:
        _store = RecordStore(settings.data_dir)
        _store.ensure_directories()
    return _store


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    store: RecordStore = Depends(get_store),
) -> Identity:
    """
    从请求头中提取并验证 JWT，返回当前用户身份 (Extract and validate JWT, return caller identity)

    - 缺少令牌 → 401 (missing token)
    - 令牌无效/过期 → 403 (invalid/expired token)
    - 用户已删除或已禁用 → 403 (user removed or disabled)

    角色取自凭证分区中的最新记录，而非令牌内的快照。
    The role comes from the stored user record, not the token snapshot.
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("访问令牌缺失")

    identity = verify_token(credentials.credentials)

    users = await store.read_users()
    user = next((u for u in users if u.get("id") == identity.id), None)
    if user is None:
        raise TokenInvalidError("令牌无效", detail="user_not_found")
    if not user.get("isActive", True):
        raise AccountDisabledError("账户已禁用")

    return Identity(id=user["id"], username=user.get("username", ""), role=user.get("role", "user"))


def require_role(*roles: str):
    """
    角色检查依赖工厂 (Role check dependency factory)

    只有拥有指定角色的用户才能访问受保护的端点。
    Only users holding one of the roles may reach the endpoint.
    """
    async def checker(user: Identity = Depends(get_current_user)) -> Identity:
        if user.role not in roles:
            raise AuthorizationError("需要管理员权限")
        return user
    return checker


# 预定义常用角色依赖 (Predefined common role dependencies)
get_admin_user = require_role("admin")  # 仅管理员 (Admin only)
