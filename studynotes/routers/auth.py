"""
用户认证路由模块 (User Authentication Router)

功能说明：提供用户注册、登录、获取当前用户等认证相关接口
核心职责：
  - 用户注册（用户名、邮箱唯一，密码至少 6 位，新用户为普通用户）
  - 用户登录验证、更新最后登录时间与令牌签发（24 小时有效）
  - 获取当前用户信息
依赖关系：依赖凭证存储服务、JWT 安全模块、审计服务
API端点：POST /register, POST /login, GET /me
"""
from fastapi import APIRouter, Depends, Request, status

from studynotes.core.deps import get_current_user, get_store
from studynotes.core.security import Identity
from studynotes.core.storage import RecordStore
from studynotes.schemas.auth import RegisterResponse, TokenResponse, UserLogin, UserRegister
from studynotes.schemas.user import UserOut
from studynotes.services.audit import log_audit
from studynotes.services.credentials import CredentialStore

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(data: UserRegister, request: Request, store: RecordStore = Depends(get_store)):
    """
    用户注册接口 (User Registration)

    Args:
        data: 用户注册数据（用户名、邮箱、密码）
        store: 记录存储依赖注入
    Returns:
        RegisterResponse: 注册成功的用户信息（不含密码哈希）
    Raises:
        ValidationError 400: 必填项缺失或密码长度不足
        ConflictError 400: 用户名或邮箱已存在
    """
    user = await CredentialStore(store).register(data.username, data.email, data.password)
    log_audit(user.id, "register", "user", user.id, {"username": user.username}, _client_ip(request))
    return RegisterResponse(message="注册成功", user=user)


@router.post("/login", response_model=TokenResponse)
async def login(data: UserLogin, request: Request, store: RecordStore = Depends(get_store)):
    """
    用户登录接口 (User Login)

    验证用户凭证并生成访问令牌，同时记录审计日志。

    Raises:
        AuthenticationError 401: 用户名或密码错误
        AccountDisabledError 403: 账户已禁用
    流程：
        1. 根据用户名查找用户
        2. 验证密码哈希值
        3. 检查账户状态
        4. 更新最后登录时间并签发令牌
    """
    token, user = await CredentialStore(store).authenticate(data.username, data.password)
    log_audit(user.id, "login", "user", user.id, None, _client_ip(request))
    return TokenResponse(message="登录成功", token=token, user=user)


@router.get("/me", response_model=UserOut)
async def me(current_user: Identity = Depends(get_current_user), store: RecordStore = Depends(get_store)):
    """获取当前用户信息 (Get Current User)"""
    return await CredentialStore(store).get_user(current_user.id)
