"""
认证相关请求/响应模型

定义用户注册、登录、令牌等 API 的数据结构。
"""
from pydantic import BaseModel

from studynotes.schemas.user import UserOut


class UserRegister(BaseModel):
    """用户注册请求体。"""
    username: str
    email: str
    password: str


class UserLogin(BaseModel):
    """用户登录请求体。"""
    username: str
    password: str


class RegisterResponse(BaseModel):
    """注册响应体。"""
    message: str
    user: UserOut


class TokenResponse(BaseModel):
    """登录响应体，包含访问令牌和用户信息。"""
    message: str
    token: str
    token_type: str = "bearer"
    user: UserOut
