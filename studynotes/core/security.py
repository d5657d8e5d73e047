"""
安全工具模块 (Security Tools Module)

提供密码哈希加密、JWT 令牌签发与校验功能。
使用 bcrypt 算法进行密码加密，JWT 承载用户身份 {sub, username, role}。

Provides password hashing and JWT issuing/verification. Uses bcrypt for passwords
and JWT to carry the caller identity {sub, username, role}.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from studynotes.core.config import settings
from studynotes.core.exceptions import TokenInvalidError

# 密码哈希上下文，使用 bcrypt 算法 (Password Hash Context using bcrypt algorithm)
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


@dataclass(frozen=True)
class Identity:
    """令牌中携带的调用者身份 (Caller identity carried by a token)"""
    id: str
    username: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def hash_password(password: str) -> str:
    """
    对明文密码进行哈希加密 (Hash plain text password)

    bcrypt 哈希值包含盐值，每次哈希同一密码都会产生不同的结果。
    The bcrypt hash embeds its salt, so hashing the same password twice differs.
    """
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    """验证明文密码是否与哈希值匹配 (Verify if plain text password matches hash)"""
    try:
        return pwd_context.verify(plain, hashed)
    except (ValueError, TypeError):
        # 存储的哈希格式损坏 (Malformed stored hash)
        return False


def create_access_token(user_id: str, username: str, role: str) -> str:
    """
    生成访问令牌 (Generate access token)

    令牌有效期由 jwt_access_token_expire_minutes 决定（默认 24 小时）。
    Token validity is jwt_access_token_expire_minutes (24 hours by default).

    Args:
        user_id: 用户 ID (User ID)
        username: 用户名 (Username)
        role: 用户角色 admin/user (User role)

    Returns:
        str: JWT 访问令牌字符串 (JWT access token string)
    """
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.jwt_access_token_expire_minutes)
    return jwt.encode(
        {"sub": user_id, "username": username, "role": role, "exp": expire, "type": "access"},
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


def verify_token(token: str) -> Identity:
    """
    校验令牌并返回身份 (Verify a token and return the identity)

    只读操作，不修改任何存储。
    Read-only: never touches storage.

    Raises:
        TokenInvalidError: 令牌过期或无效 (Token expired or invalid)
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError:
        raise TokenInvalidError("令牌已过期", detail="token_expired")
    except JWTError:
        raise TokenInvalidError("令牌无效", detail="token_invalid")

    if payload.get("type") != "access" or not payload.get("sub"):
        raise TokenInvalidError("令牌无效", detail="token_invalid")

    return Identity(
        id=str(payload["sub"]),
        username=payload.get("username", ""),
        role=payload.get("role", "user"),
    )
