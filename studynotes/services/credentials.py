"""
凭证存储服务 (Credential Store Service)

功能描述 (Description):
    管理凭证分区 users.json 中的用户记录：注册、登录认证、账户状态与角色管理、删除。
    用户名与邮箱唯一（区分大小写），检查与写入在凭证分区锁内完成，避免并发注册产生重复用户。

    Manages user records in the credential partition (users.json): registration,
    authentication, status and role management, deletion. Username and email are
    unique (case-sensitive); the check and the append run under the credential
    partition lock so concurrent registrations cannot both pass.
"""
import logging
import re
from typing import Optional

from studynotes.core.config import settings
from studynotes.core.exceptions import (
    AccountDisabledError,
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from studynotes.core.security import create_access_token, hash_password, verify_password
from studynotes.core.storage import CREDENTIALS_LOCK, RecordStore
from studynotes.core.timeutil import now_ms, utcnow_iso
from studynotes.schemas.user import UserOut

logger = logging.getLogger(__name__)

ROLES = ("admin", "user")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def public_user(record: dict) -> UserOut:
    """去掉密码哈希后的用户信息 (User info without the password hash)"""
    return UserOut.model_validate(record)


class CredentialStore:
    """凭证分区上的用户操作 (User operations over the credential partition)"""

    def __init__(self, store: RecordStore):
        self.store = store

    @staticmethod
    def _validate(username: str, email: str, password: str) -> None:
        if not username or not email or not password:
            raise ValidationError("用户名、邮箱和密码都是必填项")
        if len(password) < settings.min_password_length:
            raise ValidationError(f"密码长度至少{settings.min_password_length}位", detail="weak_password")
        if not EMAIL_PATTERN.match(email):
            raise ValidationError("邮箱格式不正确")

    async def create_user(self, username: str, email: str, password: str, role: str = "user") -> UserOut:
        """
        创建用户记录 (Create a user record)

        Raises:
            ValidationError: 必填项缺失、密码过短、邮箱格式错误或角色无效
            ConflictError: 用户名或邮箱已存在
        """
        self._validate(username, email, password)
        if role not in ROLES:
            raise ValidationError("角色必须为 admin / user")

        prefix = "admin" if role == "admin" else "user"
        async with self.store.locked(CREDENTIALS_LOCK):
            users = await self.store.read_users()
            if any(u.get("username") == username or u.get("email") == email for u in users):
                raise ConflictError("用户名或邮箱已存在", detail="duplicate_identity")

            existing_ids = {u.get("id") for u in users}
            stamp = now_ms()
            user_id = f"{prefix}_{stamp}"
            while user_id in existing_ids:
                stamp += 1
                user_id = f"{prefix}_{stamp}"

            record = {
                "id": user_id,
                "username": username,
                "email": email,
                "passwordHash": hash_password(password),
                "role": role,
                "createdAt": utcnow_iso(),
                "lastLogin": None,
                "isActive": True,
            }
            users.append(record)
            await self.store.write_users(users)

        logger.info("Created %s account %s (%s)", role, username, user_id)
        return public_user(record)

    async def register(self, username: str, email: str, password: str) -> UserOut:
        """用户注册，新用户均为普通用户 (Self-registration always creates a plain user)"""
        return await self.create_user(username, email, password, role="user")

    async def authenticate(self, username: str, password: str) -> tuple[str, UserOut]:
        """
        校验用户名密码并签发令牌 (Check credentials and issue a token)

        成功时更新 lastLogin，这是唯一修改 lastLogin 的路径。
        On success lastLogin is updated; this is the only path that touches it.

        Raises:
            ValidationError: 用户名或密码为空
            AuthenticationError: 用户名或密码错误
            AccountDisabledError: 账户已禁用
        """
        if not username or not password:
            raise ValidationError("用户名和密码都是必填项")

        async with self.store.locked(CREDENTIALS_LOCK):
            users = await self.store.read_users()
            user = next((u for u in users if u.get("username") == username), None)
            if user is None or not verify_password(password, user.get("passwordHash", "")):
                raise AuthenticationError("用户名或密码错误")
            if not user.get("isActive", True):
                raise AccountDisabledError("账户已禁用")

            user["lastLogin"] = utcnow_iso()
            await self.store.write_users(users)

        token = create_access_token(user["id"], user["username"], user.get("role", "user"))
        return token, public_user(user)

    async def get_user(self, user_id: str) -> UserOut:
        users = await self.store.read_users()
        user = next((u for u in users if u.get("id") == user_id), None)
        if user is None:
            raise NotFoundError("用户不存在")
        return public_user(user)

    async def list_users(self) -> list[UserOut]:
        return [public_user(u) for u in await self.store.read_users()]

    async def _update(self, user_id: str, **changes) -> UserOut:
        async with self.store.locked(CREDENTIALS_LOCK):
            users = await self.store.read_users()
            user = next((u for u in users if u.get("id") == user_id), None)
            if user is None:
                raise NotFoundError("用户不存在")
            user.update(changes)
            await self.store.write_users(users)
        return public_user(user)

    async def set_active(self, user_id: str, is_active: bool, acting_user_id: Optional[str] = None) -> UserOut:
        """启用/禁用账户，管理员不能禁用自己 (An admin cannot disable itself)"""
        if acting_user_id == user_id and not is_active:
            raise ValidationError("不能禁用自己")
        return await self._update(user_id, isActive=is_active)

    async def set_role(self, user_id: str, role: str, acting_user_id: Optional[str] = None) -> UserOut:
        if role not in ROLES:
            raise ValidationError("角色必须为 admin / user")
        if acting_user_id == user_id and role != "admin":
            raise ValidationError("不能取消自己的管理员角色")
        return await self._update(user_id, role=role)

    async def delete_user(self, user_id: str, acting_user_id: Optional[str] = None) -> UserOut:
        """
        硬删除用户记录，无法恢复 (Hard delete, no recovery)

        用户的数据分区不随之删除，由调用方决定是否清理。
        The user's data partitions are left in place; the caller decides.
        """
        if acting_user_id == user_id:
            raise ValidationError("不能删除自己")
        async with self.store.locked(CREDENTIALS_LOCK):
            users = await self.store.read_users()
            remaining = [u for u in users if u.get("id") != user_id]
            if len(remaining) == len(users):
                raise NotFoundError("用户不存在")
            removed = next(u for u in users if u.get("id") == user_id)
            await self.store.write_users(remaining)
        return public_user(removed)

    async def ensure_default_admin(self) -> bool:
        """
        凭证分区不存在时创建默认管理员 (Seed the default admin when no credential partition exists)

        Returns:
            bool: 是否创建了默认管理员 (whether an admin was created)
        """
        if self.store.credentials_exist():
            return False
        await self.create_user(
            settings.default_admin_username,
            settings.default_admin_email,
            settings.default_admin_password,
            role="admin",
        )
        logger.warning(
            "已创建默认管理员账户 %s，请尽快修改密码 | Default admin account created, change its password",
            settings.default_admin_username,
        )
        return True
