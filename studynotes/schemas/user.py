"""
用户管理相关的请求/响应数据模型。

存储格式与接口格式均使用 camelCase 字段名（passwordHash、isActive、lastLogin）。
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class UserOut(BaseModel):
    """用户信息响应模型（不含密码哈希）。"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    username: str
    email: str
    role: str
    is_active: bool = True
    created_at: Optional[str] = None
    last_login: Optional[str] = None


class UserStatusUpdate(BaseModel):
    """更新账户状态请求体。"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    is_active: bool


class UserRoleUpdate(BaseModel):
    """更新角色请求体。"""
    role: str


class OperationResponse(BaseModel):
    message: str
