"""
用户管理路由 (User Management Router)

功能说明：管理员对账户的查看、启用/禁用、角色调整与删除
核心职责：
  - 用户列表（不含密码哈希）
  - 账户启用/禁用（管理员不能禁用自己）
  - 角色调整 admin/user
  - 硬删除账户（不可恢复，管理员不能删除自己），可选同时清理数据分区
  - 完整的审计日志记录
API端点：GET /api/auth/users, PUT /api/auth/users/{id}/status, PUT /api/auth/users/{id}/role,
        DELETE /api/auth/users/{id}
"""
from typing import List

from fastapi import APIRouter, Depends, Query, Request

from studynotes.core.deps import get_admin_user, get_store
from studynotes.core.security import Identity
from studynotes.core.storage import RecordStore
from studynotes.schemas.user import OperationResponse, UserOut, UserRoleUpdate, UserStatusUpdate
from studynotes.services.audit import log_audit
from studynotes.services.credentials import CredentialStore

router = APIRouter(prefix="/api/auth/users", tags=["users"])


@router.get("", response_model=List[UserOut])
async def list_users(
    store: RecordStore = Depends(get_store),
    admin: Identity = Depends(get_admin_user),
):
    """
    获取用户列表 (Get Users List)

    Security:
        - 仅限 admin 角色用户访问（通过 get_admin_user 依赖校验）
        - 返回数据排除密码哈希
    """
    return await CredentialStore(store).list_users()


@router.put("/{user_id}/status", response_model=OperationResponse)
async def update_status(
    user_id: str,
    data: UserStatusUpdate,
    request: Request,
    store: RecordStore = Depends(get_store),
    admin: Identity = Depends(get_admin_user),
):
    """
    启用/禁用账户 (Enable/Disable Account)

    Raises:
        NotFoundError 404: 用户不存在
        ValidationError 400: 管理员尝试禁用自己
    """
    await CredentialStore(store).set_active(user_id, data.is_active, acting_user_id=admin.id)
    log_audit(admin.id, "update_status", "user", user_id, {"isActive": data.is_active},
              request.client.host if request.client else None)
    return OperationResponse(message="用户状态更新成功")


@router.put("/{user_id}/role", response_model=UserOut)
async def update_role(
    user_id: str,
    data: UserRoleUpdate,
    request: Request,
    store: RecordStore = Depends(get_store),
    admin: Identity = Depends(get_admin_user),
):
    """调整用户角色 (Change User Role)"""
    user = await CredentialStore(store).set_role(user_id, data.role, acting_user_id=admin.id)
    log_audit(admin.id, "update_role", "user", user_id, {"role": data.role},
              request.client.host if request.client else None)
    return user


@router.delete("/{user_id}", response_model=OperationResponse)
async def delete_user(
    user_id: str,
    request: Request,
    purge_data: bool = Query(False, alias="purgeData"),
    store: RecordStore = Depends(get_store),
    admin: Identity = Depends(get_admin_user),
):
    """
    删除用户 (Delete User)

    硬删除，无法恢复。purgeData=true 时同时删除该用户的全部数据分区。

    Raises:
        ValidationError 400: 管理员不能删除自己
        NotFoundError 404: 用户不存在
    """
    removed = await CredentialStore(store).delete_user(user_id, acting_user_id=admin.id)
    if purge_data:
        await store.drop_user(user_id)

    # 删除前记录用户名，便于审计追踪
    log_audit(admin.id, "delete_user", "user", user_id,
              {"username": removed.username, "purgeData": purge_data},
              request.client.host if request.client else None)
    return OperationResponse(message="用户删除成功")
