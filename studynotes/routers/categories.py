"""
分类配置路由 (Category Configuration Router)

仅管理员可读写；未配置时返回内置的默认分类。GET 直接返回分类映射。
API端点：GET/POST /api/data/categories
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from studynotes.core.deps import get_admin_user, get_store
from studynotes.core.security import Identity
from studynotes.core.storage import RecordStore
from studynotes.schemas.question import CategoriesSaveRequest
from studynotes.schemas.user import OperationResponse
from studynotes.services import categories as category_service
from studynotes.services.audit import log_audit

router = APIRouter(prefix="/api/data", tags=["categories"])


@router.get("/categories", response_model=Dict[str, Any])
async def get_categories(
    store: RecordStore = Depends(get_store),
    admin: Identity = Depends(get_admin_user),
):
    """获取分类配置 (Get category configuration)"""
    return await category_service.get_categories(store)


@router.post("/categories", response_model=OperationResponse)
async def save_categories(
    data: CategoriesSaveRequest,
    request: Request,
    store: RecordStore = Depends(get_store),
    admin: Identity = Depends(get_admin_user),
):
    """
    保存分类配置 (Save category configuration)

    整体替换分类映射，同时记录更新时间和操作人。
    """
    categories = data.categories
    await category_service.save_categories(store, categories, updated_by=admin.id)
    log_audit(admin.id, "update_categories", "config", "categories",
              {"count": len(categories)}, request.client.host if request.client else None)
    return OperationResponse(message="分类配置保存成功")
