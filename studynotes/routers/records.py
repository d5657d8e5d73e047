"""
个人记录路由 (Personal Records Router)

功能说明：浏览历史、标签与批注的读写
核心职责：
  - 浏览历史整体保存（去重、最多 10 条）和单次浏览记录
  - 自定义标签列表（未设置时返回默认标签）
  - 按题目保存的高亮/批注映射
API端点：GET/POST /history, POST /history/entries, GET/POST /tags,
        GET/POST /annotations/{question_id}
"""
from typing import Dict, List

from fastapi import APIRouter, Depends

from studynotes.core.deps import get_current_user, get_store
from studynotes.core.security import Identity
from studynotes.core.storage import HISTORY, TAGS, RecordStore, user_lock_key, validate_id
from studynotes.schemas.question import (
    AnnotationsSaveRequest,
    HistoryEntry,
    HistorySaveRequest,
    HistoryVisitRequest,
    TagsSaveRequest,
)
from studynotes.schemas.user import OperationResponse
from studynotes.services import history as history_service
from studynotes.services.sync import dedupe_tags

router = APIRouter(prefix="/api/data", tags=["records"])


# ==================== 浏览历史 (History) ====================

@router.get("/history", response_model=List[HistoryEntry], response_model_by_alias=True)
async def get_history(
    store: RecordStore = Depends(get_store),
    user: Identity = Depends(get_current_user),
):
    """获取浏览历史，最近浏览在前 (Recently viewed, newest first)"""
    return await store.read(user.id, HISTORY)


@router.post("/history", response_model=OperationResponse)
async def save_history(
    data: HistorySaveRequest,
    store: RecordStore = Depends(get_store),
    user: Identity = Depends(get_current_user),
):
    """整体保存浏览历史，按题目 ID 去重并截断为 10 条"""
    entries = [h.model_dump(by_alias=True) for h in data.history]
    await history_service.save_history(store, user.id, entries)
    return OperationResponse(message="浏览历史保存成功")


@router.post("/history/entries", response_model=List[HistoryEntry], response_model_by_alias=True)
async def record_visit(
    data: HistoryVisitRequest,
    store: RecordStore = Depends(get_store),
    user: Identity = Depends(get_current_user),
):
    """
    记录一次题目浏览 (Record a Question View)

    同一题目移到最前，返回更新后的历史列表。
    """
    return await history_service.add_to_history(store, user.id, data.model_dump())


# ==================== 标签 (Tags) ====================

@router.get("/tags", response_model=List[str])
async def get_tags(
    store: RecordStore = Depends(get_store),
    user: Identity = Depends(get_current_user),
):
    return await store.read(user.id, TAGS)


@router.post("/tags", response_model=OperationResponse)
async def save_tags(
    data: TagsSaveRequest,
    store: RecordStore = Depends(get_store),
    user: Identity = Depends(get_current_user),
):
    """保存标签列表（保序去重） (Save tags, order-preserving dedupe)"""
    async with store.locked(user_lock_key(user.id)):
        await store.write(user.id, TAGS, dedupe_tags(data.tags))
    return OperationResponse(message="标签保存成功")


# ==================== 批注 (Annotations) ====================

@router.get("/annotations/{question_id}", response_model=Dict[str, str])
async def get_annotations(
    question_id: str,
    store: RecordStore = Depends(get_store),
    user: Identity = Depends(get_current_user),
):
    """获取某题目的批注映射 (Annotation map of one question)"""
    validate_id(question_id, "题目 ID")
    return await store.read_annotations(user.id, question_id)


@router.post("/annotations/{question_id}", response_model=OperationResponse)
async def save_annotations(
    question_id: str,
    data: AnnotationsSaveRequest,
    store: RecordStore = Depends(get_store),
    user: Identity = Depends(get_current_user),
):
    """
    保存某题目的批注 (Save Annotations)

    整体替换该题目的批注分区。
    Raises:
        ValidationError 400: 题目 ID 含非法字符
    """
    validate_id(question_id, "题目 ID")
    async with store.locked(user_lock_key(user.id)):
        await store.write_annotations(user.id, question_id, data.annotations)
    return OperationResponse(message="批注保存成功")
