"""
题目管理路由 (Question Management Router)

功能说明：题目的查询、保存、批量保存、删除以及统计
核心职责：
  - 获取当前用户的题目分区
  - 保存单个题目（新建或更新，更新需要编辑权限）
  - 批量保存（整体替换题目分区，任一记录无权限则整批拒绝）
  - 删除题目（管理员删除时同步清理所有用户的历史和批注）
  - 管理员跨用户汇总题目
  - 题目统计
依赖关系：依赖题目服务、访问策略、审计服务
API端点：GET/POST /questions, POST /questions/batch, DELETE /questions/{id},
        GET /admin/questions, GET /stats
"""
from typing import Any, List

from fastapi import APIRouter, Depends, Request

from studynotes.core.deps import get_admin_user, get_current_user, get_store
from studynotes.core.security import Identity
from studynotes.core.storage import RecordStore
from studynotes.schemas.question import (
    BatchSaveResponse,
    QuestionBatchRequest,
    QuestionSaveRequest,
    QuestionSaveResponse,
    StatsResponse,
)
from studynotes.schemas.user import OperationResponse
from studynotes.services import questions as question_service
from studynotes.services.audit import log_audit

router = APIRouter(prefix="/api/data", tags=["questions"])


@router.get("/questions", response_model=List[dict[str, Any]])
async def list_questions(
    store: RecordStore = Depends(get_store),
    user: Identity = Depends(get_current_user),
):
    """获取当前用户的全部题目 (List the caller's questions)"""
    return await question_service.list_questions(store, user.id)


@router.post("/questions", response_model=QuestionSaveResponse)
async def save_question(
    data: QuestionSaveRequest,
    store: RecordStore = Depends(get_store),
    user: Identity = Depends(get_current_user),
):
    """
    保存单个题目 (Save Question)

    题目 ID 已存在时视为更新，保留原 createdBy / createdAt。

    Raises:
        ValidationError 400: 题目标题缺失
        AuthorizationError 403: 无权修改该题目，响应体携带 questionId
    """
    question = await question_service.save_question(store, user, data.question)
    return QuestionSaveResponse(message="题目保存成功", question=question)


@router.post("/questions/batch", response_model=BatchSaveResponse)
async def save_questions_batch(
    data: QuestionBatchRequest,
    store: RecordStore = Depends(get_store),
    user: Identity = Depends(get_current_user),
):
    """
    批量保存题目 (Batch Save Questions)

    整体替换题目分区；被省略的已存在题目视为删除。
    任何一条记录未通过权限检查时整批拒绝，不写入任何数据。
    """
    count = await question_service.save_batch(store, user, data.questions)
    return BatchSaveResponse(message="题目批量保存成功", count=count)


@router.delete("/questions/{question_id}", response_model=OperationResponse)
async def delete_question(
    question_id: str,
    request: Request,
    store: RecordStore = Depends(get_store),
    user: Identity = Depends(get_current_user),
):
    """
    删除题目 (Delete Question)

    Raises:
        NotFoundError 404: 题目不存在
        AuthorizationError 403: 无权删除该题目
    """
    await question_service.delete_question(store, user, question_id)
    log_audit(user.id, "delete_question", "question", question_id, None,
              request.client.host if request.client else None)
    return OperationResponse(message="题目删除成功")


@router.get("/admin/questions", response_model=List[dict[str, Any]])
async def admin_list_questions(
    store: RecordStore = Depends(get_store),
    admin: Identity = Depends(get_admin_user),
):
    """
    管理员获取所有用户的题目 (Admin: All Users' Questions)

    每条记录附带 ownerId 字段标识来源用户。
    """
    return await question_service.admin_questions(store)


@router.get("/stats", response_model=StatsResponse, response_model_by_alias=True)
async def stats(
    store: RecordStore = Depends(get_store),
    user: Identity = Depends(get_current_user),
):
    """获取当前用户的题目统计 (Question statistics)"""
    return await question_service.question_stats(store, user.id)
