"""
数据同步路由 (Sync Router)

客户端同步协议：先上传本地快照，再下载服务端快照替换本地数据（云端优先）。
上传可携带 baseRevision，服务端版本号已变化时返回 409 并附带当前 revision。

API端点：POST /sync/upload, GET /sync/download
"""
from fastapi import APIRouter, Depends, Request

from studynotes.core.deps import get_current_user, get_store
from studynotes.core.security import Identity
from studynotes.core.storage import RecordStore
from studynotes.schemas.sync import SyncSnapshot, SyncUpload, SyncUploadResponse
from studynotes.services import sync as sync_service
from studynotes.services.audit import log_audit

router = APIRouter(prefix="/api/data/sync", tags=["sync"])


@router.post("/upload", response_model=SyncUploadResponse)
async def upload(
    data: SyncUpload,
    request: Request,
    store: RecordStore = Depends(get_store),
    user: Identity = Depends(get_current_user),
):
    """
    上传本地快照 (Upload Snapshot)

    快照中出现的字段覆盖对应分区，省略的字段保持不变。

    Raises:
        SyncConflictError 409: baseRevision 已过期，不写入任何数据
        ValidationError 400: 批注题目 ID 非法
    """
    result = await sync_service.upload(store, user.id, data)
    log_audit(user.id, "sync_upload", "snapshot", None,
              {"revision": result["revision"], "fields": sorted(data.model_fields_set)},
              request.client.host if request.client else None)
    return SyncUploadResponse(message="数据上传成功", **result)


@router.get("/download", response_model=SyncSnapshot)
async def download(
    store: RecordStore = Depends(get_store),
    user: Identity = Depends(get_current_user),
):
    """下载服务端快照 (Download Snapshot)"""
    return await sync_service.download(store, user.id)
