"""
数据同步请求/响应模型。

上传快照的每个顶层字段均可省略，省略的字段不会改动服务端数据。
"""
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from studynotes.schemas.question import HistoryEntry, Question


class SyncUpload(BaseModel):
    """上传快照 (Upload snapshot)"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    questions: Optional[List[Question]] = None
    history: Optional[List[HistoryEntry]] = None
    tags: Optional[List[str]] = None
    annotations: Optional[Dict[str, Dict[str, str]]] = None
    base_revision: Optional[int] = None


class SyncUploadResponse(BaseModel):
    message: str
    revision: int
    timestamp: str


class SyncSnapshot(BaseModel):
    """下载快照 (Download snapshot)"""
    questions: List[Question]
    history: List[HistoryEntry]
    tags: List[str]
    annotations: Dict[str, Dict[str, str]]
    revision: int
    timestamp: str
