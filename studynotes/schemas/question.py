"""
题目与个人记录相关的数据模型。

题目接受客户端附带的未知字段并原样保存；接口与存储均使用 camelCase。
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Question(BaseModel):
    """题目记录 (Question record)"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: Optional[str] = None
    title: str = ""
    category: str = ""
    subcategory: str = ""
    content: str = ""
    summary: str = ""
    example: str = ""
    thinking: str = ""
    notes: str = ""
    tags: List[str] = Field(default_factory=list)
    created_by: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_record(self) -> dict:
        """转换为存储格式 (Serialize to the stored shape)"""
        return self.model_dump(by_alias=True)


class HistoryEntry(BaseModel):
    """浏览历史条目 (History entry)"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    title: str = ""
    category: str = ""
    subcategory: str = ""
    access_time: Optional[str] = None


class QuestionSaveRequest(BaseModel):
    question: Question


class QuestionBatchRequest(BaseModel):
    questions: List[Question]


class QuestionSaveResponse(BaseModel):
    message: str
    question: Question


class BatchSaveResponse(BaseModel):
    message: str
    count: int


class HistorySaveRequest(BaseModel):
    history: List[HistoryEntry]


class HistoryVisitRequest(BaseModel):
    """记录一次题目浏览 (Record one question view)"""
    id: str
    title: str = ""
    category: str = ""
    subcategory: str = ""


class TagsSaveRequest(BaseModel):
    tags: List[str]


class AnnotationsSaveRequest(BaseModel):
    annotations: Dict[str, str]


class CategoriesSaveRequest(BaseModel):
    """分类配置为自由格式：分类键 → 任意对象（通常含 name, icon, subcategories）"""
    categories: Dict[str, Dict[str, Any]]


class StatsResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_questions: int
    total_history: int
    total_tags: int
    category_stats: Dict[str, Dict[str, int]]
    last_updated: Optional[int] = None
