"""
题目访问策略 (Question Access Policy)

无副作用的权限判定函数，输入为 (调用者, 题目)，永远返回布尔值。

查看策略选用宽松版本：任何调用者都可以查看任何题目，可见范围由分区本身限定。
编辑/删除：管理员、题目创建者，或者没有记录创建者的历史题目（保留旧数据可编辑）。

Pure decision functions over (caller, question); they never raise.
View policy is the permissive one: every caller may view every question, the
partition layout already scopes what a non-admin can reach.
Edit/delete: admins, the creator, or legacy records without a recorded creator.
"""
from typing import Any, Mapping, Protocol, Union

from studynotes.core.exceptions import AuthorizationError
from studynotes.schemas.question import Question


class Caller(Protocol):
    id: str
    role: str


QuestionLike = Union[Question, Mapping[str, Any]]


def _created_by(question: QuestionLike) -> Any:
    if isinstance(question, Question):
        return question.created_by
    return question.get("createdBy")


def _question_id(question: QuestionLike) -> Any:
    if isinstance(question, Question):
        return question.id
    return question.get("id")


def can_view(caller: Caller | None, question: QuestionLike) -> bool:
    return True


def can_edit(caller: Caller | None, question: QuestionLike) -> bool:
    if caller is None:
        return False
    if caller.role == "admin":
        return True
    created_by = _created_by(question)
    # 历史数据没有创建者，任何已认证用户都可编辑
    if not created_by:
        return True
    return created_by == caller.id


def can_delete(caller: Caller | None, question: QuestionLike) -> bool:
    return can_edit(caller, question)


def ensure_can_edit(caller: Caller, question: QuestionLike) -> None:
    """无编辑权限时抛出 AuthorizationError (Raise AuthorizationError when edit is denied)"""
    if not can_edit(caller, question):
        raise AuthorizationError("您没有权限修改此题目", question_id=_question_id(question))


def ensure_can_delete(caller: Caller, question: QuestionLike) -> None:
    if not can_delete(caller, question):
        raise AuthorizationError("您没有权限删除此题目", question_id=_question_id(question))
