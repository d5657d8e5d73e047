"""
题目服务 (Question Service)

功能描述 (Description):
    题目的保存、批量保存、删除、管理员跨分区汇总与统计。
    所有修改在写入前调用访问策略；批量保存整体生效或整体拒绝。

核心规则 (Core Rules):
    1. 新题目的 createdBy 设为调用者，之后不可更改
    2. 更新已存在题目时保留原 id / createdBy / createdAt
    3. 批量保存替换整个题目分区：被修改的题目需要编辑权限，被省略的已存在题目视为删除，需要删除权限
    4. 管理员删除题目时从所有用户分区中移除题目、历史条目和批注，单个分区失败不影响其他分区
"""
import logging
from collections import defaultdict
from typing import Optional

from studynotes.core.exceptions import NotFoundError, ValidationError
from studynotes.core.security import Identity
from studynotes.core.storage import HISTORY, QUESTIONS, TAGS, RecordStore, user_lock_key, validate_id
from studynotes.core.timeutil import now_ms, parse_iso_ms, utcnow_iso
from studynotes.schemas.question import Question
from studynotes.services.access_policy import ensure_can_delete, ensure_can_edit
from studynotes.services.history import remove_from_history

logger = logging.getLogger(__name__)


def new_question_id(taken: set) -> str:
    """生成 q_<毫秒时间戳> 形式且不与 taken 冲突的 ID (Unique q_<ms> id)"""
    stamp = now_ms()
    question_id = f"q_{stamp}"
    while question_id in taken:
        stamp += 1
        question_id = f"q_{stamp}"
    return question_id


def _find(records: list, question_id: str) -> Optional[dict]:
    return next((r for r in records if isinstance(r, dict) and r.get("id") == question_id), None)


def _without(records: list, question_id: str) -> list:
    # 非字典条目原样保留
    return [r for r in records if not (isinstance(r, dict) and r.get("id") == question_id)]


async def list_questions(store: RecordStore, user_id: str) -> list[dict]:
    return await store.read(user_id, QUESTIONS)


async def save_question(store: RecordStore, caller: Identity, question: Question) -> Question:
    """
    保存单个题目 (Save one question)

    Raises:
        ValidationError: 标题缺失或 ID 非法
        AuthorizationError: 无权修改已存在的题目
    """
    if not question.title:
        raise ValidationError("题目数据不完整")

    now = utcnow_iso()
    record = question.to_record()

    async with store.locked(user_lock_key(caller.id)):
        questions = await store.read(caller.id, QUESTIONS)
        existing = _find(questions, question.id) if question.id else None

        if existing is not None:
            ensure_can_edit(caller, existing)
            record["createdBy"] = existing.get("createdBy")
            record["createdAt"] = existing.get("createdAt") or record.get("createdAt")
            record["updatedAt"] = now
            questions = [record if q is existing else q for q in questions]
        else:
            taken = {q.get("id") for q in questions if isinstance(q, dict)}
            record["id"] = validate_id(question.id, "题目 ID") if question.id else new_question_id(taken)
            record["createdAt"] = record.get("createdAt") or now
            record["updatedAt"] = now
            record["createdBy"] = caller.id
            questions.append(record)

        await store.write(caller.id, QUESTIONS, questions)

    return Question.model_validate(record)


async def save_batch(store: RecordStore, caller: Identity, batch: list[Question]) -> int:
    """
    批量保存题目，替换整个题目分区 (Batch save, replacing the whole questions partition)

    任何一条记录未通过权限检查，整批拒绝且不写入任何数据。
    If any record fails its permission check the whole batch is rejected and nothing is written.

    Returns:
        int: 保存的题目数 (number of saved questions)
    """
    batch_ids = [q.id for q in batch if q.id]
    if len(batch_ids) != len(set(batch_ids)):
        raise ValidationError("题目数据格式错误：存在重复的题目 ID")

    now = utcnow_iso()
    async with store.locked(user_lock_key(caller.id)):
        existing_records = await store.read(caller.id, QUESTIONS)
        existing_by_id = {r.get("id"): r for r in existing_records if isinstance(r, dict) and r.get("id")}

        # 先完成全部权限检查，再写入 (All checks complete before any write)
        for question in batch:
            if question.id and question.id in existing_by_id:
                ensure_can_edit(caller, existing_by_id[question.id])
        submitted = set(batch_ids)
        for question_id, record in existing_by_id.items():
            if question_id not in submitted:
                ensure_can_delete(caller, record)

        taken = set(existing_by_id) | submitted
        records = []
        for question in batch:
            record = question.to_record()
            stored = existing_by_id.get(question.id) if question.id else None
            if stored is not None:
                record["createdBy"] = stored.get("createdBy")
                record["createdAt"] = stored.get("createdAt") or record.get("createdAt")
            else:
                if question.id:
                    validate_id(question.id, "题目 ID")
                else:
                    record["id"] = new_question_id(taken)
                    taken.add(record["id"])
                record["createdBy"] = caller.id
                record["createdAt"] = record.get("createdAt") or now
            record["updatedAt"] = record.get("updatedAt") or now
            records.append(record)

        await store.write(caller.id, QUESTIONS, records)

    logger.info("User %s batch-saved %d questions", caller.id, len(records))
    return len(records)


async def _locate_anywhere(store: RecordStore, question_id: str) -> Optional[dict]:
    for owner_id in store.list_partition_owners(QUESTIONS):
        found = _find(await store.read(owner_id, QUESTIONS), question_id)
        if found is not None:
            return found
    return None


async def delete_question(store: RecordStore, caller: Identity, question_id: str) -> None:
    """
    删除题目 (Delete a question)

    先在调用者分区查找，找不到时再扫描所有分区。
    普通用户只能修改自己的分区：题目在他人分区时按访问策略返回 403。
    Looks in the caller's partition first, then scans every partition.
    Non-admins only ever write their own partition; a record found elsewhere
    goes through the access policy so a foreign record yields 403.

    Raises:
        NotFoundError: 题目不存在
        AuthorizationError: 无权删除
    """
    validate_id(question_id, "题目 ID")
    target = _find(await store.read(caller.id, QUESTIONS), question_id)
    if caller.is_admin:
        if target is None:
            target = await _locate_anywhere(store, question_id)
        if target is None:
            raise NotFoundError("题目不存在")
        ensure_can_delete(caller, target)
        await delete_everywhere(store, question_id)
        return

    if target is None:
        elsewhere = await _locate_anywhere(store, question_id)
        if elsewhere is not None:
            ensure_can_delete(caller, elsewhere)
        raise NotFoundError("题目不存在")

    ensure_can_delete(caller, target)

    async with store.locked(user_lock_key(caller.id)):
        questions = await store.read(caller.id, QUESTIONS)
        await store.write(caller.id, QUESTIONS, _without(questions, question_id))
        await store.delete_annotations(caller.id, question_id)


async def delete_everywhere(store: RecordStore, question_id: str) -> list[str]:
    """
    从所有用户分区删除题目、历史条目和批注 (Remove a question from every user partition)

    单个用户分区出错时记录警告并继续处理其他用户。
    A failure on one user's partitions is logged and the scan continues.

    Returns:
        list[str]: 实际发生变更的用户 ID (ids of users whose data changed)
    """
    owners = set(store.list_partition_owners(QUESTIONS)) | set(store.list_partition_owners(HISTORY))
    touched: list[str] = []
    for owner_id in sorted(owners):
        try:
            async with store.locked(user_lock_key(owner_id)):
                changed = False
                questions = await store.read(owner_id, QUESTIONS)
                remaining = _without(questions, question_id)
                if len(remaining) != len(questions):
                    await store.write(owner_id, QUESTIONS, remaining)
                    changed = True

                history = await store.read(owner_id, HISTORY)
                filtered = remove_from_history(history, question_id)
                if len(filtered) != len(history):
                    await store.write(owner_id, HISTORY, filtered)
                    changed = True

                if await store.delete_annotations(owner_id, question_id):
                    changed = True
        except Exception as e:
            logger.warning("处理用户 %s 的数据时出错，跳过: %s", owner_id, e)
            continue
        if changed:
            touched.append(owner_id)
    logger.info("Question %s removed from %d partitions", question_id, len(touched))
    return touched


async def admin_questions(store: RecordStore) -> list[dict]:
    """管理员获取所有用户的题目，每条带 ownerId (All users' questions, each tagged with ownerId)"""
    return await store.scan_questions()


async def question_stats(store: RecordStore, user_id: str) -> dict:
    """按分类/子分类统计题目数量 (Question counts per category and subcategory)"""
    questions = [q for q in await store.read(user_id, QUESTIONS) if isinstance(q, dict)]
    history = await store.read(user_id, HISTORY)
    tags = await store.read(user_id, TAGS)

    category_stats: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
    timestamps = []
    for q in questions:
        category_stats[q.get("category") or ""][q.get("subcategory") or ""] += 1
        stamp = parse_iso_ms(q.get("updatedAt") or q.get("createdAt"))
        if stamp is not None:
            timestamps.append(stamp)

    return {
        "totalQuestions": len(questions),
        "totalHistory": len(history),
        "totalTags": len(tags),
        "categoryStats": {k: dict(v) for k, v in category_stats.items()},
        "lastUpdated": max(timestamps) if timestamps else None,
    }
