"""
浏览历史服务 (History Service)

每个用户最多保留 10 条最近浏览记录，按时间倒序，按题目 ID 去重。
纯函数部分同时被服务端接口和同步客户端使用。

Keeps at most 10 recently viewed entries per user, newest first, unique by
question id. The pure helpers are shared by the API and the sync client.
"""
from typing import Any, Iterable, Mapping, Optional

from studynotes.core.storage import HISTORY, RecordStore, user_lock_key
from studynotes.core.timeutil import utcnow_iso

HISTORY_LIMIT = 10


def normalize_history(entries: Iterable[Mapping[str, Any]]) -> list[dict]:
    """去重（保留首次出现）并截断 (Dedupe keeping the first occurrence, then truncate)"""
    seen: set = set()
    result: list[dict] = []
    for entry in entries:
        if not isinstance(entry, Mapping):
            continue
        entry_id = entry.get("id")
        if not entry_id or entry_id in seen:
            continue
        seen.add(entry_id)
        result.append(dict(entry))
        if len(result) == HISTORY_LIMIT:
            break
    return result


def push_history(
    history: Iterable[Mapping[str, Any]],
    question: Mapping[str, Any],
    access_time: Optional[str] = None,
) -> list[dict]:
    """
    将题目放到历史记录最前面 (Move a question to the front of the history)

    已存在的同 ID 条目会被移除，结果最多 HISTORY_LIMIT 条。
    An existing entry with the same id is removed; at most HISTORY_LIMIT entries remain.
    """
    entry = {
        "id": question["id"],
        "title": question.get("title", ""),
        "category": question.get("category", ""),
        "subcategory": question.get("subcategory", ""),
        "accessTime": access_time or utcnow_iso(),
    }
    rest = [h for h in history if not (isinstance(h, Mapping) and h.get("id") == entry["id"])]
    return normalize_history([entry, *rest])


async def save_history(store: RecordStore, user_id: str, history: Iterable[Mapping[str, Any]]) -> list[dict]:
    normalized = normalize_history(history)
    async with store.locked(user_lock_key(user_id)):
        await store.write(user_id, HISTORY, normalized)
    return normalized


async def add_to_history(store: RecordStore, user_id: str, question: Mapping[str, Any]) -> list[dict]:
    """记录一次浏览 (Record one view)"""
    async with store.locked(user_lock_key(user_id)):
        history = await store.read(user_id, HISTORY)
        updated = push_history(history, question)
        await store.write(user_id, HISTORY, updated)
    return updated


def remove_from_history(history: Iterable[Mapping[str, Any]], question_id: str) -> list[dict]:
    return [dict(h) for h in history if isinstance(h, Mapping) and h.get("id") != question_id]
