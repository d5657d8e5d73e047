"""
数据同步服务 (Sync Reconciler Service)

上传 (upload):
    快照中出现的字段覆盖对应分区，省略的字段保持不变；批注按题目逐个覆盖。
    已存在题目的 createdBy 以服务端为准；历史记录去重截断；标签去重。
    携带 baseRevision 时，若服务端版本号已变化则拒绝整个上传（409），不写入任何分区。

下载 (download):
    返回题目、历史、标签、全部批注、当前版本号和时间戳。

Upload overwrites the partitions named in the snapshot and leaves omitted ones
untouched. With baseRevision, a stale base rejects the whole upload with 409
and nothing is written. Download returns the full snapshot plus revision.
"""
import logging
from typing import Any

from studynotes.core.exceptions import SyncConflictError
from studynotes.core.storage import HISTORY, QUESTIONS, TAGS, RecordStore, user_lock_key, validate_id
from studynotes.core.timeutil import utcnow_iso
from studynotes.schemas.sync import SyncUpload
from studynotes.services.history import normalize_history
from studynotes.services.questions import new_question_id

logger = logging.getLogger(__name__)


def dedupe_tags(tags: list[str]) -> list[str]:
    """保序去重 (Order-preserving dedupe)"""
    return list(dict.fromkeys(t for t in tags if t))


def _keep_ownership(incoming: list[dict], stored: list[dict]) -> list[dict]:
    owners = {r.get("id"): r.get("createdBy") for r in stored if isinstance(r, dict) and r.get("id")}
    result = []
    for record in incoming:
        question_id = record.get("id")
        if question_id in owners and owners[question_id]:
            record = {**record, "createdBy": owners[question_id]}
        result.append(record)
    return result


def _assign_missing_ids(records: list[dict], stored: list, user_id: str) -> list[dict]:
    taken = {r.get("id") for r in stored if isinstance(r, dict)} | {r.get("id") for r in records}
    for record in records:
        if not record.get("id"):
            record["id"] = new_question_id(taken)
            taken.add(record["id"])
            record["createdBy"] = record.get("createdBy") or user_id
    return records


async def upload(store: RecordStore, user_id: str, snapshot: SyncUpload) -> dict[str, Any]:
    """
    上传客户端快照 (Upload a client snapshot)

    Raises:
        SyncConflictError: baseRevision 与服务端版本号不一致
        ValidationError: 批注的题目 ID 非法

    Returns:
        dict: {revision, timestamp}
    """
    annotations = snapshot.annotations or {}
    for question_id in annotations:
        validate_id(question_id, "题目 ID")

    async with store.locked(user_lock_key(user_id)):
        current = await store.revision(user_id)
        if snapshot.base_revision is not None and snapshot.base_revision != current:
            raise SyncConflictError(
                "云端数据已被修改，请先下载最新数据",
                revision=current,
                detail=f"base_revision={snapshot.base_revision}",
            )

        written = []
        if snapshot.questions is not None:
            stored = await store.read(user_id, QUESTIONS)
            records = _keep_ownership([q.to_record() for q in snapshot.questions], stored)
            records = _assign_missing_ids(records, stored, user_id)
            await store.write(user_id, QUESTIONS, records)
            written.append(QUESTIONS)
        if snapshot.history is not None:
            entries = [h.model_dump(by_alias=True) for h in snapshot.history]
            await store.write(user_id, HISTORY, normalize_history(entries))
            written.append(HISTORY)
        if snapshot.tags is not None:
            await store.write(user_id, TAGS, dedupe_tags(snapshot.tags))
            written.append(TAGS)
        for question_id, notes in annotations.items():
            await store.write_annotations(user_id, question_id, notes)
        if annotations:
            written.append(f"annotations({len(annotations)})")

        revision = await store.revision(user_id)

    logger.info("Sync upload for %s wrote %s", user_id, ", ".join(written) or "nothing")
    return {"revision": revision, "timestamp": utcnow_iso()}


async def download(store: RecordStore, user_id: str) -> dict[str, Any]:
    """下载服务端快照 (Download the server snapshot)"""
    async with store.locked(user_lock_key(user_id)):
        questions = await store.read(user_id, QUESTIONS)
        history = await store.read(user_id, HISTORY)
        tags = await store.read(user_id, TAGS)
        annotations = await store.list_annotations(user_id)
        revision = await store.revision(user_id)

    return {
        "questions": questions,
        "history": history,
        "tags": tags,
        "annotations": annotations,
        "revision": revision,
        "timestamp": utcnow_iso(),
    }
