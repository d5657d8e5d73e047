"""
JSON 分区存储模块 (JSON Partition Storage Module)

按用户 ID 组织的扁平 JSON 文件存储，替代关系型数据库为学习笔记服务提供持久化。
目录布局 (Directory layout)::

    <data_dir>/users.json                               凭证分区 (credential partition)
    <data_dir>/config.json                              全局配置 (global configuration)
    <data_dir>/users_data/questions/<userId>.json       题目分区 (questions)
    <data_dir>/users_data/history/<userId>.json         浏览历史 (history)
    <data_dir>/users_data/tags/<userId>.json            标签 (tags)
    <data_dir>/users_data/annotations/<userId>_<qid>.json  批注 (annotations)
    <data_dir>/users_data/revisions/<userId>.json       写入版本号 (write revision)

写入为整体替换（临时文件 + os.replace 原子提交）；读取失败降级为空数据并记录警告。
同一资源键上的读-改-写由调用方持有 ``store.locked(key)`` 串行化。

Writes fully replace a partition atomically (temp file + os.replace); read failures
degrade to empty data with a warning. Read-modify-write sequences on one resource
key are serialized by the caller holding ``store.locked(key)``.
"""
import asyncio
import copy
import json
import logging
import os
import re
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator

from studynotes.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

# 分区类型 (Partition kinds)
QUESTIONS = "questions"
HISTORY = "history"
TAGS = "tags"
ANNOTATIONS = "annotations"
PARTITION_KINDS = (QUESTIONS, HISTORY, TAGS)

DEFAULT_TAGS = ["重要", "难点", "易错", "常考"]

CREDENTIALS_LOCK = "credentials"
CONFIG_LOCK = "config"

_SAFE_ID = re.compile(r"^[A-Za-z0-9_\-]+$")


def validate_id(value: str, name: str = "ID") -> str:
    """
    校验用作文件名组成部分的 ID，防止路径穿越 (Validate an id used in a file name)

    Raises:
        ValidationError: ID 为空或包含非法字符 (empty or contains illegal characters)
    """
    if not value:
        raise ValidationError(f"{name} 不能为空")
    if not _SAFE_ID.match(value):
        raise ValidationError(f"无效的 {name}：只允许字母、数字、下划线和连字符")
    return value


def user_lock_key(user_id: str) -> str:
    return f"user:{user_id}"


def write_json_atomic(path: Path, data: Any) -> None:
    """
    原子写入 JSON：写临时文件后 os.replace (Atomically write JSON via temp file + os.replace)

    读者只会看到旧文件或完整的新文件。
    Readers see either the old file or the complete new one.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise


class RecordStore:
    """
    按用户分区的 JSON 记录存储 (Per-user partitioned JSON record store)

    Args:
        base_dir: 数据根目录 (Root data directory)
    """

    def __init__(self, base_dir: Path):
        self.base_dir = Path(base_dir)
        self.users_file = self.base_dir / "users.json"
        self.config_file = self.base_dir / "config.json"
        self.data_dir = self.base_dir / "users_data"
        self.revisions_dir = self.data_dir / "revisions"
        self._locks: dict[str, asyncio.Lock] = {}

    # ==================== 基础设施 (Infrastructure) ====================

    def ensure_directories(self) -> None:
        """确保所有分区目录存在 (Create every partition directory)"""
        for kind in (*PARTITION_KINDS, ANNOTATIONS):
            (self.data_dir / kind).mkdir(parents=True, exist_ok=True)
        self.revisions_dir.mkdir(parents=True, exist_ok=True)

    def lock(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    @asynccontextmanager
    async def locked(self, key: str) -> AsyncIterator[None]:
        """在资源键上串行化写入 (Serialize writers on one resource key)"""
        async with self.lock(key):
            yield

    def partition_path(self, user_id: str, kind: str) -> Path:
        if kind not in PARTITION_KINDS:
            raise ValueError(f"unknown partition kind: {kind}")
        return self.data_dir / kind / f"{validate_id(user_id, '用户 ID')}.json"

    def annotation_path(self, user_id: str, question_id: str) -> Path:
        validate_id(user_id, "用户 ID")
        validate_id(question_id, "题目 ID")
        return self.data_dir / ANNOTATIONS / f"{user_id}_{question_id}.json"

    @staticmethod
    def _load_json(path: Path) -> Any:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _read_json(self, path: Path, default: Any, expected: type) -> Any:
        """
        读取 JSON，缺失或损坏时返回默认值 (Read JSON, default when missing or corrupt)

        读路径的 I/O 错误不会向上抛出，只记录警告。
        Read-path I/O errors never propagate; they are logged as warnings.
        """
        if not path.exists():
            return copy.deepcopy(default)
        try:
            data = self._load_json(path)
        except (OSError, ValueError) as e:
            logger.warning("读取分区失败，按空数据处理 %s: %s", path, e)
            return copy.deepcopy(default)
        if not isinstance(data, expected):
            logger.warning("分区数据类型错误，按空数据处理 %s: %s", path, type(data).__name__)
            return copy.deepcopy(default)
        return data

    _write_json = staticmethod(write_json_atomic)

    # ==================== 用户分区 (User Partitions) ====================

    async def read(self, user_id: str, kind: str) -> list:
        """
        读取用户分区 (Read a user partition)

        分区不存在时返回空列表；标签分区返回默认标签。
        Returns [] when absent; the tag partition defaults to DEFAULT_TAGS.
        """
        default = DEFAULT_TAGS if kind == TAGS else []
        path = self.partition_path(user_id, kind)
        return await asyncio.to_thread(self._read_json, path, default, list)

    async def write(self, user_id: str, kind: str, value: list) -> None:
        """整体替换用户分区 (Fully replace a user partition)"""
        path = self.partition_path(user_id, kind)
        await asyncio.to_thread(self._write_json, path, value)
        await self._bump_revision(user_id)

    async def read_annotations(self, user_id: str, question_id: str) -> dict:
        path = self.annotation_path(user_id, question_id)
        return await asyncio.to_thread(self._read_json, path, {}, dict)

    async def write_annotations(self, user_id: str, question_id: str, annotations: dict) -> None:
        path = self.annotation_path(user_id, question_id)
        await asyncio.to_thread(self._write_json, path, annotations)
        await self._bump_revision(user_id)

    async def delete_annotations(self, user_id: str, question_id: str) -> bool:
        """删除批注分区，不存在时返回 False (Delete an annotation partition)"""
        path = self.annotation_path(user_id, question_id)
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            return False
        await self._bump_revision(user_id)
        return True

    async def list_annotations(self, user_id: str) -> dict[str, dict]:
        """
        汇总用户的全部批注 (Reassemble every annotation partition of a user)

        文件名去掉 ``<userId>_`` 前缀即为题目 ID。
        The question id is the file name stripped of the ``<userId>_`` prefix.
        """
        prefix = f"{validate_id(user_id, '用户 ID')}_"
        directory = self.data_dir / ANNOTATIONS
        if not directory.exists():
            return {}
        result: dict[str, dict] = {}
        for path in sorted(directory.glob(f"{prefix}*.json")):
            question_id = path.stem[len(prefix):]
            if not question_id:
                continue
            result[question_id] = await asyncio.to_thread(self._read_json, path, {}, dict)
        return result

    def list_partition_owners(self, kind: str) -> list[str]:
        """列出拥有某类分区的全部用户 ID (Ids of every user with a partition of kind)"""
        directory = self.data_dir / kind
        if not directory.exists():
            return []
        return sorted(p.stem for p in directory.glob("*.json") if _SAFE_ID.match(p.stem))

    async def scan_questions(self) -> list[dict]:
        """
        管理员跨分区汇总题目 (Admin cross-partition question scan)

        每条记录标注 ownerId（来源分区），单个分区读取失败时跳过并继续。
        Every record is tagged with ownerId (source partition); a partition that fails
        to read is skipped and the scan continues.
        """
        all_questions: list[dict] = []
        for owner_id in self.list_partition_owners(QUESTIONS):
            path = self.partition_path(owner_id, QUESTIONS)
            try:
                records = await asyncio.to_thread(self._load_json, path)
            except (OSError, ValueError) as e:
                logger.warning("跳过无法读取的题目分区 %s: %s", owner_id, e)
                continue
            if not isinstance(records, list):
                logger.warning("跳过格式错误的题目分区 %s", owner_id)
                continue
            for record in records:
                if isinstance(record, dict):
                    all_questions.append({**record, "ownerId": owner_id})
        return all_questions

    # ==================== 版本号 (Revisions) ====================

    async def revision(self, user_id: str) -> int:
        path = self.revisions_dir / f"{validate_id(user_id, '用户 ID')}.json"
        data = await asyncio.to_thread(self._read_json, path, {}, dict)
        return int(data.get("revision", 0))

    async def _bump_revision(self, user_id: str) -> int:
        current = await self.revision(user_id)
        path = self.revisions_dir / f"{user_id}.json"
        await asyncio.to_thread(self._write_json, path, {"revision": current + 1})
        return current + 1

    async def drop_user(self, user_id: str) -> None:
        """删除用户的全部分区 (Remove every partition of a user)"""
        paths = [self.partition_path(user_id, kind) for kind in PARTITION_KINDS]
        paths.append(self.revisions_dir / f"{user_id}.json")
        annotations_dir = self.data_dir / ANNOTATIONS
        if annotations_dir.exists():
            paths.extend(annotations_dir.glob(f"{user_id}_*.json"))
        for path in paths:
            try:
                await asyncio.to_thread(path.unlink)
            except FileNotFoundError:
                continue

    # ==================== 凭证与配置 (Credentials & Config) ====================

    def credentials_exist(self) -> bool:
        return self.users_file.exists()

    async def read_users(self) -> list[dict]:
        return await asyncio.to_thread(self._read_json, self.users_file, [], list)

    async def write_users(self, users: list[dict]) -> None:
        await asyncio.to_thread(self._write_json, self.users_file, users)

    async def read_config(self) -> dict:
        return await asyncio.to_thread(self._read_json, self.config_file, {}, dict)

    async def write_config(self, config: dict) -> None:
        await asyncio.to_thread(self._write_json, self.config_file, config)
