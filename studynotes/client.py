"""
学习笔记同步客户端 (Study Notes Sync Client)

功能描述 (Description):
    客户端在本地 JSON 文件中保存登录状态与全部个人数据，可离线浏览和编辑；
    联网时按“先上传、再下载”的协议与服务端同步，下载结果整体替换本地数据（云端优先）。

    The client keeps its login state and personal data in a local JSON file and
    works offline. When online it syncs by uploading the local snapshot and then
    replacing local state with the downloaded server snapshot (cloud wins).

同步规则 (Sync Rules):
    1. 未登录时不同步
    2. 本地有题目或历史时才上传，避免空的新客户端覆盖云端数据
    3. 网络不可达时保留本地数据，返回 local_only，不抛出异常
    4. 服务端返回 409（baseRevision 已过期）时抛出 SyncConflictError，由调用方决定如何处理

使用示例 (Usage):
    context = StudyContext(base_url="http://localhost:8000", local=LocalStore("study.json"))
    async with StudyNotesClient(context) as client:
        await client.login("alice", "secret123")
        result = await client.sync()
"""
import copy
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import httpx

from studynotes.core.exceptions import SyncConflictError
from studynotes.core.security import Identity
from studynotes.core.storage import DEFAULT_TAGS, write_json_atomic
from studynotes.core.timeutil import now_ms, utcnow_iso
from studynotes.services.access_policy import can_edit
from studynotes.services.history import push_history

logger = logging.getLogger(__name__)

SYNCED = "synced"
LOCAL_ONLY = "local_only"
SKIPPED = "skipped"


def _empty_state() -> dict[str, Any]:
    return {
        "token": None,
        "user": None,
        "questions": [],
        "history": [],
        "tags": list(DEFAULT_TAGS),
        "annotations": {},
        "revision": None,
    }


class ApiError(Exception):
    """服务端返回的错误响应 (Error response returned by the server)"""

    def __init__(self, status_code: int, message: str, body: Optional[dict] = None):
        self.status_code = status_code
        self.message = message
        self.body = body or {}
        super().__init__(f"{status_code}: {message}")


class LocalStore:
    """
    本地持久化状态 (Local persistent state)

    单个 JSON 文件，缺失或损坏时从空状态开始。
    One JSON file; a missing or corrupt file starts from the empty state.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self.data = self._load()

    def _load(self) -> dict[str, Any]:
        state = _empty_state()
        if not self.path.exists():
            return state
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                saved = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("本地数据读取失败，使用空数据 %s: %s", self.path, e)
            return state
        if isinstance(saved, dict):
            state.update({k: v for k, v in saved.items() if k in state})
        return state

    def save(self) -> None:
        write_json_atomic(self.path, self.data)

    def __getitem__(self, key: str) -> Any:
        return self.data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self.data[key] = value


@dataclass
class StudyContext:
    """
    单个会话的客户端状态 (Per-session client state)

    每个会话持有自己的服务地址与本地存储，互不共享。
    """
    base_url: str
    local: LocalStore
    online: bool = True
    last_error: Optional[str] = field(default=None, repr=False)

    @property
    def token(self) -> Optional[str]:
        return self.local["token"]

    @property
    def user(self) -> Optional[dict]:
        return self.local["user"]

    @property
    def identity(self) -> Optional[Identity]:
        user = self.user
        if not user:
            return None
        return Identity(id=user["id"], username=user.get("username", ""), role=user.get("role", "user"))


@dataclass
class SyncResult:
    status: str
    revision: Optional[int] = None
    error: Optional[str] = None


class StudyNotesClient:
    """
    学习笔记 HTTP 客户端 (Study notes HTTP client)

    Args:
        context: 会话状态 (session state)
        transport: 可选的 httpx 传输层，测试中传入 ASGITransport (optional httpx transport)
        timeout: 请求超时秒数 (request timeout in seconds)
    """

    def __init__(self, context: StudyContext, transport: Optional[httpx.AsyncBaseTransport] = None,
                 timeout: float = 10.0):
        self.context = context
        self._http = httpx.AsyncClient(base_url=context.base_url, transport=transport, timeout=timeout)

    async def __aenter__(self) -> "StudyNotesClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # ==================== HTTP ====================

    async def api_request(self, method: str, endpoint: str, data: Any = None) -> Any:
        """
        发送 API 请求并解析 JSON 响应 (Send an API request and decode the JSON body)

        Raises:
            SyncConflictError: 服务端返回 409
            ApiError: 其他非 2xx 响应
            httpx.TransportError: 网络不可达
        """
        headers = {}
        if self.context.token:
            headers["Authorization"] = f"Bearer {self.context.token}"
        response = await self._http.request(method, f"/api{endpoint}", json=data, headers=headers)
        try:
            body = response.json() if response.content else {}
        except ValueError:
            body = {}

        if response.status_code == 409:
            raise SyncConflictError(body.get("message", "同步冲突"), revision=body.get("revision", 0))
        if response.is_error:
            message = body.get("message") if isinstance(body, dict) else None
            raise ApiError(response.status_code, message or response.reason_phrase, body)
        return body

    # ==================== 认证 (Auth) ====================

    async def register(self, username: str, email: str, password: str) -> dict:
        """注册账户，不自动登录 (Register; does not log in)"""
        body = await self.api_request("POST", "/auth/register",
                                      {"username": username, "email": email, "password": password})
        return body["user"]

    async def login(self, username: str, password: str) -> dict:
        body = await self.api_request("POST", "/auth/login", {"username": username, "password": password})
        self.context.local["token"] = body["token"]
        self.context.local["user"] = body["user"]
        self.context.local.save()
        return body["user"]

    async def me(self) -> Optional[dict]:
        """
        校验本地令牌 (Validate the stored token)

        令牌无效时清除登录状态并返回 None；网络错误向上抛出。
        """
        if not self.context.token:
            return None
        try:
            user = await self.api_request("GET", "/auth/me")
        except ApiError as e:
            if e.status_code in (401, 403):
                logger.info("本地令牌已失效，退出登录: %s", e.message)
                self.logout()
                return None
            raise
        self.context.local["user"] = user
        self.context.local.save()
        return user

    def logout(self) -> None:
        self.context.local["token"] = None
        self.context.local["user"] = None
        self.context.local.save()

    # ==================== 本地编辑 (Local Editing) ====================

    def view_question(self, question_id: str) -> list[dict]:
        """浏览题目，更新本地历史 (View a question, updating the local history)"""
        question = next((q for q in self.context.local["questions"] if q.get("id") == question_id), None)
        if question is None:
            raise KeyError(question_id)
        self.context.local["history"] = push_history(self.context.local["history"], question)
        self.context.local.save()
        return self.context.local["history"]

    def save_question(self, question: dict) -> dict:
        """
        在本地保存题目，下次同步时上传 (Save a question locally; uploaded on the next sync)

        Raises:
            PermissionError: 无权修改已存在的题目
        """
        questions = self.context.local["questions"]
        record = copy.deepcopy(question)
        now = utcnow_iso()
        existing = next((q for q in questions if record.get("id") and q.get("id") == record["id"]), None)

        if existing is not None:
            if not can_edit(self.context.identity, existing):
                raise PermissionError(f"没有权限修改题目 {record['id']}")
            record["createdBy"] = existing.get("createdBy")
            record["createdAt"] = existing.get("createdAt")
            record["updatedAt"] = now
            self.context.local["questions"] = [record if q is existing else q for q in questions]
        else:
            if not record.get("id"):
                taken = {q.get("id") for q in questions}
                stamp = now_ms()
                while f"q_{stamp}" in taken:
                    stamp += 1
                record["id"] = f"q_{stamp}"
            record["createdBy"] = self.context.user["id"] if self.context.user else None
            record["createdAt"] = now
            record["updatedAt"] = now
            self.context.local["questions"] = [*questions, record]

        self.context.local.save()
        return record

    def save_annotations(self, question_id: str, annotations: dict[str, str]) -> None:
        self.context.local["annotations"] = {**self.context.local["annotations"], question_id: annotations}
        self.context.local.save()

    # ==================== 同步 (Sync) ====================

    def snapshot(self, with_revision: bool = False) -> dict[str, Any]:
        """本地数据快照 (Snapshot of local data)"""
        local = self.context.local
        payload = {
            "questions": local["questions"],
            "history": local["history"],
            "tags": local["tags"],
            "annotations": local["annotations"],
        }
        if with_revision and local["revision"] is not None:
            payload["baseRevision"] = local["revision"]
        return payload

    async def sync(self, check_revision: bool = False) -> SyncResult:
        """
        与服务端同步：先上传本地快照，再下载并替换本地数据 (Upload, then download; cloud wins)

        Args:
            check_revision: 上传时附带上次同步的版本号，云端已变化则返回 409
        Returns:
            SyncResult: synced / local_only（网络不可达）/ skipped（未登录）
        Raises:
            SyncConflictError: 服务端版本号与上次同步不一致
        """
        if not self.context.token:
            return SyncResult(SKIPPED)

        local = self.context.local
        try:
            if local["questions"] or local["history"]:
                await self.api_request("POST", "/data/sync/upload", self.snapshot(with_revision=check_revision))
            cloud = await self.api_request("GET", "/data/sync/download")
        except httpx.TransportError as e:
            logger.warning("同步失败，继续使用本地数据: %s", e)
            self.context.online = False
            self.context.last_error = str(e)
            return SyncResult(LOCAL_ONLY, revision=local["revision"], error=str(e))

        self.context.online = True
        self.context.last_error = None
        for key in ("questions", "history", "tags"):
            if cloud.get(key) is not None:
                local[key] = cloud[key]
        if cloud.get("annotations"):
            local["annotations"] = {**local["annotations"], **cloud["annotations"]}
        local["revision"] = cloud.get("revision")
        local.save()

        logger.info("同步完成，版本号 %s", local["revision"])
        return SyncResult(SYNCED, revision=local["revision"])
