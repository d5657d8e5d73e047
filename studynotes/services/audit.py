"""
审计日志服务 (Audit Log Service)

记录关键操作的审计轨迹：登录、注册、账户管理、题目删除、数据同步等。
审计记录写入独立的 ``studynotes.audit`` 日志器，由部署方决定落盘位置。

Records an audit trail of key operations (login, registration, account
management, question deletion, sync). Records go to the dedicated
``studynotes.audit`` logger; deployment decides where they are persisted.
"""
import json
import logging
from typing import Any, Optional

audit_logger = logging.getLogger("studynotes.audit")


def log_audit(
    user_id: Optional[str],
    action: str,
    resource_type: str,
    resource_id: Optional[str] = None,
    detail: Optional[dict[str, Any]] = None,
    ip_address: Optional[str] = None,
) -> None:
    """
    统一审计日志记录器 (Unified Audit Log Recorder)

    Args:
        user_id: 操作用户ID (acting user)
        action: 操作类型，如 login/register/delete/upload (action verb)
        resource_type: 资源类型，如 user/question/sync (resource kind)
        resource_id: 被操作资源的ID (resource id)
        detail: 变更详情，避免包含密码等敏感数据 (change detail, never secrets)
        ip_address: 客户端IP地址 (client IP)

    使用示例:
        log_audit(user.id, "login", "user", user.id, None, request_ip)
    """
    audit_logger.info(
        "action=%s user=%s resource=%s:%s ip=%s detail=%s",
        action,
        user_id,
        resource_type,
        resource_id,
        ip_address,
        json.dumps(detail, ensure_ascii=False) if detail else "-",
    )
