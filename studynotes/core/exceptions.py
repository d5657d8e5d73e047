"""
全局异常处理模块 (Global Exception Handling Module)

定义业务异常类和 FastAPI 全局异常处理器，提供统一的错误响应格式。
所有未捕获的异常都会被转换为结构化 JSON 响应，避免泄露内部细节。

Defines business exception classes and FastAPI global exception handlers,
providing a unified error response format. Uncaught exceptions become a generic
500 response without leaking internal detail.
"""
import logging
import traceback
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import HTTPException, RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


# ============================================================
# 业务异常类 (Business Exception Classes)
# ============================================================

class BusinessError(Exception):
    """业务异常基类 (Base Business Exception)"""
    status_code: int = 400
    error: str = "business_error"

    def __init__(self, message: str, detail: Optional[str] = None):
        self.message = message
        self.detail = detail
        super().__init__(message)

    def extra(self) -> dict[str, Any]:
        """附加到响应体的额外字段 (Extra keys merged into the response body)"""
        return {}


class ValidationError(BusinessError):
    """数据校验失败 (Validation Error)"""
    status_code = 400
    error = "validation_error"


class AuthenticationError(BusinessError):
    """缺少凭证或用户名密码错误 (Missing credentials or bad username/password)"""
    status_code = 401
    error = "authentication_error"


class TokenInvalidError(BusinessError):
    """令牌无效或已过期 (Invalid or expired token)"""
    status_code = 403
    error = "token_invalid"


class AccountDisabledError(BusinessError):
    """账户已禁用 (Account Disabled)"""
    status_code = 403
    error = "account_disabled"


class AuthorizationError(BusinessError):
    """已认证但无权操作指定记录 (Authenticated but not allowed on a record)"""
    status_code = 403
    error = "permission_denied"

    def __init__(self, message: str, question_id: Optional[str] = None, detail: Optional[str] = None):
        self.question_id = question_id
        super().__init__(message, detail)

    def extra(self) -> dict[str, Any]:
        if self.question_id is None:
            return {}
        return {"questionId": self.question_id}


class NotFoundError(BusinessError):
    """资源不存在 (Resource Not Found)"""
    status_code = 404
    error = "not_found"


class ConflictError(BusinessError):
    """身份重复（用户名或邮箱已存在） (Duplicate identity)"""
    status_code = 400
    error = "conflict"


class SyncConflictError(BusinessError):
    """同步基线版本已过期 (Stale sync base revision)"""
    status_code = 409
    error = "sync_conflict"

    def __init__(self, message: str, revision: int, detail: Optional[str] = None):
        self.revision = revision
        super().__init__(message, detail)

    def extra(self) -> dict[str, Any]:
        return {"revision": self.revision}


# ============================================================
# 全局异常处理器注册 (Global Exception Handler Registration)
# ============================================================

def _error_body(error: str, message: str, detail: Optional[str], status_code: int) -> dict[str, Any]:
    return {
        "error": error,
        "message": message,
        "detail": detail,
        "status_code": status_code,
    }


def register_exception_handlers(app: FastAPI) -> None:
    """
    注册全局异常处理器到 FastAPI 应用 (Register global exception handlers to FastAPI app)

    处理优先级：
    1. BusinessError 子类 → 对应 HTTP 状态码 + 结构化响应
    2. RequestValidationError → 400 校验错误
    3. HTTPException → 保持原样，包装为统一格式
    4. Exception → 500 + 完整 traceback 日志
    """

    @app.exception_handler(BusinessError)
    async def business_error_handler(request: Request, exc: BusinessError) -> JSONResponse:
        content = _error_body(exc.error, exc.message, exc.detail, exc.status_code)
        content.update(exc.extra())
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        fields = ", ".join(".".join(str(p) for p in err.get("loc", ())[1:]) or "body" for err in errors)
        return JSONResponse(
            status_code=400,
            content=_error_body("validation_error", f"请求数据格式错误: {fields}", None, 400),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body("http_error", str(exc.detail), None, exc.status_code),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        # 记录完整 traceback 用于调试 (Log full traceback for debugging)
        logger.error(
            "Unhandled exception on %s %s: %s\n%s",
            request.method,
            request.url.path,
            str(exc),
            traceback.format_exc(),
        )
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "internal_server_error",
                "服务器内部错误，请稍后重试 (Internal server error, please try again later)",
                None,
                500,
            ),
        )
