"""
学习笔记服务应用入口模块 (Study Notes Service Application Entry Module)

负责 FastAPI 应用的生命周期管理、中间件配置、异常处理器和路由注册。

Main application entry point of the study-notes service: lifecycle management,
middleware configuration, exception handlers and route registration.

主要功能 (Main Features):
- 数据目录初始化 (Data directory initialization)
- 首次启动时创建默认管理员 (Default admin seeding on first start)
- 健康检查 (Health check)
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from studynotes import __version__
from studynotes.core.config import settings
from studynotes.core.deps import get_store
from studynotes.core.exceptions import register_exception_handlers
from studynotes.core.timeutil import utcnow_iso
from studynotes.routers import auth, categories, questions, records, sync, users
from studynotes.services.credentials import CredentialStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    应用生命周期管理器 (Application Lifecycle Manager)

    启动时创建数据目录；凭证分区不存在时写入默认管理员账户。
    Creates the data directories at startup and seeds the default admin
    account when the credential partition does not exist yet.
    """
    store = get_store()
    store.ensure_directories()
    await CredentialStore(store).ensure_default_admin()
    logger.info("Study notes service started, data dir: %s", store.base_dir)
    yield


# 创建 FastAPI 应用实例 (Create FastAPI application instance)
app = FastAPI(
    title="StudyNotes",
    description="学习笔记与题目管理服务 | Study notes and question management service",
    version=__version__,
    lifespan=lifespan,
)

# 注册全局异常处理器 (Register global exception handlers)
register_exception_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# 注册所有 API 路由模块 (Register all API router modules)
app.include_router(auth.router)  # 用户认证 (User authentication)
app.include_router(users.router)  # 用户管理 (User management)
app.include_router(questions.router)  # 题目管理 (Questions)
app.include_router(records.router)  # 历史、标签、批注 (History, tags, annotations)
app.include_router(sync.router)  # 数据同步 (Sync)
app.include_router(categories.router)  # 分类配置 (Category configuration)


@app.get("/api/health")
async def health():
    """
    健康检查接口 (Health Check Endpoint)

    无需认证，用于负载均衡器和部署脚本探活。

    Returns:
        dict: 服务状态、时间戳和版本号 (status, timestamp and version)
    """
    return {"status": "ok", "timestamp": utcnow_iso(), "version": settings.version}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("studynotes.main:app", host="0.0.0.0", port=8000)
