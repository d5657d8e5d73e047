"""
应用配置模块 (Application Configuration Module)

使用 Pydantic Settings 管理学习笔记服务的所有配置项，支持从 .env 文件和环境变量读取。
提供数据目录、JWT 认证、跨域、默认管理员等配置管理。

Uses Pydantic Settings to manage all configuration items for the study-notes service,
supporting reading from .env files and environment variables. Provides configuration
for the data directory, JWT authentication, CORS and the default admin account.
"""
import logging
import secrets
from pathlib import Path

from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    应用全局配置类 (Application Global Configuration Class)

    字段名自动映射同名环境变量（不区分大小写），支持 .env 文件加载。
    Field names map to same-named environment variables (case insensitive).
    """

    # 数据存储配置 (Data Storage Configuration)
    data_dir: Path = Path("data")  # JSON 数据根目录 (Root directory of the JSON partitions)

    # JWT 认证配置 (JWT Authentication Configuration)
    # ⚠️ 生产环境必须通过环境变量 JWT_SECRET_KEY 设置！未设置时自动生成随机密钥（每次重启会变化）
    # ⚠️ MUST set JWT_SECRET_KEY env var in production! Auto-generated random key changes on every restart.
    jwt_secret_key: str = ""  # JWT 签名密钥 (JWT Secret Key)
    jwt_algorithm: str = "HS256"  # JWT 算法 (JWT Algorithm)
    jwt_access_token_expire_minutes: int = 24 * 60  # 访问令牌有效期 24 小时 (Access Token Expiry, 24h)

    # 账户配置 (Account Configuration)
    min_password_length: int = 6  # 密码最小长度 (Minimum Password Length)
    default_admin_username: str = "admin"  # 默认管理员用户名 (Default Admin Username)
    default_admin_email: str = "admin@study.com"  # 默认管理员邮箱 (Default Admin Email)
    default_admin_password: str = "admin123"  # 默认管理员密码 (Default Admin Password)

    # 服务配置 (Service Configuration)
    environment: str = "development"  # 运行环境：development/production (Runtime Environment)
    allowed_origins: str = "*"  # 逗号分隔的 CORS 源 (Comma-separated CORS origins)
    version: str = "1.0.0"

    @property
    def cors_origins(self) -> list[str]:
        """解析 CORS 允许源列表 (Parse CORS origin list)"""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}  # Pydantic 配置：自动加载 .env 文件 (Auto-load .env file)


# 全局配置实例 (Global Configuration Instance)
settings = Settings()

# JWT 密钥安全检查：未设置时生成随机密钥并警告
if not settings.jwt_secret_key or settings.jwt_secret_key == "change-me-in-production":
    settings.jwt_secret_key = secrets.token_urlsafe(64)
    logger.warning(
        "JWT_SECRET_KEY 未设置，已自动生成随机密钥。此密钥在每次重启后会变化，所有已签发的 token 将失效。"
        " | JWT_SECRET_KEY not set, using auto-generated random key. "
        "All issued tokens will be invalidated on restart."
    )
