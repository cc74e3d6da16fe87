from __future__ import annotations

import os
from pydantic_settings import BaseSettings


# 应用配置：统一管理环境变量与默认值
class Settings(BaseSettings):
    # 运行环境标识（便于日志、调试、区分开发/生产）
    app_env: str = "dev"
    # 日志级别
    log_level: str = "INFO"
    # FastAPI 根路径（反向代理或子路径部署时使用）
    root_path: str = ""
    # API 前缀（兼容多版本路由或网关转发）
    api_prefix: str | None = None
    # 项目运行时数据根目录（本地存储/数据库等）
    data_dir: str = "data"
    # SQLite 数据库文件路径（默认本地文件）
    sqlite_path: str = "data/app.db"
    # 可选数据库连接串（优先用于 Supabase PostgreSQL）
    database_url: str | None = None
    # 数据库连接超时（秒）
    database_timeout_seconds: int = 10

    # 允许跨域访问的前端地址列表（逗号分隔）
    cors_origins: str = "http://localhost:5173"

    # Supabase 项目地址（前后端均需要）
    supabase_url: str = ""
    # Supabase 前端匿名访问 Key（仅前端使用）
    supabase_anon_key: str | None = None
    # Supabase Service Role Key（仅后端使用，用于 Storage 上传）
    supabase_service_role_key: str | None = None
    # Supabase JWKS 地址（用于后端 JWT 验证，留空则由 supabase_url 推导）
    supabase_jwks_url: str | None = None
    # Supabase JWT Secret（对称签名时使用，可与 JWKS 二选一）
    supabase_jwt_secret: str | None = None
    # JWT 验证时的 audience（Supabase 默认是 authenticated）
    supabase_jwt_audience: str = "authenticated"
    # JWT 验证时的 issuer（留空则由 supabase_url 推导）
    supabase_jwt_issuer: str | None = None

    # 对象存储后端：local 或 supabase
    storage_backend: str = "local"
    # 存储桶名称
    storage_bucket: str = "image"
    # 本地存储目录（storage_backend=local 时使用）
    storage_dir: str = "data/storage"
    # 本地存储对外访问地址前缀
    storage_public_base_url: str = "http://localhost:8000/storage"
    # 存储上传请求超时（秒）
    storage_timeout_seconds: int = 30
    # 图片上传大小上限（字节）
    max_upload_bytes: int = 5 * 1024 * 1024

    # 公开名片页地址前缀（二维码内容 = 前缀 + profile id）
    public_profile_base_url: str = "http://localhost:5173/profile/"
    # 未审核的名片是否对外隐藏
    public_requires_verification: bool = False

    # 管理后台分页大小
    admin_page_size: int = 5
    # 点击统计推送的合并窗口（秒）
    insights_debounce_seconds: float = 0.25
    # 读请求失败后的重试次数
    read_retries: int = 2
    # 读请求重试间隔（秒，按次数线性递增）
    read_retry_delay_seconds: float = 0.2

    # Pydantic Settings 行为配置
    class Config:
        env_file = (
            os.getenv("APP_ENV_FILE") or "config/.env",
            "backend/config/.env",
            ".env",
        )
        case_sensitive = False
        extra = "ignore" if os.getenv("APP_ENV", "dev").lower() == "dev" else "forbid"

    # 解析 CORS 允许域名列表（供中间件直接使用）
    @property
    def cors_origin_list(self) -> list[str]:
        return [item.strip() for item in self.cors_origins.split(",") if item.strip()]

    # Supabase JWKS 地址（优先使用配置值）
    @property
    def resolved_supabase_jwks_url(self) -> str | None:
        if self.supabase_jwks_url:
            return self.supabase_jwks_url
        if not self.supabase_url:
            return None
        return f"{self.supabase_url.rstrip('/')}/auth/v1/.well-known/jwks.json"

    # Supabase JWT issuer（优先使用配置值）
    @property
    def resolved_supabase_jwt_issuer(self) -> str | None:
        if self.supabase_jwt_issuer:
            return self.supabase_jwt_issuer
        if not self.supabase_url:
            return None
        return f"{self.supabase_url.rstrip('/')}/auth/v1"

    # 确保运行时数据目录存在（启动时创建必要目录）
    def ensure_dirs(self) -> None:
        for path in (
            self.data_dir,
            self.storage_dir if self.storage_backend == "local" else "",
            os.path.dirname(self.sqlite_path),
        ):
            if path:
                os.makedirs(path, exist_ok=True)


# 全局配置实例
settings = Settings()
