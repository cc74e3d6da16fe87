from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from nfc_card.api.routes import admin as admin_routes
from nfc_card.api.routes import public as public_routes
from nfc_card.api.routes import signup as signup_routes
from nfc_card.api.routes import user as user_routes
from nfc_card.core.config import settings
from nfc_card.core.database import init_db
from nfc_card.core.errors import register_error_handlers


# 日志配置：统一格式，级别由 LOG_LEVEL 控制
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# 应用入口：初始化 FastAPI 实例
app = FastAPI(title="NFC Card", root_path=settings.root_path or "")

# 配置 CORS，允许前端访问后端 API
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# 注册名片相关路由
api_prefix = settings.api_prefix
if api_prefix is None:
    api_prefix = "" if (settings.root_path or "").strip() else "/api"
api_prefix = api_prefix.rstrip("/")
app.include_router(public_routes.router, prefix=f"{api_prefix}/public", tags=["public"])
app.include_router(signup_routes.router, prefix=f"{api_prefix}/signup", tags=["signup"])
app.include_router(user_routes.router, prefix=f"{api_prefix}/user", tags=["user"])
app.include_router(admin_routes.router, prefix=f"{api_prefix}/admin", tags=["admin"])

# 本地存储模式下直接托管上传的图片
if settings.storage_backend == "local":
    settings.ensure_dirs()
    app.mount("/storage", StaticFiles(directory=settings.storage_dir), name="storage")


# 启动事件：创建数据库表结构
@app.on_event("startup")
def on_startup() -> None:
    init_db()
