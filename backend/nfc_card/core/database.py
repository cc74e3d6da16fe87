from __future__ import annotations

from sqlalchemy import create_engine, text
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from nfc_card.core.config import settings


# ORM 基类：所有模型继承它
class Base(DeclarativeBase):
    pass


# 创建数据库引擎（默认 SQLite，配置 DATABASE_URL 时连接 Supabase PostgreSQL）
def _build_engine():
    if settings.database_url:
        connect_args = {}
        if settings.database_url.startswith("postgres"):
            connect_args["connect_timeout"] = settings.database_timeout_seconds
        return create_engine(
            settings.database_url,
            connect_args=connect_args,
            future=True,
            pool_pre_ping=True,
        )
    settings.ensure_dirs()
    return create_engine(
        f"sqlite:///{settings.sqlite_path}",
        connect_args={
            "check_same_thread": False,
            "timeout": settings.database_timeout_seconds,
        },
        future=True,
    )


# 全局数据库引擎
engine = _build_engine()
# 会话工厂
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


# 初始化数据库表
def init_db() -> None:
    from nfc_card.models import link_click, profile, theme  # noqa: F401

    # For PostgreSQL (Supabase), multiple gunicorn workers can race on create_all(),
    # causing DDL conflicts (e.g. duplicate pg_type). Use an advisory lock to serialize.
    if engine.dialect.name.startswith("postgres"):
        lock_id = 51772301
        with engine.connect() as conn:
            conn.execute(text("SELECT pg_advisory_lock(:lock_id)"), {"lock_id": lock_id})
            try:
                Base.metadata.create_all(bind=conn)
            finally:
                conn.execute(text("SELECT pg_advisory_unlock(:lock_id)"), {"lock_id": lock_id})
            conn.commit()
    else:
        Base.metadata.create_all(bind=engine)


# FastAPI 依赖：获取数据库会话
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# FastAPI 依赖：长连接推送使用的会话工厂（每次重算独立开会话）
def get_session_factory():
    return SessionLocal
