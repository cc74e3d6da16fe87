from __future__ import annotations

import os
import secrets
import time

from nfc_card.core.config import settings


# 确保本地存储桶目录存在并返回路径
def ensure_bucket_dir(bucket: str) -> str:
    base_dir = os.path.join(settings.storage_dir, bucket)
    os.makedirs(base_dir, exist_ok=True)
    return base_dir


# 生成对象存储路径：<folder>/<随机串>_<毫秒时间戳>.<扩展名>
def new_object_key(
    folder: str,
    filename: str | None,
    now: float | None = None,
    extension: str | None = None,
) -> str:
    ext = (extension or "").strip(".").lower()
    if not ext and filename and "." in filename:
        ext = filename.rsplit(".", 1)[1].strip().lower()
    millis = int((now if now is not None else time.time()) * 1000)
    name = f"{secrets.token_hex(6)}_{millis}"
    if ext:
        name = f"{name}.{ext}"
    return f"{folder.strip('/')}/{name}"


# 本地对象路径（防止 key 跳出存储桶目录）
def local_object_path(bucket: str, key: str) -> str:
    base_dir = os.path.abspath(ensure_bucket_dir(bucket))
    path = os.path.abspath(os.path.join(base_dir, key))
    if not path.startswith(base_dir + os.sep):
        raise ValueError(f"Invalid object key: {key}")
    return path
