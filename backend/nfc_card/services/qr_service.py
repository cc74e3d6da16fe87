from __future__ import annotations

import io
import re

import qrcode

from nfc_card.core.config import settings


def profile_share_url(profile_id: str) -> str:
    return f"{settings.public_profile_base_url}{profile_id}"


def qr_filename(name: str | None) -> str:
    stem = re.sub(r"[^A-Za-z0-9_-]+", "_", (name or "").strip()).strip("_") or "card"
    return f"{stem}_QR.png"


# 生成名片分享链接的二维码 PNG（高容错级别，保留白边）
def render_profile_qr(profile_id: str, box_size: int = 8) -> bytes:
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_H,
        box_size=box_size,
        border=4,
    )
    qr.add_data(profile_share_url(profile_id))
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white").convert("RGB")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()
