from __future__ import annotations

import re
from typing import Dict, Tuple


# 名片上可点击的链接类别
# key: 写入 link_clicks.link_type 的稳定标识
# field: social_media_data 中对应的列
# label: 展示名
# href: 跳转地址的构造方式（tel / mailto / whatsapp / upi / web）
LINK_CATEGORIES: Dict[str, Dict[str, str]] = {
    "phone": {"field": "phone", "label": "Phone", "href": "tel"},
    "whatsapp": {"field": "whatsapp", "label": "WhatsApp", "href": "whatsapp"},
    "email": {"field": "email", "label": "Mail", "href": "mailto"},
    "website": {"field": "website", "label": "Website", "href": "web"},
    "facebook": {"field": "facebook", "label": "Facebook", "href": "web"},
    "instagram": {"field": "instagram", "label": "Instagram", "href": "web"},
    "youtube": {"field": "youtube", "label": "Youtube", "href": "web"},
    "linkedin": {"field": "linkedin", "label": "LinkedIn", "href": "web"},
    "googleReviews": {"field": "google_reviews", "label": "Google Reviews", "href": "web"},
    "upi": {"field": "upi", "label": "UPI", "href": "upi"},
    "maps": {"field": "maps", "label": "Maps", "href": "web"},
    "gallery": {"field": "drive_link", "label": "Gallery", "href": "web"},
}

# 兼容前端使用列名作为类别
LINK_TYPE_ALIASES: Dict[str, str] = {
    "google_reviews": "googleReviews",
    "drive": "gallery",
    "drive_link": "gallery",
}

_LOOKUP: Dict[str, str] = {
    **{key.lower(): key for key in LINK_CATEGORIES},
    **{alias.lower(): key for alias, key in LINK_TYPE_ALIASES.items()},
}


def normalize_link_type(value: str | None) -> str | None:
    if not value:
        return None
    return _LOOKUP.get(value.strip().lower())


def get_link_field(link_type: str) -> str:
    return LINK_CATEGORIES[link_type]["field"]


_WEB_SCHEME = re.compile(r"^https?://", re.IGNORECASE)


# 由资料中保存的值构造可跳转的地址（已带协议的值原样返回）
def link_href(link_type: str, value: str | None) -> str | None:
    text = (value or "").strip()
    if not text:
        return None
    kind = LINK_CATEGORIES[link_type]["href"]
    lowered = text.lower()
    if kind == "tel":
        return text if lowered.startswith("tel:") else "tel:" + re.sub(r"\s+", "", text)
    if kind == "mailto":
        return text if lowered.startswith("mailto:") else "mailto:" + text
    if kind == "whatsapp":
        if _WEB_SCHEME.match(text) or lowered.startswith("whatsapp:"):
            return text
        digits = re.sub(r"\D", "", text)
        return f"https://wa.me/{digits}" if digits else "http://" + text
    if kind == "upi":
        if lowered.startswith("upi:") or _WEB_SCHEME.match(text):
            return text
        return "upi://pay?pa=" + text
    if _WEB_SCHEME.match(text):
        return text
    return "http://" + text.lstrip("/")


def list_link_types()-> Tuple[dict[str, str], ...]:
    return tuple({"key": key, **meta} for key, meta in LINK_CATEGORIES.items())
