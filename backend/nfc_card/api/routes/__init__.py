from nfc_card.api.routes.admin import router as admin_router
from nfc_card.api.routes.public import router as public_router
from nfc_card.api.routes.signup import router as signup_router
from nfc_card.api.routes.user import router as user_router

# 对外导出路由
__all__ = ["admin_router", "public_router", "signup_router", "user_router"]
