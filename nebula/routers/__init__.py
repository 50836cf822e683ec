from nebula.routers.auth import router as auth_router
from nebula.routers.tickets import router as tickets_router
from nebula.routers.qr import router as qr_router
from nebula.routers.admin import router as admin_router

__all__ = [
    "auth_router",
    "tickets_router",
    "qr_router",
    "admin_router"
]
