from campusconnect.web.routers.auth import router as auth_router
from campusconnect.web.routers.profile import router as profile_router
from campusconnect.web.routers.realtime import router as realtime_router

__all__ = [
    "auth_router",
    "profile_router",
    "realtime_router",
]
