from gatekeep.web.routers.accounts import router as accounts_router
from gatekeep.web.routers.auth import router as auth_router
from gatekeep.web.routers.files import router as files_router
from gatekeep.web.routers.profile import router as profile_router

__all__ = [
    "accounts_router",
    "auth_router",
    "files_router",
    "profile_router",
]
