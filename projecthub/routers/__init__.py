"""API routers package.

This package contains all FastAPI routers for the application.
Each router handles a specific domain of the API.
"""

from .archives import router as archives_router
from .comments import router as comments_router
from .issues import router as issues_router
from .notifications import router as notifications_router

__all__ = [
    "archives_router",
    "comments_router",
    "issues_router",
    "notifications_router",
]
