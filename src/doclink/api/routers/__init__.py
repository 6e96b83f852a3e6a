"""doclink API routers.

- intake: token-gated customer endpoints (/api/intake)
- requests: tenant request management (/api/requests)
- documents: document catalog (/api/documents) and newsfeed (/api/newsfeed)
- admin: scheduler introspection and manual runs (/api/admin)
"""

from doclink.api.routers.admin import router as admin_router
from doclink.api.routers.documents import newsfeed_router
from doclink.api.routers.documents import router as documents_router
from doclink.api.routers.intake import router as intake_router
from doclink.api.routers.requests import router as requests_router

__all__ = [
    "admin_router",
    "documents_router",
    "intake_router",
    "newsfeed_router",
    "requests_router",
]
