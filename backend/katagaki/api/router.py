"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from katagaki.api.routes import admin, categories, checkout, proposals, rights, titles, users, webhooks

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(checkout.router)
api_router.include_router(webhooks.router)
api_router.include_router(titles.router)
api_router.include_router(categories.router)
api_router.include_router(proposals.router)
api_router.include_router(rights.router)
api_router.include_router(users.router)

api_router.include_router(titles.admin_router)
api_router.include_router(categories.admin_router)
api_router.include_router(proposals.admin_router)
api_router.include_router(rights.admin_router)
api_router.include_router(users.admin_router)
api_router.include_router(admin.router)
