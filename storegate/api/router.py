from fastapi import APIRouter

from storegate.api import auth, security, site_settings

api_router = APIRouter()

# Storefront and admin login
api_router.include_router(auth.router, prefix="/auth", tags=["Auth"])

# Admin API routes
api_router.include_router(security.router, prefix="/admin", tags=["Admin Security"])
api_router.include_router(site_settings.router, prefix="/admin", tags=["Admin Settings"])

# Client-reported activity
api_router.include_router(security.activity_router, prefix="/security", tags=["Security"])
