"""
Site settings API - storefront password management
"""
from fastapi import APIRouter, HTTPException

from storegate.api.deps import CurrentAdmin, Security, SitePasswords
from storegate.schemas.site import SitePasswordStatusResponse, SitePasswordUpdateRequest
from storegate.services.site_password import SitePassword

router = APIRouter(prefix="/settings")


def _status(site: SitePassword, message=None) -> SitePasswordStatusResponse:
    return SitePasswordStatusResponse(
        message=message,
        enabled=site.enabled,
        passwordSet=site.password_set,
        updatedBy=site.updated_by,
        updatedAt=site.updated_at,
    )


@router.get("/site-password", response_model=SitePasswordStatusResponse)
async def get_site_password(site_passwords: SitePasswords, current_admin: CurrentAdmin):
    """Current storefront protection state. The hash is never returned."""
    return _status(await site_passwords.get())


@router.post("/site-password", response_model=SitePasswordStatusResponse)
async def update_site_password(
    data: SitePasswordUpdateRequest,
    site_passwords: SitePasswords,
    security: Security,
    current_admin: CurrentAdmin
):
    """Change the storefront password and/or turn protection on or off"""
    if data.password is None and data.enabled is None:
        raise HTTPException(status_code=400, detail="Nothing to update")

    current = await site_passwords.get()
    if data.enabled and data.password is None and not current.password_set:
        raise HTTPException(status_code=400, detail="Set a password before enabling protection")

    admin_name = current_admin.get("email") or current_admin.get("sub") or "admin"
    site = await site_passwords.update(admin_name, password=data.password, enabled=data.enabled)

    changes = []
    if data.password is not None:
        changes.append("password changed")
    if data.enabled is not None:
        changes.append(f"protection {'enabled' if data.enabled else 'disabled'}")
    await security.log_event(
        "site_password_updated",
        username=admin_name,
        details=", ".join(changes)
    )
    return _status(site, message="Site password settings updated")
