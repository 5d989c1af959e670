"""Admin endpoints — push the on-disk form catalog into the database.

Protected by the ``ADMIN_API_KEY`` setting.  Every request must include an
``X-Admin-Key`` header whose value matches the configured key.  Returns
401 if missing, 403 if wrong.
"""

import hmac

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from registry_forms.catalog import FormCatalogStore, SyncResult, sync_catalog
from registry_forms.versioning import FormVersionResolver

from registry_server.dependencies import get_catalog, get_db, get_versions

router = APIRouter(prefix="/admin", tags=["admin"])


# ------------------------------------------------------------------
# Auth dependency
# ------------------------------------------------------------------

async def require_admin_key(
    request: Request,
    x_admin_key: str | None = Header(None, alias="X-Admin-Key"),
) -> str:
    """Validate the ``X-Admin-Key`` header against the configured admin key.

    Raises 403 if no key is configured or the key does not match, 401 if
    the header is missing.
    """
    expected = request.app.state.settings.admin_api_key
    if not expected:
        raise HTTPException(
            status_code=403,
            detail="Admin endpoints are disabled (ADMIN_API_KEY not configured)",
        )
    if not x_admin_key:
        raise HTTPException(status_code=401, detail="X-Admin-Key header is required")
    if not hmac.compare_digest(x_admin_key, expected):
        raise HTTPException(status_code=403, detail="Invalid admin key")
    return x_admin_key


# ------------------------------------------------------------------
# Response models
# ------------------------------------------------------------------

class SyncReport(BaseModel):
    """Response body for catalog sync."""
    total: int
    changed: int
    results: list[SyncResult]


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

@router.post("/forms/sync")
async def sync_forms(
    reload: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    catalog: FormCatalogStore = Depends(get_catalog),
    versions: FormVersionResolver = Depends(get_versions),
    _admin: str = Depends(require_admin_key),
) -> SyncReport:
    """Create or revise forms so the database matches the catalog.

    Args:
        reload: re-read the catalog directory before syncing
    """
    if reload:
        catalog.load()
    results = await sync_catalog(db, catalog, resolver=versions)
    changed = sum(r.action in ("created", "revised") for r in results)
    return SyncReport(total=len(results), changed=changed, results=results)
