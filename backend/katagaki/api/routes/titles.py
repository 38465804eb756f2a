"""
Title endpoints. Public reads are cached in Redis; admin writes invalidate.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from katagaki.core.logging import get_logger
from katagaki.core.security import Caller, require_admin
from katagaki.db.session import get_db
from katagaki.schemas.title import TitleCreate, TitleHolder, TitleListResponse, TitleResponse, TitleUpdate
from katagaki.services import catalog_service
from katagaki.services.cache_service import get_cached_titles, invalidate_title_cache, set_cached_titles

logger = get_logger(__name__)
router = APIRouter(prefix="/titles", tags=["Titles"])
admin_router = APIRouter(prefix="/admin/titles", tags=["Admin: Titles"])


@router.get("/", response_model=TitleListResponse)
async def list_titles_endpoint(db: AsyncSession = Depends(get_db)):
    """
    Published titles (available and sold out), newest first.
    Cached in Redis for 5 minutes; invalidated on title edits and purchases.
    """
    cached = await get_cached_titles(include_drafts=False)
    if cached:
        logger.info("titles_list_cache_hit")
        cached["cached"] = True
        return TitleListResponse(**cached)

    titles = await catalog_service.list_titles(db, include_drafts=False)
    response_data = {
        "titles": [TitleResponse.model_validate(t).model_dump(mode="json") for t in titles],
        "total": len(titles),
        "cached": False,
    }
    await set_cached_titles(False, response_data)
    return TitleListResponse(**response_data)


@router.get("/{title_id}", response_model=TitleResponse)
async def get_title_endpoint(title_id: str, db: AsyncSession = Depends(get_db)):
    """Single title. Not cached (needs live counters)."""
    return await catalog_service.get_title(db, title_id)


@router.get("/{title_id}/holders", response_model=list[TitleHolder])
async def list_title_holders_endpoint(title_id: str, db: AsyncSession = Depends(get_db)):
    """Current holders who made their profile public."""
    return await catalog_service.list_title_holders(db, title_id)


@admin_router.get("/", response_model=list[TitleResponse])
async def admin_list_titles(
    admin: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await catalog_service.list_titles(db, include_drafts=True)


@admin_router.post("/", response_model=TitleResponse, status_code=status.HTTP_201_CREATED)
async def create_title_endpoint(
    title_data: TitleCreate,
    admin: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Create a title; its official number is allocated here."""
    title = await catalog_service.create_title(db, title_data, admin)
    await invalidate_title_cache()
    return title


@admin_router.patch("/{title_id}", response_model=TitleResponse)
async def update_title_endpoint(
    title_id: str,
    title_data: TitleUpdate,
    admin: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    title = await catalog_service.update_title(db, title_id, title_data, admin)
    await invalidate_title_cache()
    return title


@admin_router.delete("/{title_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_title_endpoint(
    title_id: str,
    admin: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await catalog_service.delete_title(db, title_id, admin)
    await invalidate_title_cache()
