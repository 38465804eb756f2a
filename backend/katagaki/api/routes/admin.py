from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from katagaki.core.security import require_admin
from katagaki.db.session import get_db
from katagaki.schemas.stats import AdminStats
from katagaki.services import catalog_service

router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(require_admin)])


@router.get("/stats", response_model=AdminStats)
async def dashboard_stats_endpoint(db: AsyncSession = Depends(get_db)):
    """Dashboard totals. Not cached: revenue moves with every purchase."""
    return await catalog_service.dashboard_stats(db)
