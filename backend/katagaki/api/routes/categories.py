from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from katagaki.core.security import require_admin
from katagaki.db.session import get_db
from katagaki.schemas.category import CategoryCreate, CategoryResponse, CategoryUpdate
from katagaki.services import catalog_service

router = APIRouter(prefix="/categories", tags=["Categories"])
admin_router = APIRouter(
    prefix="/admin/categories",
    tags=["Admin: Categories"],
    dependencies=[Depends(require_admin)],
)


@router.get("/", response_model=list[CategoryResponse])
async def list_categories_endpoint(db: AsyncSession = Depends(get_db)):
    """Categories in display order."""
    return await catalog_service.list_categories(db)


@admin_router.post("/", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category_endpoint(data: CategoryCreate, db: AsyncSession = Depends(get_db)):
    return await catalog_service.create_category(db, data)


@admin_router.patch("/{category_id}", response_model=CategoryResponse)
async def update_category_endpoint(
    category_id: str, data: CategoryUpdate, db: AsyncSession = Depends(get_db)
):
    return await catalog_service.update_category(db, category_id, data)


@admin_router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category_endpoint(category_id: str, db: AsyncSession = Depends(get_db)):
    await catalog_service.delete_category(db, category_id)
