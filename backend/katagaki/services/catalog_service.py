"""
Catalog service: titles, categories and the admin dashboard totals.

Titles are created and edited by administrators only. `purchased_count` is
never written here; it belongs to the entitlement pipeline. Admin edits use
the same `version` column as purchases, so an edit racing a payment fails
with 409 instead of silently overwriting the new count or status.
"""

from datetime import datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from katagaki.core.errors import ConflictError, NotFoundError
from katagaki.core.logging import get_logger
from katagaki.core.security import Caller
from katagaki.db.base import as_utc
from katagaki.models import Category, Proposal, ProposalStatus, Right, Title, TitleStatus, User
from katagaki.schemas.category import CategoryCreate, CategoryUpdate
from katagaki.schemas.stats import AdminStats
from katagaki.schemas.title import TitleCreate, TitleHolder, TitleUpdate
from katagaki.services import entity_store
from katagaki.services.entity_store import translate_store_errors
from katagaki.services.official_number import allocate_official_number

logger = get_logger(__name__)

_NULLABLE_TITLE_FIELDS = {"category_id"}


async def create_title(db: AsyncSession, data: TitleCreate, admin: Caller) -> Title:
    """Create a title with the next official number and zero purchases."""
    if data.category_id:
        await entity_store.categories(db).require(data.category_id)

    if data.proposal_id:
        proposal = await entity_store.proposals(db).require(data.proposal_id)
        if proposal.status != ProposalStatus.APPROVED.value:
            raise ConflictError(
                "Titles can only be created from approved proposals",
                details={"proposal_id": proposal.proposal_id, "status": proposal.status},
            )

    # First write of the transaction: the number commits or rolls back with the title
    official_number = await allocate_official_number(db)

    values = data.model_dump(exclude={"proposal_id"})
    values["price_tier"] = data.price_tier.value
    title = await entity_store.titles(db).create(
        **values,
        official_number=official_number,
        purchased_count=0,
    )

    logger.info(
        "title_created",
        title_id=title.title_id,
        official_number=official_number,
        limit=title.purchasable_limit,
        status=title.status,
        proposal_id=data.proposal_id,
        created_by=admin.user_id,
    )
    return title


async def get_title(db: AsyncSession, title_id: str) -> Title:
    return await entity_store.titles(db).require(title_id)


async def list_titles(db: AsyncSession, include_drafts: bool = False) -> list[Title]:
    """Titles newest first. Drafts are visible to administrators only."""
    titles = await entity_store.titles(db).list_all()
    if include_drafts:
        return titles
    return [t for t in titles if t.status != TitleStatus.DRAFT.value]


async def update_title(db: AsyncSession, title_id: str, data: TitleUpdate, admin: Caller) -> Title:
    """
    Partial update guarded by the title's version.

    Keeps the inventory invariants:
      - purchasable_limit can't drop below purchased_count
      - a title at its limit stays sold_out
    """
    changes = {
        field: value
        for field, value in data.model_dump(exclude_unset=True).items()
        if value is not None or field in _NULLABLE_TITLE_FIELDS
    }
    for field in ("price_tier", "status"):
        if field in changes:
            changes[field] = changes[field].value

    if changes.get("category_id"):
        await entity_store.categories(db).require(changes["category_id"])

    title = await entity_store.titles(db).require(title_id)
    limit = changes.get("purchasable_limit", title.purchasable_limit)
    if limit < title.purchased_count:
        raise ConflictError(
            "Purchasable limit cannot be lower than the number already sold",
            details={"purchased_count": title.purchased_count},
        )

    if title.purchased_count >= limit:
        requested = changes.get("status", TitleStatus.SOLD_OUT.value)
        if requested != TitleStatus.SOLD_OUT.value:
            raise ConflictError(
                "A title at its purchasable limit must stay sold_out",
                details={"purchased_count": title.purchased_count, "purchasable_limit": limit},
            )
        changes["status"] = TitleStatus.SOLD_OUT.value

    if not changes:
        return title

    with translate_store_errors("Title.update"):
        result = await db.execute(
            update(Title)
            .where(Title.title_id == title_id, Title.version == title.version)
            .values(**changes, version=Title.version + 1, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await db.rollback()
            raise ConflictError("Title was modified concurrently; reload and retry")
        await db.commit()
        await db.refresh(title)

    logger.info("title_updated", title_id=title_id, fields=sorted(changes), updated_by=admin.user_id)
    return title


async def delete_title(db: AsyncSession, title_id: str, admin: Caller) -> None:
    """
    Delete a title. Rights referencing it are kept (they are paid
    entitlements) and its official number is never reissued.
    """
    await entity_store.titles(db).require(title_id)
    await entity_store.titles(db).delete(title_id)
    logger.info("title_deleted", title_id=title_id, deleted_by=admin.user_id)


async def list_title_holders(db: AsyncSession, title_id: str) -> list[TitleHolder]:
    """Users with a current right on the title who opted into a public profile."""
    await entity_store.titles(db).require(title_id)
    now = datetime.now(timezone.utc)

    with translate_store_errors("Title.holders"):
        result = await db.execute(
            select(Right, User)
            .join(User, User.user_id == Right.user_id)
            .where(
                Right.title_id == title_id,
                Right.is_active.is_(True),
                User.is_profile_public.is_(True),
            )
            .order_by(Right.start_date.asc())
        )

    holders: list[TitleHolder] = []
    seen: set[str] = set()
    for right, user in result.all():
        if as_utc(right.end_date) < now or user.user_id in seen:
            continue
        seen.add(user.user_id)
        holders.append(
            TitleHolder(
                user_id=user.user_id,
                display_name=user.display_name,
                public_profile_text=user.public_profile_text,
            )
        )
    return holders


# ===== Categories =====

async def list_categories(db: AsyncSession) -> list[Category]:
    return await entity_store.categories(db).list_all()


async def create_category(db: AsyncSession, data: CategoryCreate) -> Category:
    category = await entity_store.categories(db).create(**data.model_dump())
    logger.info("category_created", category_id=category.category_id, name=category.name_ja)
    return category


async def update_category(db: AsyncSession, category_id: str, data: CategoryUpdate) -> Category:
    changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
    return await entity_store.categories(db).update(category_id, **changes)


async def delete_category(db: AsyncSession, category_id: str) -> None:
    """Titles still pointing at the category keep the dangling id."""
    store = entity_store.categories(db)
    if await store.get(category_id) is None:
        raise NotFoundError("Category", category_id)
    await store.delete(category_id)


# ===== Dashboard =====

async def dashboard_stats(db: AsyncSession) -> AdminStats:
    """Catalog, proposal and user totals plus revenue, in one round trip."""
    statement = select(
        select(func.count(Title.title_id)).scalar_subquery().label("total_titles"),
        select(func.count(Title.title_id))
        .where(Title.status == TitleStatus.AVAILABLE.value)
        .scalar_subquery()
        .label("available_titles"),
        select(func.count(Proposal.proposal_id)).scalar_subquery().label("total_proposals"),
        select(func.count(Proposal.proposal_id))
        .where(Proposal.status == ProposalStatus.PENDING.value)
        .scalar_subquery()
        .label("pending_proposals"),
        select(func.count(User.user_id)).scalar_subquery().label("total_users"),
        select(func.coalesce(func.sum(Title.purchased_count * Title.base_price), 0))
        .scalar_subquery()
        .label("total_revenue"),
    )
    with translate_store_errors("stats.dashboard"):
        row = (await db.execute(statement)).one()
    return AdminStats(**row._mapping)
