"""
Menu & category endpoints

Reading the menu is public (guests browse it from the table QR code);
every change is owner-only.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError
from app.core.responses import ok
from app.core.security import owner_only
from app.database import get_db
from app.models import Category, MenuItem, User
from app.schemas import (
    CategoryCreate,
    CategoryResponse,
    CategoryUpdate,
    MenuFilters,
    MenuItemCreate,
    MenuItemResponse,
    MenuItemUpdate,
    SubcategoryCreate,
)
from app.services import catalog

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/menu", tags=["Menu"])


def _as_price(value: Optional[str]) -> Optional[float]:
    """Query price bound; non-numeric values are ignored."""
    if value is None or value == "":
        return None
    try:
        return float(value)
    except ValueError:
        return None


# =============================================================================
# CATEGORIES
# =============================================================================

@router.get("/categories")
async def list_categories(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Category).order_by(Category.name))
    return ok([CategoryResponse.model_validate(c) for c in result.scalars().all()])


@router.post("/categories", status_code=status.HTTP_201_CREATED)
async def create_category(
    data: CategoryCreate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(owner_only),
):
    category = await catalog.create_category(db, data.name, data.subcategories, data.icon)
    return ok(CategoryResponse.model_validate(category))


@router.put("/categories/{category_id}")
async def update_category(
    category_id: int,
    data: CategoryUpdate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(owner_only),
):
    category = await catalog.update_category(
        db,
        category_id,
        name=data.name,
        subcategories=data.subcategories,
        icon=data.icon,
    )
    return ok(CategoryResponse.model_validate(category))


@router.delete("/categories/{category_id}")
async def delete_category(
    category_id: int,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(owner_only),
):
    deleted_items = await catalog.delete_category(db, category_id)
    return ok({"deleted": True, "deletedMenuItems": deleted_items})


@router.post("/categories/{category_id}/subcategories", status_code=status.HTTP_201_CREATED)
async def add_subcategory(
    category_id: int,
    data: SubcategoryCreate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(owner_only),
):
    category = await catalog.add_subcategory(db, category_id, data.subcategory)
    return ok(CategoryResponse.model_validate(category))


@router.delete("/categories/{category_id}/subcategories/{subcategory}")
async def remove_subcategory(
    category_id: int,
    subcategory: str,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(owner_only),
):
    category = await catalog.remove_subcategory(db, category_id, subcategory)
    return ok(CategoryResponse.model_validate(category))


# =============================================================================
# MENU ITEMS
# =============================================================================

@router.get("")
async def list_menu(
    category: Optional[str] = Query(None),
    subcategory: Optional[str] = Query(None),
    min_price: Optional[str] = Query(None, alias="minPrice"),
    max_price: Optional[str] = Query(None, alias="maxPrice"),
    q: Optional[str] = Query(None, max_length=100),
    db: AsyncSession = Depends(get_db),
):
    """Public menu with optional filters, newest first."""
    query = select(MenuItem).order_by(MenuItem.created_at.desc(), MenuItem.id.desc())

    if category:
        query = query.where(MenuItem.category == category)
    if subcategory:
        query = query.where(MenuItem.subcategory == subcategory)

    low, high = _as_price(min_price), _as_price(max_price)
    if low is not None:
        query = query.where(MenuItem.price >= low)
    if high is not None:
        query = query.where(MenuItem.price <= high)

    if q and q.strip():
        pattern = f"%{q.strip()}%"
        query = query.where(or_(MenuItem.name.ilike(pattern), MenuItem.description.ilike(pattern)))

    result = await db.execute(query)
    items = [MenuItemResponse.model_validate(m) for m in result.scalars().all()]
    return ok({"items": items})


@router.get("/filters")
async def menu_filters(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Category).order_by(Category.name))
    categories = list(result.scalars().all())
    filters = MenuFilters(
        categories=[c.name for c in categories],
        subcategories={c.name: list(c.subcategories) for c in categories if c.subcategories},
    )
    return ok(filters)


@router.get("/{item_id}")
async def get_menu_item(item_id: int, db: AsyncSession = Depends(get_db)):
    item = await db.get(MenuItem, item_id)
    if item is None:
        raise NotFoundError("Menu item not found")
    return ok(MenuItemResponse.model_validate(item))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_menu_item(
    data: MenuItemCreate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(owner_only),
):
    await catalog.validate_menu_fields(db, data.category, data.subcategory, data.image_url)

    item = MenuItem(**data.model_dump())
    db.add(item)
    await db.commit()
    await db.refresh(item)

    logger.info(f"Menu item #{item.id} '{item.name}' created in {item.category}")
    return ok(MenuItemResponse.model_validate(item))


@router.put("/{item_id}")
async def update_menu_item(
    item_id: int,
    data: MenuItemUpdate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(owner_only),
):
    item = await db.get(MenuItem, item_id)
    if item is None:
        raise NotFoundError("Menu item not found")

    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    if {"category", "subcategory", "image_url"} & changes.keys():
        await catalog.validate_menu_fields(
            db,
            changes.get("category", item.category),
            changes.get("subcategory", item.subcategory),
            changes.get("image_url"),
        )

    for field, value in changes.items():
        setattr(item, field, value)

    await db.commit()
    await db.refresh(item)

    logger.info(f"Menu item #{item.id} updated: {sorted(changes)}")
    return ok(MenuItemResponse.model_validate(item))


@router.delete("/{item_id}")
async def delete_menu_item(
    item_id: int,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(owner_only),
):
    item = await db.get(MenuItem, item_id)
    if item is None:
        raise NotFoundError("Menu item not found")

    await db.delete(item)
    await db.commit()

    logger.info(f"Menu item #{item_id} deleted")
    return ok({"deleted": True})
