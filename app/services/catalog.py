"""
Menu catalog rules

Categories are referenced by name from menu items, so renames and
deletions cascade here rather than through foreign keys.
"""

import logging
from typing import Optional

from fastapi import status
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import APIError, NotFoundError
from app.models import Category, MenuItem

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = [
    {"name": "makanan", "subcategories": [], "icon": "🍛"},
    {"name": "minuman", "subcategories": ["bersoda", "biasa", "kafein"], "icon": "🥤"},
    {"name": "dessert", "subcategories": [], "icon": "🍰"},
    {"name": "starter/snack", "subcategories": [], "icon": "🍟"},
    {"name": "paket", "subcategories": [], "icon": "🍱"},
]


def _clean_subcategories(values: list[str]) -> list[str]:
    cleaned: list[str] = []
    for value in values:
        value = value.strip()
        if value and value not in cleaned:
            cleaned.append(value)
    return cleaned


async def seed_default_categories(db: AsyncSession) -> int:
    """Insert the default categories that are missing. Returns how many were added."""
    result = await db.execute(select(Category.name))
    existing = set(result.scalars().all())

    added = 0
    for default in DEFAULT_CATEGORIES:
        if default["name"] in existing:
            continue
        db.add(Category(
            name=default["name"],
            subcategories=list(default["subcategories"]),
            icon=default["icon"],
        ))
        added += 1

    if added:
        await db.commit()
        logger.info(f"Seeded {added} default categories")
    return added


async def get_category(db: AsyncSession, category_id: int) -> Category:
    category = await db.get(Category, category_id)
    if category is None:
        raise NotFoundError("Category not found")
    return category


async def get_category_by_name(db: AsyncSession, name: str) -> Optional[Category]:
    result = await db.execute(select(Category).where(Category.name == name))
    return result.scalar_one_or_none()


async def _ensure_unique_name(db: AsyncSession, name: str, exclude_id: Optional[int] = None) -> None:
    query = select(func.count(Category.id)).where(Category.name == name)
    if exclude_id is not None:
        query = query.where(Category.id != exclude_id)
    if (await db.execute(query)).scalar():
        raise APIError("Category already exists", status.HTTP_400_BAD_REQUEST, "duplicate_category")


async def create_category(
    db: AsyncSession,
    name: str,
    subcategories: list[str],
    icon: Optional[str] = None,
) -> Category:
    await _ensure_unique_name(db, name)

    category = Category(name=name, subcategories=_clean_subcategories(subcategories))
    if icon:
        category.icon = icon
    db.add(category)
    await db.commit()
    await db.refresh(category)

    logger.info(f"Category '{name}' created")
    return category


async def update_category(
    db: AsyncSession,
    category_id: int,
    name: Optional[str] = None,
    subcategories: Optional[list[str]] = None,
    icon: Optional[str] = None,
) -> Category:
    """Update a category; a rename moves its menu items along."""
    category = await get_category(db, category_id)
    old_name = category.name

    if name is not None:
        name = name.strip()
        if not name:
            raise APIError("Category name is required")
        if name != old_name:
            await _ensure_unique_name(db, name, exclude_id=category.id)
            category.name = name
            await db.execute(
                update(MenuItem).where(MenuItem.category == old_name).values(category=name)
            )
            logger.info(f"Category '{old_name}' renamed to '{name}'")

    if subcategories is not None:
        category.subcategories = _clean_subcategories(subcategories)

    if icon:
        category.icon = icon

    await db.commit()
    await db.refresh(category)
    return category


async def delete_category(db: AsyncSession, category_id: int) -> int:
    """Delete a category and every menu item in it. Returns deleted item count."""
    category = await get_category(db, category_id)

    result = await db.execute(delete(MenuItem).where(MenuItem.category == category.name))
    await db.delete(category)
    await db.commit()

    logger.info(f"Category '{category.name}' deleted with {result.rowcount} menu items")
    return result.rowcount


async def add_subcategory(db: AsyncSession, category_id: int, subcategory: str) -> Category:
    category = await get_category(db, category_id)

    if subcategory in (category.subcategories or []):
        raise APIError("Subcategory already exists", status.HTTP_400_BAD_REQUEST, "duplicate_subcategory")

    # Reassign so the JSON column is flagged dirty
    category.subcategories = [*(category.subcategories or []), subcategory]
    await db.commit()
    await db.refresh(category)
    return category


async def remove_subcategory(db: AsyncSession, category_id: int, subcategory: str) -> Category:
    """Drop a subcategory along with the menu items filed under it."""
    category = await get_category(db, category_id)

    if subcategory not in (category.subcategories or []):
        raise NotFoundError("Subcategory not found")

    category.subcategories = [s for s in category.subcategories if s != subcategory]
    result = await db.execute(
        delete(MenuItem).where(
            MenuItem.category == category.name,
            MenuItem.subcategory == subcategory,
        )
    )
    await db.commit()
    await db.refresh(category)

    logger.info(
        f"Subcategory '{subcategory}' removed from '{category.name}' "
        f"with {result.rowcount} menu items"
    )
    return category


async def validate_menu_fields(
    db: AsyncSession,
    category: str,
    subcategory: Optional[str],
    image_url: Optional[str],
) -> None:
    """Category must exist, subcategory must belong to it, images must be http(s)."""
    found = await get_category_by_name(db, category)
    if found is None:
        raise APIError("Invalid category", status.HTTP_400_BAD_REQUEST, "invalid_category")

    if subcategory and subcategory not in (found.subcategories or []):
        raise APIError(
            f"Invalid subcategory for category '{category}'",
            status.HTTP_400_BAD_REQUEST,
            "invalid_subcategory",
        )

    if image_url and not image_url.startswith(("http://", "https://")):
        raise APIError(
            "Image URL must start with http:// or https://",
            status.HTTP_400_BAD_REQUEST,
            "invalid_image_url",
        )
