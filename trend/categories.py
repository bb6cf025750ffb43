import asyncio
import logging
from typing import List, Optional

from trend.api import APIError, AuthenticationRequired, TrendAPIClient
from trend.domain import Category, Subcategory
from trend.functional import safe_category
from trend.transforms import category_from_dict

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 30

FALLBACK_CATEGORIES = (
    Category(id="food", name="Food", icon="restaurant-outline", color="#FF6B6B"),
    Category(id="transport", name="Transport", icon="car-outline", color="#4ECDC4"),
    Category(id="shopping", name="Shopping", icon="bag-outline", color="#45B7D1"),
    Category(id="other", name="Other", icon="document-text-outline", color="#A8A8A8"),
)


class CategoryService:
    """Categories from the backend, with local fallbacks when it is down.

    Calls to the HTTP client run in a worker thread so the event loop is
    never blocked.
    """

    def __init__(self, api: TrendAPIClient):
        self.api = api

    async def get_categories(self) -> List[Category]:
        try:
            raw = await asyncio.to_thread(self.api.get_categories)
        except AuthenticationRequired:
            logger.info("Not authenticated, returning no categories")
            return []
        except Exception:
            logger.exception("Error loading categories, using fallback categories")
            return list(FALLBACK_CATEGORIES)

        categories = []
        for item in raw or []:
            try:
                categories.append(category_from_dict(item))
            except (KeyError, TypeError) as e:
                logger.warning("Skipping malformed category %r: %s", item, e)
        logger.debug("Loaded %d categories", len(categories))
        return categories

    async def add_category(self, data: dict) -> dict:
        check = validate_category(data)
        if not check["is_valid"]:
            return {"success": False, "error": "; ".join(check["errors"])}
        payload = {
            "name": data["name"].strip(),
            "icon": data.get("icon"),
            "color": data.get("color"),
            "description": data.get("description") or "",
            "hasSubcategories": bool(data.get("hasSubcategories")),
            "subcategories": data.get("subcategories") or [],
        }
        try:
            created = await asyncio.to_thread(self.api.create_category, payload)
            return {"success": True, "category": category_from_dict(created)}
        except Exception as e:
            logger.exception("Error creating category")
            return {"success": False, "error": str(e)}

    async def update_category(self, category_id: str, updates: dict) -> dict:
        try:
            updated = await asyncio.to_thread(self.api.update_category, category_id, updates)
            return {"success": True, "category": category_from_dict(updated)}
        except Exception as e:
            logger.exception("Error updating category %s", category_id)
            return {"success": False, "error": str(e)}

    async def delete_category(self, category_id: str) -> dict:
        try:
            await asyncio.to_thread(self.api.delete_category, category_id)
            return {"success": True}
        except APIError as e:
            logger.error("Error deleting category %s: %s", category_id, e)
            if "cannot be deleted" in str(e):
                return {
                    "success": False,
                    "error": "This category cannot be deleted because it has associated transactions",
                }
            return {"success": False, "error": str(e)}
        except Exception as e:
            logger.exception("Error deleting category %s", category_id)
            return {"success": False, "error": str(e)}

    async def get_category_by_id(self, category_id: str) -> Optional[Category]:
        categories = await self.get_categories()
        return next((c for c in categories if c.id == category_id), None)

    async def get_category(self, key: str) -> Optional[Category]:
        """By id, falling back to a case-insensitive name match."""
        return safe_category(await self.get_categories(), key).get_or_else(None)

    async def get_subcategory_by_id(self, category_id: str, subcategory_id: str) -> Optional[Subcategory]:
        category = await self.get_category_by_id(category_id)
        if category is None:
            return None
        return next((s for s in category.subcategories if s.id == subcategory_id), None)

    async def get_category_info(self, category_id: str, subcategory_id: Optional[str] = None) -> Optional[dict]:
        category = await self.get_category_by_id(category_id)
        if category is None:
            return None
        subcategory = None
        if subcategory_id:
            subcategory = next((s for s in category.subcategories if s.id == subcategory_id), None)
        return {"category": category, "subcategory": subcategory}


def _validate_name(data: dict, label: str) -> List[str]:
    errors = []
    name = (data.get("name") or "").strip()
    if not name:
        errors.append(f"{label} name is required")
    elif len(name) > MAX_NAME_LENGTH:
        errors.append(f"{label} name must be {MAX_NAME_LENGTH} characters or less")
    return errors


def validate_category(data: dict) -> dict:
    errors = _validate_name(data, "Category")
    if not data.get("icon"):
        errors.append("Category icon is required")
    if not data.get("color"):
        errors.append("Category color is required")
    return {"is_valid": not errors, "errors": errors}


def validate_subcategory(data: dict) -> dict:
    errors = _validate_name(data, "Subcategory")
    if not data.get("icon"):
        errors.append("Subcategory icon is required")
    return {"is_valid": not errors, "errors": errors}
