"""Category Service"""

from typing import Any, Union

import structlog

from billtracker.models.bill import DEFAULT_CATEGORIES, Category, CategoryDraft
from billtracker.services.storage.interface import Storage, UserScope

logger = structlog.get_logger(__name__)


class CategoryService:
    """User-owned bill categories."""

    def __init__(self, storage: Storage):
        self._storage = storage

    async def create_category(
        self,
        scope: UserScope,
        data: Union[CategoryDraft, dict[str, Any]],
    ) -> Category:
        draft = data if isinstance(data, CategoryDraft) else CategoryDraft.model_validate(data)
        return await self._storage.for_user(scope).create_category(draft)

    async def get_category(self, scope: UserScope, category_id: str) -> Category:
        return await self._storage.for_user(scope).get_category(category_id)

    async def list_categories(self, scope: UserScope) -> list[Category]:
        return await self._storage.for_user(scope).list_categories()

    async def delete_category(self, scope: UserScope, category_id: str) -> None:
        """Delete a category; its bills stay, without a category."""
        await self._storage.for_user(scope).delete_category(category_id)

    async def create_defaults(self, scope: UserScope) -> list[Category]:
        """
        Seed the starter categories for a new user.

        Stops at the first storage error and raises it.
        """
        tenant = self._storage.for_user(scope)
        created = []
        for draft in DEFAULT_CATEGORIES:
            created.append(await tenant.create_category(draft))
        logger.info("default_categories_created", user_id=scope.user_id, count=len(created))
        return created
