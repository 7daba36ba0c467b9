import logging
from typing import Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from category_hierarchy.models.item import Item, ItemStatus

logger = logging.getLogger(__name__)


class ItemService:
    """items 테이블에 대해 카테고리 엔진이 필요로 하는 최소 연산"""

    def __init__(self, session: Session):
        self.session = session

    def clear_category_references(self, category_id: str, tenant_id: str) -> int:
        """category_id 를 직접 참조하는 상품들의 category_id 를 NULL 로 (하위 카테고리 상품은 유지)"""
        stmt = (
            update(Item)
            .where(Item.category_id == category_id, Item.tenant_id == tenant_id)
            .values(category_id=None)
            .execution_options(synchronize_session="fetch")
        )
        result = self.session.execute(stmt)
        logger.info("Cleared item category references.",
                    extra={"category_id": category_id, "tenant_id": tenant_id, "items_updated": result.rowcount})
        return result.rowcount

    def count_items(self, tenant_id: str, category_ids: Sequence[str], status: Optional[ItemStatus] = None) -> int:
        if not category_ids:
            return 0
        query = select(func.count(Item.id)).where(
            Item.tenant_id == tenant_id,
            Item.category_id.in_(list(category_ids))
        )
        if status is not None:
            query = query.where(Item.status == status)
        return self.session.execute(query).scalar_one()
