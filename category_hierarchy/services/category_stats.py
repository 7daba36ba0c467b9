import logging
from typing import List

from opentelemetry import trace
from sqlalchemy.orm import Session

from category_hierarchy.core.exceptions import ErrorReason, NotFoundError
from category_hierarchy.core.validation import validate_id
from category_hierarchy.models.item import ItemStatus
from category_hierarchy.schemas.category import CategoryStats
from category_hierarchy.services.category_store import CategoryTreeStore
from category_hierarchy.services.item_service import ItemService

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class SubtreeStatsCalculator:
    """카테고리 하위 트리 기준 상품 집계"""

    def __init__(self, session: Session, item_service: ItemService = None):
        self.session = session
        self.store = CategoryTreeStore(session)
        self.item_service = item_service or ItemService(session)

    def get_all_descendant_ids(self, category_id: str, tenant_id: str) -> List[str]:
        # 상태와 무관하게 모든 하위 카테고리 (자기 자신 제외)
        category_id = validate_id(category_id, "category_id")
        levels = self.store.descendant_levels(category_id, tenant_id)
        return [category.id for level in levels for category in level]

    def get_stats(self, category_id: str, tenant_id: str) -> CategoryStats:
        with tracer.start_as_current_span("SubtreeStatsCalculator.get_stats") as span:
            span.set_attribute("app.tenant_id", tenant_id)
            span.set_attribute("app.category_id", category_id)
            category_id = validate_id(category_id, "category_id")
            if self.store.get(category_id, tenant_id) is None:
                raise NotFoundError("category not found", reason=ErrorReason.CATEGORY_NOT_FOUND,
                                    details={"category_id": category_id})

            subtree_ids = [category_id] + self.get_all_descendant_ids(category_id, tenant_id)
            stats = CategoryStats(
                category_id=category_id,
                item_count=self.item_service.count_items(tenant_id, [category_id]),
                total_item_count=self.item_service.count_items(tenant_id, subtree_ids),
                active_item_count=self.item_service.count_items(tenant_id, subtree_ids, status=ItemStatus.ACTIVE),
            )
            span.set_attribute("app.stats.subtree_size", len(subtree_ids))
            logger.debug("Category stats calculated.", extra={
                "category_id": category_id, "tenant_id": tenant_id, **stats.model_dump(exclude={"category_id"})
            })
            return stats

    def get_active_item_count(self, category_id: str, tenant_id: str) -> int:
        """하위 카테고리 제외, 이 카테고리에 직접 연결된 ACTIVE 상품 수"""
        category_id = validate_id(category_id, "category_id")
        return self.item_service.count_items(tenant_id, [category_id], status=ItemStatus.ACTIVE)
