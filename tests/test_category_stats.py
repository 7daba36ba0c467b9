"""
SubtreeStatsCalculator - 하위 트리 상품 집계
"""
import uuid

import pytest

from category_hierarchy.core.exceptions import ErrorReason, NotFoundError, ValidationError
from category_hierarchy.models import CategoryStatus, ItemStatus
from category_hierarchy.schemas.category import CategoryUpdate

from tests.conftest import ACTOR, OTHER_TENANT, TENANT


@pytest.fixture
def stocked_tree(make_category, make_item):
    """
    A (items: 1 active, 1 inactive)
    └ B (items: 1 active)
      └ C (items: 2 active, 1 inactive)
    X (items: 1 active)
    """
    a = make_category("A")
    b = make_category("B", a)
    c = make_category("C", b)
    x = make_category("X")
    make_item(a)
    make_item(a, status=ItemStatus.INACTIVE)
    make_item(b)
    make_item(c)
    make_item(c)
    make_item(c, status=ItemStatus.INACTIVE)
    make_item(x)
    make_item(None)
    return a, b, c, x


class TestDescendantIds:
    def test_all_levels(self, stats, stocked_tree):
        a, b, c, x = stocked_tree
        assert set(stats.get_all_descendant_ids(a.id, TENANT)) == {b.id, c.id}
        assert stats.get_all_descendant_ids(c.id, TENANT) == []

    def test_inactive_descendants_are_included(self, service, stats, stocked_tree):
        a, b, c, x = stocked_tree
        service.update_category(b.id, TENANT, CategoryUpdate(status=CategoryStatus.INACTIVE), ACTOR)
        assert set(stats.get_all_descendant_ids(a.id, TENANT)) == {b.id, c.id}

    def test_other_tenant_sees_nothing(self, stats, stocked_tree):
        assert stats.get_all_descendant_ids(stocked_tree[0].id, OTHER_TENANT) == []


class TestGetStats:
    def test_counts(self, stats, stocked_tree):
        a, b, c, x = stocked_tree
        result = stats.get_stats(a.id, TENANT)

        assert result.category_id == a.id
        assert result.item_count == 2
        assert result.total_item_count == 6
        assert result.active_item_count == 4

    def test_total_is_own_plus_descendants(self, stats, stocked_tree):
        a, b, c, x = stocked_tree
        for category in (a, b, c, x):
            own = stats.get_stats(category.id, TENANT).item_count
            descendants = sum(
                stats.get_stats(descendant_id, TENANT).item_count
                for descendant_id in stats.get_all_descendant_ids(category.id, TENANT)
            )
            assert stats.get_stats(category.id, TENANT).total_item_count == own + descendants

    def test_uppercase_id(self, stats, stocked_tree):
        a = stocked_tree[0]
        result = stats.get_stats(a.id.upper(), TENANT)

        assert result.category_id == a.id
        assert result.total_item_count == 6
        assert stats.get_active_item_count(a.id.upper(), TENANT) == 1

    def test_leaf(self, stats, stocked_tree):
        c = stocked_tree[2]
        result = stats.get_stats(c.id, TENANT)
        assert (result.item_count, result.total_item_count, result.active_item_count) == (3, 3, 2)

    def test_not_found(self, stats):
        with pytest.raises(NotFoundError) as exc_info:
            stats.get_stats(str(uuid.uuid4()), TENANT)
        assert exc_info.value.reason == ErrorReason.CATEGORY_NOT_FOUND

    def test_malformed_id(self, stats):
        with pytest.raises(ValidationError):
            stats.get_stats("nope", TENANT)


class TestActiveItemCount:
    def test_direct_items_only(self, stats, stocked_tree):
        a, b, c, x = stocked_tree
        assert stats.get_active_item_count(a.id, TENANT) == 1
        assert stats.get_active_item_count(c.id, TENANT) == 2

    def test_empty_category(self, stats, make_category):
        empty = make_category("EMPTY")
        assert stats.get_active_item_count(empty.id, TENANT) == 0
