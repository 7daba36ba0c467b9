"""
Hierarchy validation for the category tree.

Path/depth calculation, circular reference detection and depth-limit checks.
Nothing in here raises for an expected invalid state: callers get a
``DepthValidationResult`` or a bool and decide how to fail.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from category_hierarchy.core.exceptions import ErrorReason
from category_hierarchy.models.category import MAX_CATEGORY_DEPTH, ROOT_PATH, Category
from category_hierarchy.services.category_store import CategoryTreeStore

logger = logging.getLogger(__name__)

MAX_DEPTH_ERROR = f"maximum category depth exceeded (max {MAX_CATEGORY_DEPTH} levels)"
PARENT_NOT_FOUND_ERROR = "parent not found"


@dataclass(frozen=True)
class PathResult:
    path: str
    depth: int


ROOT_PATH_RESULT = PathResult(path=ROOT_PATH, depth=0)


@dataclass
class DepthValidationResult:
    valid: bool
    depth: int
    error: Optional[str] = None
    reason: Optional[ErrorReason] = None


def child_path(parent_path: str, parent_code: str) -> str:
    """부모 path + 부모 code (root의 "/"는 중복하지 않음)"""
    if parent_path == ROOT_PATH:
        return f"{ROOT_PATH}{parent_code}"
    return f"{parent_path}/{parent_code}"


def path_for_parent(parent: Optional[Category]) -> PathResult:
    if parent is None:
        return ROOT_PATH_RESULT
    return PathResult(path=child_path(parent.path, parent.code), depth=parent.depth + 1)


class HierarchyValidator:
    def __init__(self, store: CategoryTreeStore):
        self.store = store

    def validate_max_depth(self, parent_id: Optional[str], tenant_id: str) -> DepthValidationResult:
        if parent_id is None:
            return DepthValidationResult(valid=True, depth=0)

        parent = self.store.get(parent_id, tenant_id)
        if parent is None:
            return DepthValidationResult(valid=False, depth=0, error=PARENT_NOT_FOUND_ERROR,
                                         reason=ErrorReason.PARENT_NOT_FOUND)

        new_depth = parent.depth + 1
        if new_depth >= MAX_CATEGORY_DEPTH:
            return DepthValidationResult(valid=False, depth=new_depth, error=MAX_DEPTH_ERROR,
                                         reason=ErrorReason.MAX_DEPTH_EXCEEDED)
        return DepthValidationResult(valid=True, depth=new_depth)

    def detect_circular_reference(self, category_id: str, new_parent_id: str, tenant_id: str) -> bool:
        """
        new_parent_id 가 category_id 자신이거나 그 하위라면 True.
        new_parent_id 의 조상 체인을 위로 따라가며 category_id 를 가리키는 parent_id 가 있는지 확인한다.
        """
        if category_id == new_parent_id:
            return True

        current_id = new_parent_id
        for _ in range(MAX_CATEGORY_DEPTH):
            node = self.store.get(current_id, tenant_id)
            if node is None:
                return False
            if node.parent_id == category_id:
                return True
            if node.parent_id is None:
                return False
            current_id = node.parent_id

        # 깊이 제한 안에 root에 도달하지 못함 -> 이미 손상된 데이터, 순환으로 간주
        logger.warning("Ancestor walk exceeded depth bound; treating as circular.",
                       extra={"category_id": category_id, "new_parent_id": new_parent_id, "tenant_id": tenant_id})
        return True

    def calculate_path(self, parent_id: Optional[str], tenant_id: str) -> PathResult:
        if parent_id is None:
            return ROOT_PATH_RESULT
        parent = self.store.get(parent_id, tenant_id)
        if parent is None:
            # 엄격한 검증은 validate_max_depth 가 담당
            logger.debug("Parent missing while calculating path; using root path.",
                         extra={"parent_id": parent_id, "tenant_id": tenant_id})
            return ROOT_PATH_RESULT
        return path_for_parent(parent)

    def get_ancestors(self, category_id: str, tenant_id: str) -> List[Category]:
        """가까운 조상부터 root 까지 순서대로"""
        category = self.store.get(category_id, tenant_id)
        if category is None:
            return []

        ancestors: List[Category] = []
        seen = {category.id}
        parent_id = category.parent_id
        while parent_id is not None and len(ancestors) < MAX_CATEGORY_DEPTH:
            if parent_id in seen:
                logger.warning("Cycle found in ancestor chain.", extra={"category_id": category_id, "tenant_id": tenant_id})
                break
            parent = self.store.get(parent_id, tenant_id)
            if parent is None:
                break
            ancestors.append(parent)
            seen.add(parent.id)
            parent_id = parent.parent_id
        return ancestors
