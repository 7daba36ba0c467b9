import logging
from typing import Iterable, List, Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from category_hierarchy.core.exceptions import ConflictError, ErrorReason
from category_hierarchy.models.category import MAX_CATEGORY_DEPTH, Category, CategoryStatus

logger = logging.getLogger(__name__)

_UNSET = object()


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class CategoryTreeStore:
    """
    categories 테이블에 대한 테넌트 단위 읽기/쓰기.
    트랜잭션 경계(commit/rollback)는 호출하는 서비스가 관리한다.
    """

    def __init__(self, session: Session):
        self.session = session

    def get(self, category_id: str, tenant_id: str) -> Optional[Category]:
        query = select(Category).where(Category.id == category_id, Category.tenant_id == tenant_id)
        return self.session.execute(query).scalar_one_or_none()

    def find_by_code(self, code: str, tenant_id: str) -> Optional[Category]:
        query = select(Category).where(Category.code == code, Category.tenant_id == tenant_id)
        return self.session.execute(query).scalar_one_or_none()

    def code_exists(self, code: str, tenant_id: str) -> bool:
        # 상태(ACTIVE/INACTIVE)와 무관하게 검사
        return self.find_by_code(code, tenant_id) is not None

    def list_children(self, parent_id: str, tenant_id: str, include_inactive: bool = True) -> List[Category]:
        return self.list_children_of([parent_id], tenant_id, include_inactive=include_inactive)

    def list_children_of(self, parent_ids: Iterable[str], tenant_id: str, include_inactive: bool = True) -> List[Category]:
        """여러 부모의 직계 자식을 한 번의 쿼리로 조회 (name 오름차순)"""
        parent_ids = list(parent_ids)
        if not parent_ids:
            return []
        query = select(Category).where(
            Category.tenant_id == tenant_id,
            Category.parent_id.in_(parent_ids)
        )
        if not include_inactive:
            query = query.where(Category.status != CategoryStatus.INACTIVE)
        query = query.order_by(Category.name.asc(), Category.code.asc())
        return list(self.session.execute(query).scalars().all())

    def find(self, tenant_id: str, *, parent_id=_UNSET, root_only: bool = False,
             include_inactive: bool = False, search: Optional[str] = None) -> List[Category]:
        query = select(Category).where(Category.tenant_id == tenant_id)

        if parent_id is not _UNSET:
            query = query.where(Category.parent_id == parent_id)
        elif root_only:
            query = query.where(Category.parent_id.is_(None))

        if not include_inactive:
            query = query.where(Category.status != CategoryStatus.INACTIVE)

        if search:
            pattern = f"%{_escape_like(search)}%"
            query = query.where(or_(
                Category.code.ilike(pattern, escape="\\"),
                Category.name.ilike(pattern, escape="\\"),
            ))

        query = query.order_by(Category.name.asc(), Category.code.asc())
        categories = list(self.session.execute(query).scalars().all())
        logger.debug("Categories queried.", extra={"tenant_id": tenant_id, "count": len(categories)})
        return categories

    def descendant_levels(self, category_id: str, tenant_id: str) -> List[List[Category]]:
        """
        하위 카테고리를 레벨별로 반환 (BFS, 레벨당 쿼리 1회).
        levels[0] = 직계 자식, levels[1] = 손자 ...
        상태와 무관하게 모두 포함하며 최대 MAX_CATEGORY_DEPTH 레벨까지만 내려간다.
        """
        levels: List[List[Category]] = []
        visited = {category_id}
        frontier = [category_id]

        for _ in range(MAX_CATEGORY_DEPTH):
            children = [c for c in self.list_children_of(frontier, tenant_id) if c.id not in visited]
            if not children:
                break
            visited.update(c.id for c in children)
            levels.append(children)
            frontier = [c.id for c in children]
        else:
            if self.list_children_of(frontier, tenant_id):
                logger.warning("Descendant walk hit the depth bound; tree data may be corrupt.",
                               extra={"category_id": category_id, "tenant_id": tenant_id})

        return levels

    def add(self, category: Category) -> Category:
        """
        INSERT 후 flush. (tenant_id, code) 유니크 제약 위반은 ConflictError 로 변환.
        flush 실패 시 세션은 rollback 된 상태로 돌아간다.
        """
        self.session.add(category)
        try:
            self.session.flush()
        except IntegrityError as e:
            self.session.rollback()
            logger.warning("Unique constraint violated on category insert.",
                           extra={"tenant_id": category.tenant_id, "code": category.code, "error": str(e.orig)})
            raise ConflictError("category code already exists", reason=ErrorReason.DUPLICATE_CODE,
                                details={"code": category.code}) from e
        return category
