import logging
import time
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from category_hierarchy.core.config import settings
from category_hierarchy.core.exceptions import (
    CategoryError,
    ConflictError,
    DependencyError,
    ErrorReason,
    NotFoundError,
    ValidationError,
)
from category_hierarchy.core.validation import clean_code, clean_name, validate_id
from category_hierarchy.models.category import (
    MAX_CATEGORY_DEPTH,
    Category,
    CategoryStatus,
)
from category_hierarchy.schemas.category import (
    CategoryCreate,
    CategoryTreeFilter,
    CategoryTreeNode,
    CategoryUpdate,
    category_snapshot,
)
from category_hierarchy.services.audit_service import AUDIT_ENTITY_TYPE, AuditService
from category_hierarchy.services.category_store import CategoryTreeStore
from category_hierarchy.services.hierarchy_validator import (
    MAX_DEPTH_ERROR,
    DepthValidationResult,
    HierarchyValidator,
    path_for_parent,
)
from category_hierarchy.services.item_service import ItemService

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass
class CategoryMutationResult:
    category: Category
    # commit 은 성공했지만 실패한 협력자 호출 (audit, items)
    warnings: List[DependencyError] = field(default_factory=list)


class CategoryHierarchyService:
    def __init__(self, session: Session, item_service=None, audit_service=None,
                 max_retries: Optional[int] = None, retry_delay: Optional[float] = None):
        self.session = session
        self.store = CategoryTreeStore(session)
        self.validator = HierarchyValidator(self.store)
        self.item_service = item_service or ItemService(session)
        self.audit_service = audit_service or AuditService(session)
        self.max_retries = max_retries if max_retries is not None else settings.CASCADE_MAX_RETRIES
        self.retry_delay = retry_delay if retry_delay is not None else settings.CASCADE_RETRY_DELAY

    @contextmanager
    def _mutation(self, span, operation: str, **context):
        """실패 시 rollback + 로그 + span 상태 기록 후 재발생"""
        try:
            yield
        except CategoryError as e:
            self.session.rollback()
            reason = e.reason.value if e.reason else None
            logger.warning(f"{operation} rejected.", extra={**context, "reason": reason, "error": e.message})
            span.set_attribute("app.error.reason", reason or e.kind.value)
            span.set_status(Status(StatusCode.ERROR, e.message))
            raise
        except Exception as e:
            self.session.rollback()
            logger.error(f"Error in {operation}.", extra={**context, "error": str(e)}, exc_info=True)
            span.record_exception(e)
            span.set_status(Status(StatusCode.ERROR, str(e)))
            raise

    def _call_collaborator(self, span, collaborator: str, reason: ErrorReason, action: Callable[[], object],
                           commit: bool = False) -> Optional[DependencyError]:
        """협력자 실패는 카테고리 변경을 되돌리지 않고 경고로만 반환"""
        try:
            action()
            if commit:
                self.session.commit()
        except Exception as e:
            self.session.rollback()
            logger.warning("Collaborator call failed; continuing without it.",
                           extra={"collaborator": collaborator, "error": str(e)}, exc_info=True)
            span.add_event("CollaboratorFailed", {"collaborator": collaborator, "error": str(e)})
            return DependencyError(f"{collaborator} call failed: {e}", reason=reason,
                                   details={"collaborator": collaborator})
        return None

    def _audit(self, span, action: Callable[[], object]) -> List[DependencyError]:
        warning = self._call_collaborator(span, "audit", ErrorReason.AUDIT_FAILED, action, commit=True)
        return [warning] if warning else []

    @staticmethod
    def _raise_for_depth(result: DepthValidationResult, **details):
        if result.valid:
            return
        if result.reason == ErrorReason.PARENT_NOT_FOUND:
            raise NotFoundError(result.error, reason=result.reason, details=details)
        raise ConflictError(result.error or MAX_DEPTH_ERROR, reason=ErrorReason.MAX_DEPTH_EXCEEDED,
                            details={**details, "depth": result.depth})

    def _get_existing(self, category_id: str, tenant_id: str) -> Category:
        category = self.store.get(category_id, tenant_id)
        if category is None:
            raise NotFoundError("category not found", reason=ErrorReason.CATEGORY_NOT_FOUND,
                                details={"category_id": category_id})
        return category

    def _with_retry(self, span, operation: Callable):
        """일시적 DB 오류(OperationalError) 시 작업 전체를 처음부터 재시도"""
        attempt = 0
        while True:
            attempt += 1
            try:
                return operation()
            except OperationalError as e:
                self.session.rollback()
                if attempt >= self.max_retries:
                    logger.error("Update failed after retries.",
                                 extra={"attempts": attempt, "error": str(e)})
                    raise
                sleep_duration = self.retry_delay * (2 ** (attempt - 1))
                logger.warning("Transient database error; retrying update.", extra={
                    "attempt": attempt,
                    "max_retries": self.max_retries,
                    "sleep_duration": sleep_duration,
                    "error": str(e)
                })
                span.add_event("RetryingUpdate", {"attempt": attempt})
                time.sleep(sleep_duration)

    def create_category(self, tenant_id: str, data: CategoryCreate, actor_id: str) -> CategoryMutationResult:
        with tracer.start_as_current_span("CategoryHierarchyService.create_category") as span:
            span.set_attribute("app.tenant_id", tenant_id)
            with self._mutation(span, "create_category", tenant_id=tenant_id, code=data.code, parent_id=data.parent_id):
                code = clean_code(data.code)
                name = clean_name(data.name)
                parent_id = validate_id(data.parent_id, "parent_id") if data.parent_id is not None else None

                # 빠른 사용자 오류 응답용. 최종 보장은 DB 유니크 제약 (store.add)
                if self.store.code_exists(code, tenant_id):
                    raise ConflictError("category code already exists", reason=ErrorReason.DUPLICATE_CODE,
                                        details={"code": code})

                self._raise_for_depth(self.validator.validate_max_depth(parent_id, tenant_id), parent_id=parent_id)
                path_result = self.validator.calculate_path(parent_id, tenant_id)

                category = Category(
                    tenant_id=tenant_id,
                    code=code,
                    name=name,
                    description=data.description,
                    parent_id=parent_id,
                    path=path_result.path,
                    depth=path_result.depth,
                    status=CategoryStatus.ACTIVE,
                )
                self.store.add(category)
                self.session.commit()

            span.set_attribute("app.category_id", category.id)
            span.set_attribute("app.category.depth", category.depth)
            logger.info("Category created.", extra={
                "category_id": category.id, "tenant_id": tenant_id, "code": code,
                "depth": category.depth, "path": category.path
            })

            after = category_snapshot(category)
            warnings = self._audit(span, lambda: self.audit_service.log_create(
                tenant_id=tenant_id, actor_id=actor_id, entity_type=AUDIT_ENTITY_TYPE,
                entity_id=category.id, after=after,
            ))
            span.set_status(Status(StatusCode.OK))
            return CategoryMutationResult(category=category, warnings=warnings)

    def update_category(self, category_id: str, tenant_id: str, data: CategoryUpdate,
                        actor_id: str) -> CategoryMutationResult:
        with tracer.start_as_current_span("CategoryHierarchyService.update_category") as span:
            span.set_attribute("app.tenant_id", tenant_id)
            span.set_attribute("app.category_id", category_id)
            fields = data.model_fields_set
            with self._mutation(span, "update_category", tenant_id=tenant_id, category_id=category_id):
                category_id = validate_id(category_id, "category_id")
                name = clean_name(data.name) if "name" in fields and data.name is not None else None
                new_parent_id = validate_id(data.parent_id, "parent_id") if data.parent_id is not None else None
                category, before, cascaded = self._with_retry(
                    span, lambda: self._apply_update(category_id, tenant_id, data, fields, name, new_parent_id)
                )

            span.set_attribute("app.cascade.updated_descendants", cascaded)
            logger.info("Category updated.", extra={
                "category_id": category_id, "tenant_id": tenant_id,
                "fields": sorted(fields), "cascaded_descendants": cascaded
            })

            after = category_snapshot(category)
            warnings = self._audit(span, lambda: self.audit_service.log_update(
                tenant_id=tenant_id, actor_id=actor_id, entity_type=AUDIT_ENTITY_TYPE,
                entity_id=category_id, before=before, after=after,
            ))
            span.set_status(Status(StatusCode.OK))
            return CategoryMutationResult(category=category, warnings=warnings)

    def _apply_update(self, category_id: str, tenant_id: str, data: CategoryUpdate, fields,
                      name: Optional[str], new_parent_id: Optional[str]):
        category = self._get_existing(category_id, tenant_id)
        before = category_snapshot(category)

        if "status" in fields and data.status is not None and data.status != category.status:
            if category.status == CategoryStatus.INACTIVE:
                raise ConflictError("inactive categories cannot be reactivated",
                                    reason=ErrorReason.CATEGORY_INACTIVE, details={"category_id": category_id})
            category.status = data.status

        cascaded = 0
        if "parent_id" in fields and new_parent_id != category.parent_id:
            cascaded = self._reparent(category, new_parent_id, tenant_id)

        if name is not None:
            category.name = name
        if "description" in fields:
            category.description = data.description

        self.session.commit()
        return category, before, cascaded

    def _reparent(self, category: Category, new_parent_id: Optional[str], tenant_id: str) -> int:
        """
        부모 변경 + 하위 트리 전체 path/depth 재계산.
        자기 자신부터 레벨 단위로 내려가며 이미 갱신된 부모 path 를 기준으로 자식 path 를 다시 만든다.
        commit 은 호출자가 한 번에 한다.
        """
        if new_parent_id is not None:
            if self.validator.detect_circular_reference(category.id, new_parent_id, tenant_id):
                raise ConflictError("circular reference detected", reason=ErrorReason.CIRCULAR_REFERENCE,
                                    details={"category_id": category.id, "parent_id": new_parent_id})

        depth_result = self.validator.validate_max_depth(new_parent_id, tenant_id)
        self._raise_for_depth(depth_result, parent_id=new_parent_id)

        levels = self.store.descendant_levels(category.id, tenant_id)
        deepest = depth_result.depth + len(levels)
        if deepest >= MAX_CATEGORY_DEPTH:
            raise ConflictError(MAX_DEPTH_ERROR, reason=ErrorReason.MAX_DEPTH_EXCEEDED,
                                details={"parent_id": new_parent_id, "depth": deepest})

        path_result = self.validator.calculate_path(new_parent_id, tenant_id)
        category.parent_id = new_parent_id
        category.path = path_result.path
        category.depth = path_result.depth

        parents = {category.id: category}
        for level in levels:
            for child in level:
                child_result = path_for_parent(parents[child.parent_id])
                child.path = child_result.path
                child.depth = child_result.depth
            parents = {child.id: child for child in level}

        return sum(len(level) for level in levels)

    def delete_category(self, category_id: str, tenant_id: str, actor_id: str) -> CategoryMutationResult:
        with tracer.start_as_current_span("CategoryHierarchyService.delete_category") as span:
            span.set_attribute("app.tenant_id", tenant_id)
            span.set_attribute("app.category_id", category_id)
            warnings: List[DependencyError] = []
            with self._mutation(span, "delete_category", tenant_id=tenant_id, category_id=category_id):
                category_id = validate_id(category_id, "category_id")
                category = self._get_existing(category_id, tenant_id)
                if category.status == CategoryStatus.INACTIVE:
                    raise ConflictError("category already deleted", reason=ErrorReason.ALREADY_DELETED,
                                        details={"category_id": category_id})
                before = category_snapshot(category)

                # 직접 연결된 상품만 해제 (하위 카테고리 상품은 그대로)
                warning = self._call_collaborator(
                    span, "items", ErrorReason.ITEM_UPDATE_FAILED,
                    lambda: self.item_service.clear_category_references(category_id, tenant_id),
                )
                if warning:
                    warnings.append(warning)

                category.status = CategoryStatus.INACTIVE
                self.session.commit()

            logger.info("Category soft deleted.", extra={
                "category_id": category_id, "tenant_id": tenant_id, "warnings": len(warnings)
            })
            warnings.extend(self._audit(span, lambda: self.audit_service.log_delete(
                tenant_id=tenant_id, actor_id=actor_id, entity_type=AUDIT_ENTITY_TYPE,
                entity_id=category_id, before=before,
            )))
            span.set_status(Status(StatusCode.OK))
            return CategoryMutationResult(category=category, warnings=warnings)

    def get_category_by_id(self, category_id: str, tenant_id: str) -> Optional[Category]:
        category_id = validate_id(category_id, "category_id")
        return self.store.get(category_id, tenant_id)

    def get_category_tree(self, tenant_id: str, tree_filter: Optional[CategoryTreeFilter] = None) -> List[CategoryTreeNode]:
        tree_filter = tree_filter or CategoryTreeFilter()
        if tree_filter.max_depth < 0:
            raise ValidationError("max_depth must not be negative", reason=ErrorReason.INVALID_FILTER,
                                  details={"max_depth": tree_filter.max_depth})
        max_depth = min(tree_filter.max_depth, MAX_CATEGORY_DEPTH - 1)

        query_kwargs = {}
        if tree_filter.parent_id is not None:
            query_kwargs["parent_id"] = validate_id(tree_filter.parent_id, "parent_id")
        search = tree_filter.search.strip() if tree_filter.search else None

        top_level = self.store.find(
            tenant_id,
            root_only=tree_filter.root_only,
            include_inactive=tree_filter.include_inactive,
            search=search,
            **query_kwargs
        )
        nodes = [CategoryTreeNode.model_validate(category) for category in top_level]

        frontier = nodes
        for _ in range(max_depth):
            # 같은 카테고리가 여러 위치에 나올 수 있으므로 id -> 노드 목록
            parents_by_id = defaultdict(list)
            for node in frontier:
                parents_by_id[node.id].append(node)
            if not parents_by_id:
                break

            children = self.store.list_children_of(parents_by_id.keys(), tenant_id,
                                                   include_inactive=tree_filter.include_inactive)
            next_frontier = []
            for child in children:
                for parent_node in parents_by_id[child.parent_id]:
                    child_node = CategoryTreeNode.model_validate(child)
                    parent_node.children.append(child_node)
                    next_frontier.append(child_node)
            frontier = next_frontier

        logger.debug("Category tree built.", extra={
            "tenant_id": tenant_id, "top_level_count": len(nodes), "max_depth": max_depth
        })
        return nodes

    def get_children(self, category_id: str, tenant_id: str) -> List[Category]:
        category_id = validate_id(category_id, "category_id")
        return self.store.list_children(category_id, tenant_id, include_inactive=False)

    def get_ancestors(self, category_id: str, tenant_id: str) -> List[Category]:
        category_id = validate_id(category_id, "category_id")
        return self.validator.get_ancestors(category_id, tenant_id)
