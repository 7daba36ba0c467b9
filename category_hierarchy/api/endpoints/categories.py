import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from category_hierarchy.api.dependencies import (
    get_actor_id,
    get_read_service,
    get_stats_calculator,
    get_tenant_id,
    get_write_service,
)
from category_hierarchy.core.exceptions import CategoryError, ErrorKind, ErrorReason, NotFoundError
from category_hierarchy.schemas.category import (
    CategoryCreate,
    CategoryMutationResponse,
    CategoryResponse,
    CategoryStats,
    CategoryTreeFilter,
    CategoryTreeNode,
    CategoryUpdate,
    WarningDetail,
)
from category_hierarchy.services.category_service import CategoryHierarchyService, CategoryMutationResult
from category_hierarchy.services.category_stats import SubtreeStatsCalculator

logger = logging.getLogger(__name__)

router = APIRouter()

ERROR_STATUS_CODES = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
}


def to_http_exception(error: CategoryError) -> HTTPException:
    status_code = ERROR_STATUS_CODES.get(error.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    return HTTPException(status_code=status_code, detail=error.to_dict())


def to_mutation_response(result: CategoryMutationResult) -> CategoryMutationResponse:
    return CategoryMutationResponse(
        category=CategoryResponse.model_validate(result.category),
        warnings=[WarningDetail(**warning.to_dict()) for warning in result.warnings],
    )


@router.post("", response_model=CategoryMutationResponse, status_code=status.HTTP_201_CREATED)
def create_category(
    category: CategoryCreate,
    tenant_id: str = Depends(get_tenant_id),
    actor_id: str = Depends(get_actor_id),
    service: CategoryHierarchyService = Depends(get_write_service)
):
    """새 카테고리 생성"""
    try:
        logger.info("Attempting to create category.", extra={"tenant_id": tenant_id, "code": category.code, "parent_id": category.parent_id})
        result = service.create_category(tenant_id, category, actor_id)
        logger.info("Successfully created category.", extra={"category_id": result.category.id, "warnings": len(result.warnings)})
        return to_mutation_response(result)
    except CategoryError as e:
        logger.warning("Category creation rejected.", extra={"tenant_id": tenant_id, "code": category.code, "error": e.to_dict()})
        raise to_http_exception(e)
    except Exception as e:
        logger.error("Error creating category.", extra={"tenant_id": tenant_id, "code": category.code, "error": str(e)}, exc_info=True)
        raise HTTPException(status_code=500, detail=f"An unexpected error occurred: {str(e)}")


@router.get("", response_model=List[CategoryTreeNode])
def read_category_tree(
    search: Optional[str] = None,
    parent_id: Optional[str] = None,
    root_only: bool = False,
    include_inactive: bool = False,
    max_depth: int = Query(0),
    tenant_id: str = Depends(get_tenant_id),
    service: CategoryHierarchyService = Depends(get_read_service)
):
    """카테고리 트리 조회 (max_depth 만큼 하위 카테고리 포함)"""
    try:
        tree_filter = CategoryTreeFilter(
            search=search,
            parent_id=parent_id,
            root_only=root_only,
            include_inactive=include_inactive,
            max_depth=max_depth,
        )
        nodes = service.get_category_tree(tenant_id, tree_filter)
        logger.debug("Successfully read category tree.", extra={"tenant_id": tenant_id, "count": len(nodes)})
        return nodes
    except CategoryError as e:
        logger.warning("Category tree request rejected.", extra={"tenant_id": tenant_id, "error": e.to_dict()})
        raise to_http_exception(e)
    except Exception as e:
        logger.error("Error reading category tree.", extra={"tenant_id": tenant_id, "error": str(e)}, exc_info=True)
        raise HTTPException(status_code=500, detail=f"An unexpected error occurred: {str(e)}")


@router.get("/{category_id}", response_model=CategoryResponse)
def read_category(
    category_id: str,
    tenant_id: str = Depends(get_tenant_id),
    service: CategoryHierarchyService = Depends(get_read_service)
):
    """카테고리 ID로 카테고리 조회"""
    try:
        category = service.get_category_by_id(category_id, tenant_id)
        if category is None:
            raise NotFoundError("category not found", reason=ErrorReason.CATEGORY_NOT_FOUND,
                                details={"category_id": category_id})
        return category
    except CategoryError as e:
        logger.warning("Category lookup failed.", extra={"tenant_id": tenant_id, "category_id": category_id, "error": e.to_dict()})
        raise to_http_exception(e)
    except Exception as e:
        logger.error("Error reading category by ID.", extra={"category_id": category_id, "error": str(e)}, exc_info=True)
        raise HTTPException(status_code=500, detail=f"An unexpected error occurred: {str(e)}")


@router.patch("/{category_id}", response_model=CategoryMutationResponse)
def update_category(
    category_id: str,
    category: CategoryUpdate,
    tenant_id: str = Depends(get_tenant_id),
    actor_id: str = Depends(get_actor_id),
    service: CategoryHierarchyService = Depends(get_write_service)
):
    """카테고리 수정 (부모 변경 시 하위 트리 path/depth 함께 갱신)"""
    try:
        logger.info("Attempting to update category.", extra={"tenant_id": tenant_id, "category_id": category_id, "fields": sorted(category.model_fields_set)})
        result = service.update_category(category_id, tenant_id, category, actor_id)
        return to_mutation_response(result)
    except CategoryError as e:
        logger.warning("Category update rejected.", extra={"tenant_id": tenant_id, "category_id": category_id, "error": e.to_dict()})
        raise to_http_exception(e)
    except Exception as e:
        logger.error("Error updating category.", extra={"category_id": category_id, "error": str(e)}, exc_info=True)
        raise HTTPException(status_code=500, detail=f"An unexpected error occurred: {str(e)}")


@router.delete("/{category_id}", response_model=CategoryMutationResponse)
def delete_category(
    category_id: str,
    tenant_id: str = Depends(get_tenant_id),
    actor_id: str = Depends(get_actor_id),
    service: CategoryHierarchyService = Depends(get_write_service)
):
    """카테고리 소프트 삭제 (INACTIVE)"""
    try:
        logger.info("Attempting to delete category.", extra={"tenant_id": tenant_id, "category_id": category_id})
        result = service.delete_category(category_id, tenant_id, actor_id)
        return to_mutation_response(result)
    except CategoryError as e:
        logger.warning("Category delete rejected.", extra={"tenant_id": tenant_id, "category_id": category_id, "error": e.to_dict()})
        raise to_http_exception(e)
    except Exception as e:
        logger.error("Error deleting category.", extra={"category_id": category_id, "error": str(e)}, exc_info=True)
        raise HTTPException(status_code=500, detail=f"An unexpected error occurred: {str(e)}")


@router.get("/{category_id}/children", response_model=List[CategoryResponse])
def read_children(
    category_id: str,
    tenant_id: str = Depends(get_tenant_id),
    service: CategoryHierarchyService = Depends(get_read_service)
):
    """직계 하위 카테고리 조회 (INACTIVE 제외)"""
    try:
        return service.get_children(category_id, tenant_id)
    except CategoryError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error("Error reading children.", extra={"category_id": category_id, "error": str(e)}, exc_info=True)
        raise HTTPException(status_code=500, detail=f"An unexpected error occurred: {str(e)}")


@router.get("/{category_id}/ancestors", response_model=List[CategoryResponse])
def read_ancestors(
    category_id: str,
    tenant_id: str = Depends(get_tenant_id),
    service: CategoryHierarchyService = Depends(get_read_service)
):
    """조상 카테고리 조회 (가까운 순)"""
    try:
        return service.get_ancestors(category_id, tenant_id)
    except CategoryError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error("Error reading ancestors.", extra={"category_id": category_id, "error": str(e)}, exc_info=True)
        raise HTTPException(status_code=500, detail=f"An unexpected error occurred: {str(e)}")


@router.get("/{category_id}/stats", response_model=CategoryStats)
def read_stats(
    category_id: str,
    tenant_id: str = Depends(get_tenant_id),
    calculator: SubtreeStatsCalculator = Depends(get_stats_calculator)
):
    try:
        return calculator.get_stats(category_id, tenant_id)
    except CategoryError as e:
        logger.warning("Category stats request rejected.", extra={"tenant_id": tenant_id, "category_id": category_id, "error": e.to_dict()})
        raise to_http_exception(e)
    except Exception as e:
        logger.error("Error calculating category stats.", extra={"category_id": category_id, "error": str(e)}, exc_info=True)
        raise HTTPException(status_code=500, detail=f"An unexpected error occurred: {str(e)}")
