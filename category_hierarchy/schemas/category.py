from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from category_hierarchy.models.category import CategoryStatus


class CategoryCreate(BaseModel):
    code: str
    name: str
    description: Optional[str] = None
    parent_id: Optional[str] = None


class CategoryUpdate(BaseModel):
    """
    부분 수정. parent_id=None 을 명시하면 최상위로 이동,
    필드를 아예 보내지 않으면 부모 변경 없음 (model_fields_set 으로 구분)
    """
    name: Optional[str] = None
    description: Optional[str] = None
    parent_id: Optional[str] = None
    status: Optional[CategoryStatus] = None


class CategoryResponse(BaseModel):
    id: str
    tenant_id: str
    code: str
    name: str
    description: Optional[str] = None
    status: CategoryStatus
    parent_id: Optional[str] = None
    path: str
    depth: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CategoryTreeNode(CategoryResponse):
    children: List["CategoryTreeNode"] = []


class CategoryTreeFilter(BaseModel):
    search: Optional[str] = None
    parent_id: Optional[str] = None
    root_only: bool = False
    include_inactive: bool = False
    max_depth: int = 0


class CategoryStats(BaseModel):
    category_id: str
    item_count: int
    total_item_count: int
    active_item_count: int


class WarningDetail(BaseModel):
    kind: str
    reason: Optional[str] = None
    message: str


class CategoryMutationResponse(BaseModel):
    category: CategoryResponse
    warnings: List[WarningDetail] = []


def category_snapshot(category) -> dict:
    """감사 로그용 JSON 직렬화 가능한 스냅샷"""
    return CategoryResponse.model_validate(category).model_dump(mode="json")
