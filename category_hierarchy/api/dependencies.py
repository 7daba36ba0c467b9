from fastapi import Depends, Header
from sqlalchemy.orm import Session

from category_hierarchy.config.database import get_read_db, get_write_db
from category_hierarchy.services.category_service import CategoryHierarchyService
from category_hierarchy.services.category_stats import SubtreeStatsCalculator


# 테넌트/사용자 식별은 게이트웨이가 헤더로 전달
def get_tenant_id(x_tenant_id: str = Header(..., alias="X-Tenant-ID")) -> str:
    return x_tenant_id


def get_actor_id(x_user_id: str = Header(..., alias="X-User-ID")) -> str:
    return x_user_id


def get_write_service(db: Session = Depends(get_write_db)) -> CategoryHierarchyService:
    return CategoryHierarchyService(db)


def get_read_service(db: Session = Depends(get_read_db)) -> CategoryHierarchyService:
    return CategoryHierarchyService(db)


def get_stats_calculator(db: Session = Depends(get_read_db)) -> SubtreeStatsCalculator:
    return SubtreeStatsCalculator(db)
