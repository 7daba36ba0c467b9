import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Index, Integer, String, Text, UniqueConstraint

from category_hierarchy.config.database import Base

# 최대 5단계 (root = depth 0)
MAX_CATEGORY_DEPTH = 5
ROOT_PATH = "/"

CODE_MAX_LENGTH = 50
NAME_MAX_LENGTH = 255


def _utcnow():
    return datetime.now(timezone.utc)


class CategoryStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class Category(Base):
    """
    테넌트별 카테고리 계층 구조를 관리하는 테이블
    - depth: 카테고리 깊이 (최상위=0, 하위=1, ... 최대 4)
    - path: 조상 code 경로 (예: 최상위 "/", 그 하위 "/ELECTRONICS", 그 다음 "/ELECTRONICS/DRILLS")
    """
    __tablename__ = 'categories'

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String(36), nullable=False)
    code = Column(String(CODE_MAX_LENGTH), nullable=False)
    name = Column(String(NAME_MAX_LENGTH), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(Enum(CategoryStatus), nullable=False, default=CategoryStatus.ACTIVE)
    parent_id = Column(String(36), ForeignKey('categories.id'), nullable=True)
    path = Column(String(512), nullable=False, default=ROOT_PATH)
    depth = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    # code는 상태와 관계없이 테넌트 내에서 유일 (soft delete 후에도 재사용 불가)
    __table_args__ = (
        UniqueConstraint('tenant_id', 'code', name='uq_category_tenant_code'),
        Index('idx_category_tenant_parent', 'tenant_id', 'parent_id'),
        Index('idx_category_path', 'path'),
    )

    def __repr__(self):
        return f"<Category id={self.id} code={self.code} depth={self.depth} path={self.path}>"
