import enum
import uuid

from sqlalchemy import Column, Enum, ForeignKey, Index, String

from category_hierarchy.config.database import Base


class ItemStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class Item(Base):
    """
    상품(Item) 테이블 - 카테고리 엔진 입장에서는 외부 협력자
    category_id 참조 해제와 개수 집계에만 사용
    """
    __tablename__ = 'items'

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String(36), nullable=False)
    code = Column(String(50), nullable=False)
    name = Column(String(255), nullable=False)
    category_id = Column(String(36), ForeignKey('categories.id', ondelete='SET NULL'), nullable=True)
    status = Column(Enum(ItemStatus), nullable=False, default=ItemStatus.ACTIVE)

    __table_args__ = (
        Index('idx_item_tenant_category', 'tenant_id', 'category_id'),
        Index('idx_item_status', 'status'),
    )
