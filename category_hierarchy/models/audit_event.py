import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Enum, Index, String

from category_hierarchy.config.database import Base


class AuditAction(str, enum.Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class AuditEvent(Base):
    """감사 로그 outbox 테이블 (외부 수집기가 읽어감)"""
    __tablename__ = "audit_events"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String(36), nullable=False)
    actor_id = Column(String(36), nullable=True)
    entity_type = Column(String(64), nullable=False)
    entity_id = Column(String(36), nullable=False)
    action = Column(Enum(AuditAction), nullable=False)
    before_state = Column(JSON, nullable=True)
    after_state = Column(JSON, nullable=True)
    # 수집기가 trace를 이어갈 수 있도록 W3C trace context 저장
    traceparent = Column(String(55), nullable=True)
    tracestate = Column(String(512), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index('idx_audit_entity', 'entity_type', 'entity_id'),
    )
