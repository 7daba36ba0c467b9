import logging
from typing import Optional

from opentelemetry import propagate, trace
from sqlalchemy.orm import Session

from category_hierarchy.models.audit_event import AuditAction, AuditEvent

logger = logging.getLogger(__name__)

AUDIT_ENTITY_TYPE = "CATEGORY"


class AuditService:
    """
    감사 이벤트를 audit_events outbox 테이블에 기록.
    commit 은 호출자가 한다 (카테고리 변경이 commit 된 뒤 별도로).
    """

    def __init__(self, session: Session):
        self.session = session

    def log_create(self, *, tenant_id: str, actor_id: str, entity_type: str, entity_id: str,
                   after: Optional[dict] = None) -> AuditEvent:
        return self._record(AuditAction.CREATE, tenant_id, actor_id, entity_type, entity_id, after=after)

    def log_update(self, *, tenant_id: str, actor_id: str, entity_type: str, entity_id: str,
                   before: Optional[dict] = None, after: Optional[dict] = None) -> AuditEvent:
        return self._record(AuditAction.UPDATE, tenant_id, actor_id, entity_type, entity_id, before=before, after=after)

    def log_delete(self, *, tenant_id: str, actor_id: str, entity_type: str, entity_id: str,
                   before: Optional[dict] = None) -> AuditEvent:
        return self._record(AuditAction.DELETE, tenant_id, actor_id, entity_type, entity_id, before=before)

    def _record(self, action: AuditAction, tenant_id: str, actor_id: str, entity_type: str, entity_id: str,
                before: Optional[dict] = None, after: Optional[dict] = None) -> AuditEvent:
        # 현재 span 의 trace context 를 outbox 행에 같이 저장
        carrier = {}
        propagate.get_global_textmap().inject(carrier, context=trace.set_span_in_context(trace.get_current_span()))

        event = AuditEvent(
            tenant_id=tenant_id,
            actor_id=actor_id,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            before_state=before,
            after_state=after,
            traceparent=carrier.get("traceparent"),
            tracestate=carrier.get("tracestate"),
        )
        self.session.add(event)
        logger.debug("Audit event recorded.", extra={"action": action.value, "entity_type": entity_type, "entity_id": entity_id})
        return event
