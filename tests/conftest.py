"""
pytest 공통 fixtures - 테스트마다 새 in-memory SQLite
"""
from typing import Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from category_hierarchy.config.database import Base, register_sqlite_functions
from category_hierarchy.models import Item, ItemStatus
from category_hierarchy.schemas.category import CategoryCreate
from category_hierarchy.services.category_service import CategoryHierarchyService
from category_hierarchy.services.category_stats import SubtreeStatsCalculator
from category_hierarchy.services.category_store import CategoryTreeStore
from category_hierarchy.services.hierarchy_validator import HierarchyValidator

TENANT = "tenant-a"
OTHER_TENANT = "tenant-b"
ACTOR = "user-1"


class FailingAuditService:
    """모든 호출에서 실패하는 감사 협력자"""

    def __init__(self):
        self.calls = 0

    def _fail(self, **kwargs):
        self.calls += 1
        raise RuntimeError("audit store unavailable")

    log_create = _fail
    log_update = _fail
    log_delete = _fail


class FailingItemService:
    def clear_category_references(self, category_id, tenant_id):
        raise RuntimeError("item service unavailable")


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    register_sqlite_functions(engine)
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, class_=Session, expire_on_commit=False, autoflush=False)


@pytest.fixture
def db_session(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def service(db_session) -> CategoryHierarchyService:
    return CategoryHierarchyService(db_session, retry_delay=0)


@pytest.fixture
def stats(db_session) -> SubtreeStatsCalculator:
    return SubtreeStatsCalculator(db_session)


@pytest.fixture
def validator(db_session) -> HierarchyValidator:
    return HierarchyValidator(CategoryTreeStore(db_session))


@pytest.fixture
def make_category(service):
    """code 로 카테고리 생성 (name 미지정 시 code 사용)"""
    def _make(code, parent=None, name=None, tenant_id=TENANT):
        data = CategoryCreate(code=code, name=name or code, parent_id=parent.id if parent else None)
        return service.create_category(tenant_id, data, ACTOR).category
    return _make


@pytest.fixture
def chain(make_category):
    """A > B > C > D (depth 0..3)"""
    a = make_category("A")
    b = make_category("B", a)
    c = make_category("C", b)
    d = make_category("D", c)
    return a, b, c, d


@pytest.fixture
def make_item(db_session):
    counter = {"n": 0}

    def _make(category, status=ItemStatus.ACTIVE, tenant_id=TENANT):
        counter["n"] += 1
        item = Item(
            tenant_id=tenant_id,
            code=f"ITEM-{counter['n']}",
            name=f"Item {counter['n']}",
            category_id=category.id if category else None,
            status=status,
        )
        db_session.add(item)
        db_session.commit()
        return item
    return _make
