import logging

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from category_hierarchy.core.config import settings

logger = logging.getLogger(__name__)

#################################################
## . Relational store
#################################################


def _unicode_lower(value):
    return value.lower() if isinstance(value, str) else value


def register_sqlite_functions(engine):
    """SQLite 내장 lower() 는 ASCII 만 변환하므로 ilike 용으로 파이썬 str.lower 로 교체"""
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, connection_record):
        dbapi_conn.create_function("lower", 1, _unicode_lower)


def create_db_engine(url: str, echo: bool = False):
    """SQLAlchemy 엔진 생성 (SQLite는 스레드 체크 해제)"""
    connect_args = {}
    engine_kwargs = {"pool_pre_ping": True, "echo": echo}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    else:
        engine_kwargs["pool_recycle"] = settings.DATABASE_POOL_RECYCLE
    engine = create_engine(url, connect_args=connect_args, **engine_kwargs)
    if url.startswith("sqlite"):
        register_sqlite_functions(engine)
    return engine


# 쓰기 작업용 엔진 (Primary)
write_engine = create_db_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)
logger.info("Write engine configured.", extra={"url_type": "primary", "driver": write_engine.url.drivername})

# 읽기 작업용 엔진 (Secondary)
if settings.READ_DATABASE_URL:
    read_engine = create_db_engine(settings.READ_DATABASE_URL, echo=settings.DATABASE_ECHO)
    logger.info("Read engine configured.", extra={"url_type": "secondary", "driver": read_engine.url.drivername})
else:
    read_engine = write_engine

engine = write_engine

# 세션 팩토리 생성
WriteSessionLocal = sessionmaker(
    bind=write_engine,
    class_=Session,
    expire_on_commit=False,
    autoflush=False
)

ReadSessionLocal = sessionmaker(
    bind=read_engine,
    class_=Session,
    expire_on_commit=False,
    autoflush=False
)

Base = declarative_base()


# 쓰기 작업용 세션 (CUD 작업)
def get_write_db():
    session = WriteSessionLocal()
    try:
        yield session
    except Exception as e:
        logger.error("Error in get_write_db session context.", extra={"error": str(e)}, exc_info=True)
        session.rollback()
        raise
    finally:
        session.close()


# 읽기 작업용 세션 (R 작업)
def get_read_db():
    session = ReadSessionLocal()
    try:
        yield session
    except Exception as e:
        logger.error("Error in get_read_db session context.", extra={"error": str(e)}, exc_info=True)
        raise
    finally:
        session.close()


def init_db(bind=None):
    """테이블이 없으면 생성"""
    # 모델 등록을 위해 import
    from category_hierarchy import models  # noqa: F401

    Base.metadata.create_all(bind=bind or write_engine, checkfirst=True)
