import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from sqlalchemy import text

from category_hierarchy.api.api import api_router
from category_hierarchy.config.database import WriteSessionLocal, init_db
from category_hierarchy.config.logging import setup_logging
from category_hierarchy.core.config import settings

# --- 1. 로깅 설정 (가장 먼저) ---
setup_logging()
logger = logging.getLogger(__name__)

# --- 2. OpenTelemetry (OTEL_ENABLED 인 경우만) ---
if settings.OTEL_ENABLED:
    from category_hierarchy.config.otel import instrument_fastapi_app, setup_telemetry
    setup_telemetry()

tracer = trace.get_tracer("category_hierarchy.main")


@asynccontextmanager
async def lifespan(app_instance: FastAPI):
    """애플리케이션 생명주기 관리 with OTel Tracing"""
    with tracer.start_as_current_span("app.lifespan.startup") as startup_span:
        try:
            with tracer.start_as_current_span("app.lifespan.startup.db_setup") as db_setup_span:
                init_db()
                logger.info("Tables created or already exist.", extra={"checkfirst": True})
                db_setup_span.set_status(Status(StatusCode.OK))
            startup_span.set_status(Status(StatusCode.OK))
            logger.info("Application startup sequence completed.")
        except Exception as e:
            logger.error("Critical error during application startup", extra={"error": str(e)}, exc_info=True)
            startup_span.record_exception(e)
            startup_span.set_status(Status(StatusCode.ERROR, "Critical startup failure"))
            raise

    yield

    logger.info("Application shutdown sequence completed.")


# FastAPI 애플리케이션 생성
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="테넌트별 카테고리 계층 구조 API",
    version="1.0.0",
    lifespan=lifespan
)

# API 라우터 등록
app.include_router(api_router, prefix=settings.API_V1_STR)

if settings.OTEL_ENABLED:
    instrument_fastapi_app(app)


@app.get("/health/live")
def liveness():
    """Liveness probe - 컨테이너가 살아있는지 확인"""
    logger.debug("Liveness probe called")
    return {"status": "alive"}


@app.get("/health/ready")
def readiness():
    """Readiness probe - DB 연결 확인"""
    with tracer.start_as_current_span("app.health.readiness_check") as readiness_span:
        try:
            with WriteSessionLocal() as session:
                session.execute(text("SELECT 1"))
            readiness_span.set_status(Status(StatusCode.OK))
            return {"status": "ready", "details": {"database": "connected"}}
        except Exception as e:
            logger.error("Readiness: database connection failed", extra={"error": str(e)}, exc_info=True)
            readiness_span.record_exception(e)
            readiness_span.set_status(Status(StatusCode.ERROR, "database unavailable"))
            return JSONResponse(
                status_code=503,
                content={"status": "not ready", "details": {"database": "failed"}, "errors": [str(e)]}
            )


if __name__ == "__main__":
    uvicorn.run("category_hierarchy.main:app", host="0.0.0.0", port=8000, reload=False)
