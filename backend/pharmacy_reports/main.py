from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pharmacy_reports.config import settings
from pharmacy_reports.core.database import Base, engine
from pharmacy_reports.core.logging_config import get_logger, setup_logging
from pharmacy_reports.data.catalog import DEFAULT_CATALOG
from pharmacy_reports.api.analytics import router as analytics_router
from pharmacy_reports.api.auth import router as auth_router
from pharmacy_reports.api.reports import router as reports_router
import pharmacy_reports.models  # noqa: F401  registers tables on Base.metadata

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(
        "Tables checked/created; catalog: %s pharmacies, %s services",
        len(DEFAULT_CATALOG.pharmacies),
        len(DEFAULT_CATALOG.services),
    )
    if not settings.anthropic_api_key:
        logger.warning("ANTHROPIC_API_KEY not set: summary emails will use fallback text")
    yield
    await engine.dispose()


app = FastAPI(title="Pharmacy Weekly Reports", version="1.0.0", lifespan=lifespan)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error: %s", exc)
    detail = "Internal server error"
    err_str = str(exc).lower()
    if "duplicate key" in err_str or "unique constraint" in err_str:
        detail = "Data conflict (duplicate). Refresh and try again."
    elif "column" in err_str and "does not exist" in err_str:
        detail = "Database schema is out of date. Restart the service."
    return JSONResponse(
        status_code=500,
        content={"detail": detail},
    )


def _cors_origins() -> list:
    origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    return origins or ["*"]


app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


app.include_router(auth_router)
app.include_router(reports_router)
app.include_router(analytics_router)


@app.get("/health")
def health():
    return {"status": "ok"}
