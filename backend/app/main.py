"""
Factory Payroll API
FastAPI backend for employee records, overtime logging, absence deductions,
monthly salary processing and the dashboard.  State is kept in JSON files
under PAYROLL_DATA_DIR.
"""
import os
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.services.logging_config import setup_logging
from app.services.middleware import RequestTimingMiddleware
from app.services.state_store import StateStore
from app.services.webhook_client import WebhookClient

load_dotenv()

_log_level = os.getenv("LOG_LEVEL", "INFO")
_json_logs = os.getenv("LOG_FORMAT", "json").lower() != "text"
setup_logging(level=_log_level, json_output=_json_logs)
logger = logging.getLogger("payroll-api")

VERSION = "1.0.0"
DATA_DIR = Path(os.getenv("PAYROLL_DATA_DIR", "data")).expanduser()
SEED_DEMO_DATA = os.getenv("PAYROLL_SEED_DEMO", "").strip().lower() in {"1", "true", "yes", "on"}


@asynccontextmanager
async def lifespan(app: FastAPI):
    store: StateStore = app.state.store
    if not store.loaded:
        store.load()
        logger.info(f"Data directory: {store.data_dir}")
    yield


def create_app(
    store: Optional[StateStore] = None,
    webhook: Optional[WebhookClient] = None,
) -> FastAPI:
    app = FastAPI(
        title="Factory Payroll API",
        version=VERSION,
        description="Payroll, overtime and absence deduction management for factory staff",
        lifespan=lifespan,
    )
    app.state.store = store or StateStore(DATA_DIR, seed_demo=SEED_DEMO_DATA)
    app.state.webhook = webhook or WebhookClient()

    # -----------------------------------------------------------------------
    # CORS: allowed origins from env
    # -----------------------------------------------------------------------
    _cors_default = "http://localhost:3000,http://localhost:5173"
    cors_origins = [o.strip() for o in os.getenv("CORS_ORIGINS", _cors_default).split(",") if o.strip()]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Accept", "X-Requested-With", "X-Request-ID"],
    )
    # Outermost so it times everything else
    app.add_middleware(RequestTimingMiddleware)

    # Routers
    from app.api.employee_routes import router as employee_router
    from app.api.overtime_routes import router as overtime_router
    from app.api.absence_routes import router as absence_router
    from app.api.payroll_routes import router as payroll_router
    from app.api.dashboard_routes import router as dashboard_router
    from app.api.settings_routes import router as settings_router
    from app.api.cv_routes import router as cv_router

    app.include_router(employee_router)
    app.include_router(overtime_router)
    app.include_router(absence_router)
    app.include_router(payroll_router)
    app.include_router(dashboard_router)
    app.include_router(settings_router)
    app.include_router(cv_router)

    @app.get("/health")
    async def health_check():
        state = app.state.store.state
        return {
            "status": "active",
            "version": VERSION,
            "data_dir": str(app.state.store.data_dir) if app.state.store.data_dir else None,
            "employees": len(state.employees),
            "webhook_configured": bool(state.settings.google_sheets_url),
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run("app.main:app", host="0.0.0.0", port=port, reload=False)
