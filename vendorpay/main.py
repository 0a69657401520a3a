from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from vendorpay.config import get_settings
from vendorpay.logging_config import REQUEST_ID_HEADER, configure_logging, request_id_scope
from vendorpay.routes.api import api_router
from vendorpay.services.date_engine import local_now
from vendorpay.services.execution_runner import run_due_executions_once_per_day_if_ready

configure_logging()
logger = logging.getLogger(__name__)


def _startup_jobs_enabled() -> bool:
    raw = os.getenv("RUN_STARTUP_JOBS", "1").strip().lower()
    return raw in {"1", "true", "yes", "on"}


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting VendorPay application")
    if _startup_jobs_enabled():
        guarded_run = run_due_executions_once_per_day_if_ready(now=local_now(get_settings().timezone))
        if guarded_run is not None:
            if guarded_run.ran and guarded_run.run_result is not None:
                logger.info(
                    "Due executions startup daily run completed executed=%s conflicts=%s errors=%s",
                    guarded_run.run_result.executed_count,
                    guarded_run.run_result.conflict_count,
                    guarded_run.run_result.error_count,
                )
            else:
                logger.info("Due executions startup daily run skipped (already ran today)")
    else:
        logger.info("Startup jobs disabled for this container role")
    yield
    logger.info("Shutting down VendorPay application")


def create_app() -> FastAPI:
    app = FastAPI(title="VendorPay", version="0.1.0", lifespan=lifespan)

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        with request_id_scope(request.headers.get(REQUEST_ID_HEADER)) as request_id:
            response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    app.include_router(api_router, prefix="/api")
    return app


app = create_app()


def run() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run("vendorpay.main:app", host=settings.app_host, port=settings.app_port)
