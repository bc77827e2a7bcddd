"""Per-service audit trail: one line per request, written to ``<log_dir>/<service>.log``."""
from __future__ import annotations

import logging
from pathlib import Path
from time import perf_counter

from fastapi import FastAPI, Request

from .config import get_settings

AUDIT_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"


def audit_log_path(service_name: str) -> Path:
    directory = Path(get_settings().log_dir)
    if not directory.is_absolute():
        directory = Path(__file__).resolve().parent.parent / directory
    directory.mkdir(parents=True, exist_ok=True)
    return directory / f"{service_name}.log"


def get_audit_logger(service_name: str) -> logging.Logger:
    logger = logging.getLogger(f"audit.{service_name}")
    if not logger.handlers:
        handler = logging.FileHandler(audit_log_path(service_name))
        handler.setFormatter(logging.Formatter(AUDIT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger


def describe_caller(request: Request) -> str:
    user_id = request.headers.get("x-user-id")
    if user_id:
        return f"user:{user_id}"
    if request.headers.get("authorization", "").lower().startswith("bearer "):
        return "bearer"
    return "anonymous"


def add_audit_middleware(app: FastAPI, service_name: str) -> None:
    audit = get_audit_logger(service_name)

    @app.middleware("http")
    async def audit_request(request: Request, call_next):  # type: ignore[override]
        started = perf_counter()
        response = await call_next(request)
        elapsed_ms = (perf_counter() - started) * 1000
        # 4xx and 5xx responses log at WARNING.
        level = logging.WARNING if response.status_code >= 400 else logging.INFO
        audit.log(
            level,
            "%s %s | status=%s | caller=%s | client=%s | duration=%.2fms",
            request.method,
            request.url.path,
            response.status_code,
            describe_caller(request),
            request.client.host if request.client else "unknown",
            elapsed_ms,
        )
        return response
