from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import DEFAULT_DATA_ROOT, settings
from .routers import fs

logger = logging.getLogger('botfs')

_SECURITY_HEADERS = {
    'X-Frame-Options': 'DENY',
    'X-Content-Type-Options': 'nosniff',
    'Referrer-Policy': 'no-referrer',
    'Cache-Control': 'no-store',
}


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )


def _parse_cors_origins(value: str) -> list[str]:
    return [origin.strip() for origin in value.split(',') if origin.strip()]


@asynccontextmanager
async def lifespan(_app: FastAPI):
    data_root = Path(settings.data_root.strip() or DEFAULT_DATA_ROOT)
    (data_root / 'bots').mkdir(mode=settings.dir_mode, parents=True, exist_ok=True)
    logger.info('serving bot filesystems from %s', data_root.absolute())
    yield


app = FastAPI(title=settings.app_name, lifespan=lifespan)

cors_origins = _parse_cors_origins(settings.cors_origins)
if cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=['GET', 'POST', 'DELETE', 'OPTIONS'],
        allow_headers=['Authorization', 'Content-Type'],
    )


def _apply_security_headers(response):
    for key, value in _SECURITY_HEADERS.items():
        response.headers[key] = value
    return response


@app.middleware('http')
async def security_headers_middleware(request: Request, call_next):
    response = await call_next(request)
    return _apply_security_headers(response)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {'loc': list(err.get('loc', ())), 'msg': err.get('msg', '')}
        for err in exc.errors()
    ]
    return _apply_security_headers(JSONResponse({'detail': errors}, status_code=400))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error('unhandled error on %s %s', request.method, request.url.path, exc_info=exc)
    return _apply_security_headers(
        JSONResponse({'detail': 'Internal server error. Please try again.'}, status_code=500)
    )


@app.get('/healthz')
def healthz():
    return {'ok': True}


app.include_router(fs.router)


def run() -> None:
    _configure_logging(settings.log_level)
    uvicorn.run(app, host=settings.app_host, port=settings.app_port, log_level=settings.log_level)
