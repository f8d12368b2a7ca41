from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings, settings
from .logging_config import setup_logging
from .routers import files, mount
from .services.change_notify import ChangeNotifier
from .services.file_ops import FileOps
from .services.mount_manager import CommandMounter, MountConfig, Mounter, MountManager
from .services.system_cmd import CommandRunner, RealCommandRunner

logger = logging.getLogger(__name__)

_SECURITY_HEADERS = {
    'X-Frame-Options': 'DENY',
    'X-Content-Type-Options': 'nosniff',
    'Referrer-Policy': 'strict-origin-when-cross-origin',
}


def _parse_cors_origins(value: str) -> list[str]:
    return [origin.strip() for origin in value.split(',') if origin.strip()]


def _apply_security_headers(response):
    for key, value in _SECURITY_HEADERS.items():
        response.headers[key] = value
    return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    cfg: Settings = app.state.settings
    setup_logging(cfg.log_level)
    logger.info('%s serving %s', cfg.app_name, cfg.mount_root)

    # The server accepts requests before the volume is attached.
    task = app.state.mount_manager.start_background()
    try:
        yield
    finally:
        await task


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse({'error': exc.detail}, status_code=exc.status_code, headers=exc.headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    reason = errors[0].get('msg', 'malformed input') if errors else 'malformed input'
    return JSONResponse({'error': f'Invalid request: {reason}'}, status_code=400)


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception('Unhandled error on %s %s', request.method, request.url.path, exc_info=exc)
    if request.url.path.startswith('/api/'):
        return JSONResponse({'error': 'Internal server error. Please try again.'}, status_code=500)
    return HTMLResponse('<h1>Unexpected error</h1>', status_code=500)


async def security_middleware(request: Request, call_next):
    response = await call_next(request)
    return _apply_security_headers(response)


def create_app(
    cfg: Settings | None = None,
    mounter: Mounter | None = None,
    runner: CommandRunner | None = None,
) -> FastAPI:
    cfg = cfg or settings
    runner = runner or RealCommandRunner(default_timeout=cfg.command_timeout_sec)
    mounter = mounter or CommandMounter(MountConfig.from_settings(cfg), runner)

    app = FastAPI(title=cfg.app_name, lifespan=lifespan)
    app.state.settings = cfg
    app.state.file_ops = FileOps(cfg.mount_root)
    app.state.mount_manager = MountManager(mounter, cfg.mount_root)
    app.state.notifier = ChangeNotifier(cfg.sync_marker_file, runner)

    cors_origins = _parse_cors_origins(cfg.cors_origins)
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials='*' not in cors_origins,
            allow_methods=['GET', 'POST', 'PUT', 'DELETE', 'OPTIONS'],
            allow_headers=['Content-Type'],
        )
    app.middleware('http')(security_middleware)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.get('/healthz')
    def healthz():
        return {'ok': True}

    app.include_router(files.router)
    app.include_router(mount.router)

    if Path(cfg.static_dir).is_dir():
        app.mount('/', StaticFiles(directory=cfg.static_dir, html=True), name='static')
    return app


app = create_app()


def run() -> None:
    level = settings.log_level.strip().lower()
    setup_logging(level)
    uvicorn.run(app, host=settings.app_host, port=settings.app_port, log_level=level)
