import logging
import os
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from vidproxy.api import health, download
from vidproxy.api.deps import get_locator
from vidproxy.config.settings import config, CONFIG_PATH
from vidproxy.core.logging import setup_logging
from vidproxy.core.security import RequestContextMiddleware, SecurityHeadersMiddleware
from vidproxy.core.state import state
from vidproxy.core.errors import ToolNotFoundError
from vidproxy.infra.redis import init_redis, close_redis
from vidproxy.services.cleanup import start_scheduler
from vidproxy.utils.locale import get_locale
from vidproxy.i18n import i18n

logger = logging.getLogger(__name__)

app = FastAPI(
    title=config.api.title,
    description=config.api.description,
    version=config.api.version,
    docs_url="/docs" if config.api.debug else None,
    redoc_url=None
)

# Middleware (last added runs first)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestContextMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.api.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes
app.include_router(health.router, tags=["Health"])
app.include_router(download.router, tags=["Download"])


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    locale = get_locale(request.headers.get("accept-language"))
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": i18n.get("error.invalid_request", locale=locale)},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    locale = get_locale(request.headers.get("accept-language"))
    if exc.status_code == 404:
        error = i18n.get("error.not_found", locale=locale)
    else:
        error = str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": error},
        headers=getattr(exc, "headers", None),
    )


@app.on_event("startup")
async def startup_event():
    setup_logging(config.logging)

    config_dir = os.path.dirname(CONFIG_PATH)
    if config_dir and not os.path.exists(config_dir):
        os.makedirs(config_dir, exist_ok=True)
    if not os.path.exists(CONFIG_PATH):
        config.save_to_file(CONFIG_PATH)

    os.makedirs(config.download.output_dir, exist_ok=True)

    # Warm the yt-dlp probe so /health can report it; requests retry on failure
    try:
        await get_locator().resolve()
    except ToolNotFoundError as e:
        logger.error(f"{e}")

    await init_redis()

    if config.cleanup.enabled:
        state.scheduler = start_scheduler(config)

    logger.info(f"{config.api.title} {config.api.version} started ({config.api.environment})")


@app.on_event("shutdown")
async def shutdown_event():
    if state.scheduler is not None:
        state.scheduler.shutdown(wait=False)
        state.scheduler = None
    await close_redis()
