import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from storegate import __version__
from storegate.api import api_router
from storegate.config import Settings, get_settings
from storegate.database import close_db, create_engine, create_session_maker, init_db
from storegate.middleware.security import SecurityHeadersMiddleware
from storegate.services.policy import PolicyConfig, RateLimitPolicy
from storegate.services.tokens import TokenIssuer
from storegate.utils.time import utcnow


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    engine = create_engine(app.state.settings.database_url)
    app.state.engine = engine
    app.state.session_maker = create_session_maker(engine)
    await init_db(engine)
    yield
    # Shutdown
    await close_db(engine)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "message": "Invalid request",
            "errors": jsonable_encoder(exc.errors()),
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Internal server error"},
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application. Run with ``uvicorn storegate.main:create_app --factory``."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="Storegate",
        description="Login attempt and IP reputation gate",
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    app.state.settings = settings
    app.state.policy = RateLimitPolicy(PolicyConfig.from_settings(settings))
    app.state.clock = utcnow
    # Tokens expire against the same clock the gate uses
    app.state.token_issuer = TokenIssuer.from_settings(settings, clock=lambda: app.state.clock())
    app.state.sleep = asyncio.sleep

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.add_middleware(SecurityHeadersMiddleware)

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST"],
            allow_headers=["Authorization", "Content-Type"],
        )

    app.include_router(api_router, prefix="/api")

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "ok", "version": __version__}

    return app
