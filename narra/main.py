import asyncio
import logging
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from narra.config import settings
from narra.core.cache import AuthorizationCache
from narra.modules.auth import routes as auth_routes
from narra.modules.users import routes as users_routes
from narra.modules.webhooks import routes as webhooks_routes
from narra.modules.billing import routes as billing_routes
from narra.modules.plans import routes as plans_routes
from narra.modules.boards import routes as boards_routes
from narra.modules.profiles import routes as profiles_routes
from narra.modules.discovery import routes as discovery_routes
from narra.modules.admin import routes as admin_routes
from narra.modules.profiles.refresh_worker import refresh_scheduler_loop

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.rate_limit],
    enabled=settings.rate_limit_enabled,
)


class SecurityHeadersMiddleware:
    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message):
            if message["type"] == "http.response.start":
                message.setdefault("headers", [])
                message["headers"].extend([
                    (b"X-Content-Type-Options", b"nosniff"),
                    (b"X-Frame-Options", b"DENY"),
                    (b"X-XSS-Protection", b"1; mode=block"),
                ])
            await send(message)

        await self.app(scope, receive, send_with_headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    content = {"success": False, "error": exc.detail}
    redirect = getattr(exc, "redirect", None)
    if redirect:
        content["redirect"] = redirect
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "Invalid request", "details": jsonable_encoder(exc.errors())},
    )


async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception: %s", exc)
    if settings.is_production:
        return JSONResponse(status_code=500, content={"success": False, "error": "Internal server error"})
    return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        debug=settings.debug,
        redirect_slashes=False,
    )
    app.state.limiter = limiter
    app.state.auth_cache = AuthorizationCache(settings.auth_cache_ttl_seconds)
    app.state.scheduler_task = None

    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins_list(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include module routes
    app.include_router(auth_routes.router, prefix="/api/v1")
    app.include_router(users_routes.router, prefix="/api/v1")
    app.include_router(webhooks_routes.router, prefix="/api/v1")
    app.include_router(billing_routes.router, prefix="/api/v1")
    app.include_router(plans_routes.router, prefix="/api/v1")
    app.include_router(boards_routes.folders_router, prefix="/api/v1")
    app.include_router(boards_routes.router, prefix="/api/v1")
    app.include_router(profiles_routes.router, prefix="/api/v1")
    app.include_router(discovery_routes.router, prefix="/api/v1")
    app.include_router(discovery_routes.media_router, prefix="/api/v1")
    app.include_router(admin_routes.router, prefix="/api/v1")

    @app.on_event("startup")
    async def startup_event():
        logger.info("Application startup")
        if settings.refresh_scheduler_enabled:
            app.state.scheduler_task = asyncio.create_task(refresh_scheduler_loop())
            logger.info(
                f"Refresh scheduler started - retrying failed refreshes every "
                f"{settings.refresh_retry_interval_seconds} seconds"
            )

    @app.on_event("shutdown")
    async def shutdown_event():
        task = app.state.scheduler_task
        if task is not None:
            task.cancel()
        logger.info("Application shutdown")

    @app.get("/")
    async def root():
        return {"message": "Welcome to narra-backend", "status": "healthy"}

    @app.get("/health")
    @limiter.exempt
    async def health():
        return {"status": "healthy"}

    @app.get("/ready")
    @limiter.exempt
    async def ready():
        """Readiness probe: extend here with Supabase checks if needed."""
        cache: AuthorizationCache = app.state.auth_cache
        return {"status": "ready", "authCacheTtlSeconds": cache.ttl_seconds}

    return app


app = create_app()
