import logging
import traceback
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from app.config.config import settings
from app.db.session import engine, AsyncSessionLocal
from app.api.dependencies import get_db
from app.api.v1 import router as api_router
from app.core.settings_service import CardPolicyService
from app.task.card_sweep import CardDeactivationSweep

logger = logging.getLogger("uvicorn")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup & Shutdown lifespan events."""
    # -------- STARTUP --------
    logger.info("Starting FastAPI application...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    app.state.card_sweep = None

    try:
        async with engine.begin() as conn:
            await conn.run_sync(lambda _: None)

        logger.info("Database connection established successfully.")

        # Make sure the singleton card policy row exists
        async with AsyncSessionLocal() as db:
            policy = await CardPolicyService.get_policy(db, use_cache=False)

        logger.info(
            f"Card policy loaded (validity: {policy.card_validity_days} days)."
        )

        if settings.CARD_SWEEP_ENABLED:
            try:
                sweep = CardDeactivationSweep(
                    session_factory=AsyncSessionLocal,
                    tz=settings.clinic_tz,
                    catch_up_on_startup=settings.CARD_SWEEP_CATCH_UP_ON_STARTUP,
                )
                await sweep.start()
                app.state.card_sweep = sweep
                logger.info("=" * 60)
                logger.info("CARD DEACTIVATION SWEEP STARTED")
                logger.info(f"   - Runs at every midnight ({settings.CLINIC_TIMEZONE})")
                logger.info(
                    f"   - Catch-up on startup: {settings.CARD_SWEEP_CATCH_UP_ON_STARTUP}"
                )
                logger.info("   - Status: RUNNING")
                logger.info("=" * 60)
            except Exception as e:
                logger.error("=" * 60)
                logger.error(f"FAILED TO START CARD SWEEP: {e}")
                logger.error("=" * 60)
                logger.error(traceback.format_exc())
                logger.warning("Application will continue without the card sweep")
        else:
            logger.info("Card sweep disabled by configuration")

        logger.info("=" * 60)
        logger.info("Application startup complete")
        logger.info("=" * 60)

    except Exception as e:
        logger.error(f"Startup initialization failed: {e}")
        logger.error(traceback.format_exc())
        logger.error("Application may not function correctly")

    yield

    # -------- SHUTDOWN --------
    logger.info("=" * 60)
    logger.info("Shutting down application...")
    logger.info("=" * 60)

    try:
        sweep = app.state.card_sweep
        if sweep:
            logger.info("Stopping card sweep...")
            await sweep.stop()
            app.state.card_sweep = None
            logger.info("Card sweep stopped successfully")
        else:
            logger.info("No card sweep to stop")
    except Exception as e:
        logger.error(f"Error stopping card sweep: {e}")
        logger.error(traceback.format_exc())

    await engine.dispose()
    logger.info("Database engine disposed")
    logger.info("Shutdown complete")


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        lifespan=lifespan,
    )
    app.state.card_sweep = None

    # ---------------------- EXCEPTION HANDLER ----------------------
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        logger.error(f"Unhandled Error: {trace}")

        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error",
                "error": (
                    str(exc) if settings.ENVIRONMENT != "production" else "Server error"
                ),
            },
        )

    # ---------------------- HTTPS REDIRECT ----------------------
    @app.middleware("http")
    async def https_redirect(request: Request, call_next):
        if settings.ENVIRONMENT == "production":
            if request.headers.get("x-forwarded-proto") == "http":
                return RedirectResponse(str(request.url.replace(scheme="https")))
        return await call_next(request)

    # ---------------------- CORS ----------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000, compresslevel=6)

    # ---------------------- ROUTES ----------------------
    app.include_router(api_router, prefix=settings.API_PREFIX)

    # ---------------------- HEALTH CHECK ----------------------
    @app.get("/health")
    async def health_check(request: Request, db: AsyncSession = Depends(get_db)):
        try:
            await db.execute(text("SELECT 1"))

            sweep = request.app.state.card_sweep
            sweep_status = {
                "initialized": sweep is not None,
                "running": sweep.running if sweep else False,
            }

            return {
                "status": "healthy",
                "environment": settings.ENVIRONMENT,
                "database": "connected",
                "card_sweep": sweep_status,
            }
        except Exception as e:
            logger.error(f"Health check failed: {e}", exc_info=True)
            return JSONResponse(
                status_code=503,
                content={
                    "status": "unhealthy",
                    "database": "disconnected",
                    "error": str(e)
                }
            )

    @app.get("/")
    async def root(request: Request):
        sweep = request.app.state.card_sweep

        return {
            "name": settings.PROJECT_NAME,
            "environment": settings.ENVIRONMENT,
            "version": settings.VERSION,
            "card_sweep": {
                "active": sweep.running if sweep else False,
                "initialized": sweep is not None
            }
        }

    return app


app = create_app()
