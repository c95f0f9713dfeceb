"""
app/main.py

Purpose: Application entry point

- Initializes FastAPI app
- Loads configuration and logging
- Builds the store, the LINE client and the bot context
- Registers API routes (webhook)
- No business logic should be written here
- Manages application lifecycle (startup/shutdown)
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from typing import Optional
import time

from app.core.config import Settings, settings, validate_settings
from app.core.errors import add_exception_handlers
from app.core.logging import setup_logging, get_logger, attach_audit_handler, detach_audit_handler
from app.db.mongo import connect_to_mongo, close_mongo_connection, check_database_health, MongoWorkbook
from app.db.indexes import create_indexes
from app.db.sheets import MemoryWorkbook, Workbook
from app.flow.context import BotContext
from app.schemas.response import HealthResponse
from app.services.line_service import LineService
from app.services.store_service import StoreService
from app.api import webhook

# Initialize logging first
setup_logging()
logger = get_logger(__name__)


async def open_workbook(config: Settings) -> Workbook:
    """
    Returns the sheet backend selected by STORAGE_BACKEND.
    """
    if config.STORAGE_BACKEND == "mongodb":
        logger.info("Connecting to MongoDB...")
        await connect_to_mongo()
        logger.info("✅ MongoDB connected")

        logger.info("Creating database indexes...")
        await create_indexes()
        logger.info("✅ Database indexes created")

        is_healthy = await check_database_health()
        if not is_healthy:
            logger.warning("⚠️ Database health check failed during startup")
        return MongoWorkbook()

    logger.warning("Using in-memory storage; data is lost on restart")
    return MemoryWorkbook()


async def build_bot_context(config: Settings, workbook: Optional[Workbook] = None, **line_kwargs) -> BotContext:
    """
    Builds the services shared by every handler call.

    Args:
        config: Application settings
        workbook: Sheet backend (defaults to the one selected by STORAGE_BACKEND)
        line_kwargs: Extra LineService arguments (transport, sleep)
    """
    workbook = workbook or await open_workbook(config)

    store = StoreService(workbook)
    await store.initialize()

    line = LineService.from_settings(config, **line_kwargs)
    return BotContext(store=store, line=line, settings=config)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info("🚀 Starting LINE registration bot...")
    audit_handler = None

    try:
        logger.info("Validating configuration...")
        validate_settings()
        logger.info("✅ Configuration validated")

        ctx = await build_bot_context(settings)
        app.state.bot_context = ctx

        if settings.AUDIT_LOG_ENABLED:
            audit_handler = attach_audit_handler(ctx.store)

        logger.info("🎉 LINE registration bot started successfully!")
        logger.info(f"Environment: {settings.ENVIRONMENT}")
        logger.info(f"Storage: {settings.STORAGE_BACKEND}")
        logger.info(f"Debug Mode: {settings.DEBUG}")

    except Exception as e:
        logger.critical(f"Failed to start application: {str(e)}", exc_info=True)
        raise

    yield  # Application runs here

    # Shutdown
    logger.info("🛑 Shutting down LINE registration bot...")

    try:
        if audit_handler is not None:
            await audit_handler.flush_pending()
            detach_audit_handler(audit_handler)

        await app.state.bot_context.line.close()
        logger.info("✅ LINE client closed")

        if settings.STORAGE_BACKEND == "mongodb":
            await close_mongo_connection()
            logger.info("✅ MongoDB connection closed")

        logger.info("👋 LINE registration bot shut down successfully")

    except Exception as e:
        logger.error(f"Error during shutdown: {str(e)}", exc_info=True)


# Create FastAPI app with lifespan
app = FastAPI(
    title="LINE Registration Bot",
    description="LINE webhook bot with a conversational registration flow",
    version="1.0.0",
    lifespan=lifespan,
    debug=settings.DEBUG,
    docs_url="/docs" if settings.is_development else None,  # Disable docs in production
    redoc_url="/redoc" if settings.is_development else None,
)


# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request timing middleware
@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add processing time header to all responses."""
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)

    # Long-message pushes are paced, so only warn well past that
    if process_time > 10.0:
        logger.warning(
            f"Slow request detected: {request.method} {request.url.path}",
            extra={"process_time": process_time}
        )

    return response


add_exception_handlers(app)


# Register API routes
app.include_router(webhook.router, prefix=settings.API_PREFIX, tags=["Webhook"])


# Root endpoint
@app.get("/", tags=["Health"], response_model=HealthResponse)
async def root():
    """Root endpoint - basic info."""
    return HealthResponse()


# Health check endpoint
@app.get("/health", tags=["Health"], response_model=HealthResponse)
async def health_check():
    """
    Liveness check. Never touches the store or the LINE API.
    """
    return HealthResponse()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_level=settings.LOG_LEVEL.lower()
    )
