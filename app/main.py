"""FastAPI application entry point."""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.errors import InsufficientBalance, ParkSarthiError, StoreUnavailable, ValidationError
from app.database import init_db
from app.api.chat import router as chat_router
from app.api.wallet import router as wallet_router, rewards_router
from app.services import cache
from app.services.sessions import SessionStore

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.debug else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    debug=settings.debug
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# One session store per process, shared by all chat requests
app.state.session_store = SessionStore.from_settings(settings)


@app.on_event("startup")
async def startup_event():
    """Initialize services on startup."""
    logger.info("Starting up Park Sarthi API...")
    logger.info(f"APP_ENV={settings.app_env} (is_prod={settings.is_prod})")

    # Prod: require Gemini API key (fail fast)
    if settings.is_prod and not settings.gemini_api_key:
        raise RuntimeError("GEMINI_API_KEY is required when APP_ENV=prod. Set it in .env or environment.")
    if not settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY not set. Assistant will answer with the fallback reply.")
    else:
        logger.info(f"LLM: Gemini (model: {settings.llm_model})")

    # Initialize database
    try:
        init_db()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")

    if settings.cache_enabled:
        if cache.is_available():
            logger.info("Cache enabled (Redis available)")
        else:
            logger.warning("Cache enabled but Redis not available, continuing without cache")
    else:
        logger.info("Cache disabled (CACHE_ENABLED=false)")

    app.state.session_store.start_sweeper()


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    logger.info("Shutting down...")
    await app.state.session_store.stop_sweeper()


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.app_version,
        "service": settings.app_name
    }


# Include API routers
app.include_router(wallet_router, prefix="/api/wallet", tags=["Wallet"])
app.include_router(rewards_router, prefix="/api/rewards", tags=["Wallet"])
app.include_router(chat_router, prefix="/api/chat", tags=["Chat"])


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"message": exc.message})


@app.exception_handler(InsufficientBalance)
async def insufficient_balance_handler(request: Request, exc: InsufficientBalance):
    return JSONResponse(status_code=400, content={"message": exc.message})


@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
    """Retryable: nothing was written."""
    return JSONResponse(status_code=503, content={"message": exc.message}, headers={"Retry-After": "5"})


@app.exception_handler(ParkSarthiError)
async def service_error_handler(request: Request, exc: ParkSarthiError):
    logger.error(f"Unhandled service error: {exc}")
    return JSONResponse(status_code=500, content={"message": exc.message})


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler - never expose stack traces."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"message": "An internal error occurred. Please try again later."}
    )
