from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from api.v1 import otp
from api.dependencies import get_otp_store
from core.config import settings
from core.errors import OtpError, StoreError
from db import session as sql_session
from db.base import initialize_database
from db.mongodb import init_mongo_indexes, close_mongo_client
from utils.logging_config import configure_logging, RequestContextMiddleware
from utils.responses import no_store_json

# Configure logging with date-based files and TTL retention
logger = configure_logging("otp_service")

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG
)

@app.exception_handler(OtpError)
async def otp_error_handler(request: Request, exc: OtpError):
    if isinstance(exc, StoreError):
        logger.error(f"Store error at {request.url.path}: {exc}")
    else:
        logger.info(f"{type(exc).__name__} at {request.url.path}: {exc.message}")
    return no_store_json(exc.to_content(), status_code=exc.status_code)

# Global exception handler to ensure 500s for unexpected errors
@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error at {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})

# Add logging context middleware to capture the API path
app.add_middleware(RequestContextMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(otp.router, tags=["OTP"])

@app.on_event("startup")
async def startup_db_client():
    """Initialize the configured store"""
    try:
        if settings.USE_MONGO:
            await init_mongo_indexes()
            logger.info("Mongo indexes ensured")
        else:
            await initialize_database()
            logger.info("SQL database initialized")
    except Exception as e:
        logger.warning(f"Store init skipped or failed: {e}")
    logger.info("Application startup complete")

@app.on_event("shutdown")
async def shutdown_db_client():
    """Application shutdown"""
    if settings.USE_MONGO:
        close_mongo_client()
        logger.info("Closed Mongo client")
    elif sql_session.engine is not None:
        try:
            await sql_session.engine.dispose()
            logger.info("Disposed SQL engine")
        except Exception as e:
            logger.warning(f"Engine dispose failed: {e}")
    logger.info("Application shutdown complete")

@app.get("/")
async def root():
    return {"message": settings.APP_NAME, "version": settings.VERSION}

@app.get("/health")
async def health_check():
    # Actively check store connectivity according to config
    database = "mongo" if settings.USE_MONGO else "sql"
    try:
        await get_otp_store().ping()
    except StoreError as e:
        logger.warning(f"Health {database} check failed: {e}")
        return {"status": "degraded", "database": f"{database}_unavailable"}
    return {"status": "healthy", "database": f"{database}_connected"}
