from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request

from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from streamcast.config import setup_logging
from streamcast.database import close_db, init_db
from streamcast.dependencies import build_services
from streamcast.exceptions import StreamCastError
from streamcast.schemas import ErrorDetail, StandardErrorResponse
from streamcast.utils.timezone import utcnow

from streamcast.routers import main_router


setup_logging()
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events"""
    logger.info("="*60)
    logger.info("Starting Stream Cast Service...")
    logger.info("="*60)

    try:
        # Initialize database
        logger.info("Initializing database...")
        session_factory = await init_db()
        logger.info("Database initialized successfully")

        app.state.services = build_services(session_factory)

        # Start scheduler
        logger.info("Starting scheduler...")
        app.state.services.scheduler.start()
        logger.info("Scheduler started successfully")

        logger.info("="*60)
        logger.info("Stream Cast Service started successfully")
        logger.info("="*60)
    except Exception as e:
        logger.error("="*60)
        logger.error(f"Failed to start Stream Cast Service: {e}", exc_info=True)
        logger.error("="*60)
        raise

    yield

    logger.info("="*60)
    logger.info("Shutting down Stream Cast Service...")
    logger.info("="*60)

    try:
        app.state.services.scheduler.shutdown()
    except Exception as e:
        logger.error(f"Error during scheduler shutdown: {e}", exc_info=True)

    await close_db()

    logger.info("="*60)
    logger.info("Stream Cast Service stopped")
    logger.info("="*60)


async def stream_cast_exception_handler(request: Request, exc: StreamCastError):
    """Render service errors as the standard error envelope"""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(f"{request.method} {request.url.path} -> {exc.code}: {exc.message}")

    response = StandardErrorResponse(
        timestamp=utcnow().isoformat(),
        retryable=exc.retryable,
        error=ErrorDetail(code=exc.code, message=exc.message, context=exc.context or None),
    )
    return JSONResponse(status_code=exc.status_code, content=response.model_dump())


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Log validation errors with details"""
    logger.error(f"Validation error for {request.method} {request.url.path}")
    logger.error(f"Validation details: {exc.errors()}")

    try:
        body = await request.body()
        logger.error(f"Request body: {body.decode('utf-8')}")

    except (ValueError, UnicodeDecodeError, RuntimeError):
        logger.error("Could not read request body")

    # Create a properly serializable error response
    errors = []
    for error in exc.errors():
        error_dict = {
            "type": error.get("type"),
            "loc": error.get("loc"),
            "msg": error.get("msg"),
            "input": str(error.get("input", ""))[:100]
        }
        errors.append(error_dict)

    return JSONResponse(
        status_code=422,
        content={
            "detail": errors
        }
    )


def create_app(*, lifespan_handler=lifespan) -> FastAPI:
    """Build the application; tests pass lifespan_handler=None and attach their own services"""
    application = FastAPI(
        title="Stream Cast Service",
        version="0.1.0",
        lifespan=lifespan_handler
    )
    application.include_router(main_router)
    application.add_exception_handler(StreamCastError, stream_cast_exception_handler)
    application.add_exception_handler(RequestValidationError, validation_exception_handler)
    return application


app = create_app()
