# app/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pymongo.errors import OperationFailure, NetworkTimeout

from app.middleware.rate_limit import setup_rate_limit
from core.errors import BaseError, InvalidTransitionError
from core.logging.setup import setup_logging
from infrastructure.database.indexes import create_indexes
from routes.v1 import orders, notifications

logger = logging.getLogger(__name__)

app = FastAPI(
    title="ElSoug Marketplace API",
    description="Order lifecycle, pricing and notifications for the ElSoug marketplace",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)


@app.exception_handler(BaseError)
async def base_error_handler(request: Request, exc: BaseError):
    content = {"message": exc.detail}
    if isinstance(exc, InvalidTransitionError):
        content.update(current_status=exc.current_status, requested_status=exc.requested_status)
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


setup_rate_limit(app)


def initialize_app():
    """Initialize application components."""
    try:
        setup_logging(app)
        logger.info("Logging setup completed")

        try:
            create_indexes()
            logger.info("Database indexes created successfully")
        except OperationFailure as of:
            logger.error(f"Failed to create database indexes: {str(of)}", exc_info=True)
            raise RuntimeError(f"Database index creation failed: {str(of)}")
        except NetworkTimeout as nt:
            logger.error(f"Network timeout creating indexes: {str(nt)}", exc_info=True)
            raise RuntimeError(f"Database connection timeout: {str(nt)}")

    except RuntimeError as re:
        logger.critical(f"Application initialization failed: {str(re)}", exc_info=True)
        raise
    except Exception as e:
        logger.critical(f"Unexpected error during initialization: {str(e)}", exc_info=True)
        raise RuntimeError(f"Unexpected initialization error: {str(e)}")


@app.get("/", summary="Root endpoint", description="Returns a welcome message")
async def root():
    return {"message": "Welcome to ElSoug Marketplace API"}


app.include_router(orders.router, prefix="/v1/orders", tags=["Orders"])
app.include_router(notifications.router, prefix="/v1/notifications", tags=["Notifications"])

if __name__ == "__main__":
    initialize_app()
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
