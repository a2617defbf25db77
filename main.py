from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from datetime import datetime
import logging

from core.config import settings
from core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from core.exceptions import BaseCustomException
from core.response import error_response
from database.connection import create_tables
from routers import subcategory

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Catalog Admin API",
    description="Admin API for managing the nested subcategory hierarchy of the product catalog",
    version="1.0.0"
)


def _error_json(request: Request, status_code: int, message: str, error_code: str, details=None):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(f"{error_code} [{request_id}] on {request.method} {request.url.path}: {message}")
    return JSONResponse(
        status_code=status_code,
        content=error_response(message=message, error_code=error_code, details=details)
    )


@app.exception_handler(BaseCustomException)
async def catalog_exception_handler(request: Request, exc: BaseCustomException):
    """Domain errors raised by the services"""
    return _error_json(request, exc.status_code, exc.message, exc.__class__.__name__, exc.details)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies and query parameters, one entry per offending field"""
    errors = [
        {"field": '.'.join(str(x) for x in error['loc']), "message": error['msg'], "type": error['type']}
        for error in exc.errors()
    ]
    return _error_json(request, 422, "Request validation failed", "VALIDATION_ERROR", {"errors": errors})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "HTTP error occurred"
    return _error_json(request, exc.status_code, message, "HTTP_ERROR", {"status_code": exc.status_code})


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.exception(f"Unexpected error [{request_id}] on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content=error_response(
            message="An unexpected error occurred. Please try again.",
            error_code="INTERNAL_SERVER_ERROR",
            details={"request_id": request_id}
        )
    )


# CORS first so preflight requests are answered
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["*"],
)

# Order matters - first added is executed last
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)

# Include routers
app.include_router(subcategory.router, prefix="/api/subcategories", tags=["Subcategories"])


# Create database tables on startup
@app.on_event("startup")
async def startup_event():
    """Initialize the application on startup."""
    try:
        logger.info(f"Starting up Catalog Admin API ({settings.ENVIRONMENT})...")
        create_tables()
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Failed to start application: {str(e)}")
        raise


@app.get("/")
def root():
    """Root endpoint for API health check."""
    return {
        "message": "Welcome to Catalog Admin API",
        "status": "healthy",
        "version": "1.0.0"
    }


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat()
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
