from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
import logging

from tutorhub.api.v1.endpoints import payments
from tutorhub.core.config import settings
from tutorhub.core.exceptions import TutorHubError
from tutorhub.db.supabase import test_connection

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

HTTP_CATEGORIES = {
    400: "invalid_input",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    409: "conflict",
    422: "invalid_input",
}

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    logger.info(f"Starting {settings.PROJECT_NAME} API...")
    if await test_connection():
        logger.info("Supabase connection established")
    else:
        logger.error("Supabase connection failed")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.PROJECT_NAME} API...")

# Initialize FastAPI app
app = FastAPI(
    title=f"{settings.PROJECT_NAME} API",
    description="Tutorial center administration: billing records and installment payments",
    version=settings.VERSION,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc"
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Error responses all share one shape: {"detail", "category", "code"}
@app.exception_handler(TutorHubError)
async def tutorhub_error_handler(request: Request, exc: TutorHubError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.detail,
            "category": HTTP_CATEGORIES.get(exc.status_code, "internal" if exc.status_code >= 500 else "error"),
            "code": f"HTTP_{exc.status_code}",
        },
        headers=getattr(exc, "headers", None),
    )

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    fields = [".".join(str(p) for p in err.get("loc", ())[1:]) for err in errors]
    message = "Invalid or missing fields: " + ", ".join(f for f in fields if f) if fields else "Invalid request"
    return JSONResponse(
        status_code=422,
        content={
            "detail": message,
            "category": "invalid_input",
            "code": "VALIDATION_ERROR",
            "errors": [{"loc": list(err.get("loc", ())), "msg": err.get("msg")} for err in errors],
        },
    )

# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT
    }

# Include API routers
app.include_router(payments.router, prefix=f"{settings.API_V1_PREFIX}/payments", tags=["Payments"])

@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": f"{settings.PROJECT_NAME} API",
        "docs": "/api/docs",
        "version": settings.VERSION
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "tutorhub.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.ENVIRONMENT == "development"
    )
