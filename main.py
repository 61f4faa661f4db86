from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from stylist_app.config import settings
from stylist_app.errors import AppError, RateLimitError, extract_error_info
from stylist_app.observability.logger import append_log
from stylist_app.api.v1 import admin, analysis, credits, edits, images, metrics

# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="AI stylist: photo analysis and generative edits built with FastAPI",
    debug=settings.debug
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Render service errors as {error, message, ...details}"""
    info = extract_error_info(exc)
    await append_log(
        "api.error",
        path=request.url.path,
        error=info["message"],
        code=info["code"],
        statusCode=info["status_code"],
    )
    headers = {}
    if isinstance(exc, RateLimitError):
        headers["Retry-After"] = str(exc.retry_after)
    return JSONResponse(
        status_code=info["status_code"],
        content={"error": info["code"], "message": info["message"], **info["details"]},
        headers=headers,
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    """Anything the services did not translate still answers with JSON"""
    info = extract_error_info(exc)
    await append_log(
        "api.error",
        path=request.url.path,
        error=info["message"],
        code=info["code"],
        statusCode=info["status_code"],
        errorType=type(exc).__name__,
    )
    return JSONResponse(
        status_code=info["status_code"],
        content={"error": info["code"], "message": info["message"]},
    )


@app.get("/")
def read_root():
    """Root endpoint with API information"""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc"
    }


@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "environment": settings.environment}


######## Include routers
app.include_router(images.router, prefix="/api")
app.include_router(analysis.router, prefix="/api")
app.include_router(edits.router, prefix="/api")
app.include_router(credits.router, prefix="/api")
app.include_router(metrics.router, prefix="/api")
app.include_router(admin.router, prefix="/api")

# Locally stored images (used when Cloudinary is not configured)
Path(settings.uploads_dir).mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=settings.uploads_dir), name="uploads")
