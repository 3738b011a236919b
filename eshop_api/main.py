"""
Main FastAPI application
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from eshop_api.config import settings
from eshop_api.exceptions import ServiceError
from eshop_api.logger import setup_logging
from eshop_api.routers import api_router, payment_router
from eshop_api.utils.database import create_tables
from eshop_api.utils.helpers import response, settings_cache

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="E-commerce API for the eshop mobile and web clients"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=settings.allowed_methods,
    allow_headers=settings.allowed_headers,
)


@app.on_event("startup")
async def startup_event():
    """Configure logging and create database tables on startup"""
    setup_logging()
    create_tables()


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    logger.info(f"{request.url.path} rejected: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=response(True, exc.message, exc.data))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content=response(True, "Something went wrong. Please try again."))


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}


@app.get("/admin/cache-stats")
async def cache_stats():
    return response(False, "Cache statistics", settings_cache.stats())


@app.post("/admin/clear-cache")
async def clear_cache():
    cleared = settings_cache.clear()
    logger.info(f"Settings cache cleared ({cleared} keys)")
    return response(False, "Cache cleared successfully", {"cleared": cleared})


app.include_router(api_router)
app.include_router(payment_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
