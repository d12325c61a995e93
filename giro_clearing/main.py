from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
import logging

# Import database components
from giro_clearing.database.database import sync_engine, Base

# Import routers
from giro_clearing.modules.giros.router import giros_router
from giro_clearing.modules.giros.exceptions import GiroError

# Import models for table creation
import giro_clearing.modules.giros.models

from giro_clearing.core.config import settings

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# FastAPI app
app = FastAPI(
    title="Giro Clearing API",
    description="Giro registration and partial clearing reconciliation",
    version="1.0.0",
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None
)

app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Add your frontend URLs
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(giros_router)


@app.exception_handler(GiroError)
async def giro_error_handler(request: Request, exc: GiroError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})


@app.get("/")
async def read_root():
    return {
        "message": "Giro Clearing API is running",
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy", "environment": settings.ENVIRONMENT}


@app.on_event("startup")
async def startup_event():
    logger.info("Giro Clearing API starting up...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug mode: {settings.DEBUG}")

    # Create database tables (only for development - use migrations in production)
    if settings.ENVIRONMENT == "development":
        Base.metadata.create_all(bind=sync_engine)


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Giro Clearing API shutting down...")


# Development entry point; deployments run `uvicorn giro_clearing.main:app`
if __name__ == "__main__":
    import uvicorn

    uvicorn.run("giro_clearing.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
