"""
Listing Image Service - FastAPI Application
Main application entry point with routers, middleware and static uploads
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException
from contextlib import asynccontextmanager

from app.routers import listing_images
from app.config import get_settings
from app.services import filename_codec
from app.services.local_storage import ListingImageStorage

settings = get_settings()

# The listings directory must exist before the static mount is created
ListingImageStorage(settings.listings_path, settings.public_url_prefix).ensure_directory()


class ListingImageFiles(StaticFiles):
    """Static files restricted to listing image names; anything else is 404."""

    async def get_response(self, path: str, scope):
        # Stray files and repair scratch directories stay private
        if filename_codec.decode(path) is None:
            raise HTTPException(status_code=404)
        return await super().get_response(path, scope)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown events."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    print("[START] Starting Listing Image Service API...")
    print(f"[OK] Listing images stored in {settings.listings_path}")
    yield
    # Shutdown
    print("[STOP] Shutting down...")


app = FastAPI(
    title=settings.app_name,
    description="""
    ## Listing Image Service API

    Upload and serve the photos attached to property listings:
    - Multi-image upload (JPEG, PNG, WebP; up to 20 files of 5MB each)
    - Deterministic file names: `img.<userIdHex>.<listingCode>.<NN>.<ext>`
    - Storage quota on the listings directory
    - Placeholder redirect for missing images

    ### Authentication
    Send the JWT issued by the account service in the Authorization header:
    ```
    Authorization: Bearer <your-token>
    ```
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, restrict to specific origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(listing_images.router, prefix="/api")

# Public image paths returned by the upload endpoint
app.mount(
    settings.public_url_prefix,
    ListingImageFiles(directory=str(settings.listings_path)),
    name="listing-uploads"
)


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": settings.app_name,
        "version": "1.0.0",
        "docs": "/docs",
        "redoc": "/redoc",
        "health": "/healthz"
    }


@app.get("/healthz")
async def health():
    """Health check endpoint."""
    return {"ok": True, "status": "healthy"}


@app.get("/api")
async def api_info():
    """API information endpoint."""
    return {
        "name": settings.app_name,
        "version": "1.0.0",
        "endpoints": {
            "upload": "/api/listing-images/upload-multiple",
            "listing_code": "/api/listing-images/generate-listing-code",
            "images": "/api/listing-images/{userIdHex}/{listingCode}/{filename}",
            "static": f"{settings.public_url_prefix}/{{filename}}"
        }
    }
