"""
Listing Image Service - Listing Images Router
API endpoints for uploading and serving listing images
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import FileResponse, RedirectResponse
from starlette.concurrency import run_in_threadpool

from app.config import Settings, get_settings
from app.deps.auth import CurrentUser, get_current_user
from app.schemas.listing_image import ListingCodeResponse, UploadResponse
from app.services import filename_codec
from app.services.errors import ImageUploadError, TooManyFiles
from app.services.intake import ImagePart, ListingImageIntake
from app.services.local_storage import ListingImageStorage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/listing-images", tags=["listing-images"])


def get_listing_storage(settings: Settings = Depends(get_settings)) -> ListingImageStorage:
    """Image storage rooted at the configured listings directory."""
    return ListingImageStorage(settings.listings_path, settings.public_url_prefix)


async def _read_parts(images: List[UploadFile], settings: Settings) -> List[ImagePart]:
    """
    Pull the uploaded parts into memory.

    A part is read at most one byte past the size ceiling; that is enough
    for the intake to reject it without buffering the rest.
    """
    if len(images) > settings.max_files_per_request:
        raise TooManyFiles(f"Too many files. Maximum is {settings.max_files_per_request} files")

    parts = []
    for image in images:
        data = await image.read(settings.max_file_size_bytes + 1)
        parts.append(ImagePart(filename=image.filename, content_type=image.content_type, data=data))
    return parts


@router.post("/upload-multiple", response_model=UploadResponse)
async def upload_multiple(
    images: Optional[List[UploadFile]] = File(None),
    listing_code: Optional[str] = Form(None, alias="listingCode"),
    current_user: CurrentUser = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    storage: ListingImageStorage = Depends(get_listing_storage)
):
    """
    Upload 1-20 images for a listing.

    Files are stored as img.<userIdHex>.<listingCode>.<NN>.<ext>, numbered
    in the order they appear in the request. The returned paths are meant
    to be saved on the listing record by the caller.
    """
    intake = ListingImageIntake(storage, settings)
    try:
        parts = await _read_parts(images or [], settings)
        # Directory scan and writes block; keep them off the event loop
        result = await run_in_threadpool(
            intake.process_batch, current_user.id, parts, listing_code
        )
    except ImageUploadError as e:
        if e.status_code >= 500:
            logger.error(f"Upload failed for user {current_user.id}: {e.message}")
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return UploadResponse(
        message=result.message,
        image_urls=result.image_urls,
        count=result.count,
        listing_code=result.listing_code,
    )


@router.get("/generate-listing-code", response_model=ListingCodeResponse)
async def generate_listing_code(
    current_user: CurrentUser = Depends(get_current_user)
):
    """
    Generate a listing code to group the images of a new listing.
    """
    return ListingCodeResponse(listing_code=filename_codec.generate_listing_code())


@router.get("/{user_id_hex}/{listing_code}/{filename}")
async def serve_image(
    user_id_hex: str,
    listing_code: str,
    filename: str,
    settings: Settings = Depends(get_settings),
    storage: ListingImageStorage = Depends(get_listing_storage)
):
    """
    Serve a listing image, or redirect to a placeholder when it is missing.

    Only names that match the image grammar are looked up on disk.
    """
    if filename_codec.decode(filename) is not None and storage.exists(filename):
        return FileResponse(
            str(storage.get_path(filename)),
            headers={"Cache-Control": f"public, max-age={settings.image_cache_max_age}"}
        )

    return RedirectResponse(url=settings.placeholder_image_url)
