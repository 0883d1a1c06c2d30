"""
Listing Image Service - Listing Image Schemas
Pydantic schemas for upload and listing code responses
"""
from pydantic import BaseModel, Field
from typing import List


class UploadResponse(BaseModel):
    """Schema for a successful multi-image upload."""
    message: str
    image_urls: List[str] = Field(..., alias="imageUrls")
    count: int
    listing_code: str = Field(..., alias="listingCode")

    class Config:
        populate_by_name = True


class ListingCodeResponse(BaseModel):
    """Schema for a freshly generated listing code."""
    listing_code: str = Field(..., alias="listingCode")

    class Config:
        populate_by_name = True
