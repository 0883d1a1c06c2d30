"""
Listing Image Service - Upload Errors
Error taxonomy surfaced by the upload intake
"""
from fastapi import status


class ImageUploadError(Exception):
    """Base class for upload failures; carries the HTTP status to report."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Upload failed"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NoFilesProvided(ImageUploadError):
    default_message = "No images uploaded"


class TooManyFiles(ImageUploadError):
    default_message = "Too many files. Maximum is 20 files"


class FileTooLarge(ImageUploadError):
    default_message = "File too large. Maximum size is 5MB"


class UnsupportedMediaType(ImageUploadError):
    default_message = "Only JPEG, PNG and WebP images are allowed"


class InvalidListingCode(ImageUploadError):
    default_message = "Listing code must contain only letters and digits"


class QuotaExceeded(ImageUploadError):
    default_message = (
        "The server administrator has set a storage limit for images. "
        "Please contact support or remove old images."
    )


class StorageWriteFailure(ImageUploadError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Failed to save image"
