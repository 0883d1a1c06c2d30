# Schemas package
from app.schemas.listing_image import UploadResponse, ListingCodeResponse
from app.schemas.audit import (
    AuditReport,
    ImageFileInfo,
    ListingGroupReport,
    UserImageStats,
    RenamedFile,
    RepairResult,
)
