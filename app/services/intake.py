"""
Listing Image Service - Upload Intake
Validates a batch of listing images, names them and writes them to storage
"""
import enum
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from app.config import Settings, get_settings
from app.services import filename_codec
from app.services.errors import (
    FileTooLarge,
    InvalidListingCode,
    NoFilesProvided,
    QuotaExceeded,
    StorageWriteFailure,
    TooManyFiles,
    UnsupportedMediaType,
)
from app.services.local_storage import ListingImageStorage
from app.services.quota import QuotaStatus, check_quota

logger = logging.getLogger(__name__)

# Extension used when the client's file name carries none
MIME_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}


class IntakeState(str, enum.Enum):
    """Stages a single upload request moves through."""
    RECEIVING = "receiving"
    VALIDATING = "validating"
    PERSISTING = "persisting"
    RESPONDING = "responding"
    ABORTED = "aborted"


@dataclass
class ImagePart:
    """One file part of a multipart upload."""
    filename: Optional[str]
    content_type: Optional[str]
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class PlannedImage:
    """A validated part together with the name it will be stored under."""
    index: int
    filename: str
    part: ImagePart


@dataclass
class UploadResult:
    """Outcome of a successful batch."""
    listing_code: str
    filenames: List[str]
    image_urls: List[str]
    message: str = "Upload successful!"
    state: IntakeState = IntakeState.RESPONDING

    @property
    def count(self) -> int:
        return len(self.image_urls)


@dataclass
class _Batch:
    user_id: str
    listing_code: str
    state: IntakeState = IntakeState.RECEIVING
    planned: List[PlannedImage] = field(default_factory=list)

    def advance(self, state: IntakeState):
        logger.debug(
            f"Upload for user {self.user_id} listing {self.listing_code}: "
            f"{self.state.value} -> {state.value}"
        )
        self.state = state


class ListingImageIntake:
    """Upload intake for listing images."""

    def __init__(self, storage: ListingImageStorage, settings: Optional[Settings] = None):
        self.storage = storage
        self.settings = settings or get_settings()

    def resolve_listing_code(self, listing_code: Optional[str]) -> str:
        """
        Use the client's listing code, or generate one when absent.
        """
        if listing_code is None or not listing_code.strip():
            return filename_codec.generate_listing_code()
        listing_code = listing_code.strip()
        if not filename_codec.is_valid_listing_code(listing_code):
            raise InvalidListingCode()
        return listing_code

    def check_request_limits(self, part_count: int):
        """
        Reject a request whose part count is outside 1..max_files_per_request.
        """
        if part_count == 0:
            raise NoFilesProvided()
        limit = self.settings.max_files_per_request
        if part_count > limit:
            raise TooManyFiles(f"Too many files. Maximum is {limit} files")

    def validate_part(self, part: ImagePart):
        """Check a single part against the MIME allow-list and size ceiling."""
        if part.content_type not in self.settings.allowed_mime_types:
            raise UnsupportedMediaType(
                f"File \"{part.filename}\" is not a valid image type. "
                "Only JPEG, PNG and WebP images are allowed"
            )
        max_bytes = self.settings.max_file_size_bytes
        if part.size > max_bytes:
            raise FileTooLarge(
                f"File \"{part.filename}\" is too large. "
                f"Maximum size is {max_bytes // (1024 * 1024)}MB"
            )

    def plan(self, user_id, listing_code: str, parts: Sequence[ImagePart]) -> List[PlannedImage]:
        """
        Validate every part and assign its name.

        Sequence numbers are positions within this request only, starting at
        1. A second request for the same listing starts at 1 again and
        replaces files with matching names; the auditor's fix-sequence
        command restores a contiguous sequence afterwards.
        """
        planned = []
        for index, part in enumerate(parts, start=1):
            self.validate_part(part)
            name = filename_codec.encode(
                user_id,
                listing_code,
                index,
                part.filename,
                fallback_extension=MIME_EXTENSIONS.get(part.content_type),
            )
            planned.append(PlannedImage(index=index, filename=name, part=part))
        return planned

    def process_batch(
        self,
        user_id,
        parts: Sequence[ImagePart],
        listing_code: Optional[str] = None
    ) -> UploadResult:
        """
        Run one upload request end to end.

        Args:
            user_id: Authenticated user id
            parts: File parts in arrival order
            listing_code: Client-supplied listing code, generated when missing

        Returns:
            UploadResult with the public paths in request order

        Raises:
            ImageUploadError subclasses; nothing is written for 400-class errors
        """
        batch = _Batch(user_id=str(user_id), listing_code=listing_code or "")
        try:
            self.check_request_limits(len(parts))
            batch.listing_code = self.resolve_listing_code(listing_code)

            batch.advance(IntakeState.VALIDATING)
            batch.planned = self.plan(user_id, batch.listing_code, parts)

            batch.advance(IntakeState.PERSISTING)
            self._persist(batch)
        except Exception:
            batch.advance(IntakeState.ABORTED)
            raise

        batch.advance(IntakeState.RESPONDING)
        filenames = [p.filename for p in batch.planned]
        logger.info(
            f"Stored {len(filenames)} image(s) for user {batch.user_id} "
            f"listing {batch.listing_code}"
        )
        return UploadResult(
            listing_code=batch.listing_code,
            filenames=filenames,
            image_urls=[self.storage.public_url(name) for name in filenames],
        )

    def _persist(self, batch: _Batch):
        # Quota is checked once per batch, before any write. Concurrent
        # batches can all pass and jointly overshoot the ceiling.
        directory = self.storage.listings_path
        if check_quota(directory, self.settings.storage_quota_bytes) is QuotaStatus.EXCEEDED:
            raise QuotaExceeded()

        try:
            self.storage.ensure_directory()
        except OSError as e:
            logger.error(f"Failed to create listings directory {directory}: {e}")
            raise StorageWriteFailure(f"Failed to prepare image storage: {e}") from e

        # Files written before a failure are left in place; the client is
        # expected to retry the whole batch, which overwrites them by name.
        for item in batch.planned:
            try:
                self.storage.write(item.filename, item.part.data)
            except OSError as e:
                logger.error(f"Failed to write {item.filename}: {e}")
                raise StorageWriteFailure(f"Failed to save image {item.filename}: {e}") from e
