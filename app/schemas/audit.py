"""
Listing Image Service - Audit Schemas
Reports produced by the listing image directory auditor
"""
from pydantic import BaseModel
from typing import Dict, List


class ImageFileInfo(BaseModel):
    """A file that matches the image naming grammar."""
    filename: str
    user_id_hex: str
    listing_code: str
    sequence_number: int
    extension: str
    size_bytes: int


class ListingGroupReport(BaseModel):
    """Sequence check for one (user, listing) group."""
    user_id_hex: str
    listing_code: str
    image_count: int
    sequence: List[int]
    contiguous: bool
    missing: List[int] = []
    duplicates: List[int] = []


class UserImageStats(BaseModel):
    """Aggregate counts for one user."""
    user_id_hex: str
    total_images: int
    listing_count: int
    by_extension: Dict[str, int]


class AuditReport(BaseModel):
    """Full analysis of the listings directory."""
    directory: str
    total_entries: int
    valid_files: List[ImageFileInfo]
    invalid_files: List[str]
    groups: List[ListingGroupReport]
    users: List[UserImageStats]
    by_extension: Dict[str, int]
    total_bytes: int
    average_bytes: float
    errors: List[str] = []

    @property
    def broken_groups(self) -> List[ListingGroupReport]:
        return [g for g in self.groups if not g.contiguous]


class RenamedFile(BaseModel):
    """One rename performed by a sequence repair."""
    old_name: str
    new_name: str


class RepairResult(BaseModel):
    """Outcome of renumbering one listing's images."""
    user_id_hex: str
    listing_code: str
    renames: List[RenamedFile]

    @property
    def changed(self) -> bool:
        return any(r.old_name != r.new_name for r in self.renames)
