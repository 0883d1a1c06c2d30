"""
Listing Image Service - Listing Image Directory Auditor
Offline analysis and sequence repair of the listings directory
"""
import logging
import os
import re
import shutil
from collections import Counter, defaultdict
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from app.schemas.audit import (
    AuditReport,
    ImageFileInfo,
    ListingGroupReport,
    RenamedFile,
    RepairResult,
    UserImageStats,
)
from app.services import filename_codec
from app.services.local_storage import ListingImageStorage

logger = logging.getLogger(__name__)

SCRATCH_PREFIX = ".repair."
USER_ID_HEX_PATTERN = re.compile(r"^[0-9a-f]{7}$", re.IGNORECASE | re.ASCII)


class AuditError(Exception):
    """Fatal condition during a repair; nothing further is attempted."""


def find_missing_numbers(sequence: List[int]) -> List[int]:
    """Numbers in 1..max(sequence) that do not occur in it."""
    if not sequence:
        return []
    present = set(sequence)
    return [n for n in range(1, max(sequence) + 1) if n not in present]


def format_bytes(num_bytes: float) -> str:
    """Human-readable byte count, e.g. "1.5 MB"."""
    if num_bytes <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB", "TB"]
    value = float(num_bytes)
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    return f"{round(value, 2):g} {units[i]}"


class ListingImageAuditor:
    """Scans the listings directory and renumbers broken sequences."""

    def __init__(self, storage: ListingImageStorage):
        self.storage = storage

    @property
    def directory(self) -> Path:
        return self.storage.listings_path

    # ---------- analyze ----------

    def analyze(self) -> AuditReport:
        """
        Classify every entry of the directory and check each listing's sequence.

        Read-only. Entries that are not regular files, cannot be stat'ed or
        don't match the naming grammar are reported as invalid and skipped.
        """
        valid: List[ImageFileInfo] = []
        invalid: List[str] = []
        errors: List[str] = []
        total_entries = 0

        if self.directory.exists():
            try:
                with os.scandir(self.directory) as it:
                    entries = sorted(it, key=lambda e: e.name)
            except OSError as e:
                logger.error(f"Cannot read listings directory {self.directory}: {e}")
                errors.append(f"{self.directory}: {e}")
                entries = []

            total_entries = len(entries)
            for entry in entries:
                info = self._classify(entry, errors)
                if info is None:
                    invalid.append(entry.name)
                else:
                    valid.append(info)
        else:
            logger.info(f"Listings directory does not exist: {self.directory}")

        groups = self._group_reports(valid)
        users = self._user_stats(valid)
        by_extension = dict(sorted(Counter(f.extension for f in valid).items()))
        total_bytes = sum(f.size_bytes for f in valid)

        return AuditReport(
            directory=str(self.directory),
            total_entries=total_entries,
            valid_files=valid,
            invalid_files=invalid,
            groups=groups,
            users=users,
            by_extension=by_extension,
            total_bytes=total_bytes,
            average_bytes=(total_bytes / len(valid)) if valid else 0.0,
            errors=errors,
        )

    def _classify(self, entry: os.DirEntry, errors: List[str]) -> Optional[ImageFileInfo]:
        decoded = filename_codec.decode(entry.name)
        if decoded is None:
            return None
        try:
            if not entry.is_file(follow_symlinks=False):
                return None
            size = entry.stat(follow_symlinks=False).st_size
        except OSError as e:
            logger.warning(f"Skipping unreadable entry {entry.name}: {e}")
            errors.append(f"{entry.name}: {e}")
            return None
        return ImageFileInfo(
            filename=entry.name,
            user_id_hex=decoded.user_id_hex,
            listing_code=decoded.listing_code,
            sequence_number=decoded.sequence_number,
            extension=decoded.extension,
            size_bytes=size,
        )

    def _group_reports(self, files: List[ImageFileInfo]) -> List[ListingGroupReport]:
        grouped: Dict[Tuple[str, str], List[int]] = defaultdict(list)
        for f in files:
            grouped[(f.user_id_hex.lower(), f.listing_code)].append(f.sequence_number)

        reports = []
        for (user_id_hex, listing_code), numbers in sorted(grouped.items()):
            sequence = sorted(numbers)
            counts = Counter(sequence)
            reports.append(ListingGroupReport(
                user_id_hex=user_id_hex,
                listing_code=listing_code,
                image_count=len(sequence),
                sequence=sequence,
                contiguous=sequence == list(range(1, len(sequence) + 1)),
                missing=find_missing_numbers(sequence),
                duplicates=sorted(n for n, c in counts.items() if c > 1),
            ))
        return reports

    def _user_stats(self, files: List[ImageFileInfo]) -> List[UserImageStats]:
        per_user: Dict[str, List[ImageFileInfo]] = defaultdict(list)
        for f in files:
            per_user[f.user_id_hex.lower()].append(f)

        return [
            UserImageStats(
                user_id_hex=user_id_hex,
                total_images=len(user_files),
                listing_count=len({f.listing_code for f in user_files}),
                by_extension=dict(sorted(Counter(f.extension for f in user_files).items())),
            )
            for user_id_hex, user_files in sorted(per_user.items())
        ]

    # ---------- repair ----------

    def scratch_path(self, user_id_hex: str, listing_code: str) -> Path:
        """Scratch directory used while renumbering one group."""
        return self.directory / f"{SCRATCH_PREFIX}{user_id_hex.lower()}.{listing_code}"

    def pending_recoveries(self) -> List[Tuple[str, str]]:
        """(user_id_hex, listing_code) of every repair that did not finish."""
        if not self.directory.exists():
            return []
        pending = []
        for path in sorted(self.directory.iterdir()):
            if path.is_dir() and path.name.startswith(SCRATCH_PREFIX):
                user_id_hex, _, listing_code = path.name[len(SCRATCH_PREFIX):].partition(".")
                pending.append((user_id_hex, listing_code))
        return pending

    def _check_group_key(self, user_id_hex: str, listing_code: str) -> str:
        if not USER_ID_HEX_PATTERN.fullmatch(user_id_hex or ""):
            raise AuditError(f"Invalid user id hex: {user_id_hex!r}")
        if not filename_codec.is_valid_listing_code(listing_code):
            raise AuditError(f"Invalid listing code: {listing_code!r}")
        return user_id_hex.lower()

    def _collect_group(self, user_id_hex: str, listing_code: str) -> List[Tuple[filename_codec.DecodedName, str]]:
        prefix = f"img.{user_id_hex}.{listing_code}.".lower()
        members = []
        for path in self.directory.iterdir():
            decoded = filename_codec.decode(path.name)
            in_group = (
                decoded is not None
                and decoded.user_id_hex.lower() == user_id_hex
                and decoded.listing_code == listing_code
            )
            if in_group:
                if not path.is_file() or path.is_symlink():
                    raise AuditError(f"Not a regular file: {path.name}")
                members.append((decoded, path.name))
            elif decoded is None and path.name.lower().startswith(prefix):
                raise AuditError(f"Malformed image name in listing group: {path.name}")
        return members

    def repair(self, user_id_hex: str, listing_code: str) -> RepairResult:
        """
        Renumber one listing's images to a contiguous 1..N sequence.

        Files keep their order (by current sequence number, then filename).
        The move goes through a scratch directory so old and new names can
        overlap: copy everything to scratch under the new names, delete the
        originals, copy back, drop scratch. If the process dies after the
        originals are deleted, the scratch directory is the only copy left
        and recover() must be run before anything else touches the group.

        Must not run while uploads for the same listing are in flight.
        """
        user_id_hex = self._check_group_key(user_id_hex, listing_code)
        if not self.directory.is_dir():
            raise AuditError(f"Listings directory not found: {self.directory}")

        scratch = self.scratch_path(user_id_hex, listing_code)
        if scratch.exists():
            raise AuditError(
                f"Unfinished repair found in {scratch}; run recover before repairing again"
            )

        members = self._collect_group(user_id_hex, listing_code)
        if not members:
            raise AuditError(f"No images found for user {user_id_hex} listing {listing_code}")
        members.sort(key=lambda m: (m[0].sequence_number, m[1]))

        try:
            renames = [
                RenamedFile(
                    old_name=old_name,
                    new_name=filename_codec.compose_name(
                        user_id_hex, listing_code, index, decoded.extension
                    ),
                )
                for index, (decoded, old_name) in enumerate(members, start=1)
            ]
        except ValueError as e:
            raise AuditError(str(e)) from e

        logger.info(
            f"Renumbering {len(renames)} image(s) for user {user_id_hex} listing {listing_code}"
        )

        # Phase 1: copy to scratch under the new names. Originals are intact
        # until this completes, so a partial scratch is discarded, never recovered.
        scratch.mkdir()
        try:
            for r in renames:
                shutil.copy2(self.storage.get_path(r.old_name), scratch / r.new_name)
        except OSError:
            logger.error(f"Copy to {scratch} failed; discarding partial scratch")
            shutil.rmtree(scratch, ignore_errors=True)
            raise

        # Phase 2: drop the originals, then copy back from scratch
        for r in renames:
            self.storage.delete(r.old_name)
        self._restore_from_scratch(scratch)

        for r in renames:
            if r.old_name != r.new_name:
                logger.info(f"Renumbered: {r.old_name} -> {r.new_name}")
        return RepairResult(user_id_hex=user_id_hex, listing_code=listing_code, renames=renames)

    def recover(self, user_id_hex: str, listing_code: str) -> List[str]:
        """
        Finish an interrupted repair by copying its scratch files back.

        Returns:
            Names of the files restored into the listings directory
        """
        user_id_hex = self._check_group_key(user_id_hex, listing_code)
        scratch = self.scratch_path(user_id_hex, listing_code)
        if not scratch.is_dir():
            raise AuditError(f"No unfinished repair for user {user_id_hex} listing {listing_code}")
        restored = self._restore_from_scratch(scratch)
        logger.info(f"Recovered {len(restored)} image(s) from {scratch}")
        return restored

    def _restore_from_scratch(self, scratch: Path) -> List[str]:
        names = sorted(p.name for p in scratch.iterdir())
        for name in names:
            shutil.copy2(scratch / name, self.storage.get_path(name))
        for name in names:
            (scratch / name).unlink()
        scratch.rmdir()
        return names
