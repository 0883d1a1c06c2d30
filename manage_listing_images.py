#!/usr/bin/env python
"""
manage_listing_images.py - maintenance commands for the listings image directory

Usage:
    python manage_listing_images.py analyze                              # Scan and report on all listing images
    python manage_listing_images.py fix-sequence <userIdHex> <listingCode>  # Renumber one listing to 01..NN
    python manage_listing_images.py recover <userIdHex> <listingCode>       # Finish an interrupted fix-sequence
    python manage_listing_images.py help                                 # Show this help message

Run fix-sequence only while no uploads for that listing are in progress.
"""
import os
import sys
from typing import List, Optional

# Fix Windows console encoding
if sys.platform == 'win32':
    sys.stdout.reconfigure(encoding='utf-8')

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from app.schemas.audit import AuditReport
from app.services.auditor import AuditError, ListingImageAuditor, format_bytes
from app.services.local_storage import ListingImageStorage


USAGE = """
Usage:
  python manage_listing_images.py [command] [options]

Commands:
  analyze                                  Scan and analyze all listing images
  fix-sequence <userIdHex> <listingCode>   Fix sequence numbers for a specific listing
  recover <userIdHex> <listingCode>        Finish an interrupted fix-sequence
  help                                     Show this help message

Examples:
  python manage_listing_images.py analyze
  python manage_listing_images.py fix-sequence 0000042 abc123
"""


def show_help():
    """Display help information."""
    print(USAGE)


def print_report(report: AuditReport):
    """Print an analysis report."""
    print(f"Scanning directory: {report.directory}")
    print(f"Found {report.total_entries} files in total.")
    print(f"\nValid files: {len(report.valid_files)}")
    print(f"Invalid files: {len(report.invalid_files)}")

    print("\n=== User Statistics ===")
    for user in report.users:
        print(f"\nUser ID: {user.user_id_hex}")
        print(f"  Total Images: {user.total_images}")
        print(f"  Listings: {user.listing_count}")
        print("  File types:")
        for ext, count in user.by_extension.items():
            print(f"    {ext}: {count}")

    print("\n=== Listing Statistics ===")
    for group in report.groups:
        print(f"\nListing: {group.listing_code} (User: {group.user_id_hex})")
        print(f"  Image Count: {group.image_count}")
        print(f"  Sequence Integrity: {'OK' if group.contiguous else 'BROKEN'}")
        if not group.contiguous:
            print(f"  Actual Sequence: {', '.join(str(n) for n in group.sequence)}")
            print(f"  Missing Numbers: {', '.join(str(n) for n in group.missing) or 'none'}")
            if group.duplicates:
                print(f"  Duplicate Numbers: {', '.join(str(n) for n in group.duplicates)}")

    if report.invalid_files:
        print("\n=== Invalid Files ===")
        for name in report.invalid_files:
            print(f"  {name}")

    if report.errors:
        print("\n=== Read Errors ===")
        for error in report.errors:
            print(f"  {error}")

    print("\n=== Extension Summary ===")
    for ext, count in report.by_extension.items():
        print(f"  {ext}: {count}")

    print("\n=== Storage Summary ===")
    print(f"Total disk usage: {format_bytes(report.total_bytes)}")
    print(f"Average file size: {format_bytes(report.average_bytes)}")


def analyze(auditor: ListingImageAuditor) -> int:
    """Scan and analyze all listing images."""
    print("\n=== Listing Images Analysis ===\n")
    if not auditor.directory.exists():
        print(f"[ANALYZE] Creating listings directory: {auditor.directory}")
        auditor.storage.ensure_directory()
        return 0

    print_report(auditor.analyze())

    for user_id_hex, listing_code in auditor.pending_recoveries():
        print(f"\n[WARN] Unfinished fix-sequence for User: {user_id_hex}, Listing: {listing_code}")
        print(f"       Run: recover {user_id_hex} {listing_code}")
    return 0


def fix_sequence(auditor: ListingImageAuditor, user_id_hex: str, listing_code: str) -> int:
    """Fix sequence numbers for a specific listing."""
    print(f"\n[FIX] Fixing sequence numbers for User: {user_id_hex}, Listing: {listing_code}")
    try:
        result = auditor.repair(user_id_hex, listing_code)
    except (AuditError, OSError) as e:
        print(f"[ERROR] Error fixing sequence numbers: {e}")
        return 1

    print(f"Found {len(result.renames)} files for this listing")
    for r in result.renames:
        if r.old_name != r.new_name:
            print(f"Renumbered: {r.old_name} -> {r.new_name}")
    if not result.changed:
        print("Sequence already contiguous, nothing renamed")
    print("[SUCCESS] Sequence numbers fixed successfully")
    return 0


def recover(auditor: ListingImageAuditor, user_id_hex: str, listing_code: str) -> int:
    """Finish an interrupted fix-sequence."""
    print(f"\n[RECOVER] Restoring images for User: {user_id_hex}, Listing: {listing_code}")
    try:
        restored = auditor.recover(user_id_hex, listing_code)
    except (AuditError, OSError) as e:
        print(f"[ERROR] Error recovering listing images: {e}")
        return 1

    for name in restored:
        print(f"Restored: {name}")
    print("[SUCCESS] Recovery completed!")
    return 0


def main(argv: Optional[List[str]] = None, storage: Optional[ListingImageStorage] = None) -> int:
    """Parse command line arguments and execute the command."""
    args = sys.argv[1:] if argv is None else argv
    command = args[0] if args else None

    if command == "help":
        show_help()
        return 0

    auditor = ListingImageAuditor(storage or ListingImageStorage())

    if command == "analyze":
        return analyze(auditor)
    if command in ("fix-sequence", "recover"):
        if len(args) < 3:
            print(f"[ERROR] Both userIdHex and listingCode are required for {command} command")
            show_help()
            return 2
        handler = fix_sequence if command == "fix-sequence" else recover
        return handler(auditor, args[1], args[2])

    if command is None:
        print("[ERROR] No command given")
    else:
        print(f"[ERROR] Unknown command: {command}")
    show_help()
    return 2


if __name__ == "__main__":
    sys.exit(main())
