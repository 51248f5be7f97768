"""
Library fingerprint index.

Books in the statistics database are matched to files on disk by KOReader's
partial MD5, which hashes 1024-byte samples taken at growing offsets instead of
the whole file. The index is all the analytics need from the library: format
metadata parsing lives elsewhere.
"""
import hashlib
import logging
import os
from pathlib import Path
from typing import Dict, List, Union

from shelfstats.exceptions import LibraryScanError
from shelfstats.models import ContentType, LibraryItem

logger = logging.getLogger(__name__)

BOOK_EXTENSIONS = {'.epub', '.fb2', '.mobi', '.azw3', '.pdf'}
COMIC_EXTENSIONS = {'.cbz', '.cbr'}

SAMPLE_STEP = 1024
SAMPLE_SIZE = 1024


def calculate_partial_md5(path: Union[str, Path]) -> str:
    """
    Partial MD5 compatible with KOReader's `util.partialMD5()`.

    Samples SAMPLE_SIZE bytes at `lshift(1024, 2*i)` for i in -1..10. LuaJIT
    shifts are 32-bit with the amount masked to 5 bits, so i = -1 shifts by 30
    and overflows to offset 0. Sampling stops at the end of the file.
    """
    md5 = hashlib.md5()
    with open(path, 'rb') as f:
        for i in range(-1, 11):
            shift = (2 * i) & 31
            position = (SAMPLE_STEP << shift) & 0xFFFFFFFF
            f.seek(position)
            sample = f.read(SAMPLE_SIZE)
            if not sample:
                break
            md5.update(sample)
    return md5.hexdigest()


def content_type_for(path: Path) -> Union[ContentType, None]:
    suffix = path.suffix.lower()
    if suffix in COMIC_EXTENSIONS:
        return ContentType.COMIC
    if suffix in BOOK_EXTENSIONS:
        return ContentType.BOOK
    return None


def _item_id(relative_path: str) -> str:
    # Stable across runs as long as the file stays where it is
    return hashlib.sha1(relative_path.encode('utf-8')).hexdigest()[:16]


def scan_library(books_path: Union[str, Path]) -> List[LibraryItem]:
    """Walk the library directory and fingerprint every supported file, in path order."""
    root = Path(books_path)
    if not root.is_dir():
        raise LibraryScanError(f"Library directory not found: {root}", details={"path": str(root)})

    items = []
    for dirpath, dirnames, filenames in os.walk(root):
        # KOReader sidecar folders hold metadata, not books
        dirnames[:] = sorted(d for d in dirnames if not d.endswith('.sdr') and not d.startswith('.'))
        for filename in sorted(filenames):
            path = Path(dirpath) / filename
            content_type = content_type_for(path)
            if content_type is None:
                continue
            try:
                md5 = calculate_partial_md5(path)
            except OSError as e:
                logger.warning("Skipping unreadable library file %s: %s", path, e)
                continue

            relative = path.relative_to(root).as_posix()
            items.append(LibraryItem(
                id=_item_id(relative),
                title=path.stem,
                file_path=str(path),
                md5=md5,
                content_type=content_type,
            ))

    logger.info("Found %d items in library %s", len(items), root)
    return items


def md5_index(items: List[LibraryItem]) -> Dict[str, ContentType]:
    """MD5 -> content type lookup used to tag statistics books."""
    return {item.md5: item.content_type for item in items}
