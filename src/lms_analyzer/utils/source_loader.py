from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

from lms_analyzer.errors import UnsupportedFormatError
from lms_analyzer.models.documents import ArchiveKind, RawArchive

logger = logging.getLogger(__name__)

ZIP_SIGNATURES = (b"PK\x03\x04", b"PK\x05\x06", b"PK\x07\x08")

# (signature, offset, description)
LEGACY_SIGNATURES = (
    (b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1", 0, "OLE2 compound document"),
    (b"Rar!\x1a\x07", 0, "RAR archive"),
    (b"7z\xbc\xaf\x27\x1c", 0, "7-Zip archive"),
    (b"\x1f\x8b", 0, "gzip archive"),
    (b"ustar", 257, "tar archive"),
)


def is_zip_container(data: bytes) -> bool:
    return data[:4] in ZIP_SIGNATURES


def legacy_format(data: bytes) -> Optional[str]:
    for signature, offset, description in LEGACY_SIGNATURES:
        if data[offset:offset + len(signature)] == signature:
            return description
    return None


def classify_content(content: Union[bytes, str], name: Optional[str] = None) -> RawArchive:
    """Wrap input in a ``RawArchive``, rejecting container formats that are not zip."""
    if isinstance(content, str):
        return RawArchive(content=content, kind=ArchiveKind.DOCUMENT, name=name)
    if is_zip_container(content):
        return RawArchive(content=content, kind=ArchiveKind.CONTAINER, name=name)
    legacy = legacy_format(content)
    if legacy:
        raise UnsupportedFormatError(
            f"{name or 'Input'} is a {legacy}; export the content as a QTI zip package, QTI XML or HAR file"
        )
    return RawArchive(content=content, kind=ArchiveKind.DOCUMENT, name=name)


def load_source(path: str | Path) -> RawArchive:
    path = Path(path)
    data = path.read_bytes()
    logger.debug("Loaded %s (%d bytes)", path, len(data))
    return classify_content(data, name=path.name)
