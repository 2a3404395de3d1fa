"""Derive presentation source/file type and the direct-download and Office viewer URLs."""

import re
from typing import Literal
from urllib.parse import quote

SourceType = Literal["s3", "dropbox", "gdrive", "gslides", "onedrive", "local", "other"]
FileType = Literal["ppt", "pptx", "pdf", "doc", "docx", "xls", "xlsx", "other"]

OFFICE_VIEWER_URL = "https://view.officeapps.live.com/op/embed.aspx?src={src}"

_DRIVE_FILE_ID = re.compile(r"/file/d/([^/]+)")
_SLIDES_ID = re.compile(r"/presentation/d/([^/]+)")

# Checked in order; first substring hit wins.
_SOURCE_PATTERNS: tuple[tuple[tuple[str, ...], SourceType], ...] = (
    (("s3.amazonaws.com",), "s3"),
    (("dropbox.com",), "dropbox"),
    (("drive.google.com",), "gdrive"),
    (("docs.google.com/presentation",), "gslides"),
    (("onedrive.live.com", "sharepoint.com"), "onedrive"),
)

_FILE_EXTENSIONS: tuple[FileType, ...] = ("ppt", "pptx", "pdf", "doc", "docx", "xls", "xlsx")


def detect_source_type(url: str | None, is_local: bool = False) -> SourceType:
    """Classify a presentation URL by host substring."""
    if is_local:
        return "local"
    if not url:
        return "other"
    lower = url.lower()
    for needles, source_type in _SOURCE_PATTERNS:
        if any(needle in lower for needle in needles):
            return source_type
    return "other"


def detect_file_type(url: str | None) -> FileType:
    """File type from the URL path's extension; 'other' when unrecognised."""
    if not url:
        return "other"
    lower = url.split("?")[0].split("#")[0].lower()
    for ext in _FILE_EXTENSIONS:
        if lower.endswith("." + ext):
            return ext
    return "other"


def direct_url(url: str | None, source_type: str, is_local: bool = False) -> str | None:
    """
    Rewrite a share link into a direct-download link.

    Applying it to an already-rewritten URL returns that URL unchanged.
    """
    if not url or is_local:
        return url
    if source_type == "dropbox":
        if "www.dropbox.com/s/dl/" not in url:
            url = url.replace("www.dropbox.com/s/", "www.dropbox.com/s/dl/")
        return url.split("?")[0]
    if source_type == "gdrive":
        match = _DRIVE_FILE_ID.search(url)
        if match:
            return f"https://drive.google.com/uc?export=download&id={match.group(1)}"
        return url
    if source_type == "gslides":
        match = _SLIDES_ID.search(url)
        if match:
            return f"https://docs.google.com/presentation/d/{match.group(1)}/export/pptx"
        return url
    return url


def viewer_url(url: str | None, source_type: str, is_local: bool = False) -> str | None:
    """Office Online embed URL for non-local presentations."""
    if is_local:
        return None
    direct = direct_url(url, source_type, is_local)
    if not direct:
        return None
    # Same escaping as encodeURIComponent.
    return OFFICE_VIEWER_URL.format(src=quote(direct, safe="-_.!~*'()"))
