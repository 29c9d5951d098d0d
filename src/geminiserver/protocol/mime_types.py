"""
=============================================================================
MIME TYPE DETECTION
=============================================================================

Maps file extensions to the MIME type sent as the meta of a 20 SUCCESS
header:

    20 text/gemini\r\n
       ───────────
            │
            └── from get_mime_type("index.gmi")

Gemini's native document format is gemtext (``text/gemini``), usually
stored as ``.gmi``. Text bodies are assumed to be UTF-8 when the meta has
no charset parameter, so the charset is only spelled out on request.

=============================================================================
"""

from pathlib import Path
from typing import Optional


DEFAULT_MIME_TYPE = "application/octet-stream"
GEMTEXT_MIME_TYPE = "text/gemini"

MIME_TYPES = {
    # Gemini documents
    ".gmi": GEMTEXT_MIME_TYPE,
    ".gemini": GEMTEXT_MIME_TYPE,

    # Text
    ".txt": "text/plain",
    ".md": "text/markdown",
    ".csv": "text/csv",
    ".html": "text/html",
    ".htm": "text/html",
    ".xml": "application/xml",
    ".json": "application/json",
    ".atom": "application/atom+xml",
    ".rss": "application/rss+xml",

    # Images
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".webp": "image/webp",

    # Audio / video
    ".mp3": "audio/mpeg",
    ".ogg": "audio/ogg",
    ".flac": "audio/flac",
    ".wav": "audio/wav",
    ".mp4": "video/mp4",
    ".webm": "video/webm",

    # Documents and archives
    ".pdf": "application/pdf",
    ".zip": "application/zip",
    ".gz": "application/gzip",
    ".tar": "application/x-tar",
}


def get_mime_type(path: str | Path, default: Optional[str] = None) -> str:
    """
    Get the MIME type for a file based on its extension.

    Examples:
        >>> get_mime_type("index.gmi")
        'text/gemini'
        >>> get_mime_type("/srv/gemini/photo.JPG")
        'image/jpeg'
        >>> get_mime_type("unknown.xyz")
        'application/octet-stream'
    """
    if isinstance(path, str):
        path = Path(path)

    extension = path.suffix.lower()
    return MIME_TYPES.get(extension, default or DEFAULT_MIME_TYPE)


def is_text_type(mime_type: str) -> bool:
    """True for types that carry a charset (text/* and the XML/JSON family)."""
    if mime_type.startswith("text/"):
        return True
    return mime_type in {
        "application/json",
        "application/xml",
        "application/atom+xml",
        "application/rss+xml",
        "image/svg+xml",
    }


def get_meta(path: str | Path, charset: Optional[str] = None) -> str:
    """
    Get the success meta for a file.

    Adds ``; charset=...`` for text types when a non-default charset is
    given:

        >>> get_meta("notes.txt")
        'text/plain'
        >>> get_meta("notes.txt", charset="iso-8859-1")
        'text/plain; charset=iso-8859-1'
    """
    mime_type = get_mime_type(path)
    if charset and charset.lower() != "utf-8" and is_text_type(mime_type):
        return f"{mime_type}; charset={charset}"
    return mime_type
