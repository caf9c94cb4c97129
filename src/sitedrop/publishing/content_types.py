"""Content-Type inference for extracted archive entries."""

from __future__ import annotations

import mimetypes

DEFAULT_CONTENT_TYPE = "application/octet-stream"

_CHARSET_TYPES = frozenset(
    {
        "application/javascript",
        "application/json",
        "application/manifest+json",
        "application/xml",
        "image/svg+xml",
    }
)

_mime = mimetypes.MimeTypes()
for _type, _ext in (
    ("text/javascript", ".js"),
    ("text/javascript", ".mjs"),
    ("application/manifest+json", ".webmanifest"),
    ("application/wasm", ".wasm"),
    ("image/webp", ".webp"),
    ("font/woff", ".woff"),
    ("font/woff2", ".woff2"),
    ("text/markdown", ".md"),
):
    _mime.add_type(_type, _ext)


def content_type_for(path: str) -> str:
    """Infer the Content-Type header value for an entry path.

    Textual types carry ``charset=utf-8``; unknown extensions fall back to
    application/octet-stream.
    """
    guess, _ = _mime.guess_type(path, strict=False)
    if not guess:
        return DEFAULT_CONTENT_TYPE
    if guess.startswith("text/") or guess in _CHARSET_TYPES:
        return f"{guess}; charset=utf-8"
    return guess
