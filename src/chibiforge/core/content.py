"""Request payloads and response readers for the generative model service.

Requests are built as plain dictionaries in the shape accepted by
``google.genai``'s ``generate_content`` (``contents`` and ``config`` both
accept dicts), so nothing here imports the SDK.  Responses are read
defensively with ``getattr`` because the SDK exposes parts either on
``response.parts`` or on ``response.candidates[0].content.parts`` depending
on version.
"""

from __future__ import annotations

import base64
import binascii
import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

MIME_BY_EXTENSION = {
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".heic": "image/heic",
    ".heif": "image/heif",
    ".bmp": "image/bmp",
    ".tiff": "image/tiff",
    ".tif": "image/tiff",
}
DEFAULT_MIME = "image/jpeg"

TEXT_AND_IMAGE = {"response_modalities": ["TEXT", "IMAGE"]}


def mime_type_for(path: str | Path) -> str:
    """Return the MIME type of an image file from its extension.

    Unknown extensions (including ``.jpg``/``.jpeg``) map to ``image/jpeg``.
    """
    return MIME_BY_EXTENSION.get(Path(path).suffix.lower(), DEFAULT_MIME)


def build_contents(prompt: str, data: bytes | None = None, mime_type: str | None = None) -> list[dict]:
    """Build a single-turn user request with a text part and optional image.

    Args:
        prompt: Instruction text.
        data: Raw image bytes to send inline, if any.
        mime_type: MIME type of ``data``; defaults to ``image/jpeg``.

    Returns:
        ``contents`` list for ``generate_content``.
    """
    parts: list[dict[str, Any]] = [{"text": prompt}]
    if data is not None:
        parts.append({"inline_data": {"data": data, "mime_type": mime_type or DEFAULT_MIME}})
    return [{"role": "user", "parts": parts}]


def iter_response_parts(response: Any) -> list[Any]:
    """Return the content parts of a response, whichever SDK shape it has."""
    if response is None:
        return []
    parts = getattr(response, "parts", None)
    if parts:
        return list(parts)
    candidates = getattr(response, "candidates", None)
    if candidates:
        content = getattr(candidates[0], "content", None)
        if content is not None:
            return list(getattr(content, "parts", None) or [])
    return []


def response_text(response: Any) -> str:
    """Concatenated, stripped text of a response ("" when it has none)."""
    text = getattr(response, "text", None)
    if isinstance(text, str):
        return text.strip()
    pieces = [getattr(part, "text", None) for part in iter_response_parts(response)]
    return "".join(piece for piece in pieces if isinstance(piece, str)).strip()


def iter_inline_images(response: Any) -> Iterator[bytes]:
    """Yield the decoded bytes of every inline image part of a response.

    Payloads may arrive as raw bytes or base64 text; undecodable parts are
    skipped.
    """
    for part in iter_response_parts(response):
        inline = getattr(part, "inline_data", None)
        if inline is None:
            continue
        data = getattr(inline, "data", None)
        if isinstance(data, (bytes, bytearray)):
            yield bytes(data)
        elif isinstance(data, str):
            try:
                yield base64.b64decode(data, validate=True)
            except (binascii.Error, ValueError):
                logger.debug("Skipping inline part with undecodable payload")
