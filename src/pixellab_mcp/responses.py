"""
MCP content-list builders.

Every tool answers with a ``ToolResponse``: a non-empty list of MCP content
blocks (``{"type": "text", ...}`` or ``{"type": "image", ...}``) plus the
``isError`` flag the host reads.  The builders here are pure; handlers never
assemble content blocks by hand.
"""
from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .images import PNG_MIME, Base64Image


@dataclass(slots=True)
class ToolResponse:
    content: list[dict[str, Any]] = field(default_factory=list)
    is_error: bool = False

    def as_result(self) -> dict[str, Any]:
        return {"content": self.content, "isError": self.is_error}


def text_block(text: str) -> dict[str, Any]:
    return {"type": "text", "text": text}


def image_block(image: Base64Image) -> dict[str, Any]:
    return {"type": "image", "data": image.base64, "mimeType": PNG_MIME}


def metadata_block(metadata: Mapping[str, Any]) -> dict[str, Any]:
    return text_block(json.dumps(metadata, indent=2, default=str))


def build_response(
    summary: str,
    image: Base64Image | None = None,
    metadata: Mapping[str, Any] | None = None,
) -> ToolResponse:
    content = [text_block(summary)]
    if image is not None:
        content.append(image_block(image))
    if metadata is not None:
        content.append(metadata_block(metadata))
    return ToolResponse(content)


def build_comparison(
    summary: str,
    before: Base64Image,
    after: Base64Image,
    metadata: Mapping[str, Any] | None = None,
) -> ToolResponse:
    content = [
        text_block(summary),
        text_block("Before:"),
        image_block(before),
        text_block("After:"),
        image_block(after),
    ]
    if metadata is not None:
        content.append(metadata_block(metadata))
    return ToolResponse(content)


def build_text_response(summary: str, usd: float, metadata: Mapping[str, Any]) -> ToolResponse:
    """Text-only variant used when the caller did not ask to see the image."""
    return ToolResponse([
        text_block(summary),
        text_block(f"Cost: ${usd} USD"),
        metadata_block(metadata),
    ])


def _error_message(error: object) -> str:
    if isinstance(error, BaseException):
        return str(error)
    if isinstance(error, str):
        return error
    if isinstance(error, Mapping):
        try:
            return json.dumps(error, indent=2)
        except (TypeError, ValueError, RecursionError):
            return f"Object error: {type(error).__name__}"
    return f"Unknown error: {error!r}"


def build_error_response(error: object) -> ToolResponse:
    """Normalise any raised value into a single ``Error: ...`` block. Never raises."""
    try:
        message = _error_message(error)
    except Exception:
        # str()/repr() of a hostile object can itself fail.
        message = f"Unknown error: <{type(error).__name__}>"
    return ToolResponse([text_block(f"Error: {message}")], is_error=True)
