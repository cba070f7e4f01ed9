from __future__ import annotations

import asyncio
import base64
import binascii
import io
from dataclasses import dataclass
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from .tools.errors import LocalToolError

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
PNG_MIME = "image/png"


@dataclass(frozen=True)
class Base64Image:
    """PNG image bytes carried as standard base64 text."""

    base64: str

    @classmethod
    def from_bytes(cls, data: bytes) -> "Base64Image":
        return cls(base64.standard_b64encode(_ensure_png(data)).decode("ascii"))

    @classmethod
    def from_payload(cls, payload: dict) -> "Base64Image":
        # The API answers with {"type": "base64", "base64": "..."}; some
        # deployments prefix the data with a data URL header.
        raw = str(payload.get("base64", ""))
        if raw.startswith("data:") and "," in raw:
            raw = raw.split(",", 1)[1]
        if not raw:
            raise LocalToolError("Image payload is empty")
        try:
            data = base64.b64decode(raw, validate=True)
        except binascii.Error as exc:
            raise LocalToolError(f"Image payload is not valid base64: {exc}") from exc
        if data.startswith(PNG_SIGNATURE):
            return cls(raw)
        return cls.from_bytes(data)

    @classmethod
    async def from_file(cls, path: str | Path) -> "Base64Image":
        file_path = Path(path).expanduser()
        if not file_path.is_file():
            raise LocalToolError(f"Image file not found: {file_path}")
        data = await asyncio.to_thread(file_path.read_bytes)
        return cls.from_bytes(data)

    @property
    def data(self) -> bytes:
        return base64.standard_b64decode(self.base64)

    def to_payload(self) -> dict[str, str]:
        return {"type": "base64", "base64": self.base64}

    async def save_to_file(self, path: str | Path) -> Path:
        file_path = Path(path).expanduser()
        data = self.data

        def _write() -> None:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_bytes(data)

        await asyncio.to_thread(_write)
        return file_path


def _ensure_png(data: bytes) -> bytes:
    if data.startswith(PNG_SIGNATURE):
        return data
    try:
        with Image.open(io.BytesIO(data)) as img:
            if img.mode not in ("RGB", "RGBA", "L", "LA", "P"):
                img = img.convert("RGBA")
            out = io.BytesIO()
            img.save(out, format="PNG")
            return out.getvalue()
    except (UnidentifiedImageError, OSError) as exc:
        raise LocalToolError(f"Unsupported image data: {exc}") from exc


def frame_path(path: str, index: int) -> str:
    """``out.png`` -> ``out_frame0.png``; a path without extension gets the bare marker."""
    p = Path(path)
    if p.suffix:
        return str(p.with_name(f"{p.stem}_frame{index}{p.suffix}"))
    return f"{path}_frame{index}"


def frame_range_pattern(path: str, count: int) -> str:
    p = Path(path)
    marker = f"_frame{{0-{count - 1}}}"
    if p.suffix:
        return str(p.with_name(f"{p.stem}{marker}{p.suffix}"))
    return f"{path}{marker}"
