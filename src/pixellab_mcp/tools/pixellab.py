from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from ..images import Base64Image
from .errors import (
    AuthenticationError,
    PixelLabError,
    RateLimitError,
    ValidationError,
    is_rate_limit_status,
)

DEFAULT_BASE_URL = "https://api.pixellab.ai/v1"

SKELETON_LABELS = (
    "NOSE", "NECK", "RIGHT SHOULDER", "RIGHT ELBOW", "RIGHT ARM",
    "LEFT SHOULDER", "LEFT ELBOW", "LEFT ARM", "RIGHT HIP", "RIGHT KNEE",
    "RIGHT LEG", "LEFT HIP", "LEFT KNEE", "LEFT LEG", "RIGHT EYE",
    "LEFT EYE", "RIGHT EAR", "LEFT EAR",
)


@dataclass(frozen=True)
class Usage:
    usd: float = 0.0
    type: str = "usd"

    @classmethod
    def from_payload(cls, payload: Any) -> "Usage":
        if not isinstance(payload, dict):
            return cls()
        return cls(usd=float(payload.get("usd") or 0.0), type=str(payload.get("type") or "usd"))

    def as_dict(self) -> dict[str, Any]:
        return {"type": self.type, "usd": self.usd}


@dataclass(frozen=True)
class Keypoint:
    x: float
    y: float
    label: str
    z_index: float = 0.0

    def to_payload(self) -> dict[str, Any]:
        return {"x": self.x, "y": self.y, "label": self.label, "z_index": self.z_index}


@dataclass(frozen=True)
class ImageResult:
    image: Base64Image
    usage: Usage


@dataclass(frozen=True)
class AnimationResult:
    images: list[Base64Image]
    usage: Usage


@dataclass(frozen=True)
class SkeletonResult:
    keypoints: list[Keypoint]
    usage: Usage


@dataclass(frozen=True)
class Balance:
    usd: float


@dataclass(frozen=True)
class ImageSize:
    width: int
    height: int

    def to_payload(self) -> dict[str, int]:
        return {"width": self.width, "height": self.height}


def _drop_none(body: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in body.items() if v is not None}


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:300] or response.reason_phrase
    if isinstance(payload, dict) and "detail" in payload:
        detail = payload["detail"]
        if isinstance(detail, list):
            # FastAPI-style validation errors: [{"loc": [...], "msg": "..."}]
            parts = []
            for item in detail:
                if isinstance(item, dict):
                    loc = ".".join(str(p) for p in item.get("loc", []) if p != "body")
                    parts.append(f"{loc}: {item.get('msg', '')}" if loc else str(item.get("msg", "")))
                else:
                    parts.append(str(item))
            return "; ".join(parts)
        return str(detail)
    return str(payload)


class PixelLabClient:
    def __init__(
        self,
        secret: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.secret = secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.secret}"}

    async def _request(self, method: str, path: str, **kwargs: object) -> dict:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(
                    method, f"{self.base_url}{path}", headers=self._headers(), **kwargs
                )
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            detail = _error_detail(exc.response)
            if status == 401:
                raise AuthenticationError(
                    f"Invalid or missing PixelLab API secret: {detail}", status_code=status
                ) from exc
            if is_rate_limit_status(status):
                raise RateLimitError(f"Rate limited on {path}: {detail}", status_code=status) from exc
            if status in (400, 422):
                raise ValidationError(f"Invalid request to {path}: {detail}", status_code=status) from exc
            raise PixelLabError(f"HTTP {status} on {path}: {detail}", status_code=status) from exc
        except httpx.HTTPError as exc:
            raise PixelLabError(f"PixelLab request failed for {path}: {exc}") from exc
        except ValueError as exc:
            raise PixelLabError(f"Malformed response from {path}") from exc
        if not isinstance(payload, dict):
            raise PixelLabError(f"Malformed response from {path}: expected a JSON object")
        return payload

    async def _image_call(self, path: str, body: dict[str, Any]) -> ImageResult:
        payload = await self._request("POST", path, json=_drop_none(body))
        try:
            return ImageResult(
                image=Base64Image.from_payload(payload["image"]),
                usage=Usage.from_payload(payload.get("usage")),
            )
        except (KeyError, TypeError) as exc:
            raise PixelLabError(f"Malformed response from {path}: missing image") from exc

    async def _animation_call(self, path: str, body: dict[str, Any]) -> AnimationResult:
        payload = await self._request("POST", path, json=_drop_none(body))
        images = payload.get("images") or []
        if not isinstance(images, list):
            raise PixelLabError(f"Malformed response from {path}: images is not a list")
        return AnimationResult(
            images=[Base64Image.from_payload(img) for img in images if isinstance(img, dict)],
            usage=Usage.from_payload(payload.get("usage")),
        )

    async def get_balance(self) -> Balance:
        payload = await self._request("GET", "/balance")
        return Balance(usd=float(payload.get("usd") or 0.0))

    async def generate_image_pixflux(
        self,
        *,
        description: str,
        image_size: ImageSize,
        negative_description: str | None = None,
        text_guidance_scale: float | None = None,
        no_background: bool | None = None,
        outline: str | None = None,
        shading: str | None = None,
        detail: str | None = None,
    ) -> ImageResult:
        return await self._image_call(
            "/generate-image-pixflux",
            {
                "description": description,
                "image_size": image_size.to_payload(),
                "negative_description": negative_description,
                "text_guidance_scale": text_guidance_scale,
                "no_background": no_background,
                "outline": outline,
                "shading": shading,
                "detail": detail,
            },
        )

    async def generate_image_bitforge(
        self,
        *,
        description: str,
        image_size: ImageSize,
        style_image: Base64Image,
        style_strength: float | None = None,
        no_background: bool | None = None,
    ) -> ImageResult:
        return await self._image_call(
            "/generate-image-bitforge",
            {
                "description": description,
                "image_size": image_size.to_payload(),
                "style_image": style_image.to_payload(),
                "style_strength": style_strength,
                "no_background": no_background,
            },
        )

    async def rotate(
        self,
        *,
        image_size: ImageSize,
        from_image: Base64Image,
        to_direction: str,
        from_direction: str | None = None,
    ) -> ImageResult:
        return await self._image_call(
            "/rotate",
            {
                "image_size": image_size.to_payload(),
                "from_image": from_image.to_payload(),
                "from_direction": from_direction,
                "to_direction": to_direction,
            },
        )

    async def inpaint(
        self,
        *,
        description: str,
        image_size: ImageSize,
        inpainting_image: Base64Image,
        mask_image: Base64Image,
    ) -> ImageResult:
        return await self._image_call(
            "/inpaint",
            {
                "description": description,
                "image_size": image_size.to_payload(),
                "inpainting_image": inpainting_image.to_payload(),
                "mask_image": mask_image.to_payload(),
            },
        )

    async def estimate_skeleton(self, *, image: Base64Image) -> SkeletonResult:
        path = "/estimate-skeleton"
        payload = await self._request("POST", path, json={"image": image.to_payload()})
        keypoints: list[Keypoint] = []
        try:
            for kp in payload.get("keypoints") or []:
                keypoints.append(
                    Keypoint(
                        x=float(kp["x"]),
                        y=float(kp["y"]),
                        label=str(kp["label"]),
                        z_index=float(kp.get("z_index", 0.0) or 0.0),
                    )
                )
        except (KeyError, TypeError, ValueError) as exc:
            raise PixelLabError(f"Malformed keypoint in response from {path}") from exc
        return SkeletonResult(keypoints=keypoints, usage=Usage.from_payload(payload.get("usage")))

    async def animate_with_skeleton(
        self,
        *,
        image_size: ImageSize,
        skeleton_keypoints: list[list[Keypoint]],
        view: str,
        direction: str,
        reference_guidance_scale: float,
        pose_guidance_scale: float,
        isometric: bool = False,
        oblique_projection: bool = False,
        reference_image: Base64Image | None = None,
        init_image_strength: int = 300,
        seed: int = 0,
    ) -> AnimationResult:
        return await self._animation_call(
            "/animate-with-skeleton",
            {
                "image_size": image_size.to_payload(),
                "skeleton_keypoints": [[kp.to_payload() for kp in frame] for frame in skeleton_keypoints],
                "view": view,
                "direction": direction,
                "reference_guidance_scale": reference_guidance_scale,
                "pose_guidance_scale": pose_guidance_scale,
                "isometric": isometric,
                "oblique_projection": oblique_projection,
                "reference_image": reference_image.to_payload() if reference_image else None,
                "init_image_strength": init_image_strength,
                "seed": seed,
            },
        )

    async def animate_with_text(
        self,
        *,
        image_size: ImageSize,
        description: str,
        action: str,
        reference_image: Base64Image,
        view: str,
        direction: str,
        negative_description: str | None = None,
        text_guidance_scale: float = 7.5,
        image_guidance_scale: float = 1.5,
        n_frames: int = 4,
        start_frame_index: int = 0,
        init_image_strength: int = 300,
        seed: int = 0,
    ) -> AnimationResult:
        return await self._animation_call(
            "/animate-with-text",
            {
                "image_size": image_size.to_payload(),
                "description": description,
                "action": action,
                "reference_image": reference_image.to_payload(),
                "view": view,
                "direction": direction,
                "negative_description": negative_description,
                "text_guidance_scale": text_guidance_scale,
                "image_guidance_scale": image_guidance_scale,
                "n_frames": n_frames,
                "start_frame_index": start_frame_index,
                "init_image_strength": init_image_strength,
                "seed": seed,
            },
        )
