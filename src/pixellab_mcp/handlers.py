"""
One coroutine per MCP tool.

Handlers take already-coerced arguments (see ``tool_args.coerce_args``) and a
``ToolContext``.  They load any input images, make one remote call through
``call_with_retry``, optionally save the result, and hand everything to the
builders in ``responses``.  Any exception becomes an error response; a handler
never raises into the server loop.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from .images import Base64Image, frame_path, frame_range_pattern
from .responses import (
    ToolResponse,
    build_comparison,
    build_error_response,
    build_response,
    build_text_response,
    image_block,
    text_block,
)
from .retry import call_with_retry
from .state import ToolContext
from .tools.errors import ErrorKind, classify
from .tools.pixellab import AnimationResult, ImageSize, Keypoint

log = logging.getLogger(__name__)

Handler = Callable[[dict[str, Any], ToolContext], Awaitable[ToolResponse]]


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _size(args: dict[str, Any]) -> ImageSize:
    return ImageSize(width=int(args["width"]), height=int(args["height"]))


def _image_metadata(args: dict[str, Any], usage: dict[str, Any], **extra: Any) -> dict[str, Any]:
    metadata: dict[str, Any] = {"parameters": args}
    metadata.update(extra)
    metadata["dimensions"] = {"width": args["width"], "height": args["height"]}
    metadata["filePath"] = args.get("save_to_file")
    metadata["usage"] = usage
    metadata["timestamp"] = _timestamp()
    return metadata


async def _remote(ctx: ToolContext, label: str, operation: Callable[[], Awaitable[Any]]) -> Any:
    return await call_with_retry(operation, ctx.retry_policy, label=label, sleep=ctx.sleep)


def _failure(tool: str, exc: Exception) -> ToolResponse:
    kind = classify(exc)
    if kind is ErrorKind.LOCAL:
        log.info("%s failed locally: %s", tool, exc)
    else:
        log.warning("%s failed (%s): %s", tool, kind.value.lower(), exc)
    return build_error_response(exc)


async def generate_image_pixflux(args: dict[str, Any], ctx: ToolContext) -> ToolResponse:
    try:
        result = await _remote(
            ctx,
            "generate_image_pixflux",
            lambda: ctx.client.generate_image_pixflux(
                description=args["description"],
                image_size=_size(args),
                negative_description=args.get("negative_description"),
                text_guidance_scale=args.get("text_guidance_scale"),
                no_background=args.get("no_background"),
                outline=args.get("outline"),
                shading=args.get("shading"),
                detail=args.get("detail"),
            ),
        )
        if args.get("save_to_file"):
            await result.image.save_to_file(args["save_to_file"])

        summary = f"Generated pixel art: {args['description']} ({args['width']}×{args['height']} pixels)"
        metadata = _image_metadata(args, result.usage.as_dict())
        if args.get("show_image"):
            return build_response(summary, result.image, metadata)
        return build_text_response(summary, result.usage.usd, metadata)
    except Exception as exc:
        return _failure("generate_image_pixflux", exc)


async def generate_image_bitforge(args: dict[str, Any], ctx: ToolContext) -> ToolResponse:
    try:
        style_image = await Base64Image.from_file(args["style_image_path"])
        result = await _remote(
            ctx,
            "generate_image_bitforge",
            lambda: ctx.client.generate_image_bitforge(
                description=args["description"],
                image_size=_size(args),
                style_image=style_image,
                style_strength=args.get("style_strength"),
                no_background=args.get("no_background"),
            ),
        )
        if args.get("save_to_file"):
            await result.image.save_to_file(args["save_to_file"])

        summary = (
            f"Generated pixel art with style: {args['description']} "
            f"({args['width']}×{args['height']} pixels, style strength: {args['style_strength']}%)"
        )
        metadata = _image_metadata(
            args, result.usage.as_dict(), styleReference=args["style_image_path"]
        )
        if args.get("show_image"):
            return build_response(summary, result.image, metadata)
        return build_text_response(summary, result.usage.usd, metadata)
    except Exception as exc:
        return _failure("generate_image_bitforge", exc)


async def get_balance(args: dict[str, Any], ctx: ToolContext) -> ToolResponse:
    try:
        balance = await _remote(ctx, "get_balance", ctx.client.get_balance)
        return build_response(f"PixelLab Balance: ${balance.usd} USD\nAccount status: Active")
    except Exception as exc:
        return _failure("get_balance", exc)


async def rotate(args: dict[str, Any], ctx: ToolContext) -> ToolResponse:
    try:
        original = await Base64Image.from_file(args["image_path"])
        result = await _remote(
            ctx,
            "rotate",
            lambda: ctx.client.rotate(
                image_size=_size(args),
                from_image=original,
                from_direction=args.get("from_direction"),
                to_direction=args["to_direction"],
            ),
        )
        if args.get("save_to_file"):
            await result.image.save_to_file(args["save_to_file"])

        summary = f"Rotated character from {args.get('from_direction') or 'current view'} to {args['to_direction']}"
        metadata = _image_metadata(args, result.usage.as_dict())
        if args.get("show_image"):
            return build_comparison(summary, original, result.image, metadata)
        return build_text_response(summary, result.usage.usd, metadata)
    except Exception as exc:
        return _failure("rotate", exc)


async def inpaint(args: dict[str, Any], ctx: ToolContext) -> ToolResponse:
    try:
        original = await Base64Image.from_file(args["image_path"])
        mask = await Base64Image.from_file(args["mask_path"])
        result = await _remote(
            ctx,
            "inpaint",
            lambda: ctx.client.inpaint(
                description=args["description"],
                image_size=_size(args),
                inpainting_image=original,
                mask_image=mask,
            ),
        )
        if args.get("save_to_file"):
            await result.image.save_to_file(args["save_to_file"])

        summary = f"Inpainted pixel art: {args['description']}"
        metadata = _image_metadata(args, result.usage.as_dict())
        if args.get("show_image"):
            return build_comparison(summary, original, result.image, metadata)
        return build_text_response(summary, result.usage.usd, metadata)
    except Exception as exc:
        return _failure("inpaint", exc)


async def estimate_skeleton(args: dict[str, Any], ctx: ToolContext) -> ToolResponse:
    try:
        image = await Base64Image.from_file(args["image_path"])
        result = await _remote(ctx, "estimate_skeleton", lambda: ctx.client.estimate_skeleton(image=image))

        summary = f"Estimated skeleton with {len(result.keypoints)} keypoints detected"
        metadata = {
            "parameters": args,
            "keypointCount": len(result.keypoints),
            "keypoints": [
                {"label": kp.label, "position": {"x": kp.x, "y": kp.y}, "zIndex": kp.z_index}
                for kp in result.keypoints
            ],
            "usage": result.usage.as_dict(),
            "timestamp": _timestamp(),
        }
        if args.get("show_image"):
            return build_response(summary, image, metadata)
        return build_text_response(summary, result.usage.usd, metadata)
    except Exception as exc:
        return _failure("estimate_skeleton", exc)


async def _animation_response(result: AnimationResult, args: dict[str, Any], what: str) -> ToolResponse:
    count = len(result.images)
    if count == 0:
        return ToolResponse([text_block("No animated frames were generated.")])

    summary = f"Animated pixel art sequence with {count} frames {what}. Cost: ${result.usage.usd:.4f}"
    save_to = args.get("save_to_file")
    if save_to:
        for index, frame in enumerate(result.images):
            await frame.save_to_file(frame_path(save_to, index))
        summary += f". Files saved: {frame_range_pattern(save_to, count)}"

    content = [text_block(summary)]
    if args.get("show_image"):
        content.extend(image_block(frame) for frame in result.images)
    return ToolResponse(content)


async def animate_with_skeleton(args: dict[str, Any], ctx: ToolContext) -> ToolResponse:
    try:
        frames = [
            [
                Keypoint(x=kp["x"], y=kp["y"], label=kp["label"], z_index=kp.get("z_index", 0.0))
                for kp in frame["keypoints"]
            ]
            for frame in args["skeleton_frames"]
        ]
        reference = None
        if args.get("reference_image_path"):
            reference = await Base64Image.from_file(args["reference_image_path"])
        result = await _remote(
            ctx,
            "animate_with_skeleton",
            lambda: ctx.client.animate_with_skeleton(
                image_size=_size(args),
                skeleton_keypoints=frames,
                view=args["view"],
                direction=args["direction"],
                reference_guidance_scale=args["reference_guidance_scale"],
                pose_guidance_scale=args["pose_guidance_scale"],
                isometric=args["isometric"],
                oblique_projection=args["oblique_projection"],
                reference_image=reference,
                init_image_strength=args["init_image_strength"],
                seed=args["seed"],
            ),
        )
        return await _animation_response(result, args, "using skeleton keypoints")
    except Exception as exc:
        return _failure("animate_with_skeleton", exc)


async def animate_with_text(args: dict[str, Any], ctx: ToolContext) -> ToolResponse:
    try:
        reference = await Base64Image.from_file(args["reference_image_path"])
        result = await _remote(
            ctx,
            "animate_with_text",
            lambda: ctx.client.animate_with_text(
                image_size=_size(args),
                description=args["description"],
                action=args["action"],
                reference_image=reference,
                view=args["view"],
                direction=args["direction"],
                negative_description=args.get("negative_description"),
                text_guidance_scale=args["text_guidance_scale"],
                image_guidance_scale=args["image_guidance_scale"],
                n_frames=args["n_frames"],
                start_frame_index=args["start_frame_index"],
                init_image_strength=args["init_image_strength"],
                seed=args["seed"],
            ),
        )
        what = f'from text description: "{args["description"]}" with action: "{args["action"]}"'
        return await _animation_response(result, args, what)
    except Exception as exc:
        return _failure("animate_with_text", exc)


HANDLERS: dict[str, Handler] = {
    "generate_image_pixflux": generate_image_pixflux,
    "generate_image_bitforge": generate_image_bitforge,
    "get_balance": get_balance,
    "rotate": rotate,
    "inpaint": inpaint,
    "estimate_skeleton": estimate_skeleton,
    "animate_with_skeleton": animate_with_skeleton,
    "animate_with_text": animate_with_text,
}
