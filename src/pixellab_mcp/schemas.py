from __future__ import annotations

from typing import Any

from .tools.pixellab import SKELETON_LABELS

DIRECTIONS = [
    "south", "south-east", "east", "north-east",
    "north", "north-west", "west", "south-west",
]
VIEWS = ["side", "low top-down", "high top-down"]
OUTLINES = [
    "single color black outline",
    "single color outline",
    "selective outline",
    "lineless",
]
SHADINGS = [
    "flat shading",
    "basic shading",
    "medium shading",
    "detailed shading",
    "highly detailed shading",
]
DETAILS = ["low detail", "medium detail", "highly detailed"]


def _size(axis: str, *, minimum: int | None = None, maximum: int | None = None) -> dict[str, Any]:
    prop: dict[str, Any] = {
        "type": "integer",
        "default": 64,
        "description": f"Image {axis} in pixels (recommended: 32, 64, 128, 256).",
    }
    if minimum is not None:
        prop["minimum"] = minimum
    if maximum is not None:
        prop["maximum"] = maximum
    return prop


def _save_to_file(example: str) -> dict[str, Any]:
    return {
        "type": "string",
        "description": f"Optional file path to save the generated image (e.g. '{example}').",
    }


def _show_image(what: str) -> dict[str, Any]:
    return {
        "type": "boolean",
        "default": False,
        "description": f"Whether to show {what} to the AI assistant for viewing and analysis.",
    }


def _guidance(default: float, what: str) -> dict[str, Any]:
    return {
        "type": "number",
        "minimum": 1.0,
        "maximum": 20.0,
        "default": default,
        "description": f"How closely to follow {what} (1.0-20.0).",
    }


_KEYPOINT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "x": {"type": "number", "description": "X coordinate of the keypoint."},
        "y": {"type": "number", "description": "Y coordinate of the keypoint."},
        "label": {
            "type": "string",
            "enum": list(SKELETON_LABELS),
            "description": "Skeleton joint label.",
        },
        "z_index": {
            "type": "number",
            "default": 0.0,
            "description": "Depth ordering (higher = in front).",
        },
    },
    "required": ["x", "y", "label"],
}


TOOL_SCHEMAS: list[dict[str, Any]] = [
    {
        "name": "generate_image_pixflux",
        "description": (
            "Generate pixel art from text description using Pixflux model. Perfect for creating "
            "characters, objects, and scenes in retro pixel art style."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "description": {
                    "type": "string",
                    "description": (
                        "Text description of what to generate "
                        "(e.g. 'cute dragon with sword', 'medieval knight')."
                    ),
                },
                "width": _size("width"),
                "height": _size("height"),
                "negative_description": {
                    "type": "string",
                    "description": "What to avoid in the generation (e.g. 'blurry, ugly, distorted').",
                },
                "text_guidance_scale": {
                    "type": "number",
                    "default": 8.0,
                    "description": (
                        "How closely to follow the text description "
                        "(1.0-20.0, higher = more faithful to prompt)."
                    ),
                },
                "no_background": {
                    "type": "boolean",
                    "default": False,
                    "description": "Generate character without background (useful for sprites).",
                },
                "outline": {"type": "string", "enum": OUTLINES, "description": "Outline style for the pixel art."},
                "shading": {"type": "string", "enum": SHADINGS, "description": "Shading complexity level."},
                "detail": {"type": "string", "enum": DETAILS, "description": "Overall detail level."},
                "save_to_file": _save_to_file("./dragon.png"),
                "show_image": _show_image("the generated image"),
            },
            "required": ["description"],
        },
    },
    {
        "name": "generate_image_bitforge",
        "description": (
            "Generate pixel art using a reference style image with Bitforge model. Upload a style "
            "reference to match its artistic style while generating new content."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "description": {
                    "type": "string",
                    "description": "Text description of what to generate (e.g. 'warrior holding shield').",
                },
                "style_image_path": {
                    "type": "string",
                    "description": "Path to reference style image that defines the art style to match.",
                },
                "width": _size("width"),
                "height": _size("height"),
                "style_strength": {
                    "type": "number",
                    "default": 50.0,
                    "minimum": 0.0,
                    "maximum": 100.0,
                    "description": (
                        "How strongly to match the reference style "
                        "(0-100, higher = more similar to reference)."
                    ),
                },
                "no_background": {
                    "type": "boolean",
                    "default": False,
                    "description": "Generate character without background (useful for sprites).",
                },
                "save_to_file": _save_to_file("./styled_character.png"),
                "show_image": _show_image("the generated image"),
            },
            "required": ["description", "style_image_path"],
        },
    },
    {
        "name": "get_balance",
        "description": "Check your PixelLab API account balance and usage credits.",
        "inputSchema": {"type": "object", "properties": {}, "required": []},
    },
    {
        "name": "rotate",
        "description": (
            "Rotate a character or object to face a different direction. Useful for creating "
            "sprite sheets or changing character poses."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "image_path": {
                    "type": "string",
                    "description": "Path to the character or object image to rotate.",
                },
                "from_direction": {
                    "type": "string",
                    "enum": DIRECTIONS,
                    "description": "Current direction the character is facing (if known, helps with accuracy).",
                },
                "to_direction": {
                    "type": "string",
                    "enum": DIRECTIONS,
                    "description": "Target direction to rotate the character to face.",
                },
                "width": _size("width"),
                "height": _size("height"),
                "save_to_file": _save_to_file("./character_east.png"),
                "show_image": _show_image("the before/after comparison"),
            },
            "required": ["image_path", "to_direction"],
        },
    },
    {
        "name": "inpaint",
        "description": (
            "Edit specific regions of pixel art using a mask. Paint new elements like hats, armor, "
            "or accessories onto existing characters."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "image_path": {"type": "string", "description": "Path to the original pixel art image to edit."},
                "mask_path": {
                    "type": "string",
                    "description": (
                        "Path to mask image where white pixels = areas to edit/replace, "
                        "black pixels = areas to keep unchanged."
                    ),
                },
                "description": {
                    "type": "string",
                    "description": "What to paint in the masked area (e.g. 'red hat', 'golden armor').",
                },
                "width": _size("width"),
                "height": _size("height"),
                "save_to_file": _save_to_file("./character_with_hat.png"),
                "show_image": _show_image("the before/after comparison"),
            },
            "required": ["image_path", "mask_path", "description"],
        },
    },
    {
        "name": "estimate_skeleton",
        "description": (
            "Analyze a character image to detect skeleton/pose keypoints. Useful for understanding "
            "character structure and poses."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "image_path": {
                    "type": "string",
                    "description": "Path to the character image to analyze for skeleton/pose detection.",
                },
                "show_image": _show_image("the original image with skeleton data"),
            },
            "required": ["image_path"],
        },
    },
    {
        "name": "animate_with_skeleton",
        "description": (
            "Create animated pixel art sequences using skeleton keyframes. Define keypoints for "
            "different poses to create smooth animations."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "skeleton_frames": {
                    "type": "array",
                    "description": "Skeleton frames defining the animation sequence.",
                    "items": {
                        "type": "object",
                        "properties": {
                            "keypoints": {"type": "array", "items": _KEYPOINT_SCHEMA},
                        },
                        "required": ["keypoints"],
                    },
                },
                "reference_image_path": {
                    "type": "string",
                    "description": "Optional path to reference image for character appearance.",
                },
                "width": _size("width", minimum=16, maximum=512),
                "height": _size("height", minimum=16, maximum=512),
                "view": {"type": "string", "enum": VIEWS, "default": "side", "description": "Camera viewpoint."},
                "direction": {
                    "type": "string",
                    "enum": DIRECTIONS,
                    "default": "east",
                    "description": "Character facing direction.",
                },
                "reference_guidance_scale": _guidance(1.1, "the reference image"),
                "pose_guidance_scale": _guidance(3.0, "the skeleton poses"),
                "isometric": {"type": "boolean", "default": False, "description": "Use isometric projection."},
                "oblique_projection": {
                    "type": "boolean",
                    "default": False,
                    "description": "Use oblique projection.",
                },
                "init_image_strength": {
                    "type": "integer",
                    "minimum": 0,
                    "maximum": 1000,
                    "default": 300,
                    "description": "Strength of initialization images (0-1000).",
                },
                "seed": {"type": "integer", "default": 0, "description": "Random seed for reproducible results."},
                "save_to_file": {
                    "type": "string",
                    "description": "Optional file path template to save animation frames (e.g. './animation.png').",
                },
                "show_image": _show_image("the generated animation frames"),
            },
            "required": ["skeleton_frames"],
        },
    },
    {
        "name": "animate_with_text",
        "description": (
            "Create animated pixel art sequences from text descriptions. Requires a reference "
            "character image and describes the action to animate."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "description": {
                    "type": "string",
                    "minLength": 1,
                    "description": "Character to animate (e.g. 'knight in armor', 'wizard with staff').",
                },
                "action": {
                    "type": "string",
                    "minLength": 1,
                    "description": "Action to animate (e.g. 'walking', 'swinging sword').",
                },
                "reference_image_path": {
                    "type": "string",
                    "description": "Path to reference character image to animate.",
                },
                "width": _size("width", minimum=16, maximum=512),
                "height": _size("height", minimum=16, maximum=512),
                "view": {"type": "string", "enum": VIEWS, "default": "side", "description": "Camera viewpoint."},
                "direction": {
                    "type": "string",
                    "enum": DIRECTIONS,
                    "default": "east",
                    "description": "Character facing direction.",
                },
                "negative_description": {
                    "type": "string",
                    "description": "What to avoid in the animation (e.g. 'blurry, distorted').",
                },
                "text_guidance_scale": _guidance(7.5, "the text description"),
                "image_guidance_scale": _guidance(1.5, "the reference image"),
                "n_frames": {
                    "type": "integer",
                    "minimum": 1,
                    "maximum": 20,
                    "default": 4,
                    "description": "Number of animation frames to generate (1-20).",
                },
                "start_frame_index": {
                    "type": "integer",
                    "minimum": 0,
                    "default": 0,
                    "description": "Starting frame index (for continuing animations).",
                },
                "init_image_strength": {
                    "type": "integer",
                    "minimum": 1,
                    "maximum": 999,
                    "default": 300,
                    "description": "Strength of initialization images (1-999).",
                },
                "seed": {"type": "integer", "default": 0, "description": "Random seed for reproducible results."},
                "save_to_file": {
                    "type": "string",
                    "description": "Optional file path template to save animation frames (e.g. './walk_cycle.png').",
                },
                "show_image": _show_image("the generated animation frames"),
            },
            "required": ["description", "action", "reference_image_path"],
        },
    },
]

SCHEMAS_BY_NAME: dict[str, dict[str, Any]] = {s["name"]: s for s in TOOL_SCHEMAS}
