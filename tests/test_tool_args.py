import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from pixellab_mcp.schemas import SCHEMAS_BY_NAME
from pixellab_mcp.tool_args import ArgumentError, coerce_args, parse_tool_args


def _schema(name: str) -> dict:
    return SCHEMAS_BY_NAME[name]["inputSchema"]


class TestParseToolArgs(unittest.TestCase):
    def test_dict_passthrough(self) -> None:
        self.assertEqual(parse_tool_args({"a": 1}), {"a": 1})

    def test_none_is_empty(self) -> None:
        self.assertEqual(parse_tool_args(None), {})
        self.assertEqual(parse_tool_args("  "), {})

    def test_json_string(self) -> None:
        self.assertEqual(parse_tool_args('{"description": "knight"}'), {"description": "knight"})

    def test_code_fenced_json(self) -> None:
        text = '```json\n{"to_direction": "east"}\n```'
        self.assertEqual(parse_tool_args(text), {"to_direction": "east"})

    def test_yaml_fallback(self) -> None:
        self.assertEqual(parse_tool_args("description: knight\nwidth: 32"), {"description": "knight", "width": 32})

    def test_non_object_rejected(self) -> None:
        with self.assertRaises(ArgumentError):
            parse_tool_args("[1, 2, 3]")
        with self.assertRaises(ArgumentError):
            parse_tool_args(42)


class TestCoerceArgs(unittest.TestCase):
    def test_defaults_filled(self) -> None:
        args = coerce_args(_schema("generate_image_pixflux"), {"description": "dragon"})
        self.assertEqual(args["width"], 64)
        self.assertEqual(args["height"], 64)
        self.assertEqual(args["text_guidance_scale"], 8.0)
        self.assertFalse(args["no_background"])
        self.assertFalse(args["show_image"])
        self.assertNotIn("outline", args)
        self.assertNotIn("save_to_file", args)

    def test_missing_required(self) -> None:
        with self.assertRaises(ArgumentError) as ctx:
            coerce_args(_schema("rotate"), {"image_path": "a.png"})
        self.assertIn("to_direction", str(ctx.exception))

    def test_enum_checked(self) -> None:
        with self.assertRaises(ArgumentError):
            coerce_args(_schema("rotate"), {"image_path": "a.png", "to_direction": "up"})

    def test_numeric_strings_coerced(self) -> None:
        args = coerce_args(
            _schema("generate_image_pixflux"),
            {"description": "d", "width": "32", "text_guidance_scale": "4.5", "show_image": "true"},
        )
        self.assertEqual(args["width"], 32)
        self.assertEqual(args["text_guidance_scale"], 4.5)
        self.assertIs(args["show_image"], True)

    def test_range_enforced(self) -> None:
        base = {"description": "d", "action": "walk", "reference_image_path": "r.png"}
        with self.assertRaises(ArgumentError):
            coerce_args(_schema("animate_with_text"), {**base, "n_frames": 21})
        with self.assertRaises(ArgumentError):
            coerce_args(_schema("animate_with_text"), {**base, "width": 8})
        args = coerce_args(_schema("animate_with_text"), {**base, "n_frames": 20})
        self.assertEqual(args["n_frames"], 20)

    def test_empty_action_rejected(self) -> None:
        with self.assertRaises(ArgumentError):
            coerce_args(
                _schema("animate_with_text"),
                {"description": "d", "action": "", "reference_image_path": "r.png"},
            )

    def test_nested_keypoints(self) -> None:
        args = coerce_args(
            _schema("animate_with_skeleton"),
            {"skeleton_frames": [{"keypoints": [{"x": "1", "y": 2, "label": "LEFT EAR"}]}]},
        )
        keypoint = args["skeleton_frames"][0]["keypoints"][0]
        self.assertEqual(keypoint, {"x": 1.0, "y": 2.0, "label": "LEFT EAR", "z_index": 0.0})

    def test_bad_keypoint_label_reports_path(self) -> None:
        with self.assertRaises(ArgumentError) as ctx:
            coerce_args(
                _schema("animate_with_skeleton"),
                {"skeleton_frames": [{"keypoints": [{"x": 1, "y": 2, "label": "TAIL"}]}]},
            )
        self.assertIn("skeleton_frames[0].keypoints[0].label", str(ctx.exception))

    def test_bool_is_not_an_integer(self) -> None:
        with self.assertRaises(ArgumentError):
            coerce_args(_schema("generate_image_pixflux"), {"description": "d", "width": True})


if __name__ == "__main__":
    unittest.main()
