from unittest.mock import patch

import pytest
from PIL import Image, ImageChops

from i3f.core.exceptions import InvalidRegionFormat, InvalidRotationFormat, InvalidSizeFormat
from i3f.iiif.geometry import SizeLimits
from i3f.iiif.request import parse_image_request
from i3f.services import pipeline
from i3f.services.pipeline import BITONAL_THRESHOLD, render_derivative


def _render(img: Image.Image, path: str, limits: SizeLimits = SizeLimits()) -> Image.Image:
    return render_derivative(img, parse_image_request(path), limits)


class TestRegionAndSize:
    def test_full_max_is_identity(self, demo_image: Image.Image) -> None:
        result = _render(demo_image, "demo/full/max/0/default.png")
        assert result.size == (300, 200)
        assert ImageChops.difference(result, demo_image).getbbox() is None

    def test_rect_crop_is_clamped(self, demo_image: Image.Image) -> None:
        result = _render(demo_image, "demo/125,15,200,200/max/0/default.png")
        assert result.size == (175, 185)
        assert result.getpixel((0, 0)) == demo_image.getpixel((125, 15))

    def test_pct_crop(self, demo_image: Image.Image) -> None:
        result = _render(demo_image, "demo/pct:41.6,7.5,66.6,100/max/0/default.png")
        assert result.size == (175, 185)

    def test_square_then_width(self, demo_image: Image.Image) -> None:
        result = _render(demo_image, "demo/square/150,/0/default.png")
        assert result.size == (150, 150)

    def test_confined(self, demo_image: Image.Image) -> None:
        assert _render(demo_image, "demo/full/!225,100/0/default.png").size == (150, 100)
        assert _render(demo_image, "demo/full/^!360,360/0/default.png").size == (360, 240)

    def test_limits_cap_max(self, demo_image: Image.Image) -> None:
        result = _render(demo_image, "demo/full/max/0/default.png", SizeLimits(max_width=150))
        assert result.size == (150, 100)

    def test_invalid_region_aborts(self, demo_image: Image.Image) -> None:
        with pytest.raises(InvalidRegionFormat):
            _render(demo_image, "demo/400,0,10,10/max/0/default.png")

    def test_upscale_without_flag_aborts(self, demo_image: Image.Image) -> None:
        with pytest.raises(InvalidSizeFormat):
            _render(demo_image, "demo/full/600,/0/default.png")

    def test_non_rgb_source_is_normalized(self) -> None:
        img = Image.new("CMYK", (40, 20), (0, 255, 0, 0))
        assert _render(img, "demo/full/20,/0/default.png").size == (20, 10)

    def test_palette_source_is_resampled_smoothly(self) -> None:
        img = Image.new("P", (100, 10))
        img.putpalette([0, 0, 0, 255, 255, 255])
        img.putdata([x % 2 for _ in range(10) for x in range(100)])
        result = _render(img, "demo/full/50,/0/default.png")
        assert result.mode == "RGB"
        assert result.size == (50, 5)
        values = {value for _, value in result.convert("L").getcolors()}
        assert any(0 < value < 255 for value in values)

    def test_palette_transparency_becomes_alpha(self) -> None:
        img = Image.new("P", (20, 20))
        img.putpalette([0, 0, 0, 255, 0, 0])
        img.info["transparency"] = 0
        assert _render(img, "demo/full/max/0/default.png").mode == "RGBA"
        assert _render(img, "demo/full/max/0/gray.png").mode == "LA"

    def test_bilevel_source_becomes_grayscale(self) -> None:
        img = Image.new("1", (40, 20), 1)
        result = _render(img, "demo/full/20,/0/default.png")
        assert result.mode == "L"
        assert result.size == (20, 10)


class TestRotation:
    def test_right_angle_is_exact_transpose(self, demo_image: Image.Image) -> None:
        result = _render(demo_image, "demo/full/max/90/default.png")
        assert result.size == (200, 300)
        expected = demo_image.transpose(Image.Transpose.ROTATE_270)
        assert ImageChops.difference(result, expected).getbbox() is None
        # top-left of a clockwise turn is the source's bottom-left
        assert result.getpixel((0, 0)) == demo_image.getpixel((0, 199))

    def test_half_and_three_quarter_turns(self, demo_image: Image.Image) -> None:
        assert _render(demo_image, "demo/full/max/180/default.png").size == (300, 200)
        assert _render(demo_image, "demo/full/max/270/default.png").size == (200, 300)
        assert _render(demo_image, "demo/full/max/360/default.png").size == (300, 200)

    def test_mirror_flips_before_rotating(self, demo_image: Image.Image) -> None:
        mirrored = _render(demo_image, "demo/full/max/!0/default.png")
        assert mirrored.getpixel((0, 0)) == demo_image.getpixel((299, 0))
        rotated = _render(demo_image, "demo/full/max/!90/default.png")
        expected = demo_image.transpose(Image.Transpose.FLIP_LEFT_RIGHT).transpose(Image.Transpose.ROTATE_270)
        assert ImageChops.difference(rotated, expected).getbbox() is None

    def test_free_angle_grows_canvas(self, demo_image: Image.Image) -> None:
        result = _render(demo_image, "demo/full/max/22.5/default.png")
        assert result.width > 300
        assert result.height > 200
        assert result.mode == "RGBA"
        # corners are padding
        assert result.getpixel((0, 0))[3] == 0

    def test_free_angle_on_square(self, demo_image: Image.Image) -> None:
        result = _render(demo_image, "demo/square/150,/15/color.png")
        assert result.size == (184, 184)

    def test_out_of_range_angle_aborts(self, demo_image: Image.Image) -> None:
        with pytest.raises(InvalidRotationFormat):
            _render(demo_image, "demo/full/max/361/default.png")

    def test_free_angle_canvas_past_pixel_ceiling_aborts(self, demo_image: Image.Image) -> None:
        with patch.object(pipeline, "MAX_PIXELS", 60_000):
            assert _render(demo_image, "demo/full/max/90/default.png").size == (200, 300)
            with pytest.raises(InvalidRotationFormat):
                _render(demo_image, "demo/full/max/22.5/default.png")


class TestQuality:
    def test_color_is_identity(self, demo_image: Image.Image) -> None:
        result = _render(demo_image, "demo/full/max/0/color.png")
        assert result.mode == "RGB"

    def test_gray(self, demo_image: Image.Image) -> None:
        assert _render(demo_image, "demo/full/max/0/gray.png").mode == "L"
        assert _render(demo_image, "demo/full/max/30/gray.png").mode == "LA"

    def test_bitonal_has_two_values(self, demo_image: Image.Image) -> None:
        result = _render(demo_image, "demo/full/max/0/bitonal.png")
        assert result.mode == "L"
        values = {value for _, value in result.getcolors()}
        assert values == {0, 255}

    def test_bitonal_threshold(self) -> None:
        img = Image.new("L", (2, 1))
        img.putpixel((0, 0), BITONAL_THRESHOLD)
        img.putpixel((1, 0), BITONAL_THRESHOLD + 1)
        result = _render(img, "demo/full/max/0/bitonal.png")
        assert result.getpixel((0, 0)) == 0
        assert result.getpixel((1, 0)) == 255
