"""Tests for canvas-style compositing."""

from PIL import Image

from conftest import open_png
from cutout_service.compositing import (
    centered_offset,
    composite_data_url,
    composite_over_image,
    render_foreground_data_url,
    render_on_background,
)
from cutout_service.imaging import decode_data_url

RED = (255, 0, 0, 255)
BLUE = (0, 0, 255, 255)
CLEAR = (0, 0, 0, 0)


def half_transparent(size=(10, 6)):
    """Left half opaque red, right half fully transparent."""
    image = Image.new("RGBA", size, CLEAR)
    image.paste(RED, (0, 0, size[0] // 2, size[1]))
    return image


class TestRenderOnBackground:
    def test_transparent_keeps_source_dimensions(self):
        source = half_transparent((37, 21))

        data_url = render_foreground_data_url(source, "transparent")

        mime_type, payload = decode_data_url(data_url)
        assert mime_type == "image/png"
        assert open_png(payload).size == (37, 21)

    def test_transparent_leaves_clear_pixels_clear(self):
        out = render_on_background(half_transparent(), "transparent")

        assert out.getpixel((0, 0)) == RED
        assert out.getpixel((9, 0)) == CLEAR

    def test_color_fills_behind_source(self):
        out = render_on_background(half_transparent(), "color", "#0000ff")

        assert out.getpixel((0, 0)) == RED
        assert out.getpixel((9, 5)) == BLUE

    def test_short_hex_and_named_colors(self):
        assert render_on_background(half_transparent(), "color", "#00f").getpixel((9, 0)) == BLUE
        assert render_on_background(half_transparent(), "color", "blue").getpixel((9, 0)) == BLUE

    def test_unusable_color_fills_black(self):
        out = render_on_background(half_transparent(), "color", "not-a-color")

        assert out.getpixel((9, 0)) == (0, 0, 0, 255)

    def test_image_option_leaves_canvas_blank(self):
        out = render_on_background(half_transparent(), "image", "#0000ff")

        assert out.getpixel((9, 0)) == CLEAR

    def test_rgb_source_is_accepted(self):
        source = Image.new("RGB", (5, 5), (0, 255, 0))

        out = render_on_background(source, "transparent")

        assert out.mode == "RGBA"
        assert out.getpixel((2, 2)) == (0, 255, 0, 255)

    def test_encoding_is_deterministic(self):
        source = half_transparent((64, 48))

        first = render_foreground_data_url(source, "color", "#336699")
        second = render_foreground_data_url(source, "color", "#336699")

        assert first == second


class TestCompositeOverImage:
    def test_foreground_centered_on_larger_background(self):
        background = Image.new("RGBA", (800, 600), BLUE)
        foreground = Image.new("RGBA", (400, 300), RED)

        out = composite_over_image(background, foreground)

        assert out.size == (800, 600)
        assert centered_offset(out.size, foreground.size) == (200, 150)
        assert out.getpixel((200, 150)) == RED
        assert out.getpixel((599, 449)) == RED
        assert out.getpixel((199, 149)) == BLUE
        assert out.getpixel((600, 450)) == BLUE

    def test_canvas_takes_max_of_each_dimension(self):
        background = Image.new("RGBA", (100, 400), BLUE)
        foreground = Image.new("RGBA", (300, 200), RED)

        out = composite_over_image(background, foreground)

        assert out.size == (300, 400)
        # background is stretched to the full canvas
        assert out.getpixel((0, 0)) == BLUE
        assert out.getpixel((299, 399)) == BLUE
        assert out.getpixel((0, 100)) == RED

    def test_transparent_foreground_pixels_show_background(self):
        background = Image.new("RGBA", (10, 6), BLUE)

        out = composite_over_image(background, half_transparent())

        assert out.getpixel((0, 0)) == RED
        assert out.getpixel((9, 0)) == BLUE

    def test_odd_difference_rounds_offset_down(self):
        assert centered_offset((101, 51), (10, 10)) == (45, 20)

    def test_composite_data_url_is_deterministic(self):
        background = Image.new("RGBA", (80, 60), BLUE)
        foreground = half_transparent((40, 30))

        assert composite_data_url(background, foreground) == composite_data_url(background, foreground)
