"""Canvas-style compositing of foregrounds over transparent, color or image backgrounds."""

from __future__ import annotations

import logging
from typing import Optional, Tuple

from PIL import Image

from .imaging import DEFAULT_FILL, image_to_data_url, parse_color

logger = logging.getLogger(__name__)

TRANSPARENT = (0, 0, 0, 0)


def render_on_background(
    image: Image.Image, background_option: str, background_color: Optional[str] = None
) -> Image.Image:
    """
    Draw `image` onto a same-sized canvas prepared for `background_option`.

    "transparent" clears the canvas, "color" fills it with `background_color`,
    "image" leaves it blank so the custom background can be laid under later.
    """
    canvas = Image.new("RGBA", image.size, TRANSPARENT)
    if background_option == "color":
        fill = parse_color(background_color)
        if fill is None:
            logger.warning("compose: unusable color %r, filling with black", background_color)
            fill = DEFAULT_FILL
        canvas.paste(fill, (0, 0, canvas.width, canvas.height))
    return Image.alpha_composite(canvas, image.convert("RGBA"))


def centered_offset(canvas_size: Tuple[int, int], fg_size: Tuple[int, int]) -> Tuple[int, int]:
    return (canvas_size[0] - fg_size[0]) // 2, (canvas_size[1] - fg_size[1]) // 2


def composite_over_image(background: Image.Image, foreground: Image.Image) -> Image.Image:
    """
    Stretch `background` to the union canvas and center `foreground` at native size.

    The canvas takes the larger width and the larger height of the two inputs.
    """
    width = max(background.width, foreground.width)
    height = max(background.height, foreground.height)
    canvas = Image.new("RGBA", (width, height), TRANSPARENT)

    stretched = background.convert("RGBA")
    if stretched.size != (width, height):
        stretched = stretched.resize((width, height), Image.BILINEAR)
    canvas = Image.alpha_composite(canvas, stretched)

    offset = centered_offset((width, height), foreground.size)
    logger.debug(
        "compose: canvas=%dx%d background=%dx%d foreground=%dx%d offset=%s",
        width,
        height,
        background.width,
        background.height,
        foreground.width,
        foreground.height,
        offset,
    )
    canvas.alpha_composite(foreground.convert("RGBA"), dest=offset)
    return canvas


def render_foreground_data_url(
    image: Image.Image, background_option: str, background_color: Optional[str] = None
) -> str:
    return image_to_data_url(render_on_background(image, background_option, background_color))


def composite_data_url(background: Image.Image, foreground: Image.Image) -> str:
    return image_to_data_url(composite_over_image(background, foreground))
