###############################################################
#
# deckswitch – Stream Deck audio output toggle
#
# Copyright (C) 2026 Peter Damerau
# https://www.talla83.de
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
###############################################################

"""
Icon lookup, rasterization and caching

IconSource resolves an icon spec to image bytes, IconRenderer turns those
bytes into a key-sized RGB bitmap and keeps every result for the lifetime
of the process.
"""

import io
import logging
import os
from dataclasses import dataclass

from PIL import Image, ImageDraw

from deckswitch.config import MaterialIcon, PathIcon
from deckswitch.errors import AssetNotFound, RenderFailed

logger = logging.getLogger(__name__)

# Bundled material icons
ASSETS_PATH = os.path.join(os.path.dirname(__file__), "assets")
USER_ASSETS_PATH = os.path.join(os.path.expanduser("~"), ".config", "deckswitch", "assets")

MATERIAL_ICON_TINT = (220, 235, 255)

# Fraction of the key left free around the icon on each side
ICON_MARGIN = 0.15

HIGHLIGHT_BACKGROUND = (16, 40, 72)
HIGHLIGHT_BORDER = (64, 156, 255)

BACKGROUND = (0, 0, 0)


@dataclass(frozen=True)
class Bitmap:
    """Raw RGB pixels for one key, row-major, 3 bytes per pixel"""
    size: tuple
    data: bytes

    def to_image(self):
        return Image.frombytes("RGB", self.size, self.data)


class IconSource:
    """
    Resolve icon specs to files on disk

    Material icons are looked up by name as '<name>.svg' in the user assets
    directory, the configuration directory and finally the bundled assets.
    Relative paths are tried against the configuration directory, the user
    assets directory and the current working directory.
    """

    def __init__(self, base_dir=None, assets_dir=USER_ASSETS_PATH, bundled_dir=ASSETS_PATH):
        self.base_dir = base_dir
        self.assets_dir = assets_dir
        self.bundled_dir = bundled_dir

    def candidates(self, icon):
        if isinstance(icon, MaterialIcon):
            filename = "{}.svg".format(icon.name)
            return [os.path.join(d, filename)
                    for d in (self.assets_dir, self.base_dir, self.bundled_dir) if d]

        if isinstance(icon, PathIcon):
            path = os.path.expanduser(icon.path)
            if os.path.isabs(path):
                return [path]
            return [os.path.join(d, path) for d in (self.base_dir, self.assets_dir) if d] + [path]

        raise AssetNotFound("unsupported icon spec: {!r}".format(icon))

    def resolve(self, icon):
        """
        Find the file backing an icon spec

        Returns:
            Path of the first existing candidate

        Raises:
            AssetNotFound: no candidate exists
        """
        tried = self.candidates(icon)
        for candidate in tried:
            if os.path.isfile(candidate):
                return candidate
        raise AssetNotFound("icon {} not found (tried: {})".format(describe_icon(icon), ", ".join(tried)))

    def load(self, icon):
        path = self.resolve(icon)
        try:
            with open(path, "rb") as fh:
                return fh.read()
        except OSError as e:
            raise AssetNotFound("failed to read icon {}: {}".format(path, e)) from e


def describe_icon(icon):
    if isinstance(icon, MaterialIcon):
        return "material:{}".format(icon.name)
    if isinstance(icon, PathIcon):
        return icon.path
    return repr(icon)


def is_svg(data):
    head = data[:512].lstrip()
    return head.startswith(b"<?xml") or head.startswith(b"<svg") or b"<svg" in head


def rasterize(data, size):
    """
    Rasterize image bytes so they fit into size, keeping the aspect ratio

    Args:
        data: SVG or raster image bytes
        size: (width, height) bounding box

    Returns:
        PIL.Image in RGBA mode
    """
    if is_svg(data):
        return _render_svg(data, size)

    image = Image.open(io.BytesIO(data))
    image.load()
    image = image.convert("RGBA")
    image.thumbnail(size, Image.LANCZOS)
    return image


def _render_svg(data, size):
    # cairosvg pulls in the cairo C library; only SVG icons need it
    import cairosvg

    png = cairosvg.svg2png(bytestring=data, output_width=size[0], output_height=size[1])
    image = Image.open(io.BytesIO(png))
    image.load()
    return image.convert("RGBA")


def tint(image, color):
    """Recolor an RGBA image to a single color, keeping its alpha channel"""
    solid = Image.new("RGBA", image.size, color + (255,))
    solid.putalpha(image.getchannel("A"))
    return solid


class IconRenderer:
    """
    Render icons into key bitmaps and memoize them

    Cache keys are (icon spec, size, highlighted). Entries are never evicted;
    there is one per configured output and state. A failing render leaves
    the cache untouched so the next call tries again.
    """

    def __init__(self, source, rasterizer=rasterize):
        self.source = source
        self.rasterizer = rasterizer
        self._cache = {}

    def __len__(self):
        return len(self._cache)

    def get(self, icon, size, highlighted=False):
        """
        Get the bitmap for an icon

        Args:
            icon: MaterialIcon or PathIcon
            size: (width, height) of the key in pixels
            highlighted: Draw the selected-state background and border

        Returns:
            Bitmap

        Raises:
            AssetNotFound: icon does not resolve to a file
            RenderFailed: file could not be decoded/rasterized
        """
        size = (int(size[0]), int(size[1]))
        key = (icon, size, bool(highlighted))

        bitmap = self._cache.get(key)
        if bitmap is not None:
            return bitmap

        data = self.source.load(icon)
        image = self._compose(icon, data, size, highlighted)

        bitmap = Bitmap(size=size, data=image.tobytes())
        self._cache[key] = bitmap
        logger.debug("Rendered icon %s at %dx%d (highlighted=%s)",
                     describe_icon(icon), size[0], size[1], highlighted)
        return bitmap

    def _compose(self, icon, data, size, highlighted):
        width, height = size
        margin_x = int(width * ICON_MARGIN)
        margin_y = int(height * ICON_MARGIN)
        inner = (max(1, width - 2 * margin_x), max(1, height - 2 * margin_y))

        try:
            glyph = self.rasterizer(data, inner).convert("RGBA")
        except Exception as e:
            raise RenderFailed("failed to render icon {}: {}".format(describe_icon(icon), e)) from e

        if isinstance(icon, MaterialIcon):
            glyph = tint(glyph, MATERIAL_ICON_TINT)

        canvas = Image.new("RGB", size, HIGHLIGHT_BACKGROUND if highlighted else BACKGROUND)
        offset = ((width - glyph.width) // 2, (height - glyph.height) // 2)
        canvas.paste(glyph, offset, glyph)

        if highlighted:
            border = max(2, width // 24)
            draw = ImageDraw.Draw(canvas)
            draw.rectangle((0, 0, width - 1, height - 1), outline=HIGHLIGHT_BORDER, width=border)

        return canvas
