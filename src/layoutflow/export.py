"""
File export functionality for layouts.

This module handles exporting finished layouts:
- JSON files (.json) - The LayoutResult exchange schema
- PNG images - A preview of the boxes and edges on the canvas

The LayoutExporter class provides methods for saving layouts and handles
font loading, image rendering, and file I/O.
"""

import json
import math
from pathlib import Path
from typing import Optional, Tuple, Union

from PIL import Image, ImageDraw, ImageFont

from .engine import LayoutResult
from .models import Layout


class LayoutExporter:
    """
    Exports layouts to JSON and PNG.

    Attributes:
        default_font: Default font name for PNG export.
    """

    def __init__(self, default_font: Optional[str] = None):
        """
        Initialize the layout exporter.

        Args:
            default_font: Default font name for PNG export (e.g., "DejaVu Sans Mono").
        """
        self.default_font = default_font

    def to_json(self, result: LayoutResult, indent: Optional[int] = 2) -> str:
        """Serialize a LayoutResult to a JSON string."""
        return json.dumps(result.to_dict(), indent=indent)

    def save_json(self, result: LayoutResult, filename: str) -> None:
        """
        Save a LayoutResult as JSON.

        Args:
            result: The layout result to save.
            filename: Output filename (should end in .json).
        """
        output_path = Path(filename)
        output_path.write_text(self.to_json(result), encoding="utf-8")

    def render_image(
        self,
        layout: Layout,
        font_size: int = 12,
        bg_color: str = "#FFFFFF",
        fg_color: str = "#000000",
        box_fill: str = "#F4F4F4",
        font: Optional[str] = None,
        scale: float = 1.0,
    ) -> Image.Image:
        """
        Draw a layout onto a new image the size of its canvas.

        Args:
            layout: The layout to draw.
            font_size: Label font size in points.
            bg_color: Background color as hex string.
            fg_color: Line and text color as hex string.
            box_fill: Node fill color as hex string.
            font: Font name to use (overrides default_font if provided).
            scale: Resolution multiplier.

        Returns:
            The rendered PIL image.
        """
        width = max(1, int(math.ceil(layout.canvas_width * scale)))
        height = max(1, int(math.ceil(layout.canvas_height * scale)))
        img = Image.new("RGB", (width, height), bg_color)
        draw = ImageDraw.Draw(img)
        loaded_font = self._load_font(max(1, int(font_size * scale)), font or self.default_font)
        line_width = max(1, int(round(scale)))

        for edge in layout.edges:
            points = [(p.x * scale, p.y * scale) for p in edge.points]
            if len(points) < 2:
                continue
            draw.line(points, fill=fg_color, width=line_width)
            self._draw_arrowhead(draw, points[-2], points[-1], 8 * scale, fg_color)

        for node in layout.nodes:
            x0, y0 = node.x * scale, node.y * scale
            x1, y1 = x0 + node.width * scale, y0 + node.height * scale
            draw.rectangle([x0, y0, x1, y1], fill=box_fill, outline=fg_color, width=line_width)
            text = node.label or node.id
            bbox = draw.textbbox((0, 0), text, font=loaded_font)
            text_w = bbox[2] - bbox[0]
            text_h = bbox[3] - bbox[1]
            draw.text(
                (x0 + (x1 - x0 - text_w) / 2, y0 + (y1 - y0 - text_h) / 2),
                text,
                fill=fg_color,
                font=loaded_font,
            )

        return img

    def save_png(
        self,
        result: Union[LayoutResult, Layout],
        filename: str,
        scale: float = 1.0,
        **kwargs,
    ) -> Path:
        """
        Save a layout preview as PNG.

        Args:
            result: A successful LayoutResult or a bare Layout.
            filename: Output filename (should end in .png).
            scale: Resolution multiplier.
            **kwargs: Additional drawing options for render_image.

        Returns:
            Path of the written file.

        Raises:
            ValueError: If the result carries no layout.
        """
        layout = result.layout if isinstance(result, LayoutResult) else result
        if layout is None:
            raise ValueError("Cannot export a failed layout result")
        img = self.render_image(layout, scale=scale, **kwargs)
        output_path = Path(filename)
        img.save(output_path, "PNG")
        return output_path

    def _draw_arrowhead(
        self,
        draw: ImageDraw.ImageDraw,
        from_point: Tuple[float, float],
        to_point: Tuple[float, float],
        size: float,
        color: str,
    ) -> None:
        """Draw a filled arrowhead at the end of a line."""
        x1, y1 = from_point
        x2, y2 = to_point
        if x1 == x2 and y1 == y2:
            return
        angle = math.atan2(y2 - y1, x2 - x1)
        ax1 = x2 + size * math.cos(angle + math.pi * 0.8)
        ay1 = y2 + size * math.sin(angle + math.pi * 0.8)
        ax2 = x2 + size * math.cos(angle - math.pi * 0.8)
        ay2 = y2 + size * math.sin(angle - math.pi * 0.8)
        draw.polygon([(x2, y2), (ax1, ay1), (ax2, ay2)], fill=color)

    def _load_font(
        self, font_size: int, font_name: Optional[str] = None
    ) -> ImageFont.ImageFont:
        """
        Load a font for node labels.

        Tries the user-specified font, then common system fonts, then
        Pillow's default font.
        """
        fonts_to_try = []
        if font_name:
            fonts_to_try.append(font_name)
        fonts_to_try.extend(
            [
                # Linux
                "DejaVuSans",
                "DejaVu Sans",
                "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
                "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
                # macOS
                "Helvetica",
                "/System/Library/Fonts/Helvetica.ttc",
                # Windows
                "Arial",
                "C:/Windows/Fonts/arial.ttf",
            ]
        )

        for font in fonts_to_try:
            try:
                return ImageFont.truetype(font, font_size)
            except OSError:
                continue

        try:
            return ImageFont.load_default(size=font_size)
        except TypeError:
            # Older Pillow versions don't support size parameter
            return ImageFont.load_default()
