"""
Batch Packer — stacks sampled frames into one composite image.

One recognition call per composite instead of one per frame. Frames are
scaled by a shared ratio so the composite never exceeds the configured
width, centred, and separated by a thin grey line.
"""

import io
import logging
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

from PIL import Image, ImageDraw, UnidentifiedImageError

from .exceptions import PackingError

logger = logging.getLogger(__name__)


@dataclass
class Composite:
    """An encoded composite image and the top row of each sub-image."""
    image: bytes
    width: int
    height: int
    offsets: List[int] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.offsets)


def _parse_color(value) -> Tuple[int, int, int]:
    if isinstance(value, str):
        value = value.lstrip("#")
        return tuple(int(value[i:i + 2], 16) for i in (0, 2, 4))
    return tuple(value)


class BatchPacker:
    """Merges a bounded batch of frames into one vertical strip."""

    def __init__(self, config=None):
        self.max_width = getattr(config, "max_width", 800)
        self.separator_gap = getattr(config, "separator_gap", 5)
        self.separator_thickness = getattr(config, "separator_thickness", 1)
        self.separator_color = _parse_color(getattr(config, "separator_color", "#CCCCCC"))
        self.jpeg_quality = getattr(config, "jpeg_quality", 90)

    def merge(self, images: Sequence[bytes]) -> Composite:
        """
        Stack encoded images top to bottom.

        Args:
            images: Encoded frame images, in recognition order.

        Returns:
            Composite JPEG with one sub-image per input, same order.

        Raises:
            PackingError: If the batch is empty or any image fails to decode.
        """
        if not images:
            raise PackingError("Cannot build a composite from an empty batch")

        decoded = []
        for i, data in enumerate(images):
            if not data:
                raise PackingError(f"Sub-image {i} has no data")
            try:
                with Image.open(io.BytesIO(data)) as img:
                    decoded.append(img.convert("RGB"))
            except (UnidentifiedImageError, OSError) as e:
                raise PackingError(f"Sub-image {i} failed to decode: {e}") from e

        widest = max(img.width for img in decoded)
        scale = self.max_width / widest if widest > self.max_width else 1.0
        canvas_width = max(1, int(round(widest * scale)))

        scaled = []
        for img in decoded:
            w = max(1, int(round(img.width * scale)))
            h = max(1, int(round(img.height * scale)))
            scaled.append(img if (w, h) == img.size else img.resize((w, h), Image.LANCZOS))

        gap = max(self.separator_gap, self.separator_thickness)
        canvas_height = sum(img.height for img in scaled) + gap * (len(scaled) - 1)

        canvas = Image.new("RGB", (canvas_width, canvas_height), (255, 255, 255))
        draw = ImageDraw.Draw(canvas)

        offsets = []
        y = 0
        for i, img in enumerate(scaled):
            offsets.append(y)
            canvas.paste(img, ((canvas_width - img.width) // 2, y))
            y += img.height

            if i < len(scaled) - 1:
                draw.rectangle(
                    [0, y, canvas_width - 1, y + self.separator_thickness - 1],
                    fill=self.separator_color
                )
                y += gap

        out = io.BytesIO()
        canvas.save(out, format="JPEG", quality=self.jpeg_quality)

        logger.debug(
            f"Packed {len(scaled)} frames into {canvas_width}x{canvas_height} composite "
            f"(scale {scale:.2f}, {out.tell() / 1024:.0f} KB)"
        )
        return Composite(image=out.getvalue(), width=canvas_width,
                         height=canvas_height, offsets=offsets)
