"""
Frame Sampler — still-frame extraction at chosen timestamps.

Decides where to look (one frame per speech segment, or a uniform grid
when no speech was found), grabs single JPEG frames with FFmpeg's fast
input seek, and optionally crops them to the subtitle area.
"""

import io
import subprocess
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from PIL import Image, UnidentifiedImageError

from .exceptions import FrameExtractionError
from .vad import SpeechSegment

logger = logging.getLogger(__name__)

# (timestamp, segment the timestamp was taken from)
SamplePoint = Tuple[float, Optional[SpeechSegment]]


@dataclass(frozen=True)
class Region:
    """A rectangle in percent of the frame size (0-100)."""
    x: float
    y: float
    width: float
    height: float

    @classmethod
    def parse(cls, value) -> "Region":
        """Build a Region from "x,y,w,h", a 4-item sequence or a dict."""
        if isinstance(value, Region):
            return value
        if isinstance(value, dict):
            return cls(
                x=float(value["x"]), y=float(value["y"]),
                width=float(value["width"]), height=float(value["height"])
            )
        if isinstance(value, str):
            value = value.split(",")
        parts = [float(v) for v in value]
        if len(parts) != 4:
            raise ValueError(f"Region needs 4 values (x,y,width,height), got {len(parts)}")
        return cls(*parts)


@dataclass
class SampledFrame:
    """A frame grabbed at a timestamp. `image` is None if extraction failed."""
    timestamp: float
    image: Optional[bytes]
    segment: Optional[SpeechSegment] = None

    @property
    def ok(self) -> bool:
        return self.image is not None

    def __repr__(self):
        size = f"{len(self.image)}B" if self.image is not None else "failed"
        return f"SampledFrame({self.timestamp:.2f}s, {size})"


def select_sample_points(
    segments: Sequence[SpeechSegment],
    duration: float,
    use_vad: bool = True,
    interval: float = 2.0
) -> List[SamplePoint]:
    """
    Pick the timestamps to grab frames at.

    With VAD enabled and at least one segment, one point per segment at
    its midpoint: a burned-in line stays on screen for the whole segment.
    Otherwise a uniform grid 0, interval, 2*interval, ... below `duration`.
    """
    if use_vad and segments:
        return [(segment.midpoint, segment) for segment in segments]

    if interval <= 0:
        raise ValueError(f"Sampling interval must be positive, got {interval}")

    points: List[SamplePoint] = []
    step = 0
    while step * interval < duration:
        points.append((round(step * interval, 6), None))
        step += 1
    return points


class FrameSampler:
    """Grabs single frames from a video with FFmpeg and crops them."""

    def __init__(self, config=None):
        raw_regions = getattr(config, "regions", None) or []
        self.regions = [Region.parse(r) for r in raw_regions]
        self.jpeg_quality = getattr(config, "jpeg_quality", 80)
        self.timeout = getattr(config, "frame_timeout", 30)

    def extract(self, video_path: Path, timestamp: float) -> bytes:
        """
        Grab the frame shown at `timestamp` as JPEG bytes, cropped to
        the configured regions.

        Raises:
            FrameExtractionError: If FFmpeg produced no image.
        """
        cmd = [
            "ffmpeg",
            "-ss", f"{timestamp:.3f}",      # seek BEFORE input (fast)
            "-i", str(video_path),
            "-frames:v", "1",
            "-an",
            "-f", "image2pipe",
            "-vcodec", "mjpeg",
            "-q:v", "2",
            "-loglevel", "error",
            "pipe:1"
        ]

        try:
            proc = subprocess.run(cmd, capture_output=True, timeout=self.timeout)
        except subprocess.TimeoutExpired:
            raise FrameExtractionError(timestamp, f"FFmpeg timed out after {self.timeout}s")

        if proc.returncode != 0:
            stderr = proc.stderr.decode("utf-8", errors="replace").strip()
            raise FrameExtractionError(timestamp, stderr or "FFmpeg failed")

        if not proc.stdout:
            raise FrameExtractionError(timestamp, "no frame decoded")

        image = proc.stdout
        if self.regions:
            image = self.crop(image)
        return image

    def sample(self, video_path: Path, timestamp: float,
               segment: Optional[SpeechSegment] = None) -> SampledFrame:
        """Grab one frame and wrap it with its sampling metadata."""
        return SampledFrame(
            timestamp=timestamp,
            image=self.extract(video_path, timestamp),
            segment=segment
        )

    def crop(self, image_bytes: bytes, regions: Optional[List[Region]] = None) -> bytes:
        """
        Crop an encoded image to the bounding box of all regions.

        Falls back to the original image if it cannot be decoded or the
        regions describe an empty area.
        """
        regions = regions if regions is not None else self.regions
        if not regions:
            return image_bytes

        min_x = max(0.0, min(r.x for r in regions))
        min_y = max(0.0, min(r.y for r in regions))
        max_x = min(100.0, max(r.x + r.width for r in regions))
        max_y = min(100.0, max(r.y + r.height for r in regions))
        if max_x <= min_x or max_y <= min_y:
            logger.warning("Subtitle regions describe an empty area, keeping full frame")
            return image_bytes

        try:
            with Image.open(io.BytesIO(image_bytes)) as img:
                width, height = img.size
                box = (
                    int(width * min_x / 100),
                    int(height * min_y / 100),
                    int(round(width * max_x / 100)),
                    int(round(height * max_y / 100)),
                )
                cropped = img.convert("RGB").crop(box)
        except (UnidentifiedImageError, OSError) as e:
            logger.warning(f"Could not crop frame, keeping full frame: {e}")
            return image_bytes

        out = io.BytesIO()
        cropped.save(out, format="JPEG", quality=self.jpeg_quality)
        return out.getvalue()
