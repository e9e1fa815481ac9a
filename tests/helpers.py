"""
Test helpers: synthetic audio signals and in-memory JPEG frames.
"""

import io

import numpy as np
from PIL import Image

SAMPLE_RATE = 16000


def make_signal(duration: float, loud_spans, level: float = 0.5,
                sample_rate: int = SAMPLE_RATE) -> np.ndarray:
    """Silence with constant-level regions at the given (start, end) spans."""
    samples = np.zeros(int(round(duration * sample_rate)), dtype=np.float32)
    for start, end in loud_spans:
        samples[int(round(start * sample_rate)):int(round(end * sample_rate))] = level
    return samples


def make_jpeg(width: int = 320, height: int = 180, color=(30, 30, 30)) -> bytes:
    """Encode a solid-colour JPEG frame."""
    out = io.BytesIO()
    Image.new("RGB", (width, height), color).save(out, format="JPEG")
    return out.getvalue()


def open_image(data: bytes) -> Image.Image:
    img = Image.open(io.BytesIO(data))
    img.load()
    return img
