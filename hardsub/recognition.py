"""
Recognition Client — reads subtitle text off frame images.

The pipeline talks to recognition through `RecognitionClient`. The
bundled implementation sends images to an OpenAI-compatible vision chat
model and asks for one line of text per stacked sub-image.
"""

import os
import re
import base64
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .exceptions import MissingAPIKeyError, RecognitionError
from .vad import SpeechSegment

logger = logging.getLogger(__name__)

UNRECOGNIZABLE_MARKER = "[unrecognizable]"

_NUMBER_PREFIX = re.compile(r"^\d+[\.\)]\s*")
_LABEL_PREFIX = re.compile(r"^(OCR result|Recognized text|Result|Subtitle|Text)[:：]\s*", re.IGNORECASE)
_NOISE_PATTERNS = [
    re.compile(r"[oO0]{5,}"),
    re.compile(r"[iIl1]{10,}"),
    re.compile(r"[?。]{3,}"),
]


@dataclass
class RecognitionResult:
    """Text read from one sub-image."""
    text: str
    confidence: float

    def __repr__(self):
        return f"RecognitionResult('{self.text[:40]}', conf={self.confidence:.2f})"


class RecognitionClient(ABC):
    """
    Boundary to the external text-recognition service.

    `recognize_batch` must return exactly one result per timestamp, in the
    order the sub-images are stacked. Unreadable sub-images are reported
    with `marker` as their text.
    """

    marker: str = UNRECOGNIZABLE_MARKER

    @abstractmethod
    def recognize_batch(
        self,
        image: bytes,
        timestamps: Sequence[float],
        segments: Optional[Sequence[Optional[SpeechSegment]]] = None
    ) -> List[RecognitionResult]:
        """Recognize every sub-image of a composite image."""

    @abstractmethod
    def recognize(self, image: bytes, timestamp: float) -> RecognitionResult:
        """Recognize a single frame image."""


class ModelRotator:
    """Round-robin over several model ids to spread rate limits."""

    def __init__(self, models: Sequence[str]):
        self.models = list(models)
        self._index = 0

    def next(self) -> str:
        if not self.models:
            raise RecognitionError("No recognition model configured")
        model = self.models[self._index]
        self._index = (self._index + 1) % len(self.models)
        return model

    def __len__(self):
        return len(self.models)


class VisionRecognitionClient(RecognitionClient):
    """
    Recognition through an OpenAI-compatible chat completions endpoint.

    Any provider exposing `/chat/completions` with image_url content
    works; set `api_base` for non-OpenAI providers.
    """

    def __init__(self, config=None):
        self.api_base = getattr(config, "api_base", None) or None
        self.api_key = getattr(config, "api_key", None)
        self.api_key_env = getattr(config, "api_key_env", "OPENAI_API_KEY")
        self.temperature = getattr(config, "temperature", 0.1)
        self.max_tokens = getattr(config, "max_tokens", 500)
        self.timeout = getattr(config, "timeout", 30.0)
        self.marker = getattr(config, "unrecognizable_marker", UNRECOGNIZABLE_MARKER)

        models = getattr(config, "models", None) or ["gpt-4o-mini"]
        if isinstance(models, str):
            models = [m.strip() for m in models.split(",") if m.strip()]
        self.rotator = ModelRotator(models)

        # Lazy-loaded
        self._client = None

    def _get_client(self):
        """Create the OpenAI client on first use."""
        if self._client is not None:
            return self._client

        from openai import OpenAI

        api_key = self.api_key or os.environ.get(self.api_key_env)
        if not api_key:
            raise MissingAPIKeyError(self.api_key_env)

        self._client = OpenAI(api_key=api_key, base_url=self.api_base, timeout=self.timeout)
        logger.info(
            f"Recognition client ready ({self.api_base or 'default endpoint'}, "
            f"{len(self.rotator)} model(s))"
        )
        return self._client

    def recognize_batch(self, image, timestamps, segments=None):
        model = self.rotator.next()
        logger.info(f"Batch recognition: {len(timestamps)} frames with {model}")

        content = self._complete(model, self._batch_prompt(len(timestamps)), image)
        lines = [line.strip() for line in content.split("\n") if line.strip()]

        results = []
        for line in lines:
            text = _NUMBER_PREFIX.sub("", line).strip()
            confidence = 0.9 if text and self.marker not in text else 0.1
            results.append(RecognitionResult(text=text, confidence=confidence))

        if len(results) != len(timestamps):
            logger.warning(
                f"Model {model} returned {len(results)} lines for {len(timestamps)} frames"
            )
        return results

    def recognize(self, image, timestamp):
        model = self.rotator.next()
        logger.debug(f"Single-frame recognition at {timestamp:.2f}s with {model}")

        content = self._complete(model, self._single_prompt(), image)
        text, confidence = self.parse_single(content)
        return RecognitionResult(text=text, confidence=confidence)

    def parse_single(self, content: str):
        """Clean a single-frame response and estimate its confidence."""
        text = content.strip().strip("\"'")
        text = _LABEL_PREFIX.sub("", text).strip()
        text = "\n".join(line.strip() for line in text.split("\n") if line.strip())

        confidence = 0.9
        if self.marker in text:
            confidence = 0.1
        elif len(text) < 2:
            confidence = 0.3
        elif len(text) > 100:
            confidence = 0.7

        for pattern in _NOISE_PATTERNS:
            if pattern.search(text):
                confidence = max(0.3, confidence - 0.2)

        return text, confidence

    def _complete(self, model: str, prompt: str, image: bytes) -> str:
        client = self._get_client()
        data_url = f"data:image/jpeg;base64,{base64.b64encode(image).decode('utf-8')}"

        # Import here so the SDK is only needed when a real client is used
        from openai import OpenAIError

        try:
            response = client.chat.completions.create(
                model=model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": prompt},
                            {"type": "image_url", "image_url": {"url": data_url}},
                        ],
                    }
                ],
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except OpenAIError as e:
            raise RecognitionError(f"Recognition request to {model} failed: {e}") from e

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    def _batch_prompt(self, frame_count: int) -> str:
        return (
            f"This image stacks {frame_count} video frames top to bottom, separated "
            f"by thin grey lines. Read the burned-in subtitle of each frame.\n\n"
            f"Rules:\n"
            f"1. Return exactly {frame_count} lines, one per frame, top to bottom.\n"
            f"2. Each line holds only that frame's subtitle text, without numbering.\n"
            f"3. If a frame has no readable subtitle, return \"{self.marker}\" on its line.\n"
            f"4. Do not add explanations or any other text."
        )

    def _single_prompt(self) -> str:
        return (
            "Read the burned-in subtitle text in this video frame. Return only the "
            "text, with its original punctuation, and no explanation, timing or "
            f"numbering. If no subtitle can be read, return \"{self.marker}\"."
        )
