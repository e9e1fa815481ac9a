"""
Subtitle Assembler — turns recognized frames into subtitle entries.

Keeps only frames with real text, numbers them sequentially and gives
each the time span of the speech segment it was sampled from.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from .recognition import UNRECOGNIZABLE_MARKER
from .srt_writer import format_timestamp
from .vad import SpeechSegment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecognizedFrame:
    """A sampled frame merged with its recognition result."""
    timestamp: float
    text: str
    confidence: float
    segment: Optional[SpeechSegment] = None

    @classmethod
    def empty(cls, timestamp: float, segment: Optional[SpeechSegment] = None) -> "RecognizedFrame":
        """Placeholder for a frame that could not be extracted or recognized."""
        return cls(timestamp=timestamp, text="", confidence=0.0, segment=segment)

    def to_dict(self) -> dict:
        data = {
            "timestamp": self.timestamp,
            "text": self.text,
            "confidence": self.confidence,
        }
        if self.segment is not None:
            data["segment_start"] = self.segment.start
            data["segment_end"] = self.segment.end
        return data


@dataclass(frozen=True)
class SubtitleEntry:
    """A single subtitle entry ready for SRT output."""
    index: int
    start_sec: float
    end_sec: float
    text: str
    confidence: float = 1.0

    @property
    def start_time(self) -> str:
        return format_timestamp(self.start_sec)

    @property
    def end_time(self) -> str:
        return format_timestamp(self.end_sec)

    @property
    def duration(self) -> float:
        return self.end_sec - self.start_sec

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "text": self.text,
            "confidence": self.confidence,
        }

    def __repr__(self):
        return (f"Sub#{self.index}({self.start_sec:.2f}–{self.end_sec:.2f}s, "
                f"'{self.text[:50]}')")


class SubtitleAssembler:
    """
    Builds the final subtitle list.

    A frame qualifies when its trimmed text is non-empty and is not the
    unrecognizable marker. Qualifying frames are indexed 1..n in
    timestamp order. Frames without a speech segment get a fixed-width
    window starting at their own timestamp.
    """

    def __init__(self, config=None, marker: str = UNRECOGNIZABLE_MARKER):
        self.fallback_duration = getattr(config, "fallback_duration", 2.0)
        self.marker = marker

    def is_qualifying(self, text: Optional[str]) -> bool:
        if not text:
            return False
        stripped = text.strip()
        return bool(stripped) and stripped != self.marker

    def assemble(self, frames: List[RecognizedFrame]) -> List[SubtitleEntry]:
        """
        Convert recognized frames into subtitle entries.

        Args:
            frames: Recognized frames in any order.

        Returns:
            Entries indexed from 1 with no gaps, sorted by time.
        """
        qualifying = sorted(
            (f for f in frames if self.is_qualifying(f.text)),
            key=lambda f: f.timestamp
        )

        entries: List[SubtitleEntry] = []
        for idx, frame in enumerate(qualifying, start=1):
            if frame.segment is not None:
                start, end = frame.segment.start, frame.segment.end
            else:
                start, end = frame.timestamp, frame.timestamp + self.fallback_duration

            entries.append(SubtitleEntry(
                index=idx,
                start_sec=start,
                end_sec=end,
                text=frame.text.strip(),
                confidence=frame.confidence
            ))

        skipped = len(frames) - len(entries)
        logger.info(
            f"Assembled {len(entries)} subtitles from {len(frames)} frames "
            f"({skipped} empty or unrecognizable)"
        )
        return entries
