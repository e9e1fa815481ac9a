"""
SRT Writer — Standard SubRip subtitle file generator and reader.

Converts SubtitleEntry objects into properly formatted SRT text with
sequential indices, HH:MM:SS,mmm timestamps, and UTF-8 encoding, and
parses SRT text back for round-trip checks and re-import.
"""

import re
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List

logger = logging.getLogger(__name__)

_TIMING_LINE = re.compile(
    r"(\d{2,}:\d{2}:\d{2}[,.]\d{3})\s*-->\s*(\d{2,}:\d{2}:\d{2}[,.]\d{3})"
)


def format_timestamp(seconds: float) -> str:
    """
    Convert seconds to SRT timestamp format: HH:MM:SS,mmm

    Args:
        seconds: Time in seconds (e.g., 125.340)

    Returns:
        Formatted timestamp string (e.g., "00:02:05,340")
    """
    if seconds < 0:
        seconds = 0.0

    # Work in whole milliseconds so 6.15 renders as 6,150 and not 6,149
    total_ms = int(round(seconds * 1000))
    hours, rest = divmod(total_ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    secs, millis = divmod(rest, 1000)

    return f"{hours:02d}:{minutes:02d}:{secs:02d},{millis:03d}"


def parse_timestamp(value: str) -> float:
    """Convert an SRT timestamp (HH:MM:SS,mmm) to seconds."""
    match = re.fullmatch(r"\s*(\d{2,}):(\d{2}):(\d{2})[,.](\d{3})\s*", value)
    if not match:
        raise ValueError(f"Invalid SRT timestamp: {value!r}")
    h, m, s, ms = (int(g) for g in match.groups())
    return h * 3600 + m * 60 + s + ms / 1000


@dataclass
class SRTBlock:
    """One cue read back from an SRT file."""
    index: int
    start_sec: float
    end_sec: float
    text: str

    @property
    def start_time(self) -> str:
        return format_timestamp(self.start_sec)

    @property
    def end_time(self) -> str:
        return format_timestamp(self.end_sec)


def parse_srt(content: str) -> List[SRTBlock]:
    """
    Parse SRT text into cues.

    Blocks without a numeric index or a valid timing line are skipped.
    Multi-line cue text is kept with its line breaks.
    """
    content = content.replace("\r\n", "\n").lstrip("\ufeff")
    blocks = re.split(r"\n\s*\n", content.strip())
    cues = []

    for block in blocks:
        lines = block.strip().split("\n")
        if len(lines) < 2:
            continue
        try:
            index = int(lines[0].strip())
        except ValueError:
            continue

        match = _TIMING_LINE.search(lines[1])
        if not match:
            continue
        start, end = (parse_timestamp(t) for t in match.groups())

        cues.append(SRTBlock(index=index, start_sec=start, end_sec=end,
                             text="\n".join(lines[2:])))

    return cues


class SRTWriter:
    """
    Writes subtitle entries to a standard SRT (SubRip) file.

    SRT format:
        1
        00:00:01,200 --> 00:00:04,800
        Hello everyone, welcome to the show.

        2
        00:00:05,100 --> 00:00:06,300
        See you tomorrow.
    """

    def render(self, entries: List) -> str:
        """
        Render entries as SRT text.

        Blocks are joined by a single blank line; there is no trailing
        newline after the last block.
        """
        blocks = []
        for i, entry in enumerate(entries):
            # Re-index sequentially
            blocks.append(
                f"{i + 1}\n"
                f"{format_timestamp(entry.start_sec)} --> "
                f"{format_timestamp(entry.end_sec)}\n"
                f"{entry.text}"
            )
        return "\n\n".join(blocks)

    def write(self, entries: List, output_path: Path) -> str:
        """
        Write subtitle entries to an SRT file.

        Args:
            entries: List of SubtitleEntry objects (sorted by time).
            output_path: Path for the output .srt file.

        Returns:
            The SRT text that was written.
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        content = self.render(entries)
        with open(output_path, "w", encoding="utf-8", newline="\n") as f:
            f.write(content)

        logger.info(
            f"SRT written: {len(entries)} subtitles → {output_path}"
        )
        return content

    def write_preview(self, entries: List, max_entries: int = 10) -> str:
        """
        Generate a text preview of the subtitle entries.

        Args:
            entries: List of SubtitleEntry objects.
            max_entries: Maximum entries to include in preview.

        Returns:
            Formatted string preview.
        """
        lines = []
        shown = min(len(entries), max_entries)

        for entry in entries[:shown]:
            ts_start = format_timestamp(entry.start_sec)
            ts_end = format_timestamp(entry.end_sec)
            text_preview = entry.text.replace("\n", " ")[:80]
            if len(entry.text) > 80:
                text_preview += "..."
            lines.append(f"  [{ts_start} → {ts_end}] {text_preview}")

        if len(entries) > shown:
            lines.append(f"  ... and {len(entries) - shown} more entries")

        return "\n".join(lines)
