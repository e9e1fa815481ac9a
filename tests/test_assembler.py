"""
Tests for the Subtitle Assembler module.
"""

import pytest
from config import SubtitleConfig
from hardsub.assembler import RecognizedFrame, SubtitleAssembler, SubtitleEntry
from hardsub.recognition import UNRECOGNIZABLE_MARKER
from hardsub.vad import SpeechSegment


@pytest.fixture
def assembler():
    return SubtitleAssembler(SubtitleConfig(fallback_duration=2.0))


class TestQualifying:
    """Test which recognized texts become subtitles."""

    def test_plain_text(self, assembler):
        assert assembler.is_qualifying("Hello")

    @pytest.mark.parametrize("text", ["", "   ", "\n", None, UNRECOGNIZABLE_MARKER,
                                      f"  {UNRECOGNIZABLE_MARKER} "])
    def test_rejected(self, assembler, text):
        assert not assembler.is_qualifying(text)

    def test_marker_inside_text_still_qualifies(self, assembler):
        assert assembler.is_qualifying(f"Hi {UNRECOGNIZABLE_MARKER}")

    def test_custom_marker(self):
        assembler = SubtitleAssembler(marker="???")
        assert not assembler.is_qualifying("???")
        assert assembler.is_qualifying(UNRECOGNIZABLE_MARKER)


class TestAssemble:
    """Test conversion of frames to subtitle entries."""

    def test_segment_times_used(self, assembler):
        seg = SpeechSegment(2.0, 4.0, 0.9)
        entries = assembler.assemble([RecognizedFrame(3.0, "Hello", 0.9, seg)])
        assert entries == [SubtitleEntry(1, 2.0, 4.0, "Hello", 0.9)]

    def test_fallback_window_without_segment(self, assembler):
        entries = assembler.assemble([RecognizedFrame(6.0, "Uniform", 0.9)])
        assert entries[0].start_sec == 6.0
        assert entries[0].end_sec == 8.0

    def test_indices_contiguous_after_filtering(self, assembler):
        frames = [
            RecognizedFrame(1.0, "one", 0.9),
            RecognizedFrame(2.0, "", 0.0),
            RecognizedFrame(3.0, UNRECOGNIZABLE_MARKER, 0.1),
            RecognizedFrame(4.0, "two", 0.9),
            RecognizedFrame.empty(5.0),
            RecognizedFrame(6.0, "three", 0.9),
        ]
        entries = assembler.assemble(frames)
        assert [e.index for e in entries] == [1, 2, 3]
        assert [e.text for e in entries] == ["one", "two", "three"]

    def test_sorted_by_timestamp(self, assembler):
        frames = [RecognizedFrame(8.0, "late", 0.9), RecognizedFrame(1.0, "early", 0.9)]
        entries = assembler.assemble(frames)
        assert [e.text for e in entries] == ["early", "late"]

    def test_text_is_trimmed(self, assembler):
        entries = assembler.assemble([RecognizedFrame(1.0, "  padded \n", 0.9)])
        assert entries[0].text == "padded"

    def test_empty_input(self, assembler):
        assert assembler.assemble([]) == []


class TestSerialization:

    def test_frame_to_dict(self):
        frame = RecognizedFrame(3.0, "Hi", 0.9, SpeechSegment(2.0, 4.0, 0.8))
        assert frame.to_dict() == {
            "timestamp": 3.0, "text": "Hi", "confidence": 0.9,
            "segment_start": 2.0, "segment_end": 4.0,
        }

    def test_frame_without_segment(self):
        assert "segment_start" not in RecognizedFrame(1.0, "x", 0.5).to_dict()

    def test_entry_to_dict(self):
        entry = SubtitleEntry(1, 6.0, 6.3, "Bye", 0.9)
        data = entry.to_dict()
        assert data["start_time"] == "00:00:06,000"
        assert data["end_time"] == "00:00:06,300"
        assert entry.duration == pytest.approx(0.3)
