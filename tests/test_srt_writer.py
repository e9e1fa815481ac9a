"""
Tests for the SRT Writer module.
"""

import pytest
from hardsub.assembler import SubtitleEntry
from hardsub.srt_writer import SRTWriter, format_timestamp, parse_srt, parse_timestamp


@pytest.fixture
def writer():
    return SRTWriter()


@pytest.fixture
def sample_entries():
    return [
        SubtitleEntry(1, 1.2, 4.8, "Hello everyone, welcome to the show."),
        SubtitleEntry(2, 5.1, 6.3, "Who left the door open?"),
        SubtitleEntry(3, 6.5, 10.2, "Today we're going to talk about something amazing."),
        SubtitleEntry(4, 10.5, 11.8, "Line one\nLine two"),
    ]


class TestTimestampFormat:
    """Test SRT timestamp formatting."""

    def test_zero(self):
        assert format_timestamp(0.0) == "00:00:00,000"

    def test_simple_seconds(self):
        assert format_timestamp(5.0) == "00:00:05,000"

    def test_milliseconds(self):
        assert format_timestamp(1.234) == "00:00:01,234"

    def test_minutes(self):
        assert format_timestamp(65.5) == "00:01:05,500"

    def test_hours(self):
        assert format_timestamp(3661.123) == "01:01:01,123"

    def test_negative_clamps_to_zero(self):
        assert format_timestamp(-1.0) == "00:00:00,000"

    def test_rounds_to_nearest_millisecond(self):
        assert format_timestamp(1.5556) == "00:00:01,556"
        assert format_timestamp(6.15) == "00:00:06,150"

    def test_rounding_carries_into_seconds(self):
        assert format_timestamp(59.9999) == "00:01:00,000"


class TestTimestampParse:

    def test_comma_and_dot(self):
        assert parse_timestamp("01:01:01,123") == pytest.approx(3661.123)
        assert parse_timestamp("00:00:02.500") == pytest.approx(2.5)

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_timestamp("1:2:3")


class TestRender:

    def test_single_block_format(self, writer):
        content = writer.render([SubtitleEntry(1, 1.2, 4.8, "Hello world.")])
        assert content == "1\n00:00:01,200 --> 00:00:04,800\nHello world."

    def test_blocks_separated_by_blank_line(self, writer, sample_entries):
        content = writer.render(sample_entries[:2])
        assert content == (
            "1\n00:00:01,200 --> 00:00:04,800\nHello everyone, welcome to the show."
            "\n\n"
            "2\n00:00:05,100 --> 00:00:06,300\nWho left the door open?"
        )

    def test_reindexes_sequentially(self, writer):
        entries = [SubtitleEntry(7, 0.0, 1.0, "a"), SubtitleEntry(9, 1.0, 2.0, "b")]
        blocks = parse_srt(writer.render(entries))
        assert [b.index for b in blocks] == [1, 2]

    def test_empty(self, writer):
        assert writer.render([]) == ""


class TestSRTWrite:
    """Test SRT file writing."""

    def test_write_creates_file(self, writer, sample_entries, tmp_path):
        output = tmp_path / "test.srt"
        writer.write(sample_entries, output)
        assert output.exists()

    def test_write_utf8_encoding(self, writer, tmp_path):
        entries = [SubtitleEntry(1, 0.0, 1.0, "Héllo wörld, 你好")]
        output = tmp_path / "utf8.srt"
        writer.write(entries, output)
        content = output.read_text(encoding="utf-8")
        assert "Héllo wörld, 你好" in content

    def test_file_matches_rendered_text(self, writer, sample_entries, tmp_path):
        output = tmp_path / "same.srt"
        returned = writer.write(sample_entries, output)
        assert output.read_text(encoding="utf-8") == returned == writer.render(sample_entries)

    def test_write_empty_entries(self, writer, tmp_path):
        output = tmp_path / "empty.srt"
        writer.write([], output)
        assert output.exists()
        assert output.read_text() == ""

    def test_write_creates_parent_dirs(self, writer, sample_entries, tmp_path):
        output = tmp_path / "sub" / "dir" / "test.srt"
        writer.write(sample_entries, output)
        assert output.exists()


class TestParse:
    """Test reading SRT text back."""

    def test_round_trip(self, writer, sample_entries):
        blocks = parse_srt(writer.render(sample_entries))
        assert len(blocks) == len(sample_entries)
        for block, entry in zip(blocks, sample_entries):
            assert block.index == entry.index
            assert block.start_sec == pytest.approx(entry.start_sec)
            assert block.end_sec == pytest.approx(entry.end_sec)
            assert block.text == entry.text

    def test_crlf_and_bom(self):
        content = "\ufeff1\r\n00:00:01,000 --> 00:00:02,000\r\nHi\r\n\r\n2\r\n00:00:03,000 --> 00:00:04,500\r\nBye\r\n"
        blocks = parse_srt(content)
        assert [b.text for b in blocks] == ["Hi", "Bye"]
        assert blocks[1].end_sec == pytest.approx(4.5)
        assert blocks[1].end_time == "00:00:04,500"

    def test_skips_malformed_blocks(self):
        content = (
            "x\n00:00:01,000 --> 00:00:02,000\nbad index\n\n"
            "2\nnot a timing line\nbad timing\n\n"
            "3\n00:00:05,000 --> 00:00:06,000\ngood"
        )
        blocks = parse_srt(content)
        assert len(blocks) == 1
        assert blocks[0].text == "good"

    def test_empty(self):
        assert parse_srt("") == []


class TestPreview:
    """Test the preview formatter."""

    def test_preview_limits_entries(self, writer, sample_entries):
        preview = writer.write_preview(sample_entries, max_entries=2)
        lines = preview.strip().split("\n")
        assert len(lines) == 3  # 2 entries + "and X more"
        assert "2 more" in lines[-1]

    def test_preview_truncates_long_text(self, writer):
        entries = [SubtitleEntry(1, 0.0, 1.0, "A" * 100)]
        preview = writer.write_preview(entries)
        assert "..." in preview

    def test_preview_empty(self, writer):
        assert writer.write_preview([]) == ""
