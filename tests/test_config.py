"""
Tests for configuration loading, CLI overrides and the JSON dump.
"""

import json

import pytest
from config import AppConfig, load_config
from hardsub.assembler import RecognizedFrame, SubtitleEntry
from hardsub.frame_sampler import Region
from hardsub.orchestrator import ProcessResult
from hardsub.vad import SpeechSegment
from main import build_parser, save_frames_json


class TestLoadConfig:

    def test_missing_file_uses_defaults(self, tmp_path):
        config = load_config(tmp_path / "missing.yaml")
        assert config == AppConfig()
        assert config.batch.size == 50
        assert config.vad.enabled is True

    def test_partial_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "batch:\n  size: 10\n"
            "recognition:\n  models: [m1, m2]\n"
            "vad:\n  enabled: false\n  max_silence_duration: 2.0\n",
            encoding="utf-8"
        )
        config = load_config(path)
        assert config.batch.size == 10
        assert config.batch.max_width == 800
        assert config.recognition.models == ["m1", "m2"]
        assert config.vad.enabled is False
        assert config.vad.max_silence_duration == 2.0

    def test_unknown_keys_ignored(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("sampling:\n  interval: 3.0\n  colour: red\nextra: 1\n", encoding="utf-8")
        config = load_config(path)
        assert config.sampling.interval == 3.0

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(path) == AppConfig()

    def test_bundled_config_matches_defaults(self):
        assert load_config() == AppConfig()


class TestCliOverrides:

    def test_overrides_applied(self):
        args = build_parser().parse_args([
            "video.mp4", "--no-vad", "--interval", "0.5", "--batch-size", "8",
            "--model", "a", "--model", "b", "--api-base", "http://localhost:8000/v1",
            "--region", "0,75,100,25",
        ])
        config = AppConfig()
        config.update_from_args(args)

        assert config.vad.enabled is False
        assert config.sampling.interval == 0.5
        assert config.batch.size == 8
        assert config.recognition.models == ["a", "b"]
        assert config.recognition.api_base == "http://localhost:8000/v1"
        assert config.sampling.regions == [Region(0, 75, 100, 25)]

    def test_no_overrides(self):
        args = build_parser().parse_args(["video.mp4"])
        config = AppConfig()
        config.update_from_args(args)
        assert config == AppConfig()

    def test_bad_region_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["video.mp4", "--region", "1,2,3"])


class TestFramesJson:

    def test_subtitles_and_frames_written(self, tmp_path):
        seg = SpeechSegment(2.0, 4.0, 0.9)
        frames = [RecognizedFrame(3.0, "Hello", 0.9, seg), RecognizedFrame.empty(5.0)]
        result = ProcessResult(
            subtitles=[SubtitleEntry(1, 2.0, 4.0, "Hello", 0.9)],
            frames=frames,
        )
        path = tmp_path / "out" / "frames.json"
        save_frames_json(result, path)

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["subtitles"] == [{
            "index": 1,
            "start_time": "00:00:02,000",
            "end_time": "00:00:04,000",
            "text": "Hello",
            "confidence": 0.9,
        }]
        assert data["frames"][0]["segment_end"] == 4.0
        assert data["frames"][1] == {"timestamp": 5.0, "text": "", "confidence": 0.0}
