"""
Configuration loader for the Hard-Subtitle Extractor.
Loads from config.yaml and allows CLI argument overrides.
"""

import yaml
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import List, Optional

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"


@dataclass
class AudioConfig:
    sample_rate: int = 16000
    channels: int = 1
    timeout: int = 300


@dataclass
class VADConfig:
    enabled: bool = True
    speech_threshold: float = 0.15
    quiet_threshold: float = 0.05
    min_speech_duration: float = 0.1
    max_silence_duration: float = 1.5
    smooth_window: int = 3
    window_sec: float = 0.1


@dataclass
class SamplingConfig:
    interval: float = 2.0  # seconds between frames when not using VAD
    regions: List = field(default_factory=list)  # percent boxes, "x,y,w,h"
    jpeg_quality: int = 80
    frame_timeout: int = 30


@dataclass
class BatchConfig:
    size: int = 50
    max_width: int = 800
    separator_gap: int = 5
    separator_thickness: int = 1
    separator_color: str = "#CCCCCC"
    jpeg_quality: int = 90


@dataclass
class RecognitionConfig:
    models: List[str] = field(default_factory=lambda: ["gpt-4o-mini"])
    api_base: Optional[str] = None
    api_key: Optional[str] = None
    api_key_env: str = "OPENAI_API_KEY"
    temperature: float = 0.1
    max_tokens: int = 500
    timeout: float = 30.0
    unrecognizable_marker: str = "[unrecognizable]"


@dataclass
class SubtitleConfig:
    fallback_duration: float = 2.0


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: Optional[str] = None


@dataclass
class AppConfig:
    """Top-level application configuration."""
    audio: AudioConfig = field(default_factory=AudioConfig)
    vad: VADConfig = field(default_factory=VADConfig)
    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    batch: BatchConfig = field(default_factory=BatchConfig)
    recognition: RecognitionConfig = field(default_factory=RecognitionConfig)
    subtitles: SubtitleConfig = field(default_factory=SubtitleConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def update_from_args(self, args):
        """Override config values from CLI arguments."""
        if getattr(args, "no_vad", False):
            self.vad.enabled = False
        if getattr(args, "interval", None):
            self.sampling.interval = args.interval
        if getattr(args, "batch_size", None):
            self.batch.size = args.batch_size
        if getattr(args, "model", None):
            self.recognition.models = list(args.model)
        if getattr(args, "api_base", None):
            self.recognition.api_base = args.api_base
        if getattr(args, "region", None):
            self.sampling.regions = list(args.region)


def _dict_to_dataclass(cls, data: dict):
    """Convert a dict to a dataclass, ignoring unknown keys."""
    if data is None:
        return cls()
    field_names = {f.name for f in cls.__dataclass_fields__.values()}
    filtered = {k: v for k, v in data.items() if k in field_names}
    unknown = set(data) - field_names
    if unknown:
        logger.warning(f"Ignoring unknown {cls.__name__} keys: {', '.join(sorted(unknown))}")
    return cls(**filtered)


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """
    Load configuration from a YAML file.
    Falls back to defaults if file is missing.
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    if not path.exists():
        logger.warning(f"Config file not found at {path}, using defaults.")
        return AppConfig()

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    config = AppConfig(
        audio=_dict_to_dataclass(AudioConfig, raw.get("audio")),
        vad=_dict_to_dataclass(VADConfig, raw.get("vad")),
        sampling=_dict_to_dataclass(SamplingConfig, raw.get("sampling")),
        batch=_dict_to_dataclass(BatchConfig, raw.get("batch")),
        recognition=_dict_to_dataclass(RecognitionConfig, raw.get("recognition")),
        subtitles=_dict_to_dataclass(SubtitleConfig, raw.get("subtitles")),
        logging=_dict_to_dataclass(LoggingConfig, raw.get("logging")),
    )

    logger.info(f"Configuration loaded from {path}")
    return config
