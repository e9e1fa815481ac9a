"""
Audio Extractor — FFmpeg-based audio decoding for speech detection.

Decodes the audio track of a video (from a path, or from the raw file
bytes piped to FFmpeg) into 16 kHz mono 16-bit PCM, then loads it as a
float32 signal for the energy VAD.
"""

import subprocess
import tempfile
import logging
import numpy as np
import soundfile as sf
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .exceptions import AudioDecodeError

logger = logging.getLogger(__name__)


@dataclass
class AudioSignal:
    """A decoded mono PCM signal."""
    samples: np.ndarray     # Float32 PCM samples
    sample_rate: int

    @property
    def duration(self) -> float:
        if not self.sample_rate:
            return 0.0
        return len(self.samples) / self.sample_rate

    def __repr__(self):
        return f"AudioSignal({self.duration:.2f}s @ {self.sample_rate}Hz)"


class AudioExtractor:
    """Extracts and downsamples audio from video files using FFmpeg."""

    def __init__(self, sample_rate: int = 16000, channels: int = 1, timeout: int = 300):
        self.sample_rate = sample_rate
        self.channels = channels
        self.timeout = timeout
        self._verify_ffmpeg()

    def _verify_ffmpeg(self):
        """Check that FFmpeg is available on the system PATH."""
        try:
            result = subprocess.run(
                ["ffmpeg", "-version"],
                capture_output=True, text=True, timeout=10
            )
            if result.returncode != 0:
                raise RuntimeError("FFmpeg returned non-zero exit code")
            version_line = result.stdout.split("\n")[0]
            logger.debug(f"FFmpeg found: {version_line}")
        except FileNotFoundError:
            raise RuntimeError(
                "FFmpeg not found. Please install FFmpeg and add it to PATH.\n"
                "Download: https://ffmpeg.org/download.html"
            )

    def extract(self, video_path: Path, raw_bytes: Optional[bytes] = None) -> Path:
        """
        Extract the audio track into a temporary WAV file.

        Args:
            video_path: Path to the input video file.
            raw_bytes: Optional contents of the video file. When given,
                they are piped to FFmpeg instead of reading `video_path`.

        Returns:
            Path to the extracted temporary WAV file.

        Raises:
            AudioDecodeError: If FFmpeg extraction fails.
            FileNotFoundError: If the video file doesn't exist.
        """
        video_path = Path(video_path)
        if raw_bytes is None and not video_path.exists():
            raise FileNotFoundError(f"Video file not found: {video_path}")

        with tempfile.NamedTemporaryFile(suffix=".wav", prefix="hardsub_", delete=False) as tmp:
            output = Path(tmp.name)

        source = "pipe:0" if raw_bytes is not None else str(video_path)
        cmd = [
            "ffmpeg",
            "-i", source,
            "-vn",                          # No video
            "-acodec", "pcm_s16le",         # 16-bit PCM
            "-ar", str(self.sample_rate),   # Sample rate
            "-ac", str(self.channels),      # Mono
            "-loglevel", "error",           # Suppress verbose output
            "-y",                           # Overwrite
            str(output)
        ]

        logger.info(f"Extracting audio: {video_path.name} → {output.name}")
        logger.debug(f"FFmpeg command: {' '.join(cmd)}")

        try:
            result = subprocess.run(
                cmd, input=raw_bytes, capture_output=True, timeout=self.timeout
            )
        except subprocess.TimeoutExpired:
            self.cleanup(output)
            raise AudioDecodeError(f"FFmpeg audio extraction timed out after {self.timeout}s")

        if result.returncode != 0:
            self.cleanup(output)
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            raise AudioDecodeError(f"FFmpeg audio extraction failed:\n{stderr}")

        file_size_mb = output.stat().st_size / (1024 * 1024)
        logger.info(f"Audio extracted: {file_size_mb:.1f} MB ({output})")

        return output

    def load(self, video_path: Path, raw_bytes: Optional[bytes] = None) -> AudioSignal:
        """
        Decode the full audio track into memory.

        Returns:
            Mono float32 AudioSignal.

        Raises:
            AudioDecodeError: If the track cannot be decoded.
        """
        audio_path = self.extract(video_path, raw_bytes)
        try:
            try:
                samples, sr = sf.read(str(audio_path), dtype="float32")
            except RuntimeError as e:
                raise AudioDecodeError(f"Could not read extracted audio: {e}") from e
        finally:
            # Always clean up temp audio
            self.cleanup(audio_path)

        # Ensure 1-D
        if samples.ndim > 1:
            samples = samples[:, 0]

        signal = AudioSignal(samples=samples, sample_rate=sr)
        logger.info(f"Decoded {signal.duration:.1f}s of audio at {sr}Hz")
        return signal

    def get_duration(self, video_path: Path) -> float:
        """
        Get the duration of a video/audio file in seconds using ffprobe.

        Args:
            video_path: Path to the media file.

        Returns:
            Duration in seconds.
        """
        cmd = [
            "ffprobe",
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            str(video_path)
        ]

        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=30)
        except subprocess.TimeoutExpired:
            raise RuntimeError(f"ffprobe timed out on {video_path}")

        if result.returncode != 0:
            raise RuntimeError(f"ffprobe failed: {result.stderr}")

        return float(result.stdout.strip())

    @staticmethod
    def cleanup(audio_path: Path):
        """Remove the temporary audio file."""
        audio_path = Path(audio_path)
        if audio_path.exists():
            audio_path.unlink()
            logger.debug(f"Cleaned up temp audio: {audio_path}")
