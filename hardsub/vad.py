"""
Voice Activity Detection — energy-based speech segmenter.

Splits a mono PCM signal into ~100 ms windows, scores each window by its
RMS energy and groups speech windows into segments. The segments tell the
pipeline where a burned-in subtitle is likely on screen, so that only one
frame per segment has to be recognized.
"""

import logging
import numpy as np
from collections import deque
from dataclasses import dataclass
from typing import List, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AudioFrame:
    """Analysis result for one fixed-size audio window."""
    timestamp: float
    volume: float
    speech_probability: float
    is_speech: bool


@dataclass(frozen=True)
class SpeechSegment:
    """A time interval judged to contain speech."""
    start: float
    end: float
    confidence: float

    @property
    def duration(self) -> float:
        return self.end - self.start

    @property
    def midpoint(self) -> float:
        return self.start + (self.end - self.start) / 2

    def __repr__(self):
        return (f"SpeechSegment({self.start:.2f}–{self.end:.2f}s, "
                f"conf={self.confidence:.2f})")


class EnergyVAD:
    """
    Voice activity detector driven by short-term signal energy.

    Each window's volume is min(1, rms * 2). The speech probability is
    derived from the mean volume of the last `smooth_window` windows, so
    a single loud click does not open a segment on its own. Silences
    shorter than `max_silence_duration` are bridged into the surrounding
    segment.

    The smoothing history lives inside a single `analyze` call; one
    detector can serve several pipelines without leaking state.
    """

    def __init__(self, config=None):
        self.speech_threshold = getattr(config, "speech_threshold", 0.15)
        self.quiet_threshold = getattr(config, "quiet_threshold", 0.05)
        self.min_speech_duration = getattr(config, "min_speech_duration", 0.1)
        self.max_silence_duration = getattr(config, "max_silence_duration", 1.5)
        self.smooth_window = max(1, int(getattr(config, "smooth_window", 3)))
        self.window_sec = getattr(config, "window_sec", 0.1)

    def analyze(self, samples: np.ndarray, sample_rate: int) -> List[AudioFrame]:
        """
        Score every window of a mono signal.

        Args:
            samples: Float PCM samples in [-1, 1].
            sample_rate: Sampling rate of `samples` in Hz.

        Returns:
            One AudioFrame per window, ordered by timestamp.

        Raises:
            ValueError: If the sample rate is missing or non-positive.
        """
        if not sample_rate or sample_rate <= 0:
            raise ValueError(
                f"Audio decoding context missing: invalid sample rate {sample_rate!r}"
            )

        data = np.asarray(samples, dtype=np.float64)
        if data.ndim > 1:
            data = data[:, 0]
        if data.size == 0:
            return []

        frame_size = self._frame_size(sample_rate)
        history = deque(maxlen=self.smooth_window)
        results = []

        for frame_start in range(0, data.size, frame_size):
            chunk = data[frame_start:frame_start + frame_size]
            rms = float(np.sqrt(np.mean(np.square(chunk))))
            volume = min(1.0, rms * 2)

            history.append(volume)
            smoothed_volume = sum(history) / len(history)
            probability = self.speech_probability(smoothed_volume)

            results.append(AudioFrame(
                timestamp=frame_start / sample_rate,
                volume=volume,
                speech_probability=probability,
                is_speech=probability > self.speech_threshold
            ))

        speech_count = sum(1 for r in results if r.is_speech)
        logger.debug(
            f"Analyzed {len(results)} windows ({data.size / sample_rate:.1f}s), "
            f"{speech_count} flagged as speech"
        )
        return results

    def speech_probability(self, volume: float) -> float:
        """Map a normalized volume to a speech probability in [0, 1]."""
        quiet = self.quiet_threshold
        speech = self.speech_threshold

        if volume < quiet:
            return 0.0
        if volume > speech:
            return min(1.0, (volume - quiet) / (1 - quiet))
        if speech <= quiet:
            return 1.0
        return (volume - quiet) / (speech - quiet)

    def extract_segments(self, frames: List[AudioFrame]) -> List[SpeechSegment]:
        """
        Group speech windows into segments.

        A segment opens on the first speech window. A run of silence
        longer than `max_silence_duration` closes it at the silence onset,
        pulled back by the smoothing lag (the trailing mean keeps a window
        flagged as speech for `smooth_window - 1` windows after the sound
        stops). Segments shorter than `min_speech_duration` are dropped.

        Args:
            frames: Output of `analyze`, ordered by timestamp.

        Returns:
            Non-overlapping segments sorted by start time.
        """
        if not frames:
            return []

        window = self._window_length(frames)
        lag = (self.smooth_window - 1) * window

        segments: List[SpeechSegment] = []
        speech_start = None
        silence_start = None
        prob_sum = 0.0
        prob_count = 0

        for frame in frames:
            if frame.is_speech:
                if speech_start is None:
                    speech_start = frame.timestamp
                    prob_sum = 0.0
                    prob_count = 0
                silence_start = None
                prob_sum += frame.speech_probability
                prob_count += 1
                continue

            if speech_start is None:
                continue

            if silence_start is None:
                silence_start = frame.timestamp

            if round(frame.timestamp - silence_start, 6) > self.max_silence_duration:
                end = max(speech_start, round(silence_start - lag, 6))
                self._close(segments, speech_start, end, prob_sum / prob_count, window)
                speech_start = None
                silence_start = None

        # Segment still open at end of signal
        if speech_start is not None:
            if silence_start is not None:
                end = max(speech_start, round(silence_start - lag, 6))
            else:
                end = frames[-1].timestamp
            self._close(segments, speech_start, end, prob_sum / prob_count, window)

        logger.debug(f"Extracted {len(segments)} speech segments from {len(frames)} windows")
        return segments

    def detect(self, samples: np.ndarray, sample_rate: int) -> Tuple[List[AudioFrame], List[SpeechSegment]]:
        """Run `analyze` and `extract_segments` in one go."""
        frames = self.analyze(samples, sample_rate)
        segments = self.extract_segments(frames)

        speech_duration = sum(s.duration for s in segments)
        logger.info(
            f"VAD complete: {len(segments)} speech segments "
            f"({speech_duration:.1f}s of speech)"
        )
        return frames, segments

    def _close(self, segments: List[SpeechSegment], start: float, end: float,
               confidence: float, window: float):
        """Append a segment if it lasts at least the minimum duration."""
        # Durations are whole windows; compare on a rounded grid so float
        # noise in the timestamps cannot flip the decision.
        duration = round(end - start, 6)
        if window > 0:
            duration = round(round(duration / window) * window, 6)

        if duration >= self.min_speech_duration and end > start:
            segments.append(SpeechSegment(start=start, end=end, confidence=confidence))
        else:
            logger.debug(f"Dropped short speech burst at {start:.2f}s ({duration:.2f}s)")

    def _frame_size(self, sample_rate: int) -> int:
        return max(1, int(sample_rate * self.window_sec))

    def _window_length(self, frames: List[AudioFrame]) -> float:
        """Window length in seconds, inferred from the frame timestamps."""
        if len(frames) >= 2:
            return frames[1].timestamp - frames[0].timestamp
        return self.window_sec
