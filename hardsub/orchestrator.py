"""
Pipeline Orchestrator — Coordinates hard-subtitle extraction.

Stages:
  1. Audio Extraction (FFmpeg)
  2. Speech Detection (energy VAD), or uniform sampling as fallback
  3. Streaming Recognition: sample → pack → recognize, one batch at a time
  4. Subtitle Assembly + SRT Output
"""

import time
import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

from .assembler import RecognizedFrame, SubtitleAssembler, SubtitleEntry
from .audio_extractor import AudioExtractor, AudioSignal
from .batch_packer import BatchPacker
from .exceptions import (
    FrameExtractionError,
    PackingError,
    PipelineCancelled,
    PipelineError,
    RecognitionError,
    RecognitionMismatchError,
)
from .frame_sampler import FrameSampler, SampledFrame, SamplePoint, select_sample_points
from .recognition import UNRECOGNIZABLE_MARKER, RecognitionClient, VisionRecognitionClient
from .srt_writer import SRTWriter
from .vad import EnergyVAD, SpeechSegment

logger = logging.getLogger(__name__)

CANCEL_MESSAGE = "Processing cancelled by caller"


class PipelineStep(str, Enum):
    """Pipeline states, in the only order they can be entered."""
    INIT = "init"
    EXTRACTING_AUDIO = "extracting_audio"
    VAD_DETECTION = "vad_detection"
    UNIFORM_SAMPLING = "uniform_sampling"
    STREAMING_RECOGNITION = "streaming_recognition"
    GENERATING_SUBTITLES = "generating_subtitles"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass
class FrameResult:
    """A live partial subtitle, streamed while the video is processed."""
    timestamp: float
    text: str
    confidence: float
    index: int
    total: int
    segment_start: Optional[float] = None
    segment_end: Optional[float] = None


@dataclass
class ProgressEvent:
    progress: float
    message: str
    step: PipelineStep
    error: Optional[str] = None
    frame_result: Optional[FrameResult] = None


ProgressCallback = Optional[Callable[[ProgressEvent], None]]


@dataclass
class ProcessResult:
    """Everything a run produced."""
    subtitles: List[SubtitleEntry] = field(default_factory=list)
    frames: List[RecognizedFrame] = field(default_factory=list)
    srt_content: str = ""
    speech_segments: List[SpeechSegment] = field(default_factory=list)


@dataclass
class CompositeOutcome:
    """Batch recognized through one composite image."""
    frames: List[RecognizedFrame]
    recognized: int = 0


@dataclass
class PerFrameOutcome:
    """Batch recognized frame by frame after the composite could not be built."""
    frames: List[RecognizedFrame]
    recognized: int = 0


BatchOutcome = Union[CompositeOutcome, PerFrameOutcome]


class SubtitlePipeline:
    """
    Main pipeline orchestrator for hard-subtitle extraction.

    Usage:
        config = load_config()
        pipeline = SubtitlePipeline(config)
        result = pipeline.process("video.mp4", output_path="video.srt")

    `cancel()` may be called from any thread, also before `process` starts;
    the run stops before the next frame is sampled and raises
    PipelineCancelled carrying the subtitles of the batches that finished.
    """

    def __init__(
        self,
        config,
        extractor: Optional[AudioExtractor] = None,
        vad: Optional[EnergyVAD] = None,
        sampler: Optional[FrameSampler] = None,
        packer: Optional[BatchPacker] = None,
        recognizer: Optional[RecognitionClient] = None,
    ):
        self.config = config

        # Initialize pipeline components (external clients connect lazily)
        self.extractor = extractor or AudioExtractor(
            sample_rate=config.audio.sample_rate,
            channels=config.audio.channels,
            timeout=config.audio.timeout
        )
        self.vad = vad or EnergyVAD(config.vad)
        self.sampler = sampler or FrameSampler(config.sampling)
        self.packer = packer or BatchPacker(config.batch)
        self.recognizer = recognizer or VisionRecognitionClient(config.recognition)
        self.assembler = SubtitleAssembler(
            config.subtitles,
            marker=getattr(self.recognizer, "marker", UNRECOGNIZABLE_MARKER)
        )
        self.writer = SRTWriter()

        self.batch_size = max(1, config.batch.size)
        self._cancel = threading.Event()
        self._step = PipelineStep.INIT

    @property
    def step(self) -> PipelineStep:
        return self._step

    def cancel(self):
        """
        Request cooperative cancellation.

        Applies to the running `process` call, or to the next one if none
        is running yet. The flag is reset when that run ends.
        """
        logger.info("Cancellation requested")
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def process(
        self,
        video_path: Path,
        raw_bytes: Optional[bytes] = None,
        progress_cb: ProgressCallback = None,
        output_path: Optional[Path] = None
    ) -> ProcessResult:
        """
        Run the full extraction pipeline.

        Args:
            video_path: Path to the input video file.
            raw_bytes: Optional contents of the video file, used for audio
                decoding instead of reading `video_path` again.
            progress_cb: Optional callback receiving ProgressEvent objects.
            output_path: Optional path for the output .srt file.

        Returns:
            ProcessResult with subtitles, recognized frames, SRT text and
            speech segments.

        Raises:
            PipelineCancelled: If `cancel()` was called before or during the run.
            PipelineError: On any fatal failure. Its `result` holds the
                subtitles assembled before the failure.
        """
        video_path = Path(video_path)
        start_time = time.monotonic()
        self._step = PipelineStep.INIT

        frames: List[RecognizedFrame] = []
        segments: List[SpeechSegment] = []

        logger.info(f"{'='*60}")
        logger.info("Hard-Subtitle Extractor")
        logger.info(f"Input:  {video_path}")
        logger.info(f"VAD:    {'on' if self.config.vad.enabled else 'off'}")
        logger.info(f"Batch:  {self.batch_size} frames per recognition call")
        logger.info(f"{'='*60}")

        try:
            self._emit(progress_cb, PipelineStep.INIT, 0, "Initializing...")
            self._raise_if_cancelled()

            # ── Stage 1: Audio Extraction + VAD ──
            self._emit(progress_cb, PipelineStep.EXTRACTING_AUDIO, 5,
                       "Extracting audio and detecting speech...")
            signal = self.extractor.load(video_path, raw_bytes)
            _, segments = self.vad.detect(signal.samples, signal.sample_rate)

            # ── Stage 2: Timestamp selection ──
            if self.config.vad.enabled and segments:
                self._emit(progress_cb, PipelineStep.VAD_DETECTION, 20,
                           f"Detected {len(segments)} speech segments, sampling...")
                points = select_sample_points(segments, signal.duration, use_vad=True)
            else:
                reason = "VAD disabled" if not self.config.vad.enabled else "no speech found"
                self._emit(progress_cb, PipelineStep.UNIFORM_SAMPLING, 20,
                           f"Sampling uniformly ({reason})...")
                duration = self._media_duration(video_path, signal)
                points = select_sample_points(
                    [], duration, use_vad=False,
                    interval=self.config.sampling.interval
                )

            # ── Stage 3: Streaming recognition ──
            self._emit(progress_cb, PipelineStep.STREAMING_RECOGNITION, 40,
                       f"Extracting and recognizing {len(points)} video frames...")
            self._stream(video_path, points, frames, progress_cb)

            # ── Stage 4: Assembly and SRT ──
            self._emit(progress_cb, PipelineStep.GENERATING_SUBTITLES, 85,
                       "Generating subtitles...")
            result = self._build_result(frames, segments)
            if output_path is not None:
                self.writer.write(result.subtitles, output_path)

            elapsed = time.monotonic() - start_time
            self._emit(progress_cb, PipelineStep.COMPLETE, 100, f"Done! ({elapsed:.1f}s)")

            logger.info(f"{'='*60}")
            logger.info(f"Pipeline complete in {elapsed:.1f}s")
            logger.info(f"  Speech segments: {len(segments)}")
            logger.info(f"  Frames: {len(frames)}")
            logger.info(f"  Subtitles: {len(result.subtitles)} entries")
            if output_path is not None:
                logger.info(f"  Output: {output_path}")
            logger.info(f"{'='*60}")

            preview = self.writer.write_preview(result.subtitles, max_entries=5)
            if preview:
                logger.info(f"Preview:\n{preview}")

            return result

        except PipelineCancelled as e:
            failed_step = self._step
            e.result = self._build_result(frames, segments)
            e.step = failed_step
            self._emit(progress_cb, PipelineStep.ERROR, 0, CANCEL_MESSAGE, error=CANCEL_MESSAGE)
            logger.warning(
                f"Pipeline cancelled during {failed_step.value}; "
                f"keeping {len(e.result.subtitles)} subtitles"
            )
            raise

        except Exception as e:
            failed_step = self._step
            message = str(e) or e.__class__.__name__
            partial = self._build_result(frames, segments)
            self._emit(progress_cb, PipelineStep.ERROR, 0, message, error=message)
            logger.error(f"Pipeline failed during {failed_step.value}: {message}")
            raise PipelineError(message, result=partial, step=failed_step) from e

        finally:
            # One cancel request stops at most one run
            self._cancel.clear()

    # ── Streaming batch loop ──

    def _stream(
        self,
        video_path: Path,
        points: Sequence[SamplePoint],
        frames: List[RecognizedFrame],
        progress_cb: ProgressCallback
    ):
        """Sample frames and recognize them batch by batch, in order."""
        total = len(points)
        batch: List[SampledFrame] = []
        batch_number = 0

        for i, (timestamp, segment) in enumerate(points):
            self._raise_if_cancelled()

            try:
                frame = self.sampler.sample(video_path, timestamp, segment)
            except (FrameExtractionError, OSError) as e:
                logger.error(f"Frame at {timestamp:.2f}s could not be extracted: {e}")
                # Keep the slot so timestamps stay aligned
                frame = SampledFrame(timestamp=timestamp, image=None, segment=segment)
            batch.append(frame)

            if len(batch) < self.batch_size and i < total - 1:
                continue

            batch_number += 1
            outcome = self._recognize_batch(batch)
            kind = "composite" if isinstance(outcome, CompositeOutcome) else "per-frame"
            logger.info(
                f"Batch {batch_number}: {len(outcome.frames)} frames via {kind} "
                f"recognition ({outcome.recognized} recognized)"
            )

            # Release image buffers before the next batch is sampled
            for sampled in batch:
                sampled.image = None
            batch = []

            for recognized in outcome.frames:
                frames.append(recognized)
                if not self.assembler.is_qualifying(recognized.text):
                    continue

                done = len(frames)
                seg = recognized.segment
                self._emit(
                    progress_cb,
                    PipelineStep.STREAMING_RECOGNITION,
                    40 + (done / total) * 45,
                    f"Frame {done}/{total}: {recognized.text}",
                    frame_result=FrameResult(
                        timestamp=recognized.timestamp,
                        text=recognized.text,
                        confidence=recognized.confidence,
                        index=done,
                        total=total,
                        segment_start=seg.start if seg else None,
                        segment_end=seg.end if seg else None,
                    )
                )

    def _recognize_batch(self, batch: List[SampledFrame]) -> BatchOutcome:
        """
        Recognize one batch, through a composite image when possible.

        Raises:
            RecognitionMismatchError: If the composite response does not
                hold exactly one result per sub-image.
            RecognitionError: If the composite recognition call fails.
        """
        ready = [f for f in batch if f.ok]
        if not ready:
            logger.warning(f"All {len(batch)} frames of the batch failed extraction")
            return PerFrameOutcome(
                frames=[RecognizedFrame.empty(f.timestamp, f.segment) for f in batch]
            )

        try:
            composite = self.packer.merge([f.image for f in ready])
        except PackingError as e:
            logger.warning(f"Composite merge failed ({e}), recognizing frames individually")
            return self._recognize_each(batch)
        logger.debug(f"Batch composite of {composite.count} frames "
                     f"({composite.width}x{composite.height})")

        results = self.recognizer.recognize_batch(
            composite.image,
            [f.timestamp for f in ready],
            [f.segment for f in ready]
        )
        if len(results) != len(ready):
            raise RecognitionMismatchError(expected=len(ready), received=len(results))

        result_iter = iter(results)
        recognized = []
        for sampled in batch:
            if not sampled.ok:
                recognized.append(RecognizedFrame.empty(sampled.timestamp, sampled.segment))
                continue
            res = next(result_iter)
            recognized.append(RecognizedFrame(
                timestamp=sampled.timestamp,
                text=res.text,
                confidence=res.confidence,
                segment=sampled.segment
            ))

        return CompositeOutcome(frames=recognized, recognized=len(ready))

    def _recognize_each(self, batch: List[SampledFrame]) -> PerFrameOutcome:
        """Fallback: one recognition call per frame, absorbing failures."""
        recognized = []
        count = 0

        for sampled in batch:
            if not sampled.ok:
                recognized.append(RecognizedFrame.empty(sampled.timestamp, sampled.segment))
                continue
            try:
                res = self.recognizer.recognize(sampled.image, sampled.timestamp)
            except RecognitionError as e:
                logger.error(f"Recognition failed for frame at {sampled.timestamp:.2f}s: {e}")
                recognized.append(RecognizedFrame.empty(sampled.timestamp, sampled.segment))
                continue

            count += 1
            recognized.append(RecognizedFrame(
                timestamp=sampled.timestamp,
                text=res.text,
                confidence=res.confidence,
                segment=sampled.segment
            ))

        return PerFrameOutcome(frames=recognized, recognized=count)

    # ── Utilities ──

    def _raise_if_cancelled(self):
        if self._cancel.is_set():
            raise PipelineCancelled(CANCEL_MESSAGE)

    def _build_result(self, frames: List[RecognizedFrame],
                      segments: List[SpeechSegment]) -> ProcessResult:
        subtitles = self.assembler.assemble(frames)
        return ProcessResult(
            subtitles=subtitles,
            frames=list(frames),
            srt_content=self.writer.render(subtitles),
            speech_segments=list(segments)
        )

    def _media_duration(self, video_path: Path, signal: AudioSignal) -> float:
        """Video duration from ffprobe, or the audio length if that fails."""
        try:
            return self.extractor.get_duration(video_path)
        except (RuntimeError, ValueError, OSError) as e:
            logger.warning(f"Could not read video duration ({e}), using audio length")
            return signal.duration

    def _emit(self, cb: ProgressCallback, step: PipelineStep, pct: float,
              msg: str, error: Optional[str] = None,
              frame_result: Optional[FrameResult] = None):
        """Report progress to logger and optional callback."""
        self._step = step
        if frame_result is None:
            logger.info(f"[{int(pct):3d}%] {msg}")
        else:
            logger.debug(f"[{int(pct):3d}%] {msg}")
        if cb:
            cb(ProgressEvent(progress=pct, message=msg, step=step,
                             error=error, frame_result=frame_result))
