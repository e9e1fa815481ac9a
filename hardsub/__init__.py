"""
Hard-Subtitle Extractor — Pipeline Package

Modular pipeline that reads burned-in subtitles off a video:
  - audio_extractor: FFmpeg-based audio extraction
  - vad: Energy-based voice activity detection and segmentation
  - frame_sampler: Timestamp selection, frame grabbing and region cropping
  - batch_packer: Stacks frames into one composite image per batch
  - recognition: Subtitle text recognition via vision chat models
  - assembler: Recognized frames to numbered subtitle entries
  - srt_writer: Standard SRT file output and parsing
  - orchestrator: Streaming batch pipeline with progress and cancellation
"""
