"""
Hard-Subtitle Extractor — CLI Entry Point

Usage:
    python main.py video.mp4
    python main.py video.mp4 -o subtitles.srt
    python main.py video.mp4 --no-vad --interval 1.5
    python main.py video.mp4 --region 0,75,100,25 --frames-json frames.json
"""

import sys
import json
import signal
import argparse
import logging
from pathlib import Path

from config import load_config
from hardsub.exceptions import PipelineCancelled, PipelineError
from hardsub.frame_sampler import Region
from hardsub.orchestrator import ProgressEvent, SubtitlePipeline
from hardsub.srt_writer import SRTWriter


def setup_logging(level: str = "INFO", log_file: str = None):
    """Configure logging for the application."""
    log_format = (
        "%(asctime)s | %(levelname)-7s | %(name)-20s | %(message)s"
    )
    date_format = "%H:%M:%S"

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=log_format,
        datefmt=date_format,
        handlers=handlers
    )

    # Suppress noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)


def print_banner():
    """Print the application banner."""
    banner = """
==========================================================
          Hard-Subtitle Extractor

  Speech Detection  +  Vision Text Recognition
  Burned-in subtitles  ->  SRT
==========================================================
"""
    print(banner)


def print_progress(event: ProgressEvent):
    """Console progress callback with progress bar and live subtitles."""
    if event.frame_result is not None:
        fr = event.frame_result
        print(f"\r  [{fr.index}/{fr.total}] {fr.timestamp:8.2f}s  {fr.text:<60}")

    percent = int(event.progress)
    bar_width = 30
    filled = int(bar_width * percent / 100)
    bar = "#" * filled + "-" * (bar_width - filled)
    print(f"\r  [{bar}] {percent:3d}%  {event.message[:50]:<50}", end="", flush=True)
    if percent >= 100:
        print()  # Newline at completion


def save_frames_json(result, path: Path):
    """Dump subtitles and every recognized frame for inspection."""
    data = {
        "subtitles": [entry.to_dict() for entry in result.subtitles],
        "frames": [frame.to_dict() for frame in result.frames],
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Hard-Subtitle Extractor — Read burned-in subtitles off a video "
                    "and save them as an SRT file.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py movie.mp4                        # Basic usage
  python main.py movie.mp4 -o my_subs.srt         # Custom output path
  python main.py movie.mp4 --no-vad --interval 1  # One frame per second
  python main.py movie.mp4 --region 0,75,100,25   # Only read the bottom quarter
  python main.py movie.mp4 --model gpt-4o --model gpt-4o-mini
        """
    )

    parser.add_argument(
        "video",
        type=Path,
        help="Path to the input video file (.mp4, .mkv, .avi, .webm, etc.)"
    )
    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Output SRT file path (default: same name as video with .srt extension)"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to custom config.yaml file"
    )
    parser.add_argument(
        "--no-vad",
        action="store_true",
        help="Skip speech detection and sample frames on a fixed interval"
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between frames when sampling uniformly (default: 2.0)"
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Frames per composite recognition call (default: 50)"
    )
    parser.add_argument(
        "--model",
        action="append",
        default=None,
        help="Vision model id; repeat to rotate between several models"
    )
    parser.add_argument(
        "--api-base",
        default=None,
        help="Base URL of an OpenAI-compatible API"
    )
    parser.add_argument(
        "--region",
        action="append",
        type=Region.parse,
        default=None,
        metavar="X,Y,W,H",
        help="Subtitle area in percent of the frame; repeatable"
    )
    parser.add_argument(
        "--frames-json",
        type=Path,
        default=None,
        help="Also write the subtitles and every recognized frame to this JSON file"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging"
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress all output except errors"
    )
    return parser


def main():
    parser = build_parser()
    args = parser.parse_args()

    # ── Validate input ──
    if not args.video.exists():
        print(f"Error: Video file not found: {args.video}")
        sys.exit(1)

    # ── Determine output path ──
    output_path = args.output or args.video.with_suffix(".srt")

    # ── Load config ──
    config = load_config(args.config)

    # Apply CLI overrides
    config.update_from_args(args)

    # ── Setup logging ──
    log_level = "DEBUG" if args.verbose else ("WARNING" if args.quiet else config.logging.level)
    setup_logging(level=log_level, log_file=config.logging.file)

    # ── Banner ──
    if not args.quiet:
        print_banner()
        print(f"  Input:    {args.video}")
        print(f"  Output:   {output_path}")
        print(f"  Sampling: {'speech segments' if config.vad.enabled else f'every {config.sampling.interval}s'}")
        print(f"  Models:   {', '.join(config.recognition.models)}")
        print(f"  Batch:    {config.batch.size} frames")
        print()

    # ── Run pipeline ──
    try:
        pipeline = SubtitlePipeline(config)

        # First Ctrl+C cancels cooperatively, a second one aborts
        def _on_interrupt(signum, frame):
            if pipeline.cancelled:
                raise KeyboardInterrupt
            print("\n\n  [WARN] Cancelling, press Ctrl+C again to abort...")
            pipeline.cancel()

        signal.signal(signal.SIGINT, _on_interrupt)

        progress_fn = print_progress if not args.quiet else None
        result = pipeline.process(args.video, progress_cb=progress_fn, output_path=output_path)

        if args.frames_json:
            save_frames_json(result, args.frames_json)

        if not args.quiet:
            print(f"\n  [OK] Subtitles saved to: {output_path}")
            print(f"  [INFO] Total entries: {len(result.subtitles)}")
            if args.frames_json:
                print(f"  [INFO] Frames saved to: {args.frames_json}")

    except PipelineCancelled as e:
        if e.result is not None and e.result.subtitles:
            SRTWriter().write(e.result.subtitles, output_path)
            print(f"\n  [WARN] Cancelled; {len(e.result.subtitles)} partial subtitles "
                  f"saved to: {output_path}")
        else:
            print("\n\n  [WARN] Processing cancelled by user.")
        sys.exit(130)
    except KeyboardInterrupt:
        print("\n\n  [WARN] Processing interrupted by user.")
        sys.exit(130)
    except PipelineError as e:
        print(f"\n  [ERROR] Pipeline failed: {e}")
        if e.result is not None and e.result.subtitles:
            partial_path = output_path.with_suffix(".partial.srt")
            SRTWriter().write(e.result.subtitles, partial_path)
            print(f"  [INFO] {len(e.result.subtitles)} partial subtitles saved to: {partial_path}")
        sys.exit(1)
    except FileNotFoundError as e:
        print(f"\n  [ERROR] File error: {e}")
        sys.exit(1)
    except RuntimeError as e:
        print(f"\n  [ERROR] Runtime error: {e}")
        sys.exit(1)
    except Exception as e:
        logging.exception("Unexpected error")
        print(f"\n  [ERROR] Unexpected error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
