"""
CLI entry point for the Bubblescape environment.

Usage:
    bubblescape <audio_file> [options]          render an MP4 with the audio muxed in
    bubblescape --frames 600 --png-dir out/     write PNG frames of a silent scene
    bubblescape --live [--mic | <audio_file>]   open the live preview window
    python -m bubblescape ...
"""

import argparse
import logging
import sys
import time
from dataclasses import replace
from pathlib import Path

from PIL import Image

from bubblescape.core.capture import CaptureSource, FileCapture, MicrophoneCapture
from bubblescape.errors import BubblescapeError
from bubblescape.logs import setup_logging
from bubblescape.preview.encoder import encode_video
from bubblescape.preview.renderer import PreviewConfig, PreviewRenderer
from bubblescape.scene import SCENE_VARIANTS, Environment, SceneSettings, scene_config_for

logger = logging.getLogger("bubblescape.cli")

PROFILES = {
    "low": {"width": 854, "height": 480, "fps": 30, "quality": "fast"},
    "medium": {"width": 1280, "height": 720, "fps": 60, "quality": "medium"},
    "high": {"width": 1920, "height": 1080, "fps": 60, "quality": "high"},
}


def _progress_bar(current: int, total: int, width: int = 35):
    """Print a progress bar to stdout."""
    pct = current / max(total, 1) * 100
    filled = int(width * current / max(total, 1))
    bar = "#" * filled + "-" * (width - filled)
    if sys.stdout.isatty():
        sys.stdout.write(f"\r[{bar}] {pct:5.1f}%  frame {current}/{total}")
        sys.stdout.flush()
        if current >= total:
            sys.stdout.write("\n")
    elif current % max(1, total // 20) == 0 or current >= total:
        print(f"{pct:5.1f}%  frame {current}/{total}", flush=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bubblescape",
        description="Audio-reactive terrain, bubbles and foliage preview renderer",
    )

    parser.add_argument(
        "audio", type=Path, nargs="?", default=None,
        help="Audio file driving the scene (wav, mp3, flac)",
    )
    parser.add_argument(
        "-o", "--output", type=Path, default=None,
        help="Output MP4 path (default: <audio>_bubblescape.mp4)",
    )
    parser.add_argument(
        "-v", "--variant", type=str, default=None, choices=sorted(SCENE_VARIANTS),
        help="Scene variant (default: reactive with audio, classic without)",
    )
    parser.add_argument(
        "-p", "--profile", type=str, default="medium", choices=list(PROFILES),
        help="Output profile (low: 480p 30fps, medium: 720p 60fps, high: 1080p 60fps)",
    )
    parser.add_argument("--width", type=int, default=None, help="Frame width (overrides profile)")
    parser.add_argument("--height", type=int, default=None, help="Frame height (overrides profile)")
    parser.add_argument("-f", "--fps", type=int, default=None, help="Frames per second (overrides profile)")

    parser.add_argument("--frames", type=int, default=None, help="Number of frames (default: audio length)")
    parser.add_argument("--seed", type=int, default=None, help="Seed for bubble and foliage placement")
    parser.add_argument(
        "--intensity", type=float, default=1.0,
        help="Audio intensity multiplier for terrain gains (default: 1.0)",
    )
    parser.add_argument(
        "--foliage-count", type=int, default=None,
        help="Override the number of foliage blades (meadow variant)",
    )

    parser.add_argument("--png-dir", type=Path, default=None, help="Write PNG frames here instead of an MP4")
    parser.add_argument("--live", action="store_true", help="Open a live preview window")
    parser.add_argument("--mic", action="store_true", help="Drive the scene from the microphone (with --live)")
    parser.add_argument(
        "-q", "--quality", type=str, default=None, choices=["high", "medium", "fast"],
        help="Encoding quality (defaults to profile quality)",
    )
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    return parser


def _make_capture(args, fps: int) -> CaptureSource | None:
    if args.mic:
        return MicrophoneCapture()
    if args.audio is not None:
        return FileCapture(args.audio, fps=fps)
    return None


def _scene_overrides(args) -> dict:
    overrides = {}
    if args.foliage_count is not None:
        base = scene_config_for(args.variant)
        if base.foliage is not None:
            overrides["foliage"] = replace(base.foliage, count=args.foliage_count)
    return overrides


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)
    logger.debug("Arguments: %s", vars(args))

    if args.audio is not None and not args.audio.exists():
        print(f"Error: Audio file not found: {args.audio}", file=sys.stderr)
        sys.exit(1)
    if args.mic and not args.live:
        print("Error: --mic needs --live", file=sys.stderr)
        sys.exit(1)
    if not args.live and args.audio is None and args.frames is None:
        print("Error: give an audio file or --frames", file=sys.stderr)
        sys.exit(1)

    p_cfg = PROFILES[args.profile]
    width = args.width or p_cfg["width"]
    height = args.height or p_cfg["height"]
    fps = args.fps or p_cfg["fps"]
    quality = args.quality or p_cfg["quality"]

    if args.variant is None:
        args.variant = "reactive" if (args.audio is not None or args.mic) else "classic"

    try:
        scene = scene_config_for(args.variant, **_scene_overrides(args))
        capture = _make_capture(args, fps)
        env = Environment(
            scene,
            capture=capture,
            settings=SceneSettings(audio_intensity=args.intensity),
            seed=args.seed,
        )
    except BubblescapeError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    preview = PreviewRenderer(scene, PreviewConfig(width=width, height=height, fps=fps))

    if args.live:
        from bubblescape.preview.window import LiveWindow

        LiveWindow(env, preview).run()
        return

    with env:
        if isinstance(capture, FileCapture):
            # Non-reactive variants still take their length from the audio
            capture.request_access()
        n_frames = args.frames
        if n_frames is None:
            n_frames = int(capture.duration * fps) if isinstance(capture, FileCapture) else 0
        if n_frames <= 0:
            print("Error: nothing to render (audio could not be loaded?)", file=sys.stderr)
            sys.exit(1)

        print(f"Rendering {n_frames} frames at {width}x{height} @ {fps}fps")
        print(f"  Variant: {scene.name}, audio: {'on' if env.spectrum else 'off'}")
        t0 = time.time()
        frames = preview.render_environment(env, n_frames, fps=fps)

        if args.png_dir is not None:
            args.png_dir.mkdir(parents=True, exist_ok=True)
            for i, frame in enumerate(frames):
                Image.fromarray(frame).save(args.png_dir / f"frame_{i:05d}.png")
                _progress_bar(i + 1, n_frames)
            output = args.png_dir
        else:
            output = args.output
            if output is None:
                stem = args.audio.stem if args.audio is not None else scene.name
                output = Path(f"{stem}_bubblescape.mp4")
            try:
                encode_video(
                    frame_iterator=frames,
                    output_path=output,
                    width=width,
                    height=height,
                    fps=fps,
                    audio_path=args.audio,
                    quality=quality,
                    duration=n_frames / fps,
                    total_frames=n_frames,
                    progress_callback=_progress_bar,
                )
            except (OSError, RuntimeError) as exc:
                print(f"Error: {exc}", file=sys.stderr)
                sys.exit(1)

    elapsed = time.time() - t0
    print(f"\nDone in {elapsed:.1f}s ({n_frames / max(elapsed, 0.01):.1f} fps)")
    print(f"  Output: {output}")


if __name__ == "__main__":
    main()
