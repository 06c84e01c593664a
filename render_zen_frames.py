#!/usr/bin/env python3
"""
render_zen_frames.py

OFFLINE FRAME RENDERER for Zen Digit Dissolve

- Runs the same simulation as the window, but on a headless surface
- Frame i is simulated at t = i / FPS (no real-time clock)
- Saves frames as JPEGs in frames_zen_dissolve/

Stitch into a video yourself, or pass --video out.mp4 to have ffmpeg do it:
  ffmpeg -framerate 30 -i frames_zen_dissolve/%06d.jpg \
         -c:v libx264 -preset slow -crf 18 -pix_fmt yuv420p zen_dissolve.mp4
"""
import os
import shutil
import subprocess
import sys
import time
from pathlib import Path

# disable window; render to surfaces
os.environ.setdefault("SDL_VIDEODRIVER", "dummy")

import pygame
from PIL import Image

from dissolve_engine import SimulationContext
from zen_digit_dissolve import (
    build_arg_parser,
    collect_raw,
    config_from_raw,
    draw_frame,
    leading_float,
)

# ------------- CONFIG --------------------------------------------------------

DEFAULT_SIZE = (1280, 720)
DEFAULT_FPS = 30
FRAMES_DIR = Path("frames_zen_dissolve")
JPEG_QUALITY = 90
PROGRESS_EVERY = 10.0      # seconds between [RENDER] lines


def clip_seconds(config, requested=None):
    """Explicit length, else the run duration, else one full breath cycle."""
    if requested is not None and requested > 0:
        return requested
    if config.run_seconds is not None:
        return float(config.run_seconds)
    return config.breath_seconds * 2.0


def ffmpeg_command(frames_dir: Path, fps, video_path):
    return [
        "ffmpeg", "-y",
        "-framerate", str(fps),
        "-i", str(frames_dir / "%06d.jpg"),
        "-c:v", "libx264", "-preset", "slow", "-crf", "18",
        "-pix_fmt", "yuv420p",
        str(video_path),
    ]


def render_frames(config, seconds, out_dir: Path):
    """Simulate and save every frame. Returns the number of frames written."""
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        print(f"[ERROR] Cannot create output folder {out_dir}: {e}")
        sys.exit(1)

    width, height = config.size
    fps = config.fps
    total = max(1, int(round(seconds * fps)))

    pygame.init()
    surface = pygame.Surface((width, height))

    ctx = SimulationContext(config, width=width, height=height)

    start = time.time()
    last_print = start
    try:
        for idx in range(total):
            frame = ctx.update(idx / float(fps))
            draw_frame(surface, frame, config.font_name)

            # --- Save frame as JPEG ---
            raw_str = pygame.image.tobytes(surface, "RGB")
            img = Image.frombytes("RGB", (width, height), raw_str)
            img.save(out_dir / f"{idx:06d}.jpg", "JPEG", quality=JPEG_QUALITY, optimize=True)

            now = time.time()
            if now - last_print > PROGRESS_EVERY:
                done_pct = 100.0 * (idx + 1) / total
                elapsed = now - start
                eta = elapsed / (done_pct / 100.0) - elapsed
                print(
                    f"[RENDER] frame {idx+1}/{total} "
                    f"({done_pct:5.1f}%), elapsed {elapsed:.1f} s, ETA {eta:.1f} s"
                )
                last_print = now
    finally:
        pygame.quit()

    print(f"[RENDER] done. {total} frames in {time.time() - start:.1f} s")
    return total


def stitch_video(frames_dir: Path, fps, video_path):
    cmd = ffmpeg_command(frames_dir, fps, video_path)
    if shutil.which("ffmpeg") is None:
        print("[INFO] ffmpeg not found; run this yourself:\n")
        print("  " + " ".join(cmd))
        return False
    try:
        subprocess.check_call(cmd)
    except subprocess.CalledProcessError as e:
        print(f"[ERROR] ffmpeg failed: {e}")
        sys.exit(1)
    print(f"[COMPLETE] video saved to {video_path}")
    return True


def build_parser():
    ap = build_arg_parser(prog="render_zen_frames.py")
    ap.description = "Render Zen Digit Dissolve frames offline"
    ap.add_argument("--seconds", nargs="?", default=None, help="clip length (default: --dur, else one breath cycle)")
    ap.add_argument("--out", nargs="?", default=str(FRAMES_DIR), help="output folder for JPEG frames")
    ap.add_argument("--video", nargs="?", default=None, help="stitch frames into this video file with ffmpeg")
    return ap


def main(argv=None):
    parser = build_parser()
    raw = collect_raw(argv, parser)
    config = config_from_raw(raw, default_size=DEFAULT_SIZE, default_fps=DEFAULT_FPS)
    seconds = clip_seconds(config, leading_float(raw.get("seconds")))
    out_dir = Path(raw.get("out") or FRAMES_DIR)

    print(f"[PARAM] text={config.text!r} size={config.size[0]}x{config.size[1]} fps={config.fps} seconds={seconds:g}")
    render_frames(config, seconds, out_dir)

    if raw.get("video"):
        stitch_video(out_dir, config.fps, raw["video"])
    else:
        print("\n[COMPLETE]")
        print(f"Frames saved to: {out_dir}/%06d.jpg")
        print("\nNext, run this FFmpeg command (from the same folder):\n")
        print("  " + " ".join(ffmpeg_command(out_dir, config.fps, "zen_dissolve.mp4")))
    return 0


if __name__ == "__main__":
    sys.exit(main())
