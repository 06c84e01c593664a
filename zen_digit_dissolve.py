#!/usr/bin/env python3
"""
zen_digit_dissolve.py: Zen Digit Dissolve (pygame window)

- Monochrome. The displayed number comes from --num (default 56).
- Slow "breathe": form -> dissolve -> reform using text-sampled particles.

Usage:
  python zen_digit_dissolve.py --num 137 --dur 600 --breath 8
  python zen_digit_dissolve.py "num=137&dur=600"     (query-string style)

Options:
  --num TEXT       number/string to display
  --dur SECONDS    run time, shows a tiny countdown HUD; omit to run indefinitely
  --breath SECONDS seconds for one inhale OR one exhale (default 8, must be > 0.5)
  --seed N         seed for particle jitter and the noise field
  --size WxH       windowed size (default: fullscreen)
  --fps N          frame cap (default 60)
  --font NAME      system font name (default: pygame's bundled font)

Keys:
  r       swap in a random number
  f / F11 toggle fullscreen
  Esc     quit
"""
import argparse
import re
import sys
from urllib.parse import parse_qs

import pygame

from dissolve_engine import (
    DEFAULT_BREATH_SECONDS,
    DEFAULT_TEXT,
    MIN_BREATH_SECONDS,
    DissolveConfig,
    SimulationContext,
)
from text_raster import get_font

DEFAULT_FPS = 60
WINDOWED_FALLBACK = (1280, 720)

_INT_RE = re.compile(r"\s*([+-]?\d+)")
_FLOAT_RE = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
_SIZE_RE = re.compile(r"\s*(\d+)\s*[xX]\s*(\d+)\s*$")


# ---------- parameters ----------
def leading_int(s):
    """'600abc' -> 600, junk -> None."""
    if s is None:
        return None
    m = _INT_RE.match(str(s))
    return int(m.group(1)) if m else None


def leading_float(s):
    if s is None:
        return None
    m = _FLOAT_RE.match(str(s))
    return float(m.group(1)) if m else None


def parse_size(s):
    if s is None:
        return None
    m = _SIZE_RE.match(str(s))
    if not m:
        return None
    w, h = int(m.group(1)), int(m.group(2))
    if w <= 0 or h <= 0:
        return None
    return (w, h)


def query_params(query):
    """Pull num/dur/breath/... out of a '?num=1&dur=2' string or a full URL."""
    if not query:
        return {}
    if "?" in query:
        query = query.split("?", 1)[1]
    parsed = parse_qs(query, keep_blank_values=True)
    return {k: v[-1] for k, v in parsed.items()}


def build_arg_parser(prog=None):
    ap = argparse.ArgumentParser(
        prog=prog,
        description="Zen Digit Dissolve: breathing text particles",
        allow_abbrev=False,
    )
    # nargs="?": a bare "--num" leaves the value unset rather than exiting
    ap.add_argument("query", nargs="?", default=None, help="optional query string, e.g. 'num=137&dur=600'")
    ap.add_argument("--num", nargs="?", default=None, help="number/string to display")
    ap.add_argument("--dur", nargs="?", default=None, help="run time in seconds (countdown HUD)")
    ap.add_argument("--breath", nargs="?", default=None, help="seconds for one inhale or one exhale")
    ap.add_argument("--seed", nargs="?", default=None, help="rng / noise seed")
    ap.add_argument("--size", nargs="?", default=None, help="window size WxH")
    ap.add_argument("--fps", nargs="?", default=None, help="frame cap")
    ap.add_argument("--font", nargs="?", default=None, help="system font name")
    return ap


def collect_raw(argv, parser):
    """Merge query-string values with explicit options (options win). Unknown args are ignored."""
    args, _unknown = parser.parse_known_args(argv)
    raw = query_params(args.query)
    for key, value in vars(args).items():
        if key != "query" and value is not None:
            raw[key] = value
    return raw


def config_from_raw(raw, default_size=None, default_fps=DEFAULT_FPS):
    """Every bad value falls back silently to its default."""
    text = DEFAULT_TEXT
    num = raw.get("num")
    if num is not None and num.strip() != "":
        text = num.strip()

    run_seconds = None
    dur = leading_int(raw.get("dur"))
    if dur is not None and dur > 0:
        run_seconds = dur

    breath_seconds = DEFAULT_BREATH_SECONDS
    breath = leading_float(raw.get("breath"))
    if breath is not None and breath > MIN_BREATH_SECONDS:
        breath_seconds = breath

    fps = default_fps
    fps_val = leading_int(raw.get("fps"))
    if fps_val is not None and fps_val > 0:
        fps = fps_val

    font_name = (raw.get("font") or "").strip() or None

    return DissolveConfig(
        text=text,
        run_seconds=run_seconds,
        breath_seconds=breath_seconds,
        seed=leading_int(raw.get("seed")),
        font_name=font_name,
        size=parse_size(raw.get("size")) or default_size,
        fps=fps,
    )


def parse_params(argv=None):
    parser = build_arg_parser()
    return config_from_raw(collect_raw(argv, parser))


# ---------- pygame backend ----------
_layer_cache = {}


def _particle_layer(size):
    if size not in _layer_cache:
        _layer_cache.clear()
        layer = pygame.Surface(size)
        layer.set_colorkey((0, 0, 0))
        _layer_cache[size] = layer
    return _layer_cache[size]


def draw_hud(surface, hud, font_name=None):
    font = get_font(hud.size, font_name)
    img = font.render(hud.text, True, (255, 255, 255))
    img.set_alpha(hud.alpha)
    surface.blit(img, img.get_rect(bottomright=hud.anchor))


def draw_frame(surface, frame, font_name=None):
    """Draw FrameCommands onto any pygame surface (window or offscreen)."""
    bg = frame.background
    surface.fill((bg, bg, bg))

    if len(frame.sizes):
        layer = _particle_layer(surface.get_size())
        layer.fill((0, 0, 0))
        col = (frame.fill, frame.fill, frame.fill)
        for (x, y), d in zip(frame.positions.tolist(), frame.sizes.tolist()):
            pygame.draw.circle(layer, col, (x, y), max(1.0, d * 0.5))
        # slightly brighter when formed
        layer.set_alpha(frame.alpha)
        surface.blit(layer, (0, 0))

    if frame.hud is not None:
        draw_hud(surface, frame.hud, font_name)


# ---------- window loop ----------
def open_window(config, fullscreen):
    if fullscreen:
        return pygame.display.set_mode((0, 0), pygame.FULLSCREEN)
    return pygame.display.set_mode(config.size or WINDOWED_FALLBACK, pygame.RESIZABLE)


def seconds_now():
    return pygame.time.get_ticks() / 1000.0


def key_action(event):
    """Map a KEYDOWN event to "quit", "randomize", "fullscreen" or None."""
    if event.key == pygame.K_ESCAPE:
        return "quit"
    # lowercase only; Shift+R does nothing
    if event.unicode == "r":
        return "randomize"
    if event.key in (pygame.K_f, pygame.K_F11):
        return "fullscreen"
    return None


def run(config):
    pygame.init()
    fullscreen = config.size is None
    screen = open_window(config, fullscreen)
    pygame.display.set_caption("Zen Digit Dissolve")
    clock = pygame.time.Clock()

    ctx = SimulationContext(config, start_time=seconds_now())
    ctx.resize(*screen.get_size())

    running = True
    try:
        while running:
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    running = False
                elif event.type == pygame.KEYDOWN:
                    action = key_action(event)
                    if action == "quit":
                        running = False
                    elif action == "randomize":
                        ctx.resize(*screen.get_size())
                        ctx.randomize_text()
                    elif action == "fullscreen":
                        fullscreen = not fullscreen
                        screen = open_window(config, fullscreen)

            # rebuild on size/text change happens inside update()
            ctx.resize(*screen.get_size())
            frame = ctx.update(seconds_now())
            draw_frame(screen, frame, config.font_name)
            pygame.display.flip()
            clock.tick(config.fps)
    finally:
        pygame.quit()


def main(argv=None):
    config = parse_params(argv)
    dur = f"{config.run_seconds}s" if config.run_seconds is not None else "unbounded"
    print(f"[PARAM] text={config.text!r} dur={dur} breath={config.breath_seconds}s seed={config.seed}")
    run(config)
    return 0


if __name__ == "__main__":
    sys.exit(main())
