"""
text_raster.py: draws the display string into an offscreen buffer

White text on opaque black, centred, sized to the canvas. Only the pygame
font and surface modules are used, so this works without a window (SDL
dummy driver included).
"""
import numpy as np
import pygame

from dissolve_engine import BG, FG, MARGIN_FRAC, MIN_FONT_SIZE, TARGET_SCALE

_font_cache = {}


def get_font(size, font_name=None):
    size = max(1, int(round(size)))
    key = (font_name, size)
    if not pygame.font.get_init():
        # fonts from an earlier pygame.init() are dead after pygame.quit()
        pygame.font.init()
        _font_cache.clear()
    if key not in _font_cache:
        if font_name:
            _font_cache[key] = pygame.font.SysFont(font_name, size)
        else:
            _font_cache[key] = pygame.font.Font(None, size)
    return _font_cache[key]


def fit_font_size(text, width, height, font_name=None):
    """Height target first, then shrink if the text is wider than the margins allow."""
    min_dim = min(width, height)
    margin = min_dim * MARGIN_FRAC
    size = max(MIN_FONT_SIZE, min_dim * TARGET_SCALE)

    avail_w = width - margin * 2
    text_w = get_font(size, font_name).size(text)[0]
    if text_w > avail_w and text_w > 0:
        size = max(MIN_FONT_SIZE, size * (avail_w / text_w))
    return size


def render_text_surface(text, width, height, font_name=None):
    surf = pygame.Surface((width, height), pygame.SRCALPHA)
    surf.fill((BG, BG, BG, 255))
    if not text:
        return surf
    try:
        font = get_font(fit_font_size(text, width, height, font_name), font_name)
        img = font.render(text, True, (FG, FG, FG))
    except (pygame.error, ValueError, UnicodeError):
        # NUL bytes, lone surrogates: nothing to draw
        return surf
    surf.blit(img, img.get_rect(center=(width // 2, height // 2)))
    return surf


def rasterize_text(text, width, height, font_name=None):
    """Return a (width, height, 4) uint8 RGBA array indexed [x, y, channel]."""
    if width <= 0 or height <= 0:
        return np.zeros((0, 0, 4), dtype=np.uint8)
    surf = render_text_surface(text, width, height, font_name)
    rgb = pygame.surfarray.array3d(surf)
    alpha = pygame.surfarray.array_alpha(surf)
    return np.dstack([rgb, alpha]).astype(np.uint8)
