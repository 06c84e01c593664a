"""
dissolve_engine.py: Simulation core for Zen Digit Dissolve

Contains:
- Tuning constants (sampling, breath, drift, HUD)
- Utils: lerp / remap
- ValueNoise3D (seeded coherent noise, numpy-vectorised)
- BreathClock (triangle-wave inhale/exhale)
- FlowField (noise-driven push vectors)
- ParticleSet + sample_particles (text raster -> particles)
- integrate (per-frame drift/ease step)
- HUD countdown helpers
- SimulationContext.update(now) -> FrameCommands

Nothing in here draws. A backend (pygame window, offline renderer) consumes
FrameCommands and decides how to put pixels on screen.
"""
import math
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import numpy as np

# ---------- tuning ----------
BG = 0
FG = 255

SAMPLE_STEP = 6            # pixel stride when scanning the raster
TARGET_SCALE = 0.78        # text height as a fraction of min(width, height)
MARGIN_FRAC = 0.12         # side margin as a fraction of min(width, height)
MIN_FONT_SIZE = 12

ALPHA_THRESHOLD = 10
BRIGHTNESS_THRESHOLD = 500

PARTICLE_JITTER = 2.0
PARTICLE_SIZE = (1.6, 2.4)

EXHALE_SPREAD = 28.0       # max outward drift distance
EXHALE_JITTER = 0.9        # per-particle spread randomness
INHALE_TIGHTNESS = 0.18    # 0..1, pull toward home while inhaling
EXHALE_EASING = 0.08
DRIFT_NOISE_SCALE = 0.002
DRIFT_TIME_SCALE = 0.15
DRIFT_NOISE_STRENGTH = 0.9

FLOW_SPACE_SCALE = 0.0013
FLOW_TIME_SCALE = 0.07
FLOW_OFFSET = (999.0, -777.0)
FLOW_MAGNITUDE = (0.2, 1.0)

PARTICLE_ALPHA_BASE = 200
PARTICLE_ALPHA_GAIN = 55

HUD_FADE = 140
HUD_FONT_SIZE = 14
HUD_MARGIN = (14, 12)

DEFAULT_TEXT = "56"
DEFAULT_BREATH_SECONDS = 8.0
MIN_BREATH_SECONDS = 0.5
RANDOM_TEXT_RANGE = (1, 9999)


# ---------- utils ----------
def lerp(a, b, t):
    return a + (b - a) * t


def remap(v, in_lo, in_hi, out_lo, out_hi):
    return out_lo + (v - in_lo) * (out_hi - out_lo) / (in_hi - in_lo)


def _smoothstep(t):
    return t * t * (3.0 - 2.0 * t)


# ---------- config ----------
@dataclass(frozen=True)
class DissolveConfig:
    text: str = DEFAULT_TEXT
    run_seconds: Optional[int] = None       # None = run indefinitely
    breath_seconds: float = DEFAULT_BREATH_SECONDS
    seed: Optional[int] = None
    font_name: Optional[str] = None
    size: Optional[Tuple[int, int]] = None  # None = fullscreen
    fps: int = 60


# ---------- noise ----------
class ValueNoise3D:
    """Seeded 3D value noise with fractal octaves, output in [0, 1).

    Accepts scalars or numpy arrays (broadcast together). Scalars come back
    as plain floats.
    """

    def __init__(self, seed=None, octaves=4, falloff=0.5):
        rng = np.random.default_rng(seed)
        perm = rng.permutation(256)
        self._perm = np.concatenate([perm, perm])
        self._values = rng.random(256)
        self.octaves = max(1, int(octaves))
        self.falloff = float(falloff)

    def _lattice(self, ix, iy, iz):
        p = self._perm
        return self._values[p[p[p[ix & 255] + (iy & 255)] + (iz & 255)]]

    def _octave(self, x, y, z):
        x0 = np.floor(x)
        y0 = np.floor(y)
        z0 = np.floor(z)
        u = _smoothstep(x - x0)
        v = _smoothstep(y - y0)
        w = _smoothstep(z - z0)
        ix = x0.astype(np.int64)
        iy = y0.astype(np.int64)
        iz = z0.astype(np.int64)

        c000 = self._lattice(ix, iy, iz)
        c100 = self._lattice(ix + 1, iy, iz)
        c010 = self._lattice(ix, iy + 1, iz)
        c110 = self._lattice(ix + 1, iy + 1, iz)
        c001 = self._lattice(ix, iy, iz + 1)
        c101 = self._lattice(ix + 1, iy, iz + 1)
        c011 = self._lattice(ix, iy + 1, iz + 1)
        c111 = self._lattice(ix + 1, iy + 1, iz + 1)

        a = lerp(lerp(c000, c100, u), lerp(c010, c110, u), v)
        b = lerp(lerp(c001, c101, u), lerp(c011, c111, u), v)
        return lerp(a, b, w)

    def __call__(self, x, y=0.0, z=0.0):
        x, y, z = np.broadcast_arrays(
            np.asarray(x, dtype=np.float64),
            np.asarray(y, dtype=np.float64),
            np.asarray(z, dtype=np.float64),
        )
        acc = np.zeros(x.shape, dtype=np.float64)
        amp = 1.0
        freq = 1.0
        norm = 0.0
        for _ in range(self.octaves):
            acc += amp * self._octave(x * freq, y * freq, z * freq)
            norm += amp
            amp *= self.falloff
            freq *= 2.0
        acc /= norm
        if acc.ndim == 0:
            return float(acc)
        return acc


# ---------- breath ----------
@dataclass(frozen=True)
class BreathSample:
    phase: float
    tri: float
    exhale: float


class BreathClock:
    """Triangle wave: tri goes 0..1..0 over one inhale + exhale."""

    def __init__(self, half_period=DEFAULT_BREATH_SECONDS):
        half_period = float(half_period)
        if not half_period > MIN_BREATH_SECONDS:
            half_period = DEFAULT_BREATH_SECONDS
        self.half_period = half_period

    @property
    def period(self):
        return self.half_period * 2.0

    def sample(self, t):
        phase = (t % self.period) / self.period
        tri = phase * 2.0 if phase < 0.5 else 2.0 * (1.0 - phase)
        return BreathSample(phase=phase, tri=tri, exhale=1.0 - tri)


# ---------- flow field ----------
class FlowField:
    """Time-varying push vectors from two decorrelated noise samples."""

    def __init__(self, noise, scale=FLOW_SPACE_SCALE, time_scale=FLOW_TIME_SCALE,
                 offset=FLOW_OFFSET, magnitude=FLOW_MAGNITUDE):
        self.noise = noise
        self.scale = scale
        self.time_scale = time_scale
        self.offset = offset
        self.magnitude = magnitude

    def sample(self, x, y, t):
        s = self.scale
        tz = t * self.time_scale
        nx = self.noise(np.multiply(x, s), np.multiply(y, s), tz)
        ny = self.noise(np.multiply(np.add(x, self.offset[0]), s),
                        np.multiply(np.add(y, self.offset[1]), s), tz)
        ang = remap(nx, 0.0, 1.0, -math.pi, math.pi)
        mag = remap(ny, 0.0, 1.0, self.magnitude[0], self.magnitude[1])
        return np.cos(ang) * mag, np.sin(ang) * mag


# ---------- particles ----------
@dataclass(frozen=True)
class Particle:
    home: Tuple[float, float]
    pos: Tuple[float, float]
    size: float
    theta: float
    rand: float


class ParticleSet:
    """Structure-of-arrays particle storage; pos is the only mutable field."""

    def __init__(self, home, pos, size, theta, rand):
        self.home = np.asarray(home, dtype=np.float64).reshape(-1, 2)
        self.pos = np.asarray(pos, dtype=np.float64).reshape(-1, 2)
        self.size = np.asarray(size, dtype=np.float64)
        self.theta = np.asarray(theta, dtype=np.float64)
        self.rand = np.asarray(rand, dtype=np.float64)

    @classmethod
    def empty(cls):
        z = np.zeros(0)
        return cls(np.zeros((0, 2)), np.zeros((0, 2)), z, z, z)

    def __len__(self):
        return self.home.shape[0]

    def __getitem__(self, i):
        return Particle(
            home=(float(self.home[i, 0]), float(self.home[i, 1])),
            pos=(float(self.pos[i, 0]), float(self.pos[i, 1])),
            size=float(self.size[i]),
            theta=float(self.theta[i]),
            rand=float(self.rand[i]),
        )


def lit_pixels(raster, step=SAMPLE_STEP):
    """Grid coordinates of bright, opaque pixels in an (w, h, 4) raster.

    Returned in row-major order (y outer, x inner), shape (n, 2) as (x, y).
    """
    if raster.size == 0:
        return np.zeros((0, 2), dtype=np.int64)
    grid = raster[::step, ::step].astype(np.int32)
    rgb = grid[:, :, 0] + grid[:, :, 1] + grid[:, :, 2]
    lit = (grid[:, :, 3] > ALPHA_THRESHOLD) & (rgb > BRIGHTNESS_THRESHOLD)
    # transpose to (y, x) so nonzero walks rows first
    ys, xs = np.nonzero(lit.T)
    return np.stack([xs * step, ys * step], axis=1).astype(np.int64)


def sample_particles(raster, rng, step=SAMPLE_STEP):
    coords = lit_pixels(raster, step)
    n = coords.shape[0]
    if n == 0:
        return ParticleSet.empty()
    home = coords.astype(np.float64)
    jitter = rng.uniform(-PARTICLE_JITTER, PARTICLE_JITTER, size=(n, 1))
    return ParticleSet(
        home=home,
        pos=home + jitter,
        size=rng.uniform(PARTICLE_SIZE[0], PARTICLE_SIZE[1], size=n),
        theta=rng.uniform(0.0, math.tau, size=n),
        rand=rng.random(n),
    )


# ---------- motion ----------
def drift_targets(particles, t, exhale, noise, flow):
    hx = particles.home[:, 0]
    hy = particles.home[:, 1]
    n = noise(hx * DRIFT_NOISE_SCALE, hy * DRIFT_NOISE_SCALE, t * DRIFT_TIME_SCALE)
    ang = particles.theta + np.asarray(n) * math.tau
    spread = EXHALE_SPREAD * (0.4 + EXHALE_JITTER * particles.rand) * exhale

    fx, fy = flow.sample(hx, hy, t)
    push = DRIFT_NOISE_STRENGTH * exhale

    target = particles.home.copy()
    target[:, 0] += np.cos(ang) * spread + fx * push
    target[:, 1] += np.sin(ang) * spread + fy * push
    return target


def easing_for(exhale):
    """Tight on inhale (snap home), loose on exhale (drift)."""
    return lerp(1.0 - INHALE_TIGHTNESS, EXHALE_EASING, exhale)


def integrate(particles, t, exhale, noise, flow):
    if len(particles) == 0:
        return particles
    target = drift_targets(particles, t, exhale, noise, flow)
    particles.pos[:] = lerp(particles.pos, target, easing_for(exhale))
    return particles


def particle_alpha(tri):
    return int(PARTICLE_ALPHA_BASE + PARTICLE_ALPHA_GAIN * tri)


# ---------- HUD ----------
@dataclass(frozen=True)
class HudText:
    text: str
    anchor: Tuple[int, int]   # bottom-right corner of the text box
    size: int = HUD_FONT_SIZE
    alpha: int = HUD_FADE


def remaining_seconds(run_seconds, elapsed):
    return max(0.0, run_seconds - elapsed)


def format_countdown(remaining):
    mm = int(math.floor(remaining / 60))
    ss = int(math.floor(remaining % 60))
    return f"{mm:02d}:{ss:02d}"


def countdown_hud(run_seconds, elapsed, width, height):
    if run_seconds is None:
        return None
    txt = format_countdown(remaining_seconds(run_seconds, elapsed))
    return HudText(txt, (width - HUD_MARGIN[0], height - HUD_MARGIN[1]))


# ---------- simulation context ----------
@dataclass
class FrameCommands:
    width: int
    height: int
    background: int
    fill: int
    alpha: int
    positions: np.ndarray
    sizes: np.ndarray
    breath: BreathSample
    hud: Optional[HudText] = None


Rasterizer = Callable[[str, int, int], np.ndarray]


class SimulationContext:
    """Owns everything that changes between frames.

    rasterize(text, width, height) must return a (width, height, 4) uint8
    array; text_raster.rasterize_text is the pygame implementation.
    """

    def __init__(self, config=None, rasterize=None, rng=None, noise=None,
                 start_time=0.0, width=0, height=0):
        self.config = config or DissolveConfig()
        if rasterize is None:
            from text_raster import rasterize_text

            def rasterize(text, w, h):
                return rasterize_text(text, w, h, font_name=self.config.font_name)
        self.rasterize = rasterize
        self.rng = rng if rng is not None else np.random.default_rng(self.config.seed)
        self.noise = noise if noise is not None else ValueNoise3D(self.config.seed)
        self.flow = FlowField(self.noise)
        self.clock = BreathClock(self.config.breath_seconds)
        self.start_time = float(start_time)

        self.text = self.config.text
        self.width = int(width)
        self.height = int(height)
        self.particles = ParticleSet.empty()
        self.raster = None
        self.last_build_key = None
        self.build_count = 0

    @property
    def build_key(self):
        return (self.text, self.width, self.height)

    def resize(self, width, height):
        self.width = int(width)
        self.height = int(height)

    def set_text(self, text):
        self.text = str(text)

    def randomize_text(self):
        lo, hi = RANDOM_TEXT_RANGE
        self.text = str(int(self.rng.integers(lo, hi)))
        self.rebuild()
        return self.text

    def rebuild(self):
        self.raster = self.rasterize(self.text, self.width, self.height)
        self.particles = sample_particles(self.raster, self.rng)
        self.last_build_key = self.build_key
        self.build_count += 1
        print(f"[BUILD] {len(self.particles)} particles for {self.text!r} at {self.width}x{self.height}")
        return self.particles

    def ensure_built(self):
        if self.build_key != self.last_build_key:
            self.rebuild()
            return True
        return False

    def elapsed(self, now):
        return now - self.start_time

    def update(self, now):
        self.ensure_built()
        t = self.elapsed(now)
        breath = self.clock.sample(t)
        integrate(self.particles, t, breath.exhale, self.noise, self.flow)
        return FrameCommands(
            width=self.width,
            height=self.height,
            background=BG,
            fill=FG,
            alpha=particle_alpha(breath.tri),
            positions=self.particles.pos.copy(),
            sizes=self.particles.size.copy(),
            breath=breath,
            hud=countdown_hud(self.config.run_seconds, t, self.width, self.height),
        )
