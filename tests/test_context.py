import numpy as np
import pytest

from conftest import box_raster
from dissolve_engine import DissolveConfig, FrameCommands, SimulationContext


class CountingRasterizer:
    """Lights a centred box for non-empty text, nothing for empty text."""

    def __init__(self):
        self.calls = []

    def __call__(self, text, width, height):
        self.calls.append((text, width, height))
        if not text:
            return box_raster(width, height)
        return box_raster(width, height, box=(width // 4, height // 4, 3 * width // 4, 3 * height // 4))


def make_ctx(config=None, **kw):
    raster = CountingRasterizer()
    ctx = SimulationContext(config or DissolveConfig(seed=5), rasterize=raster, **kw)
    return ctx, raster


def test_build_key_tracks_text_and_size():
    ctx, _ = make_ctx(width=320, height=200)
    assert ctx.build_key == ("56", 320, 200)
    ctx.resize(640, 480)
    assert ctx.build_key == ("56", 640, 480)
    ctx.set_text("137")
    assert ctx.build_key == ("137", 640, 480)


def test_unchanged_key_does_not_rebuild():
    ctx, raster = make_ctx(width=320, height=200)
    ctx.update(0.0)
    ctx.update(0.016)
    ctx.update(0.033)
    assert ctx.build_count == 1
    assert len(raster.calls) == 1
    ctx.resize(320, 200)
    ctx.update(0.05)
    assert ctx.build_count == 1


def test_resize_rebuilds_exactly_once():
    ctx, raster = make_ctx(width=320, height=200)
    ctx.update(0.0)
    first = ctx.particles
    ctx.resize(400, 300)
    assert ctx.build_key != ctx.last_build_key
    frame = ctx.update(0.1)
    ctx.update(0.2)
    assert ctx.build_count == 2
    assert raster.calls[-1] == ("56", 400, 300)
    assert ctx.particles is not first
    assert (frame.width, frame.height) == (400, 300)


def test_text_change_rebuilds_exactly_once():
    ctx, raster = make_ctx(width=320, height=200)
    ctx.update(0.0)
    ctx.set_text("7")
    ctx.update(0.1)
    ctx.update(0.2)
    assert ctx.build_count == 2
    assert raster.calls[-1] == ("7", 320, 200)


def test_randomize_rebuilds_immediately():
    ctx, raster = make_ctx(width=320, height=200)
    ctx.update(0.0)
    text = ctx.randomize_text()
    assert ctx.build_count == 2
    assert 1 <= int(text) < 9999
    assert raster.calls[-1] == (text, 320, 200)
    ctx.update(0.1)
    assert ctx.build_count == 2


def test_frame_commands():
    ctx, _ = make_ctx(width=320, height=200)
    frame = ctx.update(0.0)
    assert isinstance(frame, FrameCommands)
    n = len(ctx.particles)
    assert n > 0
    assert frame.positions.shape == (n, 2)
    assert frame.sizes.shape == (n,)
    assert frame.background == 0 and frame.fill == 255
    # phase 0: fully dissolved, dimmest
    assert frame.breath.exhale == 1.0
    assert frame.alpha == 200
    assert frame.hud is None


def test_frame_positions_are_a_snapshot():
    ctx, _ = make_ctx(width=320, height=200)
    frame = ctx.update(0.0)
    frame.positions[:] = -1
    assert not np.any(ctx.particles.pos == -1)


def test_elapsed_drives_breath_and_hud():
    config = DissolveConfig(run_seconds=10, breath_seconds=2.0, seed=1)
    ctx, _ = make_ctx(config, start_time=5.0, width=320, height=200)
    frame = ctx.update(8.0)
    assert frame.hud.text == "00:07"
    assert frame.hud.anchor == (306, 188)
    assert frame.breath.tri == pytest.approx(0.5)
    assert ctx.update(15.0).hud.text == "00:00"
    assert ctx.update(100.0).hud.text == "00:00"


def test_empty_text_frame():
    ctx, _ = make_ctx(width=320, height=200)
    ctx.set_text("")
    frame = ctx.update(1.0)
    assert len(ctx.particles) == 0
    assert frame.positions.shape == (0, 2)


def test_seeded_contexts_agree():
    a, _ = make_ctx(DissolveConfig(seed=42), width=160, height=120)
    b, _ = make_ctx(DissolveConfig(seed=42), width=160, height=120)
    for t in (0.0, 0.5, 1.0):
        fa, fb = a.update(t), b.update(t)
    assert np.array_equal(fa.positions, fb.positions)


def test_default_rasterizer_uses_pygame_font():
    ctx = SimulationContext(DissolveConfig(text="7", seed=3), width=160, height=120)
    frame = ctx.update(0.0)
    assert len(ctx.particles) > 0
    assert ctx.raster.shape == (160, 120, 4)
    assert frame.positions.shape[0] == len(ctx.particles)


@pytest.mark.parametrize("text", ["\x00", "\ud800"])
def test_unrenderable_text_updates_with_no_particles(text):
    ctx = SimulationContext(DissolveConfig(seed=3), width=160, height=120)
    ctx.set_text(text)
    frame = ctx.update(0.0)
    assert len(ctx.particles) == 0
    assert frame.positions.shape == (0, 2)


def test_nul_from_query_string_does_not_fail():
    from zen_digit_dissolve import parse_params

    config = parse_params(["num=%00"])
    ctx = SimulationContext(config, width=160, height=120)
    frame = ctx.update(0.0)
    assert frame.positions.shape == (0, 2)
