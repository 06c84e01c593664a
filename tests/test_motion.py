import numpy as np
import pytest

from dissolve_engine import (
    FlowField,
    ParticleSet,
    ValueNoise3D,
    easing_for,
    integrate,
    particle_alpha,
    sample_particles,
)


def displaced_set(offset=(15.0, -10.0)):
    xs, ys = np.meshgrid(np.arange(40, 400, 37.0), np.arange(30, 300, 29.0))
    home = np.stack([xs.ravel(), ys.ravel()], axis=1)
    n = home.shape[0]
    rng = np.random.default_rng(9)
    return ParticleSet(
        home=home,
        pos=home + np.asarray(offset),
        size=np.full(n, 2.0),
        theta=rng.uniform(0, 2 * np.pi, n),
        rand=rng.random(n),
    )


def test_easing_endpoints():
    assert easing_for(0.0) == pytest.approx(0.82)
    assert easing_for(1.0) == pytest.approx(0.08)
    assert easing_for(0.0) > easing_for(0.5) > easing_for(1.0)


def test_formed_pulls_closer_than_dissolved(noise):
    flow = FlowField(noise)
    formed = integrate(displaced_set(), 2.0, 0.0, noise, flow)
    dissolved = integrate(displaced_set(), 2.0, 1.0, noise, flow)
    d_formed = np.hypot(*(formed.pos - formed.home).T)
    d_dissolved = np.hypot(*(dissolved.pos - dissolved.home).T)
    assert np.all(d_formed < d_dissolved)


def test_fully_formed_targets_home(noise):
    ps = displaced_set()
    before = ps.pos.copy()
    integrate(ps, 5.0, 0.0, noise, FlowField(noise))
    expected = before + (ps.home - before) * 0.82
    assert np.allclose(ps.pos, expected)


def test_home_is_never_moved(noise):
    ps = displaced_set()
    home = ps.home.copy()
    for t in np.linspace(0, 10, 25):
        integrate(ps, float(t), 0.7, noise, FlowField(noise))
    assert np.array_equal(ps.home, home)


def test_dissolved_drift_is_bounded(noise):
    ps = displaced_set(offset=(0.0, 0.0))
    flow = FlowField(noise)
    for i in range(400):
        integrate(ps, i / 60.0, 1.0, noise, flow)
    dist = np.hypot(*(ps.pos - ps.home).T)
    # spread max 28 * 1.3 plus flow push max 0.9
    assert np.all(dist <= 28 * 1.3 + 0.9 + 1e-6)
    assert dist.mean() > 5.0


def test_integration_is_reproducible(make_raster):
    raster = make_raster(200, 120, box=(40, 30, 160, 90))

    def run():
        noise = ValueNoise3D(seed=21)
        ps = sample_particles(raster, np.random.default_rng(21))
        flow = FlowField(noise)
        for i in range(30):
            integrate(ps, i / 30.0, 0.5, noise, flow)
        return ps.pos

    assert np.array_equal(run(), run())


def test_integrate_empty_set(noise):
    ps = ParticleSet.empty()
    assert len(integrate(ps, 1.0, 1.0, noise, FlowField(noise))) == 0


def test_particle_alpha():
    assert particle_alpha(0.0) == 200
    assert particle_alpha(1.0) == 255
    assert particle_alpha(0.5) == 227
