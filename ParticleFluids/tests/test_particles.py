# -- Particle Store Tests -- #

'''
Record layout, field views, diagnostics and spawning.

Sean Bowman [10/17/2026]
'''

import numpy as np
import pytest

from ParticleFluids.sph.particles import PARTICLE_DTYPE, ParticleSystem
from ParticleFluids.sph.protocols import ConfigurationError, SimulationConfig


def testRecordLayout():
    names = PARTICLE_DTYPE.names
    assert names == ('position', 'predictedPosition', 'velocity', 'density', 'pressure', 'lambda', 'force')
    assert PARTICLE_DTYPE['position'].shape == (3,)
    assert PARTICLE_DTYPE['density'].shape == ()
    assert PARTICLE_DTYPE['position'].base == np.float32


def testFieldViewsWriteThrough():
    particles = ParticleSystem.empty(5)
    particles.velocities[2] = (1.0, 2.0, 3.0)
    particles.densities = np.arange(5.0)

    assert particles.records['velocity'][2].tolist() == [1.0, 2.0, 3.0]
    assert particles.records['density'].tolist() == [0.0, 1.0, 2.0, 3.0, 4.0]
    assert particles.positions.shape == (5, 3)
    assert particles.lambdas.shape == (5,)
    assert len(particles) == 5


def testFromPositions():
    positions = np.array([[0.0, 0.0, 0.0], [1.0, 2.0, 3.0]])
    particles = ParticleSystem.fromPositions(positions, velocities=np.ones((2, 3)))

    np.testing.assert_array_equal(particles.positions, positions)
    np.testing.assert_array_equal(particles.predictedPositions, positions)
    np.testing.assert_array_equal(particles.velocities, np.ones((2, 3)))
    assert np.all(particles.densities == 0.0)


def testFromPositionsRejectsBadShape():
    with pytest.raises(ConfigurationError):
        ParticleSystem.fromPositions(np.zeros((4, 2)))


def testCopyIsIndependent():
    particles = ParticleSystem.fromPositions(np.zeros((3, 3)))
    clone = particles.copy()
    clone.positions[0] = (1.0, 1.0, 1.0)
    assert np.all(particles.positions[0] == 0.0)


def testDiagnostics():
    velocities = np.array([[1.0, 0.0, 0.0], [0.0, 2.0, 0.0], [-1.0, 0.0, 0.0]])
    particles = ParticleSystem.fromPositions(np.zeros((3, 3)), velocities=velocities)
    particles.densities = np.array([900.0, 1000.0, 1200.0])

    assert particles.kineticEnergy(2.0) == pytest.approx(0.5 * 2.0 * (1.0 + 4.0 + 1.0))
    np.testing.assert_allclose(particles.momentum(2.0), [0.0, 4.0, 0.0])
    assert particles.maxSpeed() == pytest.approx(2.0)
    assert particles.maxDensityError(1000.0) == pytest.approx(0.2)
    assert particles.meanDensity() == pytest.approx(1033.3333, rel=1e-5)


def testGridSpawnFillsFromBottom():
    particles = ParticleSystem.spawn(
        count=10, spawnMin=np.zeros(3), spawnMax=np.array([1.0, 1.5, 1.0]), spacing=0.5, pattern='grid',
    )
    positions = particles.positions

    assert particles.nParticles == 10
    # Two sites along x and z: the first four sites form the bottom layer
    np.testing.assert_allclose(positions[:4, 1], 0.25)
    np.testing.assert_allclose(positions[4:8, 1], 0.75)
    assert np.all(positions >= 0.0) and np.all(positions <= 1.5)


def testJitteredSpawnIsReproducible():
    kwargs = dict(
        count=50, spawnMin=np.zeros(3), spawnMax=np.ones(3), spacing=0.2,
        pattern='jitteredGrid', jitter=0.2, seed=3,
    )
    first = ParticleSystem.spawn(**kwargs)
    second = ParticleSystem.spawn(**kwargs)
    grid = ParticleSystem.spawn(**{**kwargs, 'pattern': 'grid'})

    np.testing.assert_array_equal(first.positions, second.positions)

    offsets = np.linalg.norm(first.positions.astype(np.float64) - grid.positions, axis=1)
    np.testing.assert_allclose(offsets, 0.2 * 0.2, rtol=1e-4)


def testRandomSpawnStaysInRegion():
    spawnMin = np.array([-1.0, 0.0, 2.0])
    spawnMax = np.array([1.0, 0.5, 3.0])
    particles = ParticleSystem.spawn(
        count=200, spawnMin=spawnMin, spawnMax=spawnMax, spacing=0.1, pattern='random', seed=1,
    )
    assert np.all(particles.positions >= spawnMin.astype(np.float32))
    assert np.all(particles.positions <= spawnMax.astype(np.float32))


def testSpawnRegionTooSmall():
    with pytest.raises(ConfigurationError):
        ParticleSystem.spawn(
            count=100, spawnMin=np.zeros(3), spawnMax=np.ones(3), spacing=0.5, pattern='grid',
        )


def testUnknownSpawnPattern():
    with pytest.raises(ConfigurationError):
        ParticleSystem.spawn(
            count=1, spawnMin=np.zeros(3), spawnMax=np.ones(3), spacing=0.5, pattern='hexagonal',
        )


def testFromConfigUsesRestSpacing():
    config = SimulationConfig(particleCount=500)
    particles = ParticleSystem.fromConfig(config)

    assert particles.nParticles == 500
    assert config.resolvedSpawnSpacing == pytest.approx((0.02 / 1000.0) ** (1.0 / 3.0))
    assert np.all(np.isfinite(particles.positions))
