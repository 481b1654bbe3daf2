# -- Boundary Handling Tests -- #

'''
Box clamping with wall damping, and the static sphere obstacle.

Sean Bowman [10/17/2026]
'''

import numpy as np

from ParticleFluids.sph.boundaryHandling import BoundaryHandler, SphereCollider
from ParticleFluids.sph.particles import ParticleSystem

from ParticleFluids.tests.conftest import makeUnitConfig


def makeParticles(positions, velocities) -> ParticleSystem:
    return ParticleSystem.fromPositions(np.array(positions, dtype=float), np.array(velocities, dtype=float))


def testBoxClampAndDamping():
    handler = BoundaryHandler(
        domainMin=np.full(3, -1.0), domainMax=np.full(3, 1.0), particleRadius=0.1, damping=0.5,
    )
    particles = makeParticles(
        [[-1.5, 0.0, 0.0], [0.0, 2.0, 0.0], [0.0, 0.0, 0.5]],
        [[-2.0, 1.0, 0.0], [0.0, 4.0, 0.0], [0.0, 0.0, 3.0]],
    )
    handler.enforceBoundary(particles)

    np.testing.assert_allclose(particles.positions[0], [-0.9, 0.0, 0.0], rtol=1e-6)
    np.testing.assert_allclose(particles.velocities[0], [1.0, 1.0, 0.0])
    np.testing.assert_allclose(particles.positions[1], [0.0, 0.9, 0.0], rtol=1e-6)
    np.testing.assert_allclose(particles.velocities[1], [0.0, -2.0, 0.0])

    # Interior particle untouched
    np.testing.assert_array_equal(particles.positions[2], [0.0, 0.0, 0.5])
    np.testing.assert_array_equal(particles.velocities[2], [0.0, 0.0, 3.0])


def testCornerHitClampsEveryAxis():
    handler = BoundaryHandler(domainMin=np.zeros(3), domainMax=np.ones(3), particleRadius=0.0, damping=0.0)
    particles = makeParticles([[-0.2, 1.3, -0.1]], [[-1.0, 1.0, -1.0]])
    handler.enforceBoundary(particles)

    np.testing.assert_array_equal(particles.positions[0], [0.0, 1.0, 0.0])
    assert np.all(particles.velocities[0] == 0.0)


def testWallsRoundTowardInterior():
    '''-0.3 and 0.3 have no float32 value; the stored walls sit just inside.'''
    handler = BoundaryHandler(
        domainMin=np.full(3, -0.3), domainMax=np.full(3, 0.3), particleRadius=0.0, damping=0.5,
    )
    assert np.all(handler.lower >= -0.3) and np.all(handler.upper <= 0.3)
    np.testing.assert_array_equal(handler.lower.astype(np.float32), handler.lower)
    np.testing.assert_array_equal(handler.upper.astype(np.float32), handler.upper)

    particles = makeParticles([[-0.5, 0.7, -0.3]], [[-1.0, 1.0, -1.0]])
    handler.enforceBoundary(particles)

    position = particles.positions[0].astype(np.float64)
    assert np.all(position >= -0.3)
    assert np.all(position <= 0.3)
    np.testing.assert_allclose(position, [-0.3, 0.3, -0.3], rtol=1e-6)


def testSpherePushOutAndReflect():
    sphere = SphereCollider(center=np.zeros(3), radius=0.5, particleRadius=0.0, damping=0.5)
    particles = makeParticles(
        [[0.1, 0.0, 0.0], [0.0, 0.0, 0.0], [0.0, 0.0, 2.0]],
        [[-1.0, 0.0, 0.0], [0.0, 0.0, 0.0], [0.0, 0.0, -1.0]],
    )
    nInside = sphere.enforce(particles)

    assert nInside == 2
    np.testing.assert_allclose(particles.positions[0], [0.5, 0.0, 0.0], rtol=1e-6)
    np.testing.assert_allclose(particles.velocities[0], [0.5, 0.0, 0.0], rtol=1e-6)

    # A particle at the center leaves along +y
    np.testing.assert_allclose(particles.positions[1], [0.0, 0.5, 0.0], rtol=1e-6)

    # Outside particles are left alone
    np.testing.assert_array_equal(particles.positions[2], [0.0, 0.0, 2.0])


def testSphereKeepsOutwardVelocity():
    sphere = SphereCollider(center=np.zeros(3), radius=1.0, particleRadius=0.1, damping=0.3)
    particles = makeParticles([[0.0, 0.5, 0.0]], [[0.2, 2.0, 0.0]])
    sphere.enforce(particles)

    np.testing.assert_allclose(particles.positions[0], [0.0, 1.1, 0.0], rtol=1e-6)
    np.testing.assert_allclose(particles.velocities[0], [0.2, 2.0, 0.0], rtol=1e-6)


def testSphereThenBox():
    '''The box clamp runs after the sphere, so positions end inside the box.'''
    handler = BoundaryHandler(
        domainMin=np.full(3, -1.0), domainMax=np.full(3, 1.0), particleRadius=0.0, damping=0.5,
        sphere=SphereCollider(center=np.array([0.0, -0.9, 0.0]), radius=0.5, particleRadius=0.0),
    )
    particles = makeParticles([[0.0, -0.95, 0.0]], [[0.0, 0.0, 0.0]])
    handler.enforceBoundary(particles)

    assert np.all(particles.positions >= -1.0) and np.all(particles.positions <= 1.0)


def testFromConfig():
    config = makeUnitConfig(particleRadius=0.25, sphereCenter=(0.0, 1.0, 0.0), sphereRadius=0.5)
    handler = BoundaryHandler.fromConfig(config)

    np.testing.assert_allclose(handler.lower, -9.75)
    np.testing.assert_allclose(handler.upper, 9.75)
    assert handler.sphere is not None
    assert handler.sphere.radius == 0.5
    np.testing.assert_array_equal(handler.sphere.center, [0.0, 1.0, 0.0])

    assert BoundaryHandler.fromConfig(makeUnitConfig()).sphere is None
    assert BoundaryHandler.fromConfig(makeUnitConfig(sphereCenter=(0.0, 0.0, 0.0))).sphere is None
