# -- Domain Boundary Handling -- #

'''
Box containment and a static sphere obstacle.

The domain is an axis-aligned box. After integration every particle
is clamped, per axis, to [domainMin + r, domainMax - r] (r the
particle collision radius), and the velocity component along that
axis is multiplied by -damping. The clamp always runs, so positions
are inside the box after every step.

An optional static sphere pushes particles out to its surface and
reflects the inward normal velocity, damped the same way. It runs
before the box clamp so the box constraint holds last. The sphere is
not moved by the fluid.

Sean Bowman [10/17/2026]
'''

from __future__ import annotations

import numpy as np

from ParticleFluids import constants as const
from ParticleFluids.sph.particles import ParticleSystem
from ParticleFluids.sph.protocols import SimulationConfig


class SphereCollider:
    '''
    Static sphere obstacle.

    Parameters:
    -----------
    center : np.ndarray
        Sphere center [m]
    radius : float
        Sphere radius [m]
    particleRadius : float
        Particle collision radius [m]
    damping : float
        Fraction of the normal velocity kept after a hit (0 - 1)
    '''

    def __init__(
        self,
        center: np.ndarray,
        radius: float,
        particleRadius: float = const.particleRadius,
        damping: float = const.boundaryDamping,
    ) -> None:
        self._center = np.asarray(center, dtype=np.float64)
        self._radius = float(radius)
        self._particleRadius = float(particleRadius)
        self._damping = float(damping)

    @property
    def center(self) -> np.ndarray:
        return self._center

    @property
    def radius(self) -> float:
        return self._radius

    def enforce(self, particles: ParticleSystem) -> int:
        '''
        Push penetrating particles to the sphere surface.

        Parameters:
        -----------
        particles : ParticleSystem
            Particle store

        Returns:
        --------
        int : Number of particles that were inside the sphere
        '''
        positions = particles.positions.astype(np.float64)
        offsets = positions - self._center[np.newaxis, :]
        distances = np.linalg.norm(offsets, axis=1)
        minDistance = self._radius + self._particleRadius

        inside = distances < minDistance
        nInside = int(np.count_nonzero(inside))
        if nInside == 0:
            return 0

        # Particles exactly at the center leave straight up
        normals = np.zeros((nInside, 3), dtype=np.float64)
        d = distances[inside]
        atCenter = d < const.minDistance
        normals[~atCenter] = offsets[inside][~atCenter] / d[~atCenter, np.newaxis]
        normals[atCenter] = (0.0, 1.0, 0.0)

        positions[inside] = self._center[np.newaxis, :] + normals * minDistance

        velocities = particles.velocities.astype(np.float64)
        v = velocities[inside]
        vNormal = np.sum(v * normals, axis=1)
        approaching = vNormal < 0.0
        v[approaching] -= (1.0 + self._damping) * vNormal[approaching, np.newaxis] * normals[approaching]
        velocities[inside] = v

        particles.positions = positions
        particles.velocities = velocities
        return nInside


class BoundaryHandler:
    '''
    Clamps particles into the domain box and resolves obstacles.

    Parameters:
    -----------
    domainMin : np.ndarray
        Lower corner of the domain [m]
    domainMax : np.ndarray
        Upper corner of the domain [m]
    particleRadius : float
        Particle collision radius [m]
    damping : float
        Wall restitution; the hit velocity component becomes -damping * v
    sphere : SphereCollider | None
        Optional static sphere obstacle
    '''

    def __init__(
        self,
        domainMin: np.ndarray,
        domainMax: np.ndarray,
        particleRadius: float = const.particleRadius,
        damping: float = const.boundaryDamping,
        sphere: SphereCollider | None = None,
    ) -> None:
        lower = np.asarray(domainMin, dtype=np.float64) + particleRadius
        upper = np.asarray(domainMax, dtype=np.float64) - particleRadius

        # Walls snapped to float32 values on the inside of the box, so a
        # clamped coordinate stays inside once stored in the particle record
        lower32 = lower.astype(np.float32)
        lower32 = np.where(lower32 < lower, np.nextafter(lower32, np.float32(np.inf)), lower32)
        upper32 = upper.astype(np.float32)
        upper32 = np.where(upper32 > upper, np.nextafter(upper32, np.float32(-np.inf)), upper32)

        self._lower = lower32.astype(np.float64)
        self._upper = upper32.astype(np.float64)
        self._damping = float(damping)
        self._sphere = sphere

    @classmethod
    def fromConfig(cls, config: SimulationConfig) -> BoundaryHandler:
        '''Boundary handler (and sphere, if configured) for a configuration.'''
        sphere = None
        if config.hasSphereCollider:
            sphere = SphereCollider(
                center=config.sphereCenter,
                radius=config.sphereRadius,
                particleRadius=config.particleRadius,
                damping=config.boundaryDamping,
            )
        return cls(
            domainMin=config.domainMin,
            domainMax=config.domainMax,
            particleRadius=config.particleRadius,
            damping=config.boundaryDamping,
            sphere=sphere,
        )

    @property
    def lower(self) -> np.ndarray:
        '''Lowest allowed particle position per axis [m].'''
        return self._lower

    @property
    def upper(self) -> np.ndarray:
        '''Highest allowed particle position per axis [m].'''
        return self._upper

    @property
    def sphere(self) -> SphereCollider | None:
        return self._sphere

    def enforceBoundary(self, particles: ParticleSystem) -> None:
        '''
        Resolve the sphere, then clamp into the box and damp wall hits.

        Parameters:
        -----------
        particles : ParticleSystem
            Particle store to constrain
        '''
        if self._sphere is not None:
            self._sphere.enforce(particles)

        positions = particles.positions.astype(np.float64)
        velocities = particles.velocities.astype(np.float64)

        for d in range(3):
            below = positions[:, d] < self._lower[d]
            positions[below, d] = self._lower[d]
            velocities[below, d] *= -self._damping

            above = positions[:, d] > self._upper[d]
            positions[above, d] = self._upper[d]
            velocities[above, d] *= -self._damping

        particles.positions = positions
        particles.velocities = velocities
