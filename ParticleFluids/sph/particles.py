# -- Particle Store -- #

'''
Fixed-size particle record array for the SPH / PBF engine.

Every particle is one record of PARTICLE_DTYPE (array-of-structs),
so a whole step's state can be copied or published as a single
contiguous NumPy array. ParticleSystem exposes per-field views
(positions, velocities, ...) that read and write straight through
to the records, which keeps the solver code in vectorized
struct-of-arrays form.

Particle mass is a configured constant and is not stored per record.

Sean Bowman [10/17/2026]
'''

from __future__ import annotations

import logging

import numpy as np

from ParticleFluids.sph.protocols import ConfigurationError, SimulationConfig, SPAWN_PATTERNS

logger = logging.getLogger(__name__)


PARTICLE_DTYPE = np.dtype([
    ('position', np.float32, (3,)),
    ('predictedPosition', np.float32, (3,)),
    ('velocity', np.float32, (3,)),
    ('density', np.float32),
    ('pressure', np.float32),
    ('lambda', np.float32),
    ('force', np.float32, (3,)),
])


class ParticleSystem:
    '''
    Particle record store.

    Field views have shape (N, 3) for vector quantities and (N,) for
    scalar quantities. Assigning to a view property writes into the
    records in place; the particle count never changes.

    Parameters:
    -----------
    records : np.ndarray
        Structured array of PARTICLE_DTYPE, shape (N,)
    '''

    def __init__(self, records: np.ndarray) -> None:
        if records.dtype != PARTICLE_DTYPE:
            raise ConfigurationError(f'Particle records must use PARTICLE_DTYPE, got {records.dtype}')
        if records.ndim != 1:
            raise ConfigurationError(f'Particle records must be 1-D, got shape {records.shape}')
        self._records = records

    @classmethod
    def empty(cls, count: int) -> ParticleSystem:
        '''Zero-initialized store of count particles.'''
        if count <= 0:
            raise ConfigurationError(f'Particle count must be positive, got {count}')
        return cls(np.zeros(count, dtype=PARTICLE_DTYPE))

    @classmethod
    def fromPositions(
        cls,
        positions: np.ndarray,
        velocities: np.ndarray | None = None,
    ) -> ParticleSystem:
        '''
        Build a store from explicit positions (and optional velocities).

        Parameters:
        -----------
        positions : np.ndarray
            Particle positions [m], shape (N, 3)
        velocities : np.ndarray | None
            Particle velocities [m/s], shape (N, 3); zero if omitted

        Returns:
        --------
        ParticleSystem : New particle store
        '''
        positions = np.asarray(positions, dtype=np.float64)
        if positions.ndim != 2 or positions.shape[1] != 3:
            raise ConfigurationError(f'positions must have shape (N, 3), got {positions.shape}')

        system = cls.empty(positions.shape[0])
        system.positions = positions
        system.predictedPositions = positions
        if velocities is not None:
            system.velocities = np.asarray(velocities, dtype=np.float64)
        return system

    ######################################################################
    # -- Field Views -- #
    ######################################################################

    @property
    def records(self) -> np.ndarray:
        '''Underlying structured record array.'''
        return self._records

    @property
    def nParticles(self) -> int:
        '''Number of particles.'''
        return self._records.shape[0]

    def __len__(self) -> int:
        return self._records.shape[0]

    @property
    def positions(self) -> np.ndarray:
        return self._records['position']

    @positions.setter
    def positions(self, value: np.ndarray) -> None:
        self._records['position'] = value

    @property
    def predictedPositions(self) -> np.ndarray:
        return self._records['predictedPosition']

    @predictedPositions.setter
    def predictedPositions(self, value: np.ndarray) -> None:
        self._records['predictedPosition'] = value

    @property
    def velocities(self) -> np.ndarray:
        return self._records['velocity']

    @velocities.setter
    def velocities(self, value: np.ndarray) -> None:
        self._records['velocity'] = value

    @property
    def densities(self) -> np.ndarray:
        return self._records['density']

    @densities.setter
    def densities(self, value: np.ndarray) -> None:
        self._records['density'] = value

    @property
    def pressures(self) -> np.ndarray:
        return self._records['pressure']

    @pressures.setter
    def pressures(self, value: np.ndarray) -> None:
        self._records['pressure'] = value

    @property
    def lambdas(self) -> np.ndarray:
        return self._records['lambda']

    @lambdas.setter
    def lambdas(self, value: np.ndarray) -> None:
        self._records['lambda'] = value

    @property
    def forces(self) -> np.ndarray:
        return self._records['force']

    @forces.setter
    def forces(self, value: np.ndarray) -> None:
        self._records['force'] = value

    def copy(self) -> ParticleSystem:
        '''Deep copy of the store.'''
        return ParticleSystem(self._records.copy())

    ######################################################################
    # -- Diagnostics -- #
    ######################################################################

    def kineticEnergy(self, particleMass: float) -> float:
        '''
        Total kinetic energy.

        KE = (1/2) * m * sum_i |v_i|^2

        Parameters:
        -----------
        particleMass : float
            Mass of every particle [kg]

        Returns:
        --------
        float : Kinetic energy [J]
        '''
        vel = self.velocities.astype(np.float64)
        return float(0.5 * particleMass * np.sum(vel * vel))

    def momentum(self, particleMass: float) -> np.ndarray:
        '''Total linear momentum vector m * sum_i v_i [kg m/s].'''
        return particleMass * np.sum(self.velocities.astype(np.float64), axis=0)

    def maxSpeed(self) -> float:
        '''
        Maximum velocity magnitude.

        Returns:
        --------
        float : Maximum speed [m/s]
        '''
        speeds = np.linalg.norm(self.velocities.astype(np.float64), axis=1)
        return float(np.max(speeds))

    def maxDensityError(self, restDensity: float) -> float:
        '''
        Maximum relative density error max |rho_i - rho_0| / rho_0.

        Parameters:
        -----------
        restDensity : float
            Rest density rho_0 [kg/m^3]

        Returns:
        --------
        float : Maximum relative density error (dimensionless)
        '''
        errors = np.abs(self.densities.astype(np.float64) - restDensity) / restDensity
        return float(np.max(errors))

    def meanDensity(self) -> float:
        '''Mean particle density [kg/m^3].'''
        return float(np.mean(self.densities.astype(np.float64)))

    ######################################################################
    # -- Spawning -- #
    ######################################################################

    @classmethod
    def spawn(
        cls,
        count: int,
        spawnMin: np.ndarray,
        spawnMax: np.ndarray,
        spacing: float,
        pattern: str = 'jitteredGrid',
        jitter: float = 0.2,
        seed: int = 0,
    ) -> ParticleSystem:
        '''
        Place particles inside an axis-aligned spawn region.

        'grid' fills lattice sites of the given spacing from the bottom
        layer up (x fastest, then z, then y). 'jitteredGrid' offsets
        every site by jitter * spacing along a random unit direction.
        'random' draws positions uniformly in the region. All patterns
        draw from numpy.random.default_rng(seed), so a spawn is fully
        reproducible.

        Parameters:
        -----------
        count : int
            Number of particles
        spawnMin : np.ndarray
            Lower corner of the spawn region [m]
        spawnMax : np.ndarray
            Upper corner of the spawn region [m]
        spacing : float
            Lattice spacing [m]
        pattern : str
            'grid', 'jitteredGrid' or 'random'
        jitter : float
            Jitter amplitude as a fraction of the spacing
        seed : int
            Random generator seed

        Returns:
        --------
        ParticleSystem : Spawned particles at rest

        Raises:
        -------
        ConfigurationError : If the region cannot hold count lattice sites
        '''
        if pattern not in SPAWN_PATTERNS:
            raise ConfigurationError(f'Unknown spawn pattern {pattern!r}, expected one of {SPAWN_PATTERNS}')
        if count <= 0:
            raise ConfigurationError(f'Particle count must be positive, got {count}')

        spawnMin = np.asarray(spawnMin, dtype=np.float64)
        spawnMax = np.asarray(spawnMax, dtype=np.float64)
        rng = np.random.default_rng(seed)

        if pattern == 'random':
            positions = rng.uniform(spawnMin, spawnMax, size=(count, 3))
            return cls.fromPositions(positions)

        sites = cls._latticeSites(spawnMin, spawnMax, spacing)
        if sites.shape[0] < count:
            raise ConfigurationError(
                f'Spawn region {spawnMin.tolist()} - {spawnMax.tolist()} holds only '
                f'{sites.shape[0]} sites at spacing {spacing:.4g}, need {count}'
            )
        positions = sites[:count]

        if pattern == 'jitteredGrid' and jitter > 0.0:
            directions = rng.normal(size=(count, 3))
            norms = np.linalg.norm(directions, axis=1, keepdims=True)
            directions /= np.where(norms > 0.0, norms, 1.0)
            positions = positions + jitter * spacing * directions

        logger.debug('Spawned %d particles (%s, spacing %.4g)', count, pattern, spacing)
        return cls.fromPositions(positions)

    @staticmethod
    def _latticeSites(spawnMin: np.ndarray, spawnMax: np.ndarray, spacing: float) -> np.ndarray:
        '''Cell-centered lattice sites in the region, bottom layer first.'''
        axes = []
        for d in range(3):
            extent = spawnMax[d] - spawnMin[d]
            nSites = max(1, int(np.floor(extent / spacing)))
            axes.append(spawnMin[d] + spacing * (np.arange(nSites) + 0.5))

        # y slowest so the lowest layers fill first
        yy, zz, xx = np.meshgrid(axes[1], axes[2], axes[0], indexing='ij')
        return np.column_stack([xx.ravel(), yy.ravel(), zz.ravel()])

    @classmethod
    def fromConfig(cls, config: SimulationConfig) -> ParticleSystem:
        '''Spawn particles as described by a simulation configuration.'''
        return cls.spawn(
            count=int(config.particleCount),
            spawnMin=config.spawnMin,
            spawnMax=config.spawnMax,
            spacing=config.resolvedSpawnSpacing,
            pattern=config.spawnPattern,
            jitter=config.spawnJitter,
            seed=config.seed,
        )
