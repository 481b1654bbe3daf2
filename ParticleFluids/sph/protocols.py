# -- Particle Fluid Protocols -- #

'''
Configuration, result dataclasses and solver protocols for the
particle fluid engine.

Defines the core data structures (SimulationConfig, SimulationState),
the configuration error raised on invalid input, and the protocols
that the neighbor search strategies and the two solver modes
(SPH, PBF) must satisfy.

Sean Bowman [10/17/2026]
'''

from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass, field
from typing import Protocol, TYPE_CHECKING

import numpy as np

from ParticleFluids import constants as const

if TYPE_CHECKING:
    from ParticleFluids.sph.particles import ParticleSystem
    from ParticleFluids.sph.neighborSearch import NeighborList


SOLVER_MODES = ('sph', 'pbf')
NEIGHBOR_STRATEGIES = ('bitonicSort', 'spatialHash')
BACKENDS = ('serial', 'threaded')
SPAWN_PATTERNS = ('grid', 'jitteredGrid', 'random')

# Fields that may change while an engine is running
RUNTIME_FIELDS = frozenset({
    'timeStep', 'viscosity', 'stiffness', 'restDensity', 'particleMass',
    'gravity', 'boundaryDamping', 'domainMin', 'domainMax', 'particleRadius',
    'solverIterations', 'constraintEpsilon', 'tensileK', 'tensileDeltaQ',
    'tensileExponent', 'sphereCenter', 'sphereRadius',
})


class ConfigurationError(ValueError):
    '''Raised when a simulation configuration cannot be run.'''


def isPowerOfTwo(n: int) -> bool:
    '''True if n is a positive power of two.'''
    return n > 0 and (n & (n - 1)) == 0


def nextPowerOfTwo(n: int) -> int:
    '''Smallest power of two >= n (and >= 2).'''
    return max(2, 1 << (int(n) - 1).bit_length())


######################################################################
# -- Simulation Configuration -- #
######################################################################

@dataclass
class SimulationConfig:
    '''
    Configuration for a particle fluid simulation.

    Defines the domain box, fluid constants, solver mode, neighbor
    search strategy and spawn layout. All values in SI units.

    Parameters:
    -----------
    particleCount : int
        Number of particles (fixed for the lifetime of an engine)
    domainMin : np.ndarray
        Lower corner of the domain box [m]
    domainMax : np.ndarray
        Upper corner of the domain box [m]
    smoothingRadius : float
        Kernel support radius h [m]; also the hash cell size
    restDensity : float
        Rest density rho_0 [kg/m^3]
    stiffness : float
        Gas constant k of the equation of state p = k * (rho - rho_0)
    viscosity : float
        Viscosity coefficient mu
    particleMass : float
        Mass of every particle [kg]
    gravity : np.ndarray
        Gravity vector [m/s^2]
    timeStep : float
        Fixed tick dt [s]
    boundaryDamping : float
        Wall restitution; the normal velocity is multiplied by -damping
    particleRadius : float
        Wall collision radius [m]
    solverMode : str
        'sph' (explicit forces) or 'pbf' (position based fluids)
    solverIterations : int
        PBF constraint iterations per tick (<= 0 skips solving)
    constraintEpsilon : float
        PBF relaxation added to the lambda denominator
    tensileK, tensileDeltaQ, tensileExponent : float, float, int
        PBF artificial pressure (s_corr); tensileK = 0 disables it
    neighborStrategy : str
        'bitonicSort' (sorted cell index) or 'spatialHash' (bucket grid)
    padSortBuffer : bool
        Pad non power-of-two counts with sentinel entries; if False
        such counts are rejected
    backend : str
        Kernel dispatch backend, 'serial' or 'threaded'
    workGroupSize : int
        Particles per dispatched work group
    maxWorkers : int | None
        Thread count for the threaded backend (None = executor default)
    spawnPattern : str
        'grid', 'jitteredGrid' or 'random'
    spawnMin, spawnMax : np.ndarray
        Spawn region corners [m]
    spawnSpacing : float | None
        Lattice spacing [m]; None derives it from mass and rest density
    spawnJitter : float
        Jitter amplitude as a fraction of the spacing
    seed : int
        Seed for the spawn random generator
    sphereCenter : np.ndarray | None
        Center of an optional static sphere obstacle [m]
    sphereRadius : float
        Radius of the sphere obstacle [m]
    '''

    particleCount: int = const.particleCount
    domainMin: np.ndarray = field(default_factory=lambda: np.array(const.domainMin))
    domainMax: np.ndarray = field(default_factory=lambda: np.array(const.domainMax))
    smoothingRadius: float = const.smoothingRadius
    restDensity: float = const.restDensity
    stiffness: float = const.stiffness
    viscosity: float = const.viscosity
    particleMass: float = const.particleMass
    gravity: np.ndarray = field(default_factory=lambda: np.array(const.gravity))
    timeStep: float = const.timeStep
    boundaryDamping: float = const.boundaryDamping
    particleRadius: float = const.particleRadius
    solverMode: str = 'sph'
    solverIterations: int = const.solverIterations
    constraintEpsilon: float = const.constraintEpsilon
    tensileK: float = const.tensileK
    tensileDeltaQ: float = const.tensileDeltaQ
    tensileExponent: int = const.tensileExponent
    neighborStrategy: str = 'bitonicSort'
    padSortBuffer: bool = True
    backend: str = 'serial'
    workGroupSize: int = const.workGroupSize
    maxWorkers: int | None = None
    spawnPattern: str = 'jitteredGrid'
    spawnMin: np.ndarray = field(default_factory=lambda: np.array(const.spawnMin))
    spawnMax: np.ndarray = field(default_factory=lambda: np.array(const.spawnMax))
    spawnSpacing: float | None = None
    spawnJitter: float = const.spawnJitter
    seed: int = const.seed
    sphereCenter: np.ndarray | None = None
    sphereRadius: float = 0.0

    def __post_init__(self) -> None:
        self.domainMin = np.asarray(self.domainMin, dtype=np.float64)
        self.domainMax = np.asarray(self.domainMax, dtype=np.float64)
        self.gravity = np.asarray(self.gravity, dtype=np.float64)
        self.spawnMin = np.asarray(self.spawnMin, dtype=np.float64)
        self.spawnMax = np.asarray(self.spawnMax, dtype=np.float64)
        if self.sphereCenter is not None:
            self.sphereCenter = np.asarray(self.sphereCenter, dtype=np.float64)

    @property
    def cellSize(self) -> float:
        '''Spatial hash cell size [m], equal to the smoothing radius.'''
        return self.smoothingRadius

    @property
    def domainSize(self) -> np.ndarray:
        '''Domain extent in each dimension [m].'''
        return self.domainMax - self.domainMin

    @property
    def sortBufferSize(self) -> int:
        '''Length of the sort buffers (particle count padded to a power of two).'''
        if isPowerOfTwo(self.particleCount):
            return self.particleCount
        return nextPowerOfTwo(self.particleCount)

    @property
    def resolvedSpawnSpacing(self) -> float:
        '''
        Spawn lattice spacing [m].

        Defaults to the spacing at which a cubic lattice of particles
        of the configured mass has the rest density: (m / rho_0)^(1/3).
        '''
        if self.spawnSpacing is not None:
            return float(self.spawnSpacing)
        return float((self.particleMass / self.restDensity) ** (1.0 / 3.0))

    @property
    def hasSphereCollider(self) -> bool:
        '''True if a sphere obstacle is configured.'''
        return self.sphereCenter is not None and self.sphereRadius > 0.0

    ######################################################################
    # -- Validation -- #
    ######################################################################

    def validate(self) -> None:
        '''
        Check that the configuration describes a runnable simulation.

        Raises:
        -------
        ConfigurationError : If any parameter is out of range
        '''
        if int(self.particleCount) <= 0:
            raise ConfigurationError(f'particleCount must be positive, got {self.particleCount}')
        if not self.smoothingRadius > 0.0:
            raise ConfigurationError(f'smoothingRadius must be positive, got {self.smoothingRadius}')
        if not self.particleMass > 0.0:
            raise ConfigurationError(f'particleMass must be positive, got {self.particleMass}')
        if not self.restDensity > 0.0:
            raise ConfigurationError(f'restDensity must be positive, got {self.restDensity}')
        if not self.timeStep > 0.0:
            raise ConfigurationError(f'timeStep must be positive, got {self.timeStep}')
        if not 0.0 <= self.boundaryDamping <= 1.0:
            raise ConfigurationError(
                f'boundaryDamping must lie in [0, 1], got {self.boundaryDamping}'
            )
        if self.viscosity < 0.0:
            raise ConfigurationError(f'viscosity must be non-negative, got {self.viscosity}')
        if self.particleRadius < 0.0:
            raise ConfigurationError(f'particleRadius must be non-negative, got {self.particleRadius}')
        if self.constraintEpsilon < 0.0:
            raise ConfigurationError(
                f'constraintEpsilon must be non-negative, got {self.constraintEpsilon}'
            )

        for name in ('domainMin', 'domainMax', 'gravity', 'spawnMin', 'spawnMax'):
            value = getattr(self, name)
            if value.shape != (3,) or not np.all(np.isfinite(value)):
                raise ConfigurationError(f'{name} must be a finite 3-vector, got {value!r}')

        if np.any(self.domainSize <= 2.0 * self.particleRadius):
            raise ConfigurationError(
                f'Domain box {self.domainMin.tolist()} - {self.domainMax.tolist()} '
                f'is degenerate for particleRadius {self.particleRadius}'
            )
        if np.any(self.spawnMax < self.spawnMin):
            raise ConfigurationError('spawnMax must not be below spawnMin on any axis')

        if self.solverMode not in SOLVER_MODES:
            raise ConfigurationError(
                f'Unknown solverMode {self.solverMode!r}, expected one of {SOLVER_MODES}'
            )
        if self.neighborStrategy not in NEIGHBOR_STRATEGIES:
            raise ConfigurationError(
                f'Unknown neighborStrategy {self.neighborStrategy!r}, '
                f'expected one of {NEIGHBOR_STRATEGIES}'
            )
        if self.backend not in BACKENDS:
            raise ConfigurationError(f'Unknown backend {self.backend!r}, expected one of {BACKENDS}')
        if self.spawnPattern not in SPAWN_PATTERNS:
            raise ConfigurationError(
                f'Unknown spawnPattern {self.spawnPattern!r}, expected one of {SPAWN_PATTERNS}'
            )
        if int(self.workGroupSize) <= 0:
            raise ConfigurationError(f'workGroupSize must be positive, got {self.workGroupSize}')
        if self.maxWorkers is not None and int(self.maxWorkers) <= 0:
            raise ConfigurationError(f'maxWorkers must be positive, got {self.maxWorkers}')
        if self.spawnSpacing is not None and not self.spawnSpacing > 0.0:
            raise ConfigurationError(f'spawnSpacing must be positive, got {self.spawnSpacing}')

        # Bitonic network needs a power-of-two element count
        if (self.neighborStrategy == 'bitonicSort'
                and not self.padSortBuffer
                and not isPowerOfTwo(int(self.particleCount))):
            raise ConfigurationError(
                f'bitonicSort requires a power-of-two particle count when '
                f'padSortBuffer is disabled, got {self.particleCount}'
            )

        if self.sphereCenter is not None:
            if self.sphereCenter.shape != (3,):
                raise ConfigurationError('sphereCenter must be a 3-vector')
            if self.sphereRadius < 0.0:
                raise ConfigurationError(f'sphereRadius must be non-negative, got {self.sphereRadius}')

    def replace(self, **changes) -> SimulationConfig:
        '''Return a copy with the given fields replaced.'''
        return dataclasses.replace(self, **changes)

    ######################################################################
    # -- Serialization -- #
    ######################################################################

    def toDict(self) -> dict:
        '''Plain-Python dictionary of all fields (arrays become lists).'''
        result = {}
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if isinstance(value, np.ndarray):
                value = value.tolist()
            result[f.name] = value
        return result

    @classmethod
    def fromDict(cls, data: dict) -> SimulationConfig:
        '''
        Build a configuration from a sectioned dictionary.

        Reads the 'simulation', 'fluid', 'solver', 'domain' and 'spawn'
        sections. Unknown keys are ignored; missing keys keep defaults.

        Parameters:
        -----------
        data : dict
            Parsed configuration document

        Returns:
        --------
        SimulationConfig : Loaded configuration
        '''
        simSection = data.get('simulation', {})
        fluidSection = data.get('fluid', {})
        solverSection = data.get('solver', {})
        domainSection = data.get('domain', {})
        spawnSection = data.get('spawn', {})

        kwargs: dict = {}

        def take(section: dict, key: str, name: str | None = None) -> None:
            if key in section:
                kwargs[name or key] = section[key]

        take(simSection, 'particleCount')
        take(simSection, 'timeStep')
        take(simSection, 'backend')
        take(simSection, 'workGroupSize')
        take(simSection, 'maxWorkers')
        take(simSection, 'seed')

        take(fluidSection, 'restDensity')
        take(fluidSection, 'stiffness')
        take(fluidSection, 'viscosity')
        take(fluidSection, 'particleMass')
        take(fluidSection, 'gravity')

        take(solverSection, 'mode', 'solverMode')
        take(solverSection, 'smoothingRadius')
        take(solverSection, 'iterations', 'solverIterations')
        take(solverSection, 'constraintEpsilon')
        take(solverSection, 'tensileK')
        take(solverSection, 'tensileDeltaQ')
        take(solverSection, 'tensileExponent')
        take(solverSection, 'neighborStrategy')
        take(solverSection, 'padSortBuffer')

        take(domainSection, 'min', 'domainMin')
        take(domainSection, 'max', 'domainMax')
        take(domainSection, 'boundaryDamping')
        take(domainSection, 'particleRadius')
        take(domainSection, 'sphereCenter')
        take(domainSection, 'sphereRadius')

        # Centered box given by half extents, as in the interactive scenes
        if 'extents' in domainSection:
            extents = np.asarray(domainSection['extents'], dtype=np.float64)
            kwargs['domainMin'] = -extents
            kwargs['domainMax'] = extents

        take(spawnSection, 'pattern', 'spawnPattern')
        take(spawnSection, 'min', 'spawnMin')
        take(spawnSection, 'max', 'spawnMax')
        take(spawnSection, 'spacing', 'spawnSpacing')
        take(spawnSection, 'jitter', 'spawnJitter')

        return cls(**kwargs)

    @classmethod
    def fromJson(cls, configPath: str) -> SimulationConfig:
        '''
        Load configuration from a JSON file.

        Parameters:
        -----------
        configPath : str
            Path to the JSON configuration file

        Returns:
        --------
        SimulationConfig : Loaded configuration
        '''
        with open(configPath, 'r') as f:
            data = json.load(f)
        return cls.fromDict(data)


######################################################################
# -- Simulation State -- #
######################################################################

@dataclass
class SimulationState:
    '''
    Scalar diagnostics of the simulation after a tick.

    Parameters:
    -----------
    time : float
        Simulation time [s]
    step : int
        Number of completed ticks
    dt : float
        Time step used for the last tick [s]
    kineticEnergy : float
        Total kinetic energy [J]
    momentum : float
        Magnitude of the total linear momentum [kg m/s]
    maxVelocity : float
        Maximum particle speed [m/s]
    maxDensityError : float
        Maximum relative density error |rho - rho_0| / rho_0
    meanDensity : float
        Mean particle density [kg/m^3]
    '''

    time: float
    step: int
    dt: float
    kineticEnergy: float
    momentum: float
    maxVelocity: float
    maxDensityError: float
    meanDensity: float


######################################################################
# -- Solver and Neighbor Search Protocols -- #
######################################################################

class NeighborSearch(Protocol):
    '''Protocol for neighbor search strategies.'''

    def build(self, positions: np.ndarray) -> None:
        '''Rebuild the spatial structure from particle positions.'''
        ...

    def neighbors(self, index: int) -> np.ndarray:
        '''Candidate neighbor indices of one particle (itself included).'''
        ...

    def candidateList(self) -> NeighborList:
        '''Candidate neighbors of every particle as a CSR list.'''
        ...

    def release(self) -> None:
        '''Drop all buffers.'''
        ...


class FluidSolver(Protocol):
    '''
    Protocol for the two solver modes (SPH, PBF).

    The engine calls the methods in order every tick:
    beginStep -> (neighbor build on indexPositions) -> solve -> integrate.
    '''

    mode: str

    def updateConfig(self, config: SimulationConfig) -> None:
        '''Pick up runtime parameter changes.'''
        ...

    def beginStep(self, particles: ParticleSystem, dt: float) -> None:
        '''Per-tick preparation before the neighbor index is built.'''
        ...

    def indexPositions(self, particles: ParticleSystem) -> np.ndarray:
        '''Positions the neighbor index is built from this tick.'''
        ...

    def solve(self, particles: ParticleSystem, candidates: NeighborList, dt: float) -> None:
        '''Density / pressure / force or constraint stages.'''
        ...

    def integrate(self, particles: ParticleSystem, dt: float) -> None:
        '''Advance velocities and positions.'''
        ...
