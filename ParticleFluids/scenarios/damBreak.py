# -- Dam Break and Sphere Drop Scenarios -- #

'''
Box-domain scenarios for the particle engine.

Dam break: a column of fluid against the -x wall of a closed box
collapses under gravity and runs across the floor.

Sphere drop: a block of fluid falls onto a static sphere obstacle
in the middle of the box and splashes around it.

Both scenarios only build a SimulationConfig; particles are spawned
by the engine from its spawn region (lattice filled from the bottom
layer up, spacing (m / rho_0)^(1/3) so the block starts near rest
density).

Sean Bowman [10/17/2026]
'''

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from ParticleFluids import constants as const
from ParticleFluids.sph.protocols import SimulationConfig

# Gap between the spawn region and the walls [m]
SPAWN_MARGIN = 0.02


######################################################################
# -- Dam Break -- #
######################################################################

@dataclass
class DamBreakConfig:
    '''
    Configuration for a dam break scenario.

    Parameters:
    -----------
    particleCount : int
        Number of fluid particles
    columnWidthRatio : float
        Width of the fluid column as a fraction of the box width (x)
    solverMode : str
        'sph' or 'pbf'
    neighborStrategy : str
        'bitonicSort' or 'spatialHash'
    backend : str
        'serial' or 'threaded'
    nSteps : int
        Number of ticks to run
    outputInterval : int
        Ticks between exported frames
    '''

    particleCount: int = 4096
    columnWidthRatio: float = 0.55
    solverMode: str = 'sph'
    neighborStrategy: str = 'bitonicSort'
    backend: str = 'serial'
    nSteps: int = 400
    outputInterval: int = 10

    @classmethod
    def small(cls) -> DamBreakConfig:
        '''
        Small dam break for quick testing.

        1024 particles, runs in seconds.
        '''
        return cls(particleCount=1024, columnWidthRatio=0.4, nSteps=200, outputInterval=5)

    @classmethod
    def standard(cls) -> DamBreakConfig:
        '''Standard dam break, 4096 particles.'''
        return cls()


def createDamBreak(scenario: DamBreakConfig) -> SimulationConfig:
    '''
    Build the simulation configuration of a dam break.

    The fluid column spans the full depth (z) of the box and a
    fraction of its width (x), starting at the -x wall.

    Parameters:
    -----------
    scenario : DamBreakConfig
        Scenario configuration

    Returns:
    --------
    SimulationConfig : Ready-to-run configuration
    '''
    domainMin = np.array(const.domainMin)
    domainMax = np.array(const.domainMax)
    width = domainMax[0] - domainMin[0]

    spawnMin = domainMin + SPAWN_MARGIN
    spawnMax = domainMax - SPAWN_MARGIN
    spawnMax[0] = domainMin[0] + scenario.columnWidthRatio * width

    return SimulationConfig(
        particleCount=scenario.particleCount,
        domainMin=domainMin,
        domainMax=domainMax,
        solverMode=scenario.solverMode,
        neighborStrategy=scenario.neighborStrategy,
        backend=scenario.backend,
        spawnPattern='jitteredGrid',
        spawnMin=spawnMin,
        spawnMax=spawnMax,
    )


######################################################################
# -- Sphere Drop -- #
######################################################################

@dataclass
class SphereDropConfig:
    '''
    Configuration for a block of fluid dropped onto a sphere.

    Parameters:
    -----------
    particleCount : int
        Number of fluid particles
    blockHalfWidth : float
        Half width of the falling block in x and z [m]
    dropHeight : float
        Height of the bottom of the block [m]
    sphereRadius : float
        Obstacle radius [m]
    sphereHeight : float
        Height of the obstacle center [m]
    solverMode, neighborStrategy, backend : str
        Engine choices (see DamBreakConfig)
    nSteps : int
        Number of ticks to run
    outputInterval : int
        Ticks between exported frames
    '''

    particleCount: int = 2048
    blockHalfWidth: float = 0.2
    dropHeight: float = 0.25
    sphereRadius: float = 0.08
    sphereHeight: float = 0.12
    solverMode: str = 'pbf'
    neighborStrategy: str = 'bitonicSort'
    backend: str = 'serial'
    nSteps: int = 300
    outputInterval: int = 10

    @classmethod
    def small(cls) -> SphereDropConfig:
        '''1024 particles, quick test.'''
        return cls(particleCount=1024, nSteps=150, outputInterval=5)

    @classmethod
    def standard(cls) -> SphereDropConfig:
        return cls()


def createSphereDrop(scenario: SphereDropConfig) -> SimulationConfig:
    '''
    Build the simulation configuration of a sphere drop.

    Parameters:
    -----------
    scenario : SphereDropConfig
        Scenario configuration

    Returns:
    --------
    SimulationConfig : Ready-to-run configuration with a sphere collider
    '''
    domainMin = np.array(const.domainMin)
    domainMax = np.array(const.domainMax)
    hw = scenario.blockHalfWidth

    return SimulationConfig(
        particleCount=scenario.particleCount,
        domainMin=domainMin,
        domainMax=domainMax,
        solverMode=scenario.solverMode,
        neighborStrategy=scenario.neighborStrategy,
        backend=scenario.backend,
        spawnPattern='jitteredGrid',
        spawnMin=np.array([-hw, scenario.dropHeight, -hw]),
        spawnMax=np.array([hw, domainMax[1] - SPAWN_MARGIN, hw]),
        sphereCenter=np.array([0.0, scenario.sphereHeight, 0.0]),
        sphereRadius=scenario.sphereRadius,
    )
