# -- Shared Test Fixtures -- #

'''
Unit-scale configurations and particle layouts for the test suite.

The unit configuration uses h = 1 and m = 1 with a lattice spacing
of 0.5, which gives an interior poly6 density of about 8.08.

Sean Bowman [10/17/2026]
'''

from __future__ import annotations

import math

import numpy as np
import pytest

from ParticleFluids.sph.protocols import SimulationConfig


def makeUnitConfig(**changes) -> SimulationConfig:
    '''64-particle unit-scale configuration in a large box.'''
    config = SimulationConfig(
        particleCount=64,
        domainMin=(-10.0, -10.0, -10.0),
        domainMax=(10.0, 10.0, 10.0),
        smoothingRadius=1.0,
        restDensity=8.0,
        stiffness=1.0,
        viscosity=0.1,
        particleMass=1.0,
        gravity=(0.0, 0.0, 0.0),
        timeStep=0.01,
        boundaryDamping=0.5,
        particleRadius=0.0,
        solverIterations=4,
        constraintEpsilon=10.0,
        spawnPattern='grid',
        spawnMin=(-1.0, -1.0, -1.0),
        spawnMax=(1.0, 1.0, 1.0),
        spawnSpacing=0.5,
        spawnJitter=0.0,
    )
    return config.replace(**changes)


def latticePositions(nPerAxis: int, spacing: float) -> np.ndarray:
    '''Cubic lattice of nPerAxis^3 points centered on the origin.'''
    coords = (np.arange(nPerAxis) - 0.5 * (nPerAxis - 1)) * spacing
    xx, yy, zz = np.meshgrid(coords, coords, coords, indexing='ij')
    return np.column_stack([xx.ravel(), yy.ravel(), zz.ravel()])


def tetrahedronPositions(edge: float) -> np.ndarray:
    '''Vertices of a regular tetrahedron centered on the origin.'''
    vertices = np.array([
        [1.0, 1.0, 1.0],
        [1.0, -1.0, -1.0],
        [-1.0, 1.0, -1.0],
        [-1.0, -1.0, 1.0],
    ])
    # Edge length of the unit-coordinate tetrahedron is 2 * sqrt(2)
    return vertices * edge / (2.0 * math.sqrt(2.0))


@pytest.fixture
def unitConfig() -> SimulationConfig:
    return makeUnitConfig()


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)
