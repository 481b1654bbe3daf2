# -- SPH Engine Package -- #

'''
Core particle engine.

Provides the particle store, smoothing kernels, both neighbor search
strategies, the SPH and PBF solvers, boundary handling, time
integration, kernel dispatch and the step orchestrator.

Sean Bowman [10/17/2026]
'''

from ParticleFluids.sph.protocols import ConfigurationError, SimulationConfig, SimulationState
from ParticleFluids.sph.kernels import Poly6Kernel, SpikyKernel, ViscosityKernel
from ParticleFluids.sph.particles import PARTICLE_DTYPE, ParticleSystem
from ParticleFluids.sph.neighborSearch import NeighborList, SpatialHashGrid
from ParticleFluids.sph.bitonicSort import SortedCellIndex, bitonicSort, computeCellOffsets, hashCells
from ParticleFluids.sph.fluidEngine import FluidEngine, RunState, createSolver, createNeighborSearch
