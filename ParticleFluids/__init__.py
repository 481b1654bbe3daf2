# -- ParticleFluids Package -- #

'''
Particle-based fluid simulation with SPH and Position Based Fluids.

A fixed set of particles in a box domain, advanced by either the
explicit SPH solver or the PBF constraint solver, with neighbor
search by a bitonic-sorted cell index or a bucket hash grid.

Sean Bowman [10/17/2026]
'''

__version__ = '0.1.0'

from ParticleFluids.sph.protocols import ConfigurationError, SimulationConfig, SimulationState
from ParticleFluids.sph.fluidEngine import FluidEngine, RunState
from ParticleFluids.sph.particles import ParticleSystem
from ParticleFluids.scenarios.damBreak import DamBreakConfig, SphereDropConfig
from ParticleFluids.export.frameExporter import FrameExporter
