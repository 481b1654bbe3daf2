# -- SPH Density, Pressure and Force Solver -- #

'''
Explicit SPH solver mode.

Per tick, on the candidate list of the current positions:
    1. Density by poly6 summation (self contribution included)
    2. Pressure from the linear equation of state p = k (rho - rho_0)
    3. Force densities: symmetric pressure term (spiky gradient),
       viscosity term (viscosity Laplacian) and gravity * rho_i
    4. Semi-implicit Euler integration with a = f / rho

Every stage is a range kernel run through the KernelDispatcher; the
dispatcher's barrier guarantees all densities are written before any
force reads a neighbor's density.

The pressure term is -m (p_i + p_j) / 2 / rho_j * grad_W(r_i - r_j):
the spiky gradient points from i toward j, so positive pressure
pushes particles apart. Negative pressure (rho < rho_0) is kept and
pulls them together.

References:
-----------
Mueller, Charypar & Gross (2003) -- Particle-based fluid simulation
    for interactive applications
Monaghan (2005) -- Smoothed Particle Hydrodynamics

Sean Bowman [10/17/2026]
'''

from __future__ import annotations

import numpy as np

from ParticleFluids import constants as const
from ParticleFluids.sph.dispatch import KernelDispatcher
from ParticleFluids.sph.kernels import Poly6Kernel, SpikyKernel, ViscosityKernel
from ParticleFluids.sph.neighborSearch import NeighborList
from ParticleFluids.sph.particles import ParticleSystem
from ParticleFluids.sph.protocols import SimulationConfig
from ParticleFluids.sph.timeIntegration import SymplecticEuler


class SphSolver:
    '''
    Explicit SPH solver (density, pressure, forces, integration).

    Parameters:
    -----------
    config : SimulationConfig
        Simulation configuration
    dispatcher : KernelDispatcher | None
        Kernel dispatcher (serial if omitted)
    '''

    mode = 'sph'

    def __init__(
        self,
        config: SimulationConfig,
        dispatcher: KernelDispatcher | None = None,
    ) -> None:
        self._config = config
        self._dispatcher = dispatcher or KernelDispatcher('serial')
        self._poly6 = Poly6Kernel()
        self._spiky = SpikyKernel()
        self._viscosityKernel = ViscosityKernel()
        self._integrator = SymplecticEuler()
        self._neighbors: NeighborList | None = None

    def updateConfig(self, config: SimulationConfig) -> None:
        self._config = config

    @property
    def neighbors(self) -> NeighborList | None:
        '''Distance-filtered neighbor list of the last solve.'''
        return self._neighbors

    ######################################################################
    # -- Pipeline Hooks -- #
    ######################################################################

    def beginStep(self, particles: ParticleSystem, dt: float) -> None:
        '''Nothing to stage before indexing in SPH mode.'''

    def indexPositions(self, particles: ParticleSystem) -> np.ndarray:
        '''SPH indexes the current positions.'''
        return particles.positions

    def solve(self, particles: ParticleSystem, candidates: NeighborList, dt: float) -> None:
        '''
        Run the density, pressure and force stages.

        Parameters:
        -----------
        particles : ParticleSystem
            Particle store (densities, pressures, forces are written)
        candidates : NeighborList
            Candidate neighbors built from the current positions
        dt : float
            Time step [s] (unused by the force stages)
        '''
        self._neighbors = candidates.withinRadius(particles.positions, self._config.smoothingRadius)
        self.computeDensity(particles, self._neighbors)
        self.computePressure(particles)
        self.computeForces(particles, self._neighbors)

    def integrate(self, particles: ParticleSystem, dt: float) -> None:
        self._integrator.integrate(particles, dt)

    ######################################################################
    # -- Density and Pressure -- #
    ######################################################################

    def computeDensity(self, particles: ParticleSystem, neighbors: NeighborList) -> None:
        '''
        Compute particle densities by poly6 summation.

        rho_i = sum_j m * W_poly6(|r_i - r_j|, h)

        The self pair (r = 0) is part of every row, so rho_i > 0.

        Parameters:
        -----------
        particles : ParticleSystem
            Particle store
        neighbors : NeighborList
            Distance-filtered neighbor list
        '''
        h = self._config.smoothingRadius
        mass = self._config.particleMass
        densities = np.zeros(particles.nParticles, dtype=np.float64)

        def densityKernel(start: int, stop: int) -> None:
            pairs = neighbors.pairSlice(start, stop)
            w = self._poly6.evaluateBatch(neighbors.distances[pairs], h)
            densities[start:stop] = mass * neighbors.reduceRows(w, start, stop)

        self._dispatcher.dispatch(densityKernel, particles.nParticles)
        particles.densities = densities

    def computePressure(self, particles: ParticleSystem) -> None:
        '''
        Compute pressure from the linear equation of state.

        p_i = k * (rho_i - rho_0)

        Negative pressures are kept.
        '''
        k = self._config.stiffness
        rho0 = self._config.restDensity
        pressures = np.zeros(particles.nParticles, dtype=np.float64)
        densities = particles.densities.astype(np.float64)

        def pressureKernel(start: int, stop: int) -> None:
            pressures[start:stop] = k * (densities[start:stop] - rho0)

        self._dispatcher.dispatch(pressureKernel, particles.nParticles)
        particles.pressures = pressures

    ######################################################################
    # -- Forces -- #
    ######################################################################

    def computeForces(self, particles: ParticleSystem, neighbors: NeighborList) -> None:
        '''
        Compute force densities from pressure, viscosity and gravity.

        f_i = sum_j -m (p_i + p_j) / (2 rho_j) * grad_W_spiky(r_i - r_j)
            + sum_j mu * m * (v_j - v_i) / rho_j * lap_W_visc(|r_i - r_j|)
            + g * rho_i

        Pairs with j == i, r below minDistance, or rho_j == 0 are
        skipped.

        Parameters:
        -----------
        particles : ParticleSystem
            Particle store (densities and pressures must be current)
        neighbors : NeighborList
            Distance-filtered neighbor list
        '''
        h = self._config.smoothingRadius
        mass = self._config.particleMass
        mu = self._config.viscosity
        gravity = self._config.gravity

        densities = particles.densities.astype(np.float64)
        pressures = particles.pressures.astype(np.float64)
        velocities = particles.velocities.astype(np.float64)
        rowIdx = neighbors.rowIndices()
        forces = np.zeros((particles.nParticles, 3), dtype=np.float64)

        def forceKernel(start: int, stop: int) -> None:
            pairs = neighbors.pairSlice(start, stop)
            i = rowIdx[pairs]
            j = neighbors.neighbors[pairs]
            dist = neighbors.distances[pairs]
            rhoJ = densities[j]

            valid = (i != j) & (dist >= const.minDistance) & (rhoJ > 0.0)
            safeRhoJ = np.where(valid, rhoJ, 1.0)

            gradW = self._spiky.gradientBatch(neighbors.displacements[pairs], dist, h)
            pressureCoeff = -mass * 0.5 * (pressures[i] + pressures[j]) / safeRhoJ
            viscCoeff = mu * mass * self._viscosityKernel.laplacianBatch(dist, h) / safeRhoJ

            pairForce = (
                pressureCoeff[:, np.newaxis] * gradW
                + viscCoeff[:, np.newaxis] * (velocities[j] - velocities[i])
            )
            pairForce[~valid] = 0.0

            forces[start:stop] = neighbors.reduceRows(pairForce, start, stop)
            forces[start:stop] += gravity[np.newaxis, :] * densities[start:stop, np.newaxis]

        self._dispatcher.dispatch(forceKernel, particles.nParticles)
        particles.forces = forces
