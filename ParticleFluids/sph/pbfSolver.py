# -- Position Based Fluids Constraint Solver -- #

'''
Position Based Fluids (PBF) solver mode.

Instead of integrating pressure forces, PBF predicts positions under
gravity and then iteratively moves them to satisfy one density
constraint per particle:

    C_i = rho_i / rho_0 - 1

Each Jacobi iteration:
    1. rho_i by poly6 summation over the predicted positions
    2. lambda_i = -C_i / (sum_k |grad_k C_i|^2 + epsilon), with
           grad_j C_i = -(m / rho_0) grad_W(p_i - p_j)        (j != i)
           grad_i C_i =  (m / rho_0) sum_j grad_W(p_i - p_j)
    3. dp_i = (m / rho_0) sum_{j != i} (lambda_i + lambda_j + s_corr)
              grad_W(p_i - p_j)
    4. Apply all dp_i at once

The neighbor candidates come from the predicted positions and stay
fixed for the whole tick; pair distances are refreshed every
iteration. The optional artificial pressure term

    s_corr = -k * (W(r) / W(deltaQ * h))^n

counters particle clumping at the free surface; k = 0 disables it.

References:
-----------
Macklin & Mueller (2013) -- Position based fluids
Mueller, Charypar & Gross (2003) -- Particle-based fluid simulation
    for interactive applications

Sean Bowman [10/17/2026]
'''

from __future__ import annotations

import logging

import numpy as np

from ParticleFluids import constants as const
from ParticleFluids.sph.dispatch import KernelDispatcher
from ParticleFluids.sph.kernels import Poly6Kernel, SpikyKernel
from ParticleFluids.sph.neighborSearch import NeighborList
from ParticleFluids.sph.particles import ParticleSystem
from ParticleFluids.sph.protocols import SimulationConfig
from ParticleFluids.sph.timeIntegration import PositionBasedUpdate

logger = logging.getLogger(__name__)


class PbfSolver:
    '''
    Jacobi position-based density constraint solver.

    Parameters:
    -----------
    config : SimulationConfig
        Simulation configuration
    dispatcher : KernelDispatcher | None
        Kernel dispatcher (serial if omitted)
    recordHistory : bool
        Keep the per-iteration constraint errors of the last solve
    '''

    mode = 'pbf'

    def __init__(
        self,
        config: SimulationConfig,
        dispatcher: KernelDispatcher | None = None,
        recordHistory: bool = False,
    ) -> None:
        self._config = config
        self._dispatcher = dispatcher or KernelDispatcher('serial')
        self._poly6 = Poly6Kernel()
        self._spiky = SpikyKernel()
        self._integrator = PositionBasedUpdate()
        self._recordHistory = recordHistory
        self._errorHistory: list[np.ndarray] = []
        self._warnedNoIterations = False

    def updateConfig(self, config: SimulationConfig) -> None:
        if config.solverIterations != self._config.solverIterations:
            self._warnedNoIterations = False
        self._config = config

    @property
    def errorHistory(self) -> list[np.ndarray]:
        '''
        Constraint errors |rho_i / rho_0 - 1| of the last solve.

        Entry k holds the errors before iteration k; the final entry
        holds the errors after the last iteration. Empty unless the
        solver was created with recordHistory=True.
        '''
        return self._errorHistory

    ######################################################################
    # -- Pipeline Hooks -- #
    ######################################################################

    def beginStep(self, particles: ParticleSystem, dt: float) -> None:
        '''
        Predict positions under gravity.

        x* = x + v dt + g dt^2
        '''
        positions = particles.positions.astype(np.float64)
        velocities = particles.velocities.astype(np.float64)
        gravity = self._config.gravity
        particles.predictedPositions = positions + velocities * dt + gravity[np.newaxis, :] * dt * dt

    def indexPositions(self, particles: ParticleSystem) -> np.ndarray:
        '''PBF indexes the predicted positions.'''
        return particles.predictedPositions

    def solve(self, particles: ParticleSystem, candidates: NeighborList, dt: float) -> None:
        '''
        Run the constraint iterations on the predicted positions.

        With solverIterations <= 0 the predicted positions pass through
        unchanged (a warning is logged once).

        Parameters:
        -----------
        particles : ParticleSystem
            Particle store (predicted positions, densities and lambdas
            are written)
        candidates : NeighborList
            Candidate neighbors built from the predicted positions
        dt : float
            Time step [s]
        '''
        self._errorHistory = []
        iterations = int(self._config.solverIterations)
        if iterations <= 0:
            if not self._warnedNoIterations:
                logger.warning(
                    'solverIterations is %d; PBF constraints are not solved', iterations
                )
                self._warnedNoIterations = True
            return

        predicted = particles.predictedPositions.astype(np.float64)
        nParticles = particles.nParticles
        densities = np.zeros(nParticles, dtype=np.float64)
        lambdas = np.zeros(nParticles, dtype=np.float64)

        for _ in range(iterations):
            neighbors = candidates.withinRadius(predicted, self._config.smoothingRadius)
            self._computeDensity(neighbors, densities)
            self._recordError(densities)
            self._computeLambda(neighbors, densities, lambdas)
            predicted = predicted + self._computeDeltas(neighbors, lambdas)

        # Densities at the solved positions, for diagnostics
        neighbors = candidates.withinRadius(predicted, self._config.smoothingRadius)
        self._computeDensity(neighbors, densities)
        self._recordError(densities)

        particles.predictedPositions = predicted
        particles.densities = densities
        particles.lambdas = lambdas

    def integrate(self, particles: ParticleSystem, dt: float) -> None:
        self._integrator.integrate(particles, dt)

    ######################################################################
    # -- Constraint Stages -- #
    ######################################################################

    def _recordError(self, densities: np.ndarray) -> None:
        if self._recordHistory:
            self._errorHistory.append(np.abs(densities / self._config.restDensity - 1.0))

    def _computeDensity(self, neighbors: NeighborList, densities: np.ndarray) -> None:
        '''rho_i = sum_j m W_poly6(|p_i - p_j|, h), written into densities.'''
        h = self._config.smoothingRadius
        mass = self._config.particleMass

        def densityKernel(start: int, stop: int) -> None:
            pairs = neighbors.pairSlice(start, stop)
            w = self._poly6.evaluateBatch(neighbors.distances[pairs], h)
            densities[start:stop] = mass * neighbors.reduceRows(w, start, stop)

        self._dispatcher.dispatch(densityKernel, densities.shape[0])

    def _computeLambda(
        self, neighbors: NeighborList, densities: np.ndarray, lambdas: np.ndarray
    ) -> None:
        '''
        Compute the constraint multipliers.

        A zero denominator (isolated particle with epsilon = 0) gives
        lambda = 0.
        '''
        h = self._config.smoothingRadius
        rho0 = self._config.restDensity
        scale = self._config.particleMass / rho0
        eps = self._config.constraintEpsilon
        rowIdx = neighbors.rowIndices()

        def lambdaKernel(start: int, stop: int) -> None:
            pairs = neighbors.pairSlice(start, stop)
            i = rowIdx[pairs]
            j = neighbors.neighbors[pairs]
            dist = neighbors.distances[pairs]

            gradW = self._spiky.gradientBatch(neighbors.displacements[pairs], dist, h)
            gradW[i == j] = 0.0

            # |grad_j C_i|^2 summed over j, and grad_i C_i
            gradJSq = scale * scale * np.sum(gradW * gradW, axis=1)
            sumGradJSq = neighbors.reduceRows(gradJSq, start, stop)
            gradI = scale * neighbors.reduceRows(gradW, start, stop)
            gradISq = np.sum(gradI * gradI, axis=1)

            constraint = densities[start:stop] / rho0 - 1.0
            denominator = sumGradJSq + gradISq + eps
            safeDenominator = np.where(denominator > 0.0, denominator, 1.0)
            lambdas[start:stop] = np.where(denominator > 0.0, -constraint / safeDenominator, 0.0)

        self._dispatcher.dispatch(lambdaKernel, lambdas.shape[0])

    def _computeDeltas(self, neighbors: NeighborList, lambdas: np.ndarray) -> np.ndarray:
        '''Position corrections dp_i for every particle, shape (N, 3).'''
        h = self._config.smoothingRadius
        scale = self._config.particleMass / self._config.restDensity
        tensileK = self._config.tensileK
        rowIdx = neighbors.rowIndices()
        deltas = np.zeros((lambdas.shape[0], 3), dtype=np.float64)

        if tensileK != 0.0:
            wDeltaQ = self._poly6.evaluate(self._config.tensileDeltaQ * h, h)
        else:
            wDeltaQ = 0.0

        def deltaKernel(start: int, stop: int) -> None:
            pairs = neighbors.pairSlice(start, stop)
            i = rowIdx[pairs]
            j = neighbors.neighbors[pairs]
            dist = neighbors.distances[pairs]

            coeff = lambdas[i] + lambdas[j]
            if tensileK != 0.0 and wDeltaQ > 0.0:
                ratio = self._poly6.evaluateBatch(dist, h) / wDeltaQ
                coeff = coeff - tensileK * ratio ** self._config.tensileExponent

            gradW = self._spiky.gradientBatch(neighbors.displacements[pairs], dist, h)
            pairDelta = coeff[:, np.newaxis] * gradW
            pairDelta[(i == j) | (dist < const.minDistance)] = 0.0

            deltas[start:stop] = scale * neighbors.reduceRows(pairDelta, start, stop)

        self._dispatcher.dispatch(deltaKernel, lambdas.shape[0])
        return deltas
