# -- Fluid Engine (Step Orchestrator) -- #

'''
Owns the particle store and drives the per-tick pipeline.

Each tick runs, strictly in order:
    1. Solver preparation (PBF predicts positions)
    2. Neighbor index build (sorted cell index or bucket grid)
    3. Solver stages (density / pressure / forces, or constraint solve)
    4. Integration
    5. Boundary handling
    6. Snapshot publication

Run control is a two-state machine, RUNNING and PAUSED. While paused,
step() does nothing unless a single step was requested, in which
case exactly one tick runs and the engine stays paused.

After every tick the engine copies the particle records into a new
read-only array and swaps it in under a lock; snapshot() hands out
that array, so readers never see a half-written step.

Sean Bowman [10/17/2026]
'''

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum

import numpy as np

from ParticleFluids.sph.bitonicSort import SortedCellIndex
from ParticleFluids.sph.boundaryHandling import BoundaryHandler
from ParticleFluids.sph.dispatch import KernelDispatcher
from ParticleFluids.sph.neighborSearch import NeighborList, SpatialHashGrid
from ParticleFluids.sph.particles import ParticleSystem
from ParticleFluids.sph.pbfSolver import PbfSolver
from ParticleFluids.sph.protocols import (
    ConfigurationError,
    FluidSolver,
    NeighborSearch,
    RUNTIME_FIELDS,
    SimulationConfig,
    SimulationState,
)
from ParticleFluids.sph.sphSolver import SphSolver

logger = logging.getLogger(__name__)


class RunState(Enum):
    RUNNING = 'running'
    PAUSED = 'paused'


######################################################################
# -- Factories -- #
######################################################################

def createSolver(config: SimulationConfig, dispatcher: KernelDispatcher) -> FluidSolver:
    '''Solver strategy for config.solverMode.'''
    if config.solverMode == 'sph':
        return SphSolver(config, dispatcher)
    if config.solverMode == 'pbf':
        return PbfSolver(config, dispatcher)
    raise ConfigurationError(f'Unknown solverMode {config.solverMode!r}')


def createNeighborSearch(config: SimulationConfig, dispatcher: KernelDispatcher) -> NeighborSearch:
    '''Neighbor search strategy for config.neighborStrategy.'''
    if config.neighborStrategy == 'bitonicSort':
        return SortedCellIndex(
            cellSize=config.cellSize,
            particleCount=int(config.particleCount),
            padSortBuffer=config.padSortBuffer,
            dispatcher=dispatcher,
        )
    if config.neighborStrategy == 'spatialHash':
        return SpatialHashGrid(cellSize=config.cellSize)
    raise ConfigurationError(f'Unknown neighborStrategy {config.neighborStrategy!r}')


######################################################################
# -- Compute Context -- #
######################################################################

@dataclass
class ComputeContext:
    '''
    Per-engine compute resources.

    Parameters:
    -----------
    dispatcher : KernelDispatcher
        Kernel dispatcher (owns the thread pool)
    neighborSearch : NeighborSearch
        Neighbor index strategy (owns the sort / bucket buffers)
    solver : FluidSolver
        Solver strategy
    boundary : BoundaryHandler
        Domain and obstacle handling
    candidates : NeighborList | None
        Candidate list of the last tick
    '''

    dispatcher: KernelDispatcher
    neighborSearch: NeighborSearch
    solver: FluidSolver
    boundary: BoundaryHandler
    candidates: NeighborList | None = None

    @classmethod
    def fromConfig(cls, config: SimulationConfig) -> ComputeContext:
        dispatcher = KernelDispatcher(
            backend=config.backend,
            workGroupSize=int(config.workGroupSize),
            maxWorkers=config.maxWorkers,
        )
        return cls(
            dispatcher=dispatcher,
            neighborSearch=createNeighborSearch(config, dispatcher),
            solver=createSolver(config, dispatcher),
            boundary=BoundaryHandler.fromConfig(config),
        )

    def release(self) -> None:
        '''Drop all buffers and shut down the dispatcher.'''
        self.candidates = None
        self.neighborSearch.release()
        self.dispatcher.close()


######################################################################
# -- Fluid Engine -- #
######################################################################

class FluidEngine:
    '''
    Particle fluid simulation engine.

    Parameters:
    -----------
    config : SimulationConfig
        Simulation configuration (validated here)
    particles : ParticleSystem | None
        Initial particles; spawned from the configuration if omitted
    paused : bool
        Start in the PAUSED state

    Raises:
    -------
    ConfigurationError : If the configuration is invalid or the particle
        count does not match config.particleCount
    '''

    def __init__(
        self,
        config: SimulationConfig,
        particles: ParticleSystem | None = None,
        paused: bool = False,
    ) -> None:
        config.validate()
        if particles is None:
            particles = ParticleSystem.fromConfig(config)
        elif particles.nParticles != int(config.particleCount):
            raise ConfigurationError(
                f'Got {particles.nParticles} particles for particleCount {config.particleCount}'
            )

        self._config = config
        self._particles = particles
        self._context: ComputeContext | None = ComputeContext.fromConfig(config)

        self._runState = RunState.PAUSED if paused else RunState.RUNNING
        self._stepRequested = False
        self._baseTimeStep = float(config.timeStep)
        self._dt = float(config.timeStep)
        self._time = 0.0
        self._stepCount = 0

        self._stepLock = threading.RLock()
        self._snapshotLock = threading.Lock()
        self._snapshot = self._copyRecords()

        logger.info(
            'Fluid engine ready: %d particles, mode=%s, strategy=%s, backend=%s',
            particles.nParticles, config.solverMode, config.neighborStrategy, config.backend,
        )

    ######################################################################
    # -- Properties -- #
    ######################################################################

    @property
    def config(self) -> SimulationConfig:
        return self._config

    @property
    def particles(self) -> ParticleSystem:
        return self._particles

    @property
    def time(self) -> float:
        '''Simulation time [s].'''
        return self._time

    @property
    def stepCount(self) -> int:
        '''Number of completed ticks.'''
        return self._stepCount

    @property
    def timeStep(self) -> float:
        '''Time step used by the next tick [s].'''
        return self._dt

    @property
    def runState(self) -> RunState:
        return self._runState

    @property
    def isPaused(self) -> bool:
        return self._runState is RunState.PAUSED

    @property
    def closed(self) -> bool:
        return self._context is None

    @property
    def context(self) -> ComputeContext | None:
        '''Compute resources (None once closed).'''
        return self._context

    @property
    def currentState(self) -> SimulationState:
        '''Diagnostics of the current particle state.'''
        p = self._particles
        cfg = self._config
        return SimulationState(
            time=self._time,
            step=self._stepCount,
            dt=self._dt,
            kineticEnergy=p.kineticEnergy(cfg.particleMass),
            momentum=float(np.linalg.norm(p.momentum(cfg.particleMass))),
            maxVelocity=p.maxSpeed(),
            maxDensityError=p.maxDensityError(cfg.restDensity),
            meanDensity=p.meanDensity(),
        )

    ######################################################################
    # -- Run Control -- #
    ######################################################################

    def setPaused(self, paused: bool) -> None:
        '''
        Pause or resume the simulation.

        Resuming restores the base time step, undoing any
        adjustTimeStep() changes made in the meantime.
        '''
        with self._stepLock:
            if paused and self._runState is RunState.RUNNING:
                self._runState = RunState.PAUSED
                logger.info('Simulation paused at t=%.4f s (step %d)', self._time, self._stepCount)
            elif not paused and self._runState is RunState.PAUSED:
                self._runState = RunState.RUNNING
                self._stepRequested = False
                self._dt = self._baseTimeStep
                logger.info('Simulation resumed (dt=%.4g s)', self._dt)

    def requestSingleStep(self) -> None:
        '''Run exactly one tick on the next step() call while paused.'''
        with self._stepLock:
            if self._runState is RunState.RUNNING:
                logger.warning('Single-step request ignored: simulation is running')
                return
            self._stepRequested = True
            logger.debug('Single step requested')

    def adjustTimeStep(self, amount: float) -> float:
        '''
        Change the current time step by amount.

        Parameters:
        -----------
        amount : float
            Increment (or decrement) [s]

        Returns:
        --------
        float : New time step [s]

        Raises:
        -------
        ConfigurationError : If the resulting time step is not positive
        '''
        with self._stepLock:
            newDt = self._dt + float(amount)
            if not newDt > 0.0:
                raise ConfigurationError(f'Time step must stay positive, got {newDt}')
            self._dt = newDt
            logger.info('Time step adjusted to %.4g s', newDt)
            return newDt

    def updateConfig(self, **changes) -> SimulationConfig:
        '''
        Change runtime parameters between ticks.

        Only fields in RUNTIME_FIELDS may change. A new timeStep also
        becomes the base time step restored on resume.

        Returns:
        --------
        SimulationConfig : The new configuration

        Raises:
        -------
        ConfigurationError : For fixed fields or an invalid result
        '''
        fixed = sorted(set(changes) - RUNTIME_FIELDS)
        if fixed:
            raise ConfigurationError(f'Fields cannot change on a running engine: {fixed}')

        with self._stepLock:
            self._requireOpen()
            newConfig = self._config.replace(**changes)
            newConfig.validate()

            self._config = newConfig
            self._context.solver.updateConfig(newConfig)
            self._context.boundary = BoundaryHandler.fromConfig(newConfig)
            if 'timeStep' in changes:
                self._baseTimeStep = float(newConfig.timeStep)
                self._dt = self._baseTimeStep

            logger.info('Configuration updated: %s', ', '.join(sorted(changes)))
            return newConfig

    ######################################################################
    # -- Stepping -- #
    ######################################################################

    def step(self) -> SimulationState | None:
        '''
        Advance one tick, honoring the run state.

        Returns:
        --------
        SimulationState | None : Diagnostics after the tick, or None if
            paused with no single step pending
        '''
        with self._stepLock:
            self._requireOpen()
            if self._runState is RunState.PAUSED:
                if not self._stepRequested:
                    return None
                self._stepRequested = False

            self._runPipeline(self._dt)
            self._publishSnapshot()
            return self.currentState

    def run(self, nSteps: int) -> list[SimulationState]:
        '''Run nSteps ticks (fewer if paused); returns the states produced.'''
        states = []
        for _ in range(nSteps):
            state = self.step()
            if state is not None:
                states.append(state)
        return states

    def _runPipeline(self, dt: float) -> None:
        ctx = self._context
        p = self._particles

        ctx.solver.beginStep(p, dt)
        ctx.neighborSearch.build(ctx.solver.indexPositions(p))
        ctx.candidates = ctx.neighborSearch.candidateList()
        ctx.solver.solve(p, ctx.candidates, dt)
        ctx.solver.integrate(p, dt)
        ctx.boundary.enforceBoundary(p)

        self._time += dt
        self._stepCount += 1

    def _requireOpen(self) -> None:
        if self._context is None:
            raise RuntimeError('Fluid engine is closed')

    ######################################################################
    # -- Snapshots -- #
    ######################################################################

    def _copyRecords(self) -> np.ndarray:
        snapshot = self._particles.records.copy()
        snapshot.flags.writeable = False
        return snapshot

    def _publishSnapshot(self) -> None:
        snapshot = self._copyRecords()
        with self._snapshotLock:
            self._snapshot = snapshot

    def snapshot(self) -> np.ndarray:
        '''Read-only copy of the particle records after the last tick.'''
        with self._snapshotLock:
            return self._snapshot

    ######################################################################
    # -- Lifetime -- #
    ######################################################################

    def close(self) -> None:
        '''Release all compute buffers and the thread pool.'''
        with self._stepLock:
            if self._context is None:
                return
            self._context.release()
            self._context = None
            logger.info('Fluid engine released after %d steps', self._stepCount)

    def __enter__(self) -> FluidEngine:
        return self

    def __exit__(self, *exc) -> None:
        self.close()
