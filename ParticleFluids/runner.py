# -- Particle Fluids Runner -- #

'''
Command-line entry point for running particle fluid simulations.

Builds the scenario configuration (or loads a JSON config), runs the
engine for a number of ticks, prints a progress table, and optionally
exports frame data and a diagnostics figure.

Usage:
    python -m ParticleFluids                                  # Small SPH dam break
    python -m ParticleFluids --preset standard --mode pbf     # Standard PBF dam break
    python -m ParticleFluids --scenario sphereDrop
    python -m ParticleFluids --config configs/damBreak_sph.json
    python -m ParticleFluids --backend threaded --strategy spatialHash --no-export

Sean Bowman [10/17/2026]
'''

from __future__ import annotations

import argparse
import logging
import time as timeModule

from tqdm import tqdm

from ParticleFluids.sph.protocols import SimulationConfig
from ParticleFluids.sph.fluidEngine import FluidEngine
from ParticleFluids.scenarios.damBreak import (
    DamBreakConfig,
    SphereDropConfig,
    createDamBreak,
    createSphereDrop,
)
from ParticleFluids.export.frameExporter import FrameExporter
from ParticleFluids.export.diagnosticsPlot import createDiagnosticsFigure, saveDiagnosticsFigure


#--------------------------------------------------------------------#
# -- CLI Argument Parser -- #
#--------------------------------------------------------------------#

def buildParser() -> argparse.ArgumentParser:
    '''Build the CLI argument parser.'''
    parser = argparse.ArgumentParser(
        description='ParticleFluids -- SPH / PBF particle fluid simulation',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        '--config', type=str, default=None,
        help='Path to JSON configuration file',
    )
    parser.add_argument(
        '--scenario', type=str, default='damBreak',
        choices=['damBreak', 'sphereDrop'],
        help='Simulation scenario (default: damBreak)',
    )
    parser.add_argument(
        '--preset', type=str, default='small',
        choices=['small', 'standard'],
        help='Scenario preset (default: small)',
    )
    parser.add_argument(
        '--mode', type=str, default=None, choices=['sph', 'pbf'],
        help='Solver mode (overrides scenario / config)',
    )
    parser.add_argument(
        '--strategy', type=str, default=None, choices=['bitonicSort', 'spatialHash'],
        help='Neighbor search strategy (overrides scenario / config)',
    )
    parser.add_argument(
        '--backend', type=str, default=None, choices=['serial', 'threaded'],
        help='Kernel dispatch backend (overrides scenario / config)',
    )
    parser.add_argument(
        '--steps', type=int, default=None,
        help='Number of ticks to run (default: scenario preset)',
    )
    parser.add_argument(
        '--no-export', action='store_true',
        help='Skip frame data export',
    )
    parser.add_argument(
        '--output-dir', type=str, default='output',
        help='Output directory for exported frames (default: output)',
    )
    parser.add_argument(
        '--plot', action='store_true',
        help='Write a Plotly diagnostics figure next to the frame export',
    )
    parser.add_argument(
        '--verbose', action='store_true',
        help='Log engine events at DEBUG level',
    )

    return parser


#--------------------------------------------------------------------#
# -- Runner Class -- #
#--------------------------------------------------------------------#

class ParticleFluidsRunner:
    '''
    Runs a particle fluid simulation and stores results.

    Handles the full pipeline: engine setup, simulation loop with
    progress reporting, and optional frame / figure export.
    '''

    def __init__(self) -> None:
        self._exporter: FrameExporter = FrameExporter()

    @property
    def exporter(self) -> FrameExporter:
        return self._exporter

    def run(
        self,
        simConfig: SimulationConfig,
        nSteps: int,
        outputInterval: int = 10,
        doExport: bool = True,
        exportDir: str = 'output',
        scenarioName: str = 'damBreak',
        plot: bool = False,
    ) -> dict:
        '''
        Run a simulation for nSteps ticks.

        Parameters:
        -----------
        simConfig : SimulationConfig
            Simulation configuration
        nSteps : int
            Number of ticks
        outputInterval : int
            Ticks between recorded frames
        doExport : bool
            Whether to export frame data
        exportDir : str
            Output directory for exports
        scenarioName : str
            Scenario name used in titles and file names
        plot : bool
            Whether to write the diagnostics figure

        Returns:
        --------
        dict : Simulation results summary
        '''
        print()
        print('=' * 62)
        print(f'  PARTICLEFLUIDS -- {simConfig.solverMode.upper()} {scenarioName.upper()}')
        print('=' * 62)
        print()

        #--------------------------------------------------------------------#
        # Engine Setup
        #--------------------------------------------------------------------#
        print('-' * 62)
        print('  ENGINE SETUP')
        print('-' * 62)

        engine = FluidEngine(simConfig)

        print(f'  Particles:         {simConfig.particleCount:8d}')
        print(f'  Solver Mode:       {simConfig.solverMode:>8s}')
        print(f'  Neighbor Search:   {simConfig.neighborStrategy:>12s}')
        print(f'  Backend:           {simConfig.backend:>8s}')
        print(f'  Smoothing Radius:  {simConfig.smoothingRadius:8.4f} m')
        print(f'  Spawn Spacing:     {simConfig.resolvedSpawnSpacing:8.4f} m')
        print(f'  Time Step:         {simConfig.timeStep:8.4f} s')
        if simConfig.solverMode == 'pbf':
            print(f'  Solver Iterations: {simConfig.solverIterations:8d}')
        if simConfig.neighborStrategy == 'bitonicSort':
            print(f'  Sort Buffer:       {simConfig.sortBufferSize:8d}')
        print(f'  Ticks:             {nSteps:8d}')
        print()

        initialState = engine.currentState
        self._exporter.addFrame(initialState, engine.snapshot())
        self._exporter.addState(initialState)

        #--------------------------------------------------------------------#
        # Simulation Loop
        #--------------------------------------------------------------------#
        print('-' * 62)
        print('  RUNNING SIMULATION')
        print('-' * 62)
        print()
        print(f'  {"Time":>8}  {"Step":>8}  {"MaxVel":>8}  {"DensErr":>8}  {"MeanRho":>9}  {"KE":>10}')
        print(f'  {"(s)":>8}  {"":>8}  {"(m/s)":>8}  {"(%)":>8}  {"(kg/m3)":>9}  {"(J)":>10}')
        print('  ' + '-' * 58)

        printInterval = max(1, nSteps // 20)
        wallClockStart = timeModule.time()

        with engine:
            for _ in tqdm(range(nSteps), desc='  Simulating', unit='step', leave=False):
                state = engine.step()
                self._exporter.addState(state)

                if state.step % outputInterval == 0:
                    self._exporter.addFrame(state, engine.snapshot())

                if state.step % printInterval == 0:
                    tqdm.write(
                        f'  {state.time:8.4f}  {state.step:8d}  {state.maxVelocity:8.4f}  '
                        f'{state.maxDensityError * 100:8.3f}  {state.meanDensity:9.2f}  '
                        f'{state.kineticEnergy:10.6f}'
                    )

            finalState = engine.currentState
            if finalState.step % outputInterval != 0:
                self._exporter.addFrame(finalState, engine.snapshot())

        wallClockSeconds = timeModule.time() - wallClockStart

        print()
        print(f'  Simulation complete.')
        print(f'  Total steps:       {finalState.step:8d}')
        print(f'  Wall-clock time:   {wallClockSeconds:8.1f} s')
        print(f'  Frames recorded:   {self._exporter.nFrames:8d}')
        print()

        #--------------------------------------------------------------------#
        # Export
        #--------------------------------------------------------------------#
        exportPath = None
        figurePath = None
        if doExport or plot:
            print('-' * 62)
            print('  EXPORTING')
            print('-' * 62)

            if doExport:
                exportPath = self._exporter.export(
                    config=simConfig,
                    outputDir=exportDir,
                    scenarioName=scenarioName,
                )
                print(f'  Frames:  {exportPath}')

            if plot:
                fig = createDiagnosticsFigure(
                    self._exporter.history,
                    title=f'ParticleFluids -- {scenarioName} ({simConfig.solverMode.upper()})',
                )
                figurePath = saveDiagnosticsFigure(fig, exportDir, f'{scenarioName}_{simConfig.solverMode}')
                print(f'  Figure:  {figurePath}')
            print()

        #--------------------------------------------------------------------#
        # Summary
        #--------------------------------------------------------------------#
        print('=' * 62)
        print('  SIMULATION SUMMARY')
        print('=' * 62)
        print(f'  Final KE:          {finalState.kineticEnergy:10.6f} J')
        print(f'  Final Momentum:    {finalState.momentum:10.6f} kg m/s')
        print(f'  Mean Density:      {finalState.meanDensity:10.2f} kg/m^3')
        print(f'  Max Density Error: {finalState.maxDensityError * 100:8.3f} %')
        print(f'  Max Velocity:      {finalState.maxVelocity:8.4f} m/s')
        print('=' * 62)
        print()

        return {
            'finalState': finalState,
            'wallClockSeconds': wallClockSeconds,
            'nFrames': self._exporter.nFrames,
            'exportPath': exportPath,
            'figurePath': figurePath,
        }


#--------------------------------------------------------------------#
# -- CLI Entry Point -- #
#--------------------------------------------------------------------#

def main(argv: list[str] | None = None) -> None:
    '''CLI entry point.'''
    parser = buildParser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s %(levelname)-7s %(name)s: %(message)s',
    )

    scenarioPresets = {
        'damBreak': {'small': DamBreakConfig.small, 'standard': DamBreakConfig.standard},
        'sphereDrop': {'small': SphereDropConfig.small, 'standard': SphereDropConfig.standard},
    }
    scenario = scenarioPresets[args.scenario][args.preset]()

    if args.config:
        simConfig = SimulationConfig.fromJson(args.config)
        scenarioName = 'config'
    elif args.scenario == 'sphereDrop':
        simConfig = createSphereDrop(scenario)
        scenarioName = 'sphereDrop'
    else:
        simConfig = createDamBreak(scenario)
        scenarioName = 'damBreak'

    overrides = {}
    if args.mode:
        overrides['solverMode'] = args.mode
    if args.strategy:
        overrides['neighborStrategy'] = args.strategy
    if args.backend:
        overrides['backend'] = args.backend
    if overrides:
        simConfig = simConfig.replace(**overrides)

    runner = ParticleFluidsRunner()
    runner.run(
        simConfig,
        nSteps=args.steps if args.steps is not None else scenario.nSteps,
        outputInterval=scenario.outputInterval,
        doExport=not args.no_export,
        exportDir=args.output_dir,
        scenarioName=scenarioName,
        plot=args.plot,
    )


if __name__ == '__main__':
    main()
