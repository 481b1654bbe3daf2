# -- Simulation Frame Exporter -- #

'''
Exports particle snapshots and diagnostics as JSON.

Collects published engine snapshots during a run and writes them,
together with the per-step diagnostics history and the run
configuration, to one JSON file for offline viewing.

Sean Bowman [10/17/2026]
'''

from __future__ import annotations

import json
import os
from datetime import datetime

import numpy as np

from ParticleFluids.sph.protocols import SimulationConfig, SimulationState


class FrameExporter:
    '''
    Collects and exports simulation frame data as JSON.

    Usage:
        exporter = FrameExporter()
        # During the run:
        exporter.addFrame(state, engine.snapshot())
        exporter.addState(state)
        # After the run:
        exporter.export(config, outputDir='output')

    Output JSON format:
    {
        "meta": { "type": "particleFluids", "nFrames": 10, "created": "...", ... },
        "config": { "particleCount": 4096, ... },
        "frames": [
            {
                "time": 0.0,
                "step": 0,
                "positions": [[x0, y0, z0], ...],
                "speeds": [v0, ...],
                "densities": [rho0, ...],
                "pressures": [p0, ...]
            },
            ...
        ],
        "diagnostics": {
            "times": [...], "steps": [...], "kinetic": [...], "momentum": [...],
            "maxVelocity": [...], "maxDensityError": [...], "meanDensity": [...]
        }
    }
    '''

    def __init__(self) -> None:
        self._frames: list[dict] = []
        self._history: dict[str, list[float]] = {
            'times': [],
            'steps': [],
            'kinetic': [],
            'momentum': [],
            'maxVelocity': [],
            'maxDensityError': [],
            'meanDensity': [],
        }

    @property
    def nFrames(self) -> int:
        '''Number of collected frames.'''
        return len(self._frames)

    @property
    def frames(self) -> list[dict]:
        return self._frames

    @property
    def history(self) -> dict[str, list[float]]:
        '''Diagnostics history, one entry per recorded state.'''
        return self._history

    def addFrame(self, state: SimulationState, snapshot: np.ndarray) -> None:
        '''
        Record a particle snapshot.

        Parameters:
        -----------
        state : SimulationState
            Diagnostics of the snapshot's step
        snapshot : np.ndarray
            Particle records (PARTICLE_DTYPE) published by the engine
        '''
        speeds = np.linalg.norm(snapshot['velocity'].astype(np.float64), axis=1)

        frame = {
            'time': round(state.time, 6),
            'step': state.step,
            'positions': np.round(snapshot['position'].astype(np.float64), 6).tolist(),
            'speeds': np.round(speeds, 6).tolist(),
            'densities': np.round(snapshot['density'].astype(np.float64), 3).tolist(),
            'pressures': np.round(snapshot['pressure'].astype(np.float64), 3).tolist(),
        }
        self._frames.append(frame)

    def addState(self, state: SimulationState) -> None:
        '''Append one step's diagnostics to the history.'''
        self._history['times'].append(round(state.time, 6))
        self._history['steps'].append(state.step)
        self._history['kinetic'].append(state.kineticEnergy)
        self._history['momentum'].append(state.momentum)
        self._history['maxVelocity'].append(state.maxVelocity)
        self._history['maxDensityError'].append(state.maxDensityError)
        self._history['meanDensity'].append(state.meanDensity)

    def export(
        self,
        config: SimulationConfig,
        outputDir: str = 'output',
        scenarioName: str = 'damBreak',
    ) -> str:
        '''
        Write all collected frames to a JSON file.

        Parameters:
        -----------
        config : SimulationConfig
            Simulation configuration for metadata
        outputDir : str
            Output directory path
        scenarioName : str
            Scenario name for the filename

        Returns:
        --------
        str : Path to the exported JSON file
        '''
        os.makedirs(outputDir, exist_ok=True)

        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        filename = f'particleFluids_{scenarioName}_{config.solverMode}_{timestamp}.json'
        filepath = os.path.join(outputDir, filename)

        output = {
            'meta': {
                'type': 'particleFluids',
                'solverMode': config.solverMode,
                'nFrames': len(self._frames),
                'nParticles': int(config.particleCount),
                'created': datetime.now().isoformat(),
            },
            'config': config.toDict(),
            'frames': self._frames,
            'diagnostics': self._history,
        }

        with open(filepath, 'w') as f:
            json.dump(output, f, indent=None, separators=(',', ':'))

        return filepath
