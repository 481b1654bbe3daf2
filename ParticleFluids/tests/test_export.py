# -- Export and Runner Tests -- #

'''
Frame export, diagnostics figure and the command-line runner.

Sean Bowman [10/17/2026]
'''

import json

from ParticleFluids.export.diagnosticsPlot import createDiagnosticsFigure, saveDiagnosticsFigure
from ParticleFluids.export.frameExporter import FrameExporter
from ParticleFluids.runner import ParticleFluidsRunner, buildParser, main
from ParticleFluids.sph.fluidEngine import FluidEngine

from ParticleFluids.tests.conftest import makeUnitConfig


def recordRun(config, nSteps: int) -> FrameExporter:
    exporter = FrameExporter()
    with FluidEngine(config) as engine:
        exporter.addFrame(engine.currentState, engine.snapshot())
        exporter.addState(engine.currentState)
        for state in engine.run(nSteps):
            exporter.addState(state)
        exporter.addFrame(engine.currentState, engine.snapshot())
    return exporter


def testExportWritesJson(tmp_path):
    config = makeUnitConfig(gravity=(0.0, -9.81, 0.0))
    exporter = recordRun(config, 3)
    path = exporter.export(config, outputDir=str(tmp_path), scenarioName='unit')

    with open(path) as f:
        data = json.load(f)

    assert data['meta']['type'] == 'particleFluids'
    assert data['meta']['nFrames'] == 2
    assert data['meta']['nParticles'] == 64
    assert data['config']['solverMode'] == 'sph'

    frame = data['frames'][-1]
    assert frame['step'] == 3
    assert len(frame['positions']) == 64
    assert len(frame['speeds']) == 64
    assert len(frame['densities']) == 64
    assert data['diagnostics']['steps'] == [0, 1, 2, 3]


def testDiagnosticsFigure(tmp_path):
    exporter = recordRun(makeUnitConfig(), 2)
    fig = createDiagnosticsFigure(exporter.history, title='unit')

    assert len(fig.data) == 4
    assert list(fig.data[0].x) == exporter.history['times']

    path = saveDiagnosticsFigure(fig, str(tmp_path), 'unit')
    assert path.endswith('unit_diagnostics.html')
    assert (tmp_path / 'unit_diagnostics.html').exists()


def testRunnerSummary(tmp_path):
    config = makeUnitConfig(solverMode='pbf')
    result = ParticleFluidsRunner().run(
        config, nSteps=4, outputInterval=2, doExport=True, exportDir=str(tmp_path), scenarioName='unit',
    )

    assert result['finalState'].step == 4
    # Initial frame plus steps 2 and 4
    assert result['nFrames'] == 3
    assert result['exportPath'] is not None
    assert result['figurePath'] is None


def testParserDefaults():
    args = buildParser().parse_args([])
    assert args.scenario == 'damBreak'
    assert args.preset == 'small'
    assert args.mode is None
    assert not args.no_export


def testMainWritesOutputs(tmp_path):
    main([
        '--steps', '2', '--strategy', 'spatialHash',
        '--output-dir', str(tmp_path), '--plot',
    ])

    written = sorted(p.name for p in tmp_path.iterdir())
    assert any(name.startswith('particleFluids_damBreak_sph') and name.endswith('.json') for name in written)
    assert 'damBreak_sph_diagnostics.html' in written
