# -- Export Package -- #

'''
Data export utilities for simulation results.

Exports frame snapshots and diagnostics as JSON, and renders the
diagnostics history as a Plotly figure.

Sean Bowman [10/17/2026]
'''

from ParticleFluids.export.frameExporter import FrameExporter
from ParticleFluids.export.diagnosticsPlot import createDiagnosticsFigure
