# -- Diagnostics Figure -- #

'''
Plotly figure of a run's diagnostics history.

Four panels over simulation time: kinetic energy, total momentum,
maximum speed, and maximum relative density error.

Sean Bowman [10/17/2026]
'''

from __future__ import annotations

import os

import plotly.graph_objects as go
from plotly.subplots import make_subplots

TEMPLATE = 'plotly_dark'
BLUE = '#42A5F5'
RED = '#EF5350'
GREEN = '#66BB6A'
ORANGE = '#FFA726'


def createDiagnosticsFigure(history: dict[str, list[float]], title: str = 'ParticleFluids') -> go.Figure:
    '''
    Create a 4-panel diagnostics figure.

    Layout:
        Row 1: Kinetic Energy  |  Momentum
        Row 2: Max Speed       |  Max Density Error

    Parameters:
    -----------
    history : dict[str, list[float]]
        Diagnostics history as collected by FrameExporter.history
    title : str
        Figure title

    Returns:
    --------
    go.Figure : Plotly figure with 4 subplots
    '''
    times = history['times']

    fig = make_subplots(
        rows=2, cols=2,
        subplot_titles=(
            'Kinetic Energy', 'Momentum',
            'Max Speed', 'Max Density Error',
        ),
        vertical_spacing=0.12,
        horizontal_spacing=0.08,
    )

    panels = [
        (1, 1, 'kinetic', 'KE (J)', BLUE),
        (1, 2, 'momentum', '|P| (kg m/s)', GREEN),
        (2, 1, 'maxVelocity', 'Speed (m/s)', ORANGE),
        (2, 2, 'maxDensityError', 'Error (%)', RED),
    ]
    for row, col, key, label, color in panels:
        values = history[key]
        if key == 'maxDensityError':
            values = [100.0 * v for v in values]
        fig.add_trace(
            go.Scatter(x=times, y=values, mode='lines', name=label, line=dict(color=color)),
            row=row, col=col,
        )
        fig.update_xaxes(title_text='Time (s)', row=row, col=col)
        fig.update_yaxes(title_text=label, row=row, col=col)

    fig.update_layout(
        title=title,
        template=TEMPLATE,
        height=700,
        showlegend=False,
    )

    return fig


def saveDiagnosticsFigure(fig: go.Figure, outputDir: str, name: str) -> str:
    '''Write the figure as standalone HTML; returns the file path.'''
    os.makedirs(outputDir, exist_ok=True)
    filepath = os.path.join(outputDir, f'{name}_diagnostics.html')
    fig.write_html(filepath)
    return filepath
