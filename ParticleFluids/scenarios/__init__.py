# -- Simulation Scenarios Package -- #

'''
Pre-configured simulation scenarios.

Each scenario builds a SimulationConfig (domain, spawn region,
solver settings) for a specific problem.

Sean Bowman [10/17/2026]
'''

from ParticleFluids.scenarios.damBreak import (
    DamBreakConfig,
    SphereDropConfig,
    createDamBreak,
    createSphereDrop,
)
