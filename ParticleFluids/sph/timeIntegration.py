# -- Time Integration Schemes -- #

'''
Time integration for the two solver modes.

SPH mode uses the symplectic (semi-implicit) Euler scheme: the
velocity is kicked first and the drift uses the updated velocity,
which keeps long runs free of artificial energy drift.

PBF mode has no force stage; positions are solved directly and the
velocity is recovered from the position change over the step.

References:
-----------
Hairer et al. (2003) -- Geometric Numerical Integration
Macklin & Mueller (2013) -- Position based fluids

Sean Bowman [10/17/2026]
'''

from __future__ import annotations

from typing import Protocol

import numpy as np

from ParticleFluids.sph.particles import ParticleSystem


######################################################################
# -- Time Integrator Protocol -- #
######################################################################

class TimeIntegrator(Protocol):
    '''Protocol for time integration schemes.'''

    def integrate(self, particles: ParticleSystem, dt: float) -> None:
        '''
        Advance all particles by one time step.

        Parameters:
        -----------
        particles : ParticleSystem
            Particle store to advance
        dt : float
            Time step size [s]
        '''
        ...


######################################################################
# -- Symplectic Euler Integrator -- #
######################################################################

class SymplecticEuler:
    '''
    Symplectic (semi-implicit) Euler integrator on force densities.

    Update sequence:
        a      = f / rho                (force density to acceleration)
        v(t+dt) = v(t) + a * dt         (kick)
        x(t+dt) = x(t) + v(t+dt) * dt   (drift)

    Particles with zero density receive no acceleration.
    '''

    def integrate(self, particles: ParticleSystem, dt: float) -> None:
        densities = particles.densities.astype(np.float64)
        safeDensities = np.where(densities > 0.0, densities, 1.0)
        accelerations = particles.forces.astype(np.float64) / safeDensities[:, np.newaxis]
        accelerations[densities <= 0.0] = 0.0

        # Kick, then drift with the new velocity
        velocities = particles.velocities.astype(np.float64) + accelerations * dt
        particles.velocities = velocities
        particles.positions = particles.positions.astype(np.float64) + velocities * dt


######################################################################
# -- Position Based Update -- #
######################################################################

class PositionBasedUpdate:
    '''
    Finalize a position-based step.

        v = (x_predicted - x) / dt
        x = x_predicted
    '''

    def integrate(self, particles: ParticleSystem, dt: float) -> None:
        predicted = particles.predictedPositions.astype(np.float64)
        particles.velocities = (predicted - particles.positions.astype(np.float64)) / dt
        particles.positions = predicted
