# -- SPH Smoothing Kernels -- #

'''
Smoothing kernel functions for 3D SPH and PBF.

Implements the three kernels of Mueller et al. (2003):

- Poly6: density interpolation. Depends only on r^2, so no square
  root is needed in the density pass.
- Spiky: pressure gradient. Its gradient does not vanish at r -> 0,
  which keeps close particles from clustering.
- Viscosity: its Laplacian is positive everywhere inside the
  support, so viscous forces only ever damp relative velocity.

All kernels have compact support h (the smoothing radius) and are
normalized over a 3D ball of radius h.

References:
-----------
Mueller, Charypar & Gross (2003) -- Particle-based fluid simulation
    for interactive applications

Sean Bowman [10/17/2026]
'''

from __future__ import annotations

import math
from typing import Protocol

import numpy as np

from ParticleFluids import constants as const


######################################################################
# -- Kernel Protocol -- #
######################################################################

class SphKernel(Protocol):
    '''Protocol for SPH smoothing kernel functions.'''

    def evaluate(self, r: float, h: float) -> float:
        '''
        Evaluate kernel W(r, h).

        Parameters:
        -----------
        r : float
            Distance between particles [m]
        h : float
            Smoothing radius [m]

        Returns:
        --------
        float : Kernel value [1/m^3]
        '''
        ...

    def evaluateBatch(self, distances: np.ndarray, h: float) -> np.ndarray:
        '''Evaluate W(r, h) for an array of distances.'''
        ...


######################################################################
# -- Poly6 Kernel -- #
######################################################################

class Poly6Kernel:
    '''
    Poly6 density kernel.

    W(r, h) = 315 / (64 * pi * h^9) * (h^2 - r^2)^3    for 0 <= r < h
              0                                        otherwise
    '''

    def coefficient(self, h: float) -> float:
        '''Normalization constant 315 / (64 pi h^9).'''
        return 315.0 / (64.0 * math.pi * h ** 9)

    def evaluate(self, r: float, h: float) -> float:
        '''
        Evaluate W_poly6(r, h).

        Parameters:
        -----------
        r : float
            Distance between particles [m]
        h : float
            Smoothing radius [m]

        Returns:
        --------
        float : Kernel value [1/m^3]
        '''
        if r < 0.0 or r >= h:
            return 0.0
        diff = h * h - r * r
        return self.coefficient(h) * diff * diff * diff

    def evaluateBatch(self, distances: np.ndarray, h: float) -> np.ndarray:
        '''
        Evaluate W_poly6 for an array of distances.

        Parameters:
        -----------
        distances : np.ndarray
            Distances [m], shape (N,)
        h : float
            Smoothing radius [m]

        Returns:
        --------
        np.ndarray : Kernel values, shape (N,)
        '''
        diff = np.maximum(h * h - distances * distances, 0.0)
        result = self.coefficient(h) * diff * diff * diff
        result[distances >= h] = 0.0
        return result


######################################################################
# -- Spiky Kernel -- #
######################################################################

class SpikyKernel:
    '''
    Spiky pressure kernel.

    W(r, h)      = 15 / (pi * h^6) * (h - r)^3                for 0 <= r < h
    dW/dr (r, h) = -45 / (pi * h^6) * (h - r)^2

    The full gradient is grad_W = (dW/dr) * rVec / |rVec| with
    rVec = r_i - r_j, so it points from particle i toward particle j.
    '''

    def coefficient(self, h: float) -> float:
        '''Normalization constant 15 / (pi h^6).'''
        return 15.0 / (math.pi * h ** 6)

    def gradientCoefficient(self, h: float) -> float:
        '''Gradient constant -45 / (pi h^6).'''
        return -45.0 / (math.pi * h ** 6)

    def evaluate(self, r: float, h: float) -> float:
        '''Evaluate W_spiky(r, h).'''
        if r < 0.0 or r >= h:
            return 0.0
        diff = h - r
        return self.coefficient(h) * diff * diff * diff

    def evaluateBatch(self, distances: np.ndarray, h: float) -> np.ndarray:
        '''Evaluate W_spiky for an array of distances.'''
        diff = np.maximum(h - distances, 0.0)
        return self.coefficient(h) * diff * diff * diff

    def gradientMagnitude(self, r: float, h: float) -> float:
        '''
        Compute the scalar part of the kernel gradient: dW/dr.

        Parameters:
        -----------
        r : float
            Distance between particles [m]
        h : float
            Smoothing radius [m]

        Returns:
        --------
        float : dW/dr [1/m^4] (non-positive)
        '''
        if r < const.minDistance or r >= h:
            return 0.0
        diff = h - r
        return self.gradientCoefficient(h) * diff * diff

    def gradient(self, rVec: np.ndarray, r: float, h: float) -> np.ndarray:
        '''
        Evaluate kernel gradient vector grad_W.

        Parameters:
        -----------
        rVec : np.ndarray
            Vector from particle j to particle i (r_i - r_j) [m]
        r : float
            Distance |rVec| [m]
        h : float
            Smoothing radius [m]

        Returns:
        --------
        np.ndarray : Gradient vector [1/m^4]
        '''
        if r < const.minDistance:
            return np.zeros_like(rVec)
        return self.gradientMagnitude(r, h) * rVec / r

    def gradientMagnitudeBatch(self, distances: np.ndarray, h: float) -> np.ndarray:
        '''Compute dW/dr for an array of distances (zero outside (0, h)).'''
        diff = np.maximum(h - distances, 0.0)
        result = self.gradientCoefficient(h) * diff * diff
        result[distances < const.minDistance] = 0.0
        return result

    def gradientBatch(
        self, drVecs: np.ndarray, distances: np.ndarray, h: float
    ) -> np.ndarray:
        '''
        Evaluate kernel gradient vectors for an array of particle pairs.

        grad_W_k = (dW/dr)_k * (dr_k / |dr_k|)

        Parameters:
        -----------
        drVecs : np.ndarray
            Displacement vectors r_i - r_j, shape (N, 3)
        distances : np.ndarray
            Distances |dr|, shape (N,)
        h : float
            Smoothing radius [m]

        Returns:
        --------
        np.ndarray : Gradient vectors, shape (N, 3)
        '''
        dwdr = self.gradientMagnitudeBatch(distances, h)

        # Coincident pairs have dwdr = 0; any finite divisor works
        safeDistances = np.where(distances > const.minDistance, distances, 1.0)
        return (dwdr / safeDistances)[:, np.newaxis] * drVecs


######################################################################
# -- Viscosity Kernel -- #
######################################################################

class ViscosityKernel:
    '''
    Viscosity kernel.

    W(r, h) = 15 / (2 pi h^3) * (-r^3 / (2 h^3) + r^2 / h^2 + h / (2 r) - 1)
    lap_W(r, h) = 45 / (pi * h^6) * (h - r)                  for 0 <= r < h
    '''

    def coefficient(self, h: float) -> float:
        '''Normalization constant 15 / (2 pi h^3).'''
        return 15.0 / (2.0 * math.pi * h ** 3)

    def laplacianCoefficient(self, h: float) -> float:
        '''Laplacian constant 45 / (pi h^6).'''
        return 45.0 / (math.pi * h ** 6)

    def evaluate(self, r: float, h: float) -> float:
        '''Evaluate W_viscosity(r, h); singular at r = 0, so r is floored.'''
        if r >= h:
            return 0.0
        r = max(r, const.minDistance)
        q = r / h
        return self.coefficient(h) * (-0.5 * q ** 3 + q * q + 0.5 / q - 1.0)

    def evaluateBatch(self, distances: np.ndarray, h: float) -> np.ndarray:
        '''Evaluate W_viscosity for an array of distances.'''
        q = np.maximum(distances, const.minDistance) / h
        result = self.coefficient(h) * (-0.5 * q ** 3 + q * q + 0.5 / q - 1.0)
        result[distances >= h] = 0.0
        return result

    def laplacian(self, r: float, h: float) -> float:
        '''Evaluate the Laplacian of W_viscosity at distance r.'''
        if r < 0.0 or r >= h:
            return 0.0
        return self.laplacianCoefficient(h) * (h - r)

    def laplacianBatch(self, distances: np.ndarray, h: float) -> np.ndarray:
        '''
        Evaluate the viscosity Laplacian for an array of distances.

        Parameters:
        -----------
        distances : np.ndarray
            Distances [m], shape (N,)
        h : float
            Smoothing radius [m]

        Returns:
        --------
        np.ndarray : Laplacian values [1/m^5], shape (N,)
        '''
        return self.laplacianCoefficient(h) * np.maximum(h - distances, 0.0)
