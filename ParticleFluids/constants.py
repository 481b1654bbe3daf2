# -- Default Constants for Particle Fluid Simulation -- #

'''
Physical and numerical defaults for the SPH / PBF particle engine.
All values in SI units unless otherwise noted.

The fluid parameter set follows Mueller et al. (2003), which keeps
the explicit SPH solver stable at interactive time steps with a few
thousand particles.

References:
-----------
Mueller, Charypar & Gross (2003) -- Particle-based fluid simulation
    for interactive applications
Macklin & Mueller (2013) -- Position based fluids
Teschner et al. (2003) -- Optimized spatial hashing for collision
    detection of deformable objects

Sean Bowman [10/17/2026]
'''

#--------------------------------------------------------------------#
# -- Fluid Properties -- #
#--------------------------------------------------------------------#

# Rest density of water [kg/m^3]
restDensity: float = 1000.0

# Mass of a single particle [kg]
particleMass: float = 0.02

# Gas (stiffness) constant k in p = k * (rho - rho_0)
stiffness: float = 3.0

# Viscosity coefficient mu
viscosity: float = 3.5

# Gravitational acceleration vector [m/s^2], y is up
gravity: tuple[float, float, float] = (0.0, -9.81, 0.0)

#--------------------------------------------------------------------#
# -- SPH Numerical Parameters -- #
#--------------------------------------------------------------------#

# Smoothing radius h [m]; also the spatial hash cell size
smoothingRadius: float = 0.0457

# Fixed simulation tick [s]
timeStep: float = 0.005

# Fraction of the normal velocity kept after a wall hit (0 - 1)
boundaryDamping: float = 0.3

# Collision radius of a particle against walls [m]
particleRadius: float = 0.005

#--------------------------------------------------------------------#
# -- PBF Solver Parameters -- #
#--------------------------------------------------------------------#

# Constraint iterations per tick (typically 2 - 10)
solverIterations: int = 4

# Relaxation epsilon added to the lambda denominator
constraintEpsilon: float = 100.0

# Tensile instability correction (s_corr); k = 0 disables it
tensileK: float = 0.0
tensileDeltaQ: float = 0.2
tensileExponent: int = 4

#--------------------------------------------------------------------#
# -- Domain and Spawning -- #
#--------------------------------------------------------------------#

particleCount: int = 4096

domainMin: tuple[float, float, float] = (-0.3, 0.0, -0.3)
domainMax: tuple[float, float, float] = (0.3, 0.6, 0.3)

spawnMin: tuple[float, float, float] = (-0.28, 0.02, -0.28)
spawnMax: tuple[float, float, float] = (0.05, 0.58, 0.28)

# Random offset applied to jittered-grid spawns, as a fraction of spacing
spawnJitter: float = 0.2

seed: int = 0

#--------------------------------------------------------------------#
# -- Neighbor Search and Dispatch -- #
#--------------------------------------------------------------------#

# Particles per dispatched work group (matches a 256-thread GPU group)
workGroupSize: int = 256

# Large primes for the 3D cell hash (Teschner et al. 2003)
hashPrimes: tuple[int, int, int] = (73856093, 19349663, 83492791)

# Cell id marking padded sort entries; sorts after every real cell
sentinelCellId: int = 0xFFFFFFFF

# Distances below this are treated as coincident particles [m]
minDistance: float = 1e-12
