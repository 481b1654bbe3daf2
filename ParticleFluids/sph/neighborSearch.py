# -- Neighbor Lists and Spatial Hash Grid -- #

'''
Neighbor candidate lists and the bucket spatial hash grid.

Both neighbor strategies (the sorted cell index in bitonicSort.py
and the bucket grid here) hand the solvers the same NeighborList:
a CSR layout where row i lists the candidate particles of particle
i, itself included. The sorted index takes candidates from the 27
cells around the particle's cell; the bucket grid hands over rows
already cut at the cell size. Either way every true neighbor
(distance < h) is present, and withinRadius() filters by distance
and caches the pair displacements and distances.

Per-particle sums are reduced over each particle's own row with
np.bincount, in row order. The result for a particle therefore does
not depend on how the rows are split into work groups.

References:
-----------
Ihmsen et al. (2011) -- Parallel Neighbor-Search for SPH
Green (2010) -- Particle Simulation using CUDA

Sean Bowman [10/17/2026]
'''

from __future__ import annotations

import itertools
from dataclasses import dataclass

import numpy as np


# Offsets of the 27-cell stencil around a cell
STENCIL_OFFSETS = np.array(list(itertools.product((-1, 0, 1), repeat=3)), dtype=np.int64)


######################################################################
# -- Neighbor List (CSR) -- #
######################################################################

@dataclass
class NeighborList:
    '''
    Per-particle neighbor rows in compressed sparse row layout.

    Parameters:
    -----------
    rowStart : np.ndarray
        Row offsets, shape (N + 1,); row i is neighbors[rowStart[i]:rowStart[i+1]]
    neighbors : np.ndarray
        Flat neighbor indices, shape (P,)
    displacements : np.ndarray | None
        Pair displacements r_i - r_j [m], shape (P, 3), after withinRadius
    distances : np.ndarray | None
        Pair distances |r_i - r_j| [m], shape (P,), after withinRadius
    '''

    rowStart: np.ndarray
    neighbors: np.ndarray
    displacements: np.ndarray | None = None
    distances: np.ndarray | None = None

    def __post_init__(self) -> None:
        self._rowIndices: np.ndarray | None = None

    @classmethod
    def fromRows(cls, rows: list[np.ndarray]) -> NeighborList:
        '''Build a list from one index array per particle.'''
        lengths = np.array([len(r) for r in rows], dtype=np.int64)
        rowStart = np.zeros(len(rows) + 1, dtype=np.int64)
        np.cumsum(lengths, out=rowStart[1:])
        if rows:
            neighbors = np.concatenate(rows).astype(np.int64)
        else:
            neighbors = np.zeros(0, dtype=np.int64)
        return cls(rowStart=rowStart, neighbors=neighbors)

    @classmethod
    def fromPairs(cls, nParticles: int, iIndices: np.ndarray, jIndices: np.ndarray) -> NeighborList:
        '''
        Build symmetric rows from unique (i, j) pairs.

        Each pair lands in both row i and row j, every particle gets
        its self entry, and every row is sorted by neighbor index.

        Parameters:
        -----------
        nParticles : int
            Number of rows
        iIndices, jIndices : np.ndarray
            Pair endpoints, shape (P,), each pair listed once

        Returns:
        --------
        NeighborList : Candidate rows (no cached geometry)
        '''
        selfIdx = np.arange(nParticles, dtype=np.int64)
        rows = np.concatenate([np.asarray(iIndices, dtype=np.int64), np.asarray(jIndices, dtype=np.int64), selfIdx])
        cols = np.concatenate([np.asarray(jIndices, dtype=np.int64), np.asarray(iIndices, dtype=np.int64), selfIdx])

        order = np.lexsort((cols, rows))
        rowStart = np.zeros(nParticles + 1, dtype=np.int64)
        np.cumsum(np.bincount(rows, minlength=nParticles), out=rowStart[1:])
        return cls(rowStart=rowStart, neighbors=cols[order])

    @property
    def nParticles(self) -> int:
        '''Number of rows.'''
        return self.rowStart.shape[0] - 1

    @property
    def nPairs(self) -> int:
        '''Total number of (i, j) entries, self pairs included.'''
        return self.neighbors.shape[0]

    def rowIndices(self) -> np.ndarray:
        '''Owning particle i of every entry, shape (P,).'''
        if self._rowIndices is None:
            self._rowIndices = np.repeat(
                np.arange(self.nParticles, dtype=np.int64), np.diff(self.rowStart)
            )
        return self._rowIndices

    def row(self, index: int) -> np.ndarray:
        '''Neighbor indices of one particle.'''
        return self.neighbors[self.rowStart[index]:self.rowStart[index + 1]]

    def counts(self) -> np.ndarray:
        '''Neighbor count per particle.'''
        return np.diff(self.rowStart)

    def pairSlice(self, start: int, stop: int) -> slice:
        '''Slice of the flat pair arrays owned by particles [start, stop).'''
        return slice(int(self.rowStart[start]), int(self.rowStart[stop]))

    def reduceRows(self, values: np.ndarray, start: int, stop: int) -> np.ndarray:
        '''
        Sum pair values into their owning particles for rows [start, stop).

        Parameters:
        -----------
        values : np.ndarray
            Per-pair values aligned with pairSlice(start, stop),
            shape (p,) or (p, k)
        start, stop : int
            Particle range

        Returns:
        --------
        np.ndarray : Row sums, shape (stop - start,) or (stop - start, k)
        '''
        localRows = self.rowIndices()[self.pairSlice(start, stop)] - start
        nRows = stop - start
        if values.ndim == 1:
            return np.bincount(localRows, weights=values, minlength=nRows)
        return np.column_stack([
            np.bincount(localRows, weights=values[:, k], minlength=nRows)
            for k in range(values.shape[1])
        ])

    def withinRadius(self, positions: np.ndarray, radius: float) -> NeighborList:
        '''
        Keep only candidates closer than radius, caching pair geometry.

        Parameters:
        -----------
        positions : np.ndarray
            Particle positions [m], shape (N, 3)
        radius : float
            Cutoff radius [m] (strict: |r_i - r_j| < radius)

        Returns:
        --------
        NeighborList : Filtered list with displacements and distances
        '''
        positions = np.asarray(positions, dtype=np.float64)
        rowIdx = self.rowIndices()
        displacements = positions[rowIdx] - positions[self.neighbors]
        distances = np.sqrt(np.sum(displacements * displacements, axis=1))

        keep = distances < radius
        keptRows = rowIdx[keep]
        rowStart = np.zeros(self.nParticles + 1, dtype=np.int64)
        np.cumsum(np.bincount(keptRows, minlength=self.nParticles), out=rowStart[1:])

        return NeighborList(
            rowStart=rowStart,
            neighbors=self.neighbors[keep],
            displacements=displacements[keep],
            distances=distances[keep],
        )


######################################################################
# -- Spatial Hash Grid (bucket strategy) -- #
######################################################################

class SpatialHashGrid:
    '''
    Uniform bucket grid for 3D neighbor search.

    Cell size equals the kernel support radius. Particles are binned
    into a dict keyed by integer cell coordinate; a single-particle
    query visits the 27 cells around the particle's cell, while the
    full candidate list walks the positive half of the stencil so
    each pair is tested once. There is no constraint on the particle
    count.

    Parameters:
    -----------
    cellSize : float
        Grid cell size [m], should equal the smoothing radius
    '''

    def __init__(self, cellSize: float) -> None:
        self._cellSize = cellSize
        self._positions: np.ndarray | None = None
        self._cellCoords: np.ndarray | None = None
        self._cells: dict[tuple[int, int, int], np.ndarray] = {}

        # Lexicographically positive half of the stencil (unique pairs)
        self._halfStencil = [tuple(o) for o in STENCIL_OFFSETS.tolist() if tuple(o) > (0, 0, 0)]

    @property
    def cellSize(self) -> float:
        return self._cellSize

    @property
    def nOccupiedCells(self) -> int:
        '''Number of non-empty buckets.'''
        return len(self._cells)

    def build(self, positions: np.ndarray) -> None:
        '''
        Bin all particles into grid cells.

        Parameters:
        -----------
        positions : np.ndarray
            Particle positions [m], shape (N, 3)
        '''
        self._positions = np.asarray(positions, dtype=np.float64)
        self._cellCoords = np.floor(self._positions / self._cellSize).astype(np.int64)

        # Group particle indices by cell, keeping index order within a cell
        uniqueCells, inverse = np.unique(self._cellCoords, axis=0, return_inverse=True)
        inverse = inverse.reshape(-1)
        order = np.argsort(inverse, kind='stable')
        bounds = np.searchsorted(inverse[order], np.arange(len(uniqueCells) + 1))

        self._cells = {
            tuple(cell): order[bounds[k]:bounds[k + 1]]
            for k, cell in enumerate(uniqueCells.tolist())
        }

    def _stencilCandidates(self, cell: tuple[int, int, int]) -> np.ndarray:
        '''Sorted particle indices in the 27 cells around cell.'''
        chunks = []
        for offset in STENCIL_OFFSETS.tolist():
            key = (cell[0] + offset[0], cell[1] + offset[1], cell[2] + offset[2])
            bucket = self._cells.get(key)
            if bucket is not None:
                chunks.append(bucket)
        if not chunks:
            return np.zeros(0, dtype=np.int64)
        return np.sort(np.concatenate(chunks))

    def neighbors(self, index: int) -> np.ndarray:
        '''
        Candidate neighbors of one particle (itself included).

        Parameters:
        -----------
        index : int
            Particle index

        Returns:
        --------
        np.ndarray : Sorted candidate indices
        '''
        if self._cellCoords is None:
            return np.zeros(0, dtype=np.int64)
        return self._stencilCandidates(tuple(self._cellCoords[index].tolist()))

    def candidateList(self) -> NeighborList:
        '''
        Neighbor rows of every particle from the half-stencil pair query.

        Pairs are cut at one cell size, so the rows already hold only
        particles within the kernel support (plus the particle itself).
        '''
        if self._positions is None:
            return NeighborList.fromRows([])

        iIdx, jIdx = self.queryPairs(self._cellSize)
        return NeighborList.fromPairs(len(self._positions), iIdx, jIdx)

    def queryPairs(self, radius: float) -> tuple[np.ndarray, np.ndarray]:
        '''
        Find all unique particle pairs (i, j), i < j, within radius.

        Uses half-stencil traversal so each pair is found exactly once;
        distance checks are vectorized per cell-pair group.

        Parameters:
        -----------
        radius : float
            Search radius [m]

        Returns:
        --------
        tuple[np.ndarray, np.ndarray] :
            (iIndices, jIndices) arrays of neighbor pair indices
        '''
        empty = (np.zeros(0, dtype=np.int64), np.zeros(0, dtype=np.int64))
        if self._positions is None:
            return empty

        radiusSq = radius * radius
        positions = self._positions
        iChunks: list[np.ndarray] = []
        jChunks: list[np.ndarray] = []

        for cellKey, cellParticles in self._cells.items():
            cellPos = positions[cellParticles]

            # Pairs inside the cell (upper triangle)
            if len(cellParticles) > 1:
                rowIdx, colIdx = np.triu_indices(len(cellParticles), k=1)
                diff = cellPos[rowIdx] - cellPos[colIdx]
                close = np.sum(diff * diff, axis=1) < radiusSq
                iChunks.append(cellParticles[rowIdx[close]])
                jChunks.append(cellParticles[colIdx[close]])

            # Pairs with the positive half of the neighboring cells
            for offset in self._halfStencil:
                neighborKey = (cellKey[0] + offset[0], cellKey[1] + offset[1], cellKey[2] + offset[2])
                neighborParticles = self._cells.get(neighborKey)
                if neighborParticles is None:
                    continue

                diff = cellPos[:, np.newaxis, :] - positions[neighborParticles][np.newaxis, :, :]
                localI, localJ = np.nonzero(np.sum(diff * diff, axis=2) < radiusSq)
                iChunks.append(cellParticles[localI])
                jChunks.append(neighborParticles[localJ])

        if not iChunks:
            return empty

        iAll = np.concatenate(iChunks)
        jAll = np.concatenate(jChunks)
        return (np.minimum(iAll, jAll), np.maximum(iAll, jAll))

    def release(self) -> None:
        '''Drop all buckets.'''
        self._positions = None
        self._cellCoords = None
        self._cells = {}
