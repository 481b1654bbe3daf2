# -- Sorted Cell Index (Bitonic Sort Neighbor Search) -- #

'''
Neighbor search by hashing particles to cells and sorting them.

Three stages run every tick:

1. Hash: each particle's integer cell coordinate floor(p / h) is
   hashed with the Teschner primes, modulo the table size M, into a
   cell id. M is the particle count padded to a power of two.
2. Sort: the (cellId, particleIndex) pairs are sorted with a bitonic
   network. The network has log2(M) merge stages; each stage is a
   sequence of compare-exchange passes, and every pass is dispatched
   as one data-parallel kernel over all M elements. Padding entries
   carry the sentinel cell id 0xFFFFFFFF and sort to the end.
3. Offsets: for every cell id c, [cellStart[c], cellEnd[c]) is the
   range of sorted entries holding that id.

Hash collisions place unrelated particles under one id. They only
add candidates, which the solvers reject by distance; an id repeated
inside one 27-cell stencil is visited once so no particle is listed
twice.

References:
-----------
Batcher (1968) -- Sorting networks and their applications
Teschner et al. (2003) -- Optimized spatial hashing for collision
    detection of deformable objects
Green (2010) -- Particle Simulation using CUDA

Sean Bowman [10/17/2026]
'''

from __future__ import annotations

import logging

import numpy as np

from ParticleFluids import constants as const
from ParticleFluids.sph.dispatch import KernelDispatcher
from ParticleFluids.sph.neighborSearch import NeighborList, STENCIL_OFFSETS
from ParticleFluids.sph.protocols import ConfigurationError, isPowerOfTwo, nextPowerOfTwo

logger = logging.getLogger(__name__)

_VALUE_MASK = np.uint64(0xFFFFFFFF)
_KEY_SHIFT = np.uint64(32)


######################################################################
# -- Hash Stage -- #
######################################################################

def cellCoordinates(positions: np.ndarray, cellSize: float) -> np.ndarray:
    '''Integer cell coordinates floor(p / cellSize), shape (N, 3).'''
    return np.floor(np.asarray(positions, dtype=np.float64) / cellSize).astype(np.int64)


def hashCells(cellCoords: np.ndarray, tableSize: int) -> np.ndarray:
    '''
    Hash integer cell coordinates to cell ids in [0, tableSize).

    id = ((x * p1) xor (y * p2) xor (z * p3)) mod tableSize

    Parameters:
    -----------
    cellCoords : np.ndarray
        Integer cell coordinates, shape (..., 3)
    tableSize : int
        Number of hash buckets

    Returns:
    --------
    np.ndarray : Cell ids (uint32), shape (...)
    '''
    coords = np.asarray(cellCoords, dtype=np.int64)
    p1, p2, p3 = const.hashPrimes
    hashed = (coords[..., 0] * p1) ^ (coords[..., 1] * p2) ^ (coords[..., 2] * p3)
    return np.mod(hashed, tableSize).astype(np.uint32)


######################################################################
# -- Sort Stage -- #
######################################################################

def bitonicSort(
    keys: np.ndarray,
    values: np.ndarray,
    dispatcher: KernelDispatcher | None = None,
) -> tuple[np.ndarray, np.ndarray]:
    '''
    Sort (key, value) pairs by key, ties broken by value.

    Runs the full bitonic network: for every merge size k = 2, 4, ..., M
    and every stride j = k/2, ..., 1 one compare-exchange pass is
    dispatched over all M elements. Element i is paired with i xor j;
    the lower index of each pair owns it, so a pass has no write
    conflicts between work groups.

    Parameters:
    -----------
    keys : np.ndarray
        Unsigned 32-bit keys, shape (M,), M a power of two
    values : np.ndarray
        Unsigned 32-bit payloads, shape (M,)
    dispatcher : KernelDispatcher | None
        Dispatcher for the passes (serial if omitted)

    Returns:
    --------
    tuple[np.ndarray, np.ndarray] : (sortedKeys, sortedValues), both uint32

    Raises:
    -------
    ConfigurationError : If M is not a power of two or shapes differ
    '''
    keys = np.asarray(keys)
    values = np.asarray(values)
    count = keys.shape[0]
    if values.shape != keys.shape:
        raise ConfigurationError(f'keys and values must match, got {keys.shape} and {values.shape}')
    if not isPowerOfTwo(count):
        raise ConfigurationError(f'bitonicSort needs a power-of-two length, got {count}')

    # One 64-bit word per entry: key in the high half, value in the low half
    combined = (keys.astype(np.uint64) << _KEY_SHIFT) | values.astype(np.uint64)
    dispatcher = dispatcher or KernelDispatcher('serial')

    k = 2
    while k <= count:
        j = k >> 1
        while j > 0:
            dispatcher.dispatch(_compareExchangePass(combined, k, j), count)
            j >>= 1
        k <<= 1

    return (
        (combined >> _KEY_SHIFT).astype(np.uint32),
        (combined & _VALUE_MASK).astype(np.uint32),
    )


def _compareExchangePass(combined: np.ndarray, k: int, j: int):
    '''Range kernel for one compare-exchange pass of the network.'''

    def kernel(start: int, stop: int) -> None:
        idx = np.arange(start, stop, dtype=np.int64)
        partner = idx ^ j
        owner = partner > idx
        lower = idx[owner]
        upper = partner[owner]

        a = combined[lower]
        b = combined[upper]
        ascending = (lower & k) == 0
        swap = np.where(ascending, a > b, a < b)

        combined[lower[swap]] = b[swap]
        combined[upper[swap]] = a[swap]

    return kernel


######################################################################
# -- Cell Offset Stage -- #
######################################################################

def computeCellOffsets(sortedKeys: np.ndarray, tableSize: int) -> tuple[np.ndarray, np.ndarray]:
    '''
    Per-cell [start, end) ranges into the sorted entries.

    Empty cells get start == end. Sentinel entries lie beyond every
    real cell id and never fall inside a range.

    Parameters:
    -----------
    sortedKeys : np.ndarray
        Cell ids in ascending order, shape (M,)
    tableSize : int
        Number of cell ids

    Returns:
    --------
    tuple[np.ndarray, np.ndarray] : (cellStart, cellEnd), shape (tableSize,)
    '''
    cellIds = np.arange(tableSize, dtype=np.int64)
    sortedKeys = np.asarray(sortedKeys, dtype=np.int64)
    cellStart = np.searchsorted(sortedKeys, cellIds, side='left')
    cellEnd = np.searchsorted(sortedKeys, cellIds, side='right')
    return cellStart, cellEnd


######################################################################
# -- Sorted Cell Index -- #
######################################################################

class SortedCellIndex:
    '''
    Neighbor search over a bitonic-sorted cell index.

    Parameters:
    -----------
    cellSize : float
        Cell size [m], equal to the smoothing radius
    particleCount : int
        Number of particles N (fixed)
    padSortBuffer : bool
        Pad non power-of-two counts with sentinel entries; if False
        such counts are rejected
    dispatcher : KernelDispatcher | None
        Dispatcher for the sort passes
    '''

    def __init__(
        self,
        cellSize: float,
        particleCount: int,
        padSortBuffer: bool = True,
        dispatcher: KernelDispatcher | None = None,
    ) -> None:
        if particleCount <= 0:
            raise ConfigurationError(f'particleCount must be positive, got {particleCount}')
        if isPowerOfTwo(particleCount):
            tableSize = particleCount
        elif padSortBuffer:
            tableSize = nextPowerOfTwo(particleCount)
            logger.debug(
                'Padding sort buffer from %d to %d entries', particleCount, tableSize
            )
        else:
            raise ConfigurationError(
                f'bitonicSort requires a power-of-two particle count, got {particleCount}'
            )

        self._cellSize = cellSize
        self._particleCount = int(particleCount)
        self._tableSize = int(tableSize)
        self._dispatcher = dispatcher or KernelDispatcher('serial')

        self._cellCoords: np.ndarray | None = None
        self._sortedCellIds: np.ndarray | None = None
        self._sortedIndices: np.ndarray | None = None
        self._cellStart: np.ndarray | None = None
        self._cellEnd: np.ndarray | None = None

    @property
    def tableSize(self) -> int:
        '''Sort buffer length M (also the number of cell ids).'''
        return self._tableSize

    @property
    def sortedCellIds(self) -> np.ndarray | None:
        '''Cell ids of all M entries after sorting (sentinels last).'''
        return self._sortedCellIds

    @property
    def sortedIndices(self) -> np.ndarray | None:
        '''Particle indices of all M entries after sorting.'''
        return self._sortedIndices

    @property
    def cellStart(self) -> np.ndarray | None:
        return self._cellStart

    @property
    def cellEnd(self) -> np.ndarray | None:
        return self._cellEnd

    def build(self, positions: np.ndarray) -> None:
        '''
        Run the hash, sort and offset stages.

        Parameters:
        -----------
        positions : np.ndarray
            Particle positions [m], shape (N, 3)
        '''
        positions = np.asarray(positions, dtype=np.float64)
        if positions.shape != (self._particleCount, 3):
            raise ConfigurationError(
                f'Expected positions of shape ({self._particleCount}, 3), got {positions.shape}'
            )

        self._cellCoords = cellCoordinates(positions, self._cellSize)

        keys = np.full(self._tableSize, const.sentinelCellId, dtype=np.uint32)
        keys[:self._particleCount] = hashCells(self._cellCoords, self._tableSize)
        values = np.arange(self._tableSize, dtype=np.uint32)

        self._sortedCellIds, self._sortedIndices = bitonicSort(keys, values, self._dispatcher)
        self._cellStart, self._cellEnd = computeCellOffsets(self._sortedCellIds, self._tableSize)

    def _stencilIds(self, cellCoords: np.ndarray) -> np.ndarray:
        '''
        Sorted stencil cell ids per particle, duplicates replaced by -1.

        Parameters:
        -----------
        cellCoords : np.ndarray
            Cell coordinates, shape (n, 3)

        Returns:
        --------
        np.ndarray : Cell ids, shape (n, 27), int64
        '''
        stencil = cellCoords[:, np.newaxis, :] + STENCIL_OFFSETS[np.newaxis, :, :]
        ids = np.sort(hashCells(stencil, self._tableSize).astype(np.int64), axis=1)
        repeated = np.zeros_like(ids, dtype=bool)
        repeated[:, 1:] = ids[:, 1:] == ids[:, :-1]
        ids[repeated] = -1
        return ids

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
        ids = self._stencilIds(self._cellCoords[index:index + 1])[0]
        chunks = [
            self._sortedIndices[self._cellStart[c]:self._cellEnd[c]]
            for c in ids if c >= 0
        ]
        return np.sort(np.concatenate(chunks).astype(np.int64))

    def candidateList(self) -> NeighborList:
        '''
        Candidate rows of every particle.

        Row i holds the particles of every distinct cell id in i's
        stencil, in ascending cell id then sorted-entry order.
        '''
        if self._cellCoords is None:
            return NeighborList.fromRows([])

        ids = self._stencilIds(self._cellCoords)
        valid = ids >= 0
        safeIds = np.where(valid, ids, 0)
        segStart = np.where(valid, self._cellStart[safeIds], 0).ravel()
        segCount = np.where(valid, self._cellEnd[safeIds] - self._cellStart[safeIds], 0).ravel()

        rowStart = np.zeros(self._particleCount + 1, dtype=np.int64)
        np.cumsum(segCount.reshape(self._particleCount, -1).sum(axis=1), out=rowStart[1:])

        # Expand every (start, count) segment into consecutive sorted entries
        total = int(rowStart[-1])
        segOffset = np.cumsum(segCount) - segCount
        entry = np.repeat(segStart - segOffset, segCount) + np.arange(total, dtype=np.int64)

        neighbors = self._sortedIndices[entry].astype(np.int64)
        return NeighborList(rowStart=rowStart, neighbors=neighbors)

    def release(self) -> None:
        '''Drop all sort buffers.'''
        self._cellCoords = None
        self._sortedCellIds = None
        self._sortedIndices = None
        self._cellStart = None
        self._cellEnd = None
