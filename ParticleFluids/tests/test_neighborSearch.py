# -- Neighbor Search Tests -- #

'''
Both neighbor strategies against a k-d tree reference.

Every true neighbor (distance < h) must appear in the candidate
rows, and the distance-filtered list must match the k-d tree pairs
exactly.

Sean Bowman [10/17/2026]
'''

import numpy as np
import pytest
from scipy.spatial import cKDTree

from ParticleFluids.sph.bitonicSort import SortedCellIndex
from ParticleFluids.sph.dispatch import KernelDispatcher
from ParticleFluids.sph.neighborSearch import NeighborList, SpatialHashGrid


H = 0.3


def buildStrategy(name: str, positions: np.ndarray):
    if name == 'spatialHash':
        search = SpatialHashGrid(cellSize=H)
    else:
        search = SortedCellIndex(cellSize=H, particleCount=len(positions))
    search.build(positions)
    return search


def pairSet(neighborList: NeighborList) -> set[tuple[int, int]]:
    '''Unique (i, j), i < j, pairs of a neighbor list (self pairs dropped).'''
    rows = neighborList.rowIndices()
    cols = neighborList.neighbors
    mask = rows != cols
    return {
        (int(min(i, j)), int(max(i, j)))
        for i, j in zip(rows[mask], cols[mask])
    }


@pytest.fixture
def cloud(rng) -> np.ndarray:
    '''300 random points straddling the origin (negative cell coordinates).'''
    return rng.uniform(-1.0, 1.0, size=(300, 3))


@pytest.mark.parametrize('strategy', ['bitonicSort', 'spatialHash'])
def testFilteredListMatchesKdTree(strategy, cloud):
    search = buildStrategy(strategy, cloud)
    filtered = search.candidateList().withinRadius(cloud, H)

    reference = cKDTree(cloud).query_pairs(H)
    assert pairSet(filtered) == reference


@pytest.mark.parametrize('strategy', ['bitonicSort', 'spatialHash'])
def testRowsAreSymmetricAndIncludeSelf(strategy, cloud):
    search = buildStrategy(strategy, cloud)
    filtered = search.candidateList().withinRadius(cloud, H)

    for i in range(len(cloud)):
        row = filtered.row(i)
        assert i in row
        assert len(np.unique(row)) == len(row)

    # j in row(i) iff i in row(j)
    rows = filtered.rowIndices()
    forward = set(zip(rows.tolist(), filtered.neighbors.tolist()))
    backward = set(zip(filtered.neighbors.tolist(), rows.tolist()))
    assert forward == backward


@pytest.mark.parametrize('strategy', ['bitonicSort', 'spatialHash'])
def testSingleParticleQuery(strategy, cloud):
    search = buildStrategy(strategy, cloud)
    tree = cKDTree(cloud)

    for index in (0, 17, 299):
        candidates = search.neighbors(index)
        truth = tree.query_ball_point(cloud[index], H - 1e-12)
        assert set(truth) <= set(candidates.tolist())
        assert index in candidates


def testStrategiesAgreeAfterFiltering(cloud):
    bitonic = buildStrategy('bitonicSort', cloud).candidateList().withinRadius(cloud, H)
    bucket = buildStrategy('spatialHash', cloud).candidateList().withinRadius(cloud, H)

    np.testing.assert_array_equal(bitonic.counts(), bucket.counts())
    for i in range(len(cloud)):
        assert sorted(bitonic.row(i).tolist()) == sorted(bucket.row(i).tolist())


def testQueryPairsMatchesKdTree(cloud):
    grid = SpatialHashGrid(cellSize=H)
    grid.build(cloud)
    iIdx, jIdx = grid.queryPairs(H)

    assert np.all(iIdx < jIdx)
    found = set(zip(iIdx.tolist(), jIdx.tolist()))
    assert len(found) == len(iIdx)
    assert found == cKDTree(cloud).query_pairs(H)


def testBucketCandidatesComeFromPairQuery(cloud):
    '''Bucket rows are the pair query mirrored into sorted rows, self included.'''
    grid = SpatialHashGrid(cellSize=H)
    grid.build(cloud)
    candidates = grid.candidateList()
    iIdx, jIdx = grid.queryPairs(H)

    assert candidates.nPairs == 2 * len(iIdx) + len(cloud)
    assert pairSet(candidates) == set(zip(iIdx.tolist(), jIdx.tolist()))
    for i in range(len(cloud)):
        row = candidates.row(i)
        assert np.all(np.diff(row) > 0)
        assert i in row


def testFromPairsBuildsSymmetricRows():
    neighborList = NeighborList.fromPairs(4, np.array([0, 1]), np.array([2, 3]))

    np.testing.assert_array_equal(neighborList.counts(), [2, 2, 2, 2])
    np.testing.assert_array_equal(neighborList.row(0), [0, 2])
    np.testing.assert_array_equal(neighborList.row(2), [0, 2])
    np.testing.assert_array_equal(neighborList.row(3), [1, 3])

    lonely = NeighborList.fromPairs(2, np.zeros(0, dtype=np.int64), np.zeros(0, dtype=np.int64))
    np.testing.assert_array_equal(lonely.neighbors, [0, 1])


def testWithinRadiusCachesGeometry():
    positions = np.array([[0.0, 0.0, 0.0], [0.1, 0.0, 0.0], [0.0, 0.5, 0.0]])
    candidates = NeighborList.fromRows([np.arange(3)] * 3)
    filtered = candidates.withinRadius(positions, 0.3)

    np.testing.assert_array_equal(filtered.counts(), [2, 2, 1])
    np.testing.assert_array_equal(filtered.row(0), [0, 1])

    # Displacements are r_i - r_j
    pairs = filtered.pairSlice(0, 1)
    np.testing.assert_allclose(filtered.displacements[pairs][1], [-0.1, 0.0, 0.0])
    np.testing.assert_allclose(filtered.distances[pairs], [0.0, 0.1])


def testReduceRowsIndependentOfSplit(cloud, rng):
    '''Row sums are identical whether rows are reduced together or in chunks.'''
    filtered = buildStrategy('spatialHash', cloud).candidateList().withinRadius(cloud, H)
    values = rng.normal(size=(filtered.nPairs, 3))
    n = filtered.nParticles

    whole = filtered.reduceRows(values, 0, n)
    pieces = []
    with KernelDispatcher('threaded', workGroupSize=32, maxWorkers=3) as dispatcher:
        ranges = dispatcher.workRanges(n)
    assert len(ranges) > 1
    for start, stop in ranges:
        pieces.append(filtered.reduceRows(values[filtered.pairSlice(start, stop)], start, stop))

    np.testing.assert_array_equal(whole, np.vstack(pieces))


def testReleaseDropsBuckets(cloud):
    grid = SpatialHashGrid(cellSize=H)
    grid.build(cloud)
    assert grid.nOccupiedCells > 0

    grid.release()
    assert grid.nOccupiedCells == 0
    assert grid.candidateList().nParticles == 0
