# -- Kernel Dispatcher Tests -- #

'''
Work splitting, barrier semantics and error propagation.

Sean Bowman [10/17/2026]
'''

import threading

import numpy as np
import pytest

from ParticleFluids.sph.dispatch import KernelDispatcher
from ParticleFluids.sph.protocols import ConfigurationError


def testSerialUsesOneRange():
    dispatcher = KernelDispatcher('serial', workGroupSize=4)
    assert dispatcher.workRanges(100) == [(0, 100)]
    assert dispatcher.workRanges(0) == []
    assert not dispatcher.closed


def testThreadedRangesCoverWithoutOverlap():
    with KernelDispatcher('threaded', workGroupSize=16, maxWorkers=3) as dispatcher:
        ranges = dispatcher.workRanges(100)

    assert ranges[0][0] == 0 and ranges[-1][1] == 100
    for (_, stop), (start, _) in zip(ranges, ranges[1:]):
        assert stop == start
    # Boundaries fall on work-group boundaries
    assert all(start % 16 == 0 for start, _ in ranges)
    assert len(ranges) <= 3


def testDispatchWritesEveryElement():
    out = np.zeros(1000)

    def kernel(start, stop):
        out[start:stop] = np.arange(start, stop)

    with KernelDispatcher('threaded', workGroupSize=64, maxWorkers=4) as dispatcher:
        dispatcher.dispatch(kernel, 1000)

    np.testing.assert_array_equal(out, np.arange(1000))


def testDispatchIsABarrier():
    '''Every group has finished when dispatch returns.'''
    finished = []
    lock = threading.Lock()

    def kernel(start, stop):
        with lock:
            finished.append((start, stop))

    with KernelDispatcher('threaded', workGroupSize=10, maxWorkers=4) as dispatcher:
        dispatcher.dispatch(kernel, 95)
        assert sum(stop - start for start, stop in finished) == 95


def testKernelErrorPropagates():
    def kernel(start, stop):
        if start > 0:
            raise RuntimeError('work group failed')

    with KernelDispatcher('threaded', workGroupSize=8, maxWorkers=4) as dispatcher:
        with pytest.raises(RuntimeError, match='work group failed'):
            dispatcher.dispatch(kernel, 64)

    with pytest.raises(ZeroDivisionError):
        KernelDispatcher('serial').dispatch(lambda start, stop: 1 / 0, 4)


def testInvalidArguments():
    with pytest.raises(ConfigurationError):
        KernelDispatcher('cuda')
    with pytest.raises(ConfigurationError):
        KernelDispatcher('serial', workGroupSize=0)


def testCloseShutsDownPool():
    dispatcher = KernelDispatcher('threaded', maxWorkers=2)
    assert not dispatcher.closed
    dispatcher.close()
    assert dispatcher.closed
    dispatcher.close()
