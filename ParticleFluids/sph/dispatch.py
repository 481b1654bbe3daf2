# -- Data-Parallel Kernel Dispatch -- #

'''
Work-group dispatch of per-particle kernels with an explicit barrier.

A kernel is any callable kernel(start, stop) that processes the
element range [start, stop) and writes only to the rows it owns.
dispatch() splits [0, count) into work groups, runs them either
inline (serial backend) or on a thread pool (threaded backend), and
returns only after every group has finished. Pipeline stages are
therefore strictly ordered: no stage can read a buffer that a
previous stage is still writing.

NumPy releases the GIL inside its vectorized loops, so the threaded
backend gives real overlap for large particle counts.

Sean Bowman [10/17/2026]
'''

from __future__ import annotations

import logging
import math
import os
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Callable

from ParticleFluids import constants as const
from ParticleFluids.sph.protocols import BACKENDS, ConfigurationError

logger = logging.getLogger(__name__)

Kernel = Callable[[int, int], None]


class KernelDispatcher:
    '''
    Runs range kernels over work groups and joins them.

    Parameters:
    -----------
    backend : str
        'serial' (single inline call) or 'threaded' (thread pool)
    workGroupSize : int
        Number of elements per work group
    maxWorkers : int | None
        Thread pool size; None uses the executor default
    '''

    def __init__(
        self,
        backend: str = 'serial',
        workGroupSize: int = const.workGroupSize,
        maxWorkers: int | None = None,
    ) -> None:
        if backend not in BACKENDS:
            raise ConfigurationError(f'Unknown backend {backend!r}, expected one of {BACKENDS}')
        if workGroupSize <= 0:
            raise ConfigurationError(f'workGroupSize must be positive, got {workGroupSize}')

        self._backend = backend
        self._workGroupSize = int(workGroupSize)
        self._executor: ThreadPoolExecutor | None = None

        if backend == 'threaded':
            self._nWorkers = int(maxWorkers or min(32, (os.cpu_count() or 1) + 4))
            self._executor = ThreadPoolExecutor(
                max_workers=self._nWorkers,
                thread_name_prefix='particleFluids',
            )
        else:
            self._nWorkers = 1

    @property
    def backend(self) -> str:
        '''Name of the dispatch backend.'''
        return self._backend

    @property
    def workGroupSize(self) -> int:
        '''Elements per work group.'''
        return self._workGroupSize

    @property
    def closed(self) -> bool:
        '''True once the thread pool has been shut down.'''
        return self._backend == 'threaded' and self._executor is None

    def workRanges(self, count: int) -> list[tuple[int, int]]:
        '''
        Split [0, count) into contiguous ranges, one per worker.

        Range boundaries fall on work-group boundaries. The serial
        backend always returns a single range.

        Parameters:
        -----------
        count : int
            Number of elements

        Returns:
        --------
        list[tuple[int, int]] : (start, stop) pairs covering [0, count)
        '''
        if count <= 0:
            return []
        if self._executor is None:
            return [(0, count)]

        nGroups = math.ceil(count / self._workGroupSize)
        nChunks = min(nGroups, self._nWorkers)
        groupsPerChunk = math.ceil(nGroups / nChunks)
        chunkSize = groupsPerChunk * self._workGroupSize

        return [
            (start, min(count, start + chunkSize))
            for start in range(0, count, chunkSize)
        ]

    def dispatch(self, kernel: Kernel, count: int) -> None:
        '''
        Run kernel over [0, count) and wait for all work groups.

        Exceptions raised by any work group are re-raised here, after
        every group has stopped.

        Parameters:
        -----------
        kernel : Callable[[int, int], None]
            Range kernel
        count : int
            Number of elements
        '''
        ranges = self.workRanges(count)
        if not ranges:
            return

        if self._executor is None or len(ranges) == 1:
            for start, stop in ranges:
                kernel(start, stop)
            return

        futures = [self._executor.submit(kernel, start, stop) for start, stop in ranges]

        # Barrier: join every group before surfacing an error
        wait(futures)
        for future in futures:
            future.result()

    def close(self) -> None:
        '''Shut down the thread pool (no-op for the serial backend).'''
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
            logger.debug('Kernel dispatcher thread pool shut down')

    def __enter__(self) -> KernelDispatcher:
        return self

    def __exit__(self, *exc) -> None:
        self.close()
