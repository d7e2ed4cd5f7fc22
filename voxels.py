'''
voxels.py -- the cubic voxel grid populated by scripts
'''

import numpy

import logutil
from colors import EMPTY

_is_set = numpy.frompyfunc(lambda value: value is not EMPTY, 1, 1)


class VoxelGrid(object):
    '''
    Cubic N*N*N array of cells indexed [x, y, z]. A cell is None (empty) or a
    color value. The grid never changes size; allocate a new one instead.
    '''
    def __init__(self, size):
        size = int(size)
        if size < 1:
            raise ValueError(f"grid size must be at least 1, got {size}")
        self.size = size
        self.cells = numpy.full((size, size, size), EMPTY, dtype=object)

    def __repr__(self):
        return f"VoxelGrid(size={self.size}, occupied={self.count()})"

    def __contains__(self, position):
        x, y, z = position
        n = self.size
        return 0 <= x < n and 0 <= y < n and 0 <= z < n

    def get(self, x, y, z):
        if (x, y, z) not in self:
            return EMPTY
        return self.cells[x, y, z]

    def set(self, x, y, z, value):
        if (x, y, z) not in self:
            raise IndexError(f"cell {(x, y, z)} outside grid of size {self.size}")
        self.cells[x, y, z] = value

    def reset(self):
        self.cells.fill(EMPTY)

    def copy(self):
        snapshot = VoxelGrid.__new__(VoxelGrid)
        snapshot.size = self.size
        # cell values are immutable (str, int, tuple) so a shallow array copy is a deep copy
        snapshot.cells = self.cells.copy()
        return snapshot

    def restore(self, snapshot):
        if snapshot.size != self.size:
            raise ValueError(f"cannot restore a grid of size {snapshot.size} into size {self.size}")
        self.cells[...] = snapshot.cells
        logutil.log("GRID", f"restored {snapshot.count()} occupied cells", level="DEBUG")

    def occupancy(self):
        """ Boolean mask of occupied cells, shape (N, N, N). """
        return _is_set(self.cells).astype(bool)

    def occupied(self):
        return set(tuple(int(c) for c in p) for p in numpy.argwhere(self.occupancy()))

    def count(self):
        return int(numpy.count_nonzero(self.occupancy()))
