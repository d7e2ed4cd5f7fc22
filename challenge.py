'''
challenge.py -- compares the grids produced by a target and a user script

Both scripts run against the live grid, one after the other, and the grid
is put back the way it was after each run whether or not the run worked.
The score is the Jaccard index of the occupied cells; color is ignored.
'''

import numpy

import logutil
from voxels import VoxelGrid


def _occupied(value):
    if isinstance(value, VoxelGrid):
        return value.occupied()
    if hasattr(value, 'shape'):
        # boolean occupancy mask
        return set(tuple(int(c) for c in p) for p in numpy.argwhere(value))
    return set(value)


def jaccard_similarity(a, b):
    """ |a & b| / |a | b| over occupied coordinates; 1.0 when both are empty. """
    a = _occupied(a)
    b = _occupied(b)
    matching = len(a & b)
    union = len(a | b)
    if union == 0:
        return 1.0
    similarity = matching / float(union)
    logutil.log("CHALLENGE", f"matches={matching} target={len(a)} user={len(b)} union={union} similarity={similarity:.4f}")
    return similarity


class ChallengeEvaluator(object):
    def __init__(self, populator):
        self.populator = populator

    def _run_isolated(self, grid, source, original, rebuild, on_warning):
        try:
            yield from self.populator.populate(grid, source, on_warning=on_warning)
            return grid.copy()
        finally:
            grid.restore(original)
            if rebuild is not None:
                rebuild()

    def evaluate(self, grid, target_source, user_source, rebuild=None, on_warning=None):
        '''
        Generator: runs both scripts (yielding while they populate) and
        returns the similarity. `rebuild` is called after every restore so
        the visible mesh keeps showing the original grid.
        '''
        original = grid.copy()
        logutil.log("CHALLENGE", "running target script")
        target_result = yield from self._run_isolated(grid, target_source, original, rebuild, on_warning)
        logutil.log("CHALLENGE", "running user script")
        user_result = yield from self._run_isolated(grid, user_source, original, rebuild, on_warning)
        return jaccard_similarity(target_result, user_result)
