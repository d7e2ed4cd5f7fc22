'''
populate.py -- runs a drawing script over every cell of a VoxelGrid
'''

import time

import config
import logutil
from colors import to_cell, EMPTY


class GridPopulator(object):
    '''
    Evaluates a script once per cell and writes the results into a grid.

    `populate` is a generator: it yields after every `yield_every`-th row
    along Y so the worker loop can keep rendering and answering messages
    while a large grid is being filled. Drive it with `next()` or
    `run_to_completion`.
    '''
    def __init__(self, evaluator, yield_every=None, default_color=None, entry_point=None):
        self.evaluator = evaluator
        self.yield_every = yield_every or getattr(config, 'YIELD_EVERY_ROWS', 5)
        self.default_color = default_color or getattr(config, 'DEFAULT_COLOR', '#00ff00')
        self.entry_point = entry_point or getattr(config, 'ENTRY_POINT', 'draw')

    def populate(self, grid, source, on_warning=None, on_complete=None):
        n = grid.size
        logutil.log("GRID", f"running script for grid size {n}")
        t0 = time.perf_counter()

        grid.reset()
        # parse failures propagate with the grid left empty
        program = self.evaluator.parse(source)

        warnings = []
        evaluator = self.evaluator
        entry_point = self.entry_point
        default_color = self.default_color
        for x in range(n):
            for y in range(n):
                for z in range(n):
                    try:
                        result = evaluator.call(program, entry_point, (x, y, z, n))
                        grid.set(x, y, z, to_cell(result, default_color))
                    except Exception as e:
                        message = f"Code evaluation error at ({x},{y},{z}): {e}"
                        logutil.log("GRID", message, level="WARN")
                        warnings.append(message)
                        grid.set(x, y, z, EMPTY)
                        if on_warning is not None:
                            on_warning(message)
                if y % self.yield_every == 0:
                    yield (x, y)

        ms = (time.perf_counter() - t0) * 1000.0
        logutil.log("GRID", f"script finished in {ms:.1f}ms, {grid.count()} cells occupied, {len(warnings)} warnings")
        if on_complete is not None:
            on_complete()
        return warnings


def run_to_completion(gen):
    """ Drive a cooperative task to the end and return its result. """
    while True:
        try:
            next(gen)
        except StopIteration as stop:
            return stop.value
