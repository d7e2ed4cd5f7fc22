'''
mesher.py -- turns a VoxelGrid into an indexed triangle mesh

Naive face culling: every occupied cell emits a quad for each of its six
sides whose neighbor is empty or outside the grid. Faces are never shared,
so each one adds 4 vertices and 6 indices.
'''

import numpy

import config
import logutil
from colors import parse_color

# Face directions, in emission order: -X, +X, -Y, +Y, -Z, +Z
FACE_NORMALS = numpy.array([
    (-1, 0, 0),
    ( 1, 0, 0),
    ( 0,-1, 0),
    ( 0, 1, 0),
    ( 0, 0,-1),
    ( 0, 0, 1),
], dtype=numpy.float32)

# Corners of each face relative to the cell's minimum corner. Together with
# FACE_INDICES the triangles wind counter-clockwise seen from outside.
FACE_CORNERS = numpy.array([
    [(0, 1, 0), (0, 0, 0), (0, 1, 1), (0, 0, 1)], # -X
    [(1, 1, 1), (1, 0, 1), (1, 1, 0), (1, 0, 0)], # +X
    [(1, 0, 1), (0, 0, 1), (1, 0, 0), (0, 0, 0)], # -Y
    [(0, 1, 1), (1, 1, 1), (0, 1, 0), (1, 1, 0)], # +Y
    [(1, 0, 0), (0, 0, 0), (1, 1, 0), (0, 1, 0)], # -Z
    [(0, 0, 1), (1, 0, 1), (0, 1, 1), (1, 1, 1)], # +Z
], dtype=numpy.float32)

FACE_INDICES = numpy.array([0, 1, 2, 2, 1, 3], dtype=numpy.uint32)


class Mesh(object):
    '''
    Flat float32 position/normal/color buffers (3 floats per vertex) and a
    uint32 triangle index buffer. `face_cells` records the grid cell that
    emitted each face.
    '''
    def __init__(self, positions, normals, colors, indices, face_cells):
        self.positions = positions
        self.normals = normals
        self.colors = colors
        self.indices = indices
        self.face_cells = face_cells
        self.bounding_sphere = self._compute_bounding_sphere()

    @classmethod
    def empty(cls):
        return cls(
            numpy.zeros(0, dtype=numpy.float32),
            numpy.zeros(0, dtype=numpy.float32),
            numpy.zeros(0, dtype=numpy.float32),
            numpy.zeros(0, dtype=numpy.uint32),
            numpy.zeros((0, 3), dtype=numpy.int64),
        )

    @property
    def vertex_count(self):
        return len(self.positions) // 3

    @property
    def index_count(self):
        return len(self.indices)

    @property
    def face_count(self):
        return len(self.face_cells)

    @property
    def is_empty(self):
        return self.face_count == 0

    def faces(self):
        """ Yield (cell, normal) for each emitted face. """
        normals = self.normals.reshape(-1, 4, 3)[:, 0, :]
        for cell, normal in zip(self.face_cells, normals):
            yield tuple(int(c) for c in cell), tuple(int(c) for c in normal)

    def _compute_bounding_sphere(self):
        if len(self.positions) == 0:
            return (0.0, 0.0, 0.0), 0.0
        v = self.positions.reshape(-1, 3)
        center = (v.min(axis=0) + v.max(axis=0)) / 2.0
        radius = float(numpy.sqrt(((v - center)**2).sum(axis=1).max()))
        return tuple(float(c) for c in center), radius

    def release(self):
        self.positions = self.normals = self.colors = None
        self.indices = self.face_cells = None

    def __repr__(self):
        if self.positions is None:
            return "Mesh(released)"
        return f"Mesh(faces={self.face_count}, vertices={self.vertex_count})"


def exposed_faces(occupancy):
    """ Return a (N, N, N, 6) mask of faces that border empty space. """
    n = occupancy.shape[0]
    padded = numpy.pad(occupancy, 1, mode='constant', constant_values=False)
    exposed = numpy.zeros(occupancy.shape + (6,), dtype=bool)
    for i, (dx, dy, dz) in enumerate(FACE_NORMALS.astype(int)):
        neighbor = padded[1+dx:n+1+dx, 1+dy:n+1+dy, 1+dz:n+1+dz]
        exposed[..., i] = occupancy & ~neighbor
    return exposed


def _color_key(value):
    # key on element types too: (1, 0, 0) == (1.0, 0.0, 0.0) but parses differently
    if isinstance(value, tuple):
        return tuple((type(c), c) for c in value)
    return (type(value), value)


def _cell_colors(grid, coords, default_color):
    default_rgb = parse_color(default_color)
    cache = {}
    rgb = numpy.empty((len(coords), 3), dtype=numpy.float32)
    for i, (x, y, z) in enumerate(coords):
        value = grid.cells[x, y, z]
        key = _color_key(value)
        try:
            color = cache[key]
        except KeyError:
            try:
                color = parse_color(value)
            except ValueError:
                logutil.log("MESH", f"invalid color {value!r} at ({x},{y},{z}), using default", level="WARN")
                color = default_rgb
            cache[key] = color
        except TypeError:
            # unhashable color value
            try:
                color = parse_color(value)
            except ValueError:
                color = default_rgb
        rgb[i] = color
    return rgb


def build_mesh(grid, default_color=None):
    """ Build the culled face mesh for `grid`, centered on the origin.

    Buffers are gathered per emitted face, so memory follows the size of
    the surface rather than the number of occupied cells.
    """
    if default_color is None:
        default_color = getattr(config, 'DEFAULT_COLOR', '#00ff00')
    occupancy = grid.occupancy()
    coords = numpy.argwhere(occupancy)
    if len(coords) == 0:
        logutil.log("MESH", "mesh rebuilt (empty)", level="DEBUG")
        return Mesh.empty()

    # (m, 6) in argwhere order, then faces in direction order per cell
    face_mask = exposed_faces(occupancy)[occupancy]
    cell_idx, face_idx = numpy.nonzero(face_mask)
    face_count = len(face_idx)
    if face_count == 0:
        return Mesh.empty()

    m = len(coords)
    offset = grid.size / 2.0 - 0.5
    visible = numpy.flatnonzero(face_mask.any(axis=1))
    rgb = numpy.zeros((m, 3), dtype=numpy.float32)
    rgb[visible] = _cell_colors(grid, coords[visible], default_color)

    face_cells = coords[cell_idx]
    verts = FACE_CORNERS[face_idx] + (face_cells.astype(numpy.float32) - offset)[:, None, :]
    normals = numpy.repeat(FACE_NORMALS[face_idx], 4, axis=0)
    colors = numpy.repeat(rgb[cell_idx], 4, axis=0)
    indices = (numpy.arange(face_count, dtype=numpy.uint32)[:, None] * 4 + FACE_INDICES[None, :]).ravel()

    mesh = Mesh(
        verts.astype(numpy.float32).ravel(),
        normals.ravel(),
        colors.ravel(),
        indices.astype(numpy.uint32),
        face_cells,
    )
    logutil.log("MESH", f"mesh rebuilt with {face_count} faces from {m} cells")
    return mesh
