import pytest
from pyglet.math import Mat4

from mesher import build_mesh, Mesh
from proxy import ElementProxy
from scene import SceneHost, Camera, Lighting, ResourceError, create_surface
from voxels import VoxelGrid


def _mesh(*cells):
    grid = VoxelGrid(4)
    for cell in cells:
        grid.set(*cell, "red")
    return build_mesh(grid)


def test_camera_starts_outside_the_grid(fake_surface):
    scene = SceneHost(create_surface(fake_surface, 800, 600), 800, 600, grid_size=4)
    position = scene.camera.position
    assert (position.x, position.y, position.z) == pytest.approx((10.5, 7.5, 10.5))
    assert scene.camera.aspect == pytest.approx(800 / 600.0)


def test_camera_distance_grows_with_grid(fake_surface):
    scene = SceneHost(fake_surface, 100, 100, grid_size=40)
    assert abs(scene.camera.position) == pytest.approx(60.0 * (0.7 ** 2 * 2 + 0.5 ** 2) ** 0.5)
    assert fake_surface.size == (100, 100)


def test_camera_matrices():
    camera = Camera(aspect=2.0)
    assert camera.fov == 75
    assert isinstance(camera.projection(), Mat4)
    assert isinstance(camera.view(), Mat4)
    camera.set_aspect(300, 0)
    assert camera.aspect == 300.0


def test_lighting_defaults():
    lighting = Lighting()
    assert lighting.ambient == pytest.approx((0.4, 0.4, 0.4))
    assert sum(c * c for c in lighting.direction) == pytest.approx(1.0)


def test_set_mesh_swaps_and_releases_previous(fake_surface):
    scene = SceneHost(fake_surface, 10, 10, grid_size=4)
    first = _mesh((0, 0, 0))
    scene.set_mesh(first)
    assert scene.mesh is first
    second = _mesh((1, 1, 1), (1, 1, 2))
    scene.set_mesh(second)
    assert scene.mesh is second
    assert first.positions is None
    assert fake_surface.released == [fake_surface.uploads[0]]
    assert fake_surface.live_handles() == [fake_surface.uploads[1]]


def test_empty_mesh_is_not_uploaded(fake_surface):
    scene = SceneHost(fake_surface, 10, 10, grid_size=4)
    scene.set_mesh(_mesh((0, 0, 0)))
    scene.set_mesh(Mesh.empty())
    assert len(fake_surface.uploads) == 1
    assert fake_surface.live_handles() == []


def test_render_draws_live_mesh_and_counts_frames(fake_surface):
    scene = SceneHost(fake_surface, 10, 10, grid_size=4)
    scene.render()
    scene.set_mesh(_mesh((2, 2, 2)))
    scene.render()
    assert fake_surface.draws == [None, fake_surface.uploads[0]]
    assert scene.frame_id == 2


def test_render_updates_attached_controls(fake_surface):
    scene = SceneHost(fake_surface, 10, 10, grid_size=4)
    controls = scene.attach_controls(ElementProxy('c'))
    controls.dolly_in(0.5)
    before = abs(scene.camera.position)
    scene.render()
    assert abs(scene.camera.position) == pytest.approx(before * 0.5)


def test_resize(fake_surface):
    scene = SceneHost(fake_surface, 10, 10, grid_size=4)
    scene.resize(300, 150)
    assert fake_surface.size == (300, 150)
    assert scene.camera.aspect == 2.0


def test_dispose_releases_everything_once(fake_surface):
    scene = SceneHost(fake_surface, 10, 10, grid_size=4)
    element = ElementProxy('c')
    scene.attach_controls(element)
    scene.set_mesh(_mesh((0, 0, 0)))
    scene.dispose()
    scene.dispose()
    assert scene.disposed
    assert fake_surface.closed
    assert fake_surface.live_handles() == []
    assert not element.has_listeners()
    with pytest.raises(ResourceError):
        scene.render()
    with pytest.raises(ResourceError):
        scene.resize(1, 1)
    with pytest.raises(ResourceError):
        scene.set_mesh(Mesh.empty())


def test_create_surface_rejects_unknown_canvases():
    with pytest.raises(ResourceError):
        create_surface(object(), 1, 1)
    with pytest.raises(ResourceError):
        create_surface('offscreen-canvas', 1, 1)
