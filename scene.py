'''
scene.py -- camera, lighting, render surface and the single live voxel mesh
'''

import math

from pyglet.math import Mat4, Vec3

import config
import logutil
from mesher import Mesh
from orbit import OrbitControls


class ResourceError(Exception):
    """ The render surface or camera is missing (not started or disposed). """


def _hex_rgb(value):
    return (((value >> 16) & 0xFF) / 255.0, ((value >> 8) & 0xFF) / 255.0, (value & 0xFF) / 255.0)


class Camera(object):
    def __init__(self, fov=None, aspect=1.0, near=None, far=None):
        self.fov = fov or getattr(config, 'CAMERA_FOV', 75)
        self.aspect = aspect
        self.near = near or getattr(config, 'CAMERA_NEAR', 0.1)
        self.far = far or getattr(config, 'CAMERA_FAR', 1000.0)
        self.position = Vec3(0.0, 0.0, 1.0)
        self.target = Vec3(0.0, 0.0, 0.0)
        self.up = Vec3(0.0, 1.0, 0.0)

    def set_aspect(self, width, height):
        self.aspect = width / float(max(1, height))

    def look_at(self, target):
        self.target = target

    def forward(self):
        return (self.target - self.position).normalize()

    def right(self):
        return self.forward().cross(self.up).normalize()

    def true_up(self):
        return self.right().cross(self.forward()).normalize()

    def projection(self):
        return Mat4.perspective_projection(self.aspect, self.near, self.far, self.fov)

    def view(self):
        return Mat4.look_at(self.position, self.target, self.up)


class Lighting(object):
    def __init__(self):
        ambient = _hex_rgb(getattr(config, 'AMBIENT_COLOR', 0xcccccc))
        ambient_intensity = getattr(config, 'AMBIENT_INTENSITY', 0.5)
        self.ambient = tuple(c * ambient_intensity for c in ambient)
        dx, dy, dz = getattr(config, 'LIGHT_DIR', (1.0, 1.0, 0.5))
        length = math.sqrt(dx*dx + dy*dy + dz*dz)
        self.direction = (dx / length, dy / length, dz / length)
        intensity = getattr(config, 'LIGHT_INTENSITY', 1.0)
        self.light_color = (intensity, intensity, intensity)


class GLSurface(object):
    '''
    pyglet window the scene is drawn into. GL is only imported here so the
    rest of the scene can be used without a display.
    '''
    def __init__(self, width, height, caption='voxelscript', visible=True):
        import pyglet
        if getattr(config, 'HEADLESS', False):
            pyglet.options['headless'] = True
        import pyglet.window
        import pyglet.gl as gl
        import shaders
        self.gl = gl
        self.window = pyglet.window.Window(width=width, height=height, caption=caption,
                                           visible=visible, resizable=True)
        self.program = shaders.create_voxel_shader()
        gl.glClearColor(*getattr(config, 'CLEAR_COLOR', (0.0, 0.0, 0.0, 0.0)))
        gl.glEnable(gl.GL_DEPTH_TEST)
        # Cull back faces; faces are built with outward winding.
        gl.glEnable(gl.GL_CULL_FACE)
        gl.glCullFace(gl.GL_BACK)
        logutil.log("SCENE", f"GL surface created {width}x{height}")

    def push_handlers(self, *handlers):
        self.window.push_handlers(*handlers)

    def set_size(self, width, height):
        if tuple(self.window.get_size()) != (width, height):
            self.window.set_size(width, height)

    def upload(self, mesh):
        self.window.switch_to()
        return self.program.vertex_list_indexed(
            mesh.vertex_count,
            self.gl.GL_TRIANGLES,
            mesh.indices.tolist(),
            position=('f', mesh.positions.tolist()),
            normal=('f', mesh.normals.tolist()),
            color=('f', mesh.colors.tolist()),
        )

    def release(self, handle):
        handle.delete()

    def draw(self, handle, camera, lighting):
        gl = self.gl
        window = self.window
        window.switch_to()
        window.dispatch_events()
        width, height = window.get_framebuffer_size()
        gl.glViewport(0, 0, width, height)
        window.clear()
        self.program.bind()
        self.program['u_projection'] = camera.projection()
        self.program['u_view'] = camera.view()
        self.program['u_ambient'] = lighting.ambient
        self.program['u_light_dir'] = lighting.direction
        self.program['u_light_color'] = lighting.light_color
        if handle is not None:
            handle.draw(gl.GL_TRIANGLES)
        self.program.unbind()
        window.flip()

    def close(self):
        self.window.close()


def create_surface(canvas, width, height):
    """ Resolve the `canvas` field of a start message into a render surface.

    Objects that already provide upload/release/draw are used as is, so an
    in-process host can hand over its own surface. The strings 'window',
    'hidden' and 'headless' (or None) create a GLSurface.
    """
    if canvas is not None and not isinstance(canvas, str):
        if all(hasattr(canvas, name) for name in ('set_size', 'upload', 'release', 'draw', 'close')):
            return canvas
        raise ResourceError(f"unsupported render surface {canvas!r}")
    if canvas in (None, 'window'):
        return GLSurface(width, height)
    if canvas == 'hidden':
        return GLSurface(width, height, visible=False)
    if canvas == 'headless':
        config.HEADLESS = True
        return GLSurface(width, height, visible=False)
    raise ResourceError(f"unsupported render surface {canvas!r}")


class SceneHost(object):
    '''
    Owns the render surface, camera, lighting, optional orbit controls and
    at most one live mesh. The mesh and its GPU handle are swapped as a
    single reference so a frame never sees half of an update.
    '''
    def __init__(self, surface, width, height, grid_size):
        self.surface = surface
        self.width = width
        self.height = height
        self.grid_size = grid_size
        self.camera = Camera()
        self.camera.set_aspect(width, height)
        distance = max(getattr(config, 'CAMERA_MIN_DISTANCE', 15.0),
                       grid_size * getattr(config, 'CAMERA_GRID_FACTOR', 1.5))
        self.camera.position = Vec3(distance * 0.7, distance * 0.5, distance * 0.7)
        self.camera.look_at(Vec3(0.0, 0.0, 0.0))
        self.lighting = Lighting()
        self.controls = None
        self.frame_id = 0
        self._live = (Mesh.empty(), None)
        surface.set_size(width, height)
        logutil.log("SCENE", f"scene created {width}x{height}, camera distance {distance:.1f}")

    @property
    def mesh(self):
        return self._live[0]

    @property
    def disposed(self):
        return self.surface is None

    def _require_surface(self, action):
        if self.surface is None or self.camera is None:
            raise ResourceError(f"cannot {action}: renderer or camera not initialized")

    def attach_controls(self, element):
        self._require_surface("attach controls")
        if self.controls is not None:
            self.controls.dispose()
        self.controls = OrbitControls(self.camera, element, grid_size=self.grid_size)
        return self.controls

    def resize(self, width, height):
        self._require_surface("resize")
        self.surface.set_size(width, height)
        self.camera.set_aspect(width, height)
        self.width = width
        self.height = height
        logutil.log("SCENE", f"resized to {width}x{height}")

    def set_mesh(self, mesh):
        """ Install `mesh` as the live mesh and release the previous one. """
        self._require_surface("set mesh")
        handle = None
        if not mesh.is_empty:
            handle = self.surface.upload(mesh)
        old_mesh, old_handle = self._live
        self._live = (mesh, handle)
        if old_handle is not None:
            self.surface.release(old_handle)
        if old_mesh is not mesh:
            old_mesh.release()

    def render(self, dt=None):
        self._require_surface("render")
        if self.controls is not None:
            self.controls.update()
        mesh, handle = self._live
        self.surface.draw(handle, self.camera, self.lighting)
        self.frame_id += 1

    def dispose(self):
        if self.surface is None:
            return
        surface = self.surface
        mesh, handle = self._live
        self._live = (Mesh.empty(), None)
        try:
            if self.controls is not None:
                self.controls.dispose()
            if handle is not None:
                surface.release(handle)
            mesh.release()
        finally:
            self.controls = None
            self.surface = None
            self.camera = None
            surface.close()
            logutil.log("SCENE", "scene resources disposed")
