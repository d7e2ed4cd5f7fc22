'''
orbit.py -- damped orbit camera controls driven by forwarded input events

The controls listen on an ElementProxy rather than a real window: the proxy
provides the element size used to turn pixel deltas into angles and pan
distances, and receives the pointer, wheel, key and touch events the host
forwards.

Left drag rotates, middle drag or the wheel dollies, right drag (or left
drag with ctrl/meta/shift) pans, arrow keys pan. One finger rotates, two
fingers pinch to dolly and move to pan.
'''

import math

from pyglet.math import Vec3

import config
import logutil

EPS = 0.000001

STATE_NONE = 'none'
STATE_ROTATE = 'rotate'
STATE_DOLLY = 'dolly'
STATE_PAN = 'pan'
STATE_TOUCH_ROTATE = 'touch_rotate'
STATE_TOUCH_DOLLY_PAN = 'touch_dolly_pan'

KEY_LEFT = 37
KEY_UP = 38
KEY_RIGHT = 39
KEY_DOWN = 40


def to_spherical(offset):
    """ (radius, theta, phi) of `offset`; theta around +Y from +Z, phi from +Y. """
    radius = abs(offset)
    if radius == 0:
        return 0.0, 0.0, 0.0
    theta = math.atan2(offset.x, offset.z)
    phi = math.acos(max(-1.0, min(1.0, offset.y / radius)))
    return radius, theta, phi


def from_spherical(radius, theta, phi):
    sin_phi = math.sin(phi)
    return Vec3(radius * sin_phi * math.sin(theta), radius * math.cos(phi), radius * sin_phi * math.cos(theta))


class OrbitControls(object):
    EVENTS = (
        'pointerdown', 'pointermove', 'pointerup', 'pointercancel',
        'wheel', 'keydown', 'contextmenu',
        'touchstart', 'touchmove', 'touchend',
    )

    def __init__(self, camera, element, grid_size=None):
        self.camera = camera
        self.element = element
        self.target = Vec3(0.0, 0.0, 0.0)

        self.enabled = True
        self.enable_damping = True
        self.damping_factor = getattr(config, 'ORBIT_DAMPING', 0.25)
        self.screen_space_panning = False
        self.min_polar_angle = 0.0
        self.max_polar_angle = getattr(config, 'ORBIT_MAX_POLAR', math.pi / 1.5)
        self.min_distance = getattr(config, 'ORBIT_MIN_DISTANCE', 5.0)
        self.max_distance = getattr(config, 'ORBIT_MAX_DISTANCE', 50.0)
        if grid_size is not None:
            self.max_distance = max(self.max_distance, grid_size * getattr(config, 'ORBIT_GRID_FACTOR', 3.0))
        self.rotate_speed = getattr(config, 'ORBIT_ROTATE_SPEED', 1.0)
        self.zoom_speed = getattr(config, 'ORBIT_ZOOM_SPEED', 1.0)
        self.pan_speed = getattr(config, 'ORBIT_PAN_SPEED', 1.0)
        self.key_pan_speed = getattr(config, 'ORBIT_KEY_PAN_PIXELS', 7.0)

        self.state = STATE_NONE
        self.delta_theta = 0.0
        self.delta_phi = 0.0
        self.scale = 1.0
        self.pan_offset = Vec3(0.0, 0.0, 0.0)
        self._start = (0.0, 0.0)
        self._touch_distance = 0.0
        self._pointer_id = None

        self._handlers = {
            'pointerdown': self.on_pointer_down,
            'pointermove': self.on_pointer_move,
            'pointerup': self.on_pointer_up,
            'pointercancel': self.on_pointer_up,
            'wheel': self.on_wheel,
            'keydown': self.on_key_down,
            'contextmenu': self.on_context_menu,
            'touchstart': self.on_touch_start,
            'touchmove': self.on_touch_move,
            'touchend': self.on_touch_end,
        }
        for event_type, fn in self._handlers.items():
            element.add_event_listener(event_type, fn)
        self.update()
        logutil.log("ORBIT", f"controls bound to proxy {element.id}")

    def dispose(self):
        for event_type, fn in self._handlers.items():
            self.element.remove_event_listener(event_type, fn)
        self.state = STATE_NONE

    # -- camera motion

    def rotate_left(self, angle):
        self.delta_theta -= angle

    def rotate_up(self, angle):
        self.delta_phi -= angle

    def dolly_in(self, dolly_scale):
        self.scale *= dolly_scale

    def dolly_out(self, dolly_scale):
        self.scale /= dolly_scale

    def zoom_scale(self):
        return 0.95 ** self.zoom_speed

    def _client_height(self):
        return self.element.client_height or 1

    def rotate_pixels(self, dx, dy):
        h = self._client_height()
        self.rotate_left(2 * math.pi * dx / h * self.rotate_speed)
        self.rotate_up(2 * math.pi * dy / h * self.rotate_speed)

    def pan_pixels(self, dx, dy):
        """ Pan so the target moves `dx`, `dy` pixels on screen. """
        offset = self.camera.position - self.target
        target_distance = abs(offset) * math.tan(math.radians(self.camera.fov / 2.0))
        h = self._client_height()
        self.pan_left(2 * dx * target_distance / h * self.pan_speed)
        self.pan_up(2 * dy * target_distance / h * self.pan_speed)

    def pan_left(self, distance):
        self.pan_offset = self.pan_offset + self.camera.right() * -distance

    def pan_up(self, distance):
        if self.screen_space_panning:
            v = self.camera.true_up()
        else:
            v = self.camera.up.cross(self.camera.right())
        self.pan_offset = self.pan_offset + v * distance

    def update(self):
        """ Move the camera one damped step toward its target. Returns True if it moved. """
        offset = self.camera.position - self.target
        radius, theta, phi = to_spherical(offset)

        if self.enable_damping:
            theta += self.delta_theta * self.damping_factor
            phi += self.delta_phi * self.damping_factor
        else:
            theta += self.delta_theta
            phi += self.delta_phi
        phi = max(self.min_polar_angle, min(self.max_polar_angle, phi))
        phi = max(EPS, min(math.pi - EPS, phi))
        radius = max(self.min_distance, min(self.max_distance, radius * self.scale))

        if self.enable_damping:
            self.target = self.target + self.pan_offset * self.damping_factor
        else:
            self.target = self.target + self.pan_offset

        old_position = self.camera.position
        self.camera.position = self.target + from_spherical(radius, theta, phi)
        self.camera.look_at(self.target)

        if self.enable_damping:
            keep = 1.0 - self.damping_factor
            self.delta_theta *= keep
            self.delta_phi *= keep
            self.pan_offset = self.pan_offset * keep
        else:
            self.delta_theta = 0.0
            self.delta_phi = 0.0
            self.pan_offset = Vec3(0.0, 0.0, 0.0)
        self.scale = 1.0

        return abs(self.camera.position - old_position) > EPS

    # -- event handlers

    def on_context_menu(self, event):
        event.prevent_default()

    def on_pointer_down(self, event):
        if not self.enabled or event.get('pointerType') == 'touch':
            return
        self._pointer_id = event.get('pointerId')
        self.element.set_pointer_capture(self._pointer_id)
        button = event.get('button', 0)
        pan_modifier = event.get('ctrlKey') or event.get('metaKey') or event.get('shiftKey')
        if button == 0:
            self.state = STATE_PAN if pan_modifier else STATE_ROTATE
        elif button == 1:
            self.state = STATE_DOLLY
        elif button == 2:
            self.state = STATE_PAN
        else:
            self.state = STATE_NONE
        self._start = (event.get('clientX', 0), event.get('clientY', 0))

    def on_pointer_move(self, event):
        if not self.enabled or self.state == STATE_NONE or event.get('pointerType') == 'touch':
            return
        x, y = event.get('clientX', 0), event.get('clientY', 0)
        dx, dy = x - self._start[0], y - self._start[1]
        self._start = (x, y)
        if self.state == STATE_ROTATE:
            self.rotate_pixels(dx, dy)
        elif self.state == STATE_DOLLY:
            if dy > 0:
                self.dolly_out(self.zoom_scale())
            elif dy < 0:
                self.dolly_in(self.zoom_scale())
        elif self.state == STATE_PAN:
            self.pan_pixels(dx, dy)

    def on_pointer_up(self, event):
        if self._pointer_id is not None:
            self.element.release_pointer_capture(self._pointer_id)
        self._pointer_id = None
        if self.state in (STATE_ROTATE, STATE_DOLLY, STATE_PAN):
            self.state = STATE_NONE

    def on_wheel(self, event):
        if not self.enabled or self.state not in (STATE_NONE, STATE_ROTATE):
            return
        event.prevent_default()
        delta_y = event.get('deltaY', 0)
        if delta_y < 0:
            self.dolly_in(self.zoom_scale())
        elif delta_y > 0:
            self.dolly_out(self.zoom_scale())

    def on_key_down(self, event):
        if not self.enabled:
            return
        code = event.get('keyCode')
        if code == KEY_UP:
            self.pan_pixels(0, self.key_pan_speed)
        elif code == KEY_DOWN:
            self.pan_pixels(0, -self.key_pan_speed)
        elif code == KEY_LEFT:
            self.pan_pixels(self.key_pan_speed, 0)
        elif code == KEY_RIGHT:
            self.pan_pixels(-self.key_pan_speed, 0)
        else:
            return
        event.prevent_default()

    def _touch_midpoint(self, touches):
        a, b = touches[0], touches[1]
        return ((a['pageX'] + b['pageX']) / 2.0, (a['pageY'] + b['pageY']) / 2.0)

    def _touch_spread(self, touches):
        a, b = touches[0], touches[1]
        return math.hypot(a['pageX'] - b['pageX'], a['pageY'] - b['pageY'])

    def on_touch_start(self, event):
        if not self.enabled:
            return
        event.prevent_default()
        touches = event.get('touches', [])
        if len(touches) == 1:
            self.state = STATE_TOUCH_ROTATE
            self._start = (touches[0]['pageX'], touches[0]['pageY'])
        elif len(touches) == 2:
            self.state = STATE_TOUCH_DOLLY_PAN
            self._touch_distance = self._touch_spread(touches)
            self._start = self._touch_midpoint(touches)
        else:
            self.state = STATE_NONE

    def on_touch_move(self, event):
        if not self.enabled:
            return
        event.prevent_default()
        touches = event.get('touches', [])
        if self.state == STATE_TOUCH_ROTATE and len(touches) == 1:
            x, y = touches[0]['pageX'], touches[0]['pageY']
            self.rotate_pixels(x - self._start[0], y - self._start[1])
            self._start = (x, y)
        elif self.state == STATE_TOUCH_DOLLY_PAN and len(touches) == 2:
            spread = self._touch_spread(touches)
            if self._touch_distance > 0 and spread > 0:
                self.dolly_out((spread / self._touch_distance) ** self.zoom_speed)
            self._touch_distance = spread
            x, y = self._touch_midpoint(touches)
            self.pan_pixels(x - self._start[0], y - self._start[1])
            self._start = (x, y)

    def on_touch_end(self, event):
        self.state = STATE_NONE
