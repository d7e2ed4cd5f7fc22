import math

import pytest
from pyglet.math import Vec3

from orbit import OrbitControls, to_spherical, from_spherical, STATE_NONE, STATE_ROTATE, STATE_PAN
from proxy import ElementProxy, size_payload
from scene import Camera


def _controls(distance=20.0, grid_size=None):
    element = ElementProxy('canvas')
    element.handle_event(size_payload(0, 0, 800, 600))
    camera = Camera(aspect=800 / 600.0)
    camera.position = Vec3(0.0, 0.0, distance)
    controls = OrbitControls(camera, element, grid_size=grid_size)
    return controls, element, camera


def _distance(controls):
    return abs(controls.camera.position - controls.target)


def _settle(controls, steps=200):
    for _ in range(steps):
        controls.update()


def test_spherical_round_trip():
    offset = Vec3(3.0, 4.0, 5.0)
    back = from_spherical(*to_spherical(offset))
    assert (back.x, back.y, back.z) == pytest.approx((3.0, 4.0, 5.0))


def test_controls_listen_on_the_proxy_until_disposed():
    controls, element, _ = _controls()
    assert element.has_listeners('pointerdown')
    assert element.has_listeners('wheel')
    controls.dispose()
    assert not element.has_listeners()


def test_left_drag_rotates_around_the_target():
    controls, element, camera = _controls()
    element.handle_event({'type': 'pointerdown', 'button': 0, 'pointerId': 1, 'clientX': 100, 'clientY': 100})
    assert controls.state == STATE_ROTATE
    assert element.captured_pointers == {1}
    element.handle_event({'type': 'pointermove', 'clientX': 200, 'clientY': 100})
    element.handle_event({'type': 'pointerup', 'pointerId': 1})
    assert controls.state == STATE_NONE
    assert element.captured_pointers == set()

    assert controls.update()
    assert camera.position.x < 0
    assert _distance(controls) == pytest.approx(20.0)
    assert camera.target == controls.target


def test_damping_settles_the_camera():
    controls, element, camera = _controls()
    controls.rotate_pixels(120, 40)
    controls.update()
    first = controls.delta_theta
    controls.update()
    assert abs(controls.delta_theta) < abs(first)
    _settle(controls)
    assert controls.update() is False
    # the full rotation is applied once the motion has decayed
    _, theta, _ = to_spherical(camera.position - controls.target)
    assert theta == pytest.approx(-2 * math.pi * 120 / 600.0, abs=1e-4)


def test_without_damping_motion_is_applied_at_once():
    controls, _, camera = _controls()
    controls.enable_damping = False
    controls.rotate_left(0.5)
    assert controls.update()
    assert controls.update() is False
    _, theta, _ = to_spherical(camera.position)
    assert theta == pytest.approx(-0.5)


def test_polar_angle_is_clamped():
    controls, _, camera = _controls()
    controls.rotate_up(-10.0)
    _settle(controls)
    _, _, phi = to_spherical(camera.position - controls.target)
    assert phi == pytest.approx(controls.max_polar_angle)


def test_wheel_dollies_and_distance_is_clamped():
    controls, element, _ = _controls()
    element.handle_event({'type': 'wheel', 'deltaY': -100})
    controls.update()
    assert _distance(controls) == pytest.approx(20.0 * 0.95)

    for _ in range(100):
        element.handle_event({'type': 'wheel', 'deltaY': -100})
    controls.update()
    assert _distance(controls) == pytest.approx(controls.min_distance)

    for _ in range(100):
        element.handle_event({'type': 'wheel', 'deltaY': 100})
    controls.update()
    assert _distance(controls) == pytest.approx(50.0)


def test_max_distance_grows_with_grid_size():
    controls, _, _ = _controls(grid_size=30)
    assert controls.max_distance == 90


def test_arrow_keys_pan_the_target():
    controls, element, camera = _controls()
    element.handle_event({'type': 'keydown', 'keyCode': 38})
    _settle(controls)
    # camera looks down -Z, so "up" pans along the ground toward the view direction
    assert controls.target.z < 0
    assert controls.target.y == pytest.approx(0.0)
    assert _distance(controls) == pytest.approx(20.0)

    before = controls.target
    element.handle_event({'type': 'keydown', 'keyCode': 65})
    _settle(controls)
    assert controls.target == before


def test_right_drag_pans():
    controls, element, _ = _controls()
    element.handle_event({'type': 'pointerdown', 'button': 2, 'pointerId': 1, 'clientX': 0, 'clientY': 0})
    assert controls.state == STATE_PAN
    element.handle_event({'type': 'pointermove', 'clientX': 50, 'clientY': 0})
    _settle(controls)
    assert controls.target.x < 0


def test_touch_pointers_are_left_to_touch_events():
    controls, element, _ = _controls()
    element.handle_event({'type': 'pointerdown', 'pointerType': 'touch', 'button': 0, 'clientX': 0, 'clientY': 0})
    assert controls.state == STATE_NONE


def test_one_finger_touch_rotates():
    controls, element, camera = _controls()
    element.handle_event({'type': 'touchstart', 'touches': [{'pageX': 10, 'pageY': 10}]})
    element.handle_event({'type': 'touchmove', 'touches': [{'pageX': 110, 'pageY': 10}]})
    element.handle_event({'type': 'touchend', 'touches': []})
    assert controls.update()
    assert camera.position.x < 0


def test_pinch_out_dollies_in():
    controls, element, _ = _controls()
    element.handle_event({'type': 'touchstart', 'touches': [{'pageX': 100, 'pageY': 100}, {'pageX': 200, 'pageY': 100}]})
    element.handle_event({'type': 'touchmove', 'touches': [{'pageX': 50, 'pageY': 100}, {'pageX': 250, 'pageY': 100}]})
    controls.update()
    assert _distance(controls) == pytest.approx(10.0)


def test_disabled_controls_ignore_input():
    controls, element, camera = _controls()
    controls.enabled = False
    element.handle_event({'type': 'wheel', 'deltaY': -100})
    element.handle_event({'type': 'keydown', 'keyCode': 37})
    assert controls.update() is False
