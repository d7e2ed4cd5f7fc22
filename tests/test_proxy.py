import pytest

from proxy import (ProxyRegistry, ProxyNotFoundError, ProxyEvent, ElementProxy,
                   mouse_payload, wheel_payload, keydown_payload, touch_payload, size_payload)


def test_make_proxy_registers_once():
    registry = ProxyRegistry()
    first = registry.make_proxy({'id': 'canvas-1'})
    again = registry.make_proxy({'id': 'canvas-1'})
    assert first is again
    assert len(registry) == 1
    assert 'canvas-1' in registry


def test_require_proxy_names_the_missing_id():
    registry = ProxyRegistry()
    with pytest.raises(ProxyNotFoundError) as info:
        registry.require_proxy('nope')
    assert str(info.value) == "Input proxy not found for canvasId: nope. Call 'makeProxy' first."


def test_size_event_updates_the_rect():
    registry = ProxyRegistry()
    proxy = registry.make_proxy({'id': 'c'})
    assert registry.handle_event({'id': 'c', 'data': size_payload(10, 20, 640, 480)})
    assert proxy.client_width == 640
    assert proxy.client_height == 480
    assert proxy.bounding_rect() == {
        'left': 10, 'top': 20, 'width': 640, 'height': 480, 'right': 650, 'bottom': 500,
    }


def test_events_reach_registered_listeners():
    registry = ProxyRegistry()
    proxy = registry.make_proxy({'id': 'c'})
    seen = []
    proxy.add_event_listener('pointerdown', seen.append)
    proxy.add_event_listener('pointerdown', seen.append)
    registry.handle_event({'id': 'c', 'data': {'type': 'pointerdown', 'clientX': 5}})
    registry.handle_event({'id': 'c', 'data': {'type': 'pointerup'}})
    assert len(seen) == 1
    assert isinstance(seen[0], ProxyEvent)
    assert seen[0].clientX == 5

    proxy.remove_event_listener('pointerdown', seen.append)
    assert not proxy.has_listeners()


def test_events_for_unknown_ids_are_dropped():
    registry = ProxyRegistry()
    assert registry.handle_event({'id': 'ghost', 'data': {'type': 'wheel'}}) is False


def test_dispose_forgets_all_proxies():
    registry = ProxyRegistry()
    registry.make_proxy({'id': 'a'})
    registry.make_proxy({'id': 'b'})
    registry.dispose()
    assert len(registry) == 0
    assert registry.get_proxy('a') is None


def test_proxy_event_attributes_and_noop_methods():
    event = ProxyEvent({'type': 'wheel', 'deltaY': -3})
    assert event.deltaY == -3
    event.prevent_default()
    event.stop_propagation()
    with pytest.raises(AttributeError):
        event.deltaX


def test_pointer_capture():
    proxy = ElementProxy('c')
    proxy.set_pointer_capture(7)
    assert proxy.captured_pointers == {7}
    proxy.release_pointer_capture(7)
    proxy.release_pointer_capture(7)
    assert proxy.captured_pointers == set()


def test_mouse_payload_copies_only_known_properties():
    event = {'type': 'pointermove', 'clientX': 1, 'clientY': 2, 'button': 0,
             'target': object(), 'shiftKey': True}
    assert mouse_payload(event) == {'type': 'pointermove', 'clientX': 1, 'clientY': 2,
                                    'button': 0, 'shiftKey': True}


def test_wheel_payload():
    assert wheel_payload({'type': 'wheel', 'deltaX': 0, 'deltaY': 100, 'deltaZ': 5}) == {
        'type': 'wheel', 'deltaX': 0, 'deltaY': 100,
    }


def test_keydown_payload_only_for_arrow_keys():
    assert keydown_payload({'type': 'keydown', 'keyCode': 65}) is None
    assert keydown_payload({'type': 'keydown', 'keyCode': 37, 'shiftKey': False, 'repeat': True}) == {
        'type': 'keydown', 'keyCode': 37, 'shiftKey': False,
    }


def test_touch_payload_copies_each_touch():
    event = {'type': 'touchmove', 'touches': [
        {'pageX': 1, 'pageY': 2, 'clientX': 3, 'clientY': 4, 'force': 0.5},
        {'pageX': 5, 'pageY': 6, 'clientX': 7, 'clientY': 8},
    ]}
    assert touch_payload(event) == {'type': 'touchmove', 'touches': [
        {'pageX': 1, 'pageY': 2, 'clientX': 3, 'clientY': 4},
        {'pageX': 5, 'pageY': 6, 'clientX': 7, 'clientY': 8},
    ]}
