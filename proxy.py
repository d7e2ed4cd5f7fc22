'''
proxy.py -- forwards input events to the worker that owns the render surface

The worker never sees real window events. The host serializes them into
plain dicts (see the *_payload helpers below) and sends them as
('event', {'id': proxy_id, 'data': payload}) messages. On the worker side a
ProxyRegistry routes each payload to the ElementProxy registered under that
id, which stands in for the input element the orbit controls listen on.
'''

import logutil


class ProxyNotFoundError(Exception):
    pass


class ProxyEvent(dict):
    '''
    A forwarded event payload. Keys are readable as attributes
    (event.clientX) and the DOM-style cancel methods are no-ops.
    '''
    def __getattr__(self, name):
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name)

    def prevent_default(self):
        pass

    def stop_propagation(self):
        pass


class ElementProxy(object):
    def __init__(self, proxy_id):
        self.id = proxy_id
        self.left = 0
        self.top = 0
        self.width = 0
        self.height = 0
        self.style = {}
        self.captured_pointers = set()
        self._listeners = {}

    def __repr__(self):
        return f"ElementProxy({self.id!r}, {self.width}x{self.height} at {self.left},{self.top})"

    @property
    def client_width(self):
        return self.width

    @property
    def client_height(self):
        return self.height

    def bounding_rect(self):
        return {
            'left': self.left,
            'top': self.top,
            'width': self.width,
            'height': self.height,
            'right': self.left + self.width,
            'bottom': self.top + self.height,
        }

    def add_event_listener(self, event_type, fn):
        listeners = self._listeners.setdefault(event_type, [])
        if fn not in listeners:
            listeners.append(fn)

    def remove_event_listener(self, event_type, fn):
        listeners = self._listeners.get(event_type, [])
        if fn in listeners:
            listeners.remove(fn)

    def has_listeners(self, event_type=None):
        if event_type is None:
            return any(self._listeners.values())
        return bool(self._listeners.get(event_type))

    def dispatch_event(self, event):
        for fn in list(self._listeners.get(event.get('type'), ())):
            fn(event)

    def handle_event(self, data):
        if data.get('type') == 'size':
            self.left = data.get('left', 0)
            self.top = data.get('top', 0)
            self.width = data.get('width', 0)
            self.height = data.get('height', 0)
            return
        self.dispatch_event(ProxyEvent(data))

    def set_pointer_capture(self, pointer_id):
        self.captured_pointers.add(pointer_id)

    def release_pointer_capture(self, pointer_id):
        self.captured_pointers.discard(pointer_id)

    def focus(self):
        pass


class ProxyRegistry(object):
    def __init__(self):
        self.targets = {}

    def __len__(self):
        return len(self.targets)

    def __contains__(self, proxy_id):
        return proxy_id in self.targets

    def make_proxy(self, data):
        proxy_id = data['id']
        if proxy_id in self.targets:
            logutil.log("PROXY", f"proxy already exists for id {proxy_id}", level="WARN")
            return self.targets[proxy_id]
        self.targets[proxy_id] = ElementProxy(proxy_id)
        logutil.log("PROXY", f"proxy created for id {proxy_id}")
        return self.targets[proxy_id]

    def get_proxy(self, proxy_id):
        return self.targets.get(proxy_id)

    def require_proxy(self, proxy_id):
        proxy = self.targets.get(proxy_id)
        if proxy is None:
            raise ProxyNotFoundError(f"Input proxy not found for canvasId: {proxy_id}. Call 'makeProxy' first.")
        return proxy

    def handle_event(self, data):
        proxy = self.targets.get(data.get('id'))
        if proxy is None:
            logutil.log("PROXY", f"proxy not found for event target id {data.get('id')}", level="WARN")
            return False
        proxy.handle_event(data['data'])
        return True

    def dispose(self):
        self.targets = {}


# Host side: payload builders for the forwarded events.

MOUSE_PROPERTIES = (
    'ctrlKey',
    'metaKey',
    'shiftKey',
    'button',
    'pointerType',
    'clientX',
    'clientY',
    'pointerId',
    'pageX',
    'pageY',
)
WHEEL_PROPERTIES = ('deltaX', 'deltaY')
KEYDOWN_PROPERTIES = ('ctrlKey', 'metaKey', 'shiftKey', 'keyCode')
TOUCH_PROPERTIES = ('pageX', 'pageY', 'clientX', 'clientY')

# The four arrow keys, the only keys the orbit controls use.
ORBIT_KEYS = {
    37: 'left',
    38: 'up',
    39: 'right',
    40: 'down',
}


def _copy_properties(src, properties):
    return dict((name, src[name]) for name in properties if name in src)


def mouse_payload(event):
    data = {'type': event['type']}
    data.update(_copy_properties(event, MOUSE_PROPERTIES))
    return data


def wheel_payload(event):
    data = {'type': event['type']}
    data.update(_copy_properties(event, WHEEL_PROPERTIES))
    return data


def keydown_payload(event):
    """ Payload for an arrow key press, None for any other key. """
    if event.get('keyCode') not in ORBIT_KEYS:
        return None
    data = {'type': event['type']}
    data.update(_copy_properties(event, KEYDOWN_PROPERTIES))
    return data


def touch_payload(event):
    touches = [_copy_properties(t, TOUCH_PROPERTIES) for t in event.get('touches', ())]
    return {'type': event['type'], 'touches': touches}


def size_payload(left, top, width, height):
    return {'type': 'size', 'left': left, 'top': top, 'width': width, 'height': height}


class ElementProxySender(object):
    '''
    pyglet window event handler that forwards input to a proxy as 'event'
    messages. Push it onto a window with window.push_handlers(sender).

    pyglet reports positions from the bottom-left corner; forwarded events
    use top-left client coordinates like the proxy's bounding rect.
    '''
    WHEEL_PIXELS = 100.0

    def __init__(self, proxy_id, send, width=0, height=0):
        from pyglet.window import key, mouse
        self.proxy_id = proxy_id
        self.send = send
        self.width = width
        self.height = height
        self.buttons = {mouse.LEFT: 0, mouse.MIDDLE: 1, mouse.RIGHT: 2}
        self.key_codes = {key.LEFT: 37, key.UP: 38, key.RIGHT: 39, key.DOWN: 40}
        self.mods = (key.MOD_CTRL, key.MOD_COMMAND, key.MOD_SHIFT)

    def _send(self, payload):
        if payload is not None:
            self.send(('event', {'id': self.proxy_id, 'data': payload}))

    def _modifiers(self, modifiers):
        ctrl, meta, shift = self.mods
        return {
            'ctrlKey': bool(modifiers & ctrl),
            'metaKey': bool(modifiers & meta),
            'shiftKey': bool(modifiers & shift),
        }

    def _pointer(self, event_type, x, y, button, modifiers):
        event = {
            'type': event_type,
            'button': button,
            'pointerType': 'mouse',
            'pointerId': 1,
            'clientX': x,
            'clientY': self.height - y,
            'pageX': x,
            'pageY': self.height - y,
        }
        event.update(self._modifiers(modifiers))
        return mouse_payload(event)

    def send_size(self):
        self._send(size_payload(0, 0, self.width, self.height))

    def on_resize(self, width, height):
        self.width = width
        self.height = height
        self.send_size()

    def on_mouse_press(self, x, y, button, modifiers):
        self._send(self._pointer('pointerdown', x, y, self.buttons.get(button, 0), modifiers))

    def on_mouse_release(self, x, y, button, modifiers):
        self._send(self._pointer('pointerup', x, y, self.buttons.get(button, 0), modifiers))

    def on_mouse_drag(self, x, y, dx, dy, buttons, modifiers):
        self._send(self._pointer('pointermove', x, y, -1, modifiers))

    def on_mouse_motion(self, x, y, dx, dy):
        self._send(self._pointer('pointermove', x, y, -1, 0))

    def on_mouse_scroll(self, x, y, scroll_x, scroll_y):
        self._send(wheel_payload({
            'type': 'wheel',
            'deltaX': -scroll_x * self.WHEEL_PIXELS,
            'deltaY': -scroll_y * self.WHEEL_PIXELS,
        }))

    def on_key_press(self, symbol, modifiers):
        event = {'type': 'keydown', 'keyCode': self.key_codes.get(symbol)}
        event.update(self._modifiers(modifiers))
        self._send(keydown_payload(event))
