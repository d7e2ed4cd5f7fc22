'''
worker.py -- the voxel worker: message handling, script runs and the render loop

The worker owns one VoxelGrid, one ScriptEvaluator and one SceneHost. The
host talks to it with (type, payload) messages over a pipe:

    in:  makeProxy, event, start, resize, runPythonCode, evaluateChallenge, terminate
    out: ready, init, resize, runPythonCode, terminate, error, warning, challengeResult

Everything runs on one thread. Script runs are generators stepped a chunk at
a time between pipe polls and render ticks, so the surface keeps drawing and
input keeps flowing while a large grid fills. Only one run may be active;
a second request is rejected, not queued.
'''

import multiprocessing

import pyglet.clock
from pyglet.event import EVENT_HANDLED

import config
import logutil
from challenge import ChallengeEvaluator
from mesher import build_mesh
from populate import GridPopulator
from proxy import ProxyRegistry, ElementProxySender
from scene import SceneHost, ResourceError, create_surface
from scripting import ScriptEvaluator
from voxels import VoxelGrid

PHASE_UNINITIALIZED = 'uninitialized'
PHASE_READY = 'ready'
PHASE_RUNNING = 'running'
PHASE_TERMINATED = 'terminated'


class ReentrancyError(Exception):
    pass


class WorkerState(object):
    def __init__(self):
        self.phase = PHASE_UNINITIALIZED
        self.clear()

    def clear(self):
        self.grid_size = 0
        self.grid = None
        self.evaluator = None
        self.populator = None
        self.scene = None
        self.proxy = None
        self.proxy_id = None
        self.render_loop = None
        self.running = False


class _Task(object):
    def __init__(self, name, gen, on_success, on_failure):
        self.name = name
        self.gen = gen
        self.on_success = on_success
        self.on_failure = on_failure


class WindowEvents(object):
    '''
    pyglet handlers for a window the worker opened itself: user resizes
    reach the camera and closing the window terminates the worker.
    '''
    def __init__(self, controller):
        self.controller = controller

    def on_resize(self, width, height):
        scene = self.controller.state.scene
        if scene is None or scene.disposed or width <= 0 or height <= 0:
            return
        scene.resize(width, height)

    def on_close(self):
        if not self.controller.terminated:
            logutil.log("WORKER", "window closed")
            self.controller.handle(('terminate', {}))
        return EVENT_HANDLED


class WorkerController(object):
    def __init__(self, send, registry=None, clock=None, surface_factory=None, on_close=None):
        self.send = send
        self.registry = registry if registry is not None else ProxyRegistry()
        self.clock = clock or pyglet.clock.Clock()
        self.surface_factory = surface_factory or create_surface
        self.on_close = on_close
        self.state = WorkerState()
        self._task = None
        self._render_error_reported = False
        self.handlers = {
            'makeProxy': self.make_proxy,
            'event': self.forward_event,
            'start': self.start,
            'resize': self.resize,
            'runPythonCode': self.run_python_code,
            'evaluateChallenge': self.evaluate_challenge,
            'terminate': self.terminate,
        }

    @property
    def phase(self):
        return self.state.phase

    @property
    def terminated(self):
        return self.state.phase == PHASE_TERMINATED

    @property
    def busy(self):
        return self._task is not None

    def post(self, msg_type, **data):
        self.send((msg_type, data))

    def _fail(self, prefix, error):
        logutil.log("WORKER", f"{prefix}: {error}", level="ERROR")
        self.post('error', message=f"{prefix}: {error}")

    def handle(self, message):
        msg_type, data = message
        data = data or {}
        if msg_type == 'event':
            logutil.log("WORKER", f"received event for {data.get('id')}", level="DEBUG")
        else:
            logutil.log("WORKER", f"received {msg_type}")
        if self.terminated:
            self._fail("Worker terminated", f"ignoring message {msg_type}")
            return
        handler = self.handlers.get(msg_type)
        if handler is None:
            logutil.log("WORKER", f"unknown message type received: {msg_type}", level="WARN")
            self.post('error', message=f"Unknown message type: {msg_type}")
            return
        handler(data)

    # -- proxies

    def make_proxy(self, data):
        self.registry.make_proxy(data)

    def forward_event(self, data):
        try:
            self.registry.handle_event(data)
        except Exception as e:
            self._fail("Event handling failed", e)

    # -- lifecycle

    def start(self, data):
        if self.state.phase != PHASE_UNINITIALIZED:
            self._fail("Initialization failed", "worker already initialized")
            return
        scene = None
        try:
            width = int(data['width'])
            height = int(data['height'])
            grid_size = self._check_grid_size(data['gridSize'])
            proxy_id = data.get('canvasId')
            enable_controls = data.get('enableOrbitControls', True)
            logutil.log("WORKER", f"initializing for canvasId {proxy_id}, size {width}x{height}, grid {grid_size}")

            proxy = self.registry.require_proxy(proxy_id)
            evaluator = ScriptEvaluator()
            populator = GridPopulator(evaluator)
            grid = VoxelGrid(grid_size)
            surface = self.surface_factory(data.get('canvas'), width, height)
            scene = SceneHost(surface, width, height, grid_size)
            owns_window = hasattr(surface, 'push_handlers')
            if owns_window:
                surface.push_handlers(WindowEvents(self))
            if enable_controls:
                scene.attach_controls(proxy)
                if owns_window:
                    # input on the worker's own window goes through the same proxy
                    sender = ElementProxySender(proxy_id, self.handle, width, height)
                    surface.push_handlers(sender)
                    sender.send_size()
            else:
                logutil.log("WORKER", "orbit controls disabled")
            scene.set_mesh(build_mesh(grid))
        except Exception as e:
            if scene is not None:
                scene.dispose()
            self._fail("Initialization failed", e)
            return

        state = self.state
        state.grid_size = grid_size
        state.grid = grid
        state.evaluator = evaluator
        state.populator = populator
        state.scene = scene
        state.proxy = proxy
        state.proxy_id = proxy_id
        state.phase = PHASE_READY
        self.start_render_loop()
        self.post('init', status='success')
        logutil.log("WORKER", "worker initialization successful")

    def resize(self, data):
        try:
            if self.state.scene is None:
                raise ResourceError("renderer or camera not initialized")
            self.state.scene.resize(int(data['width']), int(data['height']))
        except Exception as e:
            self._fail("Resize failed", e)
            return
        self.post('resize', status='success')

    def terminate(self, data=None):
        logutil.log("WORKER", "terminating worker")
        errors = []
        steps = [self._cancel_task, self.stop_render_loop]
        if self.state.scene is not None:
            steps.append(self.state.scene.dispose)
        steps.append(self.registry.dispose)
        for step in steps:
            try:
                step()
            except Exception as e:
                logutil.log("WORKER", f"teardown step {step.__name__} failed: {e}", level="ERROR")
                errors.append(e)
        self.state.clear()
        self.state.phase = PHASE_TERMINATED
        try:
            if errors:
                self.post('error', message=f"Termination failed: {errors[0]}")
            else:
                self.post('terminate', status='success')
                logutil.log("WORKER", "worker terminated successfully")
        finally:
            if self.on_close is not None:
                self.on_close()

    # -- render loop

    def start_render_loop(self):
        if self.state.render_loop is not None:
            logutil.log("WORKER", "render loop already running", level="WARN")
            return
        interval = 1.0 / getattr(config, 'TARGET_FPS', 60)
        self.clock.schedule_interval(self._render_tick, interval)
        self.state.render_loop = self._render_tick
        logutil.log("WORKER", f"render loop started at {1.0 / interval:.0f} fps")

    def stop_render_loop(self):
        if self.state.render_loop is None:
            return
        self.clock.unschedule(self.state.render_loop)
        self.state.render_loop = None
        logutil.log("WORKER", "render loop stopped")

    def _render_tick(self, dt):
        scene = self.state.scene
        if scene is None:
            return
        logutil.set_frame(scene.frame_id)
        try:
            scene.render()
        except Exception as e:
            logutil.log("WORKER", f"render failed: {e}", level="ERROR")
            if not self._render_error_reported:
                self._render_error_reported = True
                self.post('error', message=f"Render failed: {e}")

    def tick(self):
        """ Advance the render clock, drawing a frame if one is due. """
        return self.clock.tick()

    # -- script runs

    def _check_grid_size(self, value):
        size = int(value)
        limit = getattr(config, 'MAX_GRID_SIZE', 128)
        if size < 1 or size > limit:
            raise ValueError(f"grid size must be between 1 and {limit}, got {size}")
        return size

    def _replace_grid(self, grid_size):
        """ Grids never resize; a new size gets a new, empty grid. """
        state = self.state
        state.grid = VoxelGrid(grid_size)
        state.grid_size = grid_size
        state.scene.grid_size = grid_size
        if state.scene.controls is not None:
            controls = state.scene.controls
            controls.max_distance = max(controls.max_distance,
                                        grid_size * getattr(config, 'ORBIT_GRID_FACTOR', 3.0))
        self._rebuild_mesh()
        logutil.log("WORKER", f"allocated new grid of size {grid_size}")

    def _rebuild_mesh(self):
        self.state.scene.set_mesh(build_mesh(self.state.grid))

    def _warn(self, message):
        self.post('warning', message=message)

    def _begin_task(self, name, gen, on_success, on_failure):
        self._task = _Task(name, gen, on_success, on_failure)
        self.state.running = True
        self.state.phase = PHASE_RUNNING

    def _finish_task(self):
        self._task = None
        self.state.running = False
        if self.state.phase == PHASE_RUNNING:
            self.state.phase = PHASE_READY

    def _cancel_task(self):
        task = self._task
        if task is None:
            return
        logutil.log("WORKER", f"cancelling {task.name}", level="WARN")
        try:
            task.gen.close()
        finally:
            self._finish_task()

    def _check_can_run(self, what):
        if self._task is not None:
            raise ReentrancyError(f"cannot start {what}: {self._task.name} is still running")
        if self.state.phase != PHASE_READY or self.state.grid is None:
            raise ResourceError("interpreter or voxel grid not initialized")

    def run_python_code(self, data):
        try:
            self._check_can_run('runPythonCode')
            grid_size = data.get('gridSize')
            if grid_size is not None and int(grid_size) != self.state.grid_size:
                self._replace_grid(self._check_grid_size(grid_size))
        except Exception as e:
            self._fail("Code execution failed", e)
            return
        gen = self.state.populator.populate(self.state.grid, data.get('code', ''),
                                            on_warning=self._warn, on_complete=self._rebuild_mesh)

        def failed(error):
            # the grid was cleared; stop showing the previous run
            try:
                self._rebuild_mesh()
            except Exception as e:
                logutil.log("WORKER", f"mesh rebuild after failed run failed: {e}", level="ERROR")
            self._fail("Code execution failed", error)

        self._begin_task(
            'runPythonCode',
            gen,
            lambda result: self.post('runPythonCode', status='success'),
            failed,
        )

    def evaluate_challenge(self, data):
        try:
            self._check_can_run('evaluateChallenge')
        except Exception as e:
            logutil.log("WORKER", f"challenge evaluation rejected: {e}", level="ERROR")
            self.post('challengeResult', status='error', message=f"Challenge evaluation failed: {e}")
            return
        evaluator = ChallengeEvaluator(self.state.populator)
        gen = evaluator.evaluate(self.state.grid, data.get('targetCode', ''), data.get('userCode', ''),
                                 rebuild=self._rebuild_mesh, on_warning=self._warn)

        def failed(error):
            logutil.log("WORKER", f"challenge evaluation failed: {error}", level="ERROR")
            self.post('challengeResult', status='error', message=f"Challenge evaluation failed: {error}")

        self._begin_task(
            'evaluateChallenge',
            gen,
            lambda similarity: self.post('challengeResult', status='success', similarity=similarity),
            failed,
        )

    def step(self):
        """ Advance the active task by one chunk. Returns True while it has more to do. """
        task = self._task
        if task is None:
            return False
        try:
            next(task.gen)
            return True
        except StopIteration as stop:
            self._finish_task()
            task.on_success(stop.value)
        except Exception as e:
            self._finish_task()
            task.on_failure(e)
        return False

    def run_until_idle(self):
        while self._task is not None:
            self.step()


def serve(conn):
    """ Worker process main loop: answer messages, step runs, render frames. """
    closed = []
    controller = WorkerController(conn.send, on_close=lambda: closed.append(True))
    logutil.log("WORKER", "voxel worker loaded and ready")
    controller.post('ready')
    timeout = getattr(config, 'WORKER_POLL_TIMEOUT', 1.0 / 60)
    while not closed:
        wait = 0 if controller.busy else timeout
        try:
            while not closed and conn.poll(wait):
                controller.handle(conn.recv())
                wait = 0
        except (EOFError, OSError):
            logutil.log("WORKER", "host pipe closed, shutting down", level="WARN")
            if not controller.terminated:
                controller.send = lambda message: None
                controller.terminate()
            break
        if closed:
            break
        controller.step()
        controller.tick()
    conn.close()


def _start_worker(conn):
    serve(conn)


def start_worker():
    """ Spawn the worker process. Returns (host end of the pipe, process). """
    pipe, _pipe = multiprocessing.Pipe()
    process = multiprocessing.Process(target=_start_worker, args=(_pipe,), name='VoxelWorker')
    process.daemon = True
    process.start()
    return pipe, process
