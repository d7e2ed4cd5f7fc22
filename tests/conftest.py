import os
import sys

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

import config


class FakeSurface(object):
    """In-memory render surface: records uploads, releases and draws."""

    def __init__(self):
        self.size = None
        self.uploads = []
        self.released = []
        self.draws = []
        self.closed = False
        self._next_handle = 0

    def set_size(self, width, height):
        self.size = (width, height)

    def upload(self, mesh):
        self._next_handle += 1
        handle = ("vertex_list", self._next_handle, mesh.face_count)
        self.uploads.append(handle)
        return handle

    def release(self, handle):
        self.released.append(handle)

    def draw(self, handle, camera, lighting):
        self.draws.append(handle)

    def close(self):
        self.closed = True

    def live_handles(self):
        return [h for h in self.uploads if h not in self.released]


@pytest.fixture
def fake_surface():
    return FakeSurface()


@pytest.fixture(autouse=True)
def _quiet_logs(monkeypatch):
    monkeypatch.setattr(config, "LOG_LEVEL", "ERROR")
    monkeypatch.setattr(config, "LOG_COLOR", False)
