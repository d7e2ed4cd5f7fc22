import os
import threading
import multiprocessing
import config

_frame_id = None

LEVELS = {"DEBUG": 10, "INFO": 20, "WARN": 30, "ERROR": 40}


def set_frame(frame_id):
    global _frame_id
    _frame_id = frame_id


def enabled(scope, level="INFO"):
    rank = LEVELS.get(level, 20)
    if rank < LEVELS.get(getattr(config, "LOG_LEVEL", "INFO"), 20):
        return False
    scopes = getattr(config, "LOG_SCOPES", None)
    if scopes is not None and scope not in scopes and rank < LEVELS["WARN"]:
        return False
    return True


def log(scope, msg, level="INFO"):
    if not enabled(scope, level):
        return
    pid = os.getpid()
    proc = multiprocessing.current_process().name
    thread = threading.current_thread().name
    frame = _frame_id
    frame_tag = f" f{frame}" if frame is not None else ""
    text = f"[{level}{frame_tag} pid{pid} proc{proc} thr{thread} {scope}] {msg}"
    use_color = getattr(config, "LOG_COLOR", True) and os.getenv("NO_COLOR") is None
    if use_color:
        if level == "ERROR":
            text = f"\x1b[31m{text}\x1b[0m"
        elif proc == "MainProcess" and thread != "MainThread":
            # Main process worker thread.
            text = f"\x1b[32m{text}\x1b[0m"
        elif proc != "MainProcess":
            # Voxel worker process.
            text = f"\x1b[33m{text}\x1b[0m"
    print(text)
