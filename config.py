import math

# Render loop cadence (frames per second).
TARGET_FPS = 60

# Color used for cells whose draw() returned True, and as the fallback for
# colors that fail to parse when building the mesh.
DEFAULT_COLOR = '#00ff00'

# Grid population yields back to the worker loop after every Nth row along Y.
YIELD_EVERY_ROWS = 5

# Name of the function each script must define.
ENTRY_POINT = 'draw'

# Largest grid the worker will allocate.
MAX_GRID_SIZE = 128

# Camera
CAMERA_FOV = 75
CAMERA_NEAR = 0.1
CAMERA_FAR = 1000.0
# Camera distance is max(CAMERA_MIN_DISTANCE, grid_size * CAMERA_GRID_FACTOR).
CAMERA_MIN_DISTANCE = 15.0
CAMERA_GRID_FACTOR = 1.5

# Orbit controls
ORBIT_DAMPING = 0.25
ORBIT_MIN_DISTANCE = 5.0
ORBIT_MAX_DISTANCE = 50.0
# max_distance grows with the grid: max(ORBIT_MAX_DISTANCE, grid_size * ORBIT_GRID_FACTOR)
ORBIT_GRID_FACTOR = 3.0
ORBIT_MAX_POLAR = math.pi / 1.5
ORBIT_ROTATE_SPEED = 1.0
ORBIT_ZOOM_SPEED = 1.0
ORBIT_PAN_SPEED = 1.0
# Pixels panned per arrow key press.
ORBIT_KEY_PAN_PIXELS = 7.0

# Lighting
AMBIENT_COLOR = 0xcccccc
AMBIENT_INTENSITY = 0.5
LIGHT_DIR = (1.0, 1.0, 0.5)
LIGHT_INTENSITY = 1.0
# Transparent background.
CLEAR_COLOR = (0.0, 0.0, 0.0, 0.0)

# Create the render surface with pyglet's headless (EGL) backend.
HEADLESS = False

# Seconds the worker waits on its pipe per loop pass when no task is active.
WORKER_POLL_TIMEOUT = 1.0 / TARGET_FPS

# Logging
# Minimum level printed: DEBUG, INFO, WARN, ERROR
LOG_LEVEL = 'INFO'
# Enable ANSI colors in logs.
LOG_COLOR = True
# When not None, only these scopes are printed (warnings/errors always are).
LOG_SCOPES = None
