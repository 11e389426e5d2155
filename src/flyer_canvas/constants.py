"""
Flyer Canvas - Constants and Configuration Defaults

This module contains all constant values used throughout the engine:
- Default canvas settings
- Min/max values and constraints for transforms
- Interaction tolerances (snapping, handles, nudging)
- Export defaults

EngineConfig (config.py) copies its defaults from here; tunables that a host
application may want to change live there, everything else is read directly.
"""

# ======================================================================
# CANVAS DEFAULTS
# ======================================================================

DEFAULT_CANVAS_WIDTH = 1080
DEFAULT_CANVAS_HEIGHT = 1350
DEFAULT_BACKGROUND = (0, 0, 0, 255)  # RGBA

# ======================================================================
# TRANSFORM CONSTRAINTS
# ======================================================================

# Smallest allowed scale factor; smaller requests are clamped, never rejected
MIN_SCALE = 0.01

DEFAULT_POSITION_X = 0.0
DEFAULT_POSITION_Y = 0.0
DEFAULT_SCALE_X = 1.0
DEFAULT_SCALE_Y = 1.0
DEFAULT_ROTATION = 0.0
DEFAULT_OPACITY = 1.0

# Comparison tolerance for "did this transform actually change"
TRANSFORM_EPSILON = 1e-9

# ======================================================================
# CONTENT DEFAULTS
# ======================================================================

DEFAULT_CONTENT_WIDTH = 200
DEFAULT_CONTENT_HEIGHT = 200

FIT_CONTAIN = 'contain'
FIT_COVER = 'cover'
FIT_FILL = 'fill'
FIT_MODES = (FIT_CONTAIN, FIT_COVER, FIT_FILL)

DEFAULT_TEXT_COLOR = (255, 255, 255, 255)
DEFAULT_FONT_SIZE = 48
TEXT_ALIGNMENTS = ('left', 'center', 'right')

# Blur overlays: Gaussian radius in canvas pixels
DEFAULT_BLUR_INTENSITY = 10.0
MIN_BLUR_INTENSITY = 1.0
MAX_BLUR_INTENSITY = 50.0
BLUR_SHAPE_RECT = 'rect'
BLUR_SHAPE_CIRCLE = 'circle'
BLUR_SHAPES = (BLUR_SHAPE_RECT, BLUR_SHAPE_CIRCLE)

# ======================================================================
# INTERACTION CONSTANTS
# ======================================================================

# Snap distance in canvas pixels, per axis
SNAP_TOLERANCE = 8.0

# Rotation snaps to these angles when within the angular tolerance
ROTATION_SNAP_ANGLES = (0.0, 90.0, 180.0, 270.0)
ROTATION_SNAP_TOLERANCE = 5.0

# Handle geometry (canvas pixels)
TRANSFORM_HANDLE_SIZE = 8
TRANSFORM_HIT_TOLERANCE = 4
TRANSFORM_ROTATION_HANDLE_OFFSET = 30

# Arrow key nudge distances (canvas pixels)
NUDGE_FINE = 1.0      # Alt
NUDGE_NORMAL = 5.0    # no modifier
NUDGE_COARSE = 20.0   # Ctrl / Meta

# Marquee drags shorter than this are treated as a click on empty canvas
MARQUEE_MIN_SIZE = 2.0

# ======================================================================
# HISTORY
# ======================================================================

MAX_HISTORY_ENTRIES = 100

# ======================================================================
# RENDERING
# ======================================================================

# Content rasters kept by each Renderer (least recently used are dropped)
RASTER_CACHE_SIZE = 256

# ======================================================================
# EXPORT
# ======================================================================

DEFAULT_FRAME_RATE = 15.0
MAX_FRAME_RATE = 120.0
DEFAULT_EXPORT_WORKERS = 1
GIF_LOOP_FOREVER = 0

# ======================================================================
# SERIALIZATION
# ======================================================================

SCENE_FORMAT_VERSION = 1
