"""Frame encoders consumed by the export pipeline.

An encoder receives an ordered stream of (timestamp, frame) pairs and turns
it into the bytes of one artifact. The pipeline guarantees frames arrive in
strictly increasing time order and that finish() is only called after the
last frame; abort() is called instead when a job is cancelled or fails.

Any error raised while encoding is surfaced as EncodeFailure.
"""

import io
import logging
import zipfile
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

import numpy as np
from PIL import Image

from flyer_canvas.constants import GIF_LOOP_FOREVER
from flyer_canvas.errors import EncodeFailure

logger = logging.getLogger(__name__)


class FrameEncoder(ABC):
    """Encoder collaborator interface"""

    #: File extension of the produced artifact
    extension = ''

    def __init__(self):
        self.width = 0
        self.height = 0
        self.frame_rate = 0.0
        self.frame_count = 0
        self._open = False

    def begin(self, width: int, height: int, frame_rate: float):
        """Start a new artifact of the given frame size"""
        self.width = width
        self.height = height
        self.frame_rate = frame_rate
        self.frame_count = 0
        self._open = True
        self._begin()

    def add_frame(self, timestamp: float, pixels: np.ndarray):
        """Append one (height, width, 4) uint8 RGBA frame

        Raises:
            EncodeFailure: Encoder not started, wrong frame shape, or a
                backend error
        """
        if not self._open:
            raise EncodeFailure("add_frame called before begin()")
        if pixels.shape != (self.height, self.width, 4):
            raise EncodeFailure(
                f"Frame shape {pixels.shape} does not match {(self.height, self.width, 4)}")
        try:
            self._add_frame(timestamp, pixels)
        except EncodeFailure:
            raise
        except Exception as e:
            raise EncodeFailure(f"Failed to encode frame at t={timestamp:.3f}: {e}") from e
        self.frame_count += 1

    def finish(self) -> bytes:
        """Finalise and return the artifact bytes"""
        if not self._open:
            raise EncodeFailure("finish called before begin()")
        try:
            data = self._finish()
        except EncodeFailure:
            raise
        except Exception as e:
            raise EncodeFailure(f"Failed to finalise {type(self).__name__}: {e}") from e
        finally:
            self._open = False
        logger.debug("%s produced %d bytes from %d frames",
                     type(self).__name__, len(data), self.frame_count)
        return data

    def abort(self):
        """Drop any partial output"""
        self._open = False
        self._abort()

    def _begin(self):
        pass

    @abstractmethod
    def _add_frame(self, timestamp: float, pixels: np.ndarray):
        pass

    @abstractmethod
    def _finish(self) -> bytes:
        pass

    def _abort(self):
        pass


class MemoryEncoder(FrameEncoder):
    """Keeps frames in memory; finish() returns raw concatenated RGBA bytes"""

    extension = 'rgba'

    def __init__(self):
        super().__init__()
        self.frames: List[Tuple[float, np.ndarray]] = []
        self.aborted = False
        self.finished = False

    def _begin(self):
        self.frames = []
        self.aborted = False
        self.finished = False

    def _add_frame(self, timestamp, pixels):
        self.frames.append((timestamp, pixels.copy()))

    def _finish(self):
        self.finished = True
        return b''.join(pixels.tobytes() for _, pixels in self.frames)

    def _abort(self):
        self.aborted = True
        self.frames = []

    @property
    def timestamps(self) -> List[float]:
        return [t for t, _ in self.frames]


class GifEncoder(FrameEncoder):
    """Animated GIF via Pillow

    Each frame is shown for 1/frame_rate seconds (rounded to the GIF's
    10 ms resolution by Pillow). The animation loops forever by default.
    """

    extension = 'gif'

    def __init__(self, loop: int = GIF_LOOP_FOREVER, optimize: bool = False):
        super().__init__()
        self.loop = loop
        self.optimize = optimize
        self._images: List[Image.Image] = []

    def _begin(self):
        self._images = []

    def _add_frame(self, timestamp, pixels):
        # GIF has 1-bit transparency; flatten onto opaque RGB and quantise
        rgb = Image.fromarray(pixels, 'RGBA').convert('RGB')
        self._images.append(rgb.quantize(colors=256, method=Image.Quantize.MEDIANCUT))

    def _finish(self):
        if not self._images:
            raise EncodeFailure("No frames to encode")
        duration = int(round(1000.0 / self.frame_rate))
        buffer = io.BytesIO()
        first, rest = self._images[0], self._images[1:]
        first.save(buffer, format='GIF', save_all=True, append_images=rest,
                   duration=duration, loop=self.loop, optimize=self.optimize, disposal=1)
        self._images = []
        return buffer.getvalue()

    def _abort(self):
        self._images = []


class PngSequenceEncoder(FrameEncoder):
    """Zip archive of numbered PNG frames (frame_00000.png, ...)"""

    extension = 'zip'

    def __init__(self, prefix: str = 'frame_'):
        super().__init__()
        self.prefix = prefix
        self._buffer: Optional[io.BytesIO] = None
        self._zip: Optional[zipfile.ZipFile] = None

    def _begin(self):
        self._buffer = io.BytesIO()
        self._zip = zipfile.ZipFile(self._buffer, 'w', compression=zipfile.ZIP_STORED)

    def _add_frame(self, timestamp, pixels):
        png = io.BytesIO()
        Image.fromarray(pixels, 'RGBA').save(png, format='PNG')
        self._zip.writestr(f"{self.prefix}{self.frame_count:05d}.png", png.getvalue())

    def _finish(self):
        self._zip.close()
        data = self._buffer.getvalue()
        self._zip = None
        self._buffer = None
        return data

    def _abort(self):
        if self._zip is not None:
            self._zip.close()
        self._zip = None
        self._buffer = None


ENCODERS = {
    'gif': GifEncoder,
    'png-zip': PngSequenceEncoder,
}


def create_encoder(format_name: str) -> FrameEncoder:
    """Encoder instance for a CLI/config format name

    Raises:
        ValueError: Unknown format
    """
    try:
        return ENCODERS[format_name]()
    except KeyError:
        raise ValueError(f"Unknown export format '{format_name}' "
                         f"(expected one of: {', '.join(ENCODERS)})") from None
