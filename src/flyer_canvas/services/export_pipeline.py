"""Export Pipeline Service.

Drives the Renderer across a time range and hands the frames, in strict
time order, to a FrameEncoder.

Job lifecycle:
    PENDING -> RUNNING -> COMPLETED | CANCELLED | FAILED

Each job works on the Scene it was started with. Scenes are immutable, so
edits made in the editor after start_export never reach a running export.

Frames may be rendered concurrently by a worker pool; they are delivered to
the encoder in original order regardless of which render finishes first.
Cancellation is checked at every frame boundary: the render in flight
completes, nothing after it is delivered, and the encoder is aborted.

Concurrency policy: at most one PENDING/RUNNING job per scene snapshot.
A second request for an equal scene raises BusyExportingError (no queue).
"""

import math
import logging
import threading
import uuid
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np
from PIL import Image

from flyer_canvas.config import EngineConfig
from flyer_canvas.constants import MAX_FRAME_RATE
from flyer_canvas.errors import BusyExportingError, EncodeFailure, RenderFailure
from flyer_canvas.models.scene import Scene
from flyer_canvas.services.animation import timeline_duration
from flyer_canvas.services.encoders import FrameEncoder, MemoryEncoder
from flyer_canvas.services.renderer import Renderer

logger = logging.getLogger(__name__)


class ExportStatus(Enum):
    PENDING = 'pending'
    RUNNING = 'running'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'
    FAILED = 'failed'

    @property
    def is_terminal(self) -> bool:
        return self in (ExportStatus.COMPLETED, ExportStatus.CANCELLED, ExportStatus.FAILED)


@dataclass(frozen=True)
class TimeRange:
    """Export window in seconds; end is exclusive"""
    start: float
    end: float

    def __post_init__(self):
        if not (math.isfinite(self.start) and math.isfinite(self.end)):
            raise ValueError(f"Non-finite time range: {self.start}..{self.end}")
        if self.end < self.start:
            raise ValueError(f"Time range ends before it starts: {self.start}..{self.end}")

    @property
    def duration(self) -> float:
        return self.end - self.start


def frame_count(time_range: TimeRange, frame_rate: float) -> int:
    """Number of frames for a range; a zero-length range still yields one frame"""
    return max(1, int(round(time_range.duration * frame_rate)))


def frame_times(time_range: TimeRange, frame_rate: float) -> List[float]:
    """Timestamps of every frame: start, start + 1/fps, ... (end exclusive)"""
    return [time_range.start + i / frame_rate for i in range(frame_count(time_range, frame_rate))]


class ExportJob:
    """A tracked, cancellable export of one scene snapshot

    Status, counters and the result are written by the thread running the
    job and may be read from any thread.
    """

    def __init__(self, scene: Scene, time_range: TimeRange, frame_rate: float,
                 encoder: FrameEncoder, output_size: Optional[Tuple[int, int]] = None):
        self.id = uuid.uuid4().hex
        self.scene = scene
        self.time_range = time_range
        self.frame_rate = frame_rate
        self.encoder = encoder
        self.output_size = output_size or (scene.width, scene.height)
        self.total_frames = frame_count(time_range, frame_rate)

        self.status = ExportStatus.PENDING
        self.frames_produced = 0
        self.error: Optional[Exception] = None
        self.result: Optional[bytes] = None

        self._cancel_event = threading.Event()
        self._done_event = threading.Event()

    @property
    def progress(self) -> float:
        """Fraction of frames handed to the encoder (0.0 - 1.0)"""
        return self.frames_produced / self.total_frames

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_event.is_set()

    @property
    def is_active(self) -> bool:
        return not self.status.is_terminal

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the job reaches a terminal state

        Returns:
            True if the job finished within the timeout
        """
        return self._done_event.wait(timeout)

    def __repr__(self):
        return (f"ExportJob({self.id[:8]}, {self.status.value}, "
                f"{self.frames_produced}/{self.total_frames})")


class ExportPipeline:
    """Runs ExportJobs against a Renderer

    Args:
        renderer: Renderer used for every frame (a default one otherwise)
        max_workers: Frames rendered concurrently per job
        config: Engine config supplying defaults (frame rate, workers)
    """

    def __init__(self, renderer: Optional[Renderer] = None, max_workers: Optional[int] = None,
                 config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self.renderer = renderer or Renderer()
        self.max_workers = max(1, max_workers or self.config.export_workers)

        self._jobs: Dict[str, ExportJob] = {}
        self._lock = threading.Lock()
        self._status_listeners: List[Callable[[ExportJob], None]] = []

    # ========================================
    # Job management
    # ========================================

    def create_job(self, scene: Scene, time_range: Optional[TimeRange] = None,
                   frame_rate: Optional[float] = None, encoder: Optional[FrameEncoder] = None,
                   output_size: Optional[Tuple[int, int]] = None) -> ExportJob:
        """Register a PENDING job for a scene snapshot

        Args:
            scene: Scene to export; it is never modified
            time_range: Window to export (0 .. timeline duration by default)
            frame_rate: Frames per second (config default otherwise)
            encoder: Encoder receiving frames (MemoryEncoder by default)
            output_size: (width, height) of produced frames; canvas size by default

        Raises:
            BusyExportingError: A job for an equal scene is pending or running
            ValueError: Invalid frame rate or output size
        """
        frame_rate = frame_rate if frame_rate is not None else self.config.frame_rate
        if not (0 < frame_rate <= MAX_FRAME_RATE):
            raise ValueError(f"Frame rate must be in (0, {MAX_FRAME_RATE}], got {frame_rate}")
        if output_size is not None:
            width, height = output_size
            if width < 1 or height < 1:
                raise ValueError(f"Output size must be positive, got {output_size}")
            output_size = (int(width), int(height))
        if time_range is None:
            time_range = TimeRange(0.0, timeline_duration(scene))

        snapshot = scene.without_selection()
        with self._lock:
            for job in self._jobs.values():
                if job.is_active and job.scene.same_content(snapshot):
                    raise BusyExportingError(job.id)
            job = ExportJob(snapshot, time_range, frame_rate, encoder or MemoryEncoder(), output_size)
            self._jobs[job.id] = job

        logger.info("Export job %s created: %d frames at %.2f fps, %dx%d",
                    job.id, job.total_frames, frame_rate, *job.output_size)
        self._notify_status(job)
        return job

    def start_export(self, scene: Scene, time_range: Optional[TimeRange] = None,
                     frame_rate: Optional[float] = None, encoder: Optional[FrameEncoder] = None,
                     output_size: Optional[Tuple[int, int]] = None,
                     on_progress: Optional[Callable[[ExportJob], None]] = None,
                     background: bool = False) -> ExportJob:
        """Create a job and run it

        With background=False (default) this blocks until the job is
        terminal. With background=True the job runs on a daemon thread and
        the PENDING/RUNNING job is returned immediately; use job.wait().
        """
        job = self.create_job(scene, time_range, frame_rate, encoder, output_size)
        if background:
            thread = threading.Thread(target=self.run_job, args=(job, on_progress),
                                      name=f"export-{job.id[:8]}", daemon=True)
            thread.start()
        else:
            self.run_job(job, on_progress)
        return job

    def cancel(self, job_id: str) -> bool:
        """Request cancellation; takes effect at the next frame boundary

        Returns:
            False if the job is unknown or already finished
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or not job.is_active:
                return False
            job._cancel_event.set()
            cancel_now = job.status is ExportStatus.PENDING

        logger.info("Cancel requested for export job %s", job_id)
        if cancel_now:
            self._finish(job, ExportStatus.CANCELLED)
        return True

    def get_job(self, job_id: str) -> Optional[ExportJob]:
        with self._lock:
            return self._jobs.get(job_id)

    def release(self, job_id: str) -> bool:
        """Forget a finished job once the caller has observed its outcome"""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.is_active:
                return False
            del self._jobs[job_id]
            return True

    @property
    def active_jobs(self) -> List[ExportJob]:
        with self._lock:
            return [job for job in self._jobs.values() if job.is_active]

    # ========================================
    # Listeners
    # ========================================

    def add_status_listener(self, callback: Callable[[ExportJob], None]):
        """
        Add a listener notified on every job status change

        Args:
            callback: Function receiving the job (read job.status)
        """
        self._status_listeners.append(callback)

    def remove_status_listener(self, callback):
        if callback in self._status_listeners:
            self._status_listeners.remove(callback)

    def _notify_status(self, job: ExportJob):
        for callback in list(self._status_listeners):
            callback(job)

    # ========================================
    # Running
    # ========================================

    def run_job(self, job: ExportJob, on_progress: Optional[Callable[[ExportJob], None]] = None) -> ExportJob:
        """Run a PENDING job to completion on the calling thread"""
        with self._lock:
            if job.status is not ExportStatus.PENDING or job.cancel_requested:
                logger.debug("Job %s is %s, not running it", job.id, job.status.value)
                return job
            job.status = ExportStatus.RUNNING
        self._notify_status(job)
        logger.info("Export job %s running", job.id)

        times = frame_times(job.time_range, job.frame_rate)
        encoder = job.encoder
        pool = ThreadPoolExecutor(max_workers=self.max_workers,
                                  thread_name_prefix=f"render-{job.id[:8]}")
        try:
            encoder.begin(job.output_size[0], job.output_size[1], job.frame_rate)
            pending = deque()
            next_index = 0

            for t in times:
                if job.cancel_requested:
                    break
                # Keep at most max_workers renders in flight
                while next_index < len(times) and len(pending) < self.max_workers:
                    pending.append(pool.submit(self._render_frame, job, times[next_index]))
                    next_index += 1

                pixels = pending.popleft().result()
                if job.cancel_requested:
                    break
                encoder.add_frame(t, pixels)
                job.frames_produced += 1
                if on_progress is not None:
                    on_progress(job)

            if job.cancel_requested:
                encoder.abort()
                self._finish(job, ExportStatus.CANCELLED)
                logger.info("Export job %s cancelled after %d/%d frames",
                            job.id, job.frames_produced, job.total_frames)
                return job

            job.result = encoder.finish()
            self._finish(job, ExportStatus.COMPLETED)
            logger.info("Export job %s completed: %d frames, %d bytes",
                        job.id, job.frames_produced, len(job.result))

        except (RenderFailure, EncodeFailure) as e:
            encoder.abort()
            job.error = e
            self._finish(job, ExportStatus.FAILED)
            logger.error("Export job %s failed after %d/%d frames: %s",
                         job.id, job.frames_produced, job.total_frames, e)
        except Exception as e:
            encoder.abort()
            job.error = e
            self._finish(job, ExportStatus.FAILED)
            logger.exception("Unexpected error in export job %s", job.id)
            raise
        finally:
            pool.shutdown(wait=True, cancel_futures=True)
        return job

    def _render_frame(self, job: ExportJob, t: float) -> np.ndarray:
        pixels = self.renderer.render(job.scene, t)
        if job.output_size == (job.scene.width, job.scene.height):
            return pixels
        try:
            image = Image.fromarray(pixels, 'RGBA').resize(job.output_size, Image.Resampling.LANCZOS)
        except (ValueError, OSError) as e:
            raise RenderFailure(f"Failed to resize frame to {job.output_size}: {e}", time=t) from e
        return np.asarray(image, dtype=np.uint8)

    def _finish(self, job: ExportJob, status: ExportStatus):
        with self._lock:
            job.status = status
        job._done_event.set()
        self._notify_status(job)
