"""
Export worker thread.

QThread-based worker that runs one ExportJob off the interaction thread so
a Qt host stays responsive while frames render and encode. Cancellation goes
through the pipeline (cancel() is safe to call from the GUI thread).
"""

from typing import Optional, Tuple

import numpy as np
from PyQt5.QtCore import QThread, pyqtSignal
from PyQt5.QtGui import QImage

from flyer_canvas.models.scene import Scene
from .encoders import FrameEncoder
from .export_pipeline import ExportJob, ExportPipeline, TimeRange


def frame_to_qimage(pixels: np.ndarray) -> QImage:
    """Convert an RGBA frame from the renderer into a QImage (deep copy)"""
    pixels = np.ascontiguousarray(pixels, dtype=np.uint8)
    height, width = pixels.shape[:2]
    image = QImage(pixels.tobytes(), width, height, width * 4, QImage.Format_RGBA8888)
    # Detach from the temporary byte buffer
    return image.copy()


class ExportWorker(QThread):
    """Worker thread for exports to keep GUI responsive."""

    progress = pyqtSignal(int, int)   # frames produced, total frames
    finished = pyqtSignal(str, str)   # job id, final status value

    def __init__(self, pipeline: ExportPipeline, scene: Scene,
                 time_range: Optional[TimeRange] = None, frame_rate: Optional[float] = None,
                 encoder: Optional[FrameEncoder] = None,
                 output_size: Optional[Tuple[int, int]] = None):
        super().__init__()
        self.pipeline = pipeline
        # Registered now so BusyExportingError surfaces on the caller's thread
        self.job: ExportJob = pipeline.create_job(scene, time_range, frame_rate, encoder, output_size)

    def run(self):
        """Run the export job."""
        self.progress.emit(0, self.job.total_frames)
        try:
            self.pipeline.run_job(self.job, self._on_progress)
        finally:
            self.finished.emit(self.job.id, self.job.status.value)

    def _on_progress(self, job: ExportJob):
        self.progress.emit(job.frames_produced, job.total_frames)

    def cancel(self) -> bool:
        return self.pipeline.cancel(self.job.id)
