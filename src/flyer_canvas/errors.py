"""Error taxonomy and result statuses for the canvas engine.

Scene mutations never escape as uncaught faults: the model raises one of the
CanvasError subclasses below, and the HistoryManager turns it into a Status
for the caller. Export errors terminate only the affected ExportJob.
"""

from enum import Enum


class Status(Enum):
    """Result of a history operation."""
    OK = 'ok'
    NO_OP = 'no_op'
    NOT_FOUND = 'not_found'
    INVALID_GEOMETRY = 'invalid_geometry'
    NOTHING_TO_UNDO = 'nothing_to_undo'
    NOTHING_TO_REDO = 'nothing_to_redo'

    def __bool__(self):
        return self is Status.OK


class CanvasError(Exception):
    """Base class for all engine errors."""
    status = None


class NotFoundError(CanvasError):
    """An operation referenced a layer ID that is not in the scene."""
    status = Status.NOT_FOUND

    def __init__(self, layer_id, message=None):
        self.layer_id = layer_id
        super().__init__(message or f"Layer not found: {layer_id}")


class InvalidGeometryError(CanvasError):
    """A transform request carried degenerate values (NaN, infinity)."""
    status = Status.INVALID_GEOMETRY


class BusyExportingError(CanvasError):
    """An export is already pending or running for the same scene snapshot."""

    def __init__(self, job_id):
        self.job_id = job_id
        super().__init__(f"Scene is already being exported by job {job_id}")


class RenderFailure(CanvasError):
    """A frame could not be produced."""

    def __init__(self, message, layer_id=None, time=None):
        self.layer_id = layer_id
        self.time = time
        super().__init__(message)


class EncodeFailure(CanvasError):
    """The encoder collaborator rejected a frame or could not finalise output."""
