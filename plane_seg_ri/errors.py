"""Error kinds raised by the plane segmentation interface.

None of them is fatal: the node reports them and waits for the next
cloud or pose.
"""


class PlaneSegError(Exception):
    """Base class for every recoverable error of the pipeline."""


class InvalidInput(PlaneSegError):
    """Empty or malformed cloud or pose."""


class DegenerateFrame(PlaneSegError):
    """Look direction is zero or parallel to the up axis."""


class SegmentationFailed(PlaneSegError):
    """The segmentation engine raised or reported a failure."""


class UnsupportedFileFormat(PlaneSegError):
    """Dataset file with an extension we cannot read."""
