"""
Error taxonomy for the live pipeline.

A face missing from a frame is not an error: the detector returns None.
"""


class FaceSignalError(Exception):
    """Base class for pipeline errors."""


class PermissionDenied(FaceSignalError):
    """The camera could not be opened (access refused or no device)."""


class ModelLoadFailure(FaceSignalError):
    """A model bundle is missing or could not be loaded."""

    def __init__(self, bundle: str, reason: str):
        super().__init__(f"Could not load model bundle '{bundle}': {reason}")
        self.bundle = bundle
        self.reason = reason


class StaleFrame(FaceSignalError):
    """A frame was requested before the capture produced one."""
