"""Error taxonomy for the greeter.

Per-image failures (``ImageLoadError``, ``NoFaceDetectedError``) are skipped
while the reference set is built. The rest are fatal and reach the caller.
"""


class GreeterError(Exception):
    """Base class for all greeter errors."""


class ImageLoadError(GreeterError):
    """A reference image is missing or cannot be decoded."""


class NoFaceDetectedError(GreeterError):
    """A reference image contains no detectable face."""


class NoReferenceDataError(GreeterError):
    """No identity produced a usable descriptor."""


class DeviceAccessError(GreeterError):
    """The camera could not be opened."""


class ModelLoadError(GreeterError):
    """The face analysis model failed to initialize."""


class SessionStateError(GreeterError, RuntimeError):
    """A session operation was called in the wrong lifecycle state."""
