"""Exception types raised while loading and assembling detections."""


class PamrError(Exception):
    """Base exception for PAMr processing errors."""


class ConfigurationError(PamrError):
    """Grouping mode is unknown or the database lacks the required tables."""


class NoDataError(PamrError):
    """A result set that must contain data is empty."""


class SampleRateError(PamrError):
    """Base exception for unresolved sample rates."""


class SampleRateRequiredError(SampleRateError):
    """No sample rate could be found and none was supplied."""


class AmbiguousSampleRateError(SampleRateError):
    """Some detections are missing a sample rate and no resolution was chosen."""

    def __init__(self, message: str, mode: int, missing: int, total: int):
        super().__init__(message)
        self.mode = mode
        self.missing = missing
        self.total = total


class TransformError(PamrError):
    """A registered processing function raised while processing a binary file."""

    def __init__(
        self,
        message: str,
        module_type: str | None = None,
        function_name: str | None = None,
        binary_file: str | None = None,
    ):
        super().__init__(message)
        self.module_type = module_type
        self.function_name = function_name
        self.binary_file = binary_file


class DecoderError(PamrError):
    """A binary file could not be decoded."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class NoEventsError(PamrError):
    """Event assembly produced no events."""
