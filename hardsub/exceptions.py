"""Exception hierarchy for the hard-subtitle pipeline."""


class HardSubError(Exception):
    """Base exception for pipeline errors."""

    pass


class AudioDecodeError(HardSubError, RuntimeError):
    """Raised when the audio track cannot be decoded at all."""

    pass


class FrameExtractionError(HardSubError):
    """Raised when a still frame cannot be grabbed at a timestamp."""

    def __init__(self, timestamp: float, reason: str):
        super().__init__(f"Frame extraction failed at {timestamp:.3f}s: {reason}")
        self.timestamp = timestamp


class PackingError(HardSubError):
    """Raised when frames cannot be merged into a composite image."""

    pass


class RecognitionError(HardSubError):
    """Raised when the recognition service call fails."""

    pass


class RecognitionMismatchError(RecognitionError):
    """Raised when a batch response does not match the request length."""

    def __init__(self, expected: int, received: int):
        super().__init__(
            f"Recognition returned {received} results for {expected} sub-images"
        )
        self.expected = expected
        self.received = received


class MissingAPIKeyError(RecognitionError):
    """Raised when no API key is configured for the recognition service."""

    def __init__(self, env_var: str):
        super().__init__(
            f"Recognition API key not found. Set the {env_var} environment "
            f"variable or recognition.api_key in config.yaml."
        )
        self.env_var = env_var


class PipelineError(HardSubError, RuntimeError):
    """
    Fatal pipeline termination.

    `result` holds whatever subtitles were assembled before the failure,
    `step` the state the pipeline was in.
    """

    def __init__(self, message: str, result=None, step=None):
        super().__init__(message)
        self.result = result
        self.step = step


class PipelineCancelled(PipelineError):
    """Raised when the caller cancels a running pipeline."""

    pass
