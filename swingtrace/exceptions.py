"""Error types raised by the SwingTrace pipeline.

Only whole-pipeline failures surface to callers. Per-sample problems
(a frame that fails to decode, an inference call that errors, a pose the
validator rejects) are absorbed and counted by the analyzer.
"""


class SwingTraceError(RuntimeError):
    """Base class for SwingTrace pipeline errors."""


class ModelUnavailableError(SwingTraceError):
    """The pose estimation model could not be created or loaded."""


class DecodeError(SwingTraceError):
    """A video could not be opened or a frame could not be decoded."""


class InferenceError(SwingTraceError):
    """A single inference call failed."""


class AnalysisCancelledError(SwingTraceError):
    """Analysis was cancelled by the caller; partial results were discarded."""
