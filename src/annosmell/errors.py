"""
errors.py

Exception types shared by the signature extractor, the metric accumulator
and the pipeline.
"""


class AnnoSmellError(Exception):
    """Base class for all errors raised by annosmell."""


class InternalConsistencyError(AnnoSmellError, RuntimeError):
    """An invariant between functions, files and feature references is broken.

    Signals a defect in upstream attribution logic, never malformed input.
    Processing of the current file must stop.
    """


class UninitializedMetricError(InternalConsistencyError):
    """A derived metric was read before it was computed."""


class SrcMLError(AnnoSmellError):
    """A srcML file could not be read or parsed."""


class FunctionSignatureParseError(AnnoSmellError):
    """The structural signature strategy could not handle a function node."""


class ConfigError(AnnoSmellError):
    """Invalid analysis configuration."""
