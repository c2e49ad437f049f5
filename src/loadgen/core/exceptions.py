"""Error types raised by the load generator.

Everything derives from LoadGeneratorError so the entry point can treat
any of them as fatal for the run while callers in between may still pick
out the cases they want to handle.
"""
from typing import Optional


class LoadGeneratorError(Exception):
    """Base class for load generator failures."""


class ConfigurationError(LoadGeneratorError):
    """Invalid run configuration (empty model name, bad settings)."""


class SchemaFetchError(LoadGeneratorError):
    """The model config could not be fetched or decoded."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: str = "",
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class UnsupportedDatatypeError(LoadGeneratorError):
    """No zero-value encoder is registered for a wire datatype."""

    def __init__(self, datatype: str):
        super().__init__(f"datatype {datatype} not supported")
        self.datatype = datatype


class InferenceStatusError(LoadGeneratorError):
    """The inference endpoint answered with a non-200 status."""

    def __init__(self, status_code: int, body: str = ""):
        super().__init__(f"inference request failed with status {status_code}: {body}")
        self.status_code = status_code
        self.body = body


class InferenceTransportError(LoadGeneratorError):
    """The inference request never got a response."""
