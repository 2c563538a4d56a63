"""
Error taxonomy for the pipeline.

Every error raised by the pipeline derives from :class:`PipelineError`.  The
``retryable`` flag tells :func:`callscribe.retry.call_with_retry` whether a
failed attempt may be repeated; configuration and validation problems abort
immediately, everything that smells of the network is retried.
"""

from __future__ import annotations

from typing import Optional


class PipelineError(Exception):
    """Base class for all pipeline failures."""

    retryable = False


class ConfigurationError(PipelineError):
    """Credentials or endpoints are missing."""


class ValidationError(PipelineError):
    """The submitted input cannot be processed (wrong MIME type, no audio)."""


class TransportTimeout(PipelineError):
    """A request exceeded its time bound and was cancelled."""

    retryable = True


class TransportFailure(PipelineError):
    """The request never produced a response (connection reset, DNS, ...)."""

    retryable = True


class RemoteError(PipelineError):
    """The service answered with a non-2xx status."""

    retryable = True

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class FormatError(PipelineError):
    """The service answered 2xx but the body has an unexpected shape."""

    retryable = True


def is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, PipelineError) and exc.retryable


class DuplicateJobError(ValidationError):
    """A job for the same file name already exists."""

    def __init__(self, name: str, existing_id: str) -> None:
        super().__init__(f"File {name} was already submitted as job {existing_id}")
        self.existing_id = existing_id
