"""
Error types raised while pinning workflow action references.

Per-file and per-reference errors are collected into the run outcome;
only configuration-level problems and filesystem failures escape the
pinner.
"""

from typing import Optional


class PinnerError(Exception):
    """Base class for all gha-pin errors."""


class DirectoryNotFound(PinnerError):
    """The workflows directory does not exist (treated as nothing to pin)."""

    def __init__(self, path: str):
        super().__init__(f"Workflows directory not found: {path}")
        self.path = path


class NoWorkflowFiles(PinnerError):
    """The workflows directory contains no .yml/.yaml files."""

    def __init__(self, path: str):
        super().__init__(f"No workflow files found in {path}")
        self.path = path


class MalformedWorkflow(PinnerError):
    """A workflow file could not be parsed as a YAML mapping."""

    def __init__(self, path: str, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path
        self.message = message


class RewriteValidationFailed(PinnerError):
    """The rewritten workflow text no longer parses or changed structure."""

    def __init__(self, path: str, message: str):
        super().__init__(f"{path}: rewrite validation failed: {message}")
        self.path = path
        self.message = message


class NotFound(PinnerError):
    """The remote source answered with a definitive not-found."""


class TransportOrAuthFailure(PinnerError):
    """The remote source was unreachable, timed out, or rejected the request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class UnresolvedReference(PinnerError):
    """An action reference could not be mapped to a commit SHA."""

    def __init__(self, reference: str, cause: Optional[Exception] = None):
        detail = f": {cause}" if cause else ""
        super().__init__(f"Could not resolve {reference}{detail}")
        self.reference = reference
        self.cause = cause

    @property
    def transient(self) -> bool:
        """True when the failure came from the transport, not a not-found."""
        return isinstance(self.cause, TransportOrAuthFailure)
