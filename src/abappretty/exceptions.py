"""Exception taxonomy for the synchronization pipeline.

Remote failures reported by the ADT API are raised as
:class:`abappretty.adt.client.AdtError`; everything raised here is a
condition detected locally.
"""

from __future__ import annotations

from pathlib import Path


class AbapPrettyError(Exception):
    """Base class for all locally detected failures."""


class UsageError(AbapPrettyError):
    """Raised for invalid invocations, detected before any remote call."""


class ManifestError(UsageError):
    """Raised for a malformed object list file.

    Attributes:
        path: The manifest file.
        line: 1-based line number of the offending row.
    """

    def __init__(self, message: str, path: Path | str, line: int) -> None:
        super().__init__(message)
        self.path = Path(path)
        self.line = line


class LockError(AbapPrettyError):
    """Raised when a lock was granted without a usable handle."""


class TransportValidationError(AbapPrettyError):
    """Raised when the supplied transport does not fit the object's lock."""


class ActivationError(AbapPrettyError):
    """Raised when the remote system reports a failed activation."""


class FormatterError(AbapPrettyError):
    """Raised when the external formatter cannot produce output."""
