"""Pretty print ABAP sources in place through the ADT REST API."""

__version__ = "0.1.0"

from abappretty.models import AbapInclude, AbapObject, AdtLock, RunStatus, SyncOptions

__all__ = [
    "AbapInclude",
    "AbapObject",
    "AdtLock",
    "RunStatus",
    "SyncOptions",
    "__version__",
]
